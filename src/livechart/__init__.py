"""Live synchronization of prediction and order book feeds onto one timeline."""

__version__ = "0.1.0"
