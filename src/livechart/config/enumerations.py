from enum import Enum


class StreamKind(Enum):
    """The three independently paced feeds held by a context."""

    HFT = "hft"
    IDT = "idt"
    SNAPSHOT = "snapshot"

    @property
    def is_prediction(self) -> bool:
        return self is not StreamKind.SNAPSHOT


class PollMode(Enum):
    FULL = "full"
    DELTA = "delta"


class SchedulerState(Enum):
    """Lifecycle of the poll scheduler."""

    STOPPED = "stopped"
    IDLE = "idle"
    FETCHING = "fetching"


class ConnectionState(Enum):
    """Aggregate feed health reported after each cycle."""

    CONNECTING = "connecting"
    LIVE = "live"
    OFFLINE = "offline"


class InteractionState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING = "hovering"


class ChartName(Enum):
    """Charts sharing one timeline, each with its own view window."""

    PRICE = "price"
    PRED = "pred"
    MICRO = "micro"
    DEPTH = "depth"
