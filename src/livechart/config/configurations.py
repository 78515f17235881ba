# central local for feed and view configurations

from dataclasses import dataclass, field
from typing import Optional

from livechart.config.enumerations import StreamKind

# Store limits
MAX_ROWS_PER_STREAM = 3000
HORIZON_SCAN_ROWS = 30
DEC_TO_BPS = 10_000

# Poll cadence (milliseconds)
DEFAULT_POLL_MS = 1000
MIN_POLL_MS = 250

# Bootstrap sizes
LATEST_ROWS = 2000
SNAPSHOT_SECONDS = 120
SNAPSHOT_SECONDS_MIN = 1
SNAPSHOT_SECONDS_MAX = 120

# View windows
DEFAULT_VIEW_SPAN = 240
MIN_VIEW_SPAN = 20
ZOOM_IN_FACTOR = 0.85
ZOOM_OUT_FACTOR = 1.15
WHEEL_THROTTLE_SECONDS = 0.010
SIGNAL_SEARCH_MAX_LOOK = 800
PLAYBACK_INTERVAL_SECONDS = 0.2

# Horizon defaults
DEFAULT_HFT_HORIZON_MS = 250
DEFAULT_IDT_HORIZONS_MS = (3_600_000, 1_800_000, 1_200_000)

# Ordered candidates per logical field; the first present field wins.
EPOCH_FIELDS = ("epoch_ns", "epoch_us", "epoch_ms", "epoch_s", "epoch")

BID_PRICE_FIELDS = ("bid_px1", "bid_px_00", "best_bid", "bid")
ASK_PRICE_FIELDS = ("ask_px1", "ask_px_00", "best_ask", "ask")
MID_FIELDS = ("mid", "mid_px", "mid_price")
MICROPRICE_FIELDS = ("microprice",)
L1_BID_SIZE_FIELDS = ("bid_sz1",)
L1_ASK_SIZE_FIELDS = ("ask_sz1",)

DEPTH_BID_PRICE_FIELDS = ("bid_px1", "bid_px", "best_bid_px", "bid", "bb_px", "bid_px_00")
DEPTH_ASK_PRICE_FIELDS = ("ask_px1", "ask_px", "best_ask_px", "ask", "ba_px", "ask_px_00")
DEPTH_BID_SIZE_FIELDS = (
    "bid_sz1",
    "bid_sz",
    "best_bid_sz",
    "bid_size",
    "bb_sz",
    "bid_sz_00",
    "depth_bid",
)
DEPTH_ASK_SIZE_FIELDS = (
    "ask_sz1",
    "ask_sz",
    "best_ask_sz",
    "ask_size",
    "ba_sz",
    "ask_sz_00",
    "depth_ask",
)


@dataclass
class StreamEndpoint:
    """Defines how a stream is fetched from the feed."""

    kind: StreamKind
    latest_path: str
    delta_path: str
    profile: Optional[str]
    description: str


STREAM_ENDPOINTS = {
    StreamKind.HFT: StreamEndpoint(
        kind=StreamKind.HFT,
        latest_path="/pred/latest",
        delta_path="/pred/delta",
        profile="hft",
        description="High-frequency model predictions",
    ),
    StreamKind.IDT: StreamEndpoint(
        kind=StreamKind.IDT,
        latest_path="/pred/latest",
        delta_path="/pred/delta",
        profile="idt",
        description="Intraday model predictions",
    ),
    StreamKind.SNAPSHOT: StreamEndpoint(
        kind=StreamKind.SNAPSHOT,
        latest_path="/snapshot",
        delta_path="/snapshot/delta",
        profile="hft",
        description="Order book snapshot rows",
    ),
}


@dataclass
class PollConfig:
    """Tunables for one poll scheduler."""

    poll_ms: int = DEFAULT_POLL_MS
    use_delta: bool = True
    latest_rows: int = LATEST_ROWS
    snapshot_seconds: int = SNAPSHOT_SECONDS
    streams: tuple[StreamKind, ...] = field(
        default_factory=lambda: (StreamKind.HFT, StreamKind.IDT, StreamKind.SNAPSHOT)
    )
