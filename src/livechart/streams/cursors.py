import logging
from typing import Any, Optional

from livechart.config.enumerations import StreamKind
from livechart.timing.epochs import to_finite

logger = logging.getLogger(__name__)


class CursorRegistry:
    """Per-stream watermark in epoch milliseconds.

    A cursor only moves forward. :meth:`reset` is the single way back to zero
    and is reserved for a change of symbol.
    """

    def __init__(self) -> None:
        self._cursors: dict[StreamKind, int] = {kind: 0 for kind in StreamKind}

    def __getitem__(self, kind: StreamKind) -> int:
        return self._cursors[kind]

    def snapshot(self) -> dict[StreamKind, int]:
        return dict(self._cursors)

    def advance(self, kind: StreamKind, candidate: Optional[float]) -> int:
        """Move the cursor to ``candidate`` if it is ahead; returns the cursor."""
        number = to_finite(candidate)
        if number is not None and number > 0:
            self._cursors[kind] = max(self._cursors[kind], int(number))
        return self._cursors[kind]

    def reset(self) -> None:
        for kind in self._cursors:
            self._cursors[kind] = 0

    def clamp_since(self, kind: StreamKind, requested: Any, known_last_ms: int = 0) -> int:
        """Bound a ``since`` request to ``[0, last known]`` for the stream.

        The last known timestamp is the larger of the cursor and
        ``known_last_ms`` (normally the newest stored row).
        """
        number = to_finite(requested)
        since = int(number) if number is not None and number >= 0 else 0

        known = max(self._cursors[kind], int(known_last_ms or 0))
        if since > known:
            since = known

        if number is None or since != number:
            logger.debug(
                "clamp_since(%s): requested=%s known=%s -> %s",
                kind.value,
                requested,
                known,
                since,
            )
        return since
