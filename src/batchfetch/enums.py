from enum import StrEnum


class WindowMode(StrEnum):
    """How a coalescing window decides to close."""

    DEBOUNCE = "debounce"
    TUMBLING = "tumbling"


class ChannelState(StrEnum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    CLOSING = "closing"
    CLOSED = "closed"
