"""
Batchfetch-specific runtime exceptions.

Backend failures are never wrapped: whatever ``fetch_many`` raises is set
verbatim on every waiter of the failing chunk.
"""

from __future__ import annotations


class BatchFetchError(Exception):
    """Base class for errors raised by the engine itself."""


class ChannelClosedError(BatchFetchError):
    """
    Raised when a request is submitted to a channel that was torn down.

    Parameters
    ----------
    endpoint : str
        Destination identity of the closed channel.
    """

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Channel for {endpoint!r} is closed")
        self.endpoint = endpoint


class RequestAbandonedError(BatchFetchError):
    """
    Set on accumulated requests when teardown is asked to reject them.

    Parameters
    ----------
    endpoint : str
        Destination identity the request was queued for.
    key : str
        Key of the abandoned request.
    """

    def __init__(self, endpoint: str, key: str) -> None:
        super().__init__(f"Request for key {key!r} on {endpoint!r} abandoned by teardown")
        self.endpoint = endpoint
        self.key = key


class BackendResponseError(BatchFetchError):
    """
    The backend answered, but with an error payload or an unreadable body.

    Parameters
    ----------
    message : str
        Error message reported by the backend.
    code : int | None
        Backend error code, when one was provided.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message if code is None else f"[{code}] {message}")
        self.code = code
