from __future__ import annotations

import asyncio
import typing as t
from dataclasses import dataclass, field


@dataclass
class PendingRequest:
    """A single-key lookup waiting for its window to be dispatched."""

    key: str
    future: asyncio.Future[t.Any]

    def resolve(self, result: t.Any) -> bool:
        """
        Settle the request with a result.

        Parameters
        ----------
        result : typing.Any
            Record returned by the backend, or ``None``.

        Returns
        -------
        bool
            ``False`` if the future was already settled or cancelled.
        """
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def cancel(self) -> bool:
        return self.future.cancel()


@dataclass
class KeyGroup:
    """All requests of one window that share a key, in submission order."""

    key: str
    requests: list[PendingRequest] = field(default_factory=list)
