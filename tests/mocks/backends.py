"""
Fake backend clients for exercising the coalescing engine.
"""

import asyncio
import typing as t


class BackendDown(RuntimeError):
    """Error raised by fake backends for keys configured to fail."""


class RecordingBackend:
    """
    In-memory backend that records every ``fetch_many`` call.

    Parameters
    ----------
    endpoint : str
        Destination identity.
    records : dict[str, typing.Any] | None
        Known records; unknown keys resolve to ``None``.
    failing_keys : set[str] | None
        Any call containing one of these keys raises ``BackendDown``.
    delay : float
        Seconds to sleep inside each call.
    """

    def __init__(
        self,
        endpoint: str = "mock-url",
        *,
        records: dict[str, t.Any] | None = None,
        failing_keys: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.endpoint = endpoint
        self.records = records
        self.failing_keys = failing_keys or set()
        self.delay = delay
        self.calls: list[list[str]] = []
        self.options: list[t.Any] = []
        self.errors: list[BackendDown] = []

    async def fetch_many(self, keys: list[str], options: t.Any = None) -> list[t.Any]:
        self.calls.append(list(keys))
        self.options.append(options)
        if self.delay:
            await asyncio.sleep(delay=self.delay)
        failing = [key for key in keys if key in self.failing_keys]
        if failing:
            error = BackendDown(f"backend rejected {failing}")
            self.errors.append(error)
            raise error
        if self.records is None:
            return [{"key": key} for key in keys]
        return [self.records.get(key) for key in keys]


class ShortResultBackend(RecordingBackend):
    """Backend returning fewer results than requested keys."""

    def __init__(self, endpoint: str = "mock-short", *, keep: int = 1) -> None:
        super().__init__(endpoint=endpoint)
        self.keep = keep

    async def fetch_many(self, keys: list[str], options: t.Any = None) -> list[t.Any]:
        results = await super().fetch_many(keys=keys, options=options)
        return results[: self.keep]
