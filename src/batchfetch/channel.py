"""
Per-destination accumulation of pending requests.

Each channel is a small timer-driven state machine::

    IDLE --submit--> ACCUMULATING --timer--> CLOSING --handoff--> IDLE
      \\__________________ close() ___________________/--> CLOSED

All state is mutated from the event loop thread, so window decisions for a
destination never race each other.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

from batchfetch.backends.base import BackendClient
from batchfetch.config import ConfigStore
from batchfetch.dispatcher import BatchDispatcher
from batchfetch.enums import ChannelState, WindowMode
from batchfetch.exceptions import ChannelClosedError, RequestAbandonedError
from batchfetch.request import PendingRequest
from batchfetch.utils.logging import logging_context

log = structlog.get_logger(__name__)


class CoalescingChannel:
    """
    Collect requests for one destination and close windows on a timer.

    Parameters
    ----------
    client : BackendClient
        Backend used when a window is dispatched. May be swapped later.
    config_store : ConfigStore
        Source of the window mode and duration, read when the timer is armed.
    dispatcher : BatchDispatcher
        Receives every closed window.
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        config_store: ConfigStore,
        dispatcher: BatchDispatcher,
    ) -> None:
        self.client = client
        self.endpoint = client.endpoint
        self._config_store = config_store
        self._dispatcher = dispatcher
        self._pending: list[PendingRequest] = []
        self._timer_task: asyncio.Task[None] | None = None
        self._state = ChannelState.IDLE
        self._window_count = 0

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(endpoint={self.endpoint!r}, state={self._state}, "
            f"pending={len(self._pending)})"
        )

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def window_count(self) -> int:
        """Number of windows closed and handed to the dispatcher so far."""
        return self._window_count

    def replace_client(self, client: BackendClient) -> None:
        """
        Use ``client`` for every window dispatched from now on.

        Parameters
        ----------
        client : BackendClient
            New backend for the same destination.
        """
        if client is self.client:
            return
        log.debug(
            event="Replaced channel backend client",
            endpoint=self.endpoint,
            pending_count=len(self._pending),
        )
        self.client = client

    def submit(self, key: str) -> asyncio.Future[t.Any]:
        """
        Queue ``key`` in the open window, opening one if needed.

        Parameters
        ----------
        key : str
            Record key to fetch.

        Returns
        -------
        asyncio.Future[typing.Any]
            Settles with the record (or ``None``) once the window's chunk is
            answered, or with the backend's exception.

        Raises
        ------
        ChannelClosedError
            If the channel was closed by teardown.
        """
        if self._state is ChannelState.CLOSED:
            raise ChannelClosedError(self.endpoint)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[t.Any] = loop.create_future()
        self._pending.append(PendingRequest(key=key, future=future))

        config = self._config_store.get()
        if self._state is ChannelState.IDLE:
            self._state = ChannelState.ACCUMULATING
            log.debug(
                event="Opened window",
                endpoint=self.endpoint,
                window_mode=config.window_mode,
                time_window=config.time_window,
            )
            self._arm_timer(delay=config.time_window_seconds)
        elif config.window_mode is WindowMode.DEBOUNCE or not self._timer_alive():
            self._arm_timer(delay=config.time_window_seconds)

        log.debug(
            event="Queued request",
            endpoint=self.endpoint,
            key=key,
            pending_count=len(self._pending),
        )
        return future

    def _arm_timer(self, *, delay: float) -> None:
        self._cancel_timer()
        self._timer_task = asyncio.create_task(
            self._window_timer(delay=delay),
            name=f"batchfetch_window_{self.endpoint}",
        )

    def _timer_alive(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def _cancel_timer(self) -> None:
        timer_task = self._timer_task
        self._timer_task = None
        if timer_task is not None and not timer_task.done():
            timer_task.cancel()

    async def _window_timer(self, *, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            # cancelled from outside _cancel_timer, e.g. loop shutdown
            if self._timer_task is asyncio.current_task():
                self._timer_task = None
            log.debug(event="Window timer reset", endpoint=self.endpoint)
            raise
        if self._timer_task is not asyncio.current_task():
            return
        self._timer_task = None
        self._close_window()

    def _close_window(self) -> None:
        """
        Hand the open window to the dispatcher and return to idle.
        """
        if self._state is not ChannelState.ACCUMULATING:
            return
        self._state = ChannelState.CLOSING
        requests, self._pending = self._pending, []
        self._window_count += 1
        log.debug(
            event="Closed window",
            endpoint=self.endpoint,
            window_number=self._window_count,
            request_count=len(requests),
        )
        try:
            with logging_context(endpoint=self.endpoint):
                self._dispatcher.dispatch(client=self.client, requests=requests)
        finally:
            self._state = ChannelState.IDLE

    def flush(self) -> None:
        """Close the open window now instead of waiting for its timer."""
        if self._state is not ChannelState.ACCUMULATING:
            return
        self._cancel_timer()
        self._close_window()

    def close(self, *, reject_pending: bool = False) -> int:
        """
        Stop the channel. Accumulated requests are not dispatched.

        Parameters
        ----------
        reject_pending : bool, optional
            Reject abandoned requests with ``RequestAbandonedError`` instead
            of leaving them unsettled.

        Returns
        -------
        int
            Number of requests abandoned.
        """
        if self._state is ChannelState.CLOSED:
            return 0
        self._cancel_timer()
        self._state = ChannelState.CLOSED
        abandoned, self._pending = self._pending, []
        if abandoned:
            log.warning(
                event="Abandoned pending requests on close",
                endpoint=self.endpoint,
                abandoned_count=len(abandoned),
                rejected=reject_pending,
            )
        if reject_pending:
            for request in abandoned:
                request.reject(RequestAbandonedError(self.endpoint, request.key))
        return len(abandoned)
