"""
Coalescing engine tying the routing table, channels and dispatcher together.
The engine collects single-key lookups per destination and sends them as
windowed multi-key backend calls.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

from batchfetch.backends.base import BackendClient
from batchfetch.channel import CoalescingChannel
from batchfetch.config import UNSET, CoalescingConfig, ConfigStore
from batchfetch.dispatcher import BatchDispatcher
from batchfetch.enums import WindowMode
from batchfetch.routing import RoutingTable

log = structlog.get_logger(__name__)


class Coalescer:
    """
    Route submissions to per-destination channels and manage their lifecycle.

    Parameters
    ----------
    config : CoalescingConfig | None, optional
        Initial configuration. Ignored when ``config_store`` is given.
    config_store : ConfigStore | None, optional
        Shared configuration holder.

    Notes
    -----
    Requests accumulated but not yet dispatched when ``teardown`` runs are
    abandoned: their futures never settle unless ``reject_pending=True``.
    """

    def __init__(
        self,
        config: CoalescingConfig | None = None,
        *,
        config_store: ConfigStore | None = None,
    ) -> None:
        self._config_store = config_store or ConfigStore(config=config)
        self._dispatcher = BatchDispatcher(config_store=self._config_store)
        self._routing_table = RoutingTable(channel_factory=self._build_channel)

        current = self._config_store.get()
        log.debug(
            event="Initialized Coalescer",
            time_window=current.time_window,
            maximum_batch_size=current.maximum_batch_size,
            window_mode=current.window_mode,
        )

    def _build_channel(self, client: BackendClient) -> CoalescingChannel:
        return CoalescingChannel(
            client,
            config_store=self._config_store,
            dispatcher=self._dispatcher,
        )

    @property
    def config(self) -> CoalescingConfig:
        return self._config_store.get()

    @property
    def routing_table(self) -> RoutingTable:
        return self._routing_table

    @property
    def dispatcher(self) -> BatchDispatcher:
        return self._dispatcher

    def set_config(
        self,
        *,
        time_window: int | None = None,
        maximum_batch_size: int | None = None,
        backend_call_options: t.Any = UNSET,
        window_mode: WindowMode | str | None = None,
    ) -> CoalescingConfig:
        """
        Merge configuration fields; omitted fields keep their value.

        Parameters
        ----------
        time_window : int | None, optional
            Window duration in milliseconds.
        maximum_batch_size : int | None, optional
            Maximum unique keys per backend call.
        backend_call_options : typing.Any, optional
            Opaque options forwarded to ``fetch_many``; ``None`` clears them.
        window_mode : WindowMode | str | None, optional
            ``"debounce"`` or ``"tumbling"``.

        Returns
        -------
        CoalescingConfig
            The configuration now in effect.
        """
        return self._config_store.set(
            time_window=time_window,
            maximum_batch_size=maximum_batch_size,
            backend_call_options=backend_call_options,
            window_mode=window_mode,
        )

    def submit(
        self,
        client: BackendClient,
        key: str,
        *,
        replace_connection: bool = False,
    ) -> asyncio.Future[t.Any]:
        """
        Queue a single-key lookup and return its pending result.

        Parameters
        ----------
        client : BackendClient
            Backend for the lookup; its endpoint selects the channel.
        key : str
            Record key.
        replace_connection : bool, optional
            Swap the backend used by an existing channel for this endpoint.

        Returns
        -------
        asyncio.Future[typing.Any]
            Settles with the record, ``None`` when missing, or the backend
            error of the call that carried the key.
        """
        channel = self._routing_table.get_or_create(
            client,
            replace_connection=replace_connection,
        )
        return channel.submit(key)

    async def fetch(
        self,
        client: BackendClient,
        key: str,
        *,
        replace_connection: bool = False,
    ) -> t.Any:
        return await self.submit(client, key, replace_connection=replace_connection)

    async def flush(self) -> None:
        """
        Close every open window now and wait for all backend calls to settle.
        """
        for channel in self._routing_table.channels():
            channel.flush()
        await self._dispatcher.wait_idle()

    def teardown(self, *, reject_pending: bool = False) -> int:
        """
        Close every channel and clear the routing table.

        Parameters
        ----------
        reject_pending : bool, optional
            Reject accumulated requests with ``RequestAbandonedError``
            instead of abandoning them unsettled.

        Returns
        -------
        int
            Number of requests abandoned across all channels.
        """
        channels = self._routing_table.clear()
        abandoned = sum(channel.close(reject_pending=reject_pending) for channel in channels)
        if channels:
            log.info(
                event="Coalescer torn down",
                channel_count=len(channels),
                abandoned_count=abandoned,
                inflight_chunk_count=self._dispatcher.inflight_count,
            )
        return abandoned

    async def __aenter__(self) -> Coalescer:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        self.teardown()
