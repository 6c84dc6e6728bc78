from __future__ import annotations

import threading
import typing as t

import structlog

from batchfetch.backends.base import BackendClient
from batchfetch.channel import CoalescingChannel

log = structlog.get_logger(__name__)

ChannelFactory = t.Callable[[BackendClient], CoalescingChannel]


class RoutingTable:
    """
    Map destination identities to their coalescing channel.

    Entries are created on first use and only removed by ``clear``.

    Parameters
    ----------
    channel_factory : ChannelFactory
        Builds the channel for a destination seen for the first time.
    """

    def __init__(self, channel_factory: ChannelFactory) -> None:
        self._channel_factory = channel_factory
        self._channels: dict[str, CoalescingChannel] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._channels

    def get(self, endpoint: str) -> CoalescingChannel | None:
        return self._channels.get(endpoint)

    def channels(self) -> list[CoalescingChannel]:
        with self._lock:
            return list(self._channels.values())

    def get_or_create(
        self,
        client: BackendClient,
        *,
        replace_connection: bool = False,
    ) -> CoalescingChannel:
        """
        Return the channel for ``client.endpoint``, creating it if absent.

        Parameters
        ----------
        client : BackendClient
            Backend whose endpoint identifies the destination.
        replace_connection : bool, optional
            When the channel already exists, make it use ``client`` for
            future dispatches.

        Returns
        -------
        CoalescingChannel
            The single channel registered for the destination.
        """
        endpoint = client.endpoint
        with self._lock:
            channel = self._channels.get(endpoint)
            if channel is None:
                channel = self._channel_factory(client)
                self._channels[endpoint] = channel
                log.debug(event="Registered channel", endpoint=endpoint)
                return channel
            if replace_connection:
                channel.replace_client(client)
            return channel

    def clear(self) -> list[CoalescingChannel]:
        """
        Remove every entry.

        Returns
        -------
        list[CoalescingChannel]
            Channels that were registered.
        """
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        return channels
