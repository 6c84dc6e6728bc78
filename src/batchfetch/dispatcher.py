"""
Turn a closed window into backend calls and fan the answers back out.

A window is deduplicated by key (first-seen order), split into chunks of at
most ``maximum_batch_size`` unique keys, and each chunk is sent as an
independent backend call running in its own task. A failing chunk rejects
only its own requests.
"""

from __future__ import annotations

import asyncio
import typing as t
import uuid

import structlog

from batchfetch.backends.base import BackendClient
from batchfetch.config import ConfigStore
from batchfetch.request import KeyGroup, PendingRequest
from batchfetch.utils.logging import logging_context

log = structlog.get_logger(__name__)


def group_by_key(requests: t.Iterable[PendingRequest]) -> list[KeyGroup]:
    """
    Merge requests sharing a key, preserving first-seen key order.

    Parameters
    ----------
    requests : typing.Iterable[PendingRequest]
        Requests of a closed window in submission order.

    Returns
    -------
    list[KeyGroup]
        One group per unique key.
    """
    groups: dict[str, KeyGroup] = {}
    for request in requests:
        group = groups.get(request.key)
        if group is None:
            group = groups[request.key] = KeyGroup(key=request.key)
        group.requests.append(request)
    return list(groups.values())


def chunk_groups(groups: t.Sequence[KeyGroup], size: int) -> list[list[KeyGroup]]:
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(groups[start : start + size]) for start in range(0, len(groups), size)]


class BatchDispatcher:
    """
    Send closed windows to the backend, one task per chunk.

    Parameters
    ----------
    config_store : ConfigStore
        Source of ``maximum_batch_size`` and ``backend_call_options``, read at
        dispatch time.
    """

    def __init__(self, config_store: ConfigStore) -> None:
        self._config_store = config_store
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def dispatch(
        self,
        *,
        client: BackendClient,
        requests: t.Sequence[PendingRequest],
    ) -> list[asyncio.Task[None]]:
        """
        Schedule backend calls for a closed window.

        Parameters
        ----------
        client : BackendClient
            Backend bound to the window's channel at close time.
        requests : typing.Sequence[PendingRequest]
            Window content in submission order.

        Returns
        -------
        list[asyncio.Task[None]]
            One task per chunk, in chunk order.
        """
        if not requests:
            return []
        config = self._config_store.get()
        groups = group_by_key(requests)
        chunks = chunk_groups(groups, config.maximum_batch_size)
        window_id = uuid.uuid4().hex[:8]

        log.info(
            event="Dispatching window",
            endpoint=client.endpoint,
            window_id=window_id,
            request_count=len(requests),
            unique_key_count=len(groups),
            chunk_count=len(chunks),
            maximum_batch_size=config.maximum_batch_size,
        )

        tasks: list[asyncio.Task[None]] = []
        for index, chunk in enumerate(chunks):
            task = asyncio.create_task(
                self._call_chunk(
                    client=client,
                    chunk=chunk,
                    options=config.backend_call_options,
                    window_id=window_id,
                    chunk_index=index,
                ),
                name=f"batchfetch_chunk_{window_id}_{index}",
            )
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def _call_chunk(
        self,
        *,
        client: BackendClient,
        chunk: list[KeyGroup],
        options: t.Any,
        window_id: str,
        chunk_index: int,
    ) -> None:
        """
        Run one backend call and settle every request of the chunk.

        Parameters
        ----------
        client : BackendClient
            Backend to call.
        chunk : list[KeyGroup]
            Groups whose keys form the call, in order.
        options : typing.Any
            Backend call options captured at dispatch time.
        window_id : str
            Window identifier for logs.
        chunk_index : int
            Position of the chunk within its window.
        """
        keys = [group.key for group in chunk]
        with logging_context(endpoint=client.endpoint, window_id=window_id):
            await self._settle_chunk(
                client=client,
                chunk=chunk,
                keys=keys,
                options=options,
                window_id=window_id,
                chunk_index=chunk_index,
            )

    async def _settle_chunk(
        self,
        *,
        client: BackendClient,
        chunk: list[KeyGroup],
        keys: list[str],
        options: t.Any,
        window_id: str,
        chunk_index: int,
    ) -> None:
        try:
            results = await client.fetch_many(keys, options)
        except asyncio.CancelledError:
            log.warning(
                event="Backend call cancelled",
                endpoint=client.endpoint,
                window_id=window_id,
                chunk_index=chunk_index,
                key_count=len(keys),
            )
            for group in chunk:
                for request in group.requests:
                    request.cancel()
            raise
        except Exception as error:
            log.error(
                event="Backend call failed",
                endpoint=client.endpoint,
                window_id=window_id,
                chunk_index=chunk_index,
                key_count=len(keys),
                error=str(error),
            )
            for group in chunk:
                for request in group.requests:
                    request.reject(error)
            return

        values = list(results or [])
        settled = 0
        for position, group in enumerate(chunk):
            result = values[position] if position < len(values) else None
            for request in group.requests:
                if request.resolve(result):
                    settled += 1
        log.debug(
            event="Backend call resolved",
            endpoint=client.endpoint,
            window_id=window_id,
            chunk_index=chunk_index,
            key_count=len(keys),
            result_count=len(values),
            settled_count=settled,
        )

    async def wait_idle(self) -> None:
        """Wait until every chunk dispatched so far has settled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
