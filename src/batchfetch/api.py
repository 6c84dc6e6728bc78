"""
Process-wide convenience functions backed by a default ``Coalescer``.

Code that needs isolation (tests, several independent pools) should build its
own ``Coalescer`` instead.
"""

import asyncio
import threading
import typing as t

from batchfetch.backends.base import BackendClient
from batchfetch.config import UNSET, CoalescingConfig
from batchfetch.engine import Coalescer
from batchfetch.enums import WindowMode

_default_coalescer: Coalescer | None = None
_default_lock = threading.Lock()


def get_default_coalescer() -> Coalescer:
    """
    Return the process-wide engine, creating it on first use.

    Returns
    -------
    Coalescer
        Shared engine instance.
    """
    global _default_coalescer
    with _default_lock:
        if _default_coalescer is None:
            _default_coalescer = Coalescer()
        return _default_coalescer


def submit(
    client: BackendClient,
    key: str,
    *,
    replace_connection: bool = False,
) -> asyncio.Future[t.Any]:
    """
    Queue a lookup on the default engine.

    Parameters
    ----------
    client : BackendClient
        Backend for the lookup.
    key : str
        Record key.
    replace_connection : bool, optional
        Swap the backend of an existing channel for the same endpoint.

    Returns
    -------
    asyncio.Future[typing.Any]
        Pending result.
    """
    return get_default_coalescer().submit(client, key, replace_connection=replace_connection)


async def fetch(
    client: BackendClient,
    key: str,
    *,
    replace_connection: bool = False,
) -> t.Any:
    return await submit(client, key, replace_connection=replace_connection)


def set_config(
    *,
    time_window: int | None = None,
    maximum_batch_size: int | None = None,
    backend_call_options: t.Any = UNSET,
    window_mode: WindowMode | str | None = None,
) -> CoalescingConfig:
    """
    Merge fields into the default engine's configuration.

    Omitted fields keep their value; ``backend_call_options=None`` clears the options.
    """
    return get_default_coalescer().set_config(
        time_window=time_window,
        maximum_batch_size=maximum_batch_size,
        backend_call_options=backend_call_options,
        window_mode=window_mode,
    )


def get_config() -> CoalescingConfig:
    return get_default_coalescer().config


def teardown(*, reject_pending: bool = False) -> int:
    """
    Tear down the default engine's channels. Safe to call repeatedly.

    Parameters
    ----------
    reject_pending : bool, optional
        Reject accumulated requests instead of abandoning them.

    Returns
    -------
    int
        Number of abandoned requests.
    """
    with _default_lock:
        coalescer = _default_coalescer
    if coalescer is None:
        return 0
    return coalescer.teardown(reject_pending=reject_pending)
