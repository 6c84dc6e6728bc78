from __future__ import annotations

import typing as t


@t.runtime_checkable
class BackendClient(t.Protocol):
    """
    Remote backend able to answer for many keys in one round trip.

    Attributes
    ----------
    endpoint : str
        Stable destination identity (e.g. an RPC URL). Requests for clients
        sharing an endpoint are coalesced together.

    Notes
    -----
    ``fetch_many`` must return results positionally aligned with ``keys``
    (``None`` for a missing record) or raise. Partial success is not part of
    the contract: a raised exception fails every key of the call.
    """

    endpoint: str

    async def fetch_many(self, keys: list[str], options: t.Any = None) -> t.Sequence[t.Any]: ...
