"""
JSON-RPC backend for multi-account lookups over HTTP.

Speaks the ``getMultipleAccounts`` shape used by Solana RPC nodes:
``params = [keys, config]`` and ``result = {"context": ..., "value": [...]}``.
"""

from __future__ import annotations

import itertools
import typing as t

import httpx
import structlog

from batchfetch.exceptions import BackendResponseError

log = structlog.get_logger(__name__)

DEFAULT_METHOD = "getMultipleAccounts"

_request_ids = itertools.count(start=1)


class JsonRpcBackend:
    """
    Backend client issuing one JSON-RPC call per batch of keys.

    Parameters
    ----------
    endpoint : str
        RPC URL. Also used as the destination identity for coalescing.
    method : str, optional
        JSON-RPC method taking ``[keys, config]`` params.
    default_params : dict[str, typing.Any] | None, optional
        Config object sent with every call; per-call options override it.
    headers : dict[str, str] | None, optional
        Extra HTTP headers.
    timeout : float, optional
        HTTP timeout in seconds for the default client factory.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        method: str = DEFAULT_METHOD,
        default_params: dict[str, t.Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.endpoint = endpoint
        self.method = method
        self.default_params = (
            dict(default_params) if default_params is not None else {"encoding": "jsonParsed"}
        )
        self.headers = dict(headers or {})
        self._client_factory: t.Callable[[], httpx.AsyncClient] = lambda: httpx.AsyncClient(
            timeout=timeout
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(endpoint={self.endpoint!r}, method={self.method!r})"

    def build_payload(self, *, keys: list[str], options: t.Any = None) -> dict[str, t.Any]:
        """
        Build the JSON-RPC request body for a batch of keys.

        Parameters
        ----------
        keys : list[str]
            Unique keys of the batch, in order.
        options : typing.Any, optional
            Per-call config merged over ``default_params``. Must be a mapping
            when provided.

        Returns
        -------
        dict[str, typing.Any]
            JSON-RPC request object.
        """
        params: dict[str, t.Any] = dict(self.default_params)
        if options is not None:
            if not isinstance(options, t.Mapping):
                raise TypeError(
                    f"JSON-RPC call options must be a mapping, got {type(options).__name__}"
                )
            params.update(options)
        rpc_params: list[t.Any] = [keys, params] if params else [keys]
        return {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": self.method,
            "params": rpc_params,
        }

    async def fetch_many(self, keys: list[str], options: t.Any = None) -> list[t.Any]:
        """
        Fetch records for ``keys`` in a single JSON-RPC call.

        Parameters
        ----------
        keys : list[str]
            Unique keys, in order.
        options : typing.Any, optional
            Per-call config mapping.

        Returns
        -------
        list[typing.Any]
            Records aligned with ``keys``; ``None`` for missing records.

        Raises
        ------
        httpx.HTTPStatusError
            If the endpoint answers with a non-2xx status.
        BackendResponseError
            If the body carries a JSON-RPC error or has no usable result.
        """
        payload = self.build_payload(keys=keys, options=options)
        log.debug(
            event="Sending JSON-RPC batch",
            endpoint=self.endpoint,
            method=self.method,
            request_id=payload["id"],
            key_count=len(keys),
        )
        async with self._client_factory() as client:
            response = await client.post(
                url=self.endpoint,
                json=payload,
                headers=self.headers,
            )
            response.raise_for_status()
            body = response.json()
        return self._extract_values(body=body, key_count=len(keys))

    def _extract_values(self, *, body: t.Any, key_count: int) -> list[t.Any]:
        if not isinstance(body, dict):
            raise BackendResponseError("JSON-RPC response is not an object")
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise BackendResponseError(
                    str(error.get("message", "unknown error")),
                    code=error.get("code"),
                )
            raise BackendResponseError(str(error))
        if "result" not in body:
            raise BackendResponseError("JSON-RPC response has neither result nor error")

        result = body["result"]
        values = result.get("value") if isinstance(result, dict) else result
        if values is None:
            values = []
        if not isinstance(values, list):
            raise BackendResponseError("JSON-RPC result value is not a list")
        if len(values) != key_count:
            log.warning(
                event="JSON-RPC result length mismatch",
                endpoint=self.endpoint,
                expected=key_count,
                received=len(values),
            )
        return values
