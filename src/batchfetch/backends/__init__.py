from batchfetch.backends.base import BackendClient
from batchfetch.backends.jsonrpc import JsonRpcBackend

__all__ = [
    "BackendClient",
    "JsonRpcBackend",
]
