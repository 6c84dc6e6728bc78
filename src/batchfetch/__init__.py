from .api import fetch as fetch
from .api import get_config as get_config
from .api import get_default_coalescer as get_default_coalescer
from .api import set_config as set_config
from .api import submit as submit
from .api import teardown as teardown
from .backends import BackendClient as BackendClient
from .backends import JsonRpcBackend as JsonRpcBackend
from .config import CoalescingConfig as CoalescingConfig
from .engine import Coalescer as Coalescer
from .enums import WindowMode as WindowMode
from .exceptions import BackendResponseError as BackendResponseError
from .exceptions import BatchFetchError as BatchFetchError
from .exceptions import ChannelClosedError as ChannelClosedError
from .exceptions import RequestAbandonedError as RequestAbandonedError

__all__ = [
    "BackendClient",
    "BackendResponseError",
    "BatchFetchError",
    "ChannelClosedError",
    "Coalescer",
    "CoalescingConfig",
    "JsonRpcBackend",
    "RequestAbandonedError",
    "WindowMode",
    "fetch",
    "get_config",
    "get_default_coalescer",
    "set_config",
    "submit",
    "teardown",
]
