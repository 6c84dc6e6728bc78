"""
Coalescing configuration.

A single ``CoalescingConfig`` is held by a ``ConfigStore`` and replaced as a
whole on every update. Channels and the dispatcher read the store when a
window timer is armed or a window is dispatched, never when a request is
submitted.
"""

from __future__ import annotations

import threading
import typing as t

import structlog
from pydantic import BaseModel, ConfigDict, Field

from batchfetch.enums import WindowMode

log = structlog.get_logger(__name__)

DEFAULT_TIME_WINDOW_MS = 500
DEFAULT_MAXIMUM_BATCH_SIZE = 100


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Default for fields where None is a meaningful value.
UNSET: t.Any = _Unset()


class CoalescingConfig(BaseModel):
    """
    Immutable coalescing tunables.

    Attributes
    ----------
    time_window : int
        Window duration in milliseconds.
    maximum_batch_size : int
        Maximum number of unique keys sent in one backend call.
    backend_call_options : typing.Any
        Opaque options forwarded untouched to ``fetch_many``.
    window_mode : WindowMode
        Quiet-period (``debounce``) or fixed (``tumbling``) windows.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    time_window: int = Field(default=DEFAULT_TIME_WINDOW_MS, gt=0)
    maximum_batch_size: int = Field(default=DEFAULT_MAXIMUM_BATCH_SIZE, gt=0)
    backend_call_options: t.Any = None
    window_mode: WindowMode = WindowMode.DEBOUNCE

    @property
    def time_window_seconds(self) -> float:
        return self.time_window / 1000


class ConfigStore:
    """
    Holder of the current ``CoalescingConfig`` with last-writer-wins updates.

    Parameters
    ----------
    config : CoalescingConfig | None, optional
        Initial configuration. Defaults are used when omitted.
    """

    def __init__(self, config: CoalescingConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._config = config or CoalescingConfig()

    def get(self) -> CoalescingConfig:
        """
        Return the configuration current at the moment of the call.

        Returns
        -------
        CoalescingConfig
            Latest configuration.
        """
        return self._config

    def set(
        self,
        *,
        time_window: int | None = None,
        maximum_batch_size: int | None = None,
        backend_call_options: t.Any = UNSET,
        window_mode: WindowMode | str | None = None,
    ) -> CoalescingConfig:
        """
        Merge the given fields into the current configuration.

        Parameters
        ----------
        time_window : int | None, optional
            Window duration in milliseconds.
        maximum_batch_size : int | None, optional
            Maximum unique keys per backend call.
        backend_call_options : typing.Any, optional
            Options forwarded to the backend. Passing ``None`` clears them;
            leaving the argument out keeps the current options.
        window_mode : WindowMode | str | None, optional
            Windowing policy.

        Returns
        -------
        CoalescingConfig
            The configuration now in effect.

        Raises
        ------
        pydantic.ValidationError
            If a merged field is out of range.
        """
        updates = {
            "time_window": time_window,
            "maximum_batch_size": maximum_batch_size,
            "window_mode": window_mode,
        }
        updates = {key: value for key, value in updates.items() if value is not None}
        if backend_call_options is not UNSET:
            updates["backend_call_options"] = backend_call_options
        with self._lock:
            # model_copy skips validation, so rebuild through the model.
            merged = CoalescingConfig.model_validate({**dict(self._config), **updates})
            self._config = merged
        log.debug(
            event="Updated coalescing config",
            time_window=merged.time_window,
            maximum_batch_size=merged.maximum_batch_size,
            window_mode=merged.window_mode,
        )
        return merged

    def replace(self, config: CoalescingConfig) -> CoalescingConfig:
        with self._lock:
            self._config = config
        return config

    def reset(self) -> CoalescingConfig:
        """Restore default values."""
        return self.replace(CoalescingConfig())
