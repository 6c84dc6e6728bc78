"""
Tests for coalescing configuration merging and validation.
"""

import pytest
from pydantic import ValidationError

from batchfetch.config import CoalescingConfig, ConfigStore
from batchfetch.enums import WindowMode


def test_defaults():
    config = ConfigStore().get()

    assert config.time_window == 500
    assert config.maximum_batch_size == 100
    assert config.backend_call_options is None
    assert config.window_mode is WindowMode.DEBOUNCE
    assert config.time_window_seconds == 0.5


def test_set_merges_and_keeps_omitted_fields():
    store = ConfigStore()
    store.set(time_window=100, backend_call_options={"commitment": "confirmed"})

    config = store.set(maximum_batch_size=3)

    assert config.time_window == 100
    assert config.maximum_batch_size == 3
    assert config.backend_call_options == {"commitment": "confirmed"}
    assert store.get() is config


def test_set_replaces_whole_object():
    store = ConfigStore()
    before = store.get()

    store.set(time_window=10)

    assert before.time_window == 500
    assert store.get() is not before


def test_window_mode_accepts_string():
    store = ConfigStore()

    config = store.set(window_mode="tumbling")

    assert config.window_mode is WindowMode.TUMBLING


@pytest.mark.parametrize(
    "fields",
    [
        {"time_window": 0},
        {"time_window": -5},
        {"maximum_batch_size": 0},
        {"window_mode": "sliding"},
    ],
)
def test_invalid_values_are_rejected(fields):
    store = ConfigStore()

    with pytest.raises(ValidationError):
        store.set(**fields)

    assert store.get() == CoalescingConfig()


def test_backend_call_options_are_kept_as_is():
    class Options:
        pass

    options = Options()
    store = ConfigStore()
    store.set(backend_call_options=options)

    config = store.set(time_window=20)

    assert config.backend_call_options is options


def test_config_is_frozen():
    config = CoalescingConfig()

    with pytest.raises(ValidationError):
        config.time_window = 10  # type: ignore[misc]


def test_reset_restores_defaults():
    store = ConfigStore()
    store.set(time_window=1, maximum_batch_size=1, window_mode=WindowMode.TUMBLING)

    assert store.reset() == CoalescingConfig()


def test_none_clears_backend_call_options():
    store = ConfigStore()
    store.set(backend_call_options={"commitment": "confirmed"})

    assert store.set(time_window=20).backend_call_options == {"commitment": "confirmed"}
    assert store.set(backend_call_options=None).backend_call_options is None
    assert store.get().time_window == 20
