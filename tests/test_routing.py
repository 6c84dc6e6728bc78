"""
Tests for destination routing.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from batchfetch.channel import CoalescingChannel
from batchfetch.config import ConfigStore
from batchfetch.dispatcher import BatchDispatcher
from batchfetch.routing import RoutingTable
from tests.mocks.backends import RecordingBackend


class CountingFactory:
    """Channel factory that counts how many channels it built."""

    def __init__(self) -> None:
        self.store = ConfigStore()
        self.dispatcher = BatchDispatcher(config_store=self.store)
        self.built: list[CoalescingChannel] = []

    def __call__(self, client: RecordingBackend) -> CoalescingChannel:
        channel = CoalescingChannel(client, config_store=self.store, dispatcher=self.dispatcher)
        self.built.append(channel)
        return channel


@pytest.fixture
def factory() -> CountingFactory:
    return CountingFactory()


@pytest.fixture
def table(factory: CountingFactory) -> RoutingTable:
    return RoutingTable(channel_factory=factory)


def test_same_endpoint_returns_same_channel(table: RoutingTable, factory: CountingFactory):
    first = table.get_or_create(RecordingBackend(endpoint="rpc-a"))
    second = table.get_or_create(RecordingBackend(endpoint="rpc-a"))

    assert first is second
    assert len(factory.built) == 1
    assert "rpc-a" in table
    assert table.get("rpc-a") is first


def test_distinct_endpoints_get_distinct_channels(table: RoutingTable):
    first = table.get_or_create(RecordingBackend(endpoint="rpc-a"))
    second = table.get_or_create(RecordingBackend(endpoint="rpc-b"))

    assert first is not second
    assert len(table) == 2
    assert {channel.endpoint for channel in table.channels()} == {"rpc-a", "rpc-b"}


def test_existing_client_is_kept_by_default(table: RoutingTable):
    original = RecordingBackend(endpoint="rpc-a")
    other = RecordingBackend(endpoint="rpc-a")

    channel = table.get_or_create(original)
    table.get_or_create(other)

    assert channel.client is original


def test_replace_connection_swaps_client(table: RoutingTable):
    original = RecordingBackend(endpoint="rpc-a")
    other = RecordingBackend(endpoint="rpc-a")

    channel = table.get_or_create(original)
    returned = table.get_or_create(other, replace_connection=True)

    assert returned is channel
    assert channel.client is other


def test_replace_connection_on_first_use_registers_client(table: RoutingTable):
    client = RecordingBackend(endpoint="rpc-a")

    channel = table.get_or_create(client, replace_connection=True)

    assert channel.client is client


def test_clear_returns_and_removes_all_channels(table: RoutingTable):
    first = table.get_or_create(RecordingBackend(endpoint="rpc-a"))
    second = table.get_or_create(RecordingBackend(endpoint="rpc-b"))

    removed = table.clear()

    assert removed == [first, second]
    assert len(table) == 0
    assert table.get("rpc-a") is None
    assert table.clear() == []


def test_concurrent_lookups_create_single_channel(table: RoutingTable, factory: CountingFactory):
    clients = [RecordingBackend(endpoint="rpc-shared") for _ in range(64)]

    with ThreadPoolExecutor(max_workers=16) as executor:
        channels = list(executor.map(table.get_or_create, clients))

    assert len(factory.built) == 1
    assert all(channel is channels[0] for channel in channels)
