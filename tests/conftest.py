from typing import Any, Callable

import pytest
import respx

from datastore_harness.datastore import Observable, Subscription
from datastore_harness.testing import MemoryDataStore, MemoryRemote

GRAPHQL_ENDPOINT = "https://api.example.test/graphql"


class FakeSubscription(Subscription):
    def __init__(self, source: "FakeObservable", callback: Callable[[Any], None]):
        self._source = source
        self.callback = callback
        self.unsubscribe_calls = 0

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        if self in self._source.subscriptions:
            self._source.subscriptions.remove(self)


class FakeObservable(Observable):
    """Observable that delivers whatever the test pushes, synchronously."""

    def __init__(self):
        self.subscriptions: list[FakeSubscription] = []
        self.created: list[FakeSubscription] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        subscription = FakeSubscription(self, callback)
        self.subscriptions.append(subscription)
        self.created.append(subscription)
        return subscription

    def emit(self, item: Any) -> None:
        for subscription in list(self.subscriptions):
            subscription.callback(item)

    @property
    def unsubscribe_calls(self) -> int:
        return sum(s.unsubscribe_calls for s in self.created)


@pytest.fixture
def source():
    return FakeObservable()


@pytest.fixture
def store():
    return MemoryDataStore()


@pytest.fixture
def remote(store):
    return MemoryRemote(store)


@pytest.fixture
def mock_graphql():
    """Mock the managed GraphQL endpoint; each test registers its own responses."""
    with respx.mock(
        base_url="https://api.example.test", assert_all_called=False
    ) as respx_mock:
        yield respx_mock


@pytest.fixture
def graphql_client(mock_graphql, monkeypatch):
    """Create a GraphQL client configured from the environment."""
    monkeypatch.setenv("GRAPHQL_ENDPOINT", GRAPHQL_ENDPOINT)
    monkeypatch.setenv("GRAPHQL_API_KEY", "test-api-key")
    from datastore_harness import GraphQLClient

    return GraphQLClient.from_env()
