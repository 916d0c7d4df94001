from .collectors import (
    EventCollector,
    SnapshotCollector,
    wait_for_observe,
    wait_for_snapshots,
)
from .config import HarnessConfig
from .datastore import DataStore, Observable, Predicate, RemoteClient, Subscription
from .exceptions import (
    CollectorTimeoutError,
    ConfigurationError,
    DataStoreError,
    ExpectationError,
    GraphQLError,
    HarnessError,
    ImmutableFieldError,
    InvalidKeyError,
)
from .expect import Expectation, assert_equal, expect
from .graphql import GraphQLClient
from .models import (
    MutationEvent,
    OpType,
    Outcome,
    RunReport,
    RunResponse,
    Snapshot,
    TestCase,
    TestOutcome,
)
from .registry import SuiteRegistry
from .reporter import ResultReporter
from .runner import SuiteRunner, run_tests
from .schema import BasicModel, Comment, Post, SyncModel, make_id

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "SuiteRegistry",
    "SuiteRunner",
    "ResultReporter",
    "HarnessConfig",
    "GraphQLClient",
    "run_tests",
    # Assertions and collectors
    "expect",
    "Expectation",
    "assert_equal",
    "EventCollector",
    "SnapshotCollector",
    "wait_for_observe",
    "wait_for_snapshots",
    # DataStore protocol
    "DataStore",
    "Observable",
    "Subscription",
    "Predicate",
    "RemoteClient",
    # Models
    "Outcome",
    "TestCase",
    "TestOutcome",
    "RunReport",
    "RunResponse",
    "OpType",
    "MutationEvent",
    "Snapshot",
    "SyncModel",
    "BasicModel",
    "Post",
    "Comment",
    "make_id",
    # Exceptions
    "HarnessError",
    "ExpectationError",
    "CollectorTimeoutError",
    "ConfigurationError",
    "DataStoreError",
    "InvalidKeyError",
    "ImmutableFieldError",
    "GraphQLError",
]
