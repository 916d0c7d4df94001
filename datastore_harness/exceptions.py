class HarnessError(Exception):
    """Base exception for harness errors."""

    pass


class ExpectationError(HarnessError, AssertionError):
    """Raised by expect() when a predicate does not hold."""

    pass


class CollectorTimeoutError(HarnessError, TimeoutError):
    """Raised when an event collector does not see enough events in time."""

    pass


class ConfigurationError(HarnessError):
    """Error in harness configuration."""

    pass


class DataStoreError(HarnessError):
    """Base exception for data store errors."""

    pass


class InvalidKeyError(DataStoreError):
    """Raised when a primary key value or key object cannot identify a record."""

    pass


class ImmutableFieldError(DataStoreError):
    """Raised when copy_of() tries to change a primary key field."""

    pass


class GraphQLError(HarnessError):
    """Error communicating with the GraphQL endpoint, or errors in its response."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []
