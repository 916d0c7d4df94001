import operator
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from .exceptions import InvalidKeyError

RecordT = TypeVar("RecordT", bound=BaseModel)


def _begins_with(value: Any, prefix: Any) -> bool:
    return isinstance(value, str) and value.startswith(prefix)


def _contains(value: Any, item: Any) -> bool:
    return value is not None and item in value


def _between(value: Any, bounds: Any) -> bool:
    low, high = bounds
    return value is not None and low <= value <= high


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": lambda a, b: a is not None and a > b,
    "ge": lambda a, b: a is not None and a >= b,
    "lt": lambda a, b: a is not None and a < b,
    "le": lambda a, b: a is not None and a <= b,
    "contains": _contains,
    "notContains": lambda a, b: not _contains(a, b),
    "beginsWith": _begins_with,
    "between": _between,
}


def _field_name(model: type[BaseModel], field: str) -> str:
    if field in model.model_fields:
        return field
    for name, info in model.model_fields.items():
        if info.alias == field:
            return name
    raise AttributeError(f"{model.__name__} has no field {field!r}")


class _Condition:
    def __init__(self, predicate: "Predicate", field: str):
        self._predicate = predicate
        self._field = field

    def __call__(self, op: str, value: Any) -> "Predicate":
        if op not in OPERATORS:
            raise ValueError(f"Unsupported predicate operator: {op!r}")
        self._predicate.conditions.append((self._field, op, value))
        return self._predicate


class Predicate:
    """Chainable filter over a record type: ``p.post_id("eq", x).title("eq", y)``.

    Conditions are ANDed. Field names may be given by attribute name or by
    their camelCase alias.
    """

    def __init__(self, model: type[BaseModel]):
        self.model = model
        self.conditions: list[tuple[str, str, Any]] = []

    def __getattr__(self, field: str) -> _Condition:
        if field.startswith("_"):
            raise AttributeError(field)
        return _Condition(self, _field_name(self.model, field))

    def matches(self, record: Any) -> bool:
        for field, op, value in self.conditions:
            if not OPERATORS[op](getattr(record, field, None), value):
                return False
        return True

    def __repr__(self) -> str:
        return f"Predicate({self.model.__name__}, {self.conditions!r})"


PredicateBuilder = Callable[[Predicate], Any]


def build_predicate(
    model: type[BaseModel], builder: PredicateBuilder | None
) -> Predicate | None:
    """Run a predicate-builder closure against a fresh Predicate for ``model``."""
    if builder is None:
        return None
    if not callable(builder):
        raise TypeError(
            f"Predicate for {model.__name__} must be a callable, got {builder!r}"
        )
    predicate = Predicate(model)
    result = builder(predicate)
    return result if isinstance(result, Predicate) else predicate


def matches(predicate: Predicate | None, record: Any) -> bool:
    return predicate is None or predicate.matches(record)


def is_key_criteria(criteria: Any) -> bool:
    """True when query()/delete() criteria identifies a single record."""
    return criteria is not None and not callable(criteria)


def key_for(model: type[BaseModel], criteria: Any) -> tuple[Any, ...]:
    """Extract the primary key tuple for ``model`` from a value, mapping, or record."""
    fields: tuple[str, ...] = model.primary_key
    if isinstance(criteria, model):
        return tuple(getattr(criteria, f) for f in fields)
    if isinstance(criteria, BaseModel):
        raise InvalidKeyError(
            f"Cannot use a {type(criteria).__name__} as a key for {model.__name__}"
        )
    if isinstance(criteria, Mapping):
        values = []
        for f in fields:
            alias = model.model_fields[f].alias
            if f in criteria:
                values.append(criteria[f])
            elif alias and alias in criteria:
                values.append(criteria[alias])
            else:
                raise InvalidKeyError(
                    f"Key for {model.__name__} requires {list(fields)}; missing {f!r}"
                )
        return tuple(values)
    if isinstance(criteria, str):
        if len(fields) != 1:
            raise InvalidKeyError(
                f"{model.__name__} has a composite key {list(fields)}; "
                f"pass a mapping or record instead of {criteria!r}"
            )
        return (criteria,)
    raise InvalidKeyError(
        f"Invalid primary key value {criteria!r} for {model.__name__}"
    )


class Subscription(ABC):
    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivery. Must be synchronous and safe to call more than once."""
        pass


class Observable(ABC):
    @abstractmethod
    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        pass


class DataStore(ABC):
    """The data-sync client the harness drives.

    Implementations wrap a real sync engine; MemoryDataStore in
    datastore_harness.testing is an in-process stand-in.
    """

    @abstractmethod
    async def save(self, record: RecordT) -> RecordT:
        """Persist a record and return the stored copy (timestamps populated)."""
        pass

    @abstractmethod
    async def query(
        self, model: type[RecordT], criteria: Any = None
    ) -> RecordT | list[RecordT] | None:
        """
        Look up records.

        A key value, key mapping, or record instance returns that record or
        None. A predicate builder (or None for everything) returns a list.
        """
        pass

    @abstractmethod
    async def delete(self, target: Any, criteria: Any = None) -> list[Any]:
        """
        Delete by instance, by (model, key) or by (model, predicate).

        Returns the removed records; an empty list when nothing matched.
        """
        pass

    @abstractmethod
    def observe(
        self,
        model: type[BaseModel] | None = None,
        predicate: PredicateBuilder | None = None,
    ) -> Observable:
        """Stream of MutationEvent for changes to ``model`` (all models when None)."""
        pass

    @abstractmethod
    def observe_query(
        self,
        model: type[BaseModel],
        predicate: PredicateBuilder | None = None,
    ) -> Observable:
        """Stream of Snapshot, re-emitted whenever the matching result set changes."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Wipe all local state."""
        pass


class RemoteClient(ABC):
    """A second writer that mutates data behind the local store's back."""

    @abstractmethod
    async def mutate(self, operation: str, input: dict[str, Any]) -> dict[str, Any]:
        """Run a generated mutation (e.g. ``createPost``) and return its payload."""
        pass
