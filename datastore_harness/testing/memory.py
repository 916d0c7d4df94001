"""In-memory DataStore and remote writer for exercising the harness without a backend."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel

from ..datastore import (
    DataStore,
    Observable,
    PredicateBuilder,
    RemoteClient,
    Subscription,
    build_predicate,
    is_key_criteria,
    key_for,
    matches,
)
from ..exceptions import DataStoreError
from ..models import MutationEvent, OpType, Snapshot
from ..schema import MODELS, SyncModel

logger = logging.getLogger(__name__)

_INITIAL = object()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class _Subscriber(Subscription):
    def __init__(self, store: "MemoryDataStore", callback: Callable[[Any], None]):
        self._store = store
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._subscribers.discard(self)

    def deliver(self, item: Any) -> None:
        # Delivery is scheduled; drop it if the subscriber left in the meantime.
        if self.active:
            self.callback(item)


class _ChangeStream(Observable):
    def __init__(
        self,
        store: "MemoryDataStore",
        model: type[SyncModel] | None,
        predicate: PredicateBuilder | None,
    ):
        self._store = store
        self._model = model
        self._predicate = build_predicate(model, predicate) if model else None

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        subscriber = _Subscriber(self._store, self._filtered(callback))
        self._store._subscribers.add(subscriber)
        return subscriber

    def _filtered(self, callback: Callable[[Any], None]) -> Callable[[Any], None]:
        def on_change(event: Any) -> None:
            if not isinstance(event, MutationEvent):
                return
            if self._model is not None and not isinstance(event.element, self._model):
                return
            if matches(self._predicate, event.element):
                callback(event)

        return on_change


class _QueryStream(Observable):
    def __init__(
        self,
        store: "MemoryDataStore",
        model: type[SyncModel],
        predicate: PredicateBuilder | None,
    ):
        self._store = store
        self._model = model
        self._predicate = build_predicate(model, predicate)

    def _snapshot(self) -> Snapshot:
        return Snapshot(
            items=self._store._select(self._model, self._predicate), is_synced=True
        )

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        def on_change(event: Any) -> None:
            if event is _INITIAL or (
                isinstance(event, MutationEvent)
                and isinstance(event.element, self._model)
            ):
                callback(self._snapshot())

        subscriber = _Subscriber(self._store, on_change)
        self._store._subscribers.add(subscriber)
        # A live query emits the current result set right after subscribing.
        self._store._schedule(subscriber, _INITIAL)
        return subscriber


class MemoryDataStore(DataStore):
    """Dict-backed DataStore.

    Change notifications are delivered on a later loop iteration, never
    inside save()/delete(), so callers see the same ordering a real sync
    engine gives them.
    """

    def __init__(self) -> None:
        self._tables: dict[type[SyncModel], dict[tuple[Any, ...], SyncModel]] = {}
        self._subscribers: set[_Subscriber] = set()

    def _table(self, model: type[SyncModel]) -> dict[tuple[Any, ...], SyncModel]:
        if not (isinstance(model, type) and issubclass(model, SyncModel)):
            raise DataStoreError(f"Not a sync model: {model!r}")
        return self._tables.setdefault(model, {})

    def _select(self, model: type[SyncModel], predicate: Any) -> list[SyncModel]:
        return [r for r in self._table(model).values() if matches(predicate, r)]

    def _schedule(self, subscriber: _Subscriber, item: Any) -> None:
        asyncio.get_running_loop().call_soon(subscriber.deliver, item)

    def _notify(self, op_type: OpType, record: SyncModel) -> None:
        event = MutationEvent(
            op_type=op_type, element=record, model=type(record).__name__
        )
        logger.debug("%s %s %s", op_type.value, event.model, record.key())
        for subscriber in list(self._subscribers):
            self._schedule(subscriber, event)

    async def save(self, record: SyncModel) -> SyncModel:
        table = self._table(type(record))
        key = record.key()
        existing = table.get(key)
        now = _now()
        stored = record.model_copy(
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            }
        )
        table[key] = stored
        self._notify(OpType.UPDATE if existing else OpType.INSERT, stored)
        return stored

    async def query(self, model: type[SyncModel], criteria: Any = None) -> Any:
        table = self._table(model)
        if is_key_criteria(criteria):
            return table.get(key_for(model, criteria))
        return self._select(model, build_predicate(model, criteria))

    async def delete(self, target: Any, criteria: Any = None) -> list[Any]:
        if isinstance(target, SyncModel):
            model, criteria = type(target), target
        else:
            model = target
            if criteria is None:
                raise DataStoreError(
                    "delete() needs a record instance, or a model with a key or predicate"
                )
        table = self._table(model)

        if is_key_criteria(criteria):
            removed = table.pop(key_for(model, criteria), None)
            doomed = [removed] if removed is not None else []
        else:
            predicate = build_predicate(model, criteria)
            doomed = [r for r in table.values() if matches(predicate, r)]
            for record in doomed:
                del table[record.key()]

        for record in doomed:
            self._notify(OpType.DELETE, record)
        return doomed

    def observe(
        self,
        model: type[BaseModel] | None = None,
        predicate: PredicateBuilder | None = None,
    ) -> Observable:
        return _ChangeStream(self, model, predicate)

    def observe_query(
        self,
        model: type[BaseModel],
        predicate: PredicateBuilder | None = None,
    ) -> Observable:
        return _QueryStream(self, model, predicate)

    async def clear(self) -> None:
        self._tables.clear()
        logger.info("Cleared local data store")

    async def apply_remote(self, op_type: OpType, record: SyncModel) -> SyncModel:
        """Apply a change that arrived from another client."""
        if op_type == OpType.DELETE:
            removed = await self.delete(record)
            return removed[0] if removed else record
        return await self.save(record)


_OPERATION = re.compile(r"^(create|update|delete)([A-Z]\w*)$")

_OP_TYPES = {
    "create": OpType.INSERT,
    "update": OpType.UPDATE,
    "delete": OpType.DELETE,
}


class MemoryRemote(RemoteClient):
    """Stands in for the GraphQL API by writing straight into a MemoryDataStore."""

    def __init__(self, store: MemoryDataStore):
        self._store = store

    async def mutate(self, operation: str, input: dict[str, Any]) -> dict[str, Any]:
        match = _OPERATION.match(operation)
        if not match or match.group(2) not in MODELS:
            raise DataStoreError(f"Unknown mutation: {operation}")
        verb, model_name = match.groups()
        model = MODELS[model_name]

        fields = {k: v for k, v in input.items() if not k.startswith("_")}
        if verb == "delete":
            existing = await self._store.query(model, fields)
            if existing is None:
                raise DataStoreError(f"{model_name} not found for {operation}")
            record = existing
        else:
            record = model.model_validate(fields)

        stored = await self._store.apply_remote(_OP_TYPES[verb], record)
        return stored.model_dump(by_alias=True, mode="json")
