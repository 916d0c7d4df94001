import asyncio
import inspect
import logging
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Generator, Iterator

from .models import TestCase

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = " > "


class _Registered:
    """Already-finished registration; awaiting it returns immediately."""

    def __await__(self) -> Generator[Any, None, None]:
        return
        yield


class _Describe:
    """Callable bound to a registry; exposes describe(...) and describe.skip(...)."""

    def __init__(self, registry: "SuiteRegistry"):
        self._registry = registry

    def __call__(self, name: str, body: Callable[[], Any]) -> Awaitable[None]:
        return self._registry.describe(name, body)

    def skip(
        self, name: str | None = None, body: Callable[[], Any] | None = None
    ) -> Awaitable[None]:
        self._registry.skip(name)
        return _Registered()


class _Test:
    """Callable bound to a registry; exposes test(...) and test.skip(...)."""

    def __init__(self, registry: "SuiteRegistry"):
        self._registry = registry

    def __call__(self, name: str, body: Callable[[], Any]) -> None:
        self._registry.test(name, body)

    def skip(
        self, name: str | None = None, body: Callable[[], Any] | None = None
    ) -> Awaitable[None]:
        self._registry.skip(name)
        return _Registered()


class SuiteRegistry:
    """Collects named test closures grouped by nested suite names.

    One registry per run. The suite path and the pending queue live on the
    instance, so independent runs never share state. The path is held in a
    context variable, so async suites registering in their own tasks each
    see their own path.
    """

    def __init__(self, separator: str = DEFAULT_SEPARATOR):
        self.separator = separator
        self.skipped: list[str] = []
        self._suite_path: ContextVar[tuple[str, ...]] = ContextVar(
            "suite_path", default=()
        )
        self._pending: deque[TestCase] = deque()
        self._registering: list[asyncio.Task] = []
        self._current: str | None = None

    def bindings(self) -> dict[str, Any]:
        """Keyword arguments handed to a setup function."""
        return {
            "describe": _Describe(self),
            "test": _Test(self),
            "get_test_name": self.get_test_name,
        }

    @property
    def suite_path(self) -> tuple[str, ...]:
        return self._suite_path.get()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def qualify(self, name: str | None) -> str:
        parts = list(self._suite_path.get())
        if name:
            parts.append(name)
        return self.separator.join(parts)

    def get_test_name(self) -> str:
        """Qualified name of the running test, or the current suite path while registering."""
        if self._current is not None:
            return self._current
        return self.qualify(None)

    @contextmanager
    def suite(self, name: str) -> Iterator[None]:
        token = self._suite_path.set(self._suite_path.get() + (name,))
        try:
            yield
        finally:
            self._suite_path.reset(token)

    def describe(self, name: str, body: Callable[[], Any]) -> Awaitable[None]:
        """Register a suite.

        Always returns an awaitable; awaiting it is optional. Sync bodies run
        immediately and return an already-finished awaitable. An ``async
        def`` body runs in its own task, which settle() waits for if the
        caller never awaits it.
        """
        if inspect.iscoroutinefunction(body):
            task = asyncio.ensure_future(self._describe_async(name, body))
            self._registering.append(task)
            return task

        with self.suite(name):
            result = body()
            if inspect.isawaitable(result) and not isinstance(
                result, (_Registered, asyncio.Task)
            ):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(
                    f"Suite {name!r} returned an awaitable; declare its body with 'async def'"
                )
        return _Registered()

    async def _describe_async(
        self, name: str, body: Callable[[], Awaitable[Any]]
    ) -> None:
        with self.suite(name):
            await body()

    async def settle(self) -> None:
        """Wait for every async suite still registering, including nested ones."""
        while self._registering:
            tasks, self._registering = self._registering, []
            await asyncio.gather(*tasks)

    def test(self, name: str, body: Callable[[], Any]) -> None:
        qualified = self.qualify(name)
        self._pending.append(TestCase(name=qualified, exec=body))
        logger.debug("Registered test %s", qualified)

    def skip(self, name: str | None) -> None:
        qualified = self.qualify(name)
        if qualified:
            self.skipped.append(qualified)
            logger.debug("Skipped %s", qualified)

    def dequeue(self) -> TestCase | None:
        if not self._pending:
            return None
        return self._pending.popleft()

    @contextmanager
    def running(self, name: str) -> Iterator[None]:
        self._current = name
        try:
            yield
        finally:
            self._current = None
