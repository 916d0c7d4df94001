import inspect
import logging
import time
from typing import Any, Awaitable, Callable

from .models import RunReport, TestCase, TestOutcome
from .registry import DEFAULT_SEPARATOR, SuiteRegistry
from .reporter import ResultReporter

logger = logging.getLogger(__name__)

SetupFunction = Callable[..., Awaitable[None] | None]


def error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SuiteRunner:
    """Drains a registry's queue one test at a time, recording each outcome."""

    def __init__(
        self, registry: SuiteRegistry, reporter: ResultReporter | None = None
    ):
        self.registry = registry
        self.reporter = reporter or ResultReporter()

    async def run(self) -> RunReport:
        # Dequeue-and-execute: anything registered while a test is running
        # still gets picked up, async suites included.
        while True:
            case = self.registry.dequeue()
            if case is None:
                await self.registry.settle()
                case = self.registry.dequeue()
                if case is None:
                    break
            outcome = await self._execute(case)
            self.reporter.record(outcome)

        for name in self.registry.skipped:
            self.reporter.record_skipped(name)

        report = self.reporter.report()
        logger.info(
            "Run finished: %d passed, %d failed, %d skipped",
            report.passed,
            report.failed,
            len(report.skipped),
        )
        return report

    async def _execute(self, case: TestCase) -> TestOutcome:
        logger.debug("Running %s", case.name)
        started = time.perf_counter()
        with self.registry.running(case.name):
            try:
                result = case.exec()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                duration = time.perf_counter() - started
                logger.warning("FAILED %s: %s", case.name, e)
                return TestOutcome.failed(case.name, error_message(e), duration)

        duration = time.perf_counter() - started
        logger.info("PASSED %s (%.2fs)", case.name, duration)
        return TestOutcome.passed(case.name, duration)


async def run_tests(
    setup: SetupFunction,
    reporter: ResultReporter | None = None,
    separator: str = DEFAULT_SEPARATOR,
    **setup_kwargs: Any,
) -> RunReport:
    """Register tests through ``setup`` and run them all.

    ``setup`` receives ``describe``, ``test`` and ``get_test_name`` keyword
    arguments (plus any ``setup_kwargs``) and may be sync or async. Async
    suites it did not await are finished before any test runs. Errors
    raised while registering propagate to the caller.
    """
    registry = SuiteRegistry(separator=separator)
    result = setup(**registry.bindings(), **setup_kwargs)
    if inspect.isawaitable(result):
        await result
    await registry.settle()

    logger.info("Registered %d tests", registry.pending)
    return await SuiteRunner(registry, reporter).run()
