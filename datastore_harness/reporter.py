import logging
from typing import Callable

from .models import Outcome, RunReport, TestOutcome

logger = logging.getLogger(__name__)

NAME_HEADER = "Name"
RESULT_HEADER = "Result"


class ResultReporter:
    """Accumulates test outcomes for display.

    Listeners are called with each outcome as it is recorded, so a live view
    can update while the run is still in progress.
    """

    def __init__(self) -> None:
        self._results: list[TestOutcome] = []
        self._skipped: list[str] = []
        self._listeners: list[Callable[[TestOutcome], None]] = []

    @property
    def results(self) -> tuple[TestOutcome, ...]:
        return tuple(self._results)

    @property
    def skipped(self) -> tuple[str, ...]:
        return tuple(self._skipped)

    def add_listener(self, listener: Callable[[TestOutcome], None]) -> None:
        self._listeners.append(listener)

    def reset(self) -> None:
        self._results.clear()
        self._skipped.clear()

    def record(self, outcome: TestOutcome) -> None:
        self._results.append(outcome)
        for listener in self._listeners:
            try:
                listener(outcome)
            except Exception as e:
                logger.error("Result listener failed for %s: %s", outcome.name, e)

    def record_skipped(self, name: str) -> None:
        self._skipped.append(name)

    def report(self) -> RunReport:
        return RunReport(results=list(self._results), skipped=list(self._skipped))

    def render(self) -> str:
        """Plain-text table: one row per test, the error on the row below."""
        rows: list[tuple[str, str, str]] = [
            (r.name, r.outcome.value, r.error) for r in self._results
        ]
        rows.extend((name, Outcome.SKIPPED.value, "") for name in self._skipped)

        width = max([len(NAME_HEADER)] + [len(name) for name, _, _ in rows])
        lines = [f"{NAME_HEADER:<{width}}  {RESULT_HEADER}"]
        for name, outcome, error in rows:
            lines.append(f"{name:<{width}}  {outcome}")
            if error:
                lines.append(f"    {error}")

        report = self.report()
        lines.append("")
        lines.append(
            f"{report.passed} passed, {report.failed} failed, "
            f"{len(self._skipped)} skipped"
        )
        return "\n".join(lines)
