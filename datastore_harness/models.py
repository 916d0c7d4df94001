from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field


class Outcome(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class OpType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class TestCase:
    """A registered test: qualified name plus the closure that runs it."""

    __test__ = False

    name: str
    exec: Callable[[], Awaitable[None] | None]


class TestOutcome(BaseModel):
    __test__ = False

    model_config = ConfigDict(frozen=True)

    name: str
    outcome: Outcome
    error: str = ""
    duration: float = 0.0

    @classmethod
    def passed(cls, name: str, duration: float = 0.0) -> "TestOutcome":
        return cls(name=name, outcome=Outcome.PASSED, duration=duration)

    @classmethod
    def failed(cls, name: str, error: str, duration: float = 0.0) -> "TestOutcome":
        return cls(name=name, outcome=Outcome.FAILED, error=error, duration=duration)


class RunReport(BaseModel):
    results: list[TestOutcome] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.outcome == Outcome.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.outcome == Outcome.FAILED)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the summary counters included."""
        data = self.model_dump(mode="json")
        data["passed"] = self.passed
        data["failed"] = self.failed
        data["total"] = self.total
        return data


class MutationEvent(BaseModel):
    """One change notification delivered by DataStore.observe()."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    op_type: OpType
    element: Any
    model: str


class Snapshot(BaseModel):
    """Full result set delivered by DataStore.observe_query()."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[Any] = Field(default_factory=list)
    is_synced: bool = False


class RunResponse(BaseModel):
    status: str
    message: str | None = None
    report: dict[str, Any] | None = None

    @classmethod
    def started(cls) -> "RunResponse":
        return cls(status="started")

    @classmethod
    def completed(cls, report: RunReport) -> "RunResponse":
        return cls(status="completed", report=report.to_dict())

    @classmethod
    def error(cls, message: str) -> "RunResponse":
        return cls(status="error", message=message)
