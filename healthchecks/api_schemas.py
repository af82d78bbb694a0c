from __future__ import annotations

from typing import Any, Literal, Sequence

from pydantic import BaseModel, Field

from healthchecks.checks.outcome import Outcome


class HealthResponse(BaseModel):
    status: str = Field(description="Health status")


class ConfigResponse(BaseModel):
    checks_file: str
    path: str
    timeout_s: float = Field(gt=0)
    format: Literal["html", "json"]
    notifications: bool


class RegistryResponse(BaseModel):
    checks: dict[str, list[str]]
    count: int


class OutcomeResponse(BaseModel):
    """Outcome as exposed in the JSON report; the response body is never included."""

    url: str
    elapsed: str
    elapsed_ms: float = Field(serialization_alias="elapsedMs")
    reason: Literal["none", "error", "timeout", "statusCode", "body"]
    expected: list[str] = Field(default_factory=list)
    status_code: int | None = Field(default=None, serialization_alias="statusCode")
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: Outcome) -> "OutcomeResponse":
        return cls(
            url=outcome.url,
            elapsed=outcome.elapsed,
            elapsed_ms=outcome.elapsed_ms,
            reason=outcome.reason.value,
            expected=list(outcome.expected),
            status_code=outcome.status_code,
            error=outcome.error,
        )


class RunReportResponse(BaseModel):
    passed: list[OutcomeResponse]
    failed: list[OutcomeResponse]


def report_payload(passed: Sequence[Outcome], failed: Sequence[Outcome]) -> dict[str, Any]:
    view = RunReportResponse(
        passed=[OutcomeResponse.from_outcome(o) for o in passed],
        failed=[OutcomeResponse.from_outcome(o) for o in failed],
    )
    return view.model_dump(mode="json", by_alias=True, exclude_none=True)
