from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from healthchecks.checks.http_check import ProbeTimeoutError
from healthchecks.checks.results import HttpResponse

logger = logging.getLogger(__name__)


class Reason(str, Enum):
    NONE = "none"
    ERROR = "error"
    TIMEOUT = "timeout"
    STATUS_CODE = "statusCode"
    BODY = "body"


def format_elapsed(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.2f} s"
    if seconds >= 0.001:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds * 1_000_000:.0f} μs"


class Outcome(BaseModel):
    """Classified result of probing one check once."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    elapsed: str
    elapsed_ms: float = Field(alias="elapsedMs")
    reason: Reason
    expected: Tuple[str, ...] = ()
    status_code: Optional[int] = Field(default=None, alias="statusCode")
    body: Optional[str] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.reason is Reason.NONE

    def describe(self) -> str:
        if self.reason is Reason.ERROR:
            return f"{self.url} => {self.error}"
        if self.reason is Reason.STATUS_CODE:
            return f"{self.url} => {self.status_code}"
        if self.reason is Reason.NONE:
            return self.url
        return f"{self.url} => {self.reason.value}"


def _log(outcome: Outcome) -> None:
    if outcome.reason is Reason.ERROR:
        logger.debug("%s: Server responded with error %s", outcome.url, outcome.error)
    elif outcome.reason is Reason.TIMEOUT:
        logger.debug("%s: Server response timeout", outcome.url)
    elif outcome.reason is Reason.STATUS_CODE:
        logger.debug("%s: Server responded with status code %s", outcome.url, outcome.status_code)
    elif outcome.reason is Reason.BODY:
        logger.debug("%s: Server response did not contain expected text", outcome.url)


def classify(
    url: str,
    expected: Sequence[str],
    elapsed_s: float,
    response: Optional[HttpResponse] = None,
    error: Optional[BaseException] = None,
) -> Outcome:
    """
    Map a probe response or error to an Outcome.

    Order: timeout, then any other error, then status code outside
    200-399, then missing expected text (plain substring match).
    """
    common = {
        "url": url,
        "elapsed": format_elapsed(elapsed_s),
        "elapsed_ms": round(elapsed_s * 1000, 3),
        "expected": tuple(expected),
    }

    if isinstance(error, (ProbeTimeoutError, TimeoutError)):
        outcome = Outcome(reason=Reason.TIMEOUT, **common)
    elif error is not None or response is None:
        detail = str(error) if error is not None else "no response"
        outcome = Outcome(reason=Reason.ERROR, error=detail or error.__class__.__name__, **common)
    else:
        status_code = response.status_code
        body = response.body
        if status_code < 200 or status_code >= 400:
            reason = Reason.STATUS_CODE
        elif not all(text in body for text in expected):
            reason = Reason.BODY
        else:
            reason = Reason.NONE
        outcome = Outcome(reason=reason, status_code=status_code, body=body, **common)

    _log(outcome)
    return outcome
