from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from healthchecks.checks.http_check import run_http
from healthchecks.checks.outcome import Outcome, classify
from healthchecks.checks.resolver import LoopbackTarget, Resolver, loopback_resolver
from healthchecks.config import settings
from healthchecks.formatting import format_failures
from healthchecks.models import Check, HealthchecksOptions, Registry
from healthchecks.notifier import NtfyConfig, NtfyNotifier
from healthchecks.registry import load_registry

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible) Healthchecks"

FailureCallback = Callable[[Tuple[Outcome, ...], str], Any]


class RunReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: Tuple[Outcome, ...] = ()
    failed: Tuple[Outcome, ...] = ()
    status_code: int = 404


def status_code_from_outcomes(passed: Sequence[Outcome], failed: Sequence[Outcome]) -> int:
    # 200 only if all checks passed, 500 if any failed, 404 if nothing ran
    if failed:
        return 500
    if passed:
        return 200
    return 404


def partition_outcomes(outcomes: Iterable[Outcome]) -> RunReport:
    ordered = sorted(outcomes, key=lambda o: o.url)
    passed = tuple(o for o in ordered if o.passed)
    failed = tuple(o for o in ordered if not o.passed)
    return RunReport(
        passed=passed,
        failed=failed,
        status_code=status_code_from_outcomes(passed, failed),
    )


def probe_headers(request_id: Optional[str]) -> dict[str, str]:
    return {"User-Agent": USER_AGENT, "X-Request-Id": request_id or ""}


async def run_check(
    check: Check,
    *,
    headers: dict[str, str],
    resolver: Resolver,
    timeout_s: float,
    executor: Optional[Executor] = None,
) -> Outcome:
    start = time.perf_counter()
    try:
        response = await run_http(
            check.url,
            headers=headers,
            resolver=resolver,
            timeout_s=timeout_s,
            executor=executor,
        )
    except Exception as e:
        # One broken check must never sink the run.
        return classify(check.url, check.expected, time.perf_counter() - start, error=e)
    return classify(check.url, check.expected, time.perf_counter() - start, response=response)


class HealthcheckRunner:
    """
    Runs every registered check against the local server.

    All checks run concurrently; run() returns once every check has
    finished or timed out. A timed out check has its connection torn down,
    so its worker finishes shortly after.
    """

    def __init__(
        self,
        registry: Registry,
        timeout_s: float = 3.0,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        self.registry = registry
        self.timeout_s = timeout_s
        self.on_failure = on_failure

    @classmethod
    def from_options(cls, options: HealthchecksOptions) -> "HealthcheckRunner":
        return cls(
            load_registry(options.source),
            timeout_s=options.timeout_s,
            on_failure=options.on_failure,
        )

    async def run(self, target: LoopbackTarget, request_id: Optional[str] = None) -> RunReport:
        logger.debug(
            "Running against %s://%s with request-ID %s",
            target.protocol,
            target.netloc,
            request_id,
        )
        resolver = loopback_resolver(target)
        headers = probe_headers(request_id)

        # One worker per check, per run: a check never waits for a slot, and
        # workers still unwinding from a timeout never reach the next run.
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(self.registry.checks)),
            thread_name_prefix="healthchecks",
        )
        try:
            outcomes = await asyncio.gather(
                *(
                    run_check(
                        check,
                        headers=headers,
                        resolver=resolver,
                        timeout_s=self.timeout_s,
                        executor=executor,
                    )
                    for check in self.registry.checks
                )
            )
        finally:
            executor.shutdown(wait=False)

        report = partition_outcomes(outcomes)
        logger.debug("%d passed and %d failed", len(report.passed), len(report.failed))
        return report

    def notify(self, report: RunReport, request_id: Optional[str] = None) -> None:
        if not report.failed or self.on_failure is None:
            return
        try:
            self.on_failure(report.failed, request_id or "")
        except Exception:
            # Alerting problems never change the report.
            logger.warning("Failure callback raised", exc_info=True)


def build_on_failure() -> Optional[FailureCallback]:
    if not settings.NTFY_URL or not settings.NTFY_TOPIC:
        return None
    notifier = NtfyNotifier(NtfyConfig(base_url=settings.NTFY_URL, topic=settings.NTFY_TOPIC))

    def notify_failed(failed: Tuple[Outcome, ...], request_id: str) -> None:
        title, message = format_failures(failed, request_id)
        notifier.send_failed(title=title, message=message)

    return notify_failed
