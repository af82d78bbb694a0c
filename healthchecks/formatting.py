from __future__ import annotations

from typing import Sequence

from healthchecks.checks.outcome import Outcome


def format_failures(failed: Sequence[Outcome], request_id: str = "") -> tuple[str, str]:
    # Title
    noun = "healthcheck" if len(failed) == 1 else "healthchecks"
    title = f"[FAILED] {len(failed)} {noun}"

    # Body
    lines = [f"{outcome.describe()} ({outcome.elapsed})" for outcome in failed]
    if request_id:
        lines.append(f"Request: {request_id}")
    return title, "\n".join(lines)
