from __future__ import annotations

import logging
import re
from pathlib import Path

from pydantic import ValidationError

from healthchecks.models import Check, Registry

logger = logging.getLogger(__name__)

_OPTION_RE = re.compile(r"^\w+=")
_CHECK_RE = re.compile(r"^(\S+)\s*(.*)$")


class ConfigError(ValueError):
    pass


def parse_checks(text: str, source: str = "<checks>") -> Registry:
    """
    Parse the line-oriented checks format.

    Each line is "<url> [expected text]". Blank lines, "#" comments and
    "name=value" lines are skipped. Repeated URLs accumulate expected text.
    """
    merged: dict[str, list[str]] = {}

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#") or _OPTION_RE.match(line):
            continue

        match = _CHECK_RE.match(line)
        url, expected = match.group(1), match.group(2).strip()
        try:
            Check(url=url)
        except ValidationError as exc:
            reason = exc.errors()[0]["msg"].removeprefix("Value error, ")
            raise ConfigError(f"{source}:{lineno}: {reason}: {url}") from exc

        fragments = merged.setdefault(url, [])
        if expected:
            fragments.append(expected)

    return Registry(
        checks=tuple(Check(url=url, expected=tuple(exp)) for url, exp in merged.items())
    )


def load_registry(path: Path | str) -> Registry:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing checks file at {path}")

    reg = parse_checks(path.read_text(encoding="utf-8"), source=str(path))
    logger.debug("Added %d checks from %s", len(reg), path)
    return reg
