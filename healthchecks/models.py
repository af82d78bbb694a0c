from __future__ import annotations

import re
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

# Bare numbers above this are almost certainly milliseconds from an older config.
MAX_BARE_SECONDS = 60

ALLOWED_SCHEMES = {"http", "https"}


def _bare_seconds(amount: float) -> float:
    if amount > MAX_BARE_SECONDS:
        raise ValueError(
            f"ambiguous duration {amount:g}: add a unit, e.g. '{amount:g}ms' or '{amount:g}s'"
        )
    return amount


def parse_duration(value: Any) -> float:
    """
    Convert a duration to seconds.

    Accepts a timedelta, a number of seconds, or a string such as
    "500ms", "3s", "1m" or "1.5". Bare numbers are seconds and must not
    exceed MAX_BARE_SECONDS; larger values need an explicit unit.
    """
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _bare_seconds(float(value))
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        amount, unit = match.groups()
        if unit is None:
            return _bare_seconds(float(amount))
        return float(amount) * _DURATION_UNITS[unit.lower()]
    raise ValueError(f"invalid duration: {value!r}")


class Check(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1)
    expected: Tuple[str, ...] = ()

    @field_validator("url")
    @classmethod
    def _url_is_http_path(cls, url: str) -> str:
        parts = urlsplit(url)
        # "http://host" has an implied "/" path
        has_path = parts.path.startswith("/") or (parts.netloc and not parts.path)
        if not has_path:
            raise ValueError("Check URL must have absolute pathname")
        if parts.scheme and parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise ValueError("Check URL may only use HTTP/S protocol")
        return url


class Registry(BaseModel):
    model_config = ConfigDict(frozen=True)

    checks: Tuple[Check, ...] = ()

    def __len__(self) -> int:
        return len(self.checks)

    def as_mapping(self) -> Dict[str, List[str]]:
        return {c.url: list(c.expected) for c in self.checks}


class OutputFormat(str, Enum):
    HTML = "html"
    JSON = "json"


class HealthchecksOptions(BaseModel):
    """Typed configuration for one mounted health-check surface."""

    model_config = ConfigDict(frozen=True)

    source: Path
    timeout_s: float = Field(default=3.0, gt=0)
    format: OutputFormat = OutputFormat.HTML
    on_failure: Optional[Callable[..., Any]] = None

    @field_validator("timeout_s", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_settings(cls, settings: Any, on_failure: Optional[Callable[..., Any]] = None) -> "HealthchecksOptions":
        fmt = settings.HEALTHCHECKS_FORMAT
        return_json = settings.HEALTHCHECKS_RETURN_JSON
        if return_json is not None and return_json.strip().lower() in {"1", "true", "yes"}:
            fmt = OutputFormat.JSON
        return cls(
            source=settings.HEALTHCHECKS_FILE,
            timeout_s=settings.HEALTHCHECKS_TIMEOUT,
            format=fmt,
            on_failure=on_failure,
        )
