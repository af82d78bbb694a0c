from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

FAILED_TAGS = "rotating_light,healthchecks"


@dataclass
class NtfyConfig:
    base_url: str
    topic: str
    priority_failed: int = 4
    timeout_s: float = 5


class NtfyNotifier:
    """Pushes failed healthcheck runs to an ntfy topic."""

    def __init__(self, cfg: NtfyConfig) -> None:
        self.cfg = cfg

    @property
    def topic_url(self) -> str:
        return f"{self.cfg.base_url.rstrip('/')}/{self.cfg.topic}"

    def send_failed(self, title: str, message: str) -> None:
        resp = requests.post(
            self.topic_url,
            data=message.encode("utf-8"),
            headers={
                "Title": title,
                "Priority": str(self.cfg.priority_failed),
                "Tags": FAILED_TAGS,
            },
            timeout=self.cfg.timeout_s,
        )
        resp.raise_for_status()
        logger.info("Sent ntfy notification to %s: %s", self.topic_url, title)
