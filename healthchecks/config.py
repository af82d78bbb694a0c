import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CHECKS_PATH = Path(__file__).resolve().parents[1] / "checks"


class Settings:
    HEALTHCHECKS_FILE: str = os.getenv("HEALTHCHECKS_FILE", str(DEFAULT_CHECKS_PATH))
    HEALTHCHECKS_PATH: str = os.getenv("HEALTHCHECKS_PATH", "/_healthchecks")
    HEALTHCHECKS_TIMEOUT: str = os.getenv("HEALTHCHECKS_TIMEOUT", "3s")
    HEALTHCHECKS_FORMAT: str = os.getenv("HEALTHCHECKS_FORMAT", "html")
    HEALTHCHECKS_RETURN_JSON: str | None = os.getenv("HEALTHCHECKS_RETURN_JSON")
    NTFY_URL: str = os.getenv("NTFY_URL")
    NTFY_TOPIC: str = os.getenv("NTFY_TOPIC")


settings = Settings()
