"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    API_PREFIX: str
    ALLOW_DEV_CORS: bool
    DEFAULT_USER_ID: int
    LOG_LEVEL: str
    FOCUS_MINUTES: int
    SHORT_BREAK_MINUTES: int
    LONG_BREAK_MINUTES: int
    API_BASE_URL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv(
            "STUDYPLANNER_DATABASE_URL", f"sqlite:///{BASE / 'studyplanner.db'}"
        )
        self.API_PREFIX = os.getenv("API_PREFIX", "/api").rstrip("/")
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.DEFAULT_USER_ID = int(os.getenv("DEFAULT_USER_ID", "1"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.FOCUS_MINUTES = int(os.getenv("FOCUS_MINUTES", "25"))
        self.SHORT_BREAK_MINUTES = int(os.getenv("SHORT_BREAK_MINUTES", "5"))
        self.LONG_BREAK_MINUTES = int(os.getenv("LONG_BREAK_MINUTES", "15"))
        self.API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api")
        self._validate()

    def _validate(self):
        for name in ("FOCUS_MINUTES", "SHORT_BREAK_MINUTES", "LONG_BREAK_MINUTES"):
            if getattr(self, name) <= 0:
                raise RuntimeError(f"{name} must be a positive number of minutes")
        if self.API_PREFIX and not self.API_PREFIX.startswith("/"):
            raise RuntimeError("API_PREFIX must start with '/'")


settings = Settings()
