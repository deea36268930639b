"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'registration.db'}"


class Settings:
    ENV: str
    DATABASE_URL: str
    DB_ECHO: bool
    DB_POOL_SIZE: int
    DB_POOL_TIMEOUT: int
    API_PREFIX: str
    LOG_LEVEL: str
    ALLOW_DEV_CORS: bool
    CREATE_TABLES: bool
    ALLOW_SQLITE_IN_PROD: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
        self.DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
        self.API_PREFIX = os.getenv("API_PREFIX", "").rstrip("/")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CREATE_TABLES = os.getenv("CREATE_TABLES", "true").lower() == "true"
        self.ALLOW_SQLITE_IN_PROD = os.getenv("ALLOW_SQLITE_IN_PROD", "false").lower() == "true"
        self._validate()

    def _validate(self):
        if self.API_PREFIX and not self.API_PREFIX.startswith("/"):
            raise RuntimeError("API_PREFIX must start with '/'")
        if self.DB_POOL_SIZE < 1:
            raise RuntimeError("DB_POOL_SIZE must be >= 1")
        if self.ENV != "dev" and not self.ALLOW_SQLITE_IN_PROD and self.DATABASE_URL == DEFAULT_DB_URL:
            raise RuntimeError("DATABASE_URL must be set to a real database in non-dev environments")


settings = Settings()
