from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass

DEFAULT_DB_PATH = os.path.join(tempfile.gettempdir(), "jobly", "jobly.sqlite3")
DEFAULT_SECRET_KEY = "secret-dev"
DEFAULT_BCRYPT_WORK_FACTOR = 12
# bcrypt refuses fewer than 4 rounds.
TEST_BCRYPT_WORK_FACTOR = 4
DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class Settings:
    database_path: str
    secret_key: str
    bcrypt_work_factor: int
    token_ttl_seconds: int
    testing: bool

    def describe(self) -> dict[str, object]:
        return {
            "database_path": self.database_path,
            "bcrypt_work_factor": self.bcrypt_work_factor,
            "token_ttl_seconds": self.token_ttl_seconds,
            "testing": self.testing,
        }


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def load_settings(
    *,
    database_path: str | None = None,
    secret_key: str | None = None,
    bcrypt_work_factor: int | None = None,
    token_ttl_seconds: int | None = None,
    testing: bool | None = None,
) -> Settings:
    """Resolve settings: explicit arguments, then JOBLY_* variables, then defaults."""
    resolved_testing = testing if testing is not None else get_env("JOBLY_ENV") == "test"

    if bcrypt_work_factor is None:
        raw_factor = get_env("JOBLY_BCRYPT_WORK_FACTOR")
        if raw_factor:
            bcrypt_work_factor = int(raw_factor)
        elif resolved_testing:
            bcrypt_work_factor = TEST_BCRYPT_WORK_FACTOR
        else:
            bcrypt_work_factor = DEFAULT_BCRYPT_WORK_FACTOR

    if token_ttl_seconds is None:
        raw_ttl = get_env("JOBLY_TOKEN_TTL_SECONDS")
        token_ttl_seconds = int(raw_ttl) if raw_ttl else DEFAULT_TOKEN_TTL_SECONDS

    return Settings(
        database_path=database_path or get_env("JOBLY_DB_PATH") or DEFAULT_DB_PATH,
        secret_key=secret_key or get_env("JOBLY_SECRET_KEY") or DEFAULT_SECRET_KEY,
        bcrypt_work_factor=bcrypt_work_factor,
        token_ttl_seconds=token_ttl_seconds,
        testing=resolved_testing,
    )
