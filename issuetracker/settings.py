from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Directory holding `issuetracker/` and `config/`.
REPO_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """
    Issue tracker settings, read from `ISSUETRACKER_*` environment variables.

    Out of the box the service runs against `issuetracker.db` (SQLite) next to
    the package, loads route rules from `config/security_config.yaml`, and
    seeds the five demo users (DEV, QA, BA, PM, TM) into an empty user table
    so the header provider can be tried with `Authorization: Bearer <user id>`.
    Set `ISSUETRACKER_SEED_DEMO_DATA=false` for anything that is not a demo.
    """

    model_config = SettingsConfigDict(env_prefix="ISSUETRACKER_", extra="ignore")

    db_url: str | None = None
    db_echo: bool = False
    security_config_path: str | None = None
    log_level: str = "INFO"
    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        return self.db_url or f"sqlite:///{REPO_ROOT / 'issuetracker.db'}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)
        return REPO_ROOT / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
