from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings, each overridable through a `TASKHUB_` prefixed env var.

    With no environment at all the app runs against a local SQLite file and the
    bundled policy, with organization 1 as the platform organization.
    """

    model_config = SettingsConfigDict(env_prefix="TASKHUB_", extra="ignore")

    db_url: str | None = None
    policy_path: str | None = None
    platform_organization_id: int = 1
    log_level: str = "INFO"
    # Level for the taskhub.authz decision audit trail; inherits log_level when unset.
    audit_log_level: str | None = None

    # Include structured error context in API error bodies (never in production).
    expose_error_details: bool = False

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "taskhub.db"
        return f"sqlite+aiosqlite:///{db_path}"

    def resolved_policy_path(self) -> Path:
        if self.policy_path:
            return Path(self.policy_path)

        return Path(__file__).resolve().parent / "config" / "policy.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
