"""
Camp Planner configuration.

One ``Settings`` object, read from the environment (and ``.env`` when present)
the first time ``get_settings()`` is called. Only the settings the selected
backend actually needs are checked, by ``validate_runtime()`` during startup.

    AUTH_MODE             production | bypass
    STORE_BACKEND         pocketbase | memory
    POCKETBASE_URL, POCKETBASE_ADMIN_EMAIL, POCKETBASE_ADMIN_PASSWORD
    ALLOWED_ORIGINS       comma-separated CORS origins
    DEFAULT_START_DATE    first Monday of new schedules, empty for undated
    DEFAULT_WEEK_COUNT, SCHEDULE_ID_ATTEMPTS
"""

from __future__ import annotations

import logging
import os
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from camp_planner.errors import InvalidSettingError, MissingSettingError

logger = logging.getLogger(__name__)

AuthMode = Literal["production", "bypass"]
StoreBackend = Literal["pocketbase", "memory"]


def _is_docker_environment() -> bool:
    """True inside a container (``/.dockerenv`` or a docker cgroup)."""
    if Path("/.dockerenv").exists():
        return True
    try:
        return "docker" in Path("/proc/1/cgroup").read_text()
    except OSError:
        return False


def _is_github_actions() -> bool:
    """True on GitHub Actions runners, which set both CI and GITHUB_ACTIONS."""
    return all(os.getenv(name) == "true" for name in ("CI", "GITHUB_ACTIONS"))


class Settings(BaseSettings):
    """Environment-driven settings; defaults suit a local PocketBase."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Who is calling
    auth_mode: AuthMode = Field(default="production", description="'production' verifies bearer tokens")
    dev_user_id: str = Field(default="dev-user", description="Bypass-mode uid when no X-Debug-User is sent")
    dev_user_email: str = Field(default="dev@example.com")

    # Where documents live
    store_backend: StoreBackend = Field(default="pocketbase", description="'memory' loses data on restart")
    pocketbase_url: str = Field(default="http://127.0.0.1:8090")
    pocketbase_admin_email: str = Field(default="admin@camp.local")
    pocketbase_admin_password: str = Field(default="", description="Required by the pocketbase backend")

    # Browser access
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS",
    )
    is_docker: bool = Field(default=False, description="Force container behaviour (production auth)")

    # New schedules
    default_start_date: date | None = Field(default=date(2025, 6, 23))
    default_week_count: int = Field(default=8)
    schedule_id_attempts: int = Field(default=5, description="Fresh ids tried before giving up on collisions")

    @field_validator("auth_mode", "store_backend", mode="before")
    @classmethod
    def lowercase_choice(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("is_docker", mode="before")
    @classmethod
    def truthy_flag(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes")
        return v

    @field_validator("default_start_date", mode="before")
    @classmethod
    def empty_start_date(cls, v: object) -> object:
        """An empty DEFAULT_START_DATE means schedules start without calendar dates."""
        return None if v == "" else v

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def is_docker_environment(self) -> bool:
        return self.is_docker or _is_docker_environment()

    def get_effective_auth_mode(self) -> AuthMode:
        """Configured mode, except that containers outside CI always verify tokens."""
        if self.auth_mode == "bypass" and self.is_docker_environment() and not _is_github_actions():
            return "production"
        return self.auth_mode

    def validate_runtime(self) -> None:
        """Check the settings the selected backend needs. Called once at startup.

        Raises:
            InvalidSettingError: If a numeric setting is out of range
            MissingSettingError: If the pocketbase backend lacks connection settings
        """
        if self.default_week_count < 1:
            raise InvalidSettingError(f"DEFAULT_WEEK_COUNT must be at least 1, got {self.default_week_count}")
        if self.schedule_id_attempts < 1:
            raise InvalidSettingError(f"SCHEDULE_ID_ATTEMPTS must be at least 1, got {self.schedule_id_attempts}")

        if self.store_backend == "pocketbase":
            if not self.pocketbase_url:
                raise MissingSettingError("POCKETBASE_URL must be set for the pocketbase backend")
            if not self.pocketbase_admin_password:
                raise MissingSettingError("POCKETBASE_ADMIN_PASSWORD must be set for the pocketbase backend")
        elif self.get_effective_auth_mode() == "production":
            logger.warning(
                "STORE_BACKEND=memory with AUTH_MODE=production: accounts and schedules are lost on restart"
            )


@lru_cache
def get_settings() -> Settings:
    return Settings()
