"""Pydantic models used across the roadmap tracker configuration flow."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

LOGICAL_COLUMNS = ("in-progress", "coming-next", "released")


class ProviderSettings(BaseModel):
    """Settings shared by every upstream provider."""

    enabled: bool = True
    cache_ttl: float = Field(default=30.0, description="Seconds a cached response stays fresh.")
    request_timeout: float = 15.0
    page_size: int = 10
    max_response_bytes: int = 16 << 20

    @model_validator(mode="after")
    def _validate_limits(self) -> "ProviderSettings":
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.max_response_bytes < 1:
            raise ValueError("max_response_bytes must be >= 1")
        return self


class HiveSettings(ProviderSettings):
    """Community voting board."""

    base_url: str = "https://updates.playhive.com/api/v1/submission"
    item_url_prefix: str = "https://updates.playhive.com/en/p/"
    cache_ttl: float = 30.0
    request_timeout: float = 12.0
    max_concurrency: int = 4
    max_pages: int = Field(default=1000, ge=1)
    include_pinned: bool = True
    in_review: bool = False
    default_sort: str = "upvotes:desc"
    status_ids: dict[str, str] = Field(
        default_factory=lambda: {
            "in-progress": "673d43b2b479f2dff6f8b96e",
            "coming-next": "673d43a8b479f2dff6f8b74b",
            "released": "67489361029fa6e5e4579b21",
        }
    )

    @field_validator("max_concurrency", mode="before")
    @classmethod
    def _coerce_concurrency(cls, value: Any) -> int:
        if value in (None, ""):
            return 1
        return max(1, int(value))


class CubecraftSettings(ProviderSettings):
    """Workspace-wiki collection board."""

    query_url: str = "https://cubecraft.notion.site/api/v3/queryCollection?src=initial_load"
    site_base_url: str = "https://cubecraft.notion.site/e86c96a3ee78465d8e5c24c22489c094"
    collection_id: str = "d14e867c-526a-4627-ad4f-1f56fdee77d6"
    view_id: str = "79bd3042-c1cf-42aa-9d4e-d81a3043c505"
    space_id: str = "2a7d9973-2a91-430b-9d0f-520163f17777"
    client_version: str = "23.13.0.5155"
    time_zone: str = "Europe/Berlin"
    cookie_env: str = "NOTION_COOKIE"
    cache_ttl: float = 120.0
    request_timeout: float = 30.0
    max_response_bytes: int = 32 << 20

    def cookie(self) -> str:
        return os.environ.get(self.cookie_env, "")


class WatchSettings(BaseModel):
    """Background refresh used by ``watch``."""

    interval_seconds: int = 300
    columns: list[str] = Field(default_factory=lambda: list(LOGICAL_COLUMNS))

    @field_validator("interval_seconds")
    @classmethod
    def _validate_interval(cls, value: int) -> int:
        if value < 5:
            raise ValueError("interval_seconds must be >= 5")
        return value

    @field_validator("columns", mode="before")
    @classmethod
    def _normalise_columns(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return list(LOGICAL_COLUMNS)
        if isinstance(value, str):
            value = [value]
        return [str(column).strip().lower() for column in value if str(column).strip()]


class GlobalConfig(BaseModel):
    """Global controls shared across providers."""

    hive: HiveSettings = Field(default_factory=HiveSettings)
    cubecraft: CubecraftSettings = Field(default_factory=CubecraftSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    retention_hours: float = 24.0
    status_index_limit: int | None = None
    thread_pool_workers: int = 4

    @model_validator(mode="after")
    def _validate_globals(self) -> "GlobalConfig":
        if self.retention_hours <= 0:
            raise ValueError("retention_hours must be > 0")
        if self.thread_pool_workers < 1:
            raise ValueError("thread_pool_workers must be >= 1")
        if self.status_index_limit is not None and self.status_index_limit < 1:
            raise ValueError("status_index_limit must be >= 1 or null")
        return self


__all__ = [
    "CubecraftSettings",
    "GlobalConfig",
    "HiveSettings",
    "LOGICAL_COLUMNS",
    "ProviderSettings",
    "WatchSettings",
]
