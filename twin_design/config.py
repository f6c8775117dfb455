from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

DEFAULT_API_BASE = "https://homedesigns.ai/api/v2"


def _as_int(value: str | None, default: int, *, minimum: int = 0) -> int:
    if value is None or not value.strip():
        return default
    try:
        return max(int(value), minimum)
    except (TypeError, ValueError):
        return default


def _as_float(value: str | None, default: float, *, minimum: float = 0.0) -> float:
    if value is None or not value.strip():
        return default
    try:
        return max(float(value), minimum)
    except (TypeError, ValueError):
        return default


def _env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value is None:
            continue
        text = value.strip()
        if text:
            return text
    return None


def _parse_allowed_origins(raw: str | None) -> List[str]:
    """Normalise comma-separated origins into values accepted by CORSMiddleware."""

    if not raw:
        return ["*"]

    cleaned: List[str] = []
    for origin in raw.split(","):
        value = origin.strip()
        if not value:
            continue
        if value == "*":
            return ["*"]

        parsed = urlparse(value)
        if parsed.scheme and parsed.netloc:
            normalised = f"{parsed.scheme}://{parsed.netloc}"
        else:
            normalised = value.rstrip("/")

        if normalised not in cleaned:
            cleaned.append(normalised)

    return cleaned or ["*"]


@dataclass
class HomeDesignsConfig:
    api_base: str = DEFAULT_API_BASE
    token: str | None = None
    timeout: float = 120.0
    proxy: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_base and self.token)

    @classmethod
    def from_env(cls) -> "HomeDesignsConfig":
        api_base = _env("HOMEDESIGNS_API_BASE") or DEFAULT_API_BASE
        return cls(
            api_base=api_base.rstrip("/"),
            token=_env("HOMEDESIGNS_AI_TOKEN"),
            timeout=_as_float(os.getenv("HOMEDESIGNS_TIMEOUT"), 120.0, minimum=1.0),
            proxy=_env("HOMEDESIGNS_PROXY"),
        )


@dataclass
class PipelineConfig:
    poll_interval: float = 5.0
    poll_max_attempts: int = 60
    min_dimension: int = 512
    persist_workers: int = 1
    signed_url_ttl: int = 24 * 60 * 60

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            poll_interval=_as_float(os.getenv("DESIGN_POLL_INTERVAL"), 5.0),
            poll_max_attempts=_as_int(os.getenv("DESIGN_POLL_MAX_ATTEMPTS"), 60, minimum=1),
            min_dimension=_as_int(os.getenv("DESIGN_MIN_DIMENSION"), 512, minimum=1),
            persist_workers=_as_int(os.getenv("DESIGN_PERSIST_WORKERS"), 1, minimum=1),
            signed_url_ttl=_as_int(os.getenv("DESIGN_SIGNED_URL_TTL"), 86400, minimum=60),
        )


@dataclass
class StorageConfig:
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "auto"
    bucket: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.access_key and self.secret_key and self.bucket)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            endpoint=_env("R2_ENDPOINT", "S3_ENDPOINT"),
            access_key=_env("R2_ACCESS_KEY_ID", "S3_ACCESS_KEY"),
            secret_key=_env("R2_SECRET_ACCESS_KEY", "S3_SECRET_KEY"),
            region=_env("R2_REGION", "S3_REGION") or "auto",
            bucket=_env("R2_BUCKET", "S3_BUCKET"),
        )


@dataclass
class Settings:
    environment: str
    log_level: str
    allowed_origins: List[str]
    homedesigns: HomeDesignsConfig
    pipeline: PipelineConfig
    storage: StorageConfig


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        allowed_origins=_parse_allowed_origins(os.getenv("ALLOWED_ORIGINS", "*")),
        homedesigns=HomeDesignsConfig.from_env(),
        pipeline=PipelineConfig.from_env(),
        storage=StorageConfig.from_env(),
    )
