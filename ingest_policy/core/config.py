from functools import lru_cache
from typing import Any, Literal

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingest_policy.core.coerce import bounded_int

AutoBannerMode = Literal["off", "async", "sync"]

_INT_BOUNDS: dict[str, tuple[int, int, int]] = {
    "banner_retention_cap": (1000, 1, 100_000),
    "job_max_attempts": (3, 1, 20),
    "job_retry_base_seconds": (60, 1, 3600),
    "job_retry_max_seconds": (1800, 1, 86_400),
}


def normalize_auto_banner_mode(raw: Any) -> AutoBannerMode:
    normalized = str(raw or "off").strip().lower()
    if normalized == "async":
        return "async"
    if normalized == "sync":
        return "sync"
    return "off"


class Settings(BaseSettings):
    environment: str = "dev"
    auto_banner_mode: AutoBannerMode = "off"
    banner_retention_cap: int = 1000
    job_max_attempts: int = 3
    job_retry_base_seconds: int = 60
    job_retry_max_seconds: int = 1800
    otel_enabled: bool = True
    otel_service_name: str = "ingest-policy"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="INGEST_POLICY_", extra="ignore")

    @field_validator("auto_banner_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> AutoBannerMode:
        return normalize_auto_banner_mode(value)

    @field_validator(*_INT_BOUNDS, mode="before")
    @classmethod
    def _clamp_int(cls, value: Any, info: ValidationInfo) -> int:
        default, minimum, maximum = _INT_BOUNDS[info.field_name]
        return bounded_int(value, default=default, minimum=minimum, maximum=maximum)

    @model_validator(mode="after")
    def _retry_ceiling_covers_base(self) -> "Settings":
        self.job_retry_max_seconds = max(self.job_retry_base_seconds, self.job_retry_max_seconds)
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
