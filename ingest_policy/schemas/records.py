from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from ingest_policy.core.coerce import ensure_utc, require_id


class RetainedRecord(BaseModel):
    id: str
    created_at: datetime | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return require_id(value, field="record id")

    @field_validator("created_at", mode="after")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @field_validator("created_at", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
