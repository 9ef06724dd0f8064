from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ingest_policy.core.errors import InvalidArgumentError
from ingest_policy.schemas.records import RetainedRecord

# Rows without created_at rank below every dated row, pre-1970 ones included.
_MISSING_CREATED_AT = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class RetentionPartition:
    keep: list[RetainedRecord]
    demote: list[RetainedRecord]

    @property
    def keep_ids(self) -> list[str]:
        return [record.id for record in self.keep]

    @property
    def demote_ids(self) -> list[str]:
        return [record.id for record in self.demote]


def partition_by_cap(records: Iterable[RetainedRecord | Mapping[str, Any]], cap: int) -> RetentionPartition:
    """Split an owner's active records into the ``cap`` newest and the rest.

    Ordering is ``created_at`` descending, then ``id`` descending; records with
    no ``created_at`` sort last. The result is a snapshot of ``records``:
    callers re-partition if the set changes before the demotion is persisted.
    """
    if cap <= 0:
        raise InvalidArgumentError(f"cap must be positive, got {cap}")

    ranked = sorted((_as_record(row) for row in records), key=_recency_key, reverse=True)
    return RetentionPartition(keep=ranked[:cap], demote=ranked[cap:])


def _as_record(row: RetainedRecord | Mapping[str, Any]) -> RetainedRecord:
    if isinstance(row, RetainedRecord):
        return row
    try:
        return RetainedRecord.model_validate(row)
    except ValidationError as exc:
        raise InvalidArgumentError(f"invalid retained record: {exc.error_count()} error(s)") from exc


def _recency_key(record: RetainedRecord) -> tuple[datetime, str]:
    return (record.created_at or _MISSING_CREATED_AT, record.id)
