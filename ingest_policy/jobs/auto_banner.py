from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from ingest_policy.core.coerce import as_text, ensure_utc, format_timestamp, require_id, require_int
from ingest_policy.core.config import Settings, get_settings
from ingest_policy.core.errors import InvalidArgumentError
from ingest_policy.core.telemetry import policy_span
from ingest_policy.schemas.records import RetainedRecord
from ingest_policy.services.banner_selector import resolve_effective_banner
from ingest_policy.services.hashing import STABLE_INDEX_VERSION
from ingest_policy.services.retention import partition_by_cap
from ingest_policy.services.retry import get_failure_transition

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


def plan_job_failure(
    job: Mapping[str, Any],
    *,
    now: datetime,
    error: str | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    job_id = require_id(job.get("id"), field="job id")
    attempts = require_int(job.get("attempts", 0) or 0, field="attempts")
    raw_max_attempts = job.get("max_attempts")
    max_attempts = (
        require_int(raw_max_attempts, field="max_attempts")
        if raw_max_attempts is not None
        else settings.job_max_attempts
    )

    with policy_span(
        "plan_job_failure",
        settings,
        **{"job.id": job_id, "job.attempts": attempts, "job.max_attempts": max_attempts},
    ) as span:
        transition = get_failure_transition(
            attempts=attempts,
            max_attempts=max_attempts,
            now=now,
            base_seconds=settings.job_retry_base_seconds,
            max_delay_seconds=settings.job_retry_max_seconds,
        )
        span.set_attribute("job.next_status", transition.status)

    if transition.is_dead:
        logger.warning(
            "auto banner job dead-lettered id=%s attempts=%s max_attempts=%s",
            job_id,
            attempts,
            max_attempts,
        )
    else:
        logger.info(
            "auto banner job retry scheduled id=%s attempts=%s delay_seconds=%s available_at=%s",
            job_id,
            attempts,
            transition.retry_delay_seconds,
            format_timestamp(transition.available_at),
        )

    return {
        "job_id": job_id,
        **transition.as_payload(),
        "attempts": attempts,
        "max_attempts": max_attempts,
        "last_error": _truncate_error(error),
        "finished_at": format_timestamp(ensure_utc(now)) if transition.is_dead else None,
    }


def plan_default_banner(
    blueprint: Mapping[str, Any],
    banner_urls: Sequence[str],
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    blueprint_id = require_id(blueprint.get("id"), field="blueprint id")
    channel_slug = as_text(blueprint.get("channel_slug"))
    if channel_slug is None:
        raise InvalidArgumentError("blueprint row requires a non-empty channel_slug")

    with policy_span(
        "plan_default_banner",
        settings,
        **{"blueprint.id": blueprint_id, "channel.slug": channel_slug},
    ) as span:
        banner = resolve_effective_banner(
            generated_url=as_text(blueprint.get("banner_generated_url")),
            channel_slug=channel_slug,
            blueprint_id=blueprint_id,
            banner_urls=banner_urls,
        )
        span.set_attribute("banner.effective_source", banner.source)

    if banner.source == "none":
        logger.info("no default banner candidates channel=%s blueprint=%s", channel_slug, blueprint_id)

    return {
        "blueprint_id": blueprint_id,
        "banner_url": banner.url,
        "banner_effective_source": banner.source,
        "selection_version": STABLE_INDEX_VERSION if banner.source == "channel_default" else None,
    }


def plan_banner_retention(
    rows: Iterable[RetainedRecord | Mapping[str, Any]],
    *,
    cap: int | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    if cap is None:
        cap = settings.banner_retention_cap

    with policy_span("plan_banner_retention", settings, **{"retention.cap": cap}) as span:
        partition = partition_by_cap(rows, cap)
        span.set_attribute("retention.demoted", len(partition.demote))

    if partition.demote:
        logger.info(
            "banner retention cap exceeded cap=%s kept=%s demoted=%s",
            cap,
            len(partition.keep),
            len(partition.demote),
        )

    return {
        "cap": cap,
        "total": len(partition.keep) + len(partition.demote),
        "keep_ids": partition.keep_ids,
        "demote_ids": partition.demote_ids,
    }


def _truncate_error(error: str | None) -> str | None:
    text = as_text(error)
    if text is None:
        return None
    return text[:MAX_ERROR_LENGTH]
