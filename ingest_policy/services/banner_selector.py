from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from ingest_policy.core.errors import InvalidArgumentError, NoCandidatesAvailableError
from ingest_policy.services.hashing import to_stable_index

BannerEffectiveSource = Literal["generated", "channel_default", "none"]

OWNER_KEY_SEPARATOR = ":"


@dataclass(slots=True)
class EffectiveBanner:
    url: str | None
    source: BannerEffectiveSource


def build_owner_key(parts: Sequence[str]) -> str:
    """Join owner parts into one hash key.

    Backslash and the separator are escaped inside each part, so two different
    part tuples never produce the same key. Parts without either character are
    joined verbatim, e.g. ``("nutrition", "bp-1") -> "nutrition:bp-1"``.
    """
    if isinstance(parts, str) or not parts:
        raise InvalidArgumentError("owner key requires at least one part")
    return OWNER_KEY_SEPARATOR.join(_escape_part(str(part)) for part in parts)


def select_deterministic_default(owner_key_parts: Sequence[str], candidates: Sequence[str]) -> str:
    urls = [url for url in candidates if url]
    if not urls:
        raise NoCandidatesAvailableError("no default candidates available")
    index = to_stable_index(build_owner_key(owner_key_parts), len(urls))
    return urls[index]


def select_default_banner(*, channel_slug: str, blueprint_id: str, banner_urls: Sequence[str]) -> str:
    return select_deterministic_default((channel_slug, blueprint_id), banner_urls)


def resolve_effective_banner(
    *,
    generated_url: str | None,
    channel_slug: str,
    blueprint_id: str,
    banner_urls: Sequence[str],
) -> EffectiveBanner:
    if generated_url:
        return EffectiveBanner(url=generated_url, source="generated")
    try:
        url = select_default_banner(channel_slug=channel_slug, blueprint_id=blueprint_id, banner_urls=banner_urls)
    except NoCandidatesAvailableError:
        return EffectiveBanner(url=None, source="none")
    return EffectiveBanner(url=url, source="channel_default")


def _escape_part(part: str) -> str:
    return part.replace("\\", "\\\\").replace(OWNER_KEY_SEPARATOR, "\\" + OWNER_KEY_SEPARATOR)
