from __future__ import annotations

import pytest

from ingest_policy.core.coerce import bounded_int
from ingest_policy.core.config import Settings, get_settings, normalize_auto_banner_mode


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("async", "async"), (" SYNC ", "sync"), ("off", "off"), ("", "off"), (None, "off"), ("later", "off")],
)
def test_normalize_auto_banner_mode(raw: object, expected: str) -> None:
    assert normalize_auto_banner_mode(raw) == expected


def test_bounded_int_clamps_and_falls_back() -> None:
    assert bounded_int("7.9", default=3, minimum=1, maximum=20) == 7
    assert bounded_int(500, default=3, minimum=1, maximum=20) == 20
    assert bounded_int(-4, default=3, minimum=1, maximum=20) == 1
    assert bounded_int("nan", default=3, minimum=1, maximum=20) == 3
    assert bounded_int(None, default=3, minimum=1, maximum=20) == 3


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INGEST_POLICY_AUTO_BANNER_MODE", "Async")
    monkeypatch.setenv("INGEST_POLICY_BANNER_RETENTION_CAP", "250")
    monkeypatch.setenv("INGEST_POLICY_JOB_MAX_ATTEMPTS", "99")
    monkeypatch.setenv("INGEST_POLICY_JOB_RETRY_BASE_SECONDS", "not-a-number")

    settings = Settings()

    assert settings.auto_banner_mode == "async"
    assert settings.banner_retention_cap == 250
    assert settings.job_max_attempts == 20
    assert settings.job_retry_base_seconds == 60


def test_settings_raise_retry_ceiling_to_base() -> None:
    settings = Settings(job_retry_base_seconds=600, job_retry_max_seconds=120)

    assert settings.job_retry_max_seconds == 600


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
