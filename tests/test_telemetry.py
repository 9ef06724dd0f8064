from __future__ import annotations

import logging

import pytest

from ingest_policy.core.config import Settings
from ingest_policy.core.telemetry import parse_otlp_headers, policy_attributes, start_telemetry, stop_telemetry


def test_parse_otlp_headers_skips_malformed_items() -> None:
    assert parse_otlp_headers("authorization=Bearer abc, x-team = ingest ,broken,=empty") == {
        "authorization": "Bearer abc",
        "x-team": "ingest",
    }
    assert parse_otlp_headers(None) == {}


def test_policy_attributes_describe_active_policy() -> None:
    attributes = policy_attributes(Settings(otel_enabled=False, banner_retention_cap=12, auto_banner_mode="sync"))

    assert attributes["policy.stable_index_version"] == "fnv1a32-utf8.v1"
    assert attributes["policy.banner_retention_cap"] == 12
    assert attributes["policy.auto_banner_mode"] == "sync"


def test_start_telemetry_disabled_returns_inert_runtime() -> None:
    runtime = start_telemetry(Settings(otel_enabled=False))

    assert runtime.enabled is False
    assert runtime.provider is None
    stop_telemetry(runtime)


def test_start_telemetry_without_endpoint_stamps_policy_resource(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)

    runtime = start_telemetry(Settings(otel_enabled=True, otel_exporter_otlp_endpoint=None, job_max_attempts=5))
    try:
        assert runtime.enabled is True
        assert runtime.provider is not None
        resource_attributes = runtime.provider.resource.attributes
        assert resource_attributes["service.name"] == "ingest-policy"
        assert resource_attributes["policy.job_max_attempts"] == 5
    finally:
        stop_telemetry(runtime)


def test_start_telemetry_adds_trace_fields_to_log_records() -> None:
    start_telemetry(Settings(otel_enabled=False, otel_log_correlation=True))

    record = logging.getLogRecordFactory()("ingest_policy", logging.INFO, __file__, 1, "message", (), None)

    assert record.trace_id == "0" * 32
    assert record.span_id == "0" * 16
