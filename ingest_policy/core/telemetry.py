from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Span
from opentelemetry.util.types import AttributeValue

from ingest_policy.core.config import Settings
from ingest_policy.services.hashing import STABLE_INDEX_VERSION

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
SPAN_PREFIX = "auto_banner"

_INSTRUMENTATION_NAME = "ingest_policy"
_BASE_LOG_RECORD_FACTORY = logging.getLogRecordFactory()
_log_correlation_installed = False


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


def policy_attributes(settings: Settings) -> dict[str, AttributeValue]:
    """Policy knobs stamped on the tracer resource and on every decision span.

    A persisted decision can then be traced back to the hash version and the
    retry/retention bounds that produced it.
    """
    return {
        "policy.stable_index_version": STABLE_INDEX_VERSION,
        "policy.auto_banner_mode": settings.auto_banner_mode,
        "policy.banner_retention_cap": settings.banner_retention_cap,
        "policy.job_max_attempts": settings.job_max_attempts,
        "policy.retry_base_seconds": settings.job_retry_base_seconds,
        "policy.retry_max_seconds": settings.job_retry_max_seconds,
    }


@contextmanager
def policy_span(operation: str, settings: Settings, **attributes: AttributeValue) -> Iterator[Span]:
    tracer = trace.get_tracer(_INSTRUMENTATION_NAME)
    with tracer.start_as_current_span(f"{SPAN_PREFIX}.{operation}") as span:
        span.set_attributes(policy_attributes(settings))
        span.set_attributes(attributes)
        yield span


def start_telemetry(settings: Settings, *, log_level: int = logging.INFO) -> TelemetryRuntime:
    """Wire logging and tracing for a process that embeds the policy engine."""
    if settings.otel_log_correlation:
        _install_log_correlation()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=log_level, format=LOG_FORMAT if _log_correlation_installed else logging.BASIC_FORMAT)

    if not settings.otel_enabled:
        return TelemetryRuntime(enabled=False, provider=None)

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
                **policy_attributes(settings),
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    exporter = _otlp_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    logger.info(
        "policy telemetry started service=%s stable_index_version=%s exporter=%s",
        settings.otel_service_name,
        STABLE_INDEX_VERSION,
        "otlp" if exporter is not None else "none",
    )
    return TelemetryRuntime(enabled=True, provider=provider)


def stop_telemetry(runtime: TelemetryRuntime) -> None:
    if runtime.provider is None:
        return
    runtime.provider.force_flush()
    runtime.provider.shutdown()


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in (raw or "").split(","):
        key, separator, value = item.partition("=")
        if separator and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def _otlp_exporter(settings: Settings) -> OTLPSpanExporter | None:
    endpoint = (
        settings.otel_exporter_otlp_endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    )
    if not endpoint:
        return None
    headers = parse_otlp_headers(settings.otel_exporter_otlp_headers or os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))
    return OTLPSpanExporter(endpoint=endpoint, headers=headers or None)


def _install_log_correlation() -> None:
    global _log_correlation_installed
    if _log_correlation_installed:
        return

    def record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
        record = _BASE_LOG_RECORD_FACTORY(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "0" * 32
        record.span_id = format(context.span_id, "016x") if context.is_valid else "0" * 16
        return record

    logging.setLogRecordFactory(record_factory)
    _log_correlation_installed = True
