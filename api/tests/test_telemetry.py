import logging

from fastapi import FastAPI
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider

from campus_connect.core.config import Settings
from campus_connect.core.telemetry import (
    _build_exporter,
    _header_pairs,
    configure_api_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)


def _record() -> logging.LogRecord:
    return logging.getLogger("campus_connect.tests").makeRecord(
        "campus_connect.tests", logging.INFO, __file__, 1, "hello", None, None
    )


def test_header_pairs_skip_malformed_items() -> None:
    assert _header_pairs("authorization=Bearer abc, x-team = core ,broken,=nokey") == {
        "authorization": "Bearer abc",
        "x-team": "core",
    }
    assert _header_pairs(None) == {}


def test_exporter_needs_an_endpoint() -> None:
    assert _build_exporter(Settings(otel_exporter_otlp_endpoint=None)) is None
    assert _build_exporter(Settings(otel_exporter_otlp_endpoint="")) is None

    exporter = _build_exporter(
        Settings(otel_exporter_otlp_endpoint="http://collector:4318/v1/traces", otel_exporter_otlp_headers="x-key=1")
    )
    assert isinstance(exporter, OTLPSpanExporter)
    exporter.shutdown()


def test_disabled_telemetry_leaves_app_untouched() -> None:
    app = FastAPI()

    provider = setup_api_telemetry(app, Settings(otel_enabled=False))

    assert provider is None
    shutdown_api_telemetry(app, provider)


def test_log_records_carry_span_ids() -> None:
    configure_api_logging()
    configure_api_logging()

    untraced = _record()
    assert untraced.trace_id == "0" * 32
    assert untraced.span_id == "0" * 16

    provider = TracerProvider()
    with provider.get_tracer(__name__).start_as_current_span("work") as span:
        traced = _record()
        context = span.get_span_context()
    provider.shutdown()

    assert traced.trace_id == format(context.trace_id, "032x")
    assert traced.span_id == format(context.span_id, "016x")
