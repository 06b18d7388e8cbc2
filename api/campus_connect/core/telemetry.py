from __future__ import annotations

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from campus_connect.core.config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
UNTRACED_IDS = ("0" * 32, "0" * 16)

_plain_record_factory = logging.getLogRecordFactory()


def _correlated_record(*args: object, **kwargs: object) -> logging.LogRecord:
    record = _plain_record_factory(*args, **kwargs)
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        record.trace_id = format(context.trace_id, "032x")
        record.span_id = format(context.span_id, "016x")
    else:
        record.trace_id, record.span_id = UNTRACED_IDS
    return record


def configure_api_logging() -> None:
    """Stamp every record with the active span ids and set the root format once."""
    if logging.getLogRecordFactory() is not _correlated_record:
        logging.setLogRecordFactory(_correlated_record)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TracerProvider | None:
    if not settings.otel_enabled:
        return None

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    exporter = _build_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="health")
    return provider


def shutdown_api_telemetry(app: FastAPI, provider: TracerProvider | None) -> None:
    if provider is None:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    provider.force_flush()
    provider.shutdown()


def _build_exporter(settings: Settings) -> OTLPSpanExporter | None:
    if not settings.otel_exporter_otlp_endpoint:
        logger.info("no OTLP endpoint configured; spans stay local for service=%s", settings.otel_service_name)
        return None
    return OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=_header_pairs(settings.otel_exporter_otlp_headers) or None,
    )


def _header_pairs(raw: str | None) -> dict[str, str]:
    # "key=value,key2=value2"; items without a key are dropped.
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, sep, value in pairs if sep and key.strip()}
