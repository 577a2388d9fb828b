import logging
from typing import Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter, SpanExportResult
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from shift_engine.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME, SERVICE_VERSION

logger = logging.getLogger("uvicorn.error")

# Registered once per process; the default registry rejects duplicates.
app_info = Info("shift_engine_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME, "version": SERVICE_VERSION})

_tracing_configured = False


class BodySpanFilter(SpanExporter):
    """
    Drops the per-chunk ASGI body spans. Streamed pages and proxied session
    responses would otherwise produce one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if kept:
            return self.exporter.export(kept)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(app: FastAPI) -> None:
    """Install the tracer provider (once per process) and instrument the framework stage."""
    global _tracing_configured
    if not _tracing_configured:
        provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
        if OTLP_ENDPOINT:
            exporter = OTLPSpanExporter(
                endpoint=OTLP_ENDPOINT,
                headers=OTLP_HEADERS or None,
            )
            provider.add_span_processor(BatchSpanProcessor(BodySpanFilter(exporter)))
            logger.info(f"[Telemetry] Exporting traces to {OTLP_ENDPOINT}")
        trace.set_tracer_provider(provider)
        _tracing_configured = True

    FastAPIInstrumentor.instrument_app(app, excluded_urls="")


def expose_metrics(app: FastAPI, endpoint: str) -> None:
    Instrumentator().instrument(app).expose(app, endpoint=endpoint, include_in_schema=False)
