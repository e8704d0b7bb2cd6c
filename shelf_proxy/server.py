from contextlib import asynccontextmanager
from typing import Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from shelf_proxy.proxy.route import close_proxy_handler, init_proxy_handler, router
from shelf_proxy.vars import OTLP_ENDPOINT, OTLP_HEADER_MAP, SERVICE_NAME


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_proxy_handler()
    yield
    await close_proxy_handler()


app = FastAPI(lifespan=lifespan)
instrumentator = Instrumentator()

# Expose metrics before the catch-all proxy route so /metrics is served locally
instrumentator.instrument(app).expose(app)


def _is_body_chunk_span(span: ReadableSpan) -> bool:
    attributes = span.attributes or {}
    return attributes.get("asgi.event.type") == "http.response.body"


class BodyChunkSpanFilter(SpanExporter):
    """
    Drops the per-chunk ASGI spans of relayed upstream bodies.

    A proxied response is a StreamingResponse over the upstream body, and the
    ASGI instrumentation records one ``http.response.body`` span for every
    chunk sent, so large downloads would flood the exporter. The
    ``proxy_request`` span and the request span are kept.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not _is_body_chunk_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=OTLP_HEADER_MAP or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(BodyChunkSpanFilter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics")

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

app.include_router(router)
