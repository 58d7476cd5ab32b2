import logging
import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from shared.config.settings import settings

_global_state = {"logging": False, "tracing": False}


# 1. Structlog processor: injects trace/span ids into every log line
def add_otel_ids(logger, log_method, event_dict):
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


# 2. Structlog JSON output
def configure_logging():
    if _global_state["logging"]:
        return
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_otel_ids,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _global_state["logging"] = True


# 3. OpenTelemetry tracing
def configure_tracing(app: FastAPI, service_name: str):
    if not settings.otel_enabled:
        return

    # One provider per process; every mounted service shares it
    if not _global_state["tracing"]:
        resource = Resource.create({SERVICE_NAME: "erp_backend"})
        provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(provider)

        # Export to Jaeger via OTLP gRPC
        exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))

        # Outgoing gateway calls become child spans
        HTTPXClientInstrumentor().instrument()
        _global_state["tracing"] = True

    FastAPIInstrumentor.instrument_app(app, server_request_hook=_tag_service(service_name))


def _tag_service(service_name: str):
    def hook(span, scope):
        if span and span.is_recording():
            span.set_attribute("erp.service", service_name)
    return hook


# 4. Prometheus metrics
def configure_metrics(app: FastAPI):
    # Request latency, status codes, etc. exposed at <mount>/metrics
    Instrumentator().instrument(app).expose(app, include_in_schema=False)


def setup_observability(app: FastAPI, service_name: str):
    """
    Bootstraps logging, tracing and metrics for a FastAPI app.
    Call once per app, right after constructing it.
    """
    configure_logging()
    configure_tracing(app, service_name)
    configure_metrics(app)
