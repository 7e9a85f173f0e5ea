"""OpenTelemetry tracing helpers for llmbridge.

Provider calls are wrapped in spans obtained from :func:`get_tracer`. Until
the SDK is configured the OpenTelemetry API hands out no-op tracers, so
instrumentation costs nothing unless explicitly enabled.

Usage::

    from llmbridge.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("llmbridge.send_message") as span:
        span.set_attribute(ATTR_PROVIDER, "anthropic")

Spans are exported once :func:`configure_telemetry` has run; the CLI calls it
for ``llmbridge --trace`` and when ``LLMBRIDGE_OTLP_ENDPOINT`` is set
(requires the ``otel`` extra: ``pip install llm-bridge[otel]``).
"""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys used by provider instrumentation
# ---------------------------------------------------------------------------

ATTR_PROVIDER = "llmbridge.provider"
ATTR_MODEL = "llmbridge.model"
ATTR_STREAMING = "llmbridge.streaming"
ATTR_TOOL_COUNT = "llmbridge.tool_count"
ATTR_TOKENS_PROMPT = "llmbridge.tokens.prompt"
ATTR_TOKENS_COMPLETION = "llmbridge.tokens.completion"
ATTR_TOKENS_TOTAL = "llmbridge.tokens.total"
ATTR_STOP_REASON = "llmbridge.stop_reason"
ATTR_ERROR_KIND = "llmbridge.error.kind"
ATTR_HTTP_STATUS = "llmbridge.http.status_code"

_INSTRUMENTATION_NAME = "llmbridge"

logger = logging.getLogger(__name__)


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*.

    If the OpenTelemetry SDK has not been configured the returned tracer
    is a no-op.
    """
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def record_usage(span: trace.Span, input_tokens: int, output_tokens: int) -> None:
    """Attach token counts to *span*."""
    span.set_attribute(ATTR_TOKENS_PROMPT, input_tokens)
    span.set_attribute(ATTR_TOKENS_COMPLETION, output_tokens)
    span.set_attribute(ATTR_TOKENS_TOTAL, input_tokens + output_tokens)


def configure_telemetry(
    *,
    service_name: str = "llmbridge",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider so provider-call spans are exported.

    Console export writes each span as JSON to stdout when it ends; OTLP
    export batches spans to *otlp_endpoint* over gRPC. Both need the ``otel``
    extra (``pip install llm-bridge[otel]``).

    Raises:
        ImportError: if ``opentelemetry-sdk`` (or, for OTLP,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        raise ImportError(_install_hint("opentelemetry-sdk")) from exc

    tracer_provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    if export_to_console:
        tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    if otlp_endpoint:
        tracer_provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))

    trace.set_tracer_provider(tracer_provider)
    logger.debug(
        "Tracing enabled for %s (console=%s, otlp=%s)",
        service_name,
        export_to_console,
        otlp_endpoint or "off",
    )


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        raise ImportError(_install_hint("opentelemetry-exporter-otlp")) from exc
    return OTLPSpanExporter(endpoint=endpoint)


def _install_hint(package: str) -> str:
    return f"{package} is required for span export. Install it with: pip install llm-bridge[otel]"
