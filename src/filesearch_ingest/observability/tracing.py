"""OpenTelemetry tracing for outbound File Search requests.

The store client opens a ``filesearch.request`` span around every HTTP call.
This module installs the process-wide tracer provider those spans go to.

Environment Variables:
    FILESEARCH_OTEL_ENABLED: "1" turns tracing on (default: off)
    FILESEARCH_REQUIRE_OTEL: "1" makes a failed setup raise instead of logging
    FILESEARCH_OTEL_SERVICE_NAME: service.name resource attribute
        (default: "filesearch-ingest")
    FILESEARCH_OTEL_EXPORTER: "otlp" (HTTP) or "console" (default: "otlp")
    FILESEARCH_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP/HTTP traces endpoint (optional)
    FILESEARCH_OTEL_TEST_CAPTURE: "1" keeps spans in memory for tests

Span attributes never include API keys, request bodies or document text.
URLs are recorded without their query string because the fileSearchStores
variant authenticates with a ``key`` query parameter.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final
from urllib.parse import urlsplit, urlunsplit

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

logger = logging.getLogger(__name__)

TRACER_NAME: Final[str] = "filesearch_ingest"

ENV_OTEL_ENABLED: Final[str] = "FILESEARCH_OTEL_ENABLED"
ENV_REQUIRE_OTEL: Final[str] = "FILESEARCH_REQUIRE_OTEL"
ENV_OTEL_SERVICE_NAME: Final[str] = "FILESEARCH_OTEL_SERVICE_NAME"
ENV_OTEL_EXPORTER: Final[str] = "FILESEARCH_OTEL_EXPORTER"
ENV_OTEL_ENDPOINT: Final[str] = "FILESEARCH_OTEL_EXPORTER_OTLP_ENDPOINT"
ENV_OTEL_TEST_CAPTURE: Final[str] = "FILESEARCH_OTEL_TEST_CAPTURE"

DEFAULT_SERVICE_NAME: Final[str] = "filesearch-ingest"
EXPORTERS: Final[tuple[str, ...]] = ("otlp", "console")

_TRUTHY = frozenset({"1", "true", "yes"})

# A tracer provider can be installed once per process
_provider: TracerProvider | None = None
_capture_exporter: InMemorySpanExporter | None = None


class TracingConfigError(Exception):
    """Raised when tracing cannot be set up and FILESEARCH_REQUIRE_OTEL=1."""


@dataclass(frozen=True)
class TracingSettings:
    """Tracing switches read from the environment.

    Attributes:
        enabled: Install a tracer provider at all.
        required: Raise TracingConfigError when setup fails.
        service_name: Value of the service.name resource attribute.
        exporter: "otlp" or "console".
        endpoint: OTLP/HTTP endpoint, or None for the exporter default.
        test_capture: Keep spans in memory instead of exporting them.
    """

    enabled: bool = False
    required: bool = False
    service_name: str = DEFAULT_SERVICE_NAME
    exporter: str = "otlp"
    endpoint: str | None = None
    test_capture: bool = False


def load_tracing_settings(env: Mapping[str, str] | None = None) -> TracingSettings:
    """Read tracing switches from ``env`` (default: os.environ)."""
    if env is None:
        env = os.environ

    def flag(key: str) -> bool:
        return env.get(key, "").strip().lower() in _TRUTHY

    return TracingSettings(
        enabled=flag(ENV_OTEL_ENABLED),
        required=flag(ENV_REQUIRE_OTEL),
        service_name=env.get(ENV_OTEL_SERVICE_NAME, "").strip() or DEFAULT_SERVICE_NAME,
        exporter=env.get(ENV_OTEL_EXPORTER, "").strip().lower() or "otlp",
        endpoint=env.get(ENV_OTEL_ENDPOINT, "").strip() or None,
        test_capture=flag(ENV_OTEL_TEST_CAPTURE),
    )


def sanitize_url(url: str) -> str:
    """Reduce a URL to scheme://host[:port]/path for use as a span attribute.

    Userinfo, query string and fragment are dropped. Returns "unknown" when
    no host can be parsed.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return "unknown"
    if not host:
        return "unknown"
    netloc = f"{host}:{port}" if port else host
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


def _span_processor(settings: TracingSettings) -> SpanProcessor:
    global _capture_exporter

    if settings.test_capture:
        _capture_exporter = InMemorySpanExporter()
        return SimpleSpanProcessor(_capture_exporter)
    if settings.exporter == "console":
        return SimpleSpanProcessor(ConsoleSpanExporter())
    if settings.exporter != "otlp":
        valid = ", ".join(EXPORTERS)
        raise ValueError(f"{ENV_OTEL_EXPORTER} must be one of {valid}, got '{settings.exporter}'")
    if settings.endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.endpoint))
    return BatchSpanProcessor(OTLPSpanExporter())


def configure_tracing(settings: TracingSettings | None = None) -> bool:
    """Install the tracer provider described by ``settings``.

    Safe to call repeatedly; once a provider is installed later calls reuse it.

    Returns:
        True if spans are being recorded, False if tracing is off or setup
        failed without being required.

    Raises:
        TracingConfigError: If setup fails and tracing is required.
    """
    global _provider

    if settings is None:
        settings = load_tracing_settings()

    if not settings.enabled:
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False
    if _provider is not None:
        return True

    try:
        provider = TracerProvider(
            resource=Resource.create({"service.name": settings.service_name})
        )
        provider.add_span_processor(_span_processor(settings))
        trace.set_tracer_provider(provider)
    except Exception as exc:
        logger.error("Failed to configure OpenTelemetry tracing: %s", exc)
        if settings.required:
            raise TracingConfigError(
                f"Tracing is required but could not be set up: {exc}"
            ) from exc
        return False

    _provider = provider
    logger.info(
        "OpenTelemetry tracing configured: service=%s exporter=%s",
        settings.service_name,
        "in-memory" if settings.test_capture else settings.exporter,
    )
    return True


def get_test_spans() -> list[ReadableSpan]:
    """Spans captured in memory (empty unless test capture is on)."""
    if _capture_exporter is None:
        return []
    return list(_capture_exporter.get_finished_spans())


def reset_tracing() -> None:
    """Drop captured spans. The installed provider itself stays in place."""
    if _capture_exporter is not None:
        _capture_exporter.clear()
