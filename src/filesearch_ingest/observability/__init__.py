"""Observability module.

Provides the OpenTelemetry tracing baseline for outbound store requests.
"""

from filesearch_ingest.observability.tracing import (
    TRACER_NAME,
    TracingSettings,
    configure_tracing,
    load_tracing_settings,
    sanitize_url,
)

__all__ = [
    "TRACER_NAME",
    "TracingSettings",
    "configure_tracing",
    "load_tracing_settings",
    "sanitize_url",
]
