"""
Prometheus metrics for monitoring and alerting.

Metrics include:
- Request latency histograms
- Request counts by endpoint/status
- Voice provider call timing and outcomes
- Voice model status transitions
- Synthesized message volume
"""

import time
from typing import Callable, Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Create a custom registry
REGISTRY = CollectorRegistry()

# =============================================================================
# Request Metrics
# =============================================================================

REQUEST_COUNT = Counter(
    "essence_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "essence_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

ACTIVE_REQUESTS = Gauge(
    "essence_active_requests",
    "Number of active requests",
    registry=REGISTRY,
)

# =============================================================================
# Provider Metrics
# =============================================================================

PROVIDER_CALLS = Counter(
    "essence_provider_calls_total",
    "Voice provider calls",
    ["operation", "outcome"],
    registry=REGISTRY,
)

PROVIDER_LATENCY = Histogram(
    "essence_provider_call_duration_seconds",
    "Voice provider call latency",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

CIRCUIT_STATE = Gauge(
    "essence_circuit_breaker_open",
    "Whether a circuit breaker is open (1) or not (0)",
    ["circuit"],
    registry=REGISTRY,
)

# =============================================================================
# Voice Lifecycle Metrics
# =============================================================================

VOICE_TRANSITIONS = Counter(
    "essence_voice_status_transitions_total",
    "Voice model status transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

CLEANUP_FAILURES = Counter(
    "essence_voice_cleanup_failures_total",
    "Remote voice releases that failed and were absorbed",
    registry=REGISTRY,
)

# =============================================================================
# Message Metrics
# =============================================================================

MESSAGES_SYNTHESIZED = Counter(
    "essence_messages_synthesized_total",
    "Messages synthesized",
    ["status"],
    registry=REGISTRY,
)

MESSAGE_DURATION = Histogram(
    "essence_message_estimated_duration_seconds",
    "Estimated duration of synthesized messages",
    buckets=[5, 10, 30, 60, 120, 240, 480],
    registry=REGISTRY,
)

# =============================================================================
# Service Info
# =============================================================================

SERVICE_INFO = Info(
    "essence_service",
    "Service information",
    registry=REGISTRY,
)


class MetricsCollector:
    """Centralized metrics collection."""

    def __init__(self):
        self._registry = REGISTRY

    def set_service_info(self, version: str, environment: str):
        """Set service information."""
        SERVICE_INFO.info({
            "version": version,
            "environment": environment,
        })

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration: float,
    ):
        """Record HTTP request metrics."""
        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code,
        ).inc()

        REQUEST_LATENCY.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

    def record_provider_call(self, operation: str, success: bool, duration: float):
        """Record a voice provider call."""
        PROVIDER_CALLS.labels(
            operation=operation,
            outcome="success" if success else "error",
        ).inc()
        PROVIDER_LATENCY.labels(operation=operation).observe(duration)

    def set_circuit_open(self, circuit: str, is_open: bool):
        CIRCUIT_STATE.labels(circuit=circuit).set(1 if is_open else 0)

    def record_transition(self, from_status: str, to_status: str):
        """Record a voice model status change."""
        if from_status != to_status:
            VOICE_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()

    def record_cleanup_failure(self):
        CLEANUP_FAILURES.inc()

    def record_message(self, success: bool, duration_seconds: Optional[int] = None):
        """Record a message synthesis attempt."""
        MESSAGES_SYNTHESIZED.labels(status="success" if success else "error").inc()
        if success and duration_seconds is not None:
            MESSAGE_DURATION.observe(duration_seconds)

    def export(self) -> bytes:
        """Export metrics in Prometheus format."""
        return generate_latest(self._registry)

    def content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()
        # Route templates keep label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        try:
            response = await call_next(request)
            route = request.scope.get("route")
            endpoint = getattr(route, "path", endpoint)
            get_metrics().record_request(
                method=request.method,
                endpoint=endpoint,
                status_code=response.status_code,
                duration=time.perf_counter() - start_time,
            )
            return response

        except Exception:
            get_metrics().record_request(
                method=request.method,
                endpoint=endpoint,
                status_code=500,
                duration=time.perf_counter() - start_time,
            )
            raise

        finally:
            ACTIVE_REQUESTS.dec()
