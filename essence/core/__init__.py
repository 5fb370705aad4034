"""Core infrastructure components."""

from essence.core.dependencies import Container, Ref, build_container
from essence.core.logging import get_logger, setup_logging
from essence.core.metrics import MetricsCollector, get_metrics
from essence.core.tracing import CorrelationIdMiddleware
from essence.core.errors import (
    EssenceError,
    ValidationError,
    NotFoundError,
    ProviderError,
    error_handler,
)

__all__ = [
    "Container",
    "Ref",
    "build_container",
    "get_logger",
    "setup_logging",
    "MetricsCollector",
    "get_metrics",
    "CorrelationIdMiddleware",
    "EssenceError",
    "ValidationError",
    "NotFoundError",
    "ProviderError",
    "error_handler",
]
