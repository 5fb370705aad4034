"""
Health check endpoints.

Provides:
- Liveness probe
- Readiness probe
- Detailed health status
- Prometheus metrics
"""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from essence import __version__
from essence.core.dependencies import get_container
from essence.core.logging import get_logger
from essence.core.metrics import get_metrics

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def root(request: Request):
    """Root endpoint with service info."""
    return {
        "service": request.app.state.settings.service_name,
        "version": __version__,
        "docs": "/docs",
    }


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns service health status for load balancers and k8s probes.
    """
    container = get_container(request)

    health_info = {
        "status": "healthy",
        "version": __version__,
        "checks": {},
    }

    # Database
    try:
        database = await container.get("database")
        await database.ping()
        health_info["checks"]["database"] = {"status": "healthy"}
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        health_info["checks"]["database"] = {
            "status": "unhealthy",
            "error": type(e).__name__,
        }

    # Voice provider: an open circuit or missing key degrades, never kills
    provider = await container.get("voice_provider")
    provider_health = provider.get_health_info()
    provider_ok = (
        provider_health.get("configured", True)
        and provider_health.get("circuit_breaker_state", "closed") == "closed"
    )
    health_info["checks"]["voice_provider"] = {
        "status": "healthy" if provider_ok else "degraded",
        "details": provider_health,
    }

    statuses = [c.get("status") for c in health_info["checks"].values()]
    if "unhealthy" in statuses:
        health_info["status"] = "unhealthy"
        status_code = 503
    elif "degraded" in statuses:
        health_info["status"] = "degraded"
        status_code = 200
    else:
        status_code = 200

    return JSONResponse(content=health_info, status_code=status_code)


@router.get("/health/live")
async def liveness_probe():
    """Kubernetes liveness probe."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(request: Request):
    """Kubernetes readiness probe."""
    try:
        database = await get_container(request).get("database")
        await database.ping()
    except Exception as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        return JSONResponse(
            content={"status": "not_ready", "reason": "database_unavailable"},
            status_code=503,
        )
    return {"status": "ready"}


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    collector = get_metrics()
    return Response(content=collector.export(), media_type=collector.content_type())
