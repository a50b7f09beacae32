from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import __version__
from ..database import utc_now
from ..deps import AppContext, get_context

router = APIRouter(prefix="/health", tags=["health"])


def _cache_status(ctx: AppContext) -> str:
    if not ctx.cache.enabled:
        return "disabled"
    return "healthy" if ctx.cache.ping() else "unhealthy"


@router.get("")
def liveness():
    return {"status": "ok", "service": "hardware-store-api", "version": __version__, "timestamp": utc_now()}


@router.get("/db")
def database_health(ctx: AppContext = Depends(get_context)):
    if ctx.db.ping():
        return {"status": "healthy", "database": ctx.db.name}
    return JSONResponse(status_code=503, content={"status": "unhealthy", "database": ctx.db.name})


@router.get("/cache")
def cache_health(ctx: AppContext = Depends(get_context)):
    status = _cache_status(ctx)
    return JSONResponse(status_code=503 if status == "unhealthy" else 200, content={"status": status})


@router.get("/services")
def services_health(ctx: AppContext = Depends(get_context)):
    return {
        "email": "configured" if ctx.email.is_configured() else "not_configured",
        "sms": "configured" if ctx.sms.is_configured() else "not_configured",
        "payments": "configured" if ctx.paystack.is_configured() else "not_configured",
        "storage": "configured" if ctx.storage.is_configured() else "not_configured",
    }


@router.get("/full")
def full_health(ctx: AppContext = Depends(get_context)):
    database = "healthy" if ctx.db.ping() else "unhealthy"
    cache = _cache_status(ctx)
    healthy = database == "healthy" and cache != "unhealthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "timestamp": utc_now().isoformat(),
            "checks": {"database": database, "cache": cache, "services": services_health(ctx)},
        },
    )
