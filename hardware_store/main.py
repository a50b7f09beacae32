import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .cache import CacheService
from .clients.cloudinary import CloudinaryClient
from .clients.email import SendGridClient
from .clients.paystack import PaystackClient
from .clients.sms import TwilioClient
from .config import Settings, configure_logging
from .database import Database
from .deps import AppContext
from .errors import ConfigurationError, RateLimitError, StoreError, ValidationError
from .ratelimit import RateLimiter
from .routers import admin, auth, cart, catalog, checkout, health, notifications, orders, payments, profile, services, uploads
from .seed import seed_database
from .services.checkout import CheckoutService
from .services.notifications import NotificationService
from .services.orders import OrderService
from .services.payments import PaymentService

logger = logging.getLogger(__name__)

HTTP_ERROR_NAMES = {
    400: "ValidationError",
    401: "AuthError",
    403: "ForbiddenError",
    404: "NotFoundError",
    405: "MethodNotAllowed",
    409: "ConflictError",
    429: "RateLimitError",
}


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _error(request: Request, status_code: int, error: str, message: str, **extra) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": _request_id(request), **extra}
    headers = {"X-Request-ID": _request_id(request)} if _request_id(request) else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        extra = {}
        if isinstance(exc, ValidationError) and exc.details:
            extra["details"] = exc.details
        if isinstance(exc, RateLimitError):
            extra["retry_after"] = exc.retry_after
        message = exc.message
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
            if not settings.is_development:
                message = "Internal server error"
        response = _error(request, exc.status_code, type(exc).__name__, message, **extra)
        if isinstance(exc, RateLimitError):
            response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return _error(request, 400, "ValidationError", "Invalid request", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        name = HTTP_ERROR_NAMES.get(exc.status_code, "HTTPError")
        return _error(request, exc.status_code, name, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if settings.is_development else "Internal server error"
        return _error(request, 500, "InternalError", message)


def create_app(
    settings: Settings,
    database: Optional[Database] = None,
    cache: Optional[CacheService] = None,
    email=None,
    sms=None,
    paystack=None,
    storage=None,
) -> FastAPI:
    db = database or Database.connect(settings.database_url, settings.database_name, settings.mongo_transactions)
    ctx = AppContext(
        settings=settings,
        db=db,
        cache=cache or CacheService.from_settings(settings),
        email=email or SendGridClient.from_settings(settings),
        sms=sms or TwilioClient.from_settings(settings),
        paystack=paystack or PaystackClient.from_settings(settings),
        storage=storage or CloudinaryClient.from_settings(settings),
    )
    ctx.notifications = NotificationService(db, ctx.email, ctx.sms, settings)
    ctx.checkout = CheckoutService(db, settings.low_stock_threshold)
    ctx.orders = OrderService(db)
    ctx.payments = PaymentService(db, ctx.paystack, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.ensure_indexes()
        if settings.seed_database:
            seed_database(db, settings)
        logger.info("Hardware store API %s started (%s)", __version__, settings.env)
        yield
        if database is None:
            db.close()

    app = FastAPI(title="Hardware Store API", version=__version__, lifespan=lifespan)
    app.state.context = ctx

    allow_all = "*" in settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allowed_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    register_error_handlers(app, settings)

    api = APIRouter(prefix="/api", dependencies=[Depends(RateLimiter("api"))])
    api.include_router(auth.router, dependencies=[Depends(RateLimiter("auth"))])
    for module in (catalog, profile, cart, checkout, orders, services, payments, uploads, notifications, admin):
        api.include_router(module.router)
    app.include_router(api)
    app.include_router(health.router)

    @app.get("/")
    def root():
        return {"message": "Hardware Store API running", "version": __version__}

    return app


def run() -> None:
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        configure_logging()
        logger.error("Configuration error: %s", exc.message)
        sys.exit(1)
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips=",".join(settings.trusted_proxies),
    )


if __name__ == "__main__":
    run()
