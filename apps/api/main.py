"""
Ascent Ledger API.

Application wiring: logging, Sentry, middleware, error handling, health
endpoints and the Recovery Track routers.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import auth, crisis_protocol, recovery_checkin, transition, mode_switch, crisis_fog_check, tokens, streak
from core.cache import get_redis_client
from core.config import settings
from core.database import check_db_connection
from core.logging import reset_request_id, set_request_id, setup_logging
from core.rate_limit import RateLimitMiddleware
from core.security_headers import SecurityHeadersMiddleware
import logging
import time
import uuid

setup_logging()
logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")


def _scrub_event(event, hint):
    """Drop credentials from Sentry events."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in SENSITIVE_HEADERS:
                headers.pop(name)
    return event


def _init_sentry() -> None:
    if not settings.SENTRY_DSN:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        from sentry_sdk.integrations.redis import RedisIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                RedisIntegration(),
            ],
            send_default_pii=False,
            before_send=_scrub_event,
        )
        logger.info(f"Sentry enabled ({settings.ENVIRONMENT})")
    except Exception as e:
        logger.error(f"Sentry init failed: {e}")


_init_sentry()

docs_enabled = settings.DEBUG or settings.EXPOSE_API_DOCS
app = FastAPI(
    title="Ascent Ledger API",
    description="Recovery Track: crisis protocols, weekly check-ins, Crisis Fog Checks and the reward ledger",
    version="1.0.0",
    docs_url="/docs" if docs_enabled else None,
    redoc_url="/redoc" if docs_enabled else None,
)


def _cors_origins() -> list:
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After"],
)
app.add_middleware(SecurityHeadersMiddleware)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, default_limit=settings.RATE_LIMIT_PER_MINUTE, window=60)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag the request with an id (client-supplied or generated) and log its outcome."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = set_request_id(request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.error(f"{request.method} {request.url.path} failed", exc_info=True)
        raise
    finally:
        reset_request_id(token)

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {elapsed_ms}ms",
        extra={
            "extra_fields": {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            }
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Internal error text stays in the logs
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
def health():
    """
    Readiness probe.

    503 when the database is unreachable. Redis is reported but optional:
    rate limiting fails open without it.
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {
        "status": "healthy",
        "database": "ok",
        "redis": "ok" if get_redis_client() else "unavailable",
        "timestamp": time.time(),
    }


@app.get("/ping")
def ping():
    """Liveness probe; touches nothing."""
    return {"pong": True}


for module in (auth, crisis_protocol, recovery_checkin, transition, mode_switch, crisis_fog_check, tokens, streak):
    app.include_router(module.router)
