import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from merchforge.config import settings
from merchforge.api.checkout import router as checkout_router
from merchforge.api.credits import router as credits_router
from merchforge.api.dependencies import render_result
from merchforge.api.designs import router as designs_router
from merchforge.api.generator import router as generator_router
from merchforge.api.mockups import router as mockups_router
from merchforge.api.orders import router as orders_router
from merchforge.api.products import router as products_router
from merchforge.enums import ErrorCode
from merchforge.middleware.rate_limit import RateLimitMiddleware
from merchforge.middleware.security import SecurityHeadersMiddleware
from merchforge.services.results import ServiceFailure

INVALID_PAYLOAD = "Invalid request payload."

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.APP_ENV == "development"
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("starting_up", env=settings.APP_ENV, image_provider=settings.IMAGE_PROVIDER)
    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await redis.ping()
        log.info("redis_connected", url=settings.REDIS_URL)
    except Exception as e:
        log.warning("redis_connection_failed", error=str(e))
    app.state.redis = redis

    yield

    # Shutdown
    log.info("shutting_down")
    await redis.aclose()


app = FastAPI(
    title="MerchForge Core",
    lifespan=lifespan,
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "development" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RateLimitMiddleware)


@app.exception_handler(RequestValidationError)
async def invalid_payload_handler(request: Request, exc: RequestValidationError):
    # malformed bodies share the service failure envelope and status
    log.info("invalid_payload", path=request.url.path, errors=len(exc.errors()))
    return render_result(ServiceFailure(code=ErrorCode.VALIDATION, error=INVALID_PAYLOAD))


app.include_router(generator_router)
app.include_router(credits_router)
app.include_router(designs_router)
app.include_router(mockups_router)
app.include_router(orders_router)
app.include_router(products_router)
app.include_router(checkout_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
