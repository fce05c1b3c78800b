import time
from dataclasses import dataclass

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from merchforge.api.dependencies import decode_user_id

log = structlog.get_logger()


# Only endpoints that spend credits or create orders are limited.
# Rules are matched top-to-bottom; the first matching rule wins.
RATE_LIMIT_RULES = [
    {
        "path": "/api/v1/generator/generate",
        "limit": 20,
        "window": 3600,
        "key": "user",
        "method": "POST",
    },
    {
        "path": "/api/v1/generator/action",
        "limit": 60,
        "window": 3600,
        "key": "user",
        "method": "POST",
    },
    {
        "path": "/api/v1/checkout",
        "limit": 10,
        "window": 600,
        "key": "ip",
        "method": "POST",
    },
]

SKIP_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."


@dataclass
class RateLimitResult:
    """Holds the outcome of a sliding-window rate limit check."""

    current_count: int
    limit: int
    window: int
    reset_at: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    @property
    def exceeded(self) -> bool:
        return self.current_count > self.limit


def find_matching_rule(path: str, method: str) -> dict | None:
    for rule in RATE_LIMIT_RULES:
        if not path.startswith(rule["path"]):
            continue
        required_method = rule.get("method")
        if required_method and required_method.upper() != method.upper():
            continue
        return rule
    return None


def _get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For when present."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _token_from_request(request: Request) -> str | None:
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get("access_token")


def resolve_identifier(request: Request, rule: dict) -> str:
    """User id for per-user rules when the caller is signed in, else the client IP."""
    if rule["key"] == "user":
        token = _token_from_request(request)
        user_id = decode_user_id(token) if token else None
        if user_id is not None:
            return f"user:{user_id}"
    return f"ip:{_get_client_ip(request)}"


async def _check_rate_limit(redis, redis_key: str, rule: dict, request: Request) -> RateLimitResult:
    """Execute the sliding window check against Redis and return the result."""
    now = int(time.time())
    window = rule["window"]

    pipe = redis.pipeline()
    pipe.zremrangebyscore(redis_key, 0, now - window)
    pipe.zadd(redis_key, {f"{now}:{id(request)}": now})
    pipe.zcard(redis_key)
    pipe.expire(redis_key, window)
    results = await pipe.execute()

    return RateLimitResult(
        current_count=results[2],
        limit=rule["limit"],
        window=window,
        reset_at=now + window,
    )


def _add_rate_limit_headers(response: Response, result: RateLimitResult) -> None:
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(result.reset_at)


def _build_429_response(result: RateLimitResult) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"ok": False, "error": RATE_LIMITED_MESSAGE},
    )
    _add_rate_limit_headers(response, result)
    response.headers["Retry-After"] = str(result.window)
    return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-backed sliding window limiter for costed endpoints.

    When Redis is unreachable the request goes through unlimited; the
    credit ledger still bounds what a caller can spend.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        rule = find_matching_rule(request.url.path, request.method)
        if rule is None:
            return await call_next(request)

        identifier = resolve_identifier(request, rule)
        redis_key = f"ratelimit:{rule['path']}:{identifier}"

        try:
            result = await _check_rate_limit(request.app.state.redis, redis_key, rule, request)
        except Exception as exc:
            log.warning("rate_limit_redis_error", error=str(exc), path=request.url.path)
            return await call_next(request)

        if result.exceeded:
            log.warning(
                "rate_limit_exceeded",
                path=request.url.path,
                identifier=identifier,
                limit=result.limit,
                count=result.current_count,
            )
            return _build_429_response(result)

        response = await call_next(request)
        _add_rate_limit_headers(response, result)
        return response
