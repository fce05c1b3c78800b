"""Tests for rate limiting and security headers middleware."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from merchforge.main import app
from merchforge.middleware.rate_limit import (
    RATE_LIMIT_RULES,
    find_matching_rule,
    resolve_identifier,
)


def _set_mock_redis(mock_redis):
    """Assign a mock Redis instance to app.state and return the previous value."""
    previous = getattr(app.state, "redis", None)
    app.state.redis = mock_redis
    return previous


def _restore_redis(previous):
    """Restore app.state.redis to its previous value."""
    if previous is None:
        try:
            del app.state.redis
        except AttributeError:
            pass
    else:
        app.state.redis = previous


def _mock_redis_with_count(count: int):
    mock_pipe = MagicMock()
    mock_pipe.zremrangebyscore = MagicMock(return_value=mock_pipe)
    mock_pipe.zadd = MagicMock(return_value=mock_pipe)
    mock_pipe.zcard = MagicMock(return_value=mock_pipe)
    mock_pipe.expire = MagicMock(return_value=mock_pipe)
    # Pipeline results: [zremrangebyscore, zadd, zcard, expire]
    mock_pipe.execute = AsyncMock(return_value=[0, True, count, True])

    mock_redis = AsyncMock()
    mock_redis.pipeline = MagicMock(return_value=mock_pipe)
    return mock_redis


def _request(headers=None, client=("203.0.113.7", 5000)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/generator/generate",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def probe_rule():
    """Temporarily append a limit-1 rule for a probe route."""
    original_rules = RATE_LIMIT_RULES.copy()
    RATE_LIMIT_RULES.append({
        "path": "/api/v1/ratelimit-probe",
        "limit": 1,
        "window": 60,
        "key": "ip",
    })
    try:
        yield
    finally:
        RATE_LIMIT_RULES.clear()
        RATE_LIMIT_RULES.extend(original_rules)


@app.get("/api/v1/ratelimit-probe")
async def _ratelimit_stub():
    return {"ok": True}


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_security_headers():
    """Verify security headers are present on the /health response."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "no-referrer"
    assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]
    assert "Cache-Control" not in response.headers
    assert "Strict-Transport-Security" not in response.headers


@pytest.mark.asyncio
async def test_api_responses_not_cached_and_hsts_behind_proxy():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/api/v1/ratelimit-probe", headers={"x-forwarded-proto": "https"},
        )

    assert response.headers["Cache-Control"] == "no-store"
    assert "max-age=31536000" in response.headers["Strict-Transport-Security"]


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------

def test_find_matching_rule():
    assert find_matching_rule("/api/v1/generator/generate", "POST")["limit"] == 20
    assert find_matching_rule("/api/v1/generator/generate", "GET") is None
    assert find_matching_rule("/api/v1/generator/action", "post")["limit"] == 60
    assert find_matching_rule(f"/api/v1/checkout/{uuid.uuid4()}", "POST")["key"] == "ip"
    assert find_matching_rule("/api/v1/credits/balance", "GET") is None


def test_resolve_identifier_prefers_signed_in_user():
    user_id = uuid.uuid4()
    rule = find_matching_rule("/api/v1/generator/generate", "POST")

    with patch("merchforge.middleware.rate_limit.decode_user_id", return_value=user_id) as decode:
        identifier = resolve_identifier(_request({"Authorization": "Bearer tok"}), rule)

    decode.assert_called_once_with("tok")
    assert identifier == f"user:{user_id}"


def test_resolve_identifier_reads_session_cookie():
    user_id = uuid.uuid4()
    rule = find_matching_rule("/api/v1/generator/generate", "POST")

    with patch("merchforge.middleware.rate_limit.decode_user_id", return_value=user_id) as decode:
        resolve_identifier(_request({"Cookie": "access_token=cookie-tok"}), rule)

    decode.assert_called_once_with("cookie-tok")


def test_resolve_identifier_falls_back_to_ip():
    rule = find_matching_rule("/api/v1/generator/generate", "POST")

    with patch("merchforge.middleware.rate_limit.decode_user_id", return_value=None):
        anonymous = resolve_identifier(_request({"Authorization": "Bearer junk"}), rule)
    forwarded = resolve_identifier(
        _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"}), rule,
    )

    assert anonymous == "ip:203.0.113.7"
    assert forwarded == "ip:198.51.100.1"


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health_not_rate_limited():
    """/health endpoint should never receive rate limit headers."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers
    assert "X-RateLimit-Remaining" not in response.headers
    assert "X-RateLimit-Reset" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(probe_rule):
    """Verify X-RateLimit-* headers are returned for rate-limited endpoints."""
    previous = _set_mock_redis(_mock_redis_with_count(1))
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/ratelimit-probe")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "X-RateLimit-Reset" in response.headers
    finally:
        _restore_redis(previous)


@pytest.mark.asyncio
async def test_rate_limit_exceeded(probe_rule):
    previous = _set_mock_redis(_mock_redis_with_count(2))
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/ratelimit-probe")

        assert response.status_code == 429
        assert response.json() == {
            "ok": False, "error": "Too many requests. Please try again later.",
        }
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
    finally:
        _restore_redis(previous)


@pytest.mark.asyncio
async def test_rate_limit_skipped_on_redis_error(probe_rule):
    """When Redis is unavailable the request should still succeed (fail-open)."""
    mock_redis = AsyncMock()
    mock_redis.pipeline = MagicMock(side_effect=ConnectionError("Redis down"))

    previous = _set_mock_redis(mock_redis)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/ratelimit-probe")

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers
    finally:
        _restore_redis(previous)
