from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# The service only returns JSON, so nothing may be framed or loaded from it.
_API_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Resource-Policy": "same-site",
}

_HSTS_VALUE = "max-age=31536000; includeSubDomains"

# Balances and order states change per request.
_NO_STORE_PREFIX = "/api/"


def _is_https(request: Request) -> bool:
    forwarded = request.headers.get("x-forwarded-proto", "")
    return request.url.scheme == "https" or forwarded.split(",")[0].strip() == "https"


def apply_api_headers(response: Response, path: str, is_https: bool) -> None:
    for name, value in _API_HEADERS.items():
        response.headers[name] = value
    if path.startswith(_NO_STORE_PREFIX):
        response.headers["Cache-Control"] = "no-store"
    if is_https:
        response.headers["Strict-Transport-Security"] = _HSTS_VALUE


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers on every response, plus no-store on API payloads."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        apply_api_headers(response, request.url.path, _is_https(request))
        return response
