"""Shared FastAPI dependencies: session resolution and result rendering."""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import Cookie, Depends, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from merchforge.config import settings
from merchforge.enums import ErrorCode
from merchforge.exceptions import UnauthorizedError
from merchforge.services.results import CamelModel, ServiceFailure

log = structlog.get_logger()

# Optional bearer scheme -- auto_error=False so we can fall back to cookies
_bearer_scheme = HTTPBearer(auto_error=False)

ERROR_STATUS = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INSUFFICIENT_CREDITS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def decode_user_id(token: str) -> UUID | None:
    """Subject of a valid access token, or None for anything else."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=["HS256"])
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        log.warning("access_token_bad_subject")
        return None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    access_token: str | None = Cookie(default=None),
) -> UUID | None:
    """Resolve the caller from the request, or None when there is no usable session.

    Token sources (checked in order):
      1. Authorization: Bearer <token> header
      2. ``access_token`` cookie

    Services answer UNAUTHORIZED themselves, so a missing session is not an
    HTTP error here.
    """
    token = credentials.credentials if credentials is not None else access_token
    if not token:
        return None
    return decode_user_id(token)


def render_result(result: CamelModel) -> JSONResponse:
    """camelCase body; failures carry the status that matches their code."""
    status_code = status.HTTP_200_OK
    if isinstance(result, ServiceFailure):
        status_code = ERROR_STATUS[result.code]
    return JSONResponse(status_code=status_code, content=result.to_json())


def unauthorized_response() -> JSONResponse:
    return render_result(ServiceFailure.from_error(UnauthorizedError()))
