"""Shared result envelope for service operations.

Every public service operation returns either its own success model or a
``ServiceFailure``; both serialize with camelCase keys and an ``ok`` flag so
HTTP handlers can pass them through unchanged.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from merchforge.enums import ErrorCode
from merchforge.exceptions import ServiceError


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ServiceFailure(CamelModel):
    ok: Literal[False] = False
    code: ErrorCode
    error: str

    @classmethod
    def from_error(cls, exc: ServiceError) -> ServiceFailure:
        return cls(code=exc.code, error=exc.message)


def server_failure(message: str) -> ServiceFailure:
    return ServiceFailure(code=ErrorCode.SERVER_ERROR, error=message)


def parse_uuid(value: object) -> uuid.UUID | None:
    """Identifier from a request body, or None when it is not a UUID at all."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None
