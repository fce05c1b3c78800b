"""Helpers for JSONB values travelling through raw ``text()`` queries.

asyncpg hands JSONB columns back as strings unless a codec is registered,
and rows written by older code may hold anything, so reads never raise.
"""

from __future__ import annotations

import json
from typing import Any


def dump(value: Any) -> str:
    return json.dumps(value, default=str)


def load(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def load_object(value: Any) -> dict[str, Any]:
    """Return *value* as a dict, or an empty dict for anything else."""
    loaded = load(value)
    return dict(loaded) if isinstance(loaded, dict) else {}


def load_list(value: Any) -> list[Any]:
    loaded = load(value)
    return list(loaded) if isinstance(loaded, list) else []
