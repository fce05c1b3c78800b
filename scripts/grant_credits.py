#!/usr/bin/env python3
"""Operator credit top-up.

Adds credits to one user's balance through the same ledger path the
application uses, so the TOP_UP entry and the audit event are written
together with the balance change.

Usage:
    DATABASE_URL=postgresql+asyncpg://... \
        python scripts/grant_credits.py <user-id> <amount> ["description"]

Exit codes:
    0 -- credits granted
    1 -- bad arguments or the grant was rejected
"""

from __future__ import annotations

import asyncio
import json
import sys
import uuid

from merchforge.database import async_session_factory, transaction
from merchforge.exceptions import ServiceError
from merchforge.services.credit_service import grant_credits

USAGE = "usage: grant_credits.py <user-id> <amount> [description]"


def parse_args(argv: list[str]) -> tuple[uuid.UUID, int, str] | None:
    if len(argv) not in (2, 3):
        return None
    try:
        user_id = uuid.UUID(argv[0])
        amount = int(argv[1])
    except ValueError:
        return None
    description = argv[2] if len(argv) == 3 else "Operator top-up"
    return user_id, amount, description


async def main(argv: list[str]) -> int:
    parsed = parse_args(argv)
    if parsed is None:
        sys.stderr.write(USAGE + "\n")
        return 1
    user_id, amount, description = parsed

    async with async_session_factory() as session:
        try:
            async with transaction(session):
                balance = await grant_credits(session, user_id, amount, description)
        except ServiceError as exc:
            sys.stderr.write(f"{exc.code.value}: {exc.message}\n")
            return 1

    json.dump({"user_id": str(user_id), "granted": amount, "balance": balance}, sys.stdout)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
