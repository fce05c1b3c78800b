#!/usr/bin/env python3
"""Ledger reconciliation script.

Every debit and top-up records the balance it left behind, so the newest
``credit_usages.balance_after`` for a user must equal the live
``subscriptions.remaining_credits``.  Subscriptions with no usage yet must
still hold their full monthly allowance.

Usage:
    DATABASE_URL=postgresql://... python scripts/reconcile_credits.py

Exit codes:
    0 -- all balances match
    1 -- one or more discrepancies found
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from datetime import datetime, timezone

import asyncpg  # type: ignore[import-untyped]

DEFAULT_DATABASE_URL = "postgresql://merchforge:devpassword@db:5432/merchforge"

_DRIFT_QUERY = """
    WITH latest AS (
        SELECT DISTINCT ON (user_id) user_id, balance_after
        FROM credit_usages
        ORDER BY user_id, created_at DESC, usage_id DESC
    )
    SELECT
        s.user_id,
        s.remaining_credits AS stored_balance,
        COALESCE(l.balance_after, s.monthly_credits) AS ledger_balance,
        l.user_id IS NOT NULL AS has_entries
    FROM subscriptions s
    LEFT JOIN latest l USING (user_id)
    WHERE s.remaining_credits <> COALESCE(l.balance_after, s.monthly_credits)
    ORDER BY s.user_id
"""


def _get_dsn() -> str:
    """Return a raw ``postgresql://`` DSN (strip any SQLAlchemy dialect prefix)."""
    url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://"):
        if url.startswith(prefix):
            url = "postgresql://" + url[len(prefix):]
    return url


def build_discrepancy(row) -> dict:
    return {
        "user_id": str(row["user_id"]),
        "stored_balance": row["stored_balance"],
        "ledger_balance": row["ledger_balance"],
        "difference": row["stored_balance"] - row["ledger_balance"],
        "has_ledger_entries": row["has_entries"],
    }


async def reconcile(dsn: str) -> list[dict]:
    """Return one dict per subscription whose balance disagrees with its ledger."""
    conn: asyncpg.Connection = await asyncpg.connect(dsn)
    try:
        rows = await conn.fetch(_DRIFT_QUERY)
        return [build_discrepancy(row) for row in rows]
    finally:
        await conn.close()


async def main() -> int:
    discrepancies = await reconcile(_get_dsn())

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_discrepancies": len(discrepancies),
        "discrepancies": discrepancies,
    }

    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")

    return 1 if discrepancies else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
