"""Initial schema -- all tables, indexes, and protective triggers.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16
"""

from alembic import op

from merchforge.schema_sql import (
    indexes,
    tables_core,
    tables_design,
    tables_store,
    triggers,
)

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _execute_all(statements: list[str]) -> None:
    """Execute a list of SQL statements sequentially."""
    for stmt in statements:
        op.execute(stmt)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    _execute_all(tables_core.ALL)
    _execute_all(tables_design.ALL)
    _execute_all(tables_core.LEDGER)
    _execute_all(tables_store.ALL)
    _execute_all(indexes.ALL)
    _execute_all(triggers.FUNCTIONS_ALL)
    _execute_all(triggers.TRIGGERS_ALL)


def downgrade() -> None:
    _drop_triggers()
    _drop_functions()
    _drop_tables()


def _drop_triggers() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_credit_usages_immutable ON credit_usages;")
    for table in triggers.TOUCHED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_touch ON {table};")


def _drop_functions() -> None:
    op.execute("DROP FUNCTION IF EXISTS touch_updated_at();")
    op.execute("DROP FUNCTION IF EXISTS raise_immutable_error();")


def _drop_tables() -> None:
    tables = [
        "orders",
        "store_products",
        "credit_usages",
        "mockups",
        "generations",
        "designs",
        "subscriptions",
        "users",
    ]
    for table in tables:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
