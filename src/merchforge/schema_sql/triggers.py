"""Trigger functions and trigger DDL for the initial schema."""

# ---- Trigger functions ----

FN_RAISE_IMMUTABLE = """
CREATE OR REPLACE FUNCTION raise_immutable_error()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'Rows in table % are immutable', TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql;
"""

FN_TOUCH_UPDATED_AT = """
CREATE OR REPLACE FUNCTION touch_updated_at()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = now();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

FUNCTIONS_ALL = [
    FN_RAISE_IMMUTABLE,
    FN_TOUCH_UPDATED_AT,
]

# ---- Triggers ----

TOUCHED_TABLES = ["subscriptions", "designs", "mockups", "store_products", "orders"]

TRIGGERS_ALL = [
    "CREATE TRIGGER trg_credit_usages_immutable "
    "BEFORE UPDATE OR DELETE ON credit_usages "
    "FOR EACH ROW EXECUTE FUNCTION raise_immutable_error();",
] + [
    f"CREATE TRIGGER trg_{table}_touch BEFORE UPDATE ON {table} "
    "FOR EACH ROW EXECUTE FUNCTION touch_updated_at();"
    for table in TOUCHED_TABLES
]
