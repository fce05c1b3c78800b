"""Tests for ORM model imports, table names, relationships and schema modules."""

import pytest

from merchforge.models import (
    Base,
    CreditUsage,
    Design,
    Generation,
    Mockup,
    Order,
    StoreProduct,
    Subscription,
    User,
)

# All model classes paired with their expected table names
MODEL_TABLE_PAIRS = [
    (User, "users"),
    (Subscription, "subscriptions"),
    (CreditUsage, "credit_usages"),
    (Design, "designs"),
    (Generation, "generations"),
    (Mockup, "mockups"),
    (StoreProduct, "store_products"),
    (Order, "orders"),
]


class TestModelImports:
    @pytest.mark.parametrize(
        "model_cls,expected_table",
        MODEL_TABLE_PAIRS,
        ids=[pair[1] for pair in MODEL_TABLE_PAIRS],
    )
    def test_model_importable_and_table_name(self, model_cls, expected_table):
        assert model_cls.__tablename__ == expected_table


class TestBaseMetadata:
    """Verify the Base metadata registers all 8 tables."""

    def test_all_tables_registered(self):
        registered = set(Base.metadata.tables.keys())
        expected = {pair[1] for pair in MODEL_TABLE_PAIRS}
        assert expected == registered


class TestRelationships:
    @pytest.mark.parametrize("attr", ["subscription", "credit_usages", "designs"])
    def test_user_has_relationship(self, attr):
        assert attr in User.__mapper__.relationships

    def test_design_generations(self):
        assert "generations" in Design.__mapper__.relationships
        assert "design" in Generation.__mapper__.relationships


class TestConstraints:
    def test_subscription_one_per_user(self):
        assert Subscription.__table__.c.user_id.unique

    def test_product_slug_unique_per_owner(self):
        constraint = Base.metadata.tables["store_products"].constraints
        names = {c.name for c in constraint}
        assert "uq_store_product_owner_slug" in names

    def test_ledger_balance_never_negative(self):
        names = {c.name for c in CreditUsage.__table__.constraints}
        assert "ck_credit_usage_balance" in names

    def test_metadata_column_name(self):
        """``metadata`` is reserved on declarative classes, so the attribute is ``metadata_``."""
        assert "metadata" in Design.__table__.c
        assert Design.__mapper__.attrs["metadata_"].columns[0].name == "metadata"


class TestMigrationSyntax:
    """Verify the migration file and SQL modules are syntactically valid."""

    def test_migration_compiles(self):
        import py_compile

        py_compile.compile(
            "src/alembic/versions/001_initial_schema.py", doraise=True
        )

    def test_sql_modules_import(self):
        from merchforge.schema_sql import (
            indexes,
            tables_core,
            tables_design,
            tables_store,
            triggers,
        )

        assert len(tables_core.ALL) > 0
        assert len(tables_core.LEDGER) > 0
        assert len(tables_design.ALL) > 0
        assert len(tables_store.ALL) > 0
        assert len(indexes.ALL) > 0
        assert len(triggers.FUNCTIONS_ALL) > 0
        assert len(triggers.TRIGGERS_ALL) == 1 + len(triggers.TOUCHED_TABLES)
