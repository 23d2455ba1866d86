"""
tests/test_typemap.py
Unit tests for slicegen.typemap.

Tests cover:
- Table lookups and failure on unknown types/dialects
- Drizzle column rendering for both dialects
- zod validation expressions, TypeScript types and defaults
- Dependent fields overriding their declared type
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from slicegen.errors import ValidationError
from slicegen.models import FieldDefinition
from slicegen.typemap import (
    DEPENDENT_SPEC,
    SUPPORTED_DIALECTS,
    TYPE_TABLE,
    field_default,
    field_ts_type,
    field_validation,
    is_json_field,
    resolve_type,
    storage_column,
    storage_function,
)


def _field(name: str, type_: str, **meta: Any) -> FieldDefinition:
    data: Dict[str, Any] = {"name": name, "type": type_}
    if meta:
        data["meta"] = meta
    return FieldDefinition.model_validate(data)


# ===========================================================================
# Lookups
# ===========================================================================


class TestResolveType:
    """Every abstract type has an entry for every dialect."""

    def test_supported_dialects(self) -> None:
        assert SUPPORTED_DIALECTS == ("pg", "sqlite")

    @pytest.mark.parametrize("type_name", sorted(TYPE_TABLE))
    @pytest.mark.parametrize("dialect", ["pg", "sqlite"])
    def test_table_is_complete(self, type_name: str, dialect: str) -> None:
        spec = resolve_type(type_name, dialect)
        assert spec.storage_for(dialect), f"{type_name} has no {dialect} builder"
        assert spec.validation_expr.startswith("z.")

    def test_unknown_type_lists_supported(self) -> None:
        with pytest.raises(ValidationError) as exc:
            resolve_type("geometry", "pg")
        assert "Supported" in str(exc.value)
        assert "decimal" in str(exc.value)

    def test_unknown_dialect(self) -> None:
        with pytest.raises(ValidationError) as exc:
            resolve_type("string", "mysql")
        assert "mysql" in str(exc.value)


# ===========================================================================
# Storage columns
# ===========================================================================


class TestStorageColumn:
    """Drizzle column expressions per dialect."""

    def test_sqlite_required_string(self) -> None:
        f = _field("title", "string", required=True, maxLength=200)
        assert storage_column(f, "sqlite") == "text('title').notNull()"

    def test_pg_string_with_max_length(self) -> None:
        f = _field("title", "string", required=True, maxLength=200)
        assert storage_column(f, "pg") == "varchar('title', { length: 200 }).notNull()"
        assert storage_function(f, "pg") == "varchar"

    def test_pg_string_without_length_is_text(self) -> None:
        f = _field("title", "string")
        assert storage_function(f, "pg") == "text"
        assert storage_column(f, "pg") == "text('title')"

    def test_decimal(self) -> None:
        f = _field("price", "decimal")
        assert storage_column(f, "sqlite") == "real('price')"
        assert storage_column(f, "pg") == "numeric('price')"

    def test_number_default(self) -> None:
        f = _field("stock", "number", default=5)
        assert storage_column(f, "sqlite") == "integer('stock').default(5)"

    def test_sqlite_boolean(self) -> None:
        f = _field("active", "boolean")
        assert storage_column(f, "sqlite") == (
            "integer('active', { mode: 'boolean' }).$default(() => false)"
        )

    def test_pg_boolean_default_true(self) -> None:
        f = _field("active", "boolean", default=True)
        assert storage_column(f, "pg") == "boolean('active').default(true)"

    def test_dates(self) -> None:
        f = _field("publishedAt", "date")
        assert storage_column(f, "sqlite") == "integer('publishedAt', { mode: 'timestamp' })"
        assert storage_column(f, "pg") == "timestamp('publishedAt', { withTimezone: true })"

    def test_json_defaults(self) -> None:
        assert storage_column(_field("settings", "json"), "pg") == (
            "jsonb('settings').$default(() => ({}))"
        )
        assert storage_column(_field("variants", "repeater"), "sqlite") == (
            "jsonColumn('variants').$default(() => ([]))"
        )

    def test_unique(self) -> None:
        f = _field("sku", "string", required=True, unique=True)
        assert storage_column(f, "sqlite") == "text('sku').notNull().unique()"


# ===========================================================================
# Validation, types, defaults
# ===========================================================================


class TestFieldValidation:
    def test_required_string(self) -> None:
        f = _field("title", "string", required=True, maxLength=200)
        assert field_validation(f) == "z.string().max(200).min(1, 'Title is required')"

    def test_optional_number(self) -> None:
        assert field_validation(_field("price", "decimal")) == "z.number().optional()"

    def test_nullable_optional(self) -> None:
        f = _field("note", "text", nullable=True)
        assert field_validation(f) == "z.string().nullable().optional()"

    def test_dates(self) -> None:
        assert field_validation(_field("d", "date", required=True)) == "z.date()"
        assert field_validation(_field("d", "date")) == "z.date().nullable().optional()"

    def test_custom_label_in_message(self) -> None:
        f = _field("title", "string", required=True, label="Name")
        assert "'Name is required'" in field_validation(f)


class TestTypesAndDefaults:
    def test_options_become_literal_union(self) -> None:
        f = _field("status", "string", options=["draft", "done"])
        assert field_ts_type(f) == "'draft' | 'done'"

    def test_plain_types(self) -> None:
        assert field_ts_type(_field("n", "number")) == "number"
        assert field_ts_type(_field("d", "date")) == "Date | null"
        assert field_ts_type(_field("t", "array")) == "string[]"

    def test_defaults(self) -> None:
        assert field_default(_field("title", "string")) == "''"
        assert field_default(_field("active", "boolean")) == "false"
        assert field_default(_field("stock", "number", default=3)) == "3"
        assert field_default(_field("status", "string", default="draft")) == "'draft'"


class TestDependentFields:
    """dependsOn + dependsOnCollection stores an id array whatever the type."""

    def _dependent(self) -> FieldDefinition:
        return _field(
            "slots",
            "string",
            dependsOn="locationId",
            dependsOnCollection="locations",
        )

    def test_is_dependent(self) -> None:
        assert self._dependent().is_dependent

    def test_overrides(self) -> None:
        f = self._dependent()
        assert storage_function(f, "sqlite") == DEPENDENT_SPEC.storage_for("sqlite")
        assert field_validation(f) == "z.array(z.string()).nullable().optional()"
        assert field_ts_type(f) == "string[] | null"
        assert field_default(f) == "null"
        assert is_json_field(f)

    def test_plain_string_is_not_json(self) -> None:
        assert not is_json_field(_field("title", "string"))
        assert is_json_field(_field("tags", "array"))
