# File: slicegen/typemap.py
"""
slicegen - Type Mapping Table
==============================
Static mapping from abstract field types to everything an emitter needs:
zod validation expression, TypeScript type, default literal, Drizzle
storage builder per dialect, and the UI widget hint.

Lookups never fall back.  An unknown type or dialect raises
:class:`~slicegen.errors.ValidationError` naming what is supported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple

from slicegen.errors import ValidationError
from slicegen.models import Dialect, FieldDefinition, FieldType
from slicegen.utils import ts_literal, ts_string

logger: logging.Logger = logging.getLogger("slicegen.typemap")

SUPPORTED_DIALECTS: Tuple[str, ...] = tuple(d.value for d in Dialect)

_JSON_TYPES: FrozenSet[str] = frozenset(
    {FieldType.JSON.value, FieldType.REPEATER.value, FieldType.ARRAY.value}
)


@dataclass(frozen=True, slots=True)
class TypeSpec:
    """Everything the emitters know about one abstract type."""

    name: str
    validation_expr: str
    ts_type: str
    default_literal: str
    storage_type: Dict[str, str] = field(default_factory=dict)
    widget_hint: str = "UInput"

    def storage_for(self, dialect: str) -> str:
        return self.storage_type[dialect]


# ---------------------------------------------------------------------------
# The table
# ---------------------------------------------------------------------------

TYPE_TABLE: Dict[str, TypeSpec] = {
    "string": TypeSpec(
        "string", "z.string()", "string", "''",
        {"pg": "varchar", "sqlite": "text"}, "UInput",
    ),
    "text": TypeSpec(
        "text", "z.string()", "string", "''",
        {"pg": "text", "sqlite": "text"}, "UTextarea",
    ),
    "number": TypeSpec(
        "number", "z.number()", "number", "0",
        {"pg": "integer", "sqlite": "integer"}, "UInputNumber",
    ),
    "decimal": TypeSpec(
        "decimal", "z.number()", "number", "0",
        {"pg": "numeric", "sqlite": "real"}, "UInputNumber",
    ),
    "boolean": TypeSpec(
        "boolean", "z.boolean()", "boolean", "false",
        {"pg": "boolean", "sqlite": "integer"}, "UCheckbox",
    ),
    "date": TypeSpec(
        "date", "z.date()", "Date | null", "null",
        {"pg": "timestamp", "sqlite": "integer"}, "CroutonCalendar",
    ),
    "json": TypeSpec(
        "json", "z.record(z.string(), z.any())", "Record<string, any>", "{}",
        {"pg": "jsonb", "sqlite": "jsonColumn"}, "UTextarea",
    ),
    "repeater": TypeSpec(
        "repeater", "z.array(z.any())", "any[]", "[]",
        {"pg": "jsonb", "sqlite": "jsonColumn"}, "CroutonFormRepeater",
    ),
    "array": TypeSpec(
        "array", "z.array(z.string())", "string[]", "[]",
        {"pg": "jsonb", "sqlite": "jsonColumn"}, "UInputTags",
    ),
    "reference": TypeSpec(
        "reference", "z.string()", "string", "''",
        {"pg": "text", "sqlite": "text"}, "CroutonFormReferenceSelect",
    ),
}

# Dependent fields always store an array of ids, whatever their declared type.
DEPENDENT_SPEC: TypeSpec = TypeSpec(
    "dependent", "z.array(z.string())", "string[] | null", "null",
    {"pg": "jsonb", "sqlite": "jsonColumn"}, "CroutonFormDependentButtonGroup",
)


def check_dialect(dialect: str) -> str:
    if dialect not in SUPPORTED_DIALECTS:
        raise ValidationError(
            f"Unknown dialect {dialect!r}. Supported: {', '.join(SUPPORTED_DIALECTS)}."
        )
    return dialect


def resolve_type(type_name: str, dialect: str) -> TypeSpec:
    """
    Look up *type_name* for *dialect*.

    Raises:
        ValidationError: unknown type or dialect.
    """
    check_dialect(dialect)
    spec = TYPE_TABLE.get(str(type_name))
    if spec is None:
        raise ValidationError(
            f"Unknown field type {type_name!r}. Supported: {', '.join(sorted(TYPE_TABLE))}."
        )
    return spec


def field_spec(f: FieldDefinition, dialect: str) -> TypeSpec:
    """TypeSpec for a concrete field, accounting for dependent fields."""
    spec: TypeSpec = resolve_type(f.type, dialect)
    if f.is_dependent:
        return DEPENDENT_SPEC
    return spec


# ---------------------------------------------------------------------------
# Storage columns
# ---------------------------------------------------------------------------


def storage_function(f: FieldDefinition, dialect: str) -> str:
    """Name of the Drizzle column builder used for *f* (for imports)."""
    spec: TypeSpec = field_spec(f, dialect)
    builder: str = spec.storage_for(dialect)
    if builder == "varchar" and f.meta.max_length is None:
        return "text"
    return builder


def _json_default(f: FieldDefinition) -> str:
    if f.is_dependent:
        return "null"
    if f.meta.default is not None:
        return ts_literal(f.meta.default)
    return {"json": "{}", "repeater": "[]"}.get(str(f.type), "null")


def storage_column(f: FieldDefinition, dialect: str) -> str:
    """
    Render the Drizzle column expression for one user field.

    Examples:
        sqlite boolean → ``integer('active', { mode: 'boolean' }).$default(() => false)``
        pg string with maxLength 120 → ``varchar('title', { length: 120 }).notNull()``
    """
    builder: str = storage_function(f, dialect)
    name: str = ts_string(f.name)
    type_name: str = str(f.type)
    expr: str
    default: str = ""

    if builder == "jsonColumn" or builder == "jsonb":
        expr = f"{builder}({name})"
        default = f".$default(() => ({_json_default(f)}))"
    elif type_name == FieldType.BOOLEAN.value:
        value: str = "true" if f.meta.default is True else "false"
        if dialect == Dialect.SQLITE.value:
            expr = f"integer({name}, {{ mode: 'boolean' }})"
            default = f".$default(() => {value})"
        else:
            expr = f"boolean({name})"
            default = f".default({value})"
    elif type_name == FieldType.DATE.value:
        if dialect == Dialect.SQLITE.value:
            expr = f"integer({name}, {{ mode: 'timestamp' }})"
        else:
            expr = f"timestamp({name}, {{ withTimezone: true }})"
    elif builder == "varchar":
        expr = f"varchar({name}, {{ length: {f.meta.max_length} }})"
    else:
        expr = f"{builder}({name})"
        if f.meta.default is not None and type_name in ("number", "decimal"):
            default = f".default({ts_literal(f.meta.default)})"

    if f.meta.required:
        expr += ".notNull()"
    if f.meta.unique:
        expr += ".unique()"
    return expr + default


# ---------------------------------------------------------------------------
# Validation & TypeScript types
# ---------------------------------------------------------------------------


def field_validation(f: FieldDefinition, dialect: str = "sqlite") -> str:
    """Full zod expression for *f*, including required/optional modifiers."""
    spec: TypeSpec = field_spec(f, dialect)
    expr: str = spec.validation_expr

    if f.is_dependent:
        return expr + ".nullable()" + ("" if f.meta.required else ".optional()")

    type_name: str = str(f.type)
    if type_name in ("string", "text", "reference"):
        if f.meta.max_length:
            expr += f".max({f.meta.max_length})"
        if f.meta.required:
            expr += f".min(1, {ts_string(f.label + ' is required')})"
    if type_name == "date":
        expr = "z.date()" if f.meta.required else "z.date().nullable()"

    if not f.meta.required:
        if f.meta.nullable and type_name != "date":
            expr += ".nullable()"
        expr += ".optional()"
    return expr


def field_ts_type(f: FieldDefinition, dialect: str = "sqlite") -> str:
    spec: TypeSpec = field_spec(f, dialect)
    if f.meta.options and str(f.type) == "string":
        return " | ".join(ts_string(o) for o in f.meta.options)
    return spec.ts_type


def field_default(f: FieldDefinition, dialect: str = "sqlite") -> str:
    spec: TypeSpec = field_spec(f, dialect)
    if f.is_dependent:
        return "null"
    if f.meta.default is not None:
        return ts_literal(f.meta.default)
    return spec.default_literal


def is_json_field(f: FieldDefinition) -> bool:
    """True when the stored value needs JSON post-processing."""
    return f.is_dependent or str(f.type) in _JSON_TYPES


__all__: List[str] = [
    "SUPPORTED_DIALECTS",
    "TypeSpec",
    "TYPE_TABLE",
    "DEPENDENT_SPEC",
    "check_dialect",
    "resolve_type",
    "field_spec",
    "storage_function",
    "storage_column",
    "field_validation",
    "field_ts_type",
    "field_default",
    "is_json_field",
]

logger.debug("slicegen.typemap loaded — %d types.", len(TYPE_TABLE))
