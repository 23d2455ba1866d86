# File: slicegen/validators.py
"""
slicegen - Collection & Batch Plan Validators
==============================================
Pydantic handles per-field structural correctness while the loader parses.
This module adds the cross-entity checks that must pass **before any file
is written**:

- reserved column names that would clash with generated columns,
- option / widget consistency inside a field's meta,
- translatable field names that do not exist,
- batch plans: dialect, targets, duplicate targets, undefined collections,
  missing or unparsable schema files and the ``only`` filter.

Every check appends to a :class:`ValidationResult`; callers decide whether
errors abort (the orchestrator always does).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from slicegen.errors import ValidationError
from slicegen.loader import load_field_schema
from slicegen.models import (
    BatchConfig,
    CollectionDescriptor,
    CollectionEntry,
    FieldDefinition,
    FieldType,
    GlobalConfig,
)
from slicegen.typemap import SUPPORTED_DIALECTS

logger: logging.Logger = logging.getLogger("slicegen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def is_valid(self) -> bool:
        return not any(e.is_error for e in self._items)

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def raise_for_errors(self, message: str) -> None:
        """Raise :class:`ValidationError` carrying every error, if any."""
        if not self.is_valid:
            raise ValidationError(message, [f"[{e.code}] {e.message}" for e in self.errors])

    def format_report(self) -> str:
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "✗" if item.is_error else "⚠"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Collection checks
# ---------------------------------------------------------------------------

_ALWAYS_RESERVED: Tuple[str, ...] = ("id", "teamId", "owner")
_METADATA_FIELDS: Tuple[str, ...] = ("createdAt", "updatedAt", "createdBy", "updatedBy")
_OPTION_TYPES: Set[str] = {FieldType.STRING.value, FieldType.TEXT.value, FieldType.ARRAY.value}


def reserved_field_names(descriptor: CollectionDescriptor, config: GlobalConfig) -> Set[str]:
    """Column names the storage emitter adds on its own."""
    reserved: Set[str] = set(_ALWAYS_RESERVED)
    if config.flags.use_metadata:
        reserved.update(_METADATA_FIELDS)
    if descriptor.has_translations:
        reserved.add("translations")
    if descriptor.has_hierarchy:
        reserved.update(descriptor.hierarchy.reserved_fields)  # type: ignore[union-attr]
    elif descriptor.has_sortable:
        reserved.add(descriptor.order_field)
    return reserved


def validate_field_meta(f: FieldDefinition) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"field": f.name}

    if f.meta.display_as == "optionsSelect" and not f.meta.options:
        result.add_error(
            "FIELD_OPTIONS_MISSING",
            f"Field '{f.name}' uses displayAs 'optionsSelect' but declares no options.",
            ctx,
        )
    if f.meta.options is not None and str(f.type) not in _OPTION_TYPES:
        result.add_warning(
            "FIELD_OPTIONS_IGNORED",
            f"Field '{f.name}' of type '{f.type}' declares options; they are ignored.",
            ctx,
        )
    if f.meta.max_length is not None and str(f.type) not in ("string", "text"):
        result.add_warning(
            "FIELD_MAXLENGTH_IGNORED",
            f"Field '{f.name}' of type '{f.type}' declares maxLength; it is ignored.",
            ctx,
        )
    if f.ref_target and str(f.type) not in ("string", "reference", "array"):
        result.add_error(
            "FIELD_REF_TYPE",
            f"Field '{f.name}' references '{f.ref_target}' but has type '{f.type}'.",
            ctx,
        )
    if f.type == FieldType.REFERENCE.value and not f.ref_target:
        result.add_error(
            "FIELD_REF_TARGET_MISSING",
            f"Reference field '{f.name}' has no refTarget.",
            ctx,
        )
    if f.meta.depends_on and not f.meta.depends_on_collection:
        result.add_warning(
            "FIELD_DEPENDS_INCOMPLETE",
            f"Field '{f.name}' sets dependsOn without dependsOnCollection; treated as a plain field.",
            ctx,
        )
    return result


def validate_descriptor(descriptor: CollectionDescriptor, config: GlobalConfig) -> ValidationResult:
    """All collection-level checks for one descriptor."""
    result: ValidationResult = ValidationResult()
    label: str = f"{descriptor.layer}/{descriptor.raw_name}"

    if not descriptor.fields:
        result.add_warning("COLLECTION_EMPTY", f"Collection '{label}' declares no fields.")

    reserved: Set[str] = reserved_field_names(descriptor, config)
    for f in descriptor.fields:
        if f.name in reserved:
            result.add_error(
                "FIELD_RESERVED",
                f"Field '{f.name}' in '{label}' clashes with a generated column.",
                {"field": f.name},
            )
        result.merge(validate_field_meta(f))

    names: Set[str] = {f.name for f in descriptor.fields}
    for t in descriptor.translatable_fields:
        if t not in names:
            result.add_error(
                "TRANSLATION_UNKNOWN_FIELD",
                f"Translatable field '{t}' is not declared in '{label}'.",
            )
    if descriptor.has_hierarchy and descriptor.sortable is not None:
        result.add_warning(
            "SORTABLE_WITH_HIERARCHY",
            f"'{label}' enables both hierarchy and sortable; hierarchy ordering wins.",
        )
    return result


# ---------------------------------------------------------------------------
# Batch plan checks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlannedCollection:
    """One validated ``layer/collection`` pair of a batch plan."""

    layer: str
    entry: CollectionEntry
    fields_path: Path
    fields: Tuple[FieldDefinition, ...]


def _resolve_fields_path(entry: CollectionEntry, base_dir: Path) -> Path:
    p: Path = Path(entry.fields_file)
    return p if p.is_absolute() else (base_dir / p)


def validate_batch_plan(
    batch: BatchConfig,
    base_dir: Path,
    only: Optional[str] = None,
) -> Tuple[ValidationResult, List[PlannedCollection]]:
    """
    Validate a whole batch before anything is written.

    Every schema file referenced by a selected target is loaded here, so
    an unknown field type anywhere in the batch fails the plan.

    Returns:
        The result and, when valid, the planned collections in target order.
    """
    result: ValidationResult = ValidationResult()
    planned: List[PlannedCollection] = []

    if str(batch.dialect) not in SUPPORTED_DIALECTS:
        result.add_error(
            "BATCH_DIALECT",
            f"Unknown dialect '{batch.dialect}'. Supported: {', '.join(SUPPORTED_DIALECTS)}.",
        )

    defined: Dict[str, CollectionEntry] = {}
    for entry in batch.collections:
        if entry.name in defined:
            result.add_error("BATCH_DUPLICATE_COLLECTION", f"Collection '{entry.name}' defined twice.")
        defined[entry.name] = entry

    if not batch.targets:
        result.add_error("BATCH_NO_TARGETS", "Batch config declares no targets.")

    if only is not None and only not in defined:
        result.add_error(
            "BATCH_ONLY_UNKNOWN",
            f"--only '{only}' does not name a defined collection.",
        )

    seen_targets: Set[Tuple[str, str]] = set()
    targeted: Set[str] = set()
    parsed: Dict[str, Tuple[Path, Tuple[FieldDefinition, ...]]] = {}

    for target in batch.targets:
        if not target.collections:
            result.add_error("BATCH_EMPTY_TARGET", f"Target layer '{target.layer}' lists no collections.")
        for name in target.collections:
            key: Tuple[str, str] = (target.layer, name)
            if key in seen_targets:
                result.add_error("BATCH_DUPLICATE_TARGET", f"Target '{target.layer}/{name}' listed twice.")
                continue
            seen_targets.add(key)
            targeted.add(name)

            entry: Optional[CollectionEntry] = defined.get(name)
            if entry is None:
                result.add_error(
                    "BATCH_UNDEFINED_COLLECTION",
                    f"Target '{target.layer}/{name}' names an undefined collection.",
                )
                continue
            if only is not None and name != only:
                continue

            if name not in parsed:
                path: Path = _resolve_fields_path(entry, base_dir)
                try:
                    parsed[name] = (path, tuple(load_field_schema(path)))
                except ValidationError as exc:
                    result.add_error(
                        "BATCH_SCHEMA_INVALID",
                        f"Collection '{name}': {exc.message}",
                        {"path": str(path)},
                    )
                    continue

            fields_path, fields = parsed[name]
            planned.append(PlannedCollection(target.layer, entry, fields_path, fields))

    for name in defined:
        if name not in targeted:
            result.add_warning("BATCH_UNUSED_COLLECTION", f"Collection '{name}' is not targeted.")

    if result.is_valid:
        logger.info("Batch plan valid: %d collection(s) to generate.", len(planned))
    else:
        logger.error("Batch plan invalid: %s", result.summary())
    return result, (planned if result.is_valid else [])


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "PlannedCollection",
    "reserved_field_names",
    "validate_field_meta",
    "validate_descriptor",
    "validate_batch_plan",
]

logger.debug("slicegen.validators loaded.")
