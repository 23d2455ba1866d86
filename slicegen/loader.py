# File: slicegen/loader.py
"""
slicegen - Schema Loader
=========================
Reads field-schema files and batch config files (JSON or YAML, dispatched
on extension) and turns them into validated pydantic models.

A field-schema file is an object keyed by field name::

    {
      "title": {"type": "string", "meta": {"required": true, "maxLength": 120}},
      "price": {"type": "decimal"},
      "categoryId": {"type": "string", "refTarget": "categories"}
    }

A list of ``{"name": ..., "type": ...}`` objects is accepted as well.

Every failure surfaces as :class:`~slicegen.errors.ValidationError` with
one issue line per problem, so a batch can report all of them at once.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from slicegen.errors import ValidationError
from slicegen.models import (
    BatchConfig,
    CollectionDescriptor,
    FieldDefinition,
    GlobalConfig,
    HierarchyConfig,
    SeedConfig,
    SortableConfig,
    TranslationConfig,
)
from slicegen.typemap import TYPE_TABLE
from slicegen.utils import to_camel_case, to_plural

logger: logging.Logger = logging.getLogger("slicegen.loader")


# ---------------------------------------------------------------------------
# Raw file loading
# ---------------------------------------------------------------------------


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{path} is not valid UTF-8: {exc.reason} at byte {exc.start}") from exc
    except OSError as exc:
        raise ValidationError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def _load_json_file(path: Path) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    try:
        return yaml.safe_load(_read_text(path))
    except yaml.YAMLError as exc:
        raise ValidationError(f"Invalid YAML in {path}: {exc}") from exc


def load_data_file(path: Path) -> Any:
    """
    Load a JSON or YAML document.

    Dispatches on extension; unknown extensions are tried as JSON first,
    then YAML.

    Raises:
        ValidationError: missing or unreadable file, directory, non-UTF-8
            or unparsable content.
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"File not found: {path}")
    if not path.is_file():
        raise ValidationError(f"Path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValidationError:
        return _load_yaml_file(path)


def _format_pydantic_errors(exc: PydanticValidationError, prefix: str) -> List[str]:
    issues: List[str] = []
    for err in exc.errors():
        loc: str = ".".join(str(p) for p in err.get("loc", ()))
        where: str = f"{prefix}.{loc}" if loc else prefix
        issues.append(f"{where}: {err.get('msg', 'invalid value')}")
    return issues


# ---------------------------------------------------------------------------
# Field schemas
# ---------------------------------------------------------------------------


def _normalise_entries(raw: Any, source: str) -> List[Dict[str, Any]]:
    if isinstance(raw, dict):
        entries: List[Dict[str, Any]] = []
        for name, spec in raw.items():
            if not isinstance(spec, dict):
                raise ValidationError(
                    f"Malformed schema {source}",
                    [f"field {name!r}: expected an object, got {type(spec).__name__}"],
                )
            entries.append({"name": name, **spec})
        return entries
    if isinstance(raw, list):
        for i, spec in enumerate(raw):
            if not isinstance(spec, dict) or "name" not in spec:
                raise ValidationError(
                    f"Malformed schema {source}",
                    [f"item {i}: expected an object with a 'name' key"],
                )
        return [dict(spec) for spec in raw]
    raise ValidationError(
        f"Malformed schema {source}: expected an object keyed by field name, "
        f"got {type(raw).__name__}."
    )


def parse_field_schema(raw: Any, source: str = "<memory>") -> List[FieldDefinition]:
    """
    Validate a raw field schema into ``FieldDefinition`` records.

    All problems are collected before raising.

    Raises:
        ValidationError: unknown type, bad meta, duplicate or invalid names.
    """
    entries: List[Dict[str, Any]] = _normalise_entries(raw, source)
    fields: List[FieldDefinition] = []
    issues: List[str] = []
    seen: Dict[str, int] = {}

    for entry in entries:
        name: str = str(entry.get("name", ""))
        type_name: Any = entry.get("type")
        seen[name] = seen.get(name, 0) + 1

        if type_name is None:
            issues.append(f"field {name!r}: missing 'type'")
            continue
        if str(type_name) not in TYPE_TABLE:
            issues.append(
                f"field {name!r}: unknown type {type_name!r} "
                f"(supported: {', '.join(sorted(TYPE_TABLE))})"
            )
            continue
        try:
            fields.append(FieldDefinition.model_validate(entry))
        except PydanticValidationError as exc:
            issues.extend(_format_pydantic_errors(exc, f"field {name!r}"))

    for name, count in seen.items():
        if count > 1:
            issues.append(f"field {name!r}: declared {count} times")

    if issues:
        raise ValidationError(f"Invalid field schema {source}", issues)

    logger.debug("Parsed %d field(s) from %s.", len(fields), source)
    return fields


def load_field_schema(path: Path) -> List[FieldDefinition]:
    """Load and validate a field-schema file."""
    raw: Any = load_data_file(Path(path))
    return parse_field_schema(raw, str(path))


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


def _configured_translations(name: str, config: GlobalConfig) -> List[str]:
    table: Dict[str, List[str]] = config.translations.collections
    for key in (name, to_plural(name), to_camel_case(name)):
        if key in table:
            return list(table[key])
    return []


def build_descriptor(
    layer: str,
    name: str,
    fields: List[FieldDefinition],
    config: GlobalConfig,
    *,
    hierarchy: Optional[HierarchyConfig] = None,
    sortable: Optional[SortableConfig] = None,
    seed: Optional[SeedConfig] = None,
    collab: bool = False,
) -> CollectionDescriptor:
    """
    Assemble a ``CollectionDescriptor``.

    Translatable fields come from ``meta.translatable`` plus the
    project-wide ``translations.collections`` table, unless translations
    are switched off for the run.
    """
    translation: Optional[TranslationConfig] = None
    if not config.flags.no_translations:
        names: List[str] = [f.name for f in fields if f.meta.translatable]
        for extra in _configured_translations(name, config):
            if extra not in names:
                names.append(extra)
        if names:
            translation = TranslationConfig(
                fields=names,
                locales=list(config.locales),
                default_locale=config.locales[0],
            )

    try:
        return CollectionDescriptor(
            raw_name=name,
            layer=layer,
            fields=fields,
            hierarchy=hierarchy,
            sortable=sortable,
            translation=translation,
            seed=seed,
            collab=collab,
        )
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid collection {layer}/{name}",
            _format_pydantic_errors(exc, f"{layer}/{name}"),
        ) from exc


def load_descriptor(
    layer: str,
    name: str,
    fields_file: Path,
    config: GlobalConfig,
    **options: Any,
) -> CollectionDescriptor:
    """Load *fields_file* and build the descriptor for ``layer/name``."""
    fields: List[FieldDefinition] = load_field_schema(fields_file)
    return build_descriptor(layer, name, fields, config, **options)


# ---------------------------------------------------------------------------
# Batch configs
# ---------------------------------------------------------------------------


def parse_batch_config(raw: Any, source: str = "<memory>") -> BatchConfig:
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Malformed batch config {source}: expected an object, got {type(raw).__name__}."
        )
    try:
        return BatchConfig.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid batch config {source}", _format_pydantic_errors(exc, "config")
        ) from exc


def load_batch_config(path: Path) -> Tuple[BatchConfig, Path]:
    """
    Load a batch config file.

    Returns the config and the directory ``fieldsFile`` paths are
    relative to.
    """
    path = Path(path)
    batch: BatchConfig = parse_batch_config(load_data_file(path), str(path))
    logger.info(
        "Loaded batch config %s: %d collection(s), %d target(s).",
        path,
        len(batch.collections),
        len(batch.targets),
    )
    return batch, path.resolve().parent


__all__: List[str] = [
    "load_data_file",
    "parse_field_schema",
    "load_field_schema",
    "build_descriptor",
    "load_descriptor",
    "parse_batch_config",
    "load_batch_config",
]

logger.debug("slicegen.loader loaded.")
