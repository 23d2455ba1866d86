"""
tests/test_validators.py
Comprehensive unit tests for slicegen.loader and slicegen.validators.

Tests cover:
- JSON / YAML loading, malformed and non-UTF-8 files
- Field-schema parsing (object and list forms, unknown types, duplicates)
- Descriptor building with translations from meta and project config
- Reserved column names and option/widget consistency
- Batch plan validation: dialect, targets, undefined collections,
  invalid schema files and the --only filter
"""

from __future__ import annotations

import pathlib
from typing import Any, Callable, Dict

import pytest

from slicegen.errors import ValidationError
from slicegen.loader import (
    build_descriptor,
    load_batch_config,
    load_data_file,
    load_field_schema,
    parse_batch_config,
    parse_field_schema,
)
from slicegen.models import GenerationFlags, GlobalConfig, TranslationsSettings
from slicegen.validators import (
    ValidationResult,
    reserved_field_names,
    validate_batch_plan,
    validate_descriptor,
    validate_field_meta,
)


def _codes(result: ValidationResult) -> set:
    return {e.code for e in result.errors}


# ===========================================================================
# Raw file loading
# ===========================================================================


class TestLoadDataFile:
    """Extension dispatch and parse failures."""

    def test_json_and_yaml(self, write_schema: Callable[[str, Any], pathlib.Path]) -> None:
        data: Dict[str, Any] = {"title": {"type": "string"}}
        assert load_data_file(write_schema("a.json", data)) == data
        assert load_data_file(write_schema("a.yaml", data)) == data

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ValidationError, match="File not found"):
            load_data_file(tmp_path / "nope.json")

    def test_directory_rejected(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ValidationError, match="not a file"):
            load_data_file(tmp_path)

    def test_invalid_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ValidationError, match="Invalid JSON"):
            load_data_file(path)

    def test_non_utf8_bytes(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "latin.json"
        path.write_bytes(b'{"title": {"type": "string", "label": "\xff\xfe"}}')
        with pytest.raises(ValidationError, match="not valid UTF-8"):
            load_data_file(path)

    def test_non_utf8_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "latin.yaml"
        path.write_bytes(b"title:\n  label: \xe9t\xe9\n")
        with pytest.raises(ValidationError, match="not valid UTF-8"):
            load_data_file(path)

    def test_unknown_extension_falls_back_to_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "fields.schema"
        path.write_text("title:\n  type: string\n", encoding="utf-8")
        assert load_data_file(path) == {"title": {"type": "string"}}


# ===========================================================================
# Field schemas
# ===========================================================================


class TestParseFieldSchema:
    """Validation of raw field schemas into FieldDefinition records."""

    def test_object_form(self, products_fields: Dict[str, Any]) -> None:
        fields = parse_field_schema(products_fields)
        assert [f.name for f in fields] == ["title", "price"]
        assert fields[0].meta.required is True
        assert fields[0].meta.max_length == 200
        assert fields[1].type == "decimal"

    def test_list_form(self) -> None:
        fields = parse_field_schema([{"name": "title", "type": "string"}])
        assert fields[0].name == "title"

    def test_unknown_type_fails_with_supported_list(self) -> None:
        with pytest.raises(ValidationError) as exc:
            parse_field_schema({"geo": {"type": "geometry"}})
        assert any("geometry" in i and "supported" in i for i in exc.value.issues)

    def test_all_problems_reported(self) -> None:
        raw = {"a": {"type": "geometry"}, "b": {}, "c": {"type": "string"}}
        with pytest.raises(ValidationError) as exc:
            parse_field_schema(raw)
        assert len(exc.value.issues) == 2, f"Expected 2 issues, got {exc.value.issues}"

    def test_duplicate_names_in_list_form(self) -> None:
        raw = [{"name": "a", "type": "string"}, {"name": "a", "type": "text"}]
        with pytest.raises(ValidationError) as exc:
            parse_field_schema(raw)
        assert any("declared 2 times" in i for i in exc.value.issues)

    def test_malformed_field_entry(self) -> None:
        with pytest.raises(ValidationError, match="Malformed schema"):
            parse_field_schema({"title": "string"})

    def test_scalar_document_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Malformed schema"):
            parse_field_schema("title")

    def test_external_reference_marker(self) -> None:
        (f,) = parse_field_schema({"authorId": {"type": "string", "refTarget": ":users"}})
        assert f.ref_target == "users"
        assert f.ref_scope == "external"
        assert f.is_external_reference

    def test_unknown_meta_keys_preserved(self) -> None:
        (f,) = parse_field_schema({"title": {"type": "string", "meta": {"hint": "x"}}})
        assert f.meta.model_extra == {"hint": "x"}

    def test_load_from_file(self, products_file: pathlib.Path) -> None:
        assert len(load_field_schema(products_file)) == 2


class TestBuildDescriptor:
    """Options and translations folded into CollectionDescriptor."""

    def test_translatable_meta(self, make_descriptor: Callable[..., Any], rich_fields: Dict[str, Any]) -> None:
        d = make_descriptor("blog", "posts", rich_fields)
        assert d.translatable_fields == ["title"]
        assert d.translation.locales == ["en", "nl", "fr"]
        assert d.translation.default_locale == "en"

    def test_project_translations_table(self, host_project: pathlib.Path, products_fields: Dict[str, Any]) -> None:
        cfg = GlobalConfig(
            project_root=host_project,
            translations=TranslationsSettings(collections={"products": ["title"]}),
        )
        d = build_descriptor("shop", "products", parse_field_schema(products_fields), cfg)
        assert d.translatable_fields == ["title"]

    def test_no_translations_flag(self, host_project: pathlib.Path, rich_fields: Dict[str, Any]) -> None:
        cfg = GlobalConfig(project_root=host_project, flags=GenerationFlags(no_translations=True))
        d = build_descriptor("blog", "posts", parse_field_schema(rich_fields), cfg)
        assert d.translation is None
        assert not d.has_translations

    def test_hierarchy_toggle(self, make_descriptor: Callable[..., Any], products_fields: Dict[str, Any]) -> None:
        d = make_descriptor("shop", "products", products_fields, hierarchy=True)
        assert d.has_hierarchy
        assert d.has_sortable
        assert d.order_field == "order"

    def test_tree_requires_hierarchy(self, make_descriptor: Callable[..., Any], products_fields: Dict[str, Any]) -> None:
        flat = make_descriptor("shop", "products", products_fields)
        with pytest.raises(ValueError, match="shop/products has no hierarchy enabled"):
            flat.tree
        assert make_descriptor("shop", "products", products_fields, hierarchy=True).tree.parent_field == "parentId"

    def test_invalid_collection_name(self, make_descriptor: Callable[..., Any], products_fields: Dict[str, Any]) -> None:
        with pytest.raises(ValidationError, match="Invalid collection"):
            make_descriptor("shop", "9products", products_fields)


# ===========================================================================
# Collection-level checks
# ===========================================================================


class TestValidateDescriptor:
    def test_valid_descriptor(self, products_descriptor: Any, config: GlobalConfig) -> None:
        result = validate_descriptor(products_descriptor, config)
        assert result.is_valid, result.format_report()

    def test_reserved_names(self, make_descriptor: Callable[..., Any], config: GlobalConfig) -> None:
        d = make_descriptor("shop", "products", {"id": {"type": "string"}, "createdAt": {"type": "date"}})
        result = validate_descriptor(d, config)
        assert _codes(result) == {"FIELD_RESERVED"}
        assert len(result.errors) == 2

    def test_raise_for_errors(self, make_descriptor: Callable[..., Any], config: GlobalConfig) -> None:
        d = make_descriptor("shop", "products", {"id": {"type": "string"}})
        with pytest.raises(ValidationError) as exc:
            validate_descriptor(d, config).raise_for_errors("shop/products is invalid")
        assert exc.value.issues[0].startswith("[FIELD_RESERVED]")
        validate_descriptor(make_descriptor("shop", "tags", {"label": {"type": "string"}}), config).raise_for_errors("x")

    def test_hierarchy_columns_reserved(self, make_descriptor: Callable[..., Any], config: GlobalConfig) -> None:
        d = make_descriptor("shop", "categories", {"path": {"type": "string"}}, hierarchy=True)
        assert "parentId" in reserved_field_names(d, config)
        assert "FIELD_RESERVED" in _codes(validate_descriptor(d, config))

    def test_metadata_columns_free_without_metadata(
        self, make_descriptor: Callable[..., Any], host_project: pathlib.Path
    ) -> None:
        cfg = GlobalConfig(project_root=host_project, flags=GenerationFlags(use_metadata=False))
        d = make_descriptor("shop", "products", {"createdAt": {"type": "date"}}, config=cfg)
        assert validate_descriptor(d, cfg).is_valid

    def test_unknown_translation_field(self, host_project: pathlib.Path, products_fields: Dict[str, Any]) -> None:
        cfg = GlobalConfig(
            project_root=host_project,
            translations=TranslationsSettings(collections={"products": ["subtitle"]}),
        )
        d = build_descriptor("shop", "products", parse_field_schema(products_fields), cfg)
        assert "TRANSLATION_UNKNOWN_FIELD" in _codes(validate_descriptor(d, cfg))

    def test_empty_collection_warns(self, make_descriptor: Callable[..., Any], config: GlobalConfig) -> None:
        result = validate_descriptor(make_descriptor("shop", "products", {}), config)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["COLLECTION_EMPTY"]


class TestValidateFieldMeta:
    def _one(self, spec: Dict[str, Any]) -> Any:
        (f,) = parse_field_schema({"f": spec})
        return validate_field_meta(f)

    def test_options_select_without_options(self) -> None:
        result = self._one({"type": "string", "meta": {"displayAs": "optionsSelect"}})
        assert "FIELD_OPTIONS_MISSING" in _codes(result)

    def test_reference_without_target(self) -> None:
        assert "FIELD_REF_TARGET_MISSING" in _codes(self._one({"type": "reference"}))

    def test_reference_on_wrong_type(self) -> None:
        assert "FIELD_REF_TYPE" in _codes(self._one({"type": "boolean", "refTarget": "users"}))

    def test_ignored_meta_warns(self) -> None:
        result = self._one({"type": "number", "meta": {"maxLength": 3}})
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["FIELD_MAXLENGTH_IGNORED"]


# ===========================================================================
# Batch plans
# ===========================================================================


@pytest.fixture()
def batch_dir(
    tmp_path: pathlib.Path,
    products_file: pathlib.Path,
    categories_file: pathlib.Path,
) -> pathlib.Path:
    return tmp_path / "schemas"


def _batch(**overrides: Any) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "dialect": "sqlite",
        "collections": [
            {"name": "products", "fieldsFile": "products.json"},
            {"name": "categories", "fieldsFile": "categories.json", "hierarchy": True},
        ],
        "targets": [{"layer": "shop", "collections": ["products", "categories"]}],
    }
    raw.update(overrides)
    return raw


class TestValidateBatchPlan:
    """Whole-plan checks that run before anything is written."""

    def test_valid_plan(self, batch_dir: pathlib.Path) -> None:
        result, planned = validate_batch_plan(parse_batch_config(_batch()), batch_dir)
        assert result.is_valid, result.format_report()
        assert [(p.layer, p.entry.name) for p in planned] == [("shop", "products"), ("shop", "categories")]
        assert planned[1].entry.hierarchy is not None

    def test_unknown_dialect(self, batch_dir: pathlib.Path) -> None:
        result, planned = validate_batch_plan(parse_batch_config(_batch(dialect="mysql")), batch_dir)
        assert "BATCH_DIALECT" in _codes(result)
        assert planned == []

    def test_no_targets(self, batch_dir: pathlib.Path) -> None:
        result, _ = validate_batch_plan(parse_batch_config(_batch(targets=[])), batch_dir)
        assert "BATCH_NO_TARGETS" in _codes(result)

    def test_undefined_collection(self, batch_dir: pathlib.Path) -> None:
        raw = _batch(targets=[{"layer": "shop", "collections": ["products", "orders"]}])
        result, _ = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert "BATCH_UNDEFINED_COLLECTION" in _codes(result)

    def test_duplicate_target(self, batch_dir: pathlib.Path) -> None:
        raw = _batch(targets=[{"layer": "shop", "collections": ["products", "products"]}])
        result, _ = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert "BATCH_DUPLICATE_TARGET" in _codes(result)

    def test_empty_target(self, batch_dir: pathlib.Path) -> None:
        raw = _batch(targets=[{"layer": "shop", "collections": []}])
        result, _ = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert "BATCH_EMPTY_TARGET" in _codes(result)

    def test_invalid_schema_fails_whole_plan(
        self,
        batch_dir: pathlib.Path,
        write_schema: Callable[[str, Any], pathlib.Path],
    ) -> None:
        write_schema("broken.json", {"geo": {"type": "geometry"}})
        raw = _batch(
            collections=[
                {"name": "products", "fieldsFile": "products.json"},
                {"name": "broken", "fieldsFile": "broken.json"},
            ],
            targets=[{"layer": "shop", "collections": ["products", "broken"]}],
        )
        result, planned = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert _codes(result) == {"BATCH_SCHEMA_INVALID"}
        assert planned == []

    def test_missing_schema_file(self, batch_dir: pathlib.Path) -> None:
        raw = _batch(collections=[{"name": "products", "fieldsFile": "gone.json"}],
                     targets=[{"layer": "shop", "collections": ["products"]}])
        result, _ = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert "BATCH_SCHEMA_INVALID" in _codes(result)

    def test_undecodable_schema_file(self, batch_dir: pathlib.Path) -> None:
        (batch_dir / "latin.json").write_bytes(b'{"title": {"type": "string", "label": "\xff\xfe"}}')
        raw = _batch(collections=[{"name": "products", "fieldsFile": "latin.json"}],
                     targets=[{"layer": "shop", "collections": ["products"]}])
        result, planned = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert _codes(result) == {"BATCH_SCHEMA_INVALID"}
        assert "not valid UTF-8" in result.format_report()
        assert planned == []

    def test_only_filter(self, batch_dir: pathlib.Path) -> None:
        result, planned = validate_batch_plan(parse_batch_config(_batch()), batch_dir, only="categories")
        assert result.is_valid
        assert [p.entry.name for p in planned] == ["categories"]

    def test_only_unknown(self, batch_dir: pathlib.Path) -> None:
        result, _ = validate_batch_plan(parse_batch_config(_batch()), batch_dir, only="orders")
        assert "BATCH_ONLY_UNKNOWN" in _codes(result)

    def test_unused_collection_warns(self, batch_dir: pathlib.Path) -> None:
        raw = _batch(targets=[{"layer": "shop", "collections": ["products"]}])
        result, _ = validate_batch_plan(parse_batch_config(raw), batch_dir)
        assert result.is_valid
        assert "BATCH_UNUSED_COLLECTION" in {w.code for w in result.warnings}

    def test_load_batch_config_returns_base_dir(
        self, batch_dir: pathlib.Path, write_schema: Callable[[str, Any], pathlib.Path]
    ) -> None:
        path = write_schema("crouton.config.yaml", _batch())
        batch, base = load_batch_config(path)
        assert base == batch_dir.resolve()
        assert len(batch.collections) == 2

    def test_batch_config_not_an_object(self) -> None:
        with pytest.raises(ValidationError, match="Malformed batch config"):
            parse_batch_config(["products"])
