"""
tests/test_mutator.py
Unit tests for slicegen.mutator.

Tests cover:
- extends arrays: insert, normalisation, nested and URL entries, idempotence, missing anchors
- schema index: append, conflicting exports, removal
- app-config registry: skeleton creation, imports, conflict and forced rebind
- locale files: nested insert and pruning removal
- SharedFileMutator apply / revert / dry-run bookkeeping, deletion of emptied files
- plan_unit edit ordering
"""

from __future__ import annotations

import json
import pathlib
from typing import Callable

import pytest

from slicegen.errors import AnchorNotFoundError, ConflictError
from slicegen.models import GlobalConfig, NamingSet, SharedFileKind
from slicegen.mutator import (
    SCHEMA_INDEX,
    SCHEMA_INDEX_SKELETON,
    ExtendsListEditor,
    SharedFileMutator,
    extends_edit,
    extends_span,
    locale_key,
    plan_unit,
    registry_path,
    schema_index_edit,
)
from slicegen.naming import derive_naming

REGISTRY_WITH_OTHER: str = (
    "import { otherConfig } from './other'\n"
    "\n"
    "export default defineAppConfig({\n"
    "  croutonCollections: {\n"
    "    shopProducts: otherConfig,\n"
    "  },\n"
    "})\n"
)


@pytest.fixture()
def mutator(host_project: pathlib.Path) -> SharedFileMutator:
    return SharedFileMutator(host_project)


def _edits_of(edits: list, kind: SharedFileKind) -> list:
    return [e for e in edits if e.kind == kind.value]


# ===========================================================================
# extends arrays
# ===========================================================================


class TestExtendsEditor:
    """Root and layer nuxt.config.ts extends arrays."""

    def test_append_to_existing_array(self, mutator: SharedFileMutator, read_host: Callable[[str], str]) -> None:
        mutator.apply([extends_edit("nuxt.config.ts", "./layers/shop", "shop", layer_level=True)])
        assert read_host("nuxt.config.ts") == (
            "export default defineNuxtConfig({\n"
            "  extends: ['@fyit/crouton', './layers/shop']\n"
            "})\n"
        )

    def test_multiline_array_stays_multiline(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, read_host: Callable[[str], str]
    ) -> None:
        (host_project / "nuxt.config.ts").write_text(
            "export default defineNuxtConfig({\n"
            "  extends: [\n"
            "    \"@fyit/crouton\", // core\n"
            "  ],\n"
            "})\n",
            encoding="utf-8",
        )
        mutator.apply([extends_edit("nuxt.config.ts", "./layers/shop", "shop", layer_level=True)])
        assert read_host("nuxt.config.ts") == (
            "export default defineNuxtConfig({\n"
            "  extends: [\n"
            "    '@fyit/crouton',\n"
            "    './layers/shop'\n"
            "  ],\n"
            "})\n"
        )

    def test_second_apply_is_skipped(self, mutator: SharedFileMutator, read_host: Callable[[str], str]) -> None:
        edit = extends_edit("nuxt.config.ts", "./layers/shop", "shop")
        mutator.apply([edit])
        before = read_host("nuxt.config.ts")
        report = mutator.apply([edit])
        assert [line.status for line in report.lines] == ["skipped"]
        assert read_host("nuxt.config.ts") == before

    def test_create_layer_config(self, mutator: SharedFileMutator, read_host: Callable[[str], str]) -> None:
        edit = extends_edit(
            "layers/shop/nuxt.config.ts", "./collections/products", "shop", kind=SharedFileKind.LAYER_EXTENDS
        )
        report = mutator.apply([edit])
        assert report.lines[0].status == "created"
        assert read_host("layers/shop/nuxt.config.ts") == (
            "export default defineNuxtConfig({\n"
            "  extends: [\n"
            "    './collections/products'\n"
            "  ],\n"
            "})\n"
        )

    def test_emptied_layer_config_is_deleted(self, mutator: SharedFileMutator, host_project: pathlib.Path) -> None:
        edit = extends_edit(
            "layers/shop/nuxt.config.ts", "./collections/products", "shop", kind=SharedFileKind.LAYER_EXTENDS
        )
        mutator.apply([edit])
        mutator.revert([edit])
        assert not (host_project / "layers/shop/nuxt.config.ts").exists()

    def test_emptied_root_config_with_options_is_kept(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, read_host: Callable[[str], str]
    ) -> None:
        (host_project / "nuxt.config.ts").write_text(
            "export default defineNuxtConfig({\n  ssr: false,\n})\n", encoding="utf-8"
        )
        edit = extends_edit("nuxt.config.ts", "./layers/shop", "shop", layer_level=True)
        mutator.apply([edit])
        mutator.revert([edit])
        assert "ssr: false" in read_host("nuxt.config.ts")

    def test_missing_anchor(self, mutator: SharedFileMutator, host_project: pathlib.Path) -> None:
        (host_project / "nuxt.config.ts").write_text("const config = 1\n", encoding="utf-8")
        with pytest.raises(AnchorNotFoundError) as exc:
            mutator.apply([extends_edit("nuxt.config.ts", "./layers/shop", "shop")])
        assert exc.value.path == "nuxt.config.ts"
        assert "defineNuxtConfig" in str(exc.value)

    def test_parse_entries_normalises(self) -> None:
        body = " 'a', // note\n \"b\", /* x */ 'a', ...extra,"
        assert ExtendsListEditor.parse_entries(body) == ["'a'", "'b'", "...extra"]

    def test_url_entry_survives_edit(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, read_host: Callable[[str], str]
    ) -> None:
        (host_project / "nuxt.config.ts").write_text(
            "export default defineNuxtConfig({\n"
            "  extends: ['@fyit/crouton', 'https://example.com/layer.tgz'],\n"
            "})\n",
            encoding="utf-8",
        )
        mutator.apply([extends_edit("nuxt.config.ts", "./layers/shop", "shop", layer_level=True)])
        assert read_host("nuxt.config.ts") == (
            "export default defineNuxtConfig({\n"
            "  extends: ['@fyit/crouton', 'https://example.com/layer.tgz', './layers/shop'],\n"
            "})\n"
        )

    def test_tuple_entry_kept_verbatim(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, read_host: Callable[[str], str]
    ) -> None:
        original = (
            "export default defineNuxtConfig({\n"
            "  extends: ['@fyit/crouton', ['github:org/theme', { auth: process.env.GH }]],\n"
            "  ssr: true,\n"
            "})\n"
        )
        (host_project / "nuxt.config.ts").write_text(original, encoding="utf-8")
        edit = extends_edit("nuxt.config.ts", "./layers/shop", "shop", layer_level=True)
        mutator.apply([edit])
        assert read_host("nuxt.config.ts") == (
            "export default defineNuxtConfig({\n"
            "  extends: ['@fyit/crouton', ['github:org/theme', { auth: process.env.GH }], './layers/shop'],\n"
            "  ssr: true,\n"
            "})\n"
        )
        mutator.revert([edit])
        assert read_host("nuxt.config.ts") == original

    def test_parse_entries_respects_nesting_and_strings(self) -> None:
        body = "'a,b', [1, 2], { x: ']' }, `t` // trailing ]\n"
        assert ExtendsListEditor.parse_entries(body) == ["'a,b'", "[1, 2]", "{ x: ']' }", "'t'"]

    def test_array_closing_bracket_inside_string(self) -> None:
        content = "extends: ['a]b', 'c'], other: [1]"
        span = extends_span(content)
        assert span is not None
        assert content[span[0]:span[2]] == "extends: ['a]b', 'c']"

    def test_remove_entry(self, mutator: SharedFileMutator, read_host: Callable[[str], str]) -> None:
        edit = extends_edit("nuxt.config.ts", "./layers/shop", "shop")
        mutator.apply([edit])
        mutator.revert([edit])
        content = read_host("nuxt.config.ts")
        assert "./layers/shop" not in content
        assert "'@fyit/crouton'" in content


# ===========================================================================
# Schema index
# ===========================================================================


class TestSchemaIndex:
    """server/db/schema.ts export lines."""

    def test_created_from_skeleton(
        self, mutator: SharedFileMutator, products_naming: NamingSet, read_host: Callable[[str], str]
    ) -> None:
        edit = schema_index_edit(products_naming)
        mutator.apply([edit])
        line = "export { shopProducts } from '../../layers/shop/collections/products/server/database/schema'"
        assert edit.idempotency_key == line
        assert read_host(SCHEMA_INDEX) == SCHEMA_INDEX_SKELETON + line + "\n"

    def test_revert_to_skeleton_deletes_file(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, products_naming: NamingSet
    ) -> None:
        edit = schema_index_edit(products_naming)
        mutator.apply([edit])
        report = mutator.revert([edit])
        assert not (host_project / SCHEMA_INDEX).exists()
        assert [line.detail for line in report.lines] == [f"- {edit.idempotency_key}", "no entries left"]

    def test_revert_keeps_host_exports(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        path = host_project / SCHEMA_INDEX
        path.parent.mkdir(parents=True)
        original = SCHEMA_INDEX_SKELETON + "export * from './custom'\n"
        path.write_text(original, encoding="utf-8")
        edit = schema_index_edit(products_naming)
        mutator.apply([edit])
        mutator.revert([edit])
        assert read_host(SCHEMA_INDEX) == original

    def test_conflicting_export(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, products_naming: NamingSet
    ) -> None:
        path = host_project / SCHEMA_INDEX
        path.parent.mkdir(parents=True)
        path.write_text("export { shopProducts } from './legacy/products'\n", encoding="utf-8")
        edit = schema_index_edit(products_naming)
        conflicts = mutator.find_conflicts([edit])
        assert conflicts == [f"{SCHEMA_INDEX}: shopProducts is already exported from ./legacy/products"]
        with pytest.raises(ConflictError):
            mutator.apply([edit])

    def test_forced_export_replaces_shadowed_line(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        path = host_project / SCHEMA_INDEX
        path.parent.mkdir(parents=True)
        path.write_text("export { shopProducts } from './legacy/products'\n", encoding="utf-8")
        mutator.apply([schema_index_edit(products_naming)], force=True)
        content = read_host(SCHEMA_INDEX)
        assert "./legacy/products" not in content
        assert content.count("export { shopProducts }") == 1


# ===========================================================================
# Registry
# ===========================================================================


class TestRegistry:
    """croutonCollections in app.config.ts."""

    def _edit(self, config: GlobalConfig, naming: NamingSet):
        return _edits_of(plan_unit(naming, config), SharedFileKind.REGISTRY)[0]

    def test_registry_path(self, host_project: pathlib.Path, tmp_path: pathlib.Path) -> None:
        assert registry_path(host_project) == "app/app.config.ts"
        assert registry_path(tmp_path / "bare") == "app.config.ts"

    def test_created_from_skeleton(
        self,
        mutator: SharedFileMutator,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        mutator.apply([self._edit(config, products_naming)])
        assert read_host("app/app.config.ts") == (
            "import { shopProductsConfig } from "
            "'../layers/shop/collections/products/app/composables/useShopProducts'\n"
            "\n"
            "export default defineAppConfig({\n"
            "  croutonCollections: {\n"
            "    shopProducts: shopProductsConfig,\n"
            "  },\n"
            "})\n"
        )

    def test_second_collection_joins_block(
        self,
        mutator: SharedFileMutator,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        mutator.apply([self._edit(config, products_naming)])
        mutator.apply([self._edit(config, derive_naming("categories", "shop"))])
        content = read_host("app/app.config.ts")
        assert content.count("croutonCollections") == 1
        assert "    shopCategories: shopCategoriesConfig," in content
        assert "import { shopCategoriesConfig } from" in content

    def test_conflict_without_force(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        (host_project / "app" / "app.config.ts").write_text(REGISTRY_WITH_OTHER, encoding="utf-8")
        with pytest.raises(ConflictError) as exc:
            mutator.apply([self._edit(config, products_naming)])
        assert "bound to otherConfig" in str(exc.value)
        assert read_host("app/app.config.ts") == REGISTRY_WITH_OTHER

    def test_force_rebinds_key(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        (host_project / "app" / "app.config.ts").write_text(REGISTRY_WITH_OTHER, encoding="utf-8")
        mutator.apply([self._edit(config, products_naming)], force=True)
        content = read_host("app/app.config.ts")
        assert "otherConfig" not in content
        assert content == (
            "import { shopProductsConfig } from "
            "'../layers/shop/collections/products/app/composables/useShopProducts'\n"
            "\n"
            "export default defineAppConfig({\n"
            "  croutonCollections: {\n"
            "    shopProducts: shopProductsConfig,\n"
            "  },\n"
            "})\n"
        )

    def test_force_rebind_keeps_import_still_in_use(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        shared = REGISTRY_WITH_OTHER.replace(
            "    shopProducts: otherConfig,\n", "    shopProducts: otherConfig,\n    legacy: otherConfig,\n"
        )
        (host_project / "app" / "app.config.ts").write_text(shared, encoding="utf-8")
        mutator.apply([self._edit(config, products_naming)], force=True)
        content = read_host("app/app.config.ts")
        assert "import { otherConfig } from './other'" in content
        assert "    legacy: otherConfig," in content
        assert "shopProducts: otherConfig" not in content

    def test_revert_last_entry_deletes_created_file(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        config: GlobalConfig,
        products_naming: NamingSet,
    ) -> None:
        edit = self._edit(config, products_naming)
        mutator.apply([edit])
        mutator.revert([edit])
        assert not (host_project / "app" / "app.config.ts").exists()
        assert (host_project / "app").is_dir()

    def test_revert_keeps_other_entries(
        self,
        mutator: SharedFileMutator,
        config: GlobalConfig,
        products_naming: NamingSet,
        read_host: Callable[[str], str],
    ) -> None:
        products = self._edit(config, products_naming)
        categories = self._edit(config, derive_naming("categories", "shop"))
        mutator.apply([products, categories])
        mutator.revert([products])
        content = read_host("app/app.config.ts")
        assert "shopProductsConfig" not in content
        assert "shopCategories: shopCategoriesConfig," in content


# ===========================================================================
# Locale files
# ===========================================================================


class TestLocaleFiles:
    def test_apply_and_revert(
        self,
        mutator: SharedFileMutator,
        host_project: pathlib.Path,
        make_descriptor: Callable,
        rich_fields: dict,
        config: GlobalConfig,
        read_host: Callable[[str], str],
    ) -> None:
        n = derive_naming("posts", "blog")
        d = make_descriptor("blog", "posts", rich_fields)
        edits = _edits_of(plan_unit(n, config, d), SharedFileKind.LOCALE)
        assert [e.target_file for e in edits] == [
            "layers/blog/i18n/locales/en.json",
            "layers/blog/i18n/locales/nl.json",
            "layers/blog/i18n/locales/fr.json",
        ]
        assert edits[0].idempotency_key == locale_key(n) == "blog.collections.posts"

        mutator.apply(edits)
        data = json.loads(read_host("layers/blog/i18n/locales/nl.json"))
        assert data == {"blog": {"collections": {"posts": {"title": "Posts"}}}}

        mutator.revert(edits)
        assert not (host_project / "layers/blog/i18n/locales/nl.json").exists()

    def test_revert_prunes_only_empty_parents(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, config: GlobalConfig
    ) -> None:
        n = derive_naming("posts", "blog")
        target = host_project / "layers/blog/i18n/locales/en.json"
        target.parent.mkdir(parents=True)
        target.write_text(json.dumps({"blog": {"title": "Blog"}}), encoding="utf-8")
        edits = _edits_of(plan_unit(n, config, include_locales=True), SharedFileKind.LOCALE)[:1]
        mutator.apply(edits)
        mutator.revert(edits)
        assert json.loads(target.read_text(encoding="utf-8")) == {"blog": {"title": "Blog"}}

    def test_invalid_json_has_no_anchor(
        self, mutator: SharedFileMutator, host_project: pathlib.Path, config: GlobalConfig
    ) -> None:
        target = host_project / "layers/blog/i18n/locales/en.json"
        target.parent.mkdir(parents=True)
        target.write_text("{ nope", encoding="utf-8")
        edits = _edits_of(plan_unit(derive_naming("posts", "blog"), config, include_locales=True), SharedFileKind.LOCALE)
        with pytest.raises(AnchorNotFoundError):
            mutator.apply(edits[:1])


# ===========================================================================
# Mutator bookkeeping & planning
# ===========================================================================


class TestMutator:
    def test_dry_run_writes_nothing_but_chains(
        self, mutator: SharedFileMutator, host_project: pathlib.Path
    ) -> None:
        edits = [
            schema_index_edit(derive_naming("products", "shop")),
            schema_index_edit(derive_naming("categories", "shop")),
        ]
        report = mutator.apply(edits, dry_run=True)
        assert [line.status for line in report.lines] == ["created", "updated"]
        assert all(line.dry_run for line in report.lines)
        assert not (host_project / SCHEMA_INDEX).exists()

    def test_revert_missing_file_is_skipped(self, mutator: SharedFileMutator, products_naming: NamingSet) -> None:
        report = mutator.revert([schema_index_edit(products_naming)])
        assert [line.status for line in report.lines] == ["skipped"]
        assert report.changed_files == []

    def test_changed_files(self, mutator: SharedFileMutator, config: GlobalConfig, products_naming: NamingSet) -> None:
        report = mutator.apply(plan_unit(products_naming, config))
        assert report.changed_files == sorted([
            "nuxt.config.ts",
            "layers/shop/nuxt.config.ts",
            "app/app.config.ts",
            SCHEMA_INDEX,
        ])


class TestPlanUnit:
    def test_order_without_translations(self, config: GlobalConfig, products_naming: NamingSet) -> None:
        edits = plan_unit(products_naming, config)
        assert [e.kind for e in edits] == ["root-extends", "layer-extends", "registry", "schema-index"]
        assert edits[0].layer_level is True
        assert edits[0].idempotency_key == "./layers/shop"
        assert edits[1].idempotency_key == "./collections/products"
        assert edits[2].idempotency_key == "shopProducts: shopProductsConfig"

    def test_locales_come_before_schema_index(
        self, config: GlobalConfig, make_descriptor: Callable, rich_fields: dict
    ) -> None:
        edits = plan_unit(derive_naming("posts", "blog"), config, make_descriptor("blog", "posts", rich_fields))
        kinds = [e.kind for e in edits]
        assert kinds[3:6] == ["locale", "locale", "locale"]
        assert kinds[-1] == "schema-index"

    def test_root_registry_without_app_dir(self, tmp_path: pathlib.Path, products_naming: NamingSet) -> None:
        bare = tmp_path / "bare"
        bare.mkdir()
        edits = plan_unit(products_naming, GlobalConfig(project_root=bare))
        registry = _edits_of(edits, SharedFileKind.REGISTRY)[0]
        assert registry.target_file == "app.config.ts"
        assert registry.source == "./layers/shop/collections/products/app/composables/useShopProducts"
