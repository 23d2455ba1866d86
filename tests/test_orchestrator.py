"""
tests/test_orchestrator.py
Integration tests for slicegen.orchestrator.

Tests cover:
- Single-collection generation into a host project
- Migration command: invocation, failure, timeout, force demotion
- Abort-before-write on conflicts, missing dependencies and bad schemas
- Batch generation atomicity and a single migration run per batch
- Dry-run and re-run determinism
"""

from __future__ import annotations

import pathlib
import subprocess
from typing import Any, Callable, Dict

import pytest

from slicegen.errors import (
    ConflictError,
    DependencyWarning,
    ExternalCommandError,
    ExternalCommandTimeout,
    ValidationError,
)
from slicegen.loader import parse_batch_config
from slicegen.models import GenerationFlags, GlobalConfig
from slicegen.orchestrator import ScaffoldOrchestrator

PRODUCTS_DIR: str = "layers/shop/collections/products"


def _snapshot(root: pathlib.Path) -> Dict[str, str]:
    """Every file under *root*, keyed by relative path."""
    return {
        p.relative_to(root).as_posix(): p.read_text(encoding="utf-8")
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture()
def migrate_config(config: GlobalConfig) -> GlobalConfig:
    """Host config with the migration step enabled."""
    return config.model_copy(update={"flags": GenerationFlags()})


@pytest.fixture()
def forced_config(config: GlobalConfig) -> GlobalConfig:
    return config.model_copy(update={"flags": GenerationFlags(force=True, no_db=True)})


# ===========================================================================
# Single collection
# ===========================================================================


class TestGenerateSingle:
    """Happy path for ``generate_single``."""

    def test_writes_slice_and_shared_files(
        self,
        config: GlobalConfig,
        products_file: pathlib.Path,
        host_project: pathlib.Path,
        read_host: Callable[[str], str],
    ) -> None:
        report = ScaffoldOrchestrator(config).generate_single("shop", "products", products_file)

        assert report.success, report.summary()
        assert report.failure is None
        assert report.mode == "single"
        assert report.collections == ["shop/products"]
        assert report.total_files > 0
        assert report.total_lines > 0

        base = host_project / PRODUCTS_DIR
        assert (base / "types.ts").is_file()
        assert (base / "app/components/_Form.vue").is_file()
        assert (base / "app/components/List.vue").is_file()
        assert (base / "app/composables/useShopProducts.ts").is_file()
        assert (base / "server/database/schema.ts").is_file()

        assert "'./layers/shop'" in read_host("nuxt.config.ts")
        assert "'./collections/products'" in read_host("layers/shop/nuxt.config.ts")
        assert "shopProducts: shopProductsConfig," in read_host("app/app.config.ts")
        assert (
            "export { shopProducts } from '../../layers/shop/collections/products/server/database/schema'"
            in read_host("server/db/schema.ts")
        )

    def test_summary_lists_steps_and_files(self, config: GlobalConfig, products_file: pathlib.Path) -> None:
        report = ScaffoldOrchestrator(config).generate_single("shop", "products", products_file)
        text = report.summary()
        assert "✅ SUCCESS" in text
        assert "Validate Collections" in text
        assert "Pre-flight Checks" in text
        assert f"{PRODUCTS_DIR}/types.ts" in text

    def test_no_db_skips_runner(
        self, config: GlobalConfig, products_file: pathlib.Path, fake_runner: Any
    ) -> None:
        report = ScaffoldOrchestrator(config, runner=fake_runner).generate_single("shop", "products", products_file)
        assert report.success
        assert fake_runner.calls == []
        assert not report.migration_ran
        assert "Run migrations manually: npx nuxt db generate" in report.summary()

    def test_missing_schema_file(self, config: GlobalConfig, tmp_path: pathlib.Path, host_project: pathlib.Path) -> None:
        report = ScaffoldOrchestrator(config).generate_single("shop", "products", tmp_path / "missing.json")
        assert not report.success
        assert isinstance(report.failure, ValidationError)
        assert report.validation_errors
        assert not (host_project / "layers").exists()

    def test_reserved_field_aborts_before_write(
        self,
        config: GlobalConfig,
        write_schema: Callable[[str, Any], pathlib.Path],
        host_project: pathlib.Path,
    ) -> None:
        path = write_schema("bad.json", {"id": {"type": "string"}, "title": {"type": "string"}})
        before = _snapshot(host_project)
        report = ScaffoldOrchestrator(config).generate_single("shop", "products", path)
        assert not report.success
        assert isinstance(report.failure, ValidationError)
        assert _snapshot(host_project) == before


# ===========================================================================
# Abort before write
# ===========================================================================


class TestPreflightAborts:
    def test_existing_directory_conflicts(
        self, config: GlobalConfig, products_file: pathlib.Path, host_project: pathlib.Path
    ) -> None:
        (host_project / PRODUCTS_DIR).mkdir(parents=True)
        before = _snapshot(host_project)

        report = ScaffoldOrchestrator(config).generate_single("shop", "products", products_file)

        assert not report.success
        assert isinstance(report.failure, ConflictError)
        assert f"{PRODUCTS_DIR} already exists" in report.failure.conflicts
        assert report.status_lines == []
        assert _snapshot(host_project) == before

    def test_missing_dependencies(
        self, config: GlobalConfig, products_file: pathlib.Path, host_project: pathlib.Path
    ) -> None:
        (host_project / "package.json").unlink()
        report = ScaffoldOrchestrator(config).generate_single("shop", "products", products_file)
        assert not report.success
        assert isinstance(report.failure, DependencyWarning)
        assert not (host_project / "layers").exists()

    def test_missing_dependencies_forced(
        self, forced_config: GlobalConfig, products_file: pathlib.Path, host_project: pathlib.Path
    ) -> None:
        (host_project / "package.json").unlink()
        report = ScaffoldOrchestrator(forced_config).generate_single("shop", "products", products_file)
        assert report.success, report.summary()
        assert any(w.startswith("Continuing with --force") for w in report.warnings)
        assert (host_project / PRODUCTS_DIR).is_dir()

    def test_missing_dependencies_outside_strict_mode(
        self, config: GlobalConfig, products_file: pathlib.Path, host_project: pathlib.Path
    ) -> None:
        (host_project / "package.json").unlink()
        lenient = config.model_copy(update={"flags": GenerationFlags(no_db=True, strict=False)})
        report = ScaffoldOrchestrator(lenient).generate_single("shop", "products", products_file)
        assert report.success, report.summary()
        assert "Missing required package @fyit/crouton (non-strict mode)" in report.warnings
        assert (host_project / PRODUCTS_DIR).is_dir()


# ===========================================================================
# Migration command
# ===========================================================================


class TestMigration:
    def test_runs_configured_command_once(
        self, migrate_config: GlobalConfig, products_file: pathlib.Path, fake_runner: Any
    ) -> None:
        report = ScaffoldOrchestrator(migrate_config, runner=fake_runner).generate_single(
            "shop", "products", products_file
        )
        assert report.success, report.summary()
        assert report.migration_ran
        assert len(fake_runner.calls) == 1
        call = fake_runner.calls[0]
        assert call["command"] == ["npx", "nuxt", "db", "generate"]
        assert call["cwd"] == str(migrate_config.root)
        assert call["timeout"] == 30.0

    def test_nonzero_exit_fails_run(
        self,
        migrate_config: GlobalConfig,
        products_file: pathlib.Path,
        make_runner: Callable[..., Any],
        host_project: pathlib.Path,
    ) -> None:
        runner = make_runner(returncode=1, stderr="drizzle-kit: no config")
        report = ScaffoldOrchestrator(migrate_config, runner=runner).generate_single(
            "shop", "products", products_file
        )
        assert not report.success
        assert isinstance(report.failure, ExternalCommandError)
        assert report.failure.returncode == 1
        assert "drizzle-kit: no config" in report.failure.output
        assert (host_project / PRODUCTS_DIR / "types.ts").is_file()

    def test_timeout_fails_but_keeps_files(
        self,
        migrate_config: GlobalConfig,
        products_file: pathlib.Path,
        make_runner: Callable[..., Any],
        host_project: pathlib.Path,
    ) -> None:
        runner = make_runner(raises=subprocess.TimeoutExpired(["npx"], 30))
        report = ScaffoldOrchestrator(migrate_config, runner=runner).generate_single(
            "shop", "products", products_file
        )
        assert not report.success
        assert isinstance(report.failure, ExternalCommandTimeout)
        assert report.generation_errors[-1].endswith("Run it manually: npx nuxt db generate")
        assert (host_project / PRODUCTS_DIR / "types.ts").is_file()

    def test_timeout_is_warning_under_force(
        self,
        config: GlobalConfig,
        products_file: pathlib.Path,
        make_runner: Callable[..., Any],
    ) -> None:
        cfg = config.model_copy(update={"flags": GenerationFlags(force=True, no_db=False)})
        runner = make_runner(raises=subprocess.TimeoutExpired(["npx"], 30))
        report = ScaffoldOrchestrator(cfg, runner=runner).generate_single("shop", "products", products_file)
        assert report.success, report.summary()
        assert any("timed out" in w and "Run it manually" in w for w in report.warnings)

    def test_command_not_found(
        self,
        migrate_config: GlobalConfig,
        products_file: pathlib.Path,
        make_runner: Callable[..., Any],
    ) -> None:
        runner = make_runner(raises=FileNotFoundError(2, "No such file or directory", "npx"))
        report = ScaffoldOrchestrator(migrate_config, runner=runner).generate_single(
            "shop", "products", products_file
        )
        assert not report.success
        assert isinstance(report.failure, ExternalCommandError)
        assert "Could not start npx nuxt db generate" in report.failure.message


# ===========================================================================
# Dry run and determinism
# ===========================================================================


class TestDryRunAndRerun:
    def test_dry_run_writes_nothing(
        self, config: GlobalConfig, products_file: pathlib.Path, host_project: pathlib.Path, fake_runner: Any
    ) -> None:
        cfg = config.model_copy(update={"flags": GenerationFlags(dry_run=True)})
        before = _snapshot(host_project)

        report = ScaffoldOrchestrator(cfg, runner=fake_runner).generate_single("shop", "products", products_file)

        assert report.success, report.summary()
        assert report.dry_run
        assert report.status_lines
        assert all(line.dry_run for line in report.status_lines)
        assert _snapshot(host_project) == before
        assert fake_runner.calls == []
        assert "Dry Run" in report.summary()

    def test_forced_rerun_is_byte_identical(
        self,
        config: GlobalConfig,
        forced_config: GlobalConfig,
        products_file: pathlib.Path,
        host_project: pathlib.Path,
    ) -> None:
        assert ScaffoldOrchestrator(config).generate_single("shop", "products", products_file).success
        first = _snapshot(host_project)

        report = ScaffoldOrchestrator(forced_config).generate_single("shop", "products", products_file)

        assert report.success, report.summary()
        assert _snapshot(host_project) == first


# ===========================================================================
# Batch
# ===========================================================================


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


@pytest.fixture()
def schemas_dir(
    tmp_path: pathlib.Path, products_file: pathlib.Path, categories_file: pathlib.Path
) -> pathlib.Path:
    return tmp_path / "schemas"


class TestGenerateBatch:
    def test_two_collections(
        self,
        config: GlobalConfig,
        schemas_dir: pathlib.Path,
        host_project: pathlib.Path,
        read_host: Callable[[str], str],
    ) -> None:
        report = ScaffoldOrchestrator(config).generate_batch(parse_batch_config(_batch()), schemas_dir)

        assert report.success, report.summary()
        assert report.mode == "batch"
        assert report.collections == ["shop/products", "shop/categories"]
        assert (host_project / "layers/shop/collections/categories/server/api").is_dir()
        schema_index = read_host("server/db/schema.ts")
        assert "export { shopProducts }" in schema_index
        assert "export { shopCategories }" in schema_index
        assert read_host("nuxt.config.ts").count("'./layers/shop'") == 1

    def test_migration_runs_once_per_batch(
        self, migrate_config: GlobalConfig, schemas_dir: pathlib.Path, fake_runner: Any
    ) -> None:
        report = ScaffoldOrchestrator(migrate_config, runner=fake_runner).generate_batch(
            parse_batch_config(_batch()), schemas_dir
        )
        assert report.success, report.summary()
        assert len(fake_runner.calls) == 1

    def test_batch_flags_overlay_run_flags(
        self, migrate_config: GlobalConfig, schemas_dir: pathlib.Path, fake_runner: Any
    ) -> None:
        report = ScaffoldOrchestrator(migrate_config, runner=fake_runner).generate_batch(
            parse_batch_config(_batch(flags={"noDb": True})), schemas_dir
        )
        assert report.success
        assert fake_runner.calls == []

    def test_only_limits_run(self, config: GlobalConfig, schemas_dir: pathlib.Path, host_project: pathlib.Path) -> None:
        report = ScaffoldOrchestrator(config).generate_batch(
            parse_batch_config(_batch()), schemas_dir, only="categories"
        )
        assert report.success, report.summary()
        assert report.collections == ["shop/categories"]
        assert not (host_project / PRODUCTS_DIR).exists()

    def test_one_bad_schema_means_zero_writes(
        self,
        config: GlobalConfig,
        schemas_dir: pathlib.Path,
        write_schema: Callable[[str, Any], pathlib.Path],
        host_project: pathlib.Path,
    ) -> None:
        for name in ("orders", "customers"):
            write_schema(f"{name}.json", {"label": {"type": "string"}})
        write_schema("invoices.json", {"total": {"type": "money"}})
        raw = _batch(
            collections=[
                {"name": "products", "fieldsFile": "products.json"},
                {"name": "categories", "fieldsFile": "categories.json"},
                {"name": "orders", "fieldsFile": "orders.json"},
                {"name": "customers", "fieldsFile": "customers.json"},
                {"name": "invoices", "fieldsFile": "invoices.json"},
            ],
            targets=[{
                "layer": "shop",
                "collections": ["products", "categories", "orders", "customers", "invoices"],
            }],
        )
        before = _snapshot(host_project)

        report = ScaffoldOrchestrator(config).generate_batch(parse_batch_config(raw), schemas_dir)

        assert not report.success
        assert isinstance(report.failure, ValidationError)
        assert any("invoices" in e for e in report.validation_errors)
        assert _snapshot(host_project) == before

    def test_invalid_plan(self, config: GlobalConfig, schemas_dir: pathlib.Path) -> None:
        report = ScaffoldOrchestrator(config).generate_batch(
            parse_batch_config(_batch(dialect="mysql")), schemas_dir
        )
        assert not report.success
        assert isinstance(report.failure, ValidationError)
        assert "Batch plan is invalid." in report.failure.message

    def test_merge_batch_config(self, config: GlobalConfig) -> None:
        batch = parse_batch_config(_batch(dialect="pg", flags={"dryRun": True}))
        merged = ScaffoldOrchestrator(config).merge_batch_config(batch)
        assert merged.dialect == "pg"
        assert merged.flags.dry_run
        assert merged.flags.no_db
        assert merged.project_root == config.project_root
