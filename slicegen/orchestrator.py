# File: slicegen/orchestrator.py
"""
slicegen - Scaffold Orchestrator
=================================

Connects every phase together:

    Schema Input → Validation → Planning → Materialization → Shared Edits
                                                            → Migration

Workflow for one run (single collection or batch)::

    1. Load field schemas and build a ``CollectionDescriptor`` per collection.
    2. Validate every descriptor.  Any error aborts before a write.
    3. Register every ``NamingSet`` so references resolve across the batch.
    4. Plan: emit artifacts, check capabilities and conflicts, pre-flight
       the materializer.  Any failure still aborts before a write.
    5. Apply dependency fixes (root extends for installed-but-unextended
       packages).
    6. Per collection: materialize artifacts, apply its shared edits.
    7. Apply every schema-index edit in one deferred pass.
    8. Run the migration command once, unless ``no_db`` or ``dry_run``.

Error handling strategy:
    - Failures up to step 4 are recorded and end the run with zero writes.
    - From step 5 on, a failing collection is recorded and the rest are
      still attempted; ``failed_paths`` lists what may be inconsistent.
    - Migration failures are errors, or warnings under ``force``.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from slicegen.dependencies import DependencyDetector, DependencyReport, detect_conflicts
from slicegen.emitters import EmitterSet
from slicegen.errors import (
    ConflictError,
    ExternalCommandError,
    ExternalCommandTimeout,
    MaterializationError,
    ScaffoldError,
    ValidationError,
)
from slicegen.loader import build_descriptor, load_descriptor
from slicegen.materializer import MaterializationReport, Materializer
from slicegen.models import (
    BatchConfig,
    CollectionDescriptor,
    EmittedArtifact,
    GenerationFlags,
    GenerationUnit,
    GlobalConfig,
    HierarchyConfig,
    NamingSet,
    SeedConfig,
    SharedFileEdit,
    SharedFileKind,
    SortableConfig,
    StatusLine,
)
from slicegen.mutator import MutationReport, SharedFileMutator, plan_unit
from slicegen.naming import CollectionRegistry, derive_naming
from slicegen.utils import Timer, count_lines
from slicegen.validators import ValidationResult, validate_batch_plan, validate_descriptor

logger: logging.Logger = logging.getLogger("slicegen.orchestrator")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Comprehensive report produced by ``generate_single`` and
    ``generate_batch``.

    ``failure`` holds the exception that stopped the run, if any.
    """

    success: bool = False
    mode: str = "single"
    dry_run: bool = False
    project_root: str = ""
    dialect: str = ""

    collections: List[str] = field(default_factory=list)
    total_files: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    status_lines: List[StatusLine] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failed_paths: List[str] = field(default_factory=list)

    failure: Optional[ScaffoldError] = None
    migration_command: str = ""
    migration_ran: bool = False

    @property
    def errors(self) -> List[str]:
        return self.validation_errors + self.generation_errors

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        title: str = "Dry Run" if self.dry_run else "Generation Report"
        lines.append(f"{'='*60}")
        lines.append(f"  slicegen — {title} ({self.mode})")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Project root:     {self.project_root}")
        lines.append(f"  Dialect:          {self.dialect}")
        lines.append(f"  Collections:      {', '.join(self.collections) or '-'}")
        lines.append(f"  Files:            {self.total_files}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.status_lines:
            lines.append(f"{'─'*60}")
            lines.append(f"  Files ({len(self.status_lines)}):")
            for line in self.status_lines:
                lines.append(f"    {line.render()}")

        for heading, items, icon in (
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Warnings", self.warnings, "⚠"),
            ("Possibly Inconsistent", self.failed_paths, "✗"),
        ):
            if not items:
                continue
            lines.append(f"{'─'*60}")
            lines.append(f"  {heading} ({len(items)}):")
            for item in items:
                lines.append(f"    {icon} {item}")

        if self.migration_command and not self.migration_ran and not self.dry_run:
            lines.append(f"{'─'*60}")
            lines.append(f"  Run migrations manually: {self.migration_command}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Planning records
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class _Planned:
    descriptor: CollectionDescriptor
    unit: GenerationUnit
    artifacts: List[EmittedArtifact] = field(default_factory=list)
    dependencies: Optional[DependencyReport] = None

    @property
    def naming(self) -> NamingSet:
        return self.unit.naming

    @property
    def collection_edits(self) -> List[SharedFileEdit]:
        return [e for e in self.unit.edits if str(e.kind) != SharedFileKind.SCHEMA_INDEX.value]

    @property
    def schema_edits(self) -> List[SharedFileEdit]:
        return [e for e in self.unit.edits if str(e.kind) == SharedFileKind.SCHEMA_INDEX.value]


class _Abort(Exception):
    """Internal: stop the pipeline after the failure is recorded."""


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ScaffoldOrchestrator:
    """
    Master pipeline for single and batch generation.

    Usage::

        orchestrator = ScaffoldOrchestrator(GlobalConfig(project_root=Path(".")))
        report = orchestrator.generate_single("shop", "products", Path("products.json"))
        print(report.summary())

    *runner* executes the migration command (``subprocess.run`` by default).
    """

    def __init__(self, config: GlobalConfig, *, runner: Optional[Runner] = None) -> None:
        self._config: GlobalConfig = config
        self._runner: Runner = runner if runner is not None else subprocess.run
        logger.debug(
            "ScaffoldOrchestrator initialised: root=%s, dialect=%s, flags=%s.",
            config.root,
            config.dialect,
            config.flags.model_dump(),
        )

    @property
    def config(self) -> GlobalConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public: single collection
    # -----------------------------------------------------------------

    def generate_single(
        self,
        layer: str,
        collection: str,
        fields_file: Path,
        *,
        hierarchy: Optional[HierarchyConfig] = None,
        sortable: Optional[SortableConfig] = None,
        seed: Optional[SeedConfig] = None,
        collab: bool = False,
    ) -> GenerationReport:
        """Generate one collection from *fields_file* into *layer*."""
        config: GlobalConfig = self._config
        report: GenerationReport = self._new_report("single", config)
        start: float = time.perf_counter()

        with Timer("load_schema") as t:
            try:
                descriptor: CollectionDescriptor = load_descriptor(
                    layer, collection, Path(fields_file), config,
                    hierarchy=hierarchy, sortable=sortable, seed=seed, collab=collab,
                )
            except ValidationError as exc:
                self._fail(report, exc, validation=True)
                report.step_metrics.append(GenerationStepMetric(
                    "Load Field Schema", False, t.elapsed, exc.message.splitlines()[0],
                ))
                return self._finalise_report(report, time.perf_counter() - start)

        report.step_metrics.append(GenerationStepMetric(
            "Load Field Schema", True, t.elapsed, f"{len(descriptor.fields)} field(s) from {Path(fields_file).name}",
        ))
        return self._run_pipeline([descriptor], config, report, start)

    # -----------------------------------------------------------------
    # Public: batch
    # -----------------------------------------------------------------

    def generate_batch(
        self,
        batch: BatchConfig,
        base_dir: Path,
        *,
        only: Optional[str] = None,
    ) -> GenerationReport:
        """
        Generate every targeted collection of *batch*.

        *base_dir* is the directory ``fieldsFile`` paths are relative to;
        *only* limits the run to one defined collection.
        """
        start: float = time.perf_counter()
        report: GenerationReport = self._new_report("batch", self._config)

        with Timer("validate_plan") as t:
            result, planned = validate_batch_plan(batch, Path(base_dir), only)
        self._record_validation(report, result)
        report.step_metrics.append(GenerationStepMetric(
            "Validate Batch Plan", result.is_valid, t.elapsed,
            f"{len(planned)} collection(s)" if result.is_valid else result.summary(),
        ))
        if not result.is_valid:
            report.failure = ValidationError(
                "Batch plan is invalid.", [str(e) for e in result.errors]
            )
            return self._finalise_report(report, time.perf_counter() - start)

        config: GlobalConfig = self.merge_batch_config(batch)
        report.dialect = str(config.dialect)
        report.dry_run = config.flags.dry_run

        descriptors: List[CollectionDescriptor] = []
        for item in planned:
            try:
                descriptors.append(build_descriptor(
                    item.layer, item.entry.name, list(item.fields), config,
                    hierarchy=item.entry.hierarchy,
                    sortable=item.entry.sortable,
                    seed=item.entry.seed,
                    collab=item.entry.collab,
                ))
            except ValidationError as exc:
                self._fail(report, exc, validation=True)
        if report.failure is not None:
            return self._finalise_report(report, time.perf_counter() - start)

        return self._run_pipeline(descriptors, config, report, start)

    def merge_batch_config(self, batch: BatchConfig) -> GlobalConfig:
        """Overlay a batch file's dialect, flags and settings on the run config."""
        base: GenerationFlags = self._config.flags
        flags: GenerationFlags = GenerationFlags(
            force=base.force or batch.flags.force,
            dry_run=base.dry_run or batch.flags.dry_run,
            no_translations=base.no_translations or batch.flags.no_translations,
            no_db=base.no_db or batch.flags.no_db,
            use_metadata=base.use_metadata and batch.flags.use_metadata,
            strict=base.strict and batch.flags.strict,
        )
        update: Dict[str, Any] = {
            "dialect": batch.dialect,
            "flags": flags,
            "translations": batch.translations if batch.translations.collections else self._config.translations,
            "seed": batch.seed,
        }
        return self._config.model_copy(update=update)

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        descriptors: List[CollectionDescriptor],
        config: GlobalConfig,
        report: GenerationReport,
        start: float,
    ) -> GenerationReport:
        flags: GenerationFlags = config.flags
        materializer: Materializer = Materializer(config.root)
        mutator: SharedFileMutator = SharedFileMutator(config.root)
        registry: CollectionRegistry = CollectionRegistry()

        try:
            self._step_validate(descriptors, config, report)
            planned: List[_Planned] = self._step_plan(descriptors, config, registry, report)
            self._step_preflight(planned, config, materializer, mutator, report)
        except _Abort:
            return self._finalise_report(report, time.perf_counter() - start)

        self._step_resolve_dependencies(planned, mutator, flags, report)
        for item in planned:
            self._step_write_collection(item, materializer, mutator, flags, report)
        self._step_schema_index(planned, mutator, flags, report)

        report.migration_command = config.migration_command_str
        if flags.no_db or flags.dry_run:
            logger.info("Skipping migration command (%s).", "no-db" if flags.no_db else "dry-run")
        elif not report.generation_errors:
            self._step_migrate(config, report)

        return self._finalise_report(report, time.perf_counter() - start)

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        descriptors: List[CollectionDescriptor],
        config: GlobalConfig,
        report: GenerationReport,
    ) -> None:
        with Timer("validation") as t:
            result: ValidationResult = ValidationResult()
            for d in descriptors:
                result.merge(validate_descriptor(d, config))
        self._record_validation(report, result)

        detail: str = (
            f"{len(result.errors)} error(s)" if result.errors
            else f"{len(result.warnings)} warning(s)" if result.warnings
            else "all checks passed"
        )
        report.step_metrics.append(GenerationStepMetric(
            "Validate Collections", result.is_valid, t.elapsed, detail,
        ))
        for warn in result.warnings:
            logger.warning("  ⚠ %s", warn)
        if not result.is_valid:
            for err in result.errors:
                logger.error("  ✗ %s", err)
            try:
                result.raise_for_errors("Collection validation failed.")
            except ValidationError as exc:
                report.failure = exc
                raise _Abort() from exc

    # -----------------------------------------------------------------
    # Pipeline step: Planning (emission, dependencies, conflicts)
    # -----------------------------------------------------------------

    def _step_plan(
        self,
        descriptors: List[CollectionDescriptor],
        config: GlobalConfig,
        registry: CollectionRegistry,
        report: GenerationReport,
    ) -> List[_Planned]:
        planned: List[_Planned] = []
        with Timer("plan") as t:
            try:
                for d in descriptors:
                    n: NamingSet = registry.register(derive_naming(d.raw_name, d.layer))
                    planned.append(_Planned(
                        descriptor=d,
                        unit=GenerationUnit(
                            naming=n,
                            generated_dir=n.base_dir,
                            edits=plan_unit(n, config, d),
                        ),
                    ))
                    report.collections.append(f"{n.layer}/{n.kebab_case_plural}")

                emitters: EmitterSet = EmitterSet(config, registry)
                for item in planned:
                    item.artifacts = emitters.emit_all(item.descriptor, item.naming)
            except ScaffoldError as exc:
                self._fail(report, exc)
                report.step_metrics.append(GenerationStepMetric(
                    "Emit Artifacts", False, t.elapsed, exc.message.splitlines()[0],
                ))
                raise _Abort() from exc

        artifacts: List[EmittedArtifact] = [a for item in planned for a in item.artifacts]
        report.total_files = len(artifacts)
        report.total_lines = sum(count_lines(a.content) for a in artifacts)
        report.step_metrics.append(GenerationStepMetric(
            "Emit Artifacts", True, t.elapsed,
            f"{len(artifacts)} files, ~{report.total_lines:,} lines, {len(planned)} collection(s)",
        ))
        return planned

    def _step_preflight(
        self,
        planned: List[_Planned],
        config: GlobalConfig,
        materializer: Materializer,
        mutator: SharedFileMutator,
        report: GenerationReport,
    ) -> None:
        flags: GenerationFlags = config.flags
        detector: DependencyDetector = DependencyDetector(config)

        with Timer("preflight") as t:
            try:
                for item in planned:
                    item.dependencies = detector.check(item.descriptor)
                    report.warnings.extend(
                        detector.enforce(item.dependencies, force=flags.force, strict=flags.strict)
                    )

                conflicts: List[str] = []
                for item in planned:
                    conflicts += detect_conflicts(item.naming, item.unit.edits, mutator, force=flags.force)
                if conflicts and not flags.force:
                    raise ConflictError("Generation would overwrite existing work.", conflicts)
                for conflict in conflicts:
                    report.warnings.append(f"Overriding: {conflict}")

                materializer.preflight(
                    [a for item in planned for a in item.artifacts], force=flags.force
                )
            except ScaffoldError as exc:
                self._fail(report, exc)
                report.step_metrics.append(GenerationStepMetric(
                    "Pre-flight Checks", False, t.elapsed, exc.message.splitlines()[0],
                ))
                raise _Abort() from exc

        report.step_metrics.append(GenerationStepMetric(
            "Pre-flight Checks", True, t.elapsed,
            f"{len(report.warnings)} warning(s)" if report.warnings else "dependencies and paths clear",
        ))

    # -----------------------------------------------------------------
    # Pipeline step: writes
    # -----------------------------------------------------------------

    def _step_resolve_dependencies(
        self,
        planned: List[_Planned],
        mutator: SharedFileMutator,
        flags: GenerationFlags,
        report: GenerationReport,
    ) -> None:
        edits: List[SharedFileEdit] = []
        seen: set = set()
        for item in planned:
            if item.dependencies is None:
                continue
            for edit in DependencyDetector.resolution_edits(item.dependencies):
                if edit.idempotency_key not in seen:
                    seen.add(edit.idempotency_key)
                    edits.append(edit)
        if not edits:
            return
        with Timer("resolve_dependencies") as t:
            ok: bool = self._apply_edits(edits, mutator, flags, report)
        report.step_metrics.append(GenerationStepMetric(
            "Extend Capability Layers", ok, t.elapsed, ", ".join(e.idempotency_key for e in edits),
        ))

    def _step_write_collection(
        self,
        item: _Planned,
        materializer: Materializer,
        mutator: SharedFileMutator,
        flags: GenerationFlags,
        report: GenerationReport,
    ) -> None:
        n: NamingSet = item.naming
        with Timer(f"write {n.collection_key}") as t:
            try:
                result: MaterializationReport = materializer.materialize(
                    item.artifacts, force=flags.force, dry_run=flags.dry_run
                )
            except ScaffoldError as exc:
                self._fail(report, exc)
                report.step_metrics.append(GenerationStepMetric(
                    f"Write {n.collection_key}", False, t.elapsed, exc.message.splitlines()[0],
                ))
                return
            report.status_lines.extend(result.lines)
            for err in result.errors:
                report.generation_errors.append(err.message)
            report.failed_paths.extend(result.failed_paths)
            ok: bool = result.success and self._apply_edits(
                item.collection_edits, mutator, flags, report
            )

        report.step_metrics.append(GenerationStepMetric(
            f"Write {n.collection_key}", ok, t.elapsed,
            f"{len(result.lines)} file(s) under {n.base_dir}",
        ))

    def _step_schema_index(
        self,
        planned: List[_Planned],
        mutator: SharedFileMutator,
        flags: GenerationFlags,
        report: GenerationReport,
    ) -> None:
        # Collections that failed to materialize stay out of the index.
        edits: List[SharedFileEdit] = [
            e for item in planned
            if not any(p.startswith(item.naming.base_dir + "/") for p in report.failed_paths)
            for e in item.schema_edits
        ]
        with Timer("schema_index") as t:
            ok: bool = self._apply_edits(edits, mutator, flags, report)
        report.step_metrics.append(GenerationStepMetric(
            "Update Schema Index", ok, t.elapsed, f"{len(edits)} export(s)",
        ))

    def _apply_edits(
        self,
        edits: List[SharedFileEdit],
        mutator: SharedFileMutator,
        flags: GenerationFlags,
        report: GenerationReport,
    ) -> bool:
        if not edits:
            return True
        try:
            result: MutationReport = mutator.apply(edits, force=flags.force, dry_run=flags.dry_run)
        except OSError as exc:
            error: MaterializationError = MaterializationError(
                f"Could not update shared file: {exc}", path=str(exc.filename or edits[0].target_file)
            )
            self._fail(report, error)
            report.failed_paths.append(error.path)
            return False
        except ScaffoldError as exc:
            self._fail(report, exc)
            report.failed_paths.append(getattr(exc, "path", "") or edits[0].target_file)
            return False
        report.status_lines.extend(result.lines)
        return True

    # -----------------------------------------------------------------
    # Pipeline step: migration
    # -----------------------------------------------------------------

    def run_migration_command(self, config: Optional[GlobalConfig] = None) -> str:
        """
        Run the configured migration command once in the project root.

        Returns the command output.

        Raises:
            ExternalCommandTimeout: The command exceeded ``migration_timeout``.
            ExternalCommandError: The command failed or could not start.
        """
        config = config or self._config
        command: List[str] = list(config.migration_command)
        display: str = config.migration_command_str
        logger.info("Running migration command: %s", display)
        try:
            completed = self._runner(
                command,
                cwd=str(config.root),
                capture_output=True,
                text=True,
                timeout=config.migration_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ExternalCommandTimeout(display, config.migration_timeout) from exc
        except OSError as exc:
            raise ExternalCommandError(
                f"Could not start {display}: {exc}", command=display
            ) from exc

        output: str = (completed.stdout or "") + (completed.stderr or "")
        if completed.returncode != 0:
            raise ExternalCommandError(
                f"{display} exited with status {completed.returncode}",
                command=display,
                returncode=completed.returncode,
                output=output,
            )
        return output

    def _step_migrate(self, config: GlobalConfig, report: GenerationReport) -> None:
        with Timer("migrate") as t:
            try:
                self.run_migration_command(config)
                report.migration_ran = True
                ok: bool = True
                detail: str = config.migration_command_str
            except ExternalCommandError as exc:
                ok = False
                detail = exc.message
                if config.flags.force:
                    report.warnings.append(f"{exc.message}. {exc.manual_hint}")
                    logger.warning("%s. %s", exc.message, exc.manual_hint)
                else:
                    self._fail(report, exc)
                    report.generation_errors[-1] = f"{exc.message}. {exc.manual_hint}"
        report.step_metrics.append(GenerationStepMetric("Run Migrations", ok, t.elapsed, detail))

    # -----------------------------------------------------------------
    # Internal: reporting helpers
    # -----------------------------------------------------------------

    def _new_report(self, mode: str, config: GlobalConfig) -> GenerationReport:
        return GenerationReport(
            mode=mode,
            dry_run=config.flags.dry_run,
            project_root=str(config.root),
            dialect=str(config.dialect),
        )

    @staticmethod
    def _record_validation(report: GenerationReport, result: ValidationResult) -> None:
        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)

    @staticmethod
    def _fail(report: GenerationReport, exc: ScaffoldError, *, validation: bool = False) -> None:
        if report.failure is None:
            report.failure = exc
        target: List[str] = report.validation_errors if validation else report.generation_errors
        target.append(exc.message)
        logger.error("%s: %s", type(exc).__name__, exc.message)

    def _finalise_report(self, report: GenerationReport, total_elapsed: float) -> GenerationReport:
        """Set final status and timing on the report."""
        report.total_elapsed_seconds = total_elapsed
        report.success = report.failure is None and not report.errors
        if report.success:
            logger.info(
                "%s finished: %d collection(s), %d file(s) in %.3fs.",
                "Dry run" if report.dry_run else "Generation",
                len(report.collections), report.total_files, total_elapsed,
            )
        else:
            logger.error("Generation failed with %d error(s).", len(report.errors))
        return report


__all__: List[str] = [
    "GenerationStepMetric",
    "GenerationReport",
    "ScaffoldOrchestrator",
]

logger.debug("slicegen.orchestrator loaded.")
