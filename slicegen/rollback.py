# File: slicegen/rollback.py
"""
slicegen - Rollback Engine
===========================
Undoes a generated collection in two phases:

    1. Directory removal: ``layers/{layer}/collections/{name}`` is deleted
       (skipped with ``keep_files``).
    2. Shared-file reversal: every edit :func:`~slicegen.mutator.plan_unit`
       plans for the collection is reverted with the idempotency key that
       inserted it.

The layer-level root extends entry is only removed when no sibling
collection remains in the layer, unless ``force`` is set.  Outside forced
and dry-run mode a cancel window runs first; Ctrl+C during the window
aborts before anything is touched.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from slicegen.errors import ScaffoldError
from slicegen.models import GlobalConfig, NamingSet, SharedFileEdit, StatusLine, StepStatus
from slicegen.mutator import MutationReport, SharedFileMutator, plan_unit
from slicegen.naming import derive_naming
from slicegen.utils import remove_tree

logger: logging.Logger = logging.getLogger("slicegen.rollback")

Sleeper = Callable[[float], None]


@dataclass(frozen=False, slots=True)
class RollbackReport:
    """What a rollback removed, skipped or failed on."""

    layer: str
    collections: List[str] = field(default_factory=list)
    dry_run: bool = False
    lines: List[StatusLine] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def changes_made(self) -> bool:
        return any(line.status == StepStatus.REMOVED.value for line in self.lines)

    def summary(self) -> str:
        lines: List[str] = [
            "=" * 60,
            f"  Rollback {'(dry-run) ' if self.dry_run else ''}{self.layer}: "
            f"{', '.join(self.collections) or '-'}",
            "─" * 60,
        ]
        lines += [f"  {line.render()}" for line in self.lines]
        lines.append("─" * 60)
        if self.errors:
            lines.append(f"  ✗ {len(self.errors)} step(s) failed")
            lines += [f"    {e}" for e in self.errors]
        elif self.changes_made:
            lines.append("  ✓ Rolled back. Regenerate migrations and restart the dev server.")
        else:
            lines.append("  ⊘ Nothing to remove.")
        lines.append("=" * 60)
        return "\n".join(lines)


class RollbackEngine:
    """
    Reverses generation for one collection or a whole layer.

    *sleeper* drives the cancel window; tests pass a no-op.
    """

    def __init__(
        self,
        config: GlobalConfig,
        *,
        sleeper: Optional[Sleeper] = None,
        mutator: Optional[SharedFileMutator] = None,
    ) -> None:
        self._config: GlobalConfig = config
        self._root: Path = config.root
        self._sleep: Sleeper = sleeper if sleeper is not None else time.sleep
        self._mutator: SharedFileMutator = mutator or SharedFileMutator(self._root)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def collections_in_layer(self, layer: str) -> List[str]:
        base: Path = self._root / "layers" / layer / "collections"
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir())

    def _cancel_window(self, what: str, *, force: bool, dry_run: bool) -> None:
        if force or dry_run or self._config.cancel_window <= 0:
            return
        logger.warning(
            "Rolling back %s in %.0fs. Press Ctrl+C to cancel.",
            what, self._config.cancel_window,
        )
        self._sleep(self._config.cancel_window)

    def _remove_directory(self, n: NamingSet, report: RollbackReport) -> None:
        target: Path = self._root / n.base_dir
        if not target.exists():
            report.lines.append(StatusLine(
                StepStatus.SKIPPED.value, n.base_dir, "not present", report.dry_run,
            ))
            return
        if report.dry_run:
            report.lines.append(StatusLine(StepStatus.REMOVED.value, n.base_dir, dry_run=True))
            return
        try:
            remove_tree(target)
        except OSError as exc:
            report.errors.append(f"{n.base_dir}: {exc}")
            report.lines.append(StatusLine(StepStatus.ERROR.value, n.base_dir, str(exc)))
            logger.error("Could not remove %s: %s", n.base_dir, exc)
            return
        report.lines.append(StatusLine(StepStatus.REMOVED.value, n.base_dir))

    def _prune_layer(self, layer: str, report: RollbackReport) -> None:
        """Remove ``layers/{layer}`` once only empty directories are left in it."""
        target: Path = self._root / "layers" / layer
        if report.dry_run or not target.is_dir():
            return
        if any(p.is_file() or p.is_symlink() for p in target.rglob("*")):
            return
        remove_tree(target)
        report.lines.append(StatusLine(StepStatus.REMOVED.value, f"layers/{layer}", "no files left"))
        parent: Path = target.parent
        if not any(parent.iterdir()):
            parent.rmdir()

    def _revert(self, edits: List[SharedFileEdit], report: RollbackReport) -> None:
        for edit in edits:
            try:
                result: MutationReport = self._mutator.revert([edit], dry_run=report.dry_run)
            except (OSError, ScaffoldError) as exc:
                report.errors.append(f"{edit.target_file}: {exc}")
                report.lines.append(StatusLine(StepStatus.ERROR.value, edit.target_file, str(exc)))
                logger.error("Could not revert %r: %s", edit, exc)
                continue
            report.lines.extend(result.lines)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def rollback(
        self,
        layer: str,
        collection: str,
        *,
        dry_run: bool = False,
        force: bool = False,
        keep_files: bool = False,
    ) -> RollbackReport:
        """Roll back one collection."""
        n: NamingSet = derive_naming(collection, layer)
        self._cancel_window(f"{layer}/{n.kebab_case_plural}", force=force, dry_run=dry_run)
        report: RollbackReport = RollbackReport(layer=layer, dry_run=dry_run)
        self._rollback_one(n, report, force=force, keep_files=keep_files)
        logger.info(
            "Rollback of %s/%s finished: %d step(s), %d error(s).",
            layer, n.kebab_case_plural, len(report.lines), len(report.errors),
        )
        return report

    def _rollback_one(
        self,
        n: NamingSet,
        report: RollbackReport,
        *,
        force: bool,
        keep_files: bool,
        keep_layer_entry: bool = False,
    ) -> None:
        report.collections.append(n.kebab_case_plural)
        if keep_files:
            report.lines.append(StatusLine(
                StepStatus.SKIPPED.value, n.base_dir, "--keep-files", report.dry_run,
            ))
        else:
            self._remove_directory(n, report)

        edits: List[SharedFileEdit] = plan_unit(n, self._config, include_locales=True)
        collection_edits: List[SharedFileEdit] = [e for e in edits if not e.layer_level]
        self._revert(list(reversed(collection_edits)), report)

        if keep_layer_entry:
            return
        siblings: List[str] = [
            name for name in self.collections_in_layer(n.layer) if name != n.kebab_case_plural
        ]
        layer_edits: List[SharedFileEdit] = [e for e in edits if e.layer_level]
        if siblings and not force:
            for edit in layer_edits:
                report.lines.append(StatusLine(
                    StepStatus.SKIPPED.value, edit.target_file,
                    f"layer {n.layer} still has {len(siblings)} collection(s)", report.dry_run,
                ))
            return
        self._revert(layer_edits, report)
        self._prune_layer(n.layer, report)

    def rollback_layer(
        self,
        layer: str,
        *,
        dry_run: bool = False,
        force: bool = False,
        keep_files: bool = False,
    ) -> RollbackReport:
        """Roll back every collection under ``layers/{layer}/collections``."""
        report: RollbackReport = RollbackReport(layer=layer, dry_run=dry_run)
        names: List[str] = self.collections_in_layer(layer)
        if not names:
            report.errors.append(f"No collections found in layer {layer!r}")
            logger.error("No collections found in layer %r.", layer)
            return report

        self._cancel_window(
            f"all {len(names)} collection(s) of layer {layer}", force=force, dry_run=dry_run
        )
        for name in names:
            self._rollback_one(
                derive_naming(name, layer), report,
                force=force, keep_files=keep_files, keep_layer_entry=True,
            )

        layer_edits: List[SharedFileEdit] = [
            e for e in plan_unit(derive_naming(names[0], layer), self._config) if e.layer_level
        ]
        self._revert(layer_edits, report)
        self._prune_layer(layer, report)
        logger.info(
            "Layer rollback of %s finished: %d collection(s), %d error(s).",
            layer, len(names), len(report.errors),
        )
        return report


__all__: List[str] = [
    "RollbackReport",
    "RollbackEngine",
]

logger.debug("slicegen.rollback loaded.")
