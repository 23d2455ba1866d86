# File: slicegen/materializer.py
"""
slicegen - File-System Materializer
====================================

Responsible for:
    1. Resolving every artifact path inside the project root.
    2. Refusing to overwrite existing files unless ``force`` is set.
    3. Writing each artifact atomically (write-to-temp then rename).
    4. Reporting one status line per file, plus the paths left inconsistent.

Pre-flight runs over the whole artifact list before the first write, so a
path escape or collision costs zero writes.  After pre-flight a failing
file is recorded and the remaining files are still attempted; each file
on its own is atomic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

from slicegen.errors import ConflictError, MaterializationError, ValidationError
from slicegen.models import EmittedArtifact, StatusLine, StepStatus
from slicegen.utils import Timer, count_lines, sha256_hex, write_file

logger: logging.Logger = logging.getLogger("slicegen.materializer")


# ---------------------------------------------------------------------------
# Result data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single written file."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=False, slots=True)
class MaterializationReport:
    """Outcome of one :meth:`Materializer.materialize` call."""

    dry_run: bool = False
    lines: List[StatusLine] = field(default_factory=list)
    records: List[FileRecord] = field(default_factory=list)
    errors: List[MaterializationError] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def failed_paths(self) -> List[str]:
        """Paths that may now be missing or stale."""
        return [e.path for e in self.errors]

    @property
    def written_paths(self) -> List[str]:
        return [r.relative_path for r in self.records]

    def summary(self) -> str:
        mode: str = " (dry-run)" if self.dry_run else ""
        out: List[str] = [f"Materialized {len(self.lines)} file(s){mode}:"]
        out += [f"  {line.render()}" for line in self.lines]
        if self.errors:
            out.append(f"  {len(self.errors)} file(s) may be inconsistent:")
            out += [f"    ✗ {p}" for p in self.failed_paths]
        return "\n".join(out)


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------


class Materializer:
    """
    Persists emitted artifacts under a project root.

    Usage::

        report = Materializer(Path(".")).materialize(artifacts, force=False)
        print(report.summary())

    Thread-safety: NOT thread-safe.  Use one materializer per run.
    """

    def __init__(self, project_root: Path) -> None:
        self._root: Path = Path(project_root).resolve()
        logger.debug("Materializer initialised: root=%s.", self._root)

    @property
    def root(self) -> Path:
        return self._root

    # -----------------------------------------------------------------
    # Pre-flight
    # -----------------------------------------------------------------

    def resolve(self, relative_path: str) -> Path:
        """Absolute path for *relative_path*; raises if it leaves the root."""
        target: Path = (self._root / relative_path).resolve()
        if target != self._root and self._root not in target.parents:
            raise ValidationError(
                "Artifact path escapes the project root.",
                [f"{relative_path} escapes the project root ({target})"],
            )
        return target

    def preflight(
        self, artifacts: Sequence[EmittedArtifact], force: bool
    ) -> List[Tuple[EmittedArtifact, Path, bool]]:
        """
        Resolve every artifact and check for collisions.

        Returns ``(artifact, absolute path, exists)`` triples in input order.
        """
        planned: List[Tuple[EmittedArtifact, Path, bool]] = []
        escapes: List[str] = []
        seen: set = set()
        for artifact in artifacts:
            try:
                target: Path = self.resolve(artifact.path)
            except ValidationError as exc:
                escapes.extend(exc.issues)
                continue
            if target in seen:
                escapes.append(f"{artifact.path} is emitted twice")
                continue
            seen.add(target)
            planned.append((artifact, target, target.exists()))

        if escapes:
            raise ValidationError("Refusing to materialize artifacts.", escapes)

        collisions: List[str] = [a.path for a, _, exists in planned if exists]
        if collisions and not force:
            raise ConflictError(
                f"{len(collisions)} file(s) already exist. Use --force to overwrite.",
                collisions,
            )
        return planned

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def materialize(
        self,
        artifacts: Sequence[EmittedArtifact],
        *,
        force: bool = False,
        dry_run: bool = False,
    ) -> MaterializationReport:
        """
        Write *artifacts* to disk.

        Raises:
            ValidationError: An artifact path resolves outside the root.
            ConflictError: A target exists and *force* is off.
        """
        report: MaterializationReport = MaterializationReport(dry_run=dry_run)

        with Timer("materialize") as timer:
            planned = self.preflight(artifacts, force)

            for artifact, target, exists in planned:
                status: str = StepStatus.UPDATED.value if exists else StepStatus.CREATED.value
                if dry_run:
                    report.lines.append(StatusLine(status, artifact.path, dry_run=True))
                    continue
                try:
                    size: int = write_file(target, artifact.content)
                except OSError as exc:
                    error: MaterializationError = MaterializationError(
                        f"Failed to write {artifact.path}: {type(exc).__name__}: {exc}",
                        path=artifact.path,
                    )
                    report.errors.append(error)
                    report.lines.append(
                        StatusLine(StepStatus.ERROR.value, artifact.path, detail=str(exc))
                    )
                    logger.error(error.message)
                    continue

                report.records.append(FileRecord(
                    relative_path=artifact.path,
                    absolute_path=str(target),
                    size_bytes=size,
                    line_count=count_lines(artifact.content),
                    sha256=sha256_hex(artifact.content),
                ))
                report.lines.append(StatusLine(status, artifact.path))

        report.elapsed_seconds = timer.elapsed

        if report.success:
            logger.info(
                "Materialized %d file(s)%s in %.3fs.",
                len(report.lines),
                " (dry-run)" if dry_run else "",
                timer.elapsed,
            )
        else:
            logger.error(
                "Materialization finished with %d failed file(s) in %.3fs.",
                len(report.errors),
                timer.elapsed,
            )
        return report


__all__: List[str] = [
    "FileRecord",
    "MaterializationReport",
    "Materializer",
]

logger.debug("slicegen.materializer loaded.")
