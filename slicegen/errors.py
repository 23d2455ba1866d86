# File: slicegen/errors.py
"""
slicegen - Error Taxonomy
=========================
Every failure the engine raises derives from ``ScaffoldError`` so the CLI
can map the whole family to exit code 1 with a single handler.

    ScaffoldError
    ├── ValidationError            bad schema file, unknown type, invalid plan
    ├── ConflictError              symbol or path already owned by something else
    ├── DependencyWarning          host project lacks a required capability
    ├── MaterializationError       one artifact or shared file failed to write
    │   └── AnchorNotFoundError    shared file has no recognisable insertion point
    └── ExternalCommandError       migration command failed
        └── ExternalCommandTimeout migration command exceeded its time limit

``ValidationError`` and ``ConflictError`` are raised before anything is
written.  ``DependencyWarning`` and ``ExternalCommandError`` are demoted to
logged warnings by the orchestrator when ``force`` is set.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

logger: logging.Logger = logging.getLogger("slicegen.errors")


class ScaffoldError(Exception):
    """Base class for all slicegen failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(ScaffoldError):
    """Input rejected before any write: schema, field type or batch plan."""

    def __init__(self, message: str, issues: Sequence[str] = ()) -> None:
        self.issues: List[str] = list(issues)
        if self.issues:
            message = message + "\n" + "\n".join(f"  ✗ {i}" for i in self.issues)
        super().__init__(message, {"issues": self.issues})


class ConflictError(ScaffoldError):
    """A symbol or path about to be introduced is already owned elsewhere."""

    def __init__(self, message: str, conflicts: Sequence[str] = ()) -> None:
        self.conflicts: List[str] = list(conflicts)
        if self.conflicts:
            message = message + "\n" + "\n".join(f"  ✗ {c}" for c in self.conflicts)
        super().__init__(message, {"conflicts": self.conflicts})


class DependencyWarning(ScaffoldError):
    """The host project does not declare a capability the slice needs."""

    def __init__(self, message: str, missing: Sequence[str] = (), remediation: Sequence[str] = ()) -> None:
        self.missing: List[str] = list(missing)
        self.remediation: List[str] = list(remediation)
        if self.remediation:
            message = message + "\n" + "\n".join(f"  → {r}" for r in self.remediation)
        super().__init__(message, {"missing": self.missing})


class MaterializationError(ScaffoldError):
    """A single file could not be written after pre-flight passed."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path: str = path
        super().__init__(message, {"path": path})


class AnchorNotFoundError(MaterializationError):
    """A shared file exists but holds no anchor the editor can splice into."""

    def __init__(self, path: str, expected: str) -> None:
        self.expected: str = expected
        super().__init__(
            f"No insertion anchor in {path}: expected {expected}. "
            "Add it by hand and re-run.",
            path=path,
        )


class ExternalCommandError(ScaffoldError):
    """The deferred migration command failed."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        self.command: str = command
        self.returncode: Optional[int] = returncode
        self.output: str = output
        super().__init__(message, {"command": command, "returncode": returncode})

    @property
    def manual_hint(self) -> str:
        return f"Run it manually: {self.command}"


class ExternalCommandTimeout(ExternalCommandError):
    """The deferred migration command did not finish in time."""

    def __init__(self, command: str, timeout: float) -> None:
        self.timeout: float = timeout
        super().__init__(
            f"External command timed out after {timeout:.0f}s: {command}",
            command=command,
        )


__all__: List[str] = [
    "ScaffoldError",
    "ValidationError",
    "ConflictError",
    "DependencyWarning",
    "MaterializationError",
    "AnchorNotFoundError",
    "ExternalCommandError",
    "ExternalCommandTimeout",
]

logger.debug("slicegen.errors loaded.")
