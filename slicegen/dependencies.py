# File: slicegen/dependencies.py
"""
slicegen - Dependency & Conflict Detector
==========================================
Checks the host project before anything is written:

    1. Capabilities: which packages a collection needs, whether the host
       declares them in ``package.json`` and whether layer packages are
       extended from the root ``nuxt.config.ts``.
    2. Conflicts: shared-file symbols bound to something else and
       generated directories that already exist.

Capabilities that are installed but not extended are *resolvable*: the
orchestrator fixes them with a root extends edit.  Missing ones raise
``DependencyWarning`` unless ``force`` is set.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from slicegen.errors import DependencyWarning
from slicegen.models import (
    CollectionDescriptor,
    GlobalConfig,
    NamingSet,
    SharedFileEdit,
    SharedFileKind,
)
from slicegen.mutator import ROOT_CONFIG, SharedFileMutator, extends_body, extends_edit
from slicegen.utils import read_file_or_none

logger: logging.Logger = logging.getLogger("slicegen.dependencies")

CORE_PACKAGE: str = "@fyit/crouton"
_CROUTON_PREFIX: str = "@fyit/crouton-"


@dataclass(frozen=True, slots=True)
class Capability:
    """A package the generated code imports from."""

    name: str
    package: str
    reason: str
    is_layer: bool = False

    @property
    def install_hint(self) -> str:
        return f"pnpm add {self.package}"

    @property
    def extends_hint(self) -> str:
        return f"Add to nuxt.config.ts: extends: ['{self.package}']"


@dataclass(frozen=False, slots=True)
class DependencyReport:
    """Result of one capability check."""

    required: List[Capability] = field(default_factory=list)
    missing: List[Capability] = field(default_factory=list)
    resolvable: List[Capability] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    @property
    def remediation(self) -> List[str]:
        out: List[str] = [f"{c.package}: {c.reason}. {c.install_hint}" for c in self.missing]
        out += [f"{c.package}: installed but not extended. {c.extends_hint}" for c in self.resolvable]
        return out

    def summary(self) -> str:
        if self.ok and not self.resolvable:
            return f"✓ All {len(self.required)} capabilities available."
        lines: List[str] = []
        for c in self.missing:
            lines.append(f"✗ missing    {c.package} ({c.reason})")
        for c in self.resolvable:
            lines.append(f"⚠ not extended {c.package}")
        return "\n".join(lines)


class DependencyDetector:
    """
    Reads ``package.json`` and the root ``nuxt.config.ts`` once per run.

    A missing ``package.json`` means nothing is installed.
    """

    def __init__(self, config: GlobalConfig) -> None:
        self._config: GlobalConfig = config
        self._root: Path = config.root
        self._deps: Dict[str, str] = self._load_deps()
        self._extends: str = self._load_extends()

    # -----------------------------------------------------------------
    # Host inspection
    # -----------------------------------------------------------------

    def _load_deps(self) -> Dict[str, str]:
        raw: Optional[str] = read_file_or_none(self._root / "package.json")
        if raw is None:
            logger.warning("No package.json under %s; treating every package as missing.", self._root)
            return {}
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Could not parse package.json: %s", exc)
            return {}
        deps: Dict[str, str] = {}
        for section in ("dependencies", "devDependencies"):
            value: Any = data.get(section) or {}
            if isinstance(value, dict):
                deps.update({str(k): str(v) for k, v in value.items()})
        return deps

    def _load_extends(self) -> str:
        content: str = read_file_or_none(self._root / ROOT_CONFIG) or ""
        if "getCroutonLayers" in content:
            return content
        return extends_body(content)

    def is_installed(self, package: str) -> bool:
        if package in self._deps:
            return True
        if package.startswith(_CROUTON_PREFIX) and CORE_PACKAGE in self._deps:
            return True
        short: str = package.replace("@fyit/", "")
        return any(
            v.startswith("file:") and (v.endswith(f"/{short}") or f"/{short}/" in v)
            for v in self._deps.values()
        )

    def is_extended(self, package: str) -> bool:
        if "getCroutonLayers" in self._extends and package.startswith(CORE_PACKAGE):
            return True
        if re.search(rf"['\"]{re.escape(package)}['\"]", self._extends):
            return True
        if package.startswith(_CROUTON_PREFIX) and re.search(
            rf"['\"]{re.escape(CORE_PACKAGE)}['\"]", self._extends
        ):
            return True
        short: str = package.replace("@fyit/", "")
        return re.search(rf"[/\\]{re.escape(short)}['\"`\s,]", self._extends) is not None

    # -----------------------------------------------------------------
    # Capabilities
    # -----------------------------------------------------------------

    def required_capabilities(self, descriptor: CollectionDescriptor) -> List[Capability]:
        caps: List[Capability] = [
            Capability("core", CORE_PACKAGE, "Crouton collection runtime", is_layer=True),
            Capability("auth", "@fyit/crouton-auth", "team membership checks in handlers", is_layer=True),
        ]
        if descriptor.has_translations and not self._config.flags.no_translations:
            caps.append(Capability("i18n", "@fyit/crouton-i18n", "translatable fields", is_layer=True))
        if descriptor.collab:
            caps.append(Capability("collab", "@fyit/crouton-collab", "presence badges in the list", is_layer=True))
        if str(self._config.dialect) == "sqlite":
            caps.append(Capability("nanoid", "nanoid", "sqlite ids and tree paths"))
        caps.append(Capability("drizzle-orm", "drizzle-orm", "storage schema and queries"))
        return caps

    def check(self, descriptor: CollectionDescriptor) -> DependencyReport:
        report: DependencyReport = DependencyReport(required=self.required_capabilities(descriptor))
        for cap in report.required:
            if not self.is_installed(cap.package):
                report.missing.append(cap)
            elif cap.is_layer and not self.is_extended(cap.package):
                # Sub-packages ride along once the core layer is extended.
                if cap.package != CORE_PACKAGE and any(
                    r.package == CORE_PACKAGE for r in report.resolvable
                ):
                    continue
                report.resolvable.append(cap)
        logger.debug(
            "Dependency check for %s: %d missing, %d resolvable.",
            descriptor.raw_name, len(report.missing), len(report.resolvable),
        )
        return report

    def enforce(self, report: DependencyReport, *, force: bool, strict: bool = True) -> List[str]:
        """
        Raise for missing capabilities in *strict* mode unless *force*.

        Outside strict mode missing capabilities only produce warnings.
        Returns the warning texts.

        Raises:
            DependencyWarning: Something is missing, *strict* is on and
                *force* is off.
        """
        if not report.missing:
            return []
        packages: List[str] = [c.package for c in report.missing]
        if strict and not force:
            raise DependencyWarning(
                f"Missing required packages: {', '.join(packages)}",
                missing=packages,
                remediation=report.remediation,
            )
        if force:
            warnings: List[str] = [f"Continuing with --force despite missing {p}" for p in packages]
        else:
            warnings = [f"Missing required package {p} (non-strict mode)" for p in packages]
        for text in warnings + report.remediation:
            logger.warning(text)
        return warnings

    @staticmethod
    def resolution_edits(report: DependencyReport) -> List[SharedFileEdit]:
        """Root extends edits that make resolvable capabilities available."""
        return [extends_edit(ROOT_CONFIG, c.package, "") for c in report.resolvable]


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


def detect_conflicts(
    naming: NamingSet,
    edits: Sequence[SharedFileEdit],
    mutator: SharedFileMutator,
    *,
    force: bool = False,
) -> List[str]:
    """
    Conflicts that would block generating *naming*.

    Covers symbols in the registry and schema index that are bound to
    something else, and (without *force*) an existing generated directory.
    """
    checked: List[SharedFileEdit] = [
        e for e in edits
        if str(e.kind) in (SharedFileKind.REGISTRY.value, SharedFileKind.SCHEMA_INDEX.value)
    ]
    conflicts: List[str] = mutator.find_conflicts(checked)
    if not force and (mutator.root / naming.base_dir).exists():
        conflicts.append(f"{naming.base_dir} already exists")
    return conflicts


__all__: List[str] = [
    "CORE_PACKAGE",
    "Capability",
    "DependencyReport",
    "DependencyDetector",
    "detect_conflicts",
]

logger.debug("slicegen.dependencies loaded.")
