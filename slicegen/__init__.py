# File: slicegen/__init__.py
"""
slicegen — Collection Scaffolding Engine
=========================================

Turns a field schema (JSON/YAML) into a complete collection slice for a
layered Nuxt host project: Drizzle storage schema, queries, team-scoped
API handlers, form and list components, types, a config composable and
optional seed data.  The slice is then wired into the host's shared files
(extends lists, schema index, collection registry, locale files) with
idempotent edits that rollback can reverse.

Architecture overview::

    ┌──────────────┐     ┌───────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ScaffoldOrchestrator│────▶│    EmitterSet    │
    │   (cli.py)   │     │ (orchestrator.py) │     │ (emitters.py,    │
    └──────┬───────┘     └─────────┬─────────┘     │  ui_templates.py)│
           │                       │               └──────────────────┘
           │          ┌────────────┼─────────────┬──────────────┐
           ▼          ▼            ▼             ▼              ▼
    ┌────────────┐ ┌──────────┐ ┌────────────┐ ┌────────────┐ ┌──────────┐
    │  rollback  │ │validators│ │materializer│ │  mutator   │ │dependen- │
    │   (.py)    │ │ loader   │ │   (.py)    │ │   (.py)    │ │cies (.py)│
    └────────────┘ └──────────┘ └────────────┘ └────────────┘ └──────────┘

Usage::

    # As a library
    from slicegen import GlobalConfig, ScaffoldOrchestrator
    report = ScaffoldOrchestrator(GlobalConfig()).generate_single(
        "shop", "products", Path("products.json")
    )
    print(report.summary())

    # From the command line
    slicegen generate shop products -f products.json -v

Public API:
    - ScaffoldOrchestrator — Single and batch generation
    - RollbackEngine       — Collection and layer rollback
    - GlobalConfig         — Run settings model
    - BatchConfig          — Multi-collection plan model
    - derive_naming        — Canonical identifier derivation
    - EmitterSet           — Artifact emitters
    - SharedFileMutator    — Idempotent shared-file edits
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from slicegen.errors import (
    AnchorNotFoundError,
    ConflictError,
    DependencyWarning,
    ExternalCommandError,
    ExternalCommandTimeout,
    MaterializationError,
    ScaffoldError,
    ValidationError,
)
from slicegen.models import (
    BatchConfig,
    CollectionDescriptor,
    Dialect,
    EmittedArtifact,
    FieldDefinition,
    FieldType,
    GenerationFlags,
    GlobalConfig,
    NamingSet,
    SharedFileEdit,
)
from slicegen.naming import CollectionRegistry, derive_naming
from slicegen.loader import load_batch_config, load_descriptor, load_field_schema
from slicegen.validators import ValidationResult, validate_batch_plan, validate_descriptor
from slicegen.emitters import EmitterSet
from slicegen.materializer import Materializer
from slicegen.mutator import SharedFileMutator, plan_unit
from slicegen.dependencies import DependencyDetector
from slicegen.orchestrator import GenerationReport, ScaffoldOrchestrator
from slicegen.rollback import RollbackEngine, RollbackReport

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestration
    "ScaffoldOrchestrator",
    "GenerationReport",
    "RollbackEngine",
    "RollbackReport",
    # Models
    "BatchConfig",
    "CollectionDescriptor",
    "Dialect",
    "EmittedArtifact",
    "FieldDefinition",
    "FieldType",
    "GenerationFlags",
    "GlobalConfig",
    "NamingSet",
    "SharedFileEdit",
    # Pipeline components
    "CollectionRegistry",
    "derive_naming",
    "load_batch_config",
    "load_descriptor",
    "load_field_schema",
    "ValidationResult",
    "validate_batch_plan",
    "validate_descriptor",
    "EmitterSet",
    "Materializer",
    "SharedFileMutator",
    "plan_unit",
    "DependencyDetector",
    # Errors
    "ScaffoldError",
    "ValidationError",
    "ConflictError",
    "DependencyWarning",
    "MaterializationError",
    "AnchorNotFoundError",
    "ExternalCommandError",
    "ExternalCommandTimeout",
]
