# File: slicegen/models.py
"""
slicegen - Core Data Models
============================
Pydantic V2 models for field schemas, collection descriptors, derived naming,
emitted artifacts, shared-file edits and run configuration.  These models
are the single source of truth for the pipeline:

    Schema Loading → Naming → Emission → Materialization → Shared-File Edits

Every JSON-facing model accepts the camelCase keys used in schema and batch
config files (``maxLength``, ``refTarget``, ``fieldsFile`` ...) as aliases
while exposing snake_case attributes to Python code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("slicegen.models")

# ---------------------------------------------------------------------------
# Enums: fixed value sets shared across the engine
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Abstract field types understood by the Type Mapping Table."""

    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"
    REPEATER = "repeater"
    ARRAY = "array"
    REFERENCE = "reference"


class Dialect(str, Enum):
    """Storage dialects a schema can be emitted for."""

    PG = "pg"
    SQLITE = "sqlite"


class ArtifactKind(str, Enum):
    """Kinds of generated files, one per emitter."""

    STORAGE_SCHEMA = "storage-schema"
    QUERIES = "queries"
    REQUEST_HANDLER = "request-handler"
    FORM_UI = "form-ui"
    LIST_UI = "list-ui"
    TYPES = "types"
    COMPOSABLE = "composable"
    LAYER_CONFIG = "layer-config"
    README = "readme"
    SEED = "seed"
    FIELD_COMPONENT = "field-component"


class SharedFileKind(str, Enum):
    """Shared files outside the generated tree that the mutator patches."""

    ROOT_EXTENDS = "root-extends"
    LAYER_EXTENDS = "layer-extends"
    SCHEMA_INDEX = "schema-index"
    REGISTRY = "registry"
    LOCALE = "locale"


class StepStatus(str, Enum):
    """Outcome of a single file-level step."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    REMOVED = "removed"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Mixin: shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    validate_default=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)

_NAME_PATTERN: str = r"^[A-Za-z][A-Za-z0-9_-]*$"


# ---------------------------------------------------------------------------
# Field schema
# ---------------------------------------------------------------------------


class FieldMeta(BaseModel):
    """
    Per-field presentation and validation metadata.

    Unknown keys are preserved (``extra="allow"``) so custom component
    hints survive a load/emit cycle.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="allow",
    )

    required: bool = Field(default=False, description="Field must be provided.")
    nullable: bool = Field(default=False, description="Optional field accepts null.")
    unique: bool = Field(default=False, description="Storage-level UNIQUE.")
    max_length: Optional[int] = Field(
        default=None, ge=1, alias="maxLength", description="Max string length."
    )
    translatable: bool = Field(default=False, description="Field is per-locale.")
    default: Any = Field(default=None, description="Default value for new records.")
    label: Optional[str] = Field(default=None, description="Human-readable label.")
    area: Optional[str] = Field(default=None, description="Form area: main | sidebar | meta.")
    group: Optional[str] = Field(default=None, description="Form group name.")
    options: Optional[List[str]] = Field(
        default=None, description="Allowed raw values for option-bearing fields."
    )
    display_as: Optional[str] = Field(
        default=None, alias="displayAs", description="Widget override, e.g. 'optionsSelect'."
    )
    depends_on: Optional[str] = Field(default=None, alias="dependsOn")
    depends_on_field: Optional[str] = Field(default=None, alias="dependsOnField")
    depends_on_collection: Optional[str] = Field(default=None, alias="dependsOnCollection")
    component: Optional[str] = Field(default=None, description="Custom input component.")
    repeater_component: Optional[str] = Field(default=None, alias="repeaterComponent")
    read_only: bool = Field(default=False, alias="readOnly")


class FieldDefinition(BaseModel):
    """One field of a collection, normalised from the schema file."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., pattern=r"^[A-Za-z_][A-Za-z0-9_]*$", description="Field name.")
    type: FieldType = Field(..., description="Abstract field type.")
    meta: FieldMeta = Field(default_factory=FieldMeta)
    ref_target: Optional[str] = Field(default=None, alias="refTarget")
    ref_scope: Optional[str] = Field(default=None, alias="refScope")

    @model_validator(mode="after")
    def _normalise_external_ref(self) -> "FieldDefinition":
        # ":users" marks a reference outside the layer
        if self.ref_target and self.ref_target.startswith(":"):
            object.__setattr__(self, "ref_target", self.ref_target[1:])
            object.__setattr__(self, "ref_scope", "external")
        return self

    @property
    def is_reference(self) -> bool:
        return self.type == FieldType.REFERENCE or bool(self.ref_target)

    @property
    def is_external_reference(self) -> bool:
        return self.is_reference and self.ref_scope in ("external", "adapter")

    @property
    def is_dependent(self) -> bool:
        """Value points at an element inside another record's array field."""
        return bool(
            (self.meta.depends_on and self.meta.depends_on_collection)
            or self.meta.display_as == "slotButtonGroup"
        )

    @property
    def label(self) -> str:
        if self.meta.label:
            return self.meta.label
        from slicegen.utils import to_title_human

        return to_title_human(self.name)

    def __repr__(self) -> str:
        req: str = " required" if self.meta.required else ""
        return f"<Field {self.name}: {self.type}{req}>"


# ---------------------------------------------------------------------------
# Collection options
# ---------------------------------------------------------------------------


class HierarchyConfig(BaseModel):
    """Tree-structure columns added when hierarchy is enabled."""

    model_config = _SHARED_CONFIG

    enabled: bool = True
    parent_field: str = Field(default="parentId", alias="parentField")
    path_field: str = Field(default="path", alias="pathField")
    depth_field: str = Field(default="depth", alias="depthField")
    order_field: str = Field(default="order", alias="orderField")

    @property
    def reserved_fields(self) -> List[str]:
        return [self.parent_field, self.path_field, self.depth_field, self.order_field]


class SortableConfig(BaseModel):
    """Flat drag-to-reorder support."""

    model_config = _SHARED_CONFIG

    enabled: bool = True
    order_field: str = Field(default="order", alias="orderField")


class SeedConfig(BaseModel):
    """Seed file generation settings for one collection."""

    model_config = _SHARED_CONFIG

    count: int = Field(default=25, ge=1)


class TranslationConfig(BaseModel):
    """Translatable fields of a collection and the locales they are kept in."""

    model_config = _SHARED_CONFIG

    fields: List[str] = Field(default_factory=list)
    locales: List[str] = Field(default_factory=lambda: ["en", "nl", "fr"], min_length=1)
    default_locale: str = Field(default="en")

    @model_validator(mode="after")
    def _default_locale_listed(self) -> "TranslationConfig":
        if self.default_locale not in self.locales:
            raise ValueError(
                f"Default locale '{self.default_locale}' is not in locales {self.locales}."
            )
        return self


def _coerce_toggle(value: Any) -> Any:
    """``true`` → enabled defaults, ``false``/``None`` → disabled."""
    if value is True:
        return {}
    if value is False:
        return None
    return value


class CollectionDescriptor(BaseModel):
    """
    Everything needed to generate one collection.

    Built by the loader from a schema file plus per-collection options.
    """

    model_config = _SHARED_CONFIG

    raw_name: str = Field(..., pattern=_NAME_PATTERN, description="Collection name as given.")
    layer: str = Field(..., pattern=_NAME_PATTERN, description="Owning layer.")
    fields: List[FieldDefinition] = Field(default_factory=list)
    hierarchy: Optional[HierarchyConfig] = None
    sortable: Optional[SortableConfig] = None
    translation: Optional[TranslationConfig] = None
    seed: Optional[SeedConfig] = None
    collab: bool = False

    @field_validator("hierarchy", "sortable", "seed", mode="before")
    @classmethod
    def _toggle(cls, v: Any) -> Any:
        return _coerce_toggle(v)

    @field_validator("fields")
    @classmethod
    def _unique_field_names(cls, v: List[FieldDefinition]) -> List[FieldDefinition]:
        names: List[str] = [f.name for f in v]
        dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate field names: {dupes}")
        return v

    @property
    def has_hierarchy(self) -> bool:
        return self.hierarchy is not None and self.hierarchy.enabled

    @property
    def tree(self) -> HierarchyConfig:
        """Enabled hierarchy settings; raises ValueError on a flat collection."""
        if self.hierarchy is None or not self.hierarchy.enabled:
            raise ValueError(f"{self.layer}/{self.raw_name} has no hierarchy enabled")
        return self.hierarchy

    @property
    def has_sortable(self) -> bool:
        return self.has_hierarchy or (self.sortable is not None and self.sortable.enabled)

    @property
    def order_field(self) -> str:
        if self.has_hierarchy:
            return self.tree.order_field
        if self.sortable is not None:
            return self.sortable.order_field
        return "order"

    @property
    def translatable_fields(self) -> List[str]:
        if self.translation is None:
            return []
        return list(self.translation.fields)

    @property
    def has_translations(self) -> bool:
        return bool(self.translatable_fields)

    def field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return f"<Collection {self.layer}/{self.raw_name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Derived naming
# ---------------------------------------------------------------------------


class NamingSet(BaseModel):
    """
    Canonical identifier forms for one collection.

    Computed exactly once per descriptor by ``slicegen.naming.derive_naming``
    and threaded through every emitter, editor and the rollback engine.
    """

    model_config = _FROZEN_CONFIG

    layer: str
    singular: str
    plural: str
    camel_case: str
    camel_case_plural: str
    pascal_case: str
    pascal_case_plural: str
    layer_pascal_case: str
    layer_camel_case: str
    kebab_case_plural: str
    api_path: str
    collection_key: str
    config_export: str
    schema_export: str
    prefixed_pascal: str
    prefixed_pascal_plural: str
    composable_name: str
    component_name: str
    validation_export: str
    columns_export: str
    id_param: str
    table_name: str
    base_dir: str

    @property
    def layer_dir(self) -> str:
        return f"layers/{self.layer}"

    @property
    def schema_import_path(self) -> str:
        """Schema module path as seen from ``server/db/schema.ts``."""
        return f"../../{self.base_dir}/server/database/schema"

    @property
    def composable_import_path(self) -> str:
        """Composable module path as seen from ``app/app.config.ts``."""
        return f"../{self.base_dir}/app/composables/{self.composable_name}"


# ---------------------------------------------------------------------------
# Artifacts & shared-file edits
# ---------------------------------------------------------------------------


class EmittedArtifact(BaseModel):
    """A generated file held in memory until the materializer persists it."""

    model_config = _FROZEN_CONFIG

    path: str = Field(..., min_length=1, description="Path relative to the project root.")
    content: str = Field(..., description="Full file content.")
    kind: ArtifactKind

    @property
    def line_count(self) -> int:
        return self.content.count("\n") + (1 if self.content else 0)

    def __repr__(self) -> str:
        return f"<Artifact {self.kind} {self.path}>"


class SharedFileEdit(BaseModel):
    """
    One idempotent mutation of a shared file.

    ``idempotency_key`` is the exact text whose presence means the edit is
    already applied; insertion and removal both key on it.
    """

    model_config = _FROZEN_CONFIG

    target_file: str = Field(..., min_length=1, description="Path relative to project root.")
    kind: SharedFileKind
    anchor_pattern: str = Field(..., description="Syntactic anchor the entry is spliced at.")
    insertion_text: str = Field(..., description="Entry text to insert.")
    idempotency_key: str = Field(..., min_length=1)
    layer: str
    layer_level: bool = Field(
        default=False, description="Entry is shared by every collection of the layer."
    )
    symbol: Optional[str] = Field(default=None, description="Exported symbol, for conflict checks.")
    source: Optional[str] = Field(default=None, description="Module the symbol comes from.")

    def __repr__(self) -> str:
        return f"<Edit {self.kind} {self.target_file} [{self.idempotency_key}]>"


class GenerationUnit(BaseModel):
    """Generated subtree plus the shared-file edits belonging to one collection."""

    model_config = _SHARED_CONFIG

    naming: NamingSet
    generated_dir: str
    edits: List[SharedFileEdit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------


class GenerationFlags(BaseModel):
    """Behaviour switches shared by single and batch runs."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True, extra="ignore")

    force: bool = False
    dry_run: bool = Field(default=False, alias="dryRun")
    no_translations: bool = Field(default=False, alias="noTranslations")
    no_db: bool = Field(default=False, alias="noDb")
    use_metadata: bool = Field(default=True, alias="useMetadata")
    strict: bool = True


class TranslationsSettings(BaseModel):
    """Project-wide translatable-field declarations, keyed by collection."""

    model_config = _SHARED_CONFIG

    collections: Dict[str, List[str]] = Field(default_factory=dict)


class SeedSettings(BaseModel):
    """Defaults for generated seed files."""

    model_config = _SHARED_CONFIG

    default_count: int = Field(default=25, ge=1, alias="defaultCount")
    default_team_id: str = Field(default="seed-team", alias="defaultTeamId")


class GlobalConfig(BaseModel):
    """Settings shared by every collection of one run."""

    model_config = _SHARED_CONFIG

    dialect: Dialect = Field(default=Dialect.SQLITE)
    flags: GenerationFlags = Field(default_factory=GenerationFlags)
    translations: TranslationsSettings = Field(default_factory=TranslationsSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)
    locales: List[str] = Field(default_factory=lambda: ["en", "nl", "fr"], min_length=1)
    project_root: Path = Field(default=Path("."))
    migration_command: List[str] = Field(
        default_factory=lambda: ["npx", "nuxt", "db", "generate"]
    )
    migration_timeout: float = Field(default=30.0, gt=0)
    cancel_window: float = Field(default=3.0, ge=0)

    @property
    def root(self) -> Path:
        return Path(self.project_root).resolve()

    @property
    def migration_command_str(self) -> str:
        return " ".join(self.migration_command)


class CollectionEntry(BaseModel):
    """One ``collections[]`` item of a batch config."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., pattern=_NAME_PATTERN)
    fields_file: str = Field(..., min_length=1, alias="fieldsFile")
    hierarchy: Optional[HierarchyConfig] = None
    sortable: Optional[SortableConfig] = None
    seed: Optional[SeedConfig] = None
    collab: bool = False

    @field_validator("hierarchy", "sortable", "seed", mode="before")
    @classmethod
    def _toggle(cls, v: Any) -> Any:
        return _coerce_toggle(v)


class TargetEntry(BaseModel):
    """One ``targets[]`` item: a layer and the collections it receives."""

    model_config = _SHARED_CONFIG

    layer: str = Field(..., pattern=_NAME_PATTERN)
    collections: List[str] = Field(default_factory=list)


class BatchConfig(BaseModel):
    """A whole multi-collection generation plan."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True, extra="ignore")

    collections: List[CollectionEntry] = Field(default_factory=list)
    targets: List[TargetEntry] = Field(default_factory=list)
    dialect: str = Field(default="sqlite")
    flags: GenerationFlags = Field(default_factory=GenerationFlags)
    translations: TranslationsSettings = Field(default_factory=TranslationsSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)

    def entry(self, name: str) -> Optional[CollectionEntry]:
        for c in self.collections:
            if c.name == name:
                return c
        return None


# ---------------------------------------------------------------------------
# Status reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StatusLine:
    """One audited step: what happened to which path."""

    status: str
    path: str
    detail: str = ""
    dry_run: bool = False

    def render(self) -> str:
        icon: str = {
            StepStatus.CREATED.value: "✓",
            StepStatus.UPDATED.value: "✓",
            StepStatus.SKIPPED.value: "⊘",
            StepStatus.REMOVED.value: "✓",
            StepStatus.ERROR.value: "✗",
        }.get(self.status, "•")
        prefix: str = "[dry-run] " if self.dry_run else ""
        suffix: str = f"  ({self.detail})" if self.detail else ""
        return f"{icon} {prefix}{self.status:<8s} {self.path}{suffix}"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldType",
    "Dialect",
    "ArtifactKind",
    "SharedFileKind",
    "StepStatus",
    "FieldMeta",
    "FieldDefinition",
    "HierarchyConfig",
    "SortableConfig",
    "SeedConfig",
    "TranslationConfig",
    "CollectionDescriptor",
    "NamingSet",
    "EmittedArtifact",
    "SharedFileEdit",
    "GenerationUnit",
    "GenerationFlags",
    "TranslationsSettings",
    "SeedSettings",
    "GlobalConfig",
    "CollectionEntry",
    "TargetEntry",
    "BatchConfig",
    "StatusLine",
]

logger.debug("slicegen.models loaded — %d public symbols.", len(__all__))
