# File: slicegen/emitters.py
"""
slicegen - Server-Side Emitters
================================
Pure code-generation engine for the server half of a collection slice.

Transforms a ``CollectionDescriptor`` and its ``NamingSet`` into
TypeScript source for:
    1. Drizzle storage schema (pg or sqlite dialect)
    2. Query functions with team scoping, joins and tree operations
    3. Nitro request handlers (CRUD, move, reorder)
    4. Type definitions
    5. The collection layer's own ``nuxt.config.ts``
    6. A drizzle-seed seed file
    7. A per-collection README

UI templates (form, list, composable, field components) live in
``slicegen.ui_templates``; :meth:`EmitterSet.emit_all` gathers both.

**Contract:**
    - Every ``emit_*`` method is side-effect free.  Nothing here touches
      the filesystem.
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Every symbol comes from a ``NamingSet``; referenced collections are
      resolved through the ``CollectionRegistry`` passed in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from slicegen.models import (
    ArtifactKind,
    CollectionDescriptor,
    Dialect,
    EmittedArtifact,
    FieldDefinition,
    FieldType,
    GlobalConfig,
    NamingSet,
)
from slicegen.naming import CollectionRegistry
from slicegen.typemap import (
    field_ts_type,
    is_json_field,
    storage_column,
    storage_function,
)
from slicegen.ui_templates import UITemplateGenerator
from slicegen.utils import to_camel_case, to_pascal_case, ts_string

logger: logging.Logger = logging.getLogger("slicegen.emitters")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_I: str = "  "  # 2-space TypeScript indent
_II: str = _I * 2
_III: str = _I * 3
_IIII: str = _I * 4

_AUTH_IMPORT: str = (
    "import { resolveTeamAndCheckMembership } from '@fyit/crouton-auth/server/utils/team'"
)
_USER_TARGETS: Tuple[str, ...] = ("user", "users")
_USER_COLUMNS: Tuple[str, ...] = ("id", "name", "email", "image")
_SQLITE_IMPORT_ORDER: Tuple[str, ...] = ("sqliteTable", "text", "integer", "real", "customType")
_PG_IMPORT_ORDER: Tuple[str, ...] = (
    "pgTable", "text", "varchar", "integer", "numeric", "boolean", "timestamp", "jsonb", "uuid",
)
_QUERIES_FROM_HANDLER: str = "../../../../database/queries"
_QUERIES_FROM_ITEM_HANDLER: str = "../../../../../database/queries"
_TYPES_FROM_HANDLER: str = "../../../../../types"

_SEED_NAME_RULES: Tuple[Tuple[Tuple[str, ...], str, str], ...] = (
    # (names, match mode, generator); "in" = substring, "eq" = exact
    (("email",), "in", "f.email()"),
    (("name", "fullname", "full_name"), "eq", "f.fullName()"),
    (("firstname", "first_name"), "eq", "f.firstName()"),
    (("lastname", "last_name"), "eq", "f.lastName()"),
    (("title", "slug"), "eq", "f.loremIpsum({ sentencesCount: 1 })"),
    (("description", "bio", "content", "summary"), "eq", "f.loremIpsum({ sentencesCount: 3 })"),
    (("phone",), "in", "f.phoneNumber()"),
    (("url", "website", "link"), "in", "f.valuesFromArray({ values: ['https://example.com'] })"),
    (("price", "amount", "cost", "total"), "in", "f.number({ minValue: 1, maxValue: 1000, precision: 100 })"),
    (("quantity", "count", "stock"), "in", "f.int({ minValue: 0, maxValue: 100 })"),
    (("address",), "in", "f.streetAddress()"),
    (("city",), "eq", "f.city()"),
    (("country",), "eq", "f.country()"),
    (("state", "province"), "eq", "f.state()"),
    (("zip", "postal"), "in", "f.postcode()"),
    (("status",), "eq", "f.valuesFromArray({ values: ['active', 'inactive', 'pending'] })"),
    (("type", "category"), "eq", "f.valuesFromArray({ values: ['type_a', 'type_b', 'type_c'] })"),
)

_SEED_TYPE_MAP: Dict[str, str] = {
    "string": "f.loremIpsum({ sentencesCount: 1 })",
    "text": "f.loremIpsum({ sentencesCount: 3 })",
    "number": "f.int({ minValue: 0, maxValue: 100 })",
    "decimal": "f.number({ minValue: 0, maxValue: 1000, precision: 100 })",
    "boolean": "f.weightedRandom([{ value: true, weight: 0.5 }, { value: false, weight: 0.5 }])",
    "date": "f.date({ minDate: '2020-01-01', maxDate: '2025-12-31' })",
    "json": "f.valuesFromArray({ values: [{}] })",
    "repeater": "f.valuesFromArray({ values: [[]] })",
    "array": "f.valuesFromArray({ values: [[]] })",
    "reference": "f.loremIpsum({ sentencesCount: 1 })",
}


def seed_generator(f: FieldDefinition) -> str:
    """Pick a drizzle-seed generator by field name first, then by type."""
    lowered: str = f.name.lower()
    for names, mode, generator in _SEED_NAME_RULES:
        if mode == "eq" and lowered in names:
            return generator
        if mode == "in" and any(n in lowered for n in names):
            return generator
    return _SEED_TYPE_MAP.get(str(f.type), _SEED_TYPE_MAP["string"])


# ---------------------------------------------------------------------------
# Join planning for the query emitter
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class JoinSpec:
    """One left join of the list queries."""

    column: str
    select_key: str
    table_expr: str
    alias_var: Optional[str] = None
    is_user: bool = False

    @property
    def ref(self) -> str:
        return self.alias_var or self.table_expr


@dataclass(frozen=False, slots=True)
class QueryPlan:
    """Imports, joins and post-processing steps shared by the list queries."""

    schema_imports: List[str] = field(default_factory=list)
    external_symbols: List[str] = field(default_factory=list)
    joins: List[JoinSpec] = field(default_factory=list)
    array_refs: List[Tuple[str, str]] = field(default_factory=list)
    json_fields: List[str] = field(default_factory=list)

    @property
    def needs_alias(self) -> bool:
        return any(j.alias_var for j in self.joins)


# ---------------------------------------------------------------------------
# EmitterSet
# ---------------------------------------------------------------------------


class EmitterSet:
    """
    Stateless emitter for one run.

    Holds the run's ``GlobalConfig`` and ``CollectionRegistry``; every
    ``emit_*`` method takes the descriptor and naming explicitly and
    returns artifacts without side effects.
    """

    def __init__(self, config: GlobalConfig, registry: Optional[CollectionRegistry] = None) -> None:
        self._config: GlobalConfig = config
        self._registry: CollectionRegistry = registry if registry is not None else CollectionRegistry()
        self._dialect: str = str(config.dialect)
        self._sqlite: bool = self._dialect == Dialect.SQLITE.value
        self._metadata: bool = config.flags.use_metadata
        logger.debug("EmitterSet initialised (dialect=%s, metadata=%s).", self._dialect, self._metadata)

    @property
    def registry(self) -> CollectionRegistry:
        return self._registry

    @staticmethod
    def _artifact(n: NamingSet, rel: str, content: str, kind: ArtifactKind) -> EmittedArtifact:
        return EmittedArtifact(path=f"{n.base_dir}/{rel}", content=content, kind=kind)

    # ===================================================================
    # 1. Storage schema
    # ===================================================================

    def _system_columns(self, d: CollectionDescriptor) -> List[Tuple[str, str]]:
        sqlite: bool = self._sqlite
        cols: List[Tuple[str, str]] = []
        if sqlite:
            cols.append(("id", "text('id').primaryKey().$default(() => nanoid())"))
        else:
            cols.append(("id", "uuid('id').primaryKey().defaultRandom()"))
        cols.append(("teamId", "text('teamId').notNull()"))
        cols.append(("owner", "text('owner').notNull()"))

        def _default(value: str) -> str:
            return f".$default(() => {value})" if sqlite else f".default({value})"

        if d.has_hierarchy:
            h = d.tree
            parent: str = f"text({ts_string(h.parent_field)})"
            cols.append((h.parent_field, parent + (".$default(() => null)" if sqlite else "")))
            cols.append((h.path_field, f"text({ts_string(h.path_field)}).notNull()" + _default("'/'")))
            cols.append((h.depth_field, f"integer({ts_string(h.depth_field)}).notNull()" + _default("0")))
            cols.append((h.order_field, f"integer({ts_string(h.order_field)}).notNull()" + _default("0")))
        elif d.has_sortable:
            order: str = d.order_field
            cols.append((order, f"integer({ts_string(order)}).notNull()" + _default("0")))
        return cols

    def _tail_columns(self, d: CollectionDescriptor) -> List[Tuple[str, str]]:
        cols: List[Tuple[str, str]] = []
        json_fn: str = "jsonColumn" if self._sqlite else "jsonb"
        if d.has_translations:
            cols.append((
                "translations",
                f"{json_fn}('translations').$type<Record<string, Record<string, string>>>()",
            ))
        if self._metadata:
            if self._sqlite:
                ts: str = "integer('{0}', {{ mode: 'timestamp' }}).notNull().$default(() => new Date())"
            else:
                ts = "timestamp('{0}', {{ withTimezone: true }}).notNull().defaultNow()"
            cols.append(("createdAt", ts.format("createdAt")))
            cols.append(("updatedAt", ts.format("updatedAt") + ".$onUpdate(() => new Date())"))
            cols.append(("createdBy", "text('createdBy').notNull()"))
            cols.append(("updatedBy", "text('updatedBy').notNull()"))
        return cols

    def emit_storage_schema(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``server/database/schema.ts`` for the configured dialect."""
        columns: List[Tuple[str, str]] = self._system_columns(d)
        columns += [(f.name, storage_column(f, self._dialect)) for f in d.fields]
        columns += self._tail_columns(d)

        used: Set[str] = {expr.split("(", 1)[0] for _, expr in columns}
        lines: List[str] = []

        if self._sqlite:
            wanted: Set[str] = used | {"sqliteTable"}
            if "jsonColumn" in used:
                wanted.add("customType")
            names: List[str] = [name for name in _SQLITE_IMPORT_ORDER if name in wanted]
            lines.append("import { nanoid } from 'nanoid'")
            lines.append(f"import {{ {', '.join(names)} }} from 'drizzle-orm/sqlite-core'")
            if "jsonColumn" in used:
                lines.append("")
                lines.append("const jsonColumn = customType<{ data: any; driverData: string }>({")
                lines.append(f"{_I}dataType() {{")
                lines.append(f"{_II}return 'text'")
                lines.append(f"{_I}}},")
                lines.append(f"{_I}fromDriver(value: string) {{")
                lines.append(f"{_II}if (value === null || value === undefined || value === '') return null")
                lines.append(f"{_II}try {{")
                lines.append(f"{_III}return JSON.parse(value)")
                lines.append(f"{_II}}} catch {{")
                lines.append(f"{_III}return null")
                lines.append(f"{_II}}}")
                lines.append(f"{_I}}},")
                lines.append(f"{_I}toDriver(value: any) {{")
                lines.append(f"{_II}return JSON.stringify(value)")
                lines.append(f"{_I}}}")
                lines.append("})")
            table_fn: str = "sqliteTable"
        else:
            names = [name for name in _PG_IMPORT_ORDER if name in (used | {"pgTable"})]
            lines.append(f"import {{ {', '.join(names)} }} from 'drizzle-orm/pg-core'")
            table_fn = "pgTable"

        lines.append("")
        lines.append(f"export const {n.schema_export} = {table_fn}({ts_string(n.table_name)}, {{")
        body: List[str] = [f"{_I}{key}: {expr}" for key, expr in columns]
        lines.append(",\n".join(body))
        lines.append("})")
        lines.append("")

        return self._artifact(n, "server/database/schema.ts", "\n".join(lines), ArtifactKind.STORAGE_SCHEMA)

    # ===================================================================
    # 2. Query functions
    # ===================================================================

    def _is_user_ref(self, f: FieldDefinition) -> bool:
        return f.is_external_reference and (f.ref_target or "").lower() in _USER_TARGETS

    def plan_queries(self, d: CollectionDescriptor, n: NamingSet) -> QueryPlan:
        """
        Work out joins for the list queries.

        A table referenced from more than one field (or the collection's
        own table) is joined through a distinct ``alias`` per field.
        """
        plan: QueryPlan = QueryPlan()

        user_columns: List[str] = ["owner"]
        if self._metadata:
            user_columns += ["createdBy", "updatedBy"]

        singles: List[Tuple[FieldDefinition, str]] = []
        for f in d.fields:
            if f.is_dependent:
                plan.json_fields.append(f.name)
                continue
            if is_json_field(f) and not f.ref_target:
                plan.json_fields.append(f.name)
            if not f.is_reference or not f.ref_target:
                continue
            if self._is_user_ref(f):
                if f.name not in user_columns:
                    user_columns.append(f.name)
                continue

            if f.is_external_reference:
                symbol: str = to_camel_case(f.ref_target)
                if symbol not in plan.external_symbols:
                    plan.external_symbols.append(symbol)
                table_expr: str = symbol
            elif f.ref_target and self._registry.resolve(f.ref_target, n.layer) == n:
                table_expr = f"tables.{n.schema_export}"
            else:
                target: NamingSet = self._registry.resolve(f.ref_target, n.layer)
                namespace: str = f"{target.camel_case_plural}Schema"
                stmt: str = (
                    f"import * as {namespace} from "
                    f"'../../../{target.kebab_case_plural}/server/database/schema'"
                )
                if stmt not in plan.schema_imports:
                    plan.schema_imports.append(stmt)
                table_expr = f"{namespace}.{target.schema_export}"

            if str(f.type) == FieldType.ARRAY.value:
                plan.json_fields.append(f.name)
                plan.array_refs.append((f.name, table_expr))
            else:
                singles.append((f, table_expr))

        counts: Dict[str, int] = {}
        for _, expr in singles:
            counts[expr] = counts.get(expr, 0) + 1
        self_table: str = f"tables.{n.schema_export}"
        for f, expr in singles:
            alias_var: Optional[str] = None
            if counts[expr] > 1 or expr == self_table:
                alias_var = f"{f.name}Ref"
            plan.joins.append(JoinSpec(f.name, f"{f.name}Data", expr, alias_var))

        for column in user_columns:
            plan.joins.append(JoinSpec(column, f"{column}User", "user", f"{column}User", True))

        return plan

    def _list_query(
        self,
        d: CollectionDescriptor,
        n: NamingSet,
        plan: QueryPlan,
        where: List[str],
    ) -> List[str]:
        t: str = f"tables.{n.schema_export}"
        rows: str = n.camel_case_plural
        lines: List[str] = [f"{_I}const db = useDB()", ""]

        aliases: List[JoinSpec] = [j for j in plan.joins if j.alias_var]
        for j in aliases:
            source: str = "user as any" if j.is_user else j.table_expr
            lines.append(f"{_I}const {j.alias_var} = alias({source}, {ts_string(j.alias_var or '')})")
        if aliases:
            lines.append("")

        lines.append(f"{_I}const {rows} = await (db as any)")
        lines.append(f"{_II}.select({{")
        select: List[str] = [f"{_III}...{t}"]
        for j in plan.joins:
            if j.is_user:
                inner: str = ",\n".join(f"{_IIII}{c}: {j.ref}.{c}" for c in _USER_COLUMNS)
                select.append(f"{_III}{j.select_key}: {{\n{inner}\n{_III}}}")
            else:
                select.append(f"{_III}{j.select_key}: {j.ref}")
        lines.append(",\n".join(select))
        lines.append(f"{_II}}} as any)")
        lines.append(f"{_II}.from({t})")
        for j in plan.joins:
            lines.append(f"{_II}.leftJoin({j.ref}, eq({t}.{j.column}, {j.ref}.id))")
        lines.extend(where)
        lines.append(f"{_II}.orderBy({self._order_by(d, n)})")

        if plan.json_fields:
            lines.append("")
            lines.append(f"{_I}parseJsonFields({rows})")
        for column, expr in plan.array_refs:
            lines.append("")
            lines.extend(self._array_ref_block(rows, column, expr))

        lines.append("")
        lines.append(f"{_I}return {rows}")
        return lines

    def _order_by(self, d: CollectionDescriptor, n: NamingSet) -> str:
        t: str = f"tables.{n.schema_export}"
        if d.has_sortable:
            return f"asc({t}.{d.order_field})"
        if self._metadata:
            return f"desc({t}.createdAt)"
        return f"asc({t}.id)"

    @staticmethod
    def _array_ref_block(rows: str, column: str, expr: str) -> List[str]:
        ids: str = f"{column}Ids"
        return [
            f"{_I}// Resolve {column} ids into {column}Data",
            f"{_I}const {ids} = new Set<string>()",
            f"{_I}for (const row of {rows} as any[]) {{",
            f"{_II}for (const id of Array.isArray(row.{column}) ? row.{column} : []) {ids}.add(id)",
            f"{_I}}}",
            f"{_I}if ({ids}.size > 0) {{",
            f"{_II}const related = await (db as any)",
            f"{_III}.select()",
            f"{_III}.from({expr})",
            f"{_III}.where(inArray({expr}.id, Array.from({ids})))",
            f"{_II}const byId = new Map(related.map((r: any) => [r.id, r]))",
            f"{_II}for (const row of {rows} as any[]) {{",
            f"{_III}row.{column}Data = (Array.isArray(row.{column}) ? row.{column} : [])",
            f"{_IIII}.map((id: string) => byId.get(id))",
            f"{_IIII}.filter(Boolean)",
            f"{_II}}}",
            f"{_I}}}",
        ]

    def emit_queries(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``server/database/queries.ts``."""
        plan: QueryPlan = self.plan_queries(d, n)
        t: str = f"tables.{n.schema_export}"
        record: str = n.camel_case
        pp: str = n.prefixed_pascal
        ppp: str = n.prefixed_pascal_plural

        helpers: List[str] = ["eq", "and", "inArray"]
        helpers.append("asc" if d.has_sortable or not self._metadata else "desc")
        if d.has_hierarchy:
            helpers.append("sql")

        lines: List[str] = []
        lines.append(f"import {{ {', '.join(helpers)} }} from 'drizzle-orm'")
        if plan.needs_alias:
            lines.append(f"import {{ alias }} from 'drizzle-orm/{self._dialect}-core'")
        lines.append("import * as tables from './schema'")
        lines.append(f"import type {{ {pp}, New{pp} }} from '../../types'")
        lines.extend(plan.schema_imports)
        external: List[str] = ["user"] + plan.external_symbols
        lines.append(f"import {{ {', '.join(external)} }} from '~~/server/db/schema'")
        lines.append("")

        if plan.json_fields:
            quoted: str = ", ".join(ts_string(c) for c in plan.json_fields)
            lines.append(f"const JSON_FIELDS = [{quoted}] as const")
            lines.append("")
            lines.append("function parseJsonFields(rows: any[]) {")
            lines.append(f"{_I}for (const row of rows) {{")
            lines.append(f"{_II}for (const key of JSON_FIELDS) {{")
            lines.append(f"{_III}if (typeof row[key] === 'string') {{")
            lines.append(f"{_IIII}try {{")
            lines.append(f"{_IIII}{_I}row[key] = JSON.parse(row[key])")
            lines.append(f"{_IIII}}} catch {{")
            lines.append(f"{_IIII}{_I}row[key] = null")
            lines.append(f"{_IIII}}}")
            lines.append(f"{_III}}}")
            lines.append(f"{_II}}}")
            lines.append(f"{_I}}}")
            lines.append(f"{_I}return rows")
            lines.append("}")
            lines.append("")

        # --- getAll / getByIds ---
        lines.append(f"export async function getAll{ppp}(teamId: string) {{")
        lines.extend(self._list_query(d, n, plan, [f"{_II}.where(eq({t}.teamId, teamId))"]))
        lines.append("}")
        lines.append("")

        ids: str = f"{record}Ids"
        lines.append(f"export async function get{ppp}ByIds(teamId: string, {ids}: string[]) {{")
        where: List[str] = [
            f"{_II}.where(",
            f"{_III}and(",
            f"{_IIII}eq({t}.teamId, teamId),",
            f"{_IIII}inArray({t}.id, {ids})",
            f"{_III})",
            f"{_II})",
        ]
        lines.extend(self._list_query(d, n, plan, where))
        lines.append("}")
        lines.append("")

        # --- create ---
        lines.append(f"export async function create{pp}(data: New{pp}) {{")
        lines.append(f"{_I}const db = useDB()")
        lines.append("")
        lines.append(f"{_I}const [{record}] = await (db as any)")
        lines.append(f"{_II}.insert({t})")
        lines.append(f"{_II}.values(data)")
        lines.append(f"{_II}.returning()")
        lines.append("")
        lines.append(f"{_I}return {record}")
        lines.append("}")
        lines.append("")

        # --- update ---
        scoped: List[str] = [
            f"{_II}.where(",
            f"{_III}and(",
            f"{_IIII}eq({t}.id, recordId),",
            f"{_IIII}eq({t}.teamId, teamId),",
            f"{_IIII}eq({t}.owner, ownerId)",
            f"{_III})",
            f"{_II})",
        ]
        lines.append(f"export async function update{pp}(")
        lines.append(f"{_I}recordId: string,")
        lines.append(f"{_I}teamId: string,")
        lines.append(f"{_I}ownerId: string,")
        lines.append(f"{_I}updates: Partial<{pp}>")
        lines.append(") {")
        lines.append(f"{_I}const db = useDB()")
        lines.append("")
        lines.append(f"{_I}const [{record}] = await (db as any)")
        lines.append(f"{_II}.update({t})")
        if self._metadata:
            lines.append(f"{_II}.set({{")
            lines.append(f"{_III}...updates,")
            lines.append(f"{_III}updatedBy: ownerId")
            lines.append(f"{_II}}})")
        else:
            lines.append(f"{_II}.set(updates)")
        lines.extend(scoped)
        lines.append(f"{_II}.returning()")
        lines.append("")
        lines.extend(self._not_found(record, f"{pp} not found or unauthorized"))
        lines.append("")
        lines.append(f"{_I}return {record}")
        lines.append("}")
        lines.append("")

        # --- delete ---
        lines.append(f"export async function delete{pp}(")
        lines.append(f"{_I}recordId: string,")
        lines.append(f"{_I}teamId: string,")
        lines.append(f"{_I}ownerId: string")
        lines.append(") {")
        lines.append(f"{_I}const db = useDB()")
        lines.append("")
        lines.append(f"{_I}const [deleted] = await (db as any)")
        lines.append(f"{_II}.delete({t})")
        lines.extend(scoped)
        lines.append(f"{_II}.returning()")
        lines.append("")
        lines.extend(self._not_found("deleted", f"{pp} not found or unauthorized"))
        lines.append("")
        lines.append(f"{_I}return {{ success: true }}")
        lines.append("}")

        if d.has_hierarchy:
            lines.append("")
            lines.extend(self._tree_queries(d, n))
        if d.has_sortable:
            lines.append("")
            lines.extend(self._reorder_query(d, n))
        lines.append("")

        return self._artifact(n, "server/database/queries.ts", "\n".join(lines), ArtifactKind.QUERIES)

    @staticmethod
    def _not_found(var: str, message: str, status: int = 404) -> List[str]:
        return [
            f"{_I}if (!{var}) {{",
            f"{_II}throw createError({{",
            f"{_III}statusCode: {status},",
            f"{_III}statusMessage: {ts_string(message)}",
            f"{_II}}})",
            f"{_I}}}",
        ]

    def _tree_queries(self, d: CollectionDescriptor, n: NamingSet) -> List[str]:
        h = d.tree
        t: str = f"tables.{n.schema_export}"
        pp: str = n.prefixed_pascal

        def by_team_and(col: str, var: str) -> List[str]:
            return [
                f"{_III}.where(",
                f"{_IIII}and(",
                f"{_IIII}{_I}eq({t}.{col}, {var}),",
                f"{_IIII}{_I}eq({t}.teamId, teamId)",
                f"{_IIII})",
                f"{_III})",
            ]

        lines: List[str] = [
            f"export async function getTreeData{n.prefixed_pascal_plural}(teamId: string) {{",
            f"{_I}const db = useDB()",
            "",
            f"{_I}const {n.camel_case_plural} = await (db as any)",
            f"{_II}.select()",
            f"{_II}.from({t})",
            f"{_II}.where(eq({t}.teamId, teamId))",
            f"{_II}.orderBy({t}.{h.path_field}, {t}.{h.order_field})",
            "",
            f"{_I}return {n.camel_case_plural}",
            "}",
            "",
            f"export async function updatePosition{pp}(",
            f"{_I}teamId: string,",
            f"{_I}id: string,",
            f"{_I}newParentId: string | null,",
            f"{_I}newOrder: number",
            ") {",
            f"{_I}const db = useDB()",
            "",
            f"{_I}const [current] = await (db as any)",
            f"{_II}.select()",
            f"{_II}.from({t})",
        ]
        lines += [line[len(_I):] for line in by_team_and("id", "id")]
        lines.append("")
        lines += self._not_found("current", f"{pp} not found")
        lines += [
            "",
            f"{_I}let newPath: string",
            f"{_I}let newDepth: number",
            "",
            f"{_I}if (newParentId) {{",
            f"{_II}const [parent] = await (db as any)",
            f"{_III}.select()",
            f"{_III}.from({t})",
        ]
        lines += by_team_and("id", "newParentId")
        lines += [
            "",
            f"{_II}if (!parent) {{",
            f"{_III}throw createError({{ statusCode: 400, statusMessage: {ts_string('Parent ' + pp + ' not found')} }})",
            f"{_II}}}",
            f"{_II}if (parent.{h.path_field}.startsWith(current.{h.path_field})) {{",
            f"{_III}throw createError({{ statusCode: 400, statusMessage: 'Cannot move item to its own descendant' }})",
            f"{_II}}}",
            "",
            f"{_II}newPath = `${{parent.{h.path_field}}}${{id}}/`",
            f"{_II}newDepth = parent.{h.depth_field} + 1",
            f"{_I}}} else {{",
            f"{_II}newPath = `/${{id}}/`",
            f"{_II}newDepth = 0",
            f"{_I}}}",
            "",
            f"{_I}const oldPath = current.{h.path_field}",
            "",
            f"{_I}const [updated] = await (db as any)",
            f"{_II}.update({t})",
            f"{_II}.set({{",
            f"{_III}{h.parent_field}: newParentId,",
            f"{_III}{h.path_field}: newPath,",
            f"{_III}{h.depth_field}: newDepth,",
            f"{_III}{h.order_field}: newOrder",
            f"{_II}}})",
        ]
        lines += [line[len(_I):] for line in by_team_and("id", "id")]
        lines += [
            f"{_II}.returning()",
            "",
            f"{_I}if (oldPath !== newPath) {{",
            f"{_II}const descendants = await (db as any)",
            f"{_III}.select()",
            f"{_III}.from({t})",
            f"{_III}.where(",
            f"{_IIII}and(",
            f"{_IIII}{_I}eq({t}.teamId, teamId),",
            f"{_IIII}{_I}sql`${{{t}.{h.path_field}}} LIKE ${{oldPath + '%'}} AND ${{{t}.id}} != ${{id}}`",
            f"{_IIII})",
            f"{_III})",
            "",
            f"{_II}const depthDiff = newDepth - current.{h.depth_field}",
            f"{_II}for (const descendant of descendants) {{",
            f"{_III}await (db as any)",
            f"{_IIII}.update({t})",
            f"{_IIII}.set({{",
            f"{_IIII}{_I}{h.path_field}: descendant.{h.path_field}.replace(oldPath, newPath),",
            f"{_IIII}{_I}{h.depth_field}: descendant.{h.depth_field} + depthDiff",
            f"{_IIII}}})",
            f"{_IIII}.where(eq({t}.id, descendant.id))",
            f"{_II}}}",
            f"{_I}}}",
            "",
            f"{_I}return updated",
            "}",
        ]
        return lines

    def _reorder_query(self, d: CollectionDescriptor, n: NamingSet) -> List[str]:
        t: str = f"tables.{n.schema_export}"
        order: str = d.order_field
        return [
            f"export async function reorderSiblings{n.prefixed_pascal_plural}(",
            f"{_I}teamId: string,",
            f"{_I}updates: {{ id: string; order: number }}[]",
            ") {",
            f"{_I}const db = useDB()",
            "",
            f"{_I}const results = []",
            "",
            f"{_I}for (const update of updates) {{",
            f"{_II}const [updated] = await (db as any)",
            f"{_III}.update({t})",
            f"{_III}.set({{ {order}: update.order }})",
            f"{_III}.where(",
            f"{_IIII}and(",
            f"{_IIII}{_I}eq({t}.id, update.id),",
            f"{_IIII}{_I}eq({t}.teamId, teamId)",
            f"{_IIII})",
            f"{_III})",
            f"{_III}.returning()",
            "",
            f"{_II}if (updated) {{",
            f"{_III}results.push(updated)",
            f"{_II}}}",
            f"{_I}}}",
            "",
            f"{_I}return results",
            "}",
        ]

    # ===================================================================
    # 3. Request handlers
    # ===================================================================

    def handler_dir(self, n: NamingSet) -> str:
        return f"server/api/teams/[id]/{n.api_path}"

    def emit_handlers(self, d: CollectionDescriptor, n: NamingSet) -> List[EmittedArtifact]:
        """Generate the CRUD handlers plus move/reorder where enabled."""
        base: str = self.handler_dir(n)
        kind: ArtifactKind = ArtifactKind.REQUEST_HANDLER
        item: str = f"[{n.id_param}]"
        out: List[EmittedArtifact] = [
            self._artifact(n, f"{base}/index.get.ts", self._get_handler(d, n), kind),
            self._artifact(n, f"{base}/index.post.ts", self._post_handler(d, n), kind),
            self._artifact(n, f"{base}/{item}.patch.ts", self._patch_handler(d, n), kind),
            self._artifact(n, f"{base}/{item}.delete.ts", self._delete_handler(n), kind),
        ]
        if d.has_hierarchy:
            out.append(self._artifact(n, f"{base}/{item}/move.patch.ts", self._move_handler(n), kind))
        if d.has_sortable:
            out.append(self._artifact(n, f"{base}/reorder.patch.ts", self._reorder_handler(n), kind))
        return out

    def _get_handler(self, d: CollectionDescriptor, n: NamingSet) -> str:
        ppp: str = n.prefixed_pascal_plural
        lines: List[str] = [
            "// Team-based endpoint: resolveTeamAndCheckMembership handles team resolution and auth",
            f"import {{ getAll{ppp}, get{ppp}ByIds }} from '{_QUERIES_FROM_HANDLER}'",
            _AUTH_IMPORT,
            "",
            "export default defineEventHandler(async (event) => {",
            f"{_I}const {{ team }} = await resolveTeamAndCheckMembership(event)",
            "",
            f"{_I}const query = getQuery(event)",
            f"{_I}if (query.ids) {{",
            f"{_II}const ids = String(query.ids).split(',')",
            f"{_II}return await get{ppp}ByIds(team.id, ids)",
            f"{_I}}}",
            "",
            f"{_I}return await getAll{ppp}(team.id)",
            "})",
            "",
        ]
        return "\n".join(lines)

    def _audit_fields(self) -> List[str]:
        fields: List[str] = [f"{_II}teamId: team.id,", f"{_II}owner: user.id"]
        if self._metadata:
            fields[-1] += ","
            fields += [f"{_II}createdBy: user.id,", f"{_II}updatedBy: user.id"]
        return fields

    def _post_handler(self, d: CollectionDescriptor, n: NamingSet) -> str:
        pp: str = n.prefixed_pascal
        ppp: str = n.prefixed_pascal_plural
        hier: bool = d.has_hierarchy
        lines: List[str] = []
        if hier:
            lines.append(f"import {{ create{pp}, get{ppp}ByIds }} from '{_QUERIES_FROM_HANDLER}'")
            if self._sqlite:
                lines.append("import { nanoid } from 'nanoid'")
        else:
            lines.append(f"import {{ create{pp} }} from '{_QUERIES_FROM_HANDLER}'")
        lines.append(_AUTH_IMPORT)
        lines.append("")
        lines.append("export default defineEventHandler(async (event) => {")
        lines.append(f"{_I}const {{ team, user }} = await resolveTeamAndCheckMembership(event)")
        lines.append("")
        lines.append(f"{_I}const body = await readBody(event)")
        lines.append(f"{_I}const {{ id, ...dataWithoutId }} = body")

        for f in d.fields:
            if str(f.type) == FieldType.DATE.value:
                lines.append("")
                lines.append(f"{_I}if (dataWithoutId.{f.name}) {{")
                lines.append(f"{_II}dataWithoutId.{f.name} = new Date(dataWithoutId.{f.name})")
                lines.append(f"{_I}}}")

        if hier:
            h = d.tree
            new_id: str = "nanoid()" if self._sqlite else "crypto.randomUUID()"
            lines += [
                "",
                f"{_I}const recordId = {new_id}",
                f"{_I}let {h.path_field} = `/${{recordId}}/`",
                f"{_I}let {h.depth_field} = 0",
                "",
                f"{_I}if (dataWithoutId.{h.parent_field}) {{",
                f"{_II}const [parent] = await get{ppp}ByIds(team.id, [dataWithoutId.{h.parent_field}])",
                f"{_II}if (parent) {{",
                f"{_III}{h.path_field} = `${{parent.{h.path_field}}}${{recordId}}/`",
                f"{_III}{h.depth_field} = (parent.{h.depth_field} || 0) + 1",
                f"{_II}}}",
                f"{_I}}}",
            ]

        lines.append("")
        lines.append(f"{_I}return await create{pp}({{")
        lines.append(f"{_II}...dataWithoutId,")
        if hier:
            h = d.tree
            lines.append(f"{_II}id: recordId,")
            lines.append(f"{_II}{h.path_field},")
            lines.append(f"{_II}{h.depth_field},")
        lines.extend(self._audit_fields())
        lines.append(f"{_I}}})")
        lines.append("})")
        lines.append("")
        return "\n".join(lines)

    def _patch_handler(self, d: CollectionDescriptor, n: NamingSet) -> str:
        pp: str = n.prefixed_pascal
        ppp: str = n.prefixed_pascal_plural
        pid: str = n.id_param
        imports: str = f"update{pp}, get{ppp}ByIds" if d.has_translations else f"update{pp}"
        lines: List[str] = [
            f"import {{ {imports} }} from '{_QUERIES_FROM_HANDLER}'",
            _AUTH_IMPORT,
            f"import type {{ {pp} }} from '{_TYPES_FROM_HANDLER}'",
            "",
            "export default defineEventHandler(async (event) => {",
            f"{_I}const {{ {pid} }} = getRouterParams(event)",
            f"{_I}const {{ team, user }} = await resolveTeamAndCheckMembership(event)",
            f"{_I}const body = await readBody<Partial<{pp}>>(event)",
        ]
        if d.has_translations:
            lines += [
                "",
                f"{_I}let translations = body.translations",
                f"{_I}if (translations) {{",
                f"{_II}const [existing] = await get{ppp}ByIds(team.id, [{pid}])",
                f"{_II}translations = {{ ...(existing?.translations || {{}}), ...translations }}",
                f"{_I}}}",
            ]
        lines.append("")
        lines.append(f"{_I}return await update{pp}({pid}, team.id, user.id, {{")
        entries: List[str] = []
        for f in d.fields:
            if str(f.type) == FieldType.DATE.value:
                entries.append(
                    f"{_II}{f.name}: body.{f.name} ? new Date(body.{f.name}) : body.{f.name}"
                )
            else:
                entries.append(f"{_II}{f.name}: body.{f.name}")
        if d.has_translations:
            entries.append(f"{_II}translations")
        lines.append(",\n".join(entries))
        lines.append(f"{_I}}})")
        lines.append("})")
        lines.append("")
        return "\n".join(lines)

    def _delete_handler(self, n: NamingSet) -> str:
        pid: str = n.id_param
        lines: List[str] = [
            f"import {{ delete{n.prefixed_pascal} }} from '{_QUERIES_FROM_HANDLER}'",
            _AUTH_IMPORT,
            "",
            "export default defineEventHandler(async (event) => {",
            f"{_I}const {{ {pid} }} = getRouterParams(event)",
            f"{_I}const {{ team, user }} = await resolveTeamAndCheckMembership(event)",
            "",
            f"{_I}return await delete{n.prefixed_pascal}({pid}, team.id, user.id)",
            "})",
            "",
        ]
        return "\n".join(lines)

    def _move_handler(self, n: NamingSet) -> str:
        pid: str = n.id_param
        lines: List[str] = [
            f"import {{ updatePosition{n.prefixed_pascal} }} from '{_QUERIES_FROM_ITEM_HANDLER}'",
            _AUTH_IMPORT,
            "",
            "export default defineEventHandler(async (event) => {",
            f"{_I}const {{ {pid} }} = getRouterParams(event)",
            f"{_I}const {{ team }} = await resolveTeamAndCheckMembership(event)",
            f"{_I}const body = await readBody<{{ parentId: string | null; order: number }}>(event)",
            "",
            f"{_I}if (typeof body.order !== 'number') {{",
            f"{_II}throw createError({{ statusCode: 400, statusMessage: 'order must be a number' }})",
            f"{_I}}}",
            "",
            f"{_I}return await updatePosition{n.prefixed_pascal}(team.id, {pid}, body.parentId ?? null, body.order)",
            "})",
            "",
        ]
        return "\n".join(lines)

    def _reorder_handler(self, n: NamingSet) -> str:
        lines: List[str] = [
            f"import {{ reorderSiblings{n.prefixed_pascal_plural} }} from '{_QUERIES_FROM_HANDLER}'",
            _AUTH_IMPORT,
            "",
            "export default defineEventHandler(async (event) => {",
            f"{_I}const {{ team }} = await resolveTeamAndCheckMembership(event)",
            f"{_I}const body = await readBody<{{ updates: {{ id: string; order: number }}[] }}>(event)",
            "",
            f"{_I}if (!Array.isArray(body.updates)) {{",
            f"{_II}throw createError({{ statusCode: 400, statusMessage: 'updates must be an array' }})",
            f"{_I}}}",
            "",
            f"{_I}return await reorderSiblings{n.prefixed_pascal_plural}(team.id, body.updates)",
            "})",
            "",
        ]
        return "\n".join(lines)

    # ===================================================================
    # 4. Types
    # ===================================================================

    def emit_types(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``types.ts``: record interface, New*, form data and props."""
        pp: str = n.prefixed_pascal
        lines: List[str] = [
            "import type { z } from 'zod'",
            f"import type {{ {n.validation_export} }} from './app/composables/{n.composable_name}'",
            "",
            f"export interface {pp} {{",
            f"{_I}id: string",
            f"{_I}teamId: string",
            f"{_I}owner: string",
        ]
        if d.has_hierarchy:
            h = d.tree
            lines += [
                f"{_I}{h.parent_field}?: string | null",
                f"{_I}{h.path_field}: string",
                f"{_I}{h.depth_field}: number",
                f"{_I}{h.order_field}: number",
            ]
        elif d.has_sortable:
            lines.append(f"{_I}{d.order_field}: number")
        for f in d.fields:
            ts_type: str = field_ts_type(f, self._dialect)
            if f.meta.required:
                lines.append(f"{_I}{f.name}: {ts_type}")
            elif ts_type.endswith("| null"):
                lines.append(f"{_I}{f.name}?: {ts_type}")
            else:
                lines.append(f"{_I}{f.name}?: {ts_type} | null")
        if d.has_translations:
            lines.append(f"{_I}translations?: Record<string, Record<string, string>>")
        if self._metadata:
            lines += [
                f"{_I}createdAt: Date",
                f"{_I}updatedAt: Date",
                f"{_I}createdBy: string",
                f"{_I}updatedBy: string",
            ]
        lines += [
            f"{_I}optimisticId?: string",
            f"{_I}optimisticAction?: 'create' | 'update' | 'delete'",
            "}",
            "",
            f"export type {pp}FormData = z.infer<typeof {n.validation_export}>",
        ]
        omitted: List[str] = ["'id'"]
        if self._metadata:
            omitted += ["'createdAt'", "'updatedAt'"]
        lines.append(f"export type New{pp} = Omit<{pp}, {' | '.join(omitted)}>")
        lines += [
            "",
            f"export interface {pp}FormProps {{",
            f"{_I}items: string[]",
            f"{_I}action: 'create' | 'update' | 'delete'",
            f"{_I}activeItem?: {pp}",
            f"{_I}collection: string",
            f"{_I}loading: string",
            "}",
            "",
        ]
        return EmittedArtifact(path=f"{n.base_dir}/types.ts", content="\n".join(lines), kind=ArtifactKind.TYPES)

    # ===================================================================
    # 5. Collection layer config
    # ===================================================================

    def emit_layer_config(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        lines: List[str] = [
            "export default defineNuxtConfig({",
            f"{_I}components: {{",
            f"{_II}dirs: [",
            f"{_III}{{",
            f"{_IIII}path: './app/components',",
            f"{_IIII}prefix: {ts_string(n.prefixed_pascal_plural)},",
            f"{_IIII}global: true",
            f"{_III}}}",
            f"{_II}]",
            f"{_I}}}",
            "})",
            "",
        ]
        return self._artifact(n, "nuxt.config.ts", "\n".join(lines), ArtifactKind.LAYER_CONFIG)

    # ===================================================================
    # 6. Seed file
    # ===================================================================

    def emit_seed(self, d: CollectionDescriptor, n: NamingSet) -> EmittedArtifact:
        """Generate ``server/database/seed.ts`` driven by drizzle-seed."""
        count: int = d.seed.count if d.seed is not None else self._config.seed.default_count
        team_id: str = self._config.seed.default_team_id
        fn: str = f"seed{n.prefixed_pascal_plural}"
        table: str = n.schema_export

        columns: List[str] = [
            f"{_IIII}teamId: f.valuesFromArray({{ values: [teamId] }})",
            f"{_IIII}owner: f.valuesFromArray({{ values: ['seed-script'] }})",
        ]
        if self._metadata:
            columns += [
                f"{_IIII}createdBy: f.valuesFromArray({{ values: ['seed-script'] }})",
                f"{_IIII}updatedBy: f.valuesFromArray({{ values: ['seed-script'] }})",
            ]
        for f in d.fields:
            if f.ref_target:
                placeholder: str = ts_string(f"placeholder-{f.ref_target}-id")
                columns.append(
                    f"{_IIII}// {f.name} references '{f.ref_target}': seed it first, then update this\n"
                    f"{_IIII}{f.name}: f.valuesFromArray({{ values: [{placeholder}] }})"
                )
            elif f.meta.options:
                values: str = ", ".join(ts_string(o) for o in f.meta.options)
                columns.append(f"{_IIII}{f.name}: f.valuesFromArray({{ values: [{values}] }})")
            else:
                columns.append(f"{_IIII}{f.name}: {seed_generator(f)}")

        if self._sqlite:
            driver: List[str] = [
                "import { drizzle } from 'drizzle-orm/libsql'",
                "import { createClient } from '@libsql/client'",
            ]
            connect: str = "drizzle(createClient({ url }))"
        else:
            driver = ["import { drizzle } from 'drizzle-orm/node-postgres'"]
            connect = "drizzle(url)"

        lines: List[str] = [
            f"// Seed file for {n.layer}/{n.plural}",
            f"//   import {{ {fn} }} from '~/{n.base_dir}/server/database/seed'",
            f"//   await {fn}({{ count: 50, teamId: 'your-team-id' }})",
        ]
        if d.has_hierarchy:
            lines.append("// Hierarchy fields are left at their defaults: every seeded record is a root item.")
        lines += [
            "",
            "import { seed, reset } from 'drizzle-seed'",
            *driver,
            f"import {{ {table} }} from './schema'",
            "",
            "export interface SeedOptions {",
            f"{_I}count?: number",
            f"{_I}teamId?: string",
            f"{_I}reset?: boolean",
            f"{_I}db?: any",
            "}",
            "",
            "function createDb() {",
            f"{_I}const url = process.env.DATABASE_URL",
            f"{_I}if (!url) {{",
            f"{_II}throw new Error('DATABASE_URL environment variable is required for standalone seed execution')",
            f"{_I}}}",
            f"{_I}return {connect}",
            "}",
            "",
            f"export async function {fn}(options: SeedOptions = {{}}) {{",
            f"{_I}const db = options.db ?? createDb()",
            f"{_I}const count = options.count ?? {count}",
            f"{_I}const teamId = options.teamId ?? {ts_string(team_id)}",
            "",
            f"{_I}if (options.reset) {{",
            f"{_II}await reset(db, {{ {table} }})",
            f"{_I}}}",
            "",
            f"{_I}await seed(db, {{ {table} }}).refine((f) => ({{",
            f"{_II}{table}: {{",
            f"{_III}count,",
            f"{_III}columns: {{",
            ",\n".join(columns),
            f"{_III}}}",
            f"{_II}}}",
            f"{_I}}}))",
            "",
            f"{_I}console.log(`Seeded ${{count}} {n.plural}`)",
            "}",
            "",
        ]
        return self._artifact(n, "server/database/seed.ts", "\n".join(lines), ArtifactKind.SEED)

    # ===================================================================
    # 7. README
    # ===================================================================

    def emit_readme(
        self,
        d: CollectionDescriptor,
        n: NamingSet,
        artifacts: Sequence[EmittedArtifact] = (),
    ) -> EmittedArtifact:
        lines: List[str] = [
            f"# {n.prefixed_pascal_plural}",
            "",
            f"Collection `{n.plural}` in layer `{n.layer}` ({self._dialect}).",
            "",
            "| Item | Value |",
            "|------|-------|",
            f"| API | `/api/teams/[id]/{n.api_path}` |",
            f"| Table | `{n.table_name}` |",
            f"| Schema export | `{n.schema_export}` |",
            f"| Registry key | `{n.collection_key}: {n.config_export}` |",
            f"| Composable | `{n.composable_name}` |",
            f"| Form component | `{n.component_name}` |",
            "",
            "## Fields",
            "",
            "| Name | Type | Required |",
            "|------|------|----------|",
        ]
        for f in d.fields:
            kind: str = "dependent" if f.is_dependent else str(f.type)
            if f.ref_target:
                kind += f" → {f.ref_target}"
            lines.append(f"| `{f.name}` | {kind} | {'yes' if f.meta.required else 'no'} |")

        features: List[str] = []
        if d.has_hierarchy:
            features.append("hierarchy (move, reorder, tree data)")
        elif d.has_sortable:
            features.append("sortable (reorder)")
        if d.has_translations:
            features.append("translations: " + ", ".join(d.translatable_fields))
        if d.seed is not None:
            features.append("seed data")
        if features:
            lines += ["", "## Features", ""]
            lines += [f"- {feat}" for feat in features]

        prefix: str = n.base_dir + "/"
        files: List[str] = sorted(a.path[len(prefix):] for a in artifacts if a.path.startswith(prefix))
        if files:
            lines += ["", "## Files", ""]
            lines += [f"- `{p}`" for p in files]
        lines.append("")
        return self._artifact(n, "README.md", "\n".join(lines), ArtifactKind.README)

    # ===================================================================
    # Aggregate
    # ===================================================================

    def emit_all(self, d: CollectionDescriptor, n: NamingSet) -> List[EmittedArtifact]:
        """
        Every artifact of one collection slice, README last.

        Complexity: O(F) in the number of fields.
        """
        ui: UITemplateGenerator = UITemplateGenerator(self._config, self._registry)
        artifacts: List[EmittedArtifact] = [
            self.emit_storage_schema(d, n),
            self.emit_queries(d, n),
            *self.emit_handlers(d, n),
            ui.emit_form(d, n),
            ui.emit_list(d, n),
            ui.emit_composable(d, n),
            *ui.emit_field_components(d, n),
            self.emit_types(d, n),
            self.emit_layer_config(d, n),
        ]
        if d.seed is not None:
            artifacts.append(self.emit_seed(d, n))
        artifacts.append(self.emit_readme(d, n, artifacts))

        logger.debug(
            "Emitted %d artifact(s) for %s/%s.",
            len(artifacts),
            n.layer,
            n.plural,
        )
        return artifacts


__all__: List[str] = [
    "EmitterSet",
    "JoinSpec",
    "QueryPlan",
    "seed_generator",
]

logger.debug("slicegen.emitters loaded.")
