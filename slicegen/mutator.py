# File: slicegen/mutator.py
"""
slicegen - Shared-File Mutator
===============================
Idempotent insertion and removal of entries in files the host project
owns: the root and layer ``nuxt.config.ts`` extends arrays, the schema
index, the app-config registry and the per-layer locale files.

Every shared-file kind has one :class:`SharedFileEditor`.  The mutator
drives each :class:`~slicegen.models.SharedFileEdit` through the same
steps:

    1. Read the file, or synthesise the editor's skeleton when absent.
    2. Skip when the idempotency key is already present.
    3. Raise ``ConflictError`` when the symbol is bound differently
       (unless ``force``).
    4. Locate the anchor (``AnchorNotFoundError`` when missing) and splice.
    5. Write back atomically.

Editors work on text with anchored regular expressions; the locale editor
round-trips JSON.  Removal keys on the same idempotency key as insertion,
so a rollback undoes exactly what a generation added.
"""

from __future__ import annotations

import abc
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from slicegen.errors import AnchorNotFoundError, ConflictError
from slicegen.models import (
    CollectionDescriptor,
    GlobalConfig,
    NamingSet,
    SharedFileEdit,
    SharedFileKind,
    StatusLine,
    StepStatus,
)
from slicegen.utils import read_file_or_none, to_title_human, write_file

logger: logging.Logger = logging.getLogger("slicegen.mutator")

# ---------------------------------------------------------------------------
# Well-known shared-file locations (relative to the project root)
# ---------------------------------------------------------------------------

ROOT_CONFIG: str = "nuxt.config.ts"
SCHEMA_INDEX: str = "server/db/schema.ts"
APP_REGISTRY: str = "app/app.config.ts"
ROOT_REGISTRY: str = "app.config.ts"

_EXTENDS_OPEN_RE: re.Pattern = re.compile(r"\bextends\s*:\s*\[")
_DEFINE_NUXT_RE: re.Pattern = re.compile(r"defineNuxtConfig\(\s*\{|export\s+default\s+\{")
_DEFINE_APP_RE: re.Pattern = re.compile(r"defineAppConfig\(\s*\{|export\s+default\s+\{")
_COLLECTIONS_BLOCK_RE: re.Pattern = re.compile(r"croutonCollections\s*:\s*\{")
_EMPTY_COLLECTIONS_RE: re.Pattern = re.compile(r"\n[ \t]*croutonCollections\s*:\s*\{\s*\},?[ \t]*(?=\n)")
_NAMED_EXPORT_RE: re.Pattern = re.compile(
    r"^export\s*\{([^}]*)\}\s*from\s*['\"]([^'\"]+)['\"]", re.MULTILINE
)
_IMPORT_LINE_RE: re.Pattern = re.compile(r"^import\s.*$", re.MULTILINE)


# ---------------------------------------------------------------------------
# Array literal scanning
# ---------------------------------------------------------------------------

_QUOTES: str = "'\"`"
_OPENERS: str = "[{("
_CLOSERS: str = "]})"


def _skip_string(text: str, pos: int) -> int:
    """Offset just past the string literal starting at ``text[pos]``."""
    quote: str = text[pos]
    i: int = pos + 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == quote:
            return i + 1
        i += 1
    return len(text)


def _skip_comment(text: str, pos: int) -> int:
    """Offset just past a ``//`` or ``/* */`` comment at *pos*, else *pos*."""
    if text.startswith("//", pos):
        end: int = text.find("\n", pos)
        return len(text) if end < 0 else end
    if text.startswith("/*", pos):
        end = text.find("*/", pos + 2)
        return len(text) if end < 0 else end + 2
    return pos


def scan_array(text: str, start: int) -> Tuple[List[str], int]:
    """
    Split the array literal whose ``[`` sits just before *start*.

    Returns the top-level entries (stripped, empty slots dropped) and the
    offset of the matching ``]``, or ``-1`` when the text ends first.
    Commas and brackets inside strings, comments and nested literals do
    not count; comments between entries are dropped, comments inside a
    nested entry are kept with it.
    """
    entries: List[str] = []
    current: List[str] = []
    depth: int = 0
    i: int = start
    while i < len(text):
        char: str = text[i]
        if char in _QUOTES:
            end: int = _skip_string(text, i)
            current.append(text[i:end])
            i = end
            continue
        skipped: int = _skip_comment(text, i)
        if skipped != i:
            if depth:
                current.append(text[i:skipped])
            i = skipped
            continue
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            if depth == 0:
                if char == "]":
                    tail: str = "".join(current).strip()
                    if tail:
                        entries.append(tail)
                    return entries, i
            else:
                depth -= 1
        elif char == "," and depth == 0:
            entry: str = "".join(current).strip()
            if entry:
                entries.append(entry)
            current = []
            i += 1
            continue
        current.append(char)
        i += 1
    rest: str = "".join(current).strip()
    if rest:
        entries.append(rest)
    return entries, -1


def string_value(entry: str) -> Optional[str]:
    """Inner text of *entry* when it is one plain string literal."""
    entry = entry.strip()
    if not entry or entry[0] not in _QUOTES:
        return None
    if _skip_string(entry, 0) != len(entry) or len(entry) < 2:
        return None
    if entry[0] == "`" and "${" in entry:
        return None
    return entry[1:-1]


def _entry_key(entry: str) -> str:
    value: Optional[str] = string_value(entry)
    return entry if value is None else value


def extends_span(content: str) -> Optional[Tuple[int, int, int]]:
    """
    ``(start, body_start, end)`` of the first closed ``extends: [...]``.

    ``content[start:end]`` is the whole ``extends: [...]`` text and
    ``content[body_start:end - 1]`` its body.
    """
    pos: int = 0
    while True:
        match = _EXTENDS_OPEN_RE.search(content, pos)
        if match is None:
            return None
        _, close = scan_array(content, match.end())
        if close >= 0:
            return match.start(), match.end(), close + 1
        pos = match.end()


def extends_body(content: str) -> str:
    """Body of the ``extends`` array in *content*, or ``""``."""
    span: Optional[Tuple[int, int, int]] = extends_span(content)
    return "" if span is None else content[span[1]:span[2] - 1]


def _squashed(text: str) -> str:
    return re.sub(r"\s+", "", text)


# ---------------------------------------------------------------------------
# Editor interface
# ---------------------------------------------------------------------------


class SharedFileEditor(abc.ABC):
    """One shared-file kind: how to find, add and remove an entry."""

    kind: SharedFileKind

    @abc.abstractmethod
    def skeleton(self, edit: SharedFileEdit) -> str:
        """Content used when the target file does not exist yet."""

    @abc.abstractmethod
    def is_present(self, content: str, edit: SharedFileEdit) -> bool:
        """True when *edit* is already applied to *content*."""

    @abc.abstractmethod
    def locate_anchor(self, content: str, edit: SharedFileEdit) -> int:
        """Offset the entry is spliced at; raises AnchorNotFoundError."""

    @abc.abstractmethod
    def insert_entry(self, content: str, edit: SharedFileEdit) -> str:
        ...

    @abc.abstractmethod
    def remove_entry(self, content: str, edit: SharedFileEdit) -> str:
        """Return *content* without the entry; unchanged when absent."""

    def find_conflict(self, content: str, edit: SharedFileEdit) -> Optional[str]:
        """Describe a conflicting binding of ``edit.symbol``, if any."""
        return None

    def is_vacant(self, content: str, edit: SharedFileEdit) -> bool:
        """True when *content* holds nothing beyond the skeleton."""
        return _squashed(content) == _squashed(self.skeleton(edit))


# ---------------------------------------------------------------------------
# 1. extends: [...] arrays
# ---------------------------------------------------------------------------


class ExtendsListEditor(SharedFileEditor):
    """
    Maintains the ``extends`` array of a ``nuxt.config.ts``.

    The array is re-rendered on every edit: comments and empty slots are
    dropped, string quotes become ``'`` and duplicate values collapse.  An
    array written on one line stays on one line; otherwise entries sit on
    their own line with a 4-space indent.  Non-string entries (spreads,
    tuples) are kept verbatim.
    """

    def __init__(self, kind: SharedFileKind) -> None:
        self.kind = kind

    def skeleton(self, edit: SharedFileEdit) -> str:
        return "export default defineNuxtConfig({\n})\n"

    @staticmethod
    def parse_entries(body: str) -> List[str]:
        entries, _ = scan_array(body, 0)
        out: List[str] = []
        seen: set = set()
        for entry in entries:
            key: str = _entry_key(entry)
            if key in seen:
                continue
            seen.add(key)
            value: Optional[str] = string_value(entry)
            if value is not None and "'" not in value and "\\" not in value:
                entry = f"'{value}'"
            out.append(entry)
        return out

    @staticmethod
    def render(entries: Sequence[str], *, inline: bool = False) -> str:
        if not entries:
            return "extends: []"
        if inline:
            return f"extends: [{', '.join(entries)}]"
        inner: str = ",\n".join(f"    {e}" for e in entries)
        return f"extends: [\n{inner}\n  ]"

    def _entries(self, content: str) -> Optional[Tuple[List[str], int, int]]:
        span: Optional[Tuple[int, int, int]] = extends_span(content)
        if span is None:
            return None
        start, body_start, end = span
        return self.parse_entries(content[body_start:end - 1]), start, end

    def is_present(self, content: str, edit: SharedFileEdit) -> bool:
        found = self._entries(content)
        return found is not None and edit.idempotency_key in [_entry_key(e) for e in found[0]]

    def locate_anchor(self, content: str, edit: SharedFileEdit) -> int:
        span: Optional[Tuple[int, int, int]] = extends_span(content)
        if span is not None:
            return span[0]
        config = _DEFINE_NUXT_RE.search(content)
        if config is None:
            raise AnchorNotFoundError(edit.target_file, "an extends array or defineNuxtConfig({")
        return config.end()

    def insert_entry(self, content: str, edit: SharedFileEdit) -> str:
        offset: int = self.locate_anchor(content, edit)
        found = self._entries(content)
        if found is None:
            block: str = self.render([edit.insertion_text])
            return f"{content[:offset]}\n  {block},{content[offset:]}"
        entries, start, end = found
        if edit.idempotency_key not in [_entry_key(e) for e in entries]:
            entries.append(edit.insertion_text)
        inline: bool = "\n" not in content[start:end]
        return content[:start] + self.render(entries, inline=inline) + content[end:]

    def remove_entry(self, content: str, edit: SharedFileEdit) -> str:
        found = self._entries(content)
        if found is None:
            return content
        entries, start, end = found
        kept: List[str] = [e for e in entries if _entry_key(e) != edit.idempotency_key]
        inline: bool = "\n" not in content[start:end]
        return content[:start] + self.render(kept, inline=inline) + content[end:]

    def is_vacant(self, content: str, edit: SharedFileEdit) -> bool:
        found = self._entries(content)
        if found is None:
            return super().is_vacant(content, edit)
        entries, start, end = found
        if entries:
            return False
        rest: str = content[:start] + re.sub(r"^\s*,", "", content[end:])
        return super().is_vacant(rest, edit)


# ---------------------------------------------------------------------------
# 2. Schema index
# ---------------------------------------------------------------------------

SCHEMA_INDEX_SKELETON: str = (
    "// Database schema exports\n"
    "// This file is auto-managed by crouton-generate\n"
    "\n"
    "// Export auth schema from crouton-auth package\n"
    "export * from '@fyit/crouton-auth/server/database/schema/auth'\n"
)


class SchemaIndexEditor(SharedFileEditor):
    """``export { name } from '<collection schema>'`` lines in ``server/db/schema.ts``."""

    kind = SharedFileKind.SCHEMA_INDEX

    def skeleton(self, edit: SharedFileEdit) -> str:
        return SCHEMA_INDEX_SKELETON

    def is_present(self, content: str, edit: SharedFileEdit) -> bool:
        return any(line.strip() == edit.idempotency_key for line in content.splitlines())

    def locate_anchor(self, content: str, edit: SharedFileEdit) -> int:
        last: Optional[re.Match] = None
        for last in re.finditer(r"^export\s[^\n]*$", content, re.MULTILINE):
            pass
        return last.end() if last is not None else len(content.rstrip("\n"))

    def insert_entry(self, content: str, edit: SharedFileEdit) -> str:
        if edit.symbol and self.find_conflict(content, edit):
            shadowed: re.Pattern = re.compile(
                rf"^export\s*\{{\s*{re.escape(edit.symbol)}\s*\}}\s*from\s"
            )
            content = "\n".join(
                line for line in content.splitlines() if not shadowed.match(line)
            ) + "\n"
        offset: int = self.locate_anchor(content, edit)
        head: str = content[:offset].rstrip("\n")
        tail: str = content[offset:].lstrip("\n")
        joined: str = f"{head}\n{edit.insertion_text}\n" if head else f"{edit.insertion_text}\n"
        return joined + tail

    def remove_entry(self, content: str, edit: SharedFileEdit) -> str:
        kept: List[str] = [
            line for line in content.splitlines() if line.strip() != edit.idempotency_key
        ]
        return "\n".join(kept).rstrip("\n") + "\n"

    def find_conflict(self, content: str, edit: SharedFileEdit) -> Optional[str]:
        if not edit.symbol:
            return None
        for match in _NAMED_EXPORT_RE.finditer(content):
            names: List[str] = [n.strip().split(" as ")[-1].strip() for n in match.group(1).split(",")]
            if edit.symbol in names and match.group(2) != edit.source:
                return f"{edit.symbol} is already exported from {match.group(2)}"
        return None


# ---------------------------------------------------------------------------
# 3. App-config registry
# ---------------------------------------------------------------------------


class RegistryEditor(SharedFileEditor):
    """
    ``croutonCollections`` entries in ``app.config.ts``.

    One edit adds two things: the import of the collection's config export
    and the ``key: ConfigExport`` line inside ``croutonCollections``.
    """

    kind = SharedFileKind.REGISTRY

    def skeleton(self, edit: SharedFileEdit) -> str:
        return "export default defineAppConfig({\n})\n"

    @staticmethod
    def _key(edit: SharedFileEdit) -> str:
        return edit.idempotency_key.split(":", 1)[0].strip()

    def _import_line(self, edit: SharedFileEdit) -> str:
        return f"import {{ {edit.symbol} }} from '{edit.source}'"

    def _entry_re(self, edit: SharedFileEdit) -> re.Pattern:
        return re.compile(
            rf"^[ \t]*{re.escape(self._key(edit))}[ \t]*:[ \t]*(\w+)[ \t]*,?[ \t]*$", re.MULTILINE
        )

    def _drop_lines(self, content: str, edit: SharedFileEdit, any_symbol: bool) -> str:
        entry_re: re.Pattern = self._entry_re(edit)
        import_line: str = self._import_line(edit)
        kept: List[str] = []
        for line in content.splitlines():
            if line.strip() == import_line:
                continue
            match = entry_re.match(line)
            if match is not None and (any_symbol or match.group(1) == edit.symbol):
                continue
            kept.append(line)
        return "\n".join(kept).rstrip("\n") + "\n"

    @staticmethod
    def _drop_unused_import(content: str, symbol: str) -> str:
        """Remove ``import { symbol } from '...'`` when nothing else uses *symbol*."""
        body: str = _IMPORT_LINE_RE.sub("", content)
        if re.search(rf"\b{re.escape(symbol)}\b", body):
            return content
        single: re.Pattern = re.compile(
            rf"^import\s*\{{\s*{re.escape(symbol)}\s*\}}\s*from\s*['\"][^'\"]+['\"];?[ \t]*$"
        )
        kept: List[str] = [line for line in content.splitlines() if not single.match(line)]
        return "\n".join(kept).rstrip("\n") + "\n"

    def is_present(self, content: str, edit: SharedFileEdit) -> bool:
        match = self._entry_re(edit).search(content)
        return match is not None and match.group(1) == edit.symbol

    def is_vacant(self, content: str, edit: SharedFileEdit) -> bool:
        squashed: str = re.sub(r"croutonCollections:\{\},?", "", _squashed(content))
        return squashed == _squashed(self.skeleton(edit))

    def locate_anchor(self, content: str, edit: SharedFileEdit) -> int:
        block = _COLLECTIONS_BLOCK_RE.search(content)
        if block is not None:
            return block.end()
        config = _DEFINE_APP_RE.search(content)
        if config is None:
            raise AnchorNotFoundError(
                edit.target_file, "a croutonCollections: { block or defineAppConfig({"
            )
        return config.end()

    def insert_entry(self, content: str, edit: SharedFileEdit) -> str:
        # A key bound to another symbol is only reached under force; rebind it.
        bound = self._entry_re(edit).search(content)
        if bound is not None:
            stale: str = bound.group(1)
            content = self._drop_lines(content, edit, any_symbol=True)
            if stale != edit.symbol:
                content = self._drop_unused_import(content, stale)

        offset: int = self.locate_anchor(content, edit)
        rest: str = content[offset:]
        if _COLLECTIONS_BLOCK_RE.search(content) is not None:
            if rest.lstrip().startswith("}"):
                rest = "\n  " + rest.lstrip()
            content = f"{content[:offset]}\n{edit.insertion_text}{rest}"
        else:
            block: str = f"\n  croutonCollections: {{\n{edit.insertion_text}\n  }},"
            content = content[:offset] + block + rest

        import_line: str = self._import_line(edit)
        if import_line in content:
            return content
        imports: List[re.Match] = list(_IMPORT_LINE_RE.finditer(content))
        if imports:
            at: int = imports[-1].end()
            return f"{content[:at]}\n{import_line}{content[at:]}"
        return f"{import_line}\n\n{content.lstrip()}"

    def remove_entry(self, content: str, edit: SharedFileEdit) -> str:
        had_empty_block: bool = _EMPTY_COLLECTIONS_RE.search(content) is not None
        content = self._drop_lines(content, edit, any_symbol=False)
        if not had_empty_block:
            content = _EMPTY_COLLECTIONS_RE.sub("", content)
        return content.lstrip("\n")

    def find_conflict(self, content: str, edit: SharedFileEdit) -> Optional[str]:
        match = self._entry_re(edit).search(content)
        if match is not None and match.group(1) != edit.symbol:
            return f"registry key {self._key(edit)} is bound to {match.group(1)}"
        return None


# ---------------------------------------------------------------------------
# 4. Locale files
# ---------------------------------------------------------------------------


class LocaleFileEditor(SharedFileEditor):
    """
    ``{layer: {collections: {name: {title}}}}`` entries in a locale JSON file.

    The idempotency key is the dotted path of the entry.
    """

    kind = SharedFileKind.LOCALE

    def skeleton(self, edit: SharedFileEdit) -> str:
        return "{}\n"

    @staticmethod
    def _load(content: str, edit: SharedFileEdit) -> Dict[str, Any]:
        try:
            data: Any = json.loads(content) if content.strip() else {}
        except json.JSONDecodeError as exc:
            raise AnchorNotFoundError(edit.target_file, f"a JSON object ({exc.msg})") from exc
        if not isinstance(data, dict):
            raise AnchorNotFoundError(edit.target_file, "a JSON object at the top level")
        return data

    @staticmethod
    def _dump(data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def is_present(self, content: str, edit: SharedFileEdit) -> bool:
        node: Any = self._load(content, edit)
        for part in edit.idempotency_key.split("."):
            if not isinstance(node, dict) or part not in node:
                return False
            node = node[part]
        return True

    def locate_anchor(self, content: str, edit: SharedFileEdit) -> int:
        self._load(content, edit)
        return 0

    def insert_entry(self, content: str, edit: SharedFileEdit) -> str:
        data: Dict[str, Any] = self._load(content, edit)
        node: Dict[str, Any] = data
        *parents, leaf = edit.idempotency_key.split(".")
        for part in parents:
            child: Any = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise AnchorNotFoundError(edit.target_file, f"an object at {part!r}")
            node = child
        node[leaf] = {"title": edit.insertion_text}
        return self._dump(data)

    def remove_entry(self, content: str, edit: SharedFileEdit) -> str:
        data: Dict[str, Any] = self._load(content, edit)
        parts: List[str] = edit.idempotency_key.split(".")
        trail: List[Tuple[Dict[str, Any], str]] = []
        node: Any = data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return content
            trail.append((node, part))
            node = node[part]
        for parent, part in reversed(trail):
            child: Any = parent[part]
            if child is node or (isinstance(child, dict) and not child):
                del parent[part]
            else:
                break
        return self._dump(data)


# ---------------------------------------------------------------------------
# Mutation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class MutationReport:
    """Status of every shared-file edit in one apply or revert call."""

    dry_run: bool = False
    lines: List[StatusLine] = field(default_factory=list)

    @property
    def changed_files(self) -> List[str]:
        done: Tuple[str, ...] = (StepStatus.UPDATED.value, StepStatus.CREATED.value, StepStatus.REMOVED.value)
        return sorted({line.path for line in self.lines if line.status in done})

    def summary(self) -> str:
        return "\n".join(f"  {line.render()}" for line in self.lines)


# ---------------------------------------------------------------------------
# Mutator
# ---------------------------------------------------------------------------


class SharedFileMutator:
    """
    Applies and reverts :class:`SharedFileEdit` lists under a project root.

    Edits touching the same file see each other's effect, also in dry-run
    mode where the pending content is only kept in memory.
    """

    def __init__(self, project_root: Path) -> None:
        self._root: Path = Path(project_root).resolve()
        self._editors: Dict[str, SharedFileEditor] = {
            SharedFileKind.ROOT_EXTENDS.value: ExtendsListEditor(SharedFileKind.ROOT_EXTENDS),
            SharedFileKind.LAYER_EXTENDS.value: ExtendsListEditor(SharedFileKind.LAYER_EXTENDS),
            SharedFileKind.SCHEMA_INDEX.value: SchemaIndexEditor(),
            SharedFileKind.REGISTRY.value: RegistryEditor(),
            SharedFileKind.LOCALE.value: LocaleFileEditor(),
        }

    @property
    def root(self) -> Path:
        return self._root

    def editor_for(self, edit: SharedFileEdit) -> SharedFileEditor:
        return self._editors[str(edit.kind)]

    def _read(self, rel: str, pending: Dict[str, Optional[str]]) -> Optional[str]:
        if rel in pending:
            return pending[rel]
        return read_file_or_none(self._root / rel)

    # -----------------------------------------------------------------
    # Conflicts
    # -----------------------------------------------------------------

    def find_conflicts(self, edits: Sequence[SharedFileEdit]) -> List[str]:
        """Human-readable conflicts between *edits* and the files on disk."""
        found: List[str] = []
        for edit in edits:
            content: Optional[str] = read_file_or_none(self._root / edit.target_file)
            if content is None:
                continue
            conflict: Optional[str] = self.editor_for(edit).find_conflict(content, edit)
            if conflict:
                found.append(f"{edit.target_file}: {conflict}")
        return found

    # -----------------------------------------------------------------
    # Apply / revert
    # -----------------------------------------------------------------

    def apply(
        self,
        edits: Sequence[SharedFileEdit],
        *,
        force: bool = False,
        dry_run: bool = False,
    ) -> MutationReport:
        """
        Apply *edits* in order.

        Raises:
            ConflictError: A symbol is bound differently and *force* is off.
            AnchorNotFoundError: A file has no recognisable insertion point.
        """
        report: MutationReport = MutationReport(dry_run=dry_run)
        pending: Dict[str, Optional[str]] = {}

        for edit in edits:
            editor: SharedFileEditor = self.editor_for(edit)
            current: Optional[str] = self._read(edit.target_file, pending)
            created: bool = current is None
            content: str = editor.skeleton(edit) if current is None else current

            if editor.is_present(content, edit):
                report.lines.append(StatusLine(
                    StepStatus.SKIPPED.value, edit.target_file,
                    detail=f"{edit.idempotency_key} already present", dry_run=dry_run,
                ))
                continue

            conflict: Optional[str] = editor.find_conflict(content, edit)
            if conflict:
                if not force:
                    raise ConflictError(f"Cannot edit {edit.target_file}.", [conflict])
                logger.warning("Overriding conflict in %s: %s", edit.target_file, conflict)

            updated: str = editor.insert_entry(content, edit)
            pending[edit.target_file] = updated
            if not dry_run:
                write_file(self._root / edit.target_file, updated)
            status: str = StepStatus.CREATED.value if created else StepStatus.UPDATED.value
            report.lines.append(StatusLine(
                status, edit.target_file, detail=f"+ {edit.idempotency_key}", dry_run=dry_run,
            ))
            logger.debug("Applied %r", edit)

        return report

    def revert(
        self,
        edits: Sequence[SharedFileEdit],
        *,
        dry_run: bool = False,
    ) -> MutationReport:
        """
        Remove the entries *edits* inserted, in reverse order.

        A file left with nothing beyond its editor's skeleton is deleted,
        so reverting every edit of a fresh host restores its original tree.
        """
        report: MutationReport = MutationReport(dry_run=dry_run)
        pending: Dict[str, Optional[str]] = {}

        for edit in reversed(list(edits)):
            editor: SharedFileEditor = self.editor_for(edit)
            content: Optional[str] = self._read(edit.target_file, pending)
            if content is None or not editor.is_present(content, edit):
                report.lines.append(StatusLine(
                    StepStatus.SKIPPED.value, edit.target_file,
                    detail=f"{edit.idempotency_key} not present", dry_run=dry_run,
                ))
                continue

            updated: str = editor.remove_entry(content, edit)
            report.lines.append(StatusLine(
                StepStatus.REMOVED.value, edit.target_file,
                detail=f"- {edit.idempotency_key}", dry_run=dry_run,
            ))
            logger.debug("Reverted %r", edit)

            if editor.is_vacant(updated, edit):
                pending[edit.target_file] = None
                if not dry_run:
                    (self._root / edit.target_file).unlink(missing_ok=True)
                report.lines.append(StatusLine(
                    StepStatus.REMOVED.value, edit.target_file, detail="no entries left", dry_run=dry_run,
                ))
                logger.debug("Deleted %s: no entries left", edit.target_file)
                continue

            pending[edit.target_file] = updated
            if not dry_run:
                write_file(self._root / edit.target_file, updated)

        return report


# ---------------------------------------------------------------------------
# Edit planning
# ---------------------------------------------------------------------------


def extends_edit(
    target_file: str,
    value: str,
    layer: str,
    *,
    kind: SharedFileKind = SharedFileKind.ROOT_EXTENDS,
    layer_level: bool = False,
) -> SharedFileEdit:
    return SharedFileEdit(
        target_file=target_file,
        kind=kind,
        anchor_pattern=_EXTENDS_OPEN_RE.pattern,
        insertion_text=f"'{value}'",
        idempotency_key=value,
        layer=layer,
        layer_level=layer_level,
    )


def registry_path(project_root: Path) -> str:
    """``app/app.config.ts`` when the host has an ``app/`` dir, else ``app.config.ts``."""
    return APP_REGISTRY if (Path(project_root) / "app").is_dir() else ROOT_REGISTRY


def locale_key(naming: NamingSet) -> str:
    return f"{naming.layer}.collections.{naming.camel_case_plural}"


def plan_unit(
    naming: NamingSet,
    config: GlobalConfig,
    descriptor: Optional[CollectionDescriptor] = None,
    *,
    include_locales: Optional[bool] = None,
) -> List[SharedFileEdit]:
    """
    Every shared-file edit belonging to one collection.

    Generation applies the list in order; rollback reverts it in reverse.
    The schema-index edit is returned too, the orchestrator decides when to
    apply it.  Locale edits are planned when *descriptor* has translations,
    or when *include_locales* forces it (rollback has no descriptor).
    """
    n: NamingSet = naming
    edits: List[SharedFileEdit] = [
        extends_edit(ROOT_CONFIG, f"./layers/{n.layer}", n.layer, layer_level=True),
        extends_edit(
            f"{n.layer_dir}/nuxt.config.ts",
            f"./collections/{n.kebab_case_plural}",
            n.layer,
            kind=SharedFileKind.LAYER_EXTENDS,
        ),
    ]

    registry: str = registry_path(config.root)
    source: str = (
        n.composable_import_path
        if registry == APP_REGISTRY
        else f"./{n.base_dir}/app/composables/{n.composable_name}"
    )
    edits.append(SharedFileEdit(
        target_file=registry,
        kind=SharedFileKind.REGISTRY,
        anchor_pattern=_COLLECTIONS_BLOCK_RE.pattern,
        insertion_text=f"    {n.collection_key}: {n.config_export},",
        idempotency_key=f"{n.collection_key}: {n.config_export}",
        layer=n.layer,
        symbol=n.config_export,
        source=source,
    ))

    if include_locales is None:
        include_locales = bool(
            descriptor is not None
            and descriptor.has_translations
            and not config.flags.no_translations
        )
    if include_locales:
        for locale in config.locales:
            edits.append(SharedFileEdit(
                target_file=f"{n.layer_dir}/i18n/locales/{locale}.json",
                kind=SharedFileKind.LOCALE,
                anchor_pattern="{",
                insertion_text=to_title_human(n.plural),
                idempotency_key=locale_key(n),
                layer=n.layer,
            ))

    edits.append(schema_index_edit(n))
    return edits


def schema_index_edit(naming: NamingSet) -> SharedFileEdit:
    line: str = f"export {{ {naming.schema_export} }} from '{naming.schema_import_path}'"
    return SharedFileEdit(
        target_file=SCHEMA_INDEX,
        kind=SharedFileKind.SCHEMA_INDEX,
        anchor_pattern=r"^export\s",
        insertion_text=line,
        idempotency_key=line,
        layer=naming.layer,
        symbol=naming.schema_export,
        source=naming.schema_import_path,
    )


__all__: List[str] = [
    "ROOT_CONFIG",
    "SCHEMA_INDEX",
    "SCHEMA_INDEX_SKELETON",
    "SharedFileEditor",
    "ExtendsListEditor",
    "SchemaIndexEditor",
    "RegistryEditor",
    "LocaleFileEditor",
    "MutationReport",
    "SharedFileMutator",
    "extends_body",
    "extends_edit",
    "extends_span",
    "registry_path",
    "locale_key",
    "plan_unit",
    "scan_array",
    "schema_index_edit",
    "string_value",
]

logger.debug("slicegen.mutator loaded.")
