# File: slicegen/utils.py
"""
slicegen - Utility Functions & Helpers
=======================================
String transformation, file I/O and timing utilities used throughout the
generation and rollback pipelines.

Every case converter goes through :func:`split_words`, so ``shop-products``,
``shop_products``, ``shopProducts`` and ``ShopProducts`` all normalise to
the same word list before they are re-joined.  The converters are
``lru_cache``d: one batch run asks for the same handful of names hundreds
of times.

File writes go through a sibling temp file and ``os.replace`` so an
interrupted run never leaves a half-written artifact or shared config file.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

logger: logging.Logger = logging.getLogger("slicegen.utils")

# ---------------------------------------------------------------------------
# Word splitting
# ---------------------------------------------------------------------------

_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]+")
_WORD_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_OPTION_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[-_./\s]+")

_VOWELS: str = "aeiou"


@functools.lru_cache(maxsize=None)
def split_words(name: str) -> Tuple[str, ...]:
    """
    Lower-cased words of *name*, whatever its casing style.

    Examples:
        >>> split_words("crm_emailTemplates")
        ('crm', 'email', 'templates')
        >>> split_words("---")
        ()
    """
    return tuple(w.lower() for w in _WORD_RE.findall(_SEPARATOR_RE.sub(" ", name)))


def _joined(name: str, sep: str, first: Callable[[str], str], rest: Callable[[str], str]) -> str:
    words: Tuple[str, ...] = split_words(name)
    if not words:
        return ""
    return sep.join([first(words[0])] + [rest(w) for w in words[1:]])


# ---------------------------------------------------------------------------
# Case conversion
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """``shop-products`` -> ``shop_products`` (table names)."""
    return _joined(name, "_", str.lower, str.lower)


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    ``email-templates`` -> ``EmailTemplates``.

    Used for component, type and prefixed symbol names.
    """
    return _joined(name, "", str.capitalize, str.capitalize)


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """``email-templates`` -> ``emailTemplates`` (registry keys, exports)."""
    return _joined(name, "", str.lower, str.capitalize)


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """``EmailTemplates`` -> ``email-templates`` (API paths, directories)."""
    return _joined(name, "-", str.lower, str.lower)


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """``publishedAt`` -> ``Published At`` (labels, locale strings)."""
    return _joined(name, " ", str.capitalize, str.capitalize)


@functools.lru_cache(maxsize=None)
def to_option_label(value: str) -> str:
    """
    Derive a display label from a raw option value.

    The value is split on ``-``, ``_``, ``.``, ``/`` and whitespace and
    each segment is title-cased.

    Examples:
        >>> to_option_label("in_progress")
        'In Progress'
        >>> to_option_label("high-priority")
        'High Priority'
    """
    segments: List[str] = [s for s in _OPTION_SEPARATOR_RE.split(value) if s]
    return " ".join(s[0].upper() + s[1:].lower() for s in segments)


# ---------------------------------------------------------------------------
# Pluralisation (ordered suffix rules, no irregular dictionary)
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def looks_plural(name: str) -> bool:
    """True when *name* ends in a plural ``s`` (but not a singular ``ss``)."""
    lower: str = name.lower()
    return lower.endswith("s") and not lower.endswith("ss")


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """
    Singularise using ordered suffix rules.

    Rules, first match wins:
        1. ``-ies``  -> ``-y``
        2. ``-xes``, ``-ches``, ``-shes``, ``-sses``, ``-zes`` -> strip 2
        3. ``-oes``  -> strip 2 when the ``o`` follows a vowel, else strip 1
        4. ``-s``    -> strip 1

    Irregular nouns (people, children, ...) are not recognised.
    """
    if not name:
        return ""

    lower: str = name.lower()

    if lower.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if lower.endswith(("xes", "ches", "shes", "sses", "zes")):
        return name[:-2]
    if lower.endswith("oes") and len(name) > 3:
        if lower[-4] in _VOWELS:
            return name[:-2]
        return name[:-1]
    if looks_plural(name):
        return name[:-1]

    return name


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Pluralise a singular noun; inverse of :func:`to_singular`.

    Words that already look plural are returned unchanged.
    """
    if not name:
        return ""

    lower: str = name.lower()

    if looks_plural(name):
        return name
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in _VOWELS:
        return name[:-1] + "ies"
    if lower.endswith(("x", "ch", "sh", "ss", "z")):
        return name + "es"
    if lower.endswith("o") and len(name) > 1 and lower[-2] not in _VOWELS:
        return name + "es"

    return name + "s"


# ---------------------------------------------------------------------------
# TypeScript literal helpers
# ---------------------------------------------------------------------------


def ts_string(value: str) -> str:
    """Render *value* as a single-quoted TypeScript string literal."""
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def ts_literal(value: object) -> str:
    """Render a JSON-like Python value as a TypeScript literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return ts_string(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(ts_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        inner: str = ", ".join(f"{k}: {ts_literal(v)}" for k, v in value.items())
        return "{ " + inner + " }"
    return ts_string(str(value))


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def write_file(path: Path, content: str) -> int:
    """
    Atomically replace *path* with *content* (UTF-8), creating parents.

    Returns the size written in bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data: bytes = content.encode("utf-8")

    fd, staging = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".slicegen")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(staging, path)
    except OSError:
        Path(staging).unlink(missing_ok=True)
        raise

    logger.debug("Wrote %s (%d bytes)", path, len(data))
    return len(data)


def read_file_or_none(path: Path) -> Optional[str]:
    """Text of *path*, or None when it is not a regular file."""
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def remove_tree(path: Path) -> bool:
    """Remove a directory tree. Returns False when nothing was there."""
    if not path.exists():
        return False
    shutil.rmtree(path)
    logger.debug("Removed directory tree: %s", path)
    return True


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Lines in *content*; a missing final newline still counts a line."""
    if not content:
        return 0
    return content.count("\n") + (0 if content.endswith("\n") else 1)


# ---------------------------------------------------------------------------
# Step timer
# ---------------------------------------------------------------------------


class Timer:
    """
    Context manager measuring one pipeline step.

    Usage::

        with Timer("materialize products") as t:
            ...
        report.step_metrics.append(GenerationStepMetric("Write", True, t.elapsed))
    """

    __slots__ = ("label", "_started", "elapsed")

    def __init__(self, label: str) -> None:
        self.label: str = label
        self._started: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._started
        logger.debug("Step %s took %.4fs", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


__all__: List[str] = [
    "split_words",
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_title_human",
    "to_option_label",
    "looks_plural",
    "to_plural",
    "to_singular",
    "ts_string",
    "ts_literal",
    "write_file",
    "read_file_or_none",
    "remove_tree",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("slicegen.utils loaded.")
