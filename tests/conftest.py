"""
tests/conftest.py
Shared fixtures for the slicegen test suite.

No external mocking libraries are used; real file I/O is performed inside
temporary directories managed by pytest's tmp_path fixture.  The
``host_project`` fixture lays out the smallest Nuxt host the engine
accepts: a ``package.json`` declaring the crouton runtime, a root
``nuxt.config.ts`` extending it, and an ``app/`` directory.
"""

from __future__ import annotations

import json
import pathlib
import subprocess
from typing import Any, Callable, Dict, List

import pytest
import yaml

from slicegen.loader import build_descriptor, parse_field_schema
from slicegen.models import CollectionDescriptor, GenerationFlags, GlobalConfig
from slicegen.naming import derive_naming


ROOT_NUXT_CONFIG: str = (
    "export default defineNuxtConfig({\n"
    "  extends: ['@fyit/crouton']\n"
    "})\n"
)

HOST_PACKAGE_JSON: Dict[str, Any] = {
    "name": "host-app",
    "private": True,
    "dependencies": {
        "@fyit/crouton": "^1.0.0",
        "drizzle-orm": "^0.36.0",
        "nanoid": "^5.0.0",
        "nuxt": "^3.15.0",
    },
}


# ---------------------------------------------------------------------------
# Field schemas
# ---------------------------------------------------------------------------


@pytest.fixture()
def products_fields() -> Dict[str, Any]:
    """``title`` required string, ``price`` optional decimal."""
    return {
        "title": {"type": "string", "meta": {"required": True, "maxLength": 200}},
        "price": {"type": "decimal"},
    }


@pytest.fixture()
def categories_fields() -> Dict[str, Any]:
    return {
        "name": {"type": "string", "meta": {"required": True}},
        "description": {"type": "text"},
    }


@pytest.fixture()
def rich_fields() -> Dict[str, Any]:
    """One field of nearly every widget kind, for template tests."""
    return {
        "title": {"type": "string", "meta": {"required": True, "translatable": True}},
        "status": {
            "type": "string",
            "meta": {"options": ["draft", "in_progress", "done"], "displayAs": "optionsSelect"},
        },
        "tags": {"type": "array"},
        "active": {"type": "boolean"},
        "publishedAt": {"type": "date", "meta": {"area": "sidebar"}},
        "categoryId": {"type": "string", "refTarget": "categories"},
        "authorId": {"type": "string", "refTarget": ":users"},
        "variants": {"type": "repeater"},
        "settings": {"type": "json"},
    }


# ---------------------------------------------------------------------------
# Host project
# ---------------------------------------------------------------------------


@pytest.fixture()
def host_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """A minimal host project with the crouton runtime installed and extended."""
    root = tmp_path / "host"
    (root / "app").mkdir(parents=True)
    (root / "package.json").write_text(json.dumps(HOST_PACKAGE_JSON, indent=2), encoding="utf-8")
    (root / "nuxt.config.ts").write_text(ROOT_NUXT_CONFIG, encoding="utf-8")
    return root


@pytest.fixture()
def config(host_project: pathlib.Path) -> GlobalConfig:
    """Run config for the host project: no migration, no cancel window."""
    return GlobalConfig(
        project_root=host_project,
        flags=GenerationFlags(no_db=True),
        cancel_window=0,
    )


@pytest.fixture()
def write_schema(tmp_path: pathlib.Path) -> Callable[[str, Any], pathlib.Path]:
    """Return a helper that writes a schema dict to ``tmp_path/schemas/<name>``."""
    folder = tmp_path / "schemas"
    folder.mkdir(exist_ok=True)

    def _write(name: str, data: Any) -> pathlib.Path:
        path = folder / name
        if path.suffix in (".yaml", ".yml"):
            path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        else:
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def products_file(write_schema: Callable[[str, Any], pathlib.Path], products_fields: Dict[str, Any]) -> pathlib.Path:
    return write_schema("products.json", products_fields)


@pytest.fixture()
def categories_file(
    write_schema: Callable[[str, Any], pathlib.Path], categories_fields: Dict[str, Any]
) -> pathlib.Path:
    return write_schema("categories.json", categories_fields)


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_descriptor(config: GlobalConfig) -> Callable[..., CollectionDescriptor]:
    """Return a helper building a descriptor from a raw field dict."""

    def _make(layer: str, name: str, fields: Dict[str, Any], **options: Any) -> CollectionDescriptor:
        cfg: GlobalConfig = options.pop("config", config)
        return build_descriptor(layer, name, parse_field_schema(fields), cfg, **options)

    return _make


@pytest.fixture()
def products_descriptor(
    make_descriptor: Callable[..., CollectionDescriptor], products_fields: Dict[str, Any]
) -> CollectionDescriptor:
    return make_descriptor("shop", "products", products_fields)


@pytest.fixture()
def products_naming():
    return derive_naming("products", "shop")


# ---------------------------------------------------------------------------
# Migration command runners
# ---------------------------------------------------------------------------


class FakeRunner:
    """Records calls and returns (or raises) a canned result."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "", raises: Exception = None) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, command: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append({"command": list(command), **kwargs})
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, self.stderr)


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def make_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


@pytest.fixture()
def read_host(host_project: pathlib.Path) -> Callable[[str], str]:
    """Read a file under the host project, or '' when it does not exist."""

    def _read(rel: str) -> str:
        path = host_project / rel
        return path.read_text(encoding="utf-8") if path.exists() else ""

    return _read
