# File: slicegen/cli.py
"""
slicegen - Command-Line Interface
==================================

CLI built with the standard-library ``argparse`` module.

Usage examples::

    # One collection from a field schema
    slicegen generate shop products -f schemas/products.json

    # Tree-structured collection with seed data, Postgres schema
    slicegen generate shop categories -f categories.yaml \\
        --hierarchy --seed --count 50 --dialect pg

    # Everything in a batch config, preview only
    slicegen config crouton.config.json --dry-run

    # Undo one collection, or a whole layer
    slicegen rollback shop products
    slicegen rollback-layer shop --force

    # Global options go before the subcommand
    slicegen -vv --project-root ../app generate blog posts -f posts.json

Exit codes:
    0 — success
    1 — validation, conflict, dependency or generation failure
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Sequence

from slicegen.errors import ScaffoldError
from slicegen.models import (
    GenerationFlags,
    GlobalConfig,
    HierarchyConfig,
    SeedConfig,
    SortableConfig,
)

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("slicegen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_FAILURE: int = 1


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root slicegen logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt=datefmt)
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("slicegen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_write_flags(parser: argparse.ArgumentParser, *, no_db: bool = True) -> None:
    group = parser.add_argument_group("behaviour flags")
    group.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Overwrite existing files and demote dependency/migration failures to warnings.",
    )
    group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="List every path that would change without writing anything.",
    )
    if no_db:
        group.add_argument(
            "--no-db",
            action="store_true",
            default=False,
            help="Skip the migration command after generation.",
        )
        group.add_argument(
            "--no-strict",
            dest="strict",
            action="store_false",
            default=True,
            help="Report missing packages as warnings instead of failing.",
        )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from slicegen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="slicegen",
        description=(
            "slicegen — Collection Scaffolding Engine.\n\n"
            "Turns field schemas (JSON/YAML) into complete collection slices: "
            "storage schema, queries, API handlers, form/list UI, types, "
            "composable and seed data, wired into the host project's shared files."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s generate shop products -f products.json\n"
            "  %(prog)s config crouton.config.yaml --only products\n"
            "  %(prog)s rollback shop products --dry-run\n"
            "  %(prog)s rollback-layer shop --force\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"slicegen v{__version__}",
    )
    parser.add_argument(
        "--project-root",
        type=str,
        default=".",
        metavar="DIR",
        help="Root of the host project (default: current directory).",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    # --- generate ---
    gen = sub.add_parser("generate", help="Generate one collection.")
    gen.add_argument("layer", help="Target layer, e.g. 'shop'.")
    gen.add_argument("collection", help="Collection name, e.g. 'products'.")
    gen.add_argument(
        "-f", "--fields-file",
        type=str,
        required=True,
        metavar="PATH",
        help="Field schema file (JSON or YAML).",
    )
    gen.add_argument(
        "--dialect",
        type=str,
        default=None,
        choices=["pg", "sqlite"],
        help="Storage dialect (default: sqlite).",
    )
    _add_write_flags(gen)
    options = gen.add_argument_group("collection options")
    options.add_argument(
        "--no-translations",
        action="store_true",
        default=False,
        help="Ignore translatable field declarations.",
    )
    options.add_argument(
        "--hierarchy",
        action="store_true",
        default=False,
        help="Add tree columns (parentId, path, depth, order).",
    )
    options.add_argument(
        "--sortable",
        action="store_true",
        default=False,
        help="Add a drag-to-reorder order column.",
    )
    options.add_argument(
        "--seed",
        action="store_true",
        default=False,
        help="Emit a seed data file.",
    )
    options.add_argument(
        "--collab",
        action="store_true",
        default=False,
        help="Show live collaboration presence badges in the list (needs @fyit/crouton-collab).",
    )
    options.add_argument(
        "--count",
        type=int,
        default=None,
        metavar="N",
        help="Number of seed records (requires --seed).",
    )

    # --- config ---
    cfg = sub.add_parser("config", help="Generate every collection of a batch config.")
    cfg.add_argument("config_file", metavar="FILE", help="Batch config (JSON or YAML).")
    cfg.add_argument(
        "--only",
        type=str,
        default=None,
        metavar="NAME",
        help="Generate only this collection from the config.",
    )
    _add_write_flags(cfg)

    # --- rollback ---
    rb = sub.add_parser("rollback", help="Remove one generated collection.")
    rb.add_argument("layer")
    rb.add_argument("collection")
    _add_write_flags(rb, no_db=False)
    rb.add_argument(
        "--keep-files",
        action="store_true",
        default=False,
        help="Only revert shared-file entries; keep the generated directory.",
    )

    # --- rollback-layer ---
    rbl = sub.add_parser("rollback-layer", help="Remove every collection of a layer.")
    rbl.add_argument("layer")
    _add_write_flags(rbl, no_db=False)

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, object] = {"project_root": Path(args.project_root)}

    if getattr(args, "dialect", None) is not None:
        overrides["dialect"] = args.dialect

    overrides["flags"] = GenerationFlags(
        force=getattr(args, "force", False),
        dry_run=getattr(args, "dry_run", False),
        no_db=getattr(args, "no_db", False),
        no_translations=getattr(args, "no_translations", False),
        strict=getattr(args, "strict", True),
    )
    return overrides


def build_config(args: argparse.Namespace) -> GlobalConfig:
    """Validate the CLI overrides into a :class:`GlobalConfig`."""
    return GlobalConfig.model_validate(_build_config_overrides(args))


# ---------------------------------------------------------------------------
# Subcommand runners
# ---------------------------------------------------------------------------


def _run_generate(args: argparse.Namespace, config: GlobalConfig) -> int:
    from slicegen.orchestrator import GenerationReport, ScaffoldOrchestrator

    if args.count is not None and not args.seed:
        logger.error("--count requires --seed.")
        return EXIT_FAILURE

    seed: Optional[SeedConfig] = None
    if args.seed:
        seed = SeedConfig(count=args.count or config.seed.default_count)

    report: GenerationReport = ScaffoldOrchestrator(config).generate_single(
        args.layer,
        args.collection,
        Path(args.fields_file),
        hierarchy=HierarchyConfig() if args.hierarchy else None,
        sortable=SortableConfig() if args.sortable else None,
        seed=seed,
        collab=args.collab,
    )
    print(report.summary())
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


def _run_config(args: argparse.Namespace, config: GlobalConfig) -> int:
    from slicegen.loader import load_batch_config
    from slicegen.orchestrator import GenerationReport, ScaffoldOrchestrator

    batch, base_dir = load_batch_config(Path(args.config_file))
    report: GenerationReport = ScaffoldOrchestrator(config).generate_batch(
        batch, base_dir, only=args.only
    )
    print(report.summary())
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


def _run_rollback(args: argparse.Namespace, config: GlobalConfig) -> int:
    from slicegen.rollback import RollbackEngine, RollbackReport

    engine: RollbackEngine = RollbackEngine(config)
    if args.command == "rollback-layer":
        report: RollbackReport = engine.rollback_layer(
            args.layer, dry_run=args.dry_run, force=args.force
        )
    else:
        report = engine.rollback(
            args.layer,
            args.collection,
            dry_run=args.dry_run,
            force=args.force,
            keep_files=args.keep_files,
        )
    print(report.summary())
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


_RUNNERS = {
    "generate": _run_generate,
    "config": _run_config,
    "rollback": _run_rollback,
    "rollback-layer": _run_rollback,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv*, run the subcommand and return the exit code."""
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.WARNING)
    else:
        verbosity = args.verbose
        logging.disable(logging.NOTSET)

    _setup_logging(verbosity)

    root: Path = Path(args.project_root).resolve()
    if not root.is_dir():
        logger.error("Project root is not a directory: %s", root)
        return EXIT_FAILURE

    logger.info("Command: %s", args.command)
    logger.info("Root:    %s", root)

    try:
        config: GlobalConfig = build_config(args)
        exit_code: int = _RUNNERS[args.command](args, config)
    except ScaffoldError as exc:
        logger.error("%s: %s", type(exc).__name__, exc.message)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("Cancelled.")
        return EXIT_FAILURE

    if exit_code == EXIT_SUCCESS:
        logger.info("%s completed successfully.", args.command)
    else:
        logger.error("%s failed with exit code %d.", args.command, exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    sys.exit(run(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run",
    "build_config",
    "EXIT_SUCCESS",
    "EXIT_FAILURE",
]

logger.debug("slicegen.cli loaded.")
