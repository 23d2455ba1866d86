# File: slicegen/__main__.py
"""
slicegen — Module entry point.

Allows running the engine directly via::

    python -m slicegen generate shop products -f products.json

This module simply delegates to the CLI entry point defined in ``slicegen.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from slicegen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
