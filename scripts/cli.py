"""Single entry point for the Hackstead command line tools.

Usage::

    python -m scripts.cli <command> [args]
    python -m scripts.cli --list

Every module in the ``scripts`` package that defines ``main`` is a command,
named after the module with underscores turned into dashes.
"""

from __future__ import annotations

import argparse
import ast
import pkgutil
import runpy
import sys
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent

# ``scripts.<command>`` must be importable when this file is run directly
ROOT = PACKAGE_DIR.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _discover_commands() -> dict[str, Path]:
    """Return mapping of command names to script files."""
    commands: dict[str, Path] = {}
    for mod in pkgutil.iter_modules([str(PACKAGE_DIR)]):
        if mod.ispkg or mod.name in {"cli", "__init__"}:
            continue
        commands[mod.name.replace("_", "-")] = PACKAGE_DIR / f"{mod.name}.py"
    return commands


def _summary(path: Path) -> str:
    """First line of a script's docstring, read without importing it."""
    tree = ast.parse(path.read_text(encoding="utf-8"))
    doc = ast.get_docstring(tree) or ""
    return doc.strip().splitlines()[0] if doc.strip() else ""


def main(argv: list[str] | None = None) -> None:
    commands = _discover_commands()
    parser = argparse.ArgumentParser(description="Hackstead utilities")
    parser.add_argument("--list", action="store_true", help="list available commands")
    parser.add_argument("command", nargs="?", choices=sorted(commands))
    parser.add_argument("args", nargs=argparse.REMAINDER)
    ns = parser.parse_args(argv)

    if ns.list or ns.command is None:
        width = max((len(name) for name in commands), default=0)
        for name in sorted(commands):
            print(f"{name:<{width}}  {_summary(commands[name])}")
        return

    module_name = f"scripts.{commands[ns.command].stem}"
    sys.argv = [module_name] + ns.args
    runpy.run_module(module_name, run_name="__main__", alter_sys=True)


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
