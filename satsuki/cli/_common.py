"""Common utilities and constants for CLI commands."""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from satsuki.errors import SatsukiError
from satsuki.executable import Executable
from satsuki.mapping import load_mapping
from satsuki.models import Mapping
from satsuki.objfile import ObjectFile
from satsuki.pdbfile import PdbFile

# Console for rich output
console = Console()

# Defaults, overridable from the environment or .env
DEFAULT_MAPPING_FILE = os.environ.get("SATSUKI_MAPPING_FILE", "")
DEFAULT_ARCH_MODE = os.environ.get("SATSUKI_ARCH_MODE", "32")
DEFAULT_LOG_LEVEL = os.environ.get("SATSUKI_LOG_LEVEL", "WARNING")


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(DEFAULT_LOG_LEVEL.upper())
        if not isinstance(level, int):
            fail(f"Invalid SATSUKI_LOG_LEVEL: {DEFAULT_LOG_LEVEL!r}")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def require_file(path: Path, kind: str) -> None:
    """Exit with '<kind> not found!' unless path exists."""
    if not path.exists():
        fail(f"{kind} not found!")


def resolve_arch_mode(mode: Optional[int]) -> int:
    """Get --mode, falling back to SATSUKI_ARCH_MODE."""
    if mode is not None:
        return mode
    try:
        return int(DEFAULT_ARCH_MODE)
    except ValueError:
        fail(f"Invalid SATSUKI_ARCH_MODE: {DEFAULT_ARCH_MODE!r} (expected 32 or 64)")


def resolve_mapping_file(ctx: typer.Context) -> Path:
    """Get the --mapping-file given to the top-level command (or its default)."""
    mapping_file: Optional[Path] = (ctx.obj or {}).get("mapping_file")
    if mapping_file is None and DEFAULT_MAPPING_FILE:
        mapping_file = Path(DEFAULT_MAPPING_FILE)
    if mapping_file is None:
        fail("Mapping not found! Pass --mapping-file or set SATSUKI_MAPPING_FILE")
    return mapping_file


def load_project_mapping(ctx: typer.Context) -> Mapping:
    mapping_file = resolve_mapping_file(ctx)
    require_file(mapping_file, "Mapping")
    try:
        return load_mapping(mapping_file)
    except (SatsukiError, OSError) as e:
        fail(f"Error: {e}")


def parse_object_with_mapping(executable_file: Path, mapping: Mapping) -> Executable:
    """Build an executable from its symbols plus the mapping."""
    require_file(executable_file, "Executable")
    obj = ObjectFile.from_path(executable_file)
    return Executable.from_mapping(obj, mapping)


def parse_object_with_pdb(executable_file: Path, pdb_file: Path, mapping: Mapping) -> Executable:
    """Build an executable from its symbols, its PDB, and the mapping for public symbol sizes."""
    require_file(executable_file, "Executable")
    require_file(pdb_file, "PDB")
    obj = ObjectFile.from_path(executable_file)
    pdb = PdbFile.open(pdb_file)
    return Executable.from_primary_symbols_and_debug_procedures_and_publics(obj, mapping, pdb)
