"""
CLI interface for satsuki.

Commands:
- disassemble: Print a function's instructions
- stats: Per-function match report of a reimplementation against the original
- badge: Write a shields.io progress badge

Usage:
    python -m satsuki.cli <command>
    satsuki --mapping-file mapping.toml <command>
"""

from pathlib import Path
from typing import Annotated, Optional

from dotenv import load_dotenv

# Load .env from the working directory (local defaults like SATSUKI_MAPPING_FILE)
load_dotenv(Path.cwd() / ".env")

import typer

from ._common import configure_logging
from .disassemble import disassemble
from .stats import stats, badge

# Create main app
app = typer.Typer(
    name="satsuki",
    help="Binary comparison helper for decompilation projects",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    mapping_file: Annotated[
        Optional[Path], typer.Option("--mapping-file", help="Mapping TOML file related to the executable")
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
):
    """Binary comparison helper for decompilation projects."""
    configure_logging(verbose)
    ctx.obj = {"mapping_file": mapping_file}


# Register commands
app.command("disassemble")(disassemble)
app.command("stats")(stats)
app.command("badge")(badge)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
