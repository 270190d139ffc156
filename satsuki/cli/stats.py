"""Stats and badge commands - measure how much of the original is matched."""

import csv
import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from satsuki.errors import SatsukiError
from satsuki.models import StatsReport, format_percent

from ._common import (
    console,
    fail,
    load_project_mapping,
    parse_object_with_mapping,
    parse_object_with_pdb,
)

BADGE_LABEL = "progress"
BADGE_COLOR = "yellow"


def _build_report(
    ctx: typer.Context,
    original_executable_file: Path,
    reimplementation_executable_file: Path,
    pdb_file: Path,
) -> StatsReport:
    """Compare the reimplementation (located via its PDB) against the original (located via the mapping)."""
    mapping = load_project_mapping(ctx)
    try:
        original = parse_object_with_mapping(original_executable_file, mapping)
        reimplementation = parse_object_with_pdb(reimplementation_executable_file, pdb_file, mapping)
        return original.generate_report(reimplementation)
    except (SatsukiError, OSError) as e:
        fail(f"Error: {e}")


def write_report(report: StatsReport, output_file: Path) -> None:
    """Write report rows as CSV for a .csv path, else as `name: status` lines."""
    with open(output_file, "w", encoding="utf-8", newline="") as f:
        if output_file.suffix == ".csv":
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(["Function name", "Status"])
            writer.writerows(report.rows())
        else:
            for name, status in report.rows():
                f.write(f"{name}: {status}\n")


def badge_payload(report: StatsReport) -> dict:
    """shields.io endpoint badge describing the global match."""
    return {
        "schemaVersion": 1,
        "label": BADGE_LABEL,
        "message": f"{report.global_match:.2f}%",
        "color": BADGE_COLOR,
    }


def stats(
    ctx: typer.Context,
    original_executable_file: Annotated[Path, typer.Argument(help="Original executable file")],
    reimplementation_executable_file: Annotated[Path, typer.Argument(help="Reimplementation executable file")],
    pdb_file: Annotated[Path, typer.Argument(help="PDB file related to the reimplementation executable")],
    output_file: Annotated[
        Optional[Path], typer.Option("--output-file", "-o", help="Write per-function stats here (.csv for CSV)")
    ] = None,
):
    """Report the match percentage of every original function."""
    report = _build_report(ctx, original_executable_file, reimplementation_executable_file, pdb_file)

    if output_file is not None:
        try:
            write_report(report, output_file)
        except OSError as e:
            fail(f"Error: {e}")
        console.print(f"[dim]Wrote {len(report.scores)} entries to {output_file}[/dim]")
    else:
        for name, status in report.rows():
            print(f"{name}: {status}")

    print(f"GLOBAL: {format_percent(report.global_match)}")


def badge(
    ctx: typer.Context,
    original_executable_file: Annotated[Path, typer.Argument(help="Original executable file")],
    reimplementation_executable_file: Annotated[Path, typer.Argument(help="Reimplementation executable file")],
    pdb_file: Annotated[Path, typer.Argument(help="PDB file related to the reimplementation executable")],
    output_file: Annotated[Path, typer.Argument(help="Output file for the badge JSON")],
):
    """Generate a progress badge to be used in README.md."""
    report = _build_report(ctx, original_executable_file, reimplementation_executable_file, pdb_file)

    try:
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(badge_payload(report), f)
            f.write("\n")
    except OSError as e:
        fail(f"Error: {e}")

    console.print(f"[green]Badge written to {output_file}[/green] ({format_percent(report.global_match)})")
