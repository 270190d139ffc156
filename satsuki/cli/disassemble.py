"""Disassemble command - print a single function's instructions."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from satsuki.disassembler import Disassembler
from satsuki.errors import SatsukiError

from ._common import (
    fail,
    load_project_mapping,
    parse_object_with_mapping,
    parse_object_with_pdb,
    resolve_arch_mode,
)


def disassemble(
    ctx: typer.Context,
    executable_file: Annotated[Path, typer.Argument(help="Executable file to disassemble")],
    function_name: Annotated[str, typer.Argument(help="Name of the function to disassemble")],
    pdb_file: Annotated[
        Optional[Path], typer.Option("--pdb-file", help="PDB file related to the executable")
    ] = None,
    force_address_zero: Annotated[
        bool, typer.Option("--force-address-zero", help="Disassemble as if the function was loaded at address 0")
    ] = False,
    att: Annotated[
        bool, typer.Option("--att", help="Use AT&T syntax when printing assembly")
    ] = False,
    resolve_names: Annotated[
        bool, typer.Option("--resolve-names", help="Replace relative call targets with function names")
    ] = False,
    mode: Annotated[
        Optional[int], typer.Option("--mode", help="x86 mode of the code: 32 or 64 (env: SATSUKI_ARCH_MODE, default 32)")
    ] = None,
):
    """Disassemble a function by name.

    Without --pdb-file, functions are located from the executable's symbols
    and the mapping file.
    """
    mapping = load_project_mapping(ctx)

    try:
        disassembler = Disassembler(mode=resolve_arch_mode(mode), syntax="att" if att else "intel")
    except ValueError as e:
        fail(f"Error: {e}")

    try:
        if pdb_file is not None:
            executable = parse_object_with_pdb(executable_file, pdb_file, mapping)
        else:
            executable = parse_object_with_mapping(executable_file, mapping)

        function = executable.get_function(function_name)
        if function is None:
            fail(f"Function {function_name} not found in executable!")

        listing = disassembler.disassemble(
            function,
            executable,
            force_address_zero=force_address_zero,
            resolve_names=resolve_names,
        )
    except (SatsukiError, OSError) as e:
        fail(f"Error: {e}")

    print(listing, end="")
