"""Function extraction and byte matching for binary reimplementation projects.

Functions are located in an executable from its symbol table, its PDB or a
user mapping, then compared byte for byte against a rebuilt executable to
track how much of the original has been matched.
"""

from .errors import (
    SatsukiError,
    ContainerFormatError,
    DebugInfoFormatError,
    MappingFormatError,
    DecodeError,
    DecodeAnomaly,
    FunctionNameConflict,
    OutOfBoundsSlice,
    MatchInvariantError,
)
from .models import Function, MappingEntry, Mapping, StatsReport
from .objfile import ObjectFile, CodeSection, ObjectSymbol, SymbolKind, load_object
from .pdbfile import PdbFile, PdbModule, ProcedureSymbol, PublicSymbol
from .mapping import load_mapping, parse_mapping
from .executable import Executable, SymbolSource
from .disassembler import Disassembler

__all__ = [
    # Errors
    "SatsukiError",
    "ContainerFormatError",
    "DebugInfoFormatError",
    "MappingFormatError",
    "DecodeError",
    "DecodeAnomaly",
    "FunctionNameConflict",
    "OutOfBoundsSlice",
    "MatchInvariantError",
    # Models
    "Function",
    "MappingEntry",
    "Mapping",
    "StatsReport",
    # Input adapters
    "ObjectFile",
    "CodeSection",
    "ObjectSymbol",
    "SymbolKind",
    "load_object",
    "PdbFile",
    "PdbModule",
    "ProcedureSymbol",
    "PublicSymbol",
    "load_mapping",
    "parse_mapping",
    # Core
    "Executable",
    "SymbolSource",
    "Disassembler",
]

__version__ = "0.1.0"
