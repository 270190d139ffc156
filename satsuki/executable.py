"""Build a name-indexed table of functions from symbols, debug info or a mapping."""

import logging
from enum import Enum
from typing import Optional

from .errors import FunctionNameConflict, OutOfBoundsSlice
from .models import Function, Mapping, StatsReport
from .objfile import CodeSection, ObjectFile, SymbolKind
from .pdbfile import PdbFile

logger = logging.getLogger(__name__)


class SymbolSource(str, Enum):
    """Where a function range came from, highest priority first."""

    PRIMARY = "primary"
    DEBUG_PROCEDURE = "debug_procedure"
    PUBLIC = "public"
    MAPPING = "mapping"

    @property
    def is_additive(self) -> bool:
        """Additive sources never override a name that is already known."""
        return self is not SymbolSource.PRIMARY


class Executable:
    """Functions of one executable, keyed by name."""

    def __init__(self):
        self.functions: dict[str, Function] = {}

    def add_function(self, name: str, address: int, data: bytes) -> Function:
        """
        Insert a new function.

        Args:
            name: Function name
            address: Absolute load address
            data: Function bytes (must be non-empty)

        Returns:
            The inserted Function

        Raises:
            FunctionNameConflict: If a function with this name already exists
        """
        if name in self.functions:
            raise FunctionNameConflict(name)

        function = Function(name=name, address=address, data=bytes(data))
        self.functions[name] = function
        return function

    def reconcile(self, source: SymbolSource, name: str, address: int, data: bytes) -> bool:
        """
        Insert a function following the priority rule of its source.

        Primary symbols must be unique. Every other source only fills in
        names that are still missing.

        Returns:
            True if the function was inserted, False if an existing entry was kept
        """
        try:
            self.add_function(name, address, data)
        except FunctionNameConflict:
            if not source.is_additive:
                raise
            logger.debug(f"Keeping existing {name}, ignoring {source.value} duplicate")
            return False
        return True

    def _extract(
        self,
        source: SymbolSource,
        text: CodeSection,
        name: str,
        address: int,
        size: int,
    ) -> bool:
        offset = address - text.address
        if offset < 0 or offset + size > len(text.data):
            raise OutOfBoundsSlice(name, address, size, text.address, len(text.data))
        return self.reconcile(source, name, address, text.data[offset:offset + size])

    def _add_primary_symbols(self, obj: ObjectFile) -> Optional[CodeSection]:
        text = obj.text_section()
        if text is None:
            logger.info("No .text section found, executable has no functions")
            return None

        for sym in obj.symbols():
            if sym.kind != SymbolKind.CODE or sym.size == 0:
                continue
            self._extract(SymbolSource.PRIMARY, text, sym.name, sym.address, sym.size)

        logger.info(f"Found {self.functions_count()} functions in the symbol table")
        return text

    def _add_debug_procedures(self, text: CodeSection, pdb: PdbFile) -> None:
        added = 0
        for module in pdb.modules():
            for proc in module.procedures():
                if proc.length == 0:
                    continue
                address = text.address + proc.offset
                if self._extract(SymbolSource.DEBUG_PROCEDURE, text, proc.name, address, proc.length):
                    added += 1
        logger.info(f"Added {added} functions from PDB procedures")

    def _add_public_symbols(self, text: CodeSection, mapping: Mapping, pdb: PdbFile) -> None:
        added = 0
        for public in pdb.public_symbols():
            if not public.is_function:
                continue
            size = mapping.size_of(public.name)
            if size == 0:
                continue
            address = text.address + public.offset
            if self._extract(SymbolSource.PUBLIC, text, public.name, address, size):
                added += 1
        logger.info(f"Added {added} functions from PDB public symbols")

    def _add_mapping_entries(self, text: CodeSection, mapping: Mapping) -> None:
        added = 0
        for entry in mapping.named_entries():
            if entry.size == 0:
                continue
            if self._extract(SymbolSource.MAPPING, text, entry.name, entry.address, entry.size):
                added += 1
        logger.info(f"Added {added} functions from the mapping")

    @classmethod
    def from_primary_symbols(cls, obj: ObjectFile) -> "Executable":
        """Build from the object file's own sized code symbols."""
        res = cls()
        res._add_primary_symbols(obj)
        return res

    @classmethod
    def from_primary_symbols_and_debug_procedures(
        cls, obj: ObjectFile, pdb: PdbFile
    ) -> "Executable":
        """Build from code symbols, then fill in PDB module procedures."""
        res = cls()
        text = res._add_primary_symbols(obj)
        if text is not None:
            res._add_debug_procedures(text, pdb)
        return res

    @classmethod
    def from_primary_symbols_and_debug_procedures_and_publics(
        cls, obj: ObjectFile, mapping: Mapping, pdb: PdbFile
    ) -> "Executable":
        """Build from code symbols, PDB procedures, then PDB publics sized by the mapping."""
        res = cls()
        text = res._add_primary_symbols(obj)
        if text is not None:
            res._add_debug_procedures(text, pdb)
            res._add_public_symbols(text, mapping, pdb)
        return res

    @classmethod
    def from_mapping(cls, obj: ObjectFile, mapping: Mapping) -> "Executable":
        """Build from code symbols, then fill in the named mapping entries."""
        res = cls()
        text = res._add_primary_symbols(obj)
        if text is not None:
            res._add_mapping_entries(text, mapping)
        return res

    def get_function(self, name: str) -> Optional[Function]:
        return self.functions.get(name)

    def get_function_by_address(self, address: int) -> Optional[Function]:
        """
        Find the function starting at an address.

        This is a linear scan in insertion order. When several names start at
        the same address, which one is returned is unspecified.
        """
        for function in self.functions.values():
            if function.address == address:
                return function
        return None

    def functions_count(self) -> int:
        return len(self.functions)

    def generate_stats(self, other: "Executable") -> dict[str, Optional[float]]:
        """
        Score every function of this executable against the same name in another.

        Args:
            other: The executable to compare against (usually the reimplementation)

        Returns:
            Dictionary mapping each function name to its match percentage, or
            None when the function is missing from `other`
        """
        stats: dict[str, Optional[float]] = {}
        for name, function in self.functions.items():
            counterpart = other.get_function(name)
            stats[name] = (
                function.compute_score(counterpart) if counterpart is not None else None
            )
        return stats

    def generate_report(self, other: "Executable") -> StatsReport:
        """Generate stats against `other` together with the global match."""
        return StatsReport(
            scores=self.generate_stats(other),
            total_functions=self.functions_count(),
        )
