"""Read the code section and symbols of an ELF or PE executable."""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

import pefile
from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from .errors import ContainerFormatError

logger = logging.getLogger(__name__)

TEXT_SECTION_NAME = ".text"


class SymbolKind(str, Enum):
    """Coarse symbol classification; only code symbols describe functions."""

    CODE = "code"
    OTHER = "other"


@dataclass(frozen=True)
class CodeSection:
    """The executable's code section as loaded in memory."""

    address: int
    data: bytes

    @property
    def end(self) -> int:
        return self.address + len(self.data)


@dataclass(frozen=True)
class ObjectSymbol:
    """A symbol from the object file's own symbol table."""

    name: str
    address: int
    size: int
    kind: SymbolKind


@dataclass
class ObjectFile:
    """Parsed view of an executable: its code section and its symbols."""

    format: str
    text: Optional[CodeSection] = None
    symbol_table: list[ObjectSymbol] = field(default_factory=list)

    def text_section(self) -> Optional[CodeSection]:
        """The `.text` section, or None when the file has none."""
        return self.text

    def symbols(self) -> Iterator[ObjectSymbol]:
        return iter(self.symbol_table)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ObjectFile":
        return load_object(data)

    @classmethod
    def from_path(cls, path: Path) -> "ObjectFile":
        with open(path, "rb") as f:
            return load_object(f.read())


def load_object(data: bytes) -> ObjectFile:
    """
    Parse an executable image.

    Args:
        data: Raw file contents

    Returns:
        ObjectFile with the `.text` section and symbol table

    Raises:
        ContainerFormatError: If the format is unknown or the file is malformed
    """
    if data[:4] == b"\x7fELF":
        return _load_elf(data)
    if data[:2] == b"MZ":
        return _load_pe(data)
    raise ContainerFormatError("Unrecognized object file format (expected ELF or PE)")


def _load_elf(data: bytes) -> ObjectFile:
    try:
        elf = ELFFile(io.BytesIO(data))

        text = None
        text_sec = elf.get_section_by_name(TEXT_SECTION_NAME)
        if text_sec is not None:
            text = CodeSection(address=text_sec["sh_addr"], data=text_sec.data())

        symbols = []
        symtab = elf.get_section_by_name(".symtab")
        if isinstance(symtab, SymbolTableSection):
            for sym in symtab.iter_symbols():
                if not sym.name:
                    continue
                kind = SymbolKind.CODE if sym["st_info"]["type"] == "STT_FUNC" else SymbolKind.OTHER
                symbols.append(ObjectSymbol(
                    name=sym.name,
                    address=sym["st_value"],
                    size=sym["st_size"],
                    kind=kind,
                ))
    except ELFError as e:
        raise ContainerFormatError(f"Malformed ELF file: {e}") from e

    logger.debug(f"Loaded ELF image with {len(symbols)} symbols")
    return ObjectFile(format="elf", text=text, symbol_table=symbols)


def _load_pe(data: bytes) -> ObjectFile:
    try:
        pe = pefile.PE(data=data, fast_load=True)
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_EXPORT"]]
        )
    except pefile.PEFormatError as e:
        raise ContainerFormatError(f"Malformed PE file: {e}") from e

    image_base = pe.OPTIONAL_HEADER.ImageBase

    text = None
    for section in pe.sections:
        if section.Name.rstrip(b"\x00").decode("ascii", "replace") == TEXT_SECTION_NAME:
            text = CodeSection(
                address=image_base + section.VirtualAddress,
                data=section.get_data(),
            )
            break

    # Exports carry no size, so they never seed functions on their own.
    symbols = []
    export_dir = getattr(pe, "DIRECTORY_ENTRY_EXPORT", None)
    if export_dir is not None:
        for export in export_dir.symbols:
            if export.name is None:
                continue
            address = image_base + export.address
            in_text = text is not None and text.address <= address < text.end
            symbols.append(ObjectSymbol(
                name=export.name.decode("utf-8", "replace"),
                address=address,
                size=0,
                kind=SymbolKind.CODE if in_text else SymbolKind.OTHER,
            ))

    logger.debug(f"Loaded PE image at 0x{image_base:x} with {len(symbols)} exports")
    return ObjectFile(format="pe", text=text, symbol_table=symbols)
