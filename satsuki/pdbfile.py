"""Read procedure and public symbols out of an MSVC program database (PDB).

Only the parts needed to locate functions are decoded:

- the MSF 7.00 container (superblock, stream directory, stream block lists)
- the DBI stream header and its module info substream
- each module's symbol substream (S_GPROC32 / S_LPROC32 and their _ID forms)
- the global symbol record stream (S_PUB32)
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import DebugInfoFormatError

logger = logging.getLogger(__name__)

MSF_MAGIC = b"Microsoft C/C++ MSF 7.00\r\n\x1aDS\x00\x00\x00"
NIL_STREAM_SIZE = 0xFFFFFFFF
NIL_STREAM_INDEX = 0xFFFF

DBI_STREAM = 3

SUPERBLOCK = struct.Struct("<6I")
DBI_HEADER = struct.Struct("<iII6H5iIiiHHI")
MODULE_INFO = struct.Struct("<I28sHHIIIHHIII")
RECORD_HEADER = struct.Struct("<HH")
PROC_SYM = struct.Struct("<8IHB")
PUB_SYM = struct.Struct("<IIH")

# CodeView symbol record kinds
S_PUB32 = 0x110E
S_LPROC32 = 0x110F
S_GPROC32 = 0x1110
S_LPROC32_ID = 0x1146
S_GPROC32_ID = 0x1147
PROCEDURE_KINDS = frozenset({S_LPROC32, S_GPROC32, S_LPROC32_ID, S_GPROC32_ID})

CV_SIGNATURE_C13 = 4
CVPSF_FUNCTION = 0x2


@dataclass(frozen=True)
class ProcedureSymbol:
    """A procedure from a module's debug symbols."""

    name: str
    offset: int  # relative to the start of its section
    length: int


@dataclass(frozen=True)
class PublicSymbol:
    """An entry of the global public symbol table."""

    name: str
    offset: int
    is_function: bool


def _read_cstring(buf: bytes, pos: int) -> tuple[str, int]:
    end = buf.find(b"\x00", pos)
    if end == -1:
        raise DebugInfoFormatError(f"Unterminated string at offset 0x{pos:x}")
    return buf[pos:end].decode("utf-8", "replace"), end + 1


def _iter_records(buf: bytes, start: int, end: int) -> Iterator[tuple[int, bytes]]:
    """Yield (kind, body) for each CodeView symbol record in buf[start:end]."""
    pos = start
    while pos + RECORD_HEADER.size <= end:
        length, kind = RECORD_HEADER.unpack_from(buf, pos)
        if length < 2:
            raise DebugInfoFormatError(f"Invalid symbol record length {length} at 0x{pos:x}")
        record_end = pos + 2 + length
        if record_end > end:
            raise DebugInfoFormatError(f"Symbol record at 0x{pos:x} overruns its stream")
        yield kind, buf[pos + RECORD_HEADER.size:record_end]
        pos = record_end


class PdbModule:
    """A compiland listed in the DBI stream."""

    def __init__(self, pdb: "PdbFile", name: str, object_name: str, stream: int, symbols_size: int):
        self.pdb = pdb
        self.name = name
        self.object_name = object_name
        self.stream = stream
        self.symbols_size = symbols_size

    def procedures(self) -> Iterator[ProcedureSymbol]:
        """Iterate the procedure symbols defined by this module."""
        if self.stream == NIL_STREAM_INDEX or self.symbols_size == 0:
            return

        data = self.pdb.read_stream(self.stream)
        if len(data) < self.symbols_size:
            raise DebugInfoFormatError(
                f"Module {self.name} symbol stream is shorter than declared"
            )
        (signature,) = struct.unpack_from("<I", data, 0)
        if signature != CV_SIGNATURE_C13:
            raise DebugInfoFormatError(
                f"Module {self.name} has unsupported symbol signature {signature}"
            )

        for kind, body in _iter_records(data, 4, self.symbols_size):
            if kind not in PROCEDURE_KINDS:
                continue
            try:
                fields = PROC_SYM.unpack_from(body, 0)
            except struct.error as e:
                raise DebugInfoFormatError(f"Truncated procedure record in {self.name}") from e
            name, _ = _read_cstring(body, PROC_SYM.size)
            yield ProcedureSymbol(name=name, offset=fields[7], length=fields[3])

    def __repr__(self) -> str:
        return f"PdbModule({self.name!r}, stream={self.stream})"


class PdbFile:
    """Random access to the streams of a PDB file."""

    def __init__(self, data: bytes):
        self.data = data
        self._streams = self._read_directory()
        self._dbi_header = None

    @classmethod
    def open(cls, path: Path) -> "PdbFile":
        with open(path, "rb") as f:
            return cls(f.read())

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    def _read_directory(self) -> list[tuple[int, list[int]]]:
        if not self.data.startswith(MSF_MAGIC):
            raise DebugInfoFormatError("Not a PDB file (bad MSF magic)")
        try:
            (
                block_size,
                _free_block_map,
                num_blocks,
                directory_size,
                _unknown,
                block_map_addr,
            ) = SUPERBLOCK.unpack_from(self.data, len(MSF_MAGIC))
        except struct.error as e:
            raise DebugInfoFormatError("Truncated MSF superblock") from e

        if block_size == 0 or block_size % 512 != 0:
            raise DebugInfoFormatError(f"Invalid MSF block size {block_size}")
        self.block_size = block_size
        self.num_blocks = num_blocks

        directory_blocks = self._block_count(directory_size)
        block_map = self._read_block(block_map_addr)
        try:
            indices = struct.unpack_from(f"<{directory_blocks}I", block_map, 0)
        except struct.error as e:
            raise DebugInfoFormatError("Stream directory block map overflows its block") from e
        directory = b"".join(self._read_block(i) for i in indices)[:directory_size]

        try:
            (count,) = struct.unpack_from("<I", directory, 0)
            sizes = struct.unpack_from(f"<{count}I", directory, 4)
            pos = 4 + 4 * count
            streams = []
            for size in sizes:
                if size == NIL_STREAM_SIZE:
                    size = 0
                n = self._block_count(size)
                blocks = list(struct.unpack_from(f"<{n}I", directory, pos))
                pos += 4 * n
                streams.append((size, blocks))
        except struct.error as e:
            raise DebugInfoFormatError("Truncated MSF stream directory") from e

        logger.debug(f"PDB has {len(streams)} streams with block size {block_size}")
        return streams

    def _block_count(self, size: int) -> int:
        return (size + self.block_size - 1) // self.block_size

    def _read_block(self, index: int) -> bytes:
        start = index * self.block_size
        end = start + self.block_size
        if index >= self.num_blocks or end > len(self.data):
            raise DebugInfoFormatError(f"MSF block {index} is outside the file")
        return self.data[start:end]

    def read_stream(self, index: int) -> bytes:
        """
        Read a whole stream.

        Args:
            index: Stream number

        Returns:
            The stream contents

        Raises:
            DebugInfoFormatError: If the stream does not exist or is truncated
        """
        if index >= len(self._streams):
            raise DebugInfoFormatError(f"Stream {index} does not exist")
        size, blocks = self._streams[index]
        return b"".join(self._read_block(b) for b in blocks)[:size]

    def _dbi(self) -> tuple[bytes, tuple]:
        dbi = self.read_stream(DBI_STREAM)
        if self._dbi_header is None:
            try:
                self._dbi_header = DBI_HEADER.unpack_from(dbi, 0)
            except struct.error as e:
                raise DebugInfoFormatError("Truncated DBI stream header") from e
        return dbi, self._dbi_header

    def modules(self) -> Iterator[PdbModule]:
        """Iterate the modules listed in the DBI stream."""
        dbi, header = self._dbi()
        mod_info_size = header[9]
        pos = DBI_HEADER.size
        end = pos + mod_info_size
        if end > len(dbi):
            raise DebugInfoFormatError("DBI module info substream overruns the stream")

        while pos < end:
            try:
                fields = MODULE_INFO.unpack_from(dbi, pos)
            except struct.error as e:
                raise DebugInfoFormatError("Truncated DBI module info entry") from e
            name, pos = _read_cstring(dbi, pos + MODULE_INFO.size)
            object_name, pos = _read_cstring(dbi, pos)
            pos = (pos + 3) & ~3
            yield PdbModule(
                self,
                name=name,
                object_name=object_name,
                stream=fields[3],
                symbols_size=fields[4],
            )

    def public_symbols(self) -> Iterator[PublicSymbol]:
        """Iterate the S_PUB32 records of the global symbol record stream."""
        _, header = self._dbi()
        sym_record_stream = header[7]
        if sym_record_stream == NIL_STREAM_INDEX:
            return

        data = self.read_stream(sym_record_stream)
        for kind, body in _iter_records(data, 0, len(data)):
            if kind != S_PUB32:
                continue
            try:
                flags, offset, _segment = PUB_SYM.unpack_from(body, 0)
            except struct.error as e:
                raise DebugInfoFormatError("Truncated public symbol record") from e
            name, _ = _read_cstring(body, PUB_SYM.size)
            yield PublicSymbol(
                name=name,
                offset=offset,
                is_function=bool(flags & CVPSF_FUNCTION),
            )
