"""Shared fixtures for satsuki tests.

This module provides builders for small in-memory inputs so that no binary
fixtures need to be checked in:
- build_elf: Minimal ELF32 executable with a .text section and a symbol table
- build_pe: Minimal PE32 image with a single .text section
- build_pdb: Minimal MSF 7.00 PDB with one module and a symbol record stream
- make_object: ObjectFile built directly from a code section and symbols
"""

import struct

import pytest

from satsuki.objfile import CodeSection, ObjectFile, ObjectSymbol, SymbolKind
from satsuki.pdbfile import MSF_MAGIC, S_GPROC32, S_LPROC32, S_PUB32


# =============================================================================
# ELF
# =============================================================================

STT_OBJECT = 1
STT_FUNC = 2
STB_GLOBAL = 1


def build_elf(text_address: int, text: bytes, symbols: list[tuple]) -> bytes:
    """Build an ELF32 i386 executable.

    Args:
        text_address: Load address of .text
        text: Contents of .text
        symbols: (name, value, size, stt_type) tuples, all defined in .text
    """
    shstrtab = b"\x00.text\x00.symtab\x00.strtab\x00.shstrtab\x00"
    name_offsets = {n: shstrtab.index(n.encode() + b"\x00") for n in (".text", ".symtab", ".strtab", ".shstrtab")}

    strtab = b"\x00"
    symtab = b"\x00" * 16
    for name, value, size, stt_type in symbols:
        st_name = len(strtab)
        strtab += name.encode() + b"\x00"
        symtab += struct.pack("<IIIBBH", st_name, value, size, (STB_GLOBAL << 4) | stt_type, 0, 1)

    header_size = 52
    text_offset = header_size
    symtab_offset = text_offset + len(text)
    symtab_offset += (-symtab_offset) % 4
    strtab_offset = symtab_offset + len(symtab)
    shstrtab_offset = strtab_offset + len(strtab)
    shoff = shstrtab_offset + len(shstrtab)
    shoff += (-shoff) % 4

    ident = b"\x7fELF" + bytes([1, 1, 1, 0]) + b"\x00" * 8
    header = ident + struct.pack(
        "<HHIIIIIHHHHHH",
        2,              # ET_EXEC
        3,              # EM_386
        1,
        text_address,
        0,
        shoff,
        0,
        header_size,
        32,
        0,
        40,
        5,
        4,
    )

    def section(name, sh_type, flags, addr, offset, size, link=0, info=0, align=1, entsize=0):
        return struct.pack("<10I", name, sh_type, flags, addr, offset, size, link, info, align, entsize)

    sections = b"".join([
        b"\x00" * 40,
        section(name_offsets[".text"], 1, 6, text_address, text_offset, len(text), align=16),
        section(name_offsets[".symtab"], 2, 0, 0, symtab_offset, len(symtab), link=3, info=1, align=4, entsize=16),
        section(name_offsets[".strtab"], 3, 0, 0, strtab_offset, len(strtab)),
        section(name_offsets[".shstrtab"], 3, 0, 0, shstrtab_offset, len(shstrtab)),
    ])

    image = bytearray(header)
    image += text
    image += b"\x00" * (symtab_offset - len(image))
    image += symtab + strtab + shstrtab
    image += b"\x00" * (shoff - len(image))
    image += sections
    return bytes(image)


# =============================================================================
# PE
# =============================================================================


def build_pe(image_base: int, text: bytes) -> bytes:
    """Build a PE32 image whose only section is .text at RVA 0x1000."""
    file_alignment = 0x200
    raw_size = max(file_alignment, (len(text) + file_alignment - 1) // file_alignment * file_alignment)

    dos = bytearray(b"MZ" + b"\x00" * 0x3E)
    struct.pack_into("<I", dos, 0x3C, 0x40)

    file_header = struct.pack("<HHIIIHH", 0x14C, 1, 0, 0, 0, 224, 0x0102)
    optional = struct.pack(
        "<HBB9I6H4I2H6I",
        0x10B, 14, 0,
        raw_size, 0, 0, 0x1000, 0x1000, 0x2000, image_base, 0x1000, file_alignment,
        6, 0, 0, 0, 6, 0,
        0, 0x2000, 0x200, 0,
        3, 0,
        0x100000, 0x1000, 0x100000, 0x1000, 0, 16,
    ) + b"\x00" * (16 * 8)
    section = struct.pack(
        "<8sIIIIIIHHI",
        b".text", len(text), 0x1000, raw_size, 0x200, 0, 0, 0, 0, 0x60000020,
    )

    headers = bytes(dos) + b"PE\x00\x00" + file_header + optional + section
    headers += b"\x00" * (0x200 - len(headers))
    return headers + text + b"\x00" * (raw_size - len(text))


# =============================================================================
# PDB
# =============================================================================


def _symbol_record(kind: int, body: bytes) -> bytes:
    body += b"\x00" * ((-(len(body) + 4)) % 4)
    return struct.pack("<HH", len(body) + 2, kind) + body


def procedure_record(name: str, offset: int, length: int, kind: int = S_GPROC32) -> bytes:
    body = struct.pack("<8IHB", 0, 0, 0, length, 0, 0, 0, offset, 1, 0) + name.encode() + b"\x00"
    return _symbol_record(kind, body)


def public_record(name: str, offset: int, is_function: bool = True) -> bytes:
    flags = 0x3 if is_function else 0x0
    body = struct.pack("<IIH", flags, offset, 1) + name.encode() + b"\x00"
    return _symbol_record(S_PUB32, body)


def build_msf(streams: list[bytes], block_size: int = 512) -> bytes:
    """Lay streams out in an MSF 7.00 container."""
    blocks = [b"", b"", b""]  # superblock and free block maps
    stream_blocks = []
    for data in streams:
        indices = []
        for pos in range(0, len(data), block_size):
            indices.append(len(blocks))
            blocks.append(data[pos:pos + block_size])
        stream_blocks.append(indices)

    directory = struct.pack("<I", len(streams))
    directory += b"".join(struct.pack("<I", len(data)) for data in streams)
    directory += b"".join(struct.pack(f"<{len(b)}I", *b) for b in stream_blocks)

    directory_blocks = []
    for pos in range(0, len(directory), block_size):
        directory_blocks.append(len(blocks))
        blocks.append(directory[pos:pos + block_size])

    block_map_addr = len(blocks)
    blocks.append(struct.pack(f"<{len(directory_blocks)}I", *directory_blocks))

    blocks[0] = MSF_MAGIC + struct.pack(
        "<6I", block_size, 1, len(blocks), len(directory), 0, block_map_addr
    )
    return b"".join(block.ljust(block_size, b"\x00") for block in blocks)


def build_pdb(
    procedures: list[tuple] = (),
    publics: list[tuple] = (),
    module_name: str = "main.obj",
) -> bytes:
    """Build a PDB with one module.

    Args:
        procedures: (name, offset, length) tuples for the module's S_GPROC32 records
        publics: (name, offset, is_function) tuples for S_PUB32 records
    """
    module_stream = struct.pack("<I", 4) + b"".join(
        procedure_record(name, offset, length) for name, offset, length in procedures
    )
    symbol_records = b"".join(
        public_record(name, offset, is_function) for name, offset, is_function in publics
    )

    mod_info = struct.pack("<I", 0) + b"\x00" * 28
    mod_info += struct.pack("<HHIIIHHIII", 0, 4, len(module_stream), 0, 0, 0, 0, 0, 0, 0)
    mod_info += module_name.encode() + b"\x00" + module_name.encode() + b"\x00"
    mod_info += b"\x00" * ((-len(mod_info)) % 4)

    dbi = struct.pack(
        "<iII6H5iIiiHHI",
        -1, 19990903, 1,
        0xFFFF, 0, 0xFFFF, 0, 5, 0,
        len(mod_info), 0, 0, 0, 0,
        0,
        0, 0,
        0, 0x14C,
        0,
    ) + mod_info

    return build_msf([b"", b"", b"", dbi, module_stream, symbol_records])


# =============================================================================
# Fixtures
# =============================================================================


def make_object(text_address: int, text: bytes, symbols: list[tuple] = ()) -> ObjectFile:
    """ObjectFile from (name, address, size) code symbols."""
    return ObjectFile(
        format="test",
        text=CodeSection(address=text_address, data=text),
        symbol_table=[
            ObjectSymbol(name=name, address=address, size=size, kind=SymbolKind.CODE)
            for name, address, size in symbols
        ],
    )


@pytest.fixture
def elf_builder():
    return build_elf


@pytest.fixture
def pe_builder():
    return build_pe


@pytest.fixture
def pdb_builder():
    return build_pdb


@pytest.fixture
def object_factory():
    return make_object
