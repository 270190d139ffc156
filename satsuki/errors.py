"""Exceptions raised while building, comparing and disassembling executables."""


class SatsukiError(Exception):
    """Base exception for every failure surfaced by satsuki."""

    pass


class ContainerFormatError(SatsukiError):
    """The object file (ELF/PE) could not be parsed."""

    pass


class DebugInfoFormatError(SatsukiError):
    """The PDB file is truncated or structurally invalid."""

    pass


class MappingFormatError(SatsukiError):
    """The mapping TOML could not be read or does not match the schema."""

    pass


class DecodeError(SatsukiError):
    """The instruction decoder rejected a byte range."""

    pass


class DecodeAnomaly(DecodeError):
    """A decoded instruction carries mode tags that contradict the decoder mode."""

    def __init__(self, address: int, mnemonic: str, mode: int):
        self.address = address
        self.mnemonic = mnemonic
        self.mode = mode
        super().__init__(
            f"Instruction '{mnemonic}' at 0x{address:x} is tagged for a different "
            f"mode than the {mode}-bit decoder"
        )


class FunctionNameConflict(SatsukiError):
    """A function with the same name is already present in the executable."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Function name conflict: {function_name}")


class OutOfBoundsSlice(SatsukiError):
    """A function range does not fit inside the code section.

    This means the binary, the debug info and the mapping do not describe
    the same build.
    """

    def __init__(
        self,
        function_name: str,
        address: int,
        size: int,
        section_address: int,
        section_size: int,
    ):
        self.function_name = function_name
        self.address = address
        self.size = size
        self.section_address = section_address
        self.section_size = section_size
        super().__init__(
            f"Function {function_name} at 0x{address:x} (size 0x{size:x}) is outside "
            f"the code section [0x{section_address:x}, 0x{section_address + section_size:x})"
        )


class MatchInvariantError(SatsukiError):
    """The matcher produced a result that violates its own invariants."""

    pass
