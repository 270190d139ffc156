"""Disassemble functions with capstone, optionally naming call targets."""

import logging
from typing import Optional

import capstone
from capstone import x86_const

from .errors import DecodeAnomaly, DecodeError
from .executable import Executable
from .models import Function

logger = logging.getLogger(__name__)

SYNTAXES = ("intel", "att")
MODES = (32, 64)


class Disassembler:
    """x86 disassembler producing one `<mnemonic> <operands>` line per instruction."""

    def __init__(self, mode: int = 32, syntax: str = "intel"):
        """
        Initialize the disassembler.

        Args:
            mode: Address size of the code, 32 or 64
            syntax: Operand syntax, "intel" or "att"
        """
        if mode not in MODES:
            raise ValueError(f"Unsupported x86 mode: {mode}")
        if syntax not in SYNTAXES:
            raise ValueError(f"Unsupported syntax: {syntax}")

        self.mode = mode
        self.syntax = syntax
        self._address_mask = (1 << mode) - 1

        try:
            self._cs = capstone.Cs(
                capstone.CS_ARCH_X86,
                capstone.CS_MODE_64 if mode == 64 else capstone.CS_MODE_32,
            )
            if syntax == "att":
                self._cs.syntax = capstone.CS_OPT_SYNTAX_ATT
            self._cs.detail = True
        except capstone.CsError as e:
            raise DecodeError(f"Cannot create capstone context: {e}") from e

    def disassemble(
        self,
        function: Function,
        executable: Executable,
        force_address_zero: bool = False,
        resolve_names: bool = False,
    ) -> str:
        """
        Disassemble a function.

        Args:
            function: Function to disassemble
            executable: Executable used to look up call targets by address
            force_address_zero: Decode as if the function was loaded at 0
            resolve_names: Replace relative call operands with the callee name

        Returns:
            The listing, one newline-terminated line per instruction

        Raises:
            DecodeError: If capstone fails on the byte range
        """
        base = 0 if force_address_zero else function.address
        lines = []

        try:
            for insn in self._cs.disasm(function.data, base):
                if not insn.mnemonic:
                    continue

                operands = insn.op_str
                if resolve_names:
                    callee = self._resolve_call(insn, function, executable, force_address_zero)
                    if callee is not None:
                        operands = callee.name

                lines.append(f"{insn.mnemonic} {operands}\n")
        except capstone.CsError as e:
            raise DecodeError(f"Failed to disassemble {function.name}: {e}") from e

        return "".join(lines)

    def _resolve_call(
        self,
        insn,
        function: Function,
        executable: Executable,
        force_address_zero: bool,
    ) -> Optional[Function]:
        groups = insn.groups
        if capstone.CS_GRP_CALL not in groups or capstone.CS_GRP_BRANCH_RELATIVE not in groups:
            return None

        operands = insn.operands
        if len(operands) != 1 or operands[0].type != x86_const.X86_OP_IMM:
            return None

        self._check_mode_tags(insn, groups)

        imm = operands[0].imm
        if force_address_zero:
            # Decoded at 0, so the immediate is relative to the real start.
            target = (function.address + imm) & self._address_mask
        else:
            target = imm & self._address_mask

        callee = executable.get_function_by_address(target)
        if callee is None:
            logger.debug(f"No function at call target 0x{target:x} in {function.name}")
        return callee

    def _check_mode_tags(self, insn, groups) -> None:
        tagged_64 = x86_const.X86_GRP_MODE64 in groups
        tagged_not_64 = x86_const.X86_GRP_NOT64BITMODE in groups
        if tagged_64 and tagged_not_64:
            raise DecodeAnomaly(insn.address, insn.mnemonic, self.mode)
        if (self.mode == 64 and tagged_not_64) or (self.mode == 32 and tagged_64):
            raise DecodeAnomaly(insn.address, insn.mnemonic, self.mode)
