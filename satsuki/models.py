"""Pydantic models for functions, mappings and match reports."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import MatchInvariantError


class Function(BaseModel):
    """A function's machine code as it sits in the code section."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Function name, unique within an executable")
    address: int = Field(ge=0, description="Absolute load address")
    data: bytes = Field(min_length=1, description="Bytes at [address, address + len(data))")

    @property
    def size(self) -> int:
        return len(self.data)

    def compute_score(self, other: "Function") -> float:
        """
        Compute the positional byte match percentage against another function.

        Bytes are compared index by index over the length of this function.
        Positions past the end of `other` never match. Insertions or deletions
        are not realigned.

        Args:
            other: The function to compare against (usually the same name in
                another executable)

        Returns:
            Match percentage between 0.0 and 100.0

        Raises:
            MatchInvariantError: If this function is empty, or if a perfect
                score was computed over functions of different lengths
        """
        n = len(self.data)
        if n == 0:
            raise MatchInvariantError(f"Cannot score empty function {self.name}")

        matching = sum(1 for a, b in zip(self.data, other.data) if a == b)
        score = matching / n * 100.0

        if score == 100.0 and n != len(other.data):
            raise MatchInvariantError(
                f"{self.name} scored 100% against {other.name} but sizes differ "
                f"(0x{n:x} vs 0x{len(other.data):x})"
            )

        return score


class MappingEntry(BaseModel):
    """A user-declared function range."""

    name: Optional[str] = Field(
        default=None,
        description="Function name; unnamed entries are ignored when building executables"
    )
    address: int = Field(ge=0, description="Absolute load address")
    size: int = Field(ge=0, description="Size of the function in bytes")


class Mapping(BaseModel):
    """Function ranges declared in the project's mapping file."""

    function: list[MappingEntry] = Field(
        default_factory=list,
        description="Declared functions, in file order"
    )

    def named_entries(self) -> list[MappingEntry]:
        """Entries that carry a name."""
        return [entry for entry in self.function if entry.name is not None]

    def size_of(self, name: str) -> int:
        """
        Get the declared size of a function.

        Args:
            name: Function name

        Returns:
            The size of the first entry with that name, or 0 if none is declared
        """
        for entry in self.function:
            if entry.name == name:
                return entry.size
        return 0


class StatsReport(BaseModel):
    """Per-function match scores of a reimplementation against the original."""

    scores: dict[str, Optional[float]] = Field(
        default_factory=dict,
        description="Match percentage per original function; None when not reimplemented"
    )
    total_functions: int = Field(
        default=0,
        description="Number of functions in the original executable"
    )

    @property
    def global_match(self) -> float:
        """Overall match percentage. Missing functions count as 0%."""
        if self.total_functions == 0:
            return 0.0
        total = sum(score for score in self.scores.values() if score is not None)
        return total / self.total_functions

    @property
    def missing_functions(self) -> list[str]:
        return sorted(name for name, score in self.scores.items() if score is None)

    def rows(self) -> list[tuple[str, str]]:
        """Report rows as (function name, "<score>%" or "MISSING"), sorted by name."""
        result = []
        for name in sorted(self.scores):
            score = self.scores[name]
            result.append((name, format_percent(score) if score is not None else "MISSING"))
        return result


def format_percent(value: float) -> str:
    """Format a percentage without rounding (e.g. 97.5%, 100%, 99.99995%)."""
    if float(value).is_integer():
        return f"{int(value)}%"
    return f"{value!r}%"
