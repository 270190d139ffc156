"""Load the user-declared function mapping from TOML."""

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from .errors import MappingFormatError
from .models import Mapping

logger = logging.getLogger(__name__)


def parse_mapping(content: str) -> Mapping:
    """
    Parse mapping TOML content.

    The file lists functions as an array of tables:

        [[function]]
        name = "sub_401000"
        address = 0x401000
        size = 0x2c

    Args:
        content: TOML document

    Returns:
        Validated Mapping

    Raises:
        MappingFormatError: If the TOML is invalid or does not match the schema
    """
    try:
        raw = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise MappingFormatError(f"Invalid mapping TOML: {e}") from e

    try:
        mapping = Mapping.model_validate(raw)
    except ValidationError as e:
        raise MappingFormatError(f"Invalid mapping: {e}") from e

    logger.debug(f"Mapping declares {len(mapping.function)} functions")
    return mapping


def load_mapping(path: Path) -> Mapping:
    """Read and parse a mapping file."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_mapping(f.read())
