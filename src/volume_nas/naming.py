"""
Volume name validation.

A volume name is at least two characters drawn from letters, digits,
``-``, ``_`` and ``.``, and must not start with a dot.
"""

import re
from typing import Any

from volume_nas.errors import InvalidNameError

NAME_PATTERN = re.compile(r"[A-Za-z0-9\-_][A-Za-z0-9\-_.]+")


def is_valid_name(name: Any) -> bool:
    """Return True when ``name`` matches the volume name grammar."""
    if not isinstance(name, str):
        return False
    return NAME_PATTERN.fullmatch(name) is not None


def validate_name(name: Any) -> None:
    """
    Raise if ``name`` is not a valid volume name.

    Raises:
        InvalidNameError: If the name fails the grammar.
    """
    if not is_valid_name(name):
        raise InvalidNameError(name)


__all__ = ["NAME_PATTERN", "is_valid_name", "validate_name"]
