"""
Ownership assignment for freshly created volumes.

The uid/gid come from the ``uid``/``gid`` create options. Applying them is
delegated to an ``OwnershipApplier`` so hosts without POSIX ownership get a
no-op implementation instead of inline platform checks.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Tuple

from volume_nas.errors import InvalidRequestError

logger = logging.getLogger(__name__)

OWNERSHIP_MODES = ("auto", "posix", "none")


def parse_id(value: Optional[str]) -> int:
    """
    Parse a uid or gid option.

    Returns the integer on success; anything that is not a non-negative
    decimal integer defaults to 0.
    """
    if value is None:
        return 0
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        logger.warning(f"uid or gid option must be a non-negative integer, got '{value}'. Defaulting to 0")
        return 0
    return int(text, 10)


def ids_from_options(options: Optional[Mapping[str, str]]) -> Tuple[int, int]:
    """Read ``(uid, gid)`` from create options, defaulting to ``(0, 0)``."""
    options = options or {}
    return parse_id(options.get("uid")), parse_id(options.get("gid"))


class OwnershipApplier(ABC):
    """Capability that changes the owner of a volume directory"""

    supported: bool = False

    def owner_ids(self, options: Optional[Mapping[str, str]]) -> Tuple[int, int]:
        """Owner ids to apply for the given create options."""
        return ids_from_options(options)

    @abstractmethod
    def apply(self, path: str, uid: int, gid: int) -> None:
        """Change the owner of ``path``. Raises ``OSError`` on failure."""
        pass


class PosixOwnership(OwnershipApplier):
    """Ownership through ``os.chown``"""

    supported = True

    def apply(self, path: str, uid: int, gid: int) -> None:
        os.chown(path, uid, gid)
        logger.debug(f"Changed owner of {path} to {uid}:{gid}")


class NoopOwnership(OwnershipApplier):
    """Stub for hosts without POSIX ownership; volumes stay owned by 0:0"""

    supported = False

    def owner_ids(self, options: Optional[Mapping[str, str]]) -> Tuple[int, int]:
        if options and ("uid" in options or "gid" in options):
            logger.info("Setting uid or gid is not supported on this host. Defaulting to 0")
        return 0, 0

    def apply(self, path: str, uid: int, gid: int) -> None:
        pass


def select_ownership(mode: str = "auto") -> OwnershipApplier:
    """
    Pick the ownership implementation for a configuration mode.

    Args:
        mode: ``auto`` (POSIX when the host supports it), ``posix`` or ``none``

    Returns:
        OwnershipApplier instance
    """
    if mode == "auto":
        mode = "posix" if hasattr(os, "chown") else "none"

    if mode == "posix":
        return PosixOwnership()
    if mode == "none":
        return NoopOwnership()

    raise InvalidRequestError(
        field="ownership",
        value=mode,
        reason=f"must be one of {', '.join(OWNERSHIP_MODES)}",
    )


__all__ = [
    "OWNERSHIP_MODES",
    "parse_id",
    "ids_from_options",
    "OwnershipApplier",
    "PosixOwnership",
    "NoopOwnership",
    "select_ownership",
]
