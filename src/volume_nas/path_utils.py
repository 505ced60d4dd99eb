"""
Path utilities for volume-nas.

Normalizes the configured mount point and derives volume paths beneath it.
Volumes live directly under the mount point, one directory per name.
"""

import os
import re
import stat

from volume_nas.errors import (
    FilesystemError,
    InvalidRequestError,
    PathNotFoundError,
    VolumeNotADirectoryError,
)
from volume_nas.naming import validate_name

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def resolve_mount_point(raw: str) -> str:
    """
    Normalize a configured mount point.

    Repeated separators are collapsed and a trailing separator is removed.
    The filesystem root stays ``/``.

    Raises:
        InvalidRequestError: If the mount point is empty.
    """
    if not raw or not raw.strip():
        raise InvalidRequestError(
            field="mount_point",
            value=raw,
            reason="A system mount point must be indicated",
        )

    path = _REPEATED_SEPARATORS.sub("/", raw)
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def volume_path(mount_point: str, name: str) -> str:
    """Join the mount point and a volume name. Does not touch the filesystem."""
    if mount_point == "/":
        return f"/{name}"
    return f"{mount_point}/{name}"


def check_volume_path(mount_point: str, name: str) -> str:
    """
    Validate ``name`` and make sure its volume directory exists.

    Args:
        mount_point: Normalized mount point
        name: Volume name

    Returns:
        The volume path

    Raises:
        InvalidNameError: If the name fails the grammar
        PathNotFoundError: If nothing exists at the volume path
        VolumeNotADirectoryError: If the entry is not a directory
        FilesystemError: If the entry cannot be inspected
    """
    validate_name(name)
    path = volume_path(mount_point, name)

    try:
        st = os.stat(path)
    except FileNotFoundError:
        raise PathNotFoundError(name, path)
    except OSError as e:
        raise FilesystemError("stat", path, str(e)) from e

    if not stat.S_ISDIR(st.st_mode):
        raise VolumeNotADirectoryError(name, path)

    return path


__all__ = ["resolve_mount_point", "volume_path", "check_volume_path"]
