"""
volume-nas: directory-backed volumes for the Docker volume plugin protocol

Each volume is a subdirectory of a configured mount point. A per-volume
track file records the attach requests holding the volume and gates its
removal.
"""

__version__ = "1.0.0"

from volume_nas.config import PluginConfig
from volume_nas.types import Volume, Capabilities
from volume_nas.volumes.manager import VolumeManager
from volume_nas.storage import TrackFile, VolumeLockTable
from volume_nas.naming import is_valid_name, validate_name

from volume_nas.errors import (
    VolumePluginError,
    InvalidNameError,
    PathNotFoundError,
    VolumeNotADirectoryError,
    VolumeNotEmptyError,
    LedgerIOError,
    OwnershipError,
    FilesystemError,
    InvalidRequestError,
)

__all__ = [
    "PluginConfig",
    "Volume",
    "Capabilities",
    "VolumeManager",
    "TrackFile",
    "VolumeLockTable",
    "is_valid_name",
    "validate_name",
    # Exception classes
    "VolumePluginError",
    "InvalidNameError",
    "PathNotFoundError",
    "VolumeNotADirectoryError",
    "VolumeNotEmptyError",
    "LedgerIOError",
    "OwnershipError",
    "FilesystemError",
    "InvalidRequestError",
]
