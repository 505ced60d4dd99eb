"""
Volume management exports.
"""

from volume_nas.volumes.manager import VolumeManager

__all__ = [
    "VolumeManager",
]
