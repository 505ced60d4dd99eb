"""
Storage module for volume-nas

Track files and per-volume locking.
"""

from .locks import VolumeLockTable
from .track import SENTINEL, TRACK_FILE, TrackFile

__all__ = [
    "VolumeLockTable",
    "TrackFile",
    "TRACK_FILE",
    "SENTINEL",
]
