"""
Volume management module

Volume lifecycle and mount reference counting. A volume is a directory
directly beneath the mount point; its track file records the attach
requests currently holding it.
"""

import logging
import os
import shutil
import stat
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from ..errors import (
    FilesystemError,
    OwnershipError,
    VolumeNotADirectoryError,
    VolumeNotEmptyError,
    VolumePluginError,
)
from ..naming import is_valid_name, validate_name
from ..ownership import OwnershipApplier, select_ownership
from ..path_utils import check_volume_path, resolve_mount_point, volume_path
from ..storage import TrackFile, VolumeLockTable
from ..types import Capabilities, Volume

logger = logging.getLogger(__name__)

# Mode of freshly created volume directories
VOLUME_DIR_MODE = 0o700


class VolumeManager:
    """
    Manages volume lifecycle: creation, listing, removal, and the
    mount/unmount reference counting that gates removal.

    Operations on the same volume are serialized with a per-path lock;
    operations on different volumes run concurrently.
    """

    def __init__(
        self,
        mount_point: str = "/mnt",
        ownership: Optional[OwnershipApplier] = None,
        track_file: Optional[TrackFile] = None,
    ):
        """
        Initialize the volume manager.

        Args:
            mount_point: Base directory holding the volumes (default: /mnt)
            ownership: Ownership implementation (default: picked for the host)
            track_file: Track file handler (default: ``.track`` files)
        """
        self.mount_point = resolve_mount_point(mount_point)
        self.ownership = ownership or select_ownership("auto")
        self.track_file = track_file or TrackFile()
        self._locks = VolumeLockTable()

    @asynccontextmanager
    async def _volume_operation(self, operation: str, name: str) -> AsyncIterator[str]:
        """Validate the name, hold the volume lock and log failures."""
        try:
            validate_name(name)
            path = volume_path(self.mount_point, name)
            async with self._locks.hold(path):
                yield path
        except VolumePluginError as e:
            logger.error(f"Failed to {operation} volume '{name}': {e}")
            raise

    async def create_volume(
        self,
        name: str,
        options: Optional[Dict[str, str]] = None,
    ) -> Volume:
        """
        Create a volume directory.

        Creating a volume that already exists as a directory succeeds without
        touching it.

        Args:
            name: Volume name
            options: Create options; ``uid`` and ``gid`` set the owner

        Returns:
            Volume descriptor

        Raises:
            InvalidNameError: If the name fails the grammar
            VolumeNotADirectoryError: If a non-directory entry has that name
            OwnershipError: If the owner cannot be changed (directory is kept)
            FilesystemError: If the directory cannot be created
        """
        async with self._volume_operation("create", name) as path:
            try:
                st = os.stat(path)
            except FileNotFoundError:
                st = None
            except OSError as e:
                raise FilesystemError("stat", path, str(e)) from e

            if st is not None:
                if not stat.S_ISDIR(st.st_mode):
                    raise VolumeNotADirectoryError(name, path)
                logger.info(f"Volume '{name}' already exists at {path}")
                self.track_file.ensure(path)
                return Volume(name=name, mountpoint=path)

            logger.info(f"Creating volume directory: {path}")
            try:
                os.mkdir(path, VOLUME_DIR_MODE)
            except OSError as e:
                raise FilesystemError("create", path, str(e)) from e

            uid, gid = self.ownership.owner_ids(options)
            if uid != 0 or gid != 0:
                try:
                    self.ownership.apply(path, uid, gid)
                except OSError as e:
                    raise OwnershipError(path, uid, gid, str(e)) from e

            self.track_file.ensure(path)
            logger.info(f"Volume '{name}' created successfully at {path}")
            return Volume(name=name, mountpoint=path)

    async def list_volumes(self) -> List[Volume]:
        """
        List all volumes.

        Every directory beneath the mount point with a valid name is a volume.
        Missing track files are created on the way; entries whose track file
        cannot be verified are skipped.

        Raises:
            FilesystemError: If the mount point cannot be read
        """
        try:
            with os.scandir(self.mount_point) as it:
                candidates = sorted(
                    entry.name for entry in it
                    if is_valid_name(entry.name) and entry.is_dir()
                )
        except OSError as e:
            logger.error(f"Failed to list volumes in {self.mount_point}: {e}")
            raise FilesystemError("list", self.mount_point, str(e)) from e

        volumes = []
        for name in candidates:
            path = volume_path(self.mount_point, name)
            async with self._locks.hold(path):
                try:
                    self.track_file.ensure(path)
                except VolumePluginError as e:
                    logger.warning(f"Skipping volume '{name}': {e}")
                    continue
            volumes.append(Volume(name=name, mountpoint=path))

        return volumes

    async def get_volume(self, name: str) -> Volume:
        """
        Get a volume descriptor.

        Raises:
            InvalidNameError: If the name fails the grammar
            PathNotFoundError: If the volume does not exist
            VolumeNotADirectoryError: If the name is taken by a non-directory
        """
        async with self._volume_operation("get", name):
            path = check_volume_path(self.mount_point, name)
            self.track_file.ensure(path)
            return Volume(name=name, mountpoint=path)

    async def volume_path(self, name: str) -> str:
        """Get the host path of a volume."""
        async with self._volume_operation("resolve path of", name):
            path = check_volume_path(self.mount_point, name)
            self.track_file.ensure(path)
            return path

    async def remove_volume(self, name: str) -> None:
        """
        Delete a volume and all its data.

        Raises:
            VolumeNotEmptyError: If attach requests still hold the volume
            FilesystemError: If the directory cannot be deleted
        """
        async with self._volume_operation("remove", name):
            path = check_volume_path(self.mount_point, name)
            self.track_file.ensure(path)

            if not self.track_file.is_empty(path):
                attachments = self.track_file.attachments(path)
                raise VolumeNotEmptyError(name, len(attachments))

            logger.info(f"Deleting volume: {path}")
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise FilesystemError("remove", path, str(e)) from e

            logger.info(f"Volume '{name}' deleted successfully")

    async def mount_volume(self, name: str, attach_id: str) -> str:
        """
        Record an attach request and return the volume path.

        Mounting twice with the same identifier records it once.
        """
        async with self._volume_operation("mount", name):
            path = check_volume_path(self.mount_point, name)
            self.track_file.ensure(path)
            if self.track_file.add(path, attach_id):
                logger.info(f"Volume '{name}' mounted for {attach_id}")
            else:
                logger.debug(f"Volume '{name}' already mounted for {attach_id}")
            return path

    async def unmount_volume(self, name: str, attach_id: str) -> bool:
        """
        Release an attach request.

        Releasing an identifier that was never recorded is not an error.

        Returns:
            True if the identifier was tracked
        """
        async with self._volume_operation("unmount", name):
            path = check_volume_path(self.mount_point, name)
            self.track_file.ensure(path)
            removed = self.track_file.remove(path, attach_id)
            if removed:
                logger.info(f"Volume '{name}' unmounted for {attach_id}")
            else:
                logger.info(f"Volume '{name}' was not mounted for {attach_id}")
            return removed

    async def attachments(self, name: str) -> List[str]:
        """Attach identifiers currently holding a volume."""
        async with self._volume_operation("inspect", name):
            path = check_volume_path(self.mount_point, name)
            return self.track_file.attachments(path)

    def capabilities(self) -> Capabilities:
        """Volumes are usable from any node sharing the mount point."""
        return Capabilities(scope="global")

    def cleanup_stale_locks(self) -> int:
        """Drop lock entries no operation references."""
        return self._locks.cleanup_stale_locks()


__all__ = ["VolumeManager", "VOLUME_DIR_MODE"]
