"""
Track file management for volume-nas

Every volume directory carries a ``.track`` file listing the attach
requests that currently hold the volume, one identifier per line. Lines
starting with ``#`` are comments; a sentinel comment is written when the
file is created lazily. A volume may only be removed once the file holds
no identifiers.

Callers must hold the volume's lock (see ``VolumeLockTable``) around every
read-modify-write sequence on the same track file.
"""

import logging
import os
import tempfile
from typing import List

from ..errors import InvalidRequestError, LedgerIOError

logger = logging.getLogger(__name__)

# Name of the track file inside each volume directory
TRACK_FILE = ".track"

# Comment written when a track file is created for an untracked volume
SENTINEL = "#untracked volume"


def _validate_attach_id(attach_id: str) -> None:
    if not isinstance(attach_id, str) or not attach_id:
        raise InvalidRequestError(
            field="ID",
            value=attach_id,
            reason="attach identifier cannot be empty",
        )
    if "\n" in attach_id or "\r" in attach_id:
        raise InvalidRequestError(
            field="ID",
            value=attach_id,
            reason="attach identifier cannot contain line breaks",
        )
    if attach_id.startswith("#"):
        raise InvalidRequestError(
            field="ID",
            value=attach_id,
            reason="attach identifier cannot start with '#'",
        )


class TrackFile:
    """
    Reference ledger stored as a plain-text file in a volume directory.

    Mutations are flushed and fsynced before returning. Rewrites go through a
    temporary file that replaces the track file atomically.
    """

    def __init__(self, file_name: str = TRACK_FILE, sentinel: str = SENTINEL):
        self.file_name = file_name
        self.sentinel = sentinel

    def track_path(self, volume_path: str) -> str:
        """Path of the track file for a volume. Does not touch the filesystem."""
        return os.path.join(volume_path, self.file_name)

    def ensure(self, volume_path: str) -> str:
        """
        Create the track file if it is missing.

        Args:
            volume_path: Volume directory

        Returns:
            Path of the track file

        Raises:
            LedgerIOError: If the file cannot be created
        """
        path = self.track_path(volume_path)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return path
        except OSError as e:
            logger.error(f"Could not create track file {path}: {e}")
            raise LedgerIOError(path, str(e)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.sentinel + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Could not initialize track file {path}: {e}")
            raise LedgerIOError(path, str(e)) from e

        logger.debug(f"Created track file {path}")
        return path

    def _read(self, path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            logger.error(f"Could not read track file {path}: {e}")
            raise LedgerIOError(path, str(e)) from e

    def lines(self, volume_path: str) -> List[str]:
        """All lines of the track file, comments included."""
        path = self.ensure(volume_path)
        return self._read(path).splitlines()

    def attachments(self, volume_path: str) -> List[str]:
        """Attach identifiers currently recorded for a volume."""
        return [
            line for line in self.lines(volume_path)
            if line and not line.startswith("#")
        ]

    def is_empty(self, volume_path: str) -> bool:
        """True when no attach identifier is recorded. Comments are ignored."""
        return not self.attachments(volume_path)

    def add(self, volume_path: str, attach_id: str) -> bool:
        """
        Record an attach identifier.

        Adding an identifier that is already present is a no-op.

        Returns:
            True if the identifier was appended, False if it was present

        Raises:
            InvalidRequestError: If the identifier cannot be stored as a line
            LedgerIOError: If the track file cannot be read or written
        """
        _validate_attach_id(attach_id)
        path = self.ensure(volume_path)
        content = self._read(path)

        if attach_id in content.splitlines():
            logger.debug(f"Attach id {attach_id} already tracked in {path}")
            return False

        prefix = "\n" if content and not content.endswith("\n") else ""
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(f"{prefix}{attach_id}\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Could not add {attach_id} to track file {path}: {e}")
            raise LedgerIOError(path, str(e)) from e

        return True

    def remove(self, volume_path: str, attach_id: str) -> bool:
        """
        Drop every line equal to an attach identifier.

        Returns:
            True if at least one line was removed, False if the identifier
            was not tracked

        Raises:
            InvalidRequestError: If the identifier cannot be stored as a line
            LedgerIOError: If the track file cannot be read or rewritten
        """
        _validate_attach_id(attach_id)
        path = self.ensure(volume_path)
        lines = self._read(path).splitlines()
        kept = [line for line in lines if line != attach_id]

        if len(kept) == len(lines):
            return False

        self._rewrite(path, kept)
        return True

    def _rewrite(self, path: str, lines: List[str]) -> None:
        directory = os.path.dirname(path)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=self.file_name + ".", dir=directory)
        except OSError as e:
            logger.error(f"Could not rewrite track file {path}: {e}")
            raise LedgerIOError(path, str(e)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("".join(line + "\n" for line in lines))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Could not rewrite track file {path}: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise LedgerIOError(path, str(e)) from e


__all__ = ["TRACK_FILE", "SENTINEL", "TrackFile"]
