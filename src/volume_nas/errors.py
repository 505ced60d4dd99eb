"""
volume-nas error definitions

Standard exceptions used across the volume-nas project.
"""

from typing import Optional, Dict, Any


class VolumePluginError(Exception):
    """Base exception for all volume plugin errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "UNKNOWN"
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class InvalidNameError(VolumePluginError):
    """Volume name does not match the name grammar"""

    def __init__(self, name: Any):
        super().__init__(
            message=f"Invalid volume name '{name}'",
            error_code="INVALID_NAME",
            details={"name": name}
        )
        self.name = name


class PathNotFoundError(VolumePluginError):
    """Volume directory does not exist"""

    def __init__(self, name: str, path: str):
        super().__init__(
            message=f"Volume '{name}' not found at {path}",
            error_code="PATH_NOT_FOUND",
            details={"name": name, "path": path}
        )
        self.name = name
        self.path = path


class VolumeNotADirectoryError(VolumePluginError):
    """Volume name collides with a non-directory entry"""

    def __init__(self, name: str, path: str):
        super().__init__(
            message=f"Volume '{name}' path {path} is not a directory",
            error_code="NOT_A_DIRECTORY",
            details={"name": name, "path": path}
        )
        self.name = name
        self.path = path


class VolumeNotEmptyError(VolumePluginError):
    """Volume still has outstanding attachments"""

    def __init__(self, name: str, attachments: int):
        super().__init__(
            message=f"Volume '{name}' is still mounted by {attachments} attachment(s)",
            error_code="VOLUME_NOT_EMPTY",
            details={"name": name, "attachments": attachments}
        )
        self.name = name
        self.attachments = attachments


class LedgerIOError(VolumePluginError):
    """Track file could not be read, written or synced"""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Track file {path} failed: {reason}",
            error_code="LEDGER_IO",
            details={"path": path, "reason": reason}
        )
        self.path = path
        self.reason = reason


class OwnershipError(VolumePluginError):
    """Changing the owner of a freshly created volume failed"""

    def __init__(self, path: str, uid: int, gid: int, reason: str):
        super().__init__(
            message=f"Could not change owner of {path} to {uid}:{gid}: {reason}",
            error_code="OWNERSHIP",
            details={"path": path, "uid": uid, "gid": gid, "reason": reason}
        )
        self.path = path
        self.uid = uid
        self.gid = gid
        self.reason = reason


class FilesystemError(VolumePluginError):
    """Generic stat/mkdir/rmtree failure"""

    def __init__(self, operation: str, path: str, reason: str):
        super().__init__(
            message=f"Could not {operation} {path}: {reason}",
            error_code="FS_ERROR",
            details={"operation": operation, "path": path, "reason": reason}
        )
        self.operation = operation
        self.path = path
        self.reason = reason


class InvalidRequestError(VolumePluginError):
    """Invalid request parameters"""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid field '{field}': {reason}",
            error_code="INVALID_REQUEST"
        )
        self.field = field
        self.value = value
        self.reason = reason

