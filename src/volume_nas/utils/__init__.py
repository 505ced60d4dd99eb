"""
volume-nas utilities

Logging helpers.
"""

from volume_nas.utils.logger import (
    get_logger,
    configure_logging,
    DEFAULT_FORMAT,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "DEFAULT_FORMAT",
]
