"""
Plugin protocol API for volume-nas.
"""

from volume_nas.api.rest import create_app, main

__all__ = [
    "create_app",
    "main",
]
