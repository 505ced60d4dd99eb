"""
volume-nas type definitions

Common types used across the volume-nas project. Field aliases follow the
Docker volume plugin wire format.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Literal

__all__ = [
    "Volume",
    "Capabilities",
]


class Volume(BaseModel):
    """Volume descriptor"""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="Name", description="Volume name")

    mountpoint: str = Field(
        ...,
        alias="Mountpoint",
        description="Absolute path of the volume directory on the host"
    )


class Capabilities(BaseModel):
    """Capabilities advertised to the daemon"""

    model_config = ConfigDict(populate_by_name=True)

    scope: Literal["global", "local"] = Field(
        default="global",
        alias="Scope",
        description="global: the volume is usable from any node sharing the mount point"
    )
