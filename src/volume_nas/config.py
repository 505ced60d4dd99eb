from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional


class PluginConfig(BaseModel):
    """
    Runtime configuration for volume-nas.

    This configuration is loaded from:
    1. Environment variables (VOLUME_NAS_*)
    2. Configuration file (if provided)
    3. Default values (hardcoded)

    Priority: Environment variables > Config file > Defaults
    """

    # Volumes
    mount_point: str = Field(
        default="/mnt",
        min_length=1,
        description="System mount point used as base for all volumes"
    )

    ownership: Literal["auto", "posix", "none"] = Field(
        default="auto",
        description="How uid/gid create options are applied (auto/posix/none)"
    )

    # Listener
    listen_type: Literal["socket", "tcp"] = Field(
        default="socket",
        description="Listen on a unix socket or on TCP"
    )

    socket_path: str = Field(
        default="/run/docker/plugins/volume-nas.sock",
        description="Unix socket path when listen_type=socket"
    )

    host: str = Field(
        default="localhost",
        description="Host to bind to when listen_type=tcp"
    )

    port: int = Field(
        default=8080,
        ge=1000,
        le=65535,
        description="Port to listen to when listen_type=tcp (system ports are refused)"
    )

    # Logging
    verbose: bool = Field(
        default=False,
        description="Print verbose output (debug logging and request dumps)"
    )

    log_file: Optional[str] = Field(
        default=None,
        description="Optional file to log to in addition to stderr"
    )

    @classmethod
    def from_env(cls, base: Optional[Dict[str, Any]] = None) -> "PluginConfig":
        """
        Load configuration from environment variables.

        Environment variables (VOLUME_NAS_*) override defaults:

        - VOLUME_NAS_MOUNT_POINT: Base directory for volumes
        - VOLUME_NAS_OWNERSHIP: auto/posix/none
        - VOLUME_NAS_LISTEN_TYPE: socket/tcp
        - VOLUME_NAS_SOCKET: Unix socket path
        - VOLUME_NAS_HOST: TCP host
        - VOLUME_NAS_PORT: TCP port
        - VOLUME_NAS_VERBOSE: Verbose output (true/false)
        - VOLUME_NAS_LOG_FILE: Log file path

        Values in ``base`` (e.g. loaded from a file) are overridden by the
        environment.
        """
        import os

        kwargs = dict(base or {})

        if "VOLUME_NAS_MOUNT_POINT" in os.environ:
            kwargs["mount_point"] = os.environ["VOLUME_NAS_MOUNT_POINT"]
        if "VOLUME_NAS_OWNERSHIP" in os.environ:
            kwargs["ownership"] = os.environ["VOLUME_NAS_OWNERSHIP"].lower()

        if "VOLUME_NAS_LISTEN_TYPE" in os.environ:
            kwargs["listen_type"] = os.environ["VOLUME_NAS_LISTEN_TYPE"].lower()
        if "VOLUME_NAS_SOCKET" in os.environ:
            kwargs["socket_path"] = os.environ["VOLUME_NAS_SOCKET"]
        if "VOLUME_NAS_HOST" in os.environ:
            kwargs["host"] = os.environ["VOLUME_NAS_HOST"]
        if "VOLUME_NAS_PORT" in os.environ:
            kwargs["port"] = os.environ["VOLUME_NAS_PORT"]

        if "VOLUME_NAS_VERBOSE" in os.environ:
            kwargs["verbose"] = os.environ["VOLUME_NAS_VERBOSE"].lower() == "true"
        if "VOLUME_NAS_LOG_FILE" in os.environ:
            kwargs["log_file"] = os.environ["VOLUME_NAS_LOG_FILE"]

        return cls(**kwargs)

    @classmethod
    def from_file(cls, config_path: str) -> "PluginConfig":
        """
        Load configuration from a YAML or JSON file.

        Supported formats: .yaml, .yml, .json
        """
        import yaml

        with open(config_path, "r") as f:
            if config_path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            elif config_path.endswith(".json"):
                import json
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {config_path}")

        return cls(**(data or {}))
