"""
FastAPI server for the Docker volume plugin protocol

Every route is a POST named after the protocol call (``/VolumeDriver.Mount``
and so on). Failures are reported the way the daemon expects them: a non-200
status with the message in ``Err``.
"""

import logging
import os
import socket
import uuid
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from volume_nas import __version__
from volume_nas.config import PluginConfig
from volume_nas.errors import VolumePluginError
from volume_nas.ownership import select_ownership
from volume_nas.types import Capabilities, Volume
from volume_nas.volumes.manager import VolumeManager

logger = logging.getLogger(__name__)

# Name the plugin registers under
PLUGIN_NAME = "volume-nas"

# Media type used by the daemon for plugin calls
PLUGIN_CONTENT_TYPE = "application/vnd.docker.plugins.v1.2+json"

# Mode of the unix socket; only root and its group may call the plugin
SOCKET_MODE = 0o660


class PluginJSONResponse(JSONResponse):
    """JSON response carrying the plugin protocol media type"""
    media_type = PLUGIN_CONTENT_TYPE

# =============================================================================
# Request/Response Models
# =============================================================================


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateRequest(_WireModel):
    """VolumeDriver.Create request"""
    name: str = Field(..., alias="Name", description="Volume name")
    options: Optional[Dict[str, str]] = Field(
        default=None,
        alias="Opts",
        description="Driver options; uid and gid set the directory owner"
    )


class NameRequest(_WireModel):
    """Request carrying only a volume name (Get, Remove, Path)"""
    name: str = Field(..., alias="Name", description="Volume name")


class MountRequest(_WireModel):
    """VolumeDriver.Mount / VolumeDriver.Unmount request"""
    name: str = Field(..., alias="Name", description="Volume name")
    id: str = Field(..., alias="ID", description="Attach request identifier")


class ErrResponse(_WireModel):
    """Response with no payload besides the error"""
    err: str = Field(default="", alias="Err")


class ListResponse(ErrResponse):
    """VolumeDriver.List response"""
    volumes: List[Volume] = Field(default_factory=list, alias="Volumes")


class GetResponse(ErrResponse):
    """VolumeDriver.Get response"""
    volume: Volume = Field(..., alias="Volume")


class MountpointResponse(ErrResponse):
    """VolumeDriver.Path / VolumeDriver.Mount response"""
    mountpoint: str = Field(..., alias="Mountpoint")


class CapabilitiesResponse(_WireModel):
    """VolumeDriver.Capabilities response"""
    capabilities: Capabilities = Field(default_factory=Capabilities, alias="Capabilities")


class ActivateResponse(_WireModel):
    """Plugin.Activate response"""
    implements: List[str] = Field(
        default_factory=lambda: ["VolumeDriver"],
        alias="Implements"
    )


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    config: Optional[PluginConfig] = None,
    manager: Optional[VolumeManager] = None,
) -> FastAPI:
    """
    Create and configure the plugin application.

    Args:
        config: Optional plugin configuration (default: from environment)
        manager: Optional volume manager (default: built from config)

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = PluginConfig.from_env()

    app = FastAPI(
        title="volume-nas",
        version=__version__,
        description="Directory-backed volume plugin",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=PluginJSONResponse,
    )

    app.state.config = config
    if manager is not None:
        app.state.manager = manager

    register_exception_handlers(app)
    register_routes(app)

    logger.info(f"Plugin application created with mount point {config.mount_point}")
    return app


def _err_response(status_code: int, message: str, request: Request) -> JSONResponse:
    response = PluginJSONResponse(status_code=status_code, content={"Err": message})
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers"""

    @app.exception_handler(VolumePluginError)
    async def plugin_error_handler(request: Request, exc: VolumePluginError):
        """Handle VolumePluginError exceptions"""
        logger.error(
            f"{request.url.path} failed: {exc.error_code} - {exc.message}",
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        return _err_response(500, str(exc), request)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies"""
        logger.error(f"{request.url.path} received an invalid request: {exc.errors()}")
        return _err_response(400, f"invalid request: {exc.errors()}", request)

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.error(
            f"Unexpected error in {request.url.path}: {exc}",
            exc_info=True,
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        return _err_response(500, str(exc) or "An unexpected error occurred", request)


def register_routes(app: FastAPI) -> None:
    """Register all plugin protocol routes"""

    def get_manager() -> VolumeManager:
        """Get volume manager instance"""
        if not hasattr(app.state, "manager"):
            config = app.state.config
            app.state.manager = VolumeManager(
                mount_point=config.mount_point,
                ownership=select_ownership(config.ownership),
            )
        return app.state.manager

    def dump(call: str, body: BaseModel) -> None:
        logger.debug(f"{call}: {body.model_dump_json(by_alias=True)}")

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    @app.post("/Plugin.Activate", response_model=ActivateResponse)
    async def activate():
        """Handshake: advertise the VolumeDriver interface"""
        logger.info("Plugin activation requested")
        return ActivateResponse()

    @app.post("/VolumeDriver.Create", response_model=ErrResponse)
    async def create(request: CreateRequest, manager=Depends(get_manager)):
        """Create a volume directory"""
        dump("Create", request)
        await manager.create_volume(request.name, request.options)
        return ErrResponse()

    @app.post("/VolumeDriver.List", response_model=ListResponse)
    async def list_volumes(manager=Depends(get_manager)):
        """List all volumes"""
        volumes = await manager.list_volumes()
        response = ListResponse(volumes=volumes)
        dump("List", response)
        return response

    @app.post("/VolumeDriver.Get", response_model=GetResponse)
    async def get(request: NameRequest, manager=Depends(get_manager)):
        """Inspect a volume"""
        dump("Get", request)
        volume = await manager.get_volume(request.name)
        return GetResponse(volume=volume)

    @app.post("/VolumeDriver.Remove", response_model=ErrResponse)
    async def remove(request: NameRequest, manager=Depends(get_manager)):
        """Remove a volume that is no longer mounted"""
        dump("Remove", request)
        await manager.remove_volume(request.name)
        return ErrResponse()

    @app.post("/VolumeDriver.Path", response_model=MountpointResponse)
    async def path(request: NameRequest, manager=Depends(get_manager)):
        """Host path of a volume"""
        dump("Path", request)
        mountpoint = await manager.volume_path(request.name)
        return MountpointResponse(mountpoint=mountpoint)

    @app.post("/VolumeDriver.Mount", response_model=MountpointResponse)
    async def mount(request: MountRequest, manager=Depends(get_manager)):
        """Record an attach request and return the host path"""
        dump("Mount", request)
        mountpoint = await manager.mount_volume(request.name, request.id)
        return MountpointResponse(mountpoint=mountpoint)

    @app.post("/VolumeDriver.Unmount", response_model=ErrResponse)
    async def unmount(request: MountRequest, manager=Depends(get_manager)):
        """Release an attach request"""
        dump("Unmount", request)
        await manager.unmount_volume(request.name, request.id)
        return ErrResponse()

    @app.post("/VolumeDriver.Capabilities", response_model=CapabilitiesResponse)
    async def capabilities(manager=Depends(get_manager)):
        """Advertise the volume scope"""
        return CapabilitiesResponse(capabilities=manager.capabilities())


# =============================================================================
# Entry Point
# =============================================================================

def root_gid() -> int:
    """Gid of the root group, 0 when it cannot be looked up."""
    try:
        import grp
        return grp.getgrnam("root").gr_gid
    except (ImportError, KeyError):
        return 0


def bind_plugin_socket(path: str, gid: Optional[int] = None) -> socket.socket:
    """
    Bind the plugin unix socket restricted to root and a group.

    A stale socket file at ``path`` is replaced. Ownership is only changed
    when running as root.

    Args:
        path: Socket path
        gid: Group allowed to connect (default: root group)

    Returns:
        Bound socket, ready to be handed to uvicorn
    """
    socket_dir = os.path.dirname(path)
    if socket_dir:
        os.makedirs(socket_dir, exist_ok=True)
    if os.path.exists(path):
        os.unlink(path)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chmod(path, SOCKET_MODE)
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            os.chown(path, 0, root_gid() if gid is None else gid)
    except OSError:
        sock.close()
        raise

    logger.debug(f"Bound plugin socket {path} with mode {oct(SOCKET_MODE)}")
    return sock



def build_config(args) -> PluginConfig:
    """Merge config file, environment and command-line flags."""
    base = PluginConfig.from_file(args.config).model_dump() if args.config else {}
    config = PluginConfig.from_env(base=base)

    overrides = {
        "mount_point": args.sysmp,
        "listen_type": args.type.lower() if args.type else None,
        "port": args.port,
        "socket_path": args.socket,
        "log_file": args.log_file,
        "verbose": True if args.verbose else None,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = PluginConfig(**{**config.model_dump(), **overrides})
    return config


def main(argv: Optional[List[str]] = None):
    """CLI entry point for the volume-nas command."""
    import argparse

    import uvicorn
    from pydantic import ValidationError

    from volume_nas.utils.logger import configure_logging

    parser = argparse.ArgumentParser(
        description="Docker volume plugin backed by directories of a NAS mount",
        prog=PLUGIN_NAME
    )
    parser.add_argument(
        "--sysmp",
        default=None,
        help="System mount point to use as base (default: from VOLUME_NAS_MOUNT_POINT env or /mnt)"
    )
    parser.add_argument(
        "--type",
        default=None,
        type=str.lower,
        choices=["socket", "tcp"],
        help="Listen on a unix 'socket' or on 'tcp' (default: socket)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen to if listening to TCP (default: 8080)"
    )
    parser.add_argument(
        "--socket",
        default=None,
        help=f"Unix socket path (default: /run/docker/plugins/{PLUGIN_NAME}.sock)"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML or JSON configuration file"
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also log to this file"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Print verbose output"
    )

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValidationError as e:
        parser.error(str(e))

    configure_logging(file_path=config.log_file, verbose=config.verbose)
    log_level = "debug" if config.verbose else "info"
    app = create_app(config)

    if config.listen_type == "tcp":
        logger.info(f"Volume plugin listens to {config.host}:{config.port}")
        uvicorn.run(app, host=config.host, port=config.port, log_level=log_level)
    else:
        sock = bind_plugin_socket(config.socket_path)
        logger.info(f"Volume plugin listens to socket {config.socket_path}")
        server = uvicorn.Server(uvicorn.Config(app, log_level=log_level))
        server.run(sockets=[sock])


if __name__ == "__main__":
    main()
