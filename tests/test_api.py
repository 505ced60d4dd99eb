"""
Unit tests for the plugin protocol API.

Drives the FastAPI app with the request bodies the daemon sends.
"""

import os
import stat
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from volume_nas.api.rest import (
    PLUGIN_CONTENT_TYPE,
    SOCKET_MODE,
    CreateRequest,
    MountRequest,
    bind_plugin_socket,
    build_config,
    create_app,
    main,
)
from volume_nas.storage.track import TRACK_FILE

pytestmark = pytest.mark.api


@pytest.fixture
def client(plugin_config) -> TestClient:
    return TestClient(create_app(plugin_config))


class TestAPIInit:
    """Tests for API initialization."""

    def test_app_has_protocol_routes(self, plugin_config):
        app = create_app(plugin_config)

        routes = [r.path for r in app.routes]
        for route in [
            "/Plugin.Activate",
            "/VolumeDriver.Create",
            "/VolumeDriver.List",
            "/VolumeDriver.Get",
            "/VolumeDriver.Remove",
            "/VolumeDriver.Path",
            "/VolumeDriver.Mount",
            "/VolumeDriver.Unmount",
            "/VolumeDriver.Capabilities",
        ]:
            assert route in routes

    def test_activate(self, client):
        response = client.post("/Plugin.Activate")

        assert response.status_code == 200
        assert response.json() == {"Implements": ["VolumeDriver"]}

    def test_capabilities(self, client):
        response = client.post("/VolumeDriver.Capabilities")

        assert response.json() == {"Capabilities": {"Scope": "global"}}


class TestRequestModels:
    """Tests for wire request models."""

    def test_create_request_aliases(self):
        request = CreateRequest.model_validate({"Name": "vol-1", "Opts": {"uid": "1000"}})

        assert request.name == "vol-1"
        assert request.options == {"uid": "1000"}

    def test_create_request_null_opts(self):
        request = CreateRequest.model_validate({"Name": "vol-1", "Opts": None})

        assert request.options is None

    def test_mount_request_aliases(self):
        request = MountRequest.model_validate({"Name": "vol-1", "ID": "abc"})

        assert request.id == "abc"


class TestVolumeLifecycle:
    """End-to-end protocol calls."""

    def test_create_get_path(self, client, mount_point):
        response = client.post("/VolumeDriver.Create", json={"Name": "vol-1", "Opts": {}})
        assert response.status_code == 200
        assert response.json() == {"Err": ""}

        response = client.post("/VolumeDriver.Get", json={"Name": "vol-1"})
        assert response.json() == {
            "Volume": {"Name": "vol-1", "Mountpoint": f"{mount_point}/vol-1"},
            "Err": "",
        }

        response = client.post("/VolumeDriver.Path", json={"Name": "vol-1"})
        assert response.json()["Mountpoint"] == f"{mount_point}/vol-1"

    def test_list(self, client, mount_point):
        client.post("/VolumeDriver.Create", json={"Name": "vol-b"})
        client.post("/VolumeDriver.Create", json={"Name": "vol-a"})
        (mount_point / "stray.txt").write_text("")

        response = client.post("/VolumeDriver.List")

        assert response.status_code == 200
        assert [v["Name"] for v in response.json()["Volumes"]] == ["vol-a", "vol-b"]

    def test_mount_unmount_remove(self, client, mount_point):
        client.post("/VolumeDriver.Create", json={"Name": "vol-1"})

        response = client.post("/VolumeDriver.Mount", json={"Name": "vol-1", "ID": "req1"})
        assert response.status_code == 200
        assert response.json() == {"Mountpoint": f"{mount_point}/vol-1", "Err": ""}
        assert "req1" in (mount_point / "vol-1" / TRACK_FILE).read_text().splitlines()

        response = client.post("/VolumeDriver.Remove", json={"Name": "vol-1"})
        assert response.status_code == 500
        assert "VOLUME_NOT_EMPTY" in response.json()["Err"]

        response = client.post("/VolumeDriver.Unmount", json={"Name": "vol-1", "ID": "req1"})
        assert response.json() == {"Err": ""}

        response = client.post("/VolumeDriver.Remove", json={"Name": "vol-1"})
        assert response.status_code == 200
        assert not (mount_point / "vol-1").exists()

    def test_unmount_unknown_id_succeeds(self, client):
        client.post("/VolumeDriver.Create", json={"Name": "vol-1"})

        response = client.post("/VolumeDriver.Unmount", json={"Name": "vol-1", "ID": "nope"})

        assert response.status_code == 200
        assert response.json() == {"Err": ""}

    def test_plugin_content_type(self, client):
        response = client.post(
            "/VolumeDriver.Create",
            content='{"Name": "vol-1"}',
            headers={"Content-Type": "application/vnd.docker.plugins.v1.2+json"},
        )

        assert response.status_code == 200


class TestErrors:
    """Tests for protocol error reporting."""

    def test_invalid_name(self, client):
        response = client.post("/VolumeDriver.Create", json={"Name": ".hidden"})

        assert response.status_code == 500
        assert "INVALID_NAME" in response.json()["Err"]

    def test_missing_volume(self, client):
        response = client.post("/VolumeDriver.Get", json={"Name": "missing"})

        assert response.status_code == 500
        assert "PATH_NOT_FOUND" in response.json()["Err"]

    def test_malformed_request(self, client):
        response = client.post("/VolumeDriver.Mount", json={"Name": "vol-1"})

        assert response.status_code == 400
        assert response.json()["Err"].startswith("invalid request")

    def test_request_id_added(self, client):
        response = client.post("/Plugin.Activate")

        assert "X-Request-ID" in response.headers


class TestBuildConfig:
    """Tests for merging command-line flags into the configuration."""

    def _args(self, **kwargs):
        import argparse

        defaults = dict(
            config=None, sysmp=None, type=None, port=None,
            socket=None, log_file=None, verbose=False,
        )
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_flags_override_env(self, monkeypatch):
        monkeypatch.setenv("VOLUME_NAS_MOUNT_POINT", "/srv/env")

        config = build_config(self._args(sysmp="/srv/flag", type="TCP", port=9000, verbose=True))

        assert config.mount_point == "/srv/flag"
        assert config.listen_type == "tcp"
        assert config.port == 9000
        assert config.verbose is True

    def test_file_then_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("VOLUME_NAS_PORT", "9100")
        path = temp_dir / "config.yaml"
        path.write_text("mount_point: /srv/yaml\nport: 9000\n")

        config = build_config(self._args(config=str(path)))

        assert config.mount_point == "/srv/yaml"
        assert config.port == 9100


class TestVerboseDump:
    """Tests for request dumps in verbose mode."""

    def test_request_logged_at_debug(self, client, caplog):
        with caplog.at_level("DEBUG", logger="volume_nas.api.rest"):
            client.post("/VolumeDriver.Create", json={"Name": "vol-1", "Opts": {"uid": "0"}})

        assert any('"Name":"vol-1"' in r.getMessage() for r in caplog.records)


class TestPluginMediaType:
    """Responses use the plugin protocol media type."""

    def test_success_response(self, client):
        response = client.post("/Plugin.Activate")

        assert response.headers["content-type"].startswith(PLUGIN_CONTENT_TYPE)

    def test_error_response(self, client):
        response = client.post("/VolumeDriver.Get", json={"Name": "missing"})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith(PLUGIN_CONTENT_TYPE)


class TestPluginSocket:
    """Tests for the unix socket listener."""

    def test_socket_group_restricted(self, temp_dir):
        path = temp_dir / "run" / "plugin.sock"

        sock = bind_plugin_socket(str(path))
        try:
            st = os.stat(path)
            assert stat.S_ISSOCK(st.st_mode)
            assert stat.S_IMODE(st.st_mode) == SOCKET_MODE == 0o660
        finally:
            sock.close()

    def test_stale_socket_replaced(self, temp_dir):
        path = temp_dir / "plugin.sock"
        bind_plugin_socket(str(path)).close()

        sock = bind_plugin_socket(str(path))
        try:
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o660
        finally:
            sock.close()

    def test_chown_to_group_when_root(self, temp_dir):
        path = temp_dir / "plugin.sock"

        with patch("volume_nas.api.rest.os.geteuid", return_value=0, create=True), \
                patch("volume_nas.api.rest.os.chown") as chown:
            sock = bind_plugin_socket(str(path), gid=42)
        sock.close()

        chown.assert_called_once_with(str(path), 0, 42)

    def test_main_serves_on_restricted_socket(self, temp_dir, mount_point):
        path = temp_dir / "plugin.sock"
        modes = []

        def fake_run(self, sockets=None):
            modes.append(stat.S_IMODE(os.stat(path).st_mode))
            for sock in sockets:
                sock.close()

        with patch("uvicorn.Server.run", fake_run), \
                patch("volume_nas.utils.logger.configure_logging"):
            main(["--sysmp", str(mount_point), "--socket", str(path)])

        assert modes == [0o660]

    def test_invalid_port_env_reports_usage_error(self, monkeypatch, mount_point):
        monkeypatch.setenv("VOLUME_NAS_PORT", "not-a-port")

        with pytest.raises(SystemExit) as exc_info:
            main(["--sysmp", str(mount_point)])

        assert exc_info.value.code == 2
