"""
Pytest configuration and fixtures for volume-nas tests.

This module provides shared fixtures and configuration for all tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "api: API endpoint tests"
    )


# =============================================================================
# Temporary Directories
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mount_point(temp_dir) -> Path:
    """Create a temporary mount point."""
    path = temp_dir / "mnt"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def volume_dir(mount_point) -> Path:
    """Create a bare volume directory without a track file."""
    path = mount_point / "vol-1"
    path.mkdir()
    return path


# =============================================================================
# Manager Fixtures
# =============================================================================

class RecordingOwnership:
    """Ownership stub that records calls instead of changing owners."""

    supported = True

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def owner_ids(self, options):
        from volume_nas.ownership import ids_from_options
        return ids_from_options(options)

    def apply(self, path, uid, gid):
        self.calls.append((path, uid, gid))
        if self.fail:
            raise PermissionError(1, "Operation not permitted", path)


@pytest.fixture
def recording_ownership() -> RecordingOwnership:
    """Ownership stub recording every apply call."""
    return RecordingOwnership()


@pytest.fixture
def failing_ownership() -> RecordingOwnership:
    """Ownership stub whose apply always fails."""
    return RecordingOwnership(fail=True)


@pytest.fixture
def volume_manager(mount_point, recording_ownership) -> "VolumeManager":
    """Create a VolumeManager instance for testing."""
    from volume_nas.volumes.manager import VolumeManager

    return VolumeManager(
        mount_point=str(mount_point),
        ownership=recording_ownership,
    )


@pytest.fixture
def plugin_config(mount_point) -> "PluginConfig":
    """Create a test plugin configuration."""
    from volume_nas.config import PluginConfig

    return PluginConfig(mount_point=str(mount_point), ownership="none")
