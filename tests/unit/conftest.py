"""Shared fixtures for fixture-bootstrapper unit tests.

This module provides a mocked testcontainers `DockerContainer` and a fast
configuration so lifecycle, readiness and setup logic can be tested without
a Docker daemon.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from docker.models.containers import ExecResult
from testcontainers.core.container import DockerContainer

from influxdb_fixture.config import InfluxDBFixtureConfig


@pytest.fixture
def setup_script_file(tmp_path: Path) -> Path:
    """Write a trivial setup script to a temp directory.

    Returns:
        Path: Script path on the host.
    """
    script = tmp_path / "influx-setup.sh"
    script.write_text("#!/bin/bash\necho seeded\n")
    return script


@pytest.fixture
def fast_config(setup_script_file: Path) -> InfluxDBFixtureConfig:
    """Fixture config with short timeouts so readiness tests finish quickly.

    Returns:
        InfluxDBFixtureConfig: Config pointing at the temp setup script.
    """
    return InfluxDBFixtureConfig(
        startup_timeout=0.3,
        poll_interval=0.01,
        max_poll_interval=0.02,
        request_timeout=0.1,
        setup_script=setup_script_file,
    )


@pytest.fixture
def wrapped_container() -> MagicMock:
    """Create a mock docker-py Container (what get_wrapped_container returns).

    Returns:
        MagicMock: Running container accepting archives.
    """
    wrapped = MagicMock()
    wrapped.status = "running"
    wrapped.short_id = "abc123def456"
    wrapped.attrs = {"State": {"ExitCode": 0}}
    wrapped.put_archive.return_value = True
    wrapped.logs.return_value = b""
    return wrapped


@pytest.fixture
def mock_container(wrapped_container: MagicMock) -> MagicMock:
    """Create a mock testcontainers DockerContainer.

    Returns:
        MagicMock: Container mapped on localhost:49153 whose execs succeed.
    """
    container = MagicMock(spec=DockerContainer)
    container.get_container_host_ip.return_value = "localhost"
    container.get_exposed_port.return_value = 49153
    container.get_wrapped_container.return_value = wrapped_container
    container.exec.return_value = ExecResult(exit_code=0, output=b"")
    return container
