"""Unit tests for influxdb_fixture.container module.

This file tests the InfluxDBFixture lifecycle: configuration, the
Start → WaitReady → RunSetupScript sequence, teardown on every failure
path, and idempotent stop().

# Test Structure

``DockerContainer`` is patched in the container module so no Docker
daemon is needed. Readiness and setup collaborators are MagicMocks limited
to the interfaces of the real classes, except in the create() tests which run the
real SetupScript against the mocked container.

# Running Tests

Run with: pytest tests/unit/test_container.py
"""

# pylint: disable=redefined-outer-name

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import APIError, DockerException, NotFound

from influxdb_fixture import create
from influxdb_fixture.config import DEFAULT_IMAGE, InfluxDBFixtureConfig
from influxdb_fixture.container import FixtureHandle, InfluxDBFixture
from influxdb_fixture.exceptions import (
    ContainerRuntimeUnavailableError,
    ContainerStartError,
    FixtureStateError,
    ImageIncompatibilityError,
    SetupScriptError,
    StartupTimeoutError,
)
from influxdb_fixture.image import ImageReference
from influxdb_fixture.readiness import ReadinessCheck
from influxdb_fixture.setup_script import SetupScript


@pytest.fixture
def docker_container_cls(mock_container: MagicMock) -> Iterator[MagicMock]:
    """Patch DockerContainer so constructing it returns mock_container."""
    with patch("influxdb_fixture.container.DockerContainer") as cls:
        cls.return_value = mock_container
        yield cls


@pytest.fixture
def fixture(fast_config: InfluxDBFixtureConfig, docker_container_cls: MagicMock) -> InfluxDBFixture:
    """Configured fixture with mocked readiness and setup collaborators."""
    return InfluxDBFixture(
        config=fast_config,
        image=DEFAULT_IMAGE,
        readiness=MagicMock(spec=ReadinessCheck),
        setup_script=MagicMock(spec=SetupScript),
    )


# =============================================================================
# Configure Tests
# =============================================================================


class TestConfigure:
    """Test suite for InfluxDBFixture.configure()."""

    def test_configure_defaults(self, docker_container_cls: MagicMock) -> None:
        """Test that configure() builds collaborators without touching Docker.

        **What it tests:**
          - Pinned image and default config are used
          - Readiness and setup script are derived from the config
          - No container is created
        """
        fixture = InfluxDBFixture.configure()

        assert fixture.image == DEFAULT_IMAGE
        assert fixture.config == InfluxDBFixtureConfig()
        assert [probe.name for probe in fixture.readiness.probes] == ["port", "http"]
        assert fixture.setup_script.container_path == "/influx-setup.sh"
        assert not fixture.started
        docker_container_cls.assert_not_called()

    def test_incompatible_image_fails_before_docker(self, docker_container_cls: MagicMock) -> None:
        """Test that an image mismatch is rejected at configuration time.

        **Why this test is important:**
          - A wrong image must never produce a running container

        **What it tests:**
          - ImageIncompatibilityError from configure()
          - DockerContainer is never constructed
        """
        with pytest.raises(ImageIncompatibilityError):
            InfluxDBFixture.configure(image="quay.io/influxdb/influxdb:v2.7.1")

        docker_container_cls.assert_not_called()

    def test_declared_substitute_is_accepted(self, docker_container_cls: MagicMock) -> None:
        mirror = ImageReference.parse("registry.local/influxdb:2.0.2").as_compatible_substitute_for(DEFAULT_IMAGE)

        fixture = InfluxDBFixture.configure(image=mirror)

        assert fixture.image is mirror

    def test_substitute_from_config(self) -> None:
        config = InfluxDBFixtureConfig(image="registry.local/influxdb:2.0.2", image_is_substitute=True)

        fixture = InfluxDBFixture.configure(config)

        assert str(fixture.image) == "registry.local/influxdb:2.0.2"


# =============================================================================
# Start Tests
# =============================================================================


class TestStart:
    """Test suite for InfluxDBFixture.start()."""

    def test_start_runs_full_sequence(
        self,
        fixture: InfluxDBFixture,
        docker_container_cls: MagicMock,
        mock_container: MagicMock,
    ) -> None:
        """Test the happy path from container creation to a usable handle.

        **Why this test is important:**
          - The URL is the only thing most tests need from the fixture
          - The setup script must only run after readiness

        **What it tests:**
          - Container built from the pinned image with port and env
          - Readiness awaited, then script transferred and run
          - Handle exposes http://host:mappedPort
        """
        handle = fixture.start()

        docker_container_cls.assert_called_once_with("quay.io/influxdb/influxdb:v2.0.2")
        mock_container.with_exposed_ports.assert_called_once_with(8086)
        mock_container.with_env.assert_any_call("INFLUXDB_USER", "test-user")
        mock_container.with_env.assert_any_call("INFLUXDB_PASSWORD", "test-password")
        mock_container.with_env.assert_any_call("INFLUXDB_RETENTION", "0")
        mock_container.start.assert_called_once()
        fixture.readiness.wait_until_ready.assert_called_once_with(mock_container)
        fixture.setup_script.transfer.assert_called_once_with(mock_container)
        fixture.setup_script.run.assert_called_once_with(mock_container)

        assert handle.url == "http://localhost:49153"
        assert handle.port == 49153
        assert handle.container_id == "abc123def456"
        assert fixture.started
        assert fixture.get_connection_url() == "http://localhost:49153"

    def test_url_before_start_raises(self, fixture: InfluxDBFixture) -> None:
        with pytest.raises(FixtureStateError, match="not started"):
            fixture.get_connection_url()

    def test_second_start_raises(self, fixture: InfluxDBFixture, docker_container_cls: MagicMock) -> None:
        """Test that a fixture owns exactly one container."""
        fixture.start()

        with pytest.raises(FixtureStateError, match="already started"):
            fixture.start()

        docker_container_cls.assert_called_once()
        assert fixture.started

    def test_setup_failure_removes_container(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        """Test that a failing setup script tears the container down.

        **Why this test is important:**
          - A half-initialized instance must never leak or be handed out

        **What it tests:**
          - SetupScriptError propagates unchanged
          - Container is stopped exactly once
          - URL is not available afterwards
        """
        fixture.setup_script.run.side_effect = SetupScriptError("exit 1", command=["/bin/bash"], exit_code=1)

        with pytest.raises(SetupScriptError):
            fixture.start()

        mock_container.stop.assert_called_once()
        assert not fixture.started
        with pytest.raises(FixtureStateError):
            fixture.get_connection_url()

    def test_readiness_timeout_skips_setup(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        fixture.readiness.wait_until_ready.side_effect = StartupTimeoutError("not ready after 0.3s")

        with pytest.raises(StartupTimeoutError):
            fixture.start()

        fixture.setup_script.transfer.assert_not_called()
        fixture.setup_script.run.assert_not_called()
        mock_container.stop.assert_called_once()

    def test_docker_unavailable(self, fixture: InfluxDBFixture, docker_container_cls: MagicMock) -> None:
        """Test that an unreachable daemon maps to ContainerRuntimeUnavailableError."""
        docker_container_cls.side_effect = DockerException("Error while fetching server API version")

        with pytest.raises(ContainerRuntimeUnavailableError) as exc_info:
            fixture.start()

        assert isinstance(exc_info.value, ContainerStartError)
        assert not fixture.started

    def test_start_failure_removes_container(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        mock_container.start.side_effect = APIError("pull access denied")

        with pytest.raises(ContainerStartError, match="pull access denied"):
            fixture.start()

        fixture.readiness.wait_until_ready.assert_not_called()
        mock_container.stop.assert_called_once()

    def test_interrupt_removes_container(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        """Test that Ctrl-C during startup still tears the container down."""
        fixture.readiness.wait_until_ready.side_effect = KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            fixture.start()

        mock_container.stop.assert_called_once()

    def test_restart_after_failure(self, fixture: InfluxDBFixture, docker_container_cls: MagicMock) -> None:
        fixture.readiness.wait_until_ready.side_effect = [StartupTimeoutError("slow"), None]

        with pytest.raises(StartupTimeoutError):
            fixture.start()
        fixture.start()

        assert docker_container_cls.call_count == 2
        assert fixture.started


# =============================================================================
# Stop Tests
# =============================================================================


class TestStop:
    """Test suite for stop() and the context manager protocol."""

    def test_stop_is_idempotent(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        """Test that repeated stop() calls remove the container once.

        **What it tests:**
          - First stop() removes the container
          - Further calls are no-ops
        """
        fixture.start()

        fixture.stop()
        fixture.stop()

        mock_container.stop.assert_called_once()
        assert not fixture.started

    def test_stop_before_start_is_noop(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        fixture.stop()

        mock_container.stop.assert_not_called()

    def test_stop_tolerates_removed_container(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        mock_container.stop.side_effect = NotFound("No such container")
        fixture.start()

        fixture.stop()

        assert not fixture.started

    def test_stop_logs_removal_failure(
        self, fixture: InfluxDBFixture, mock_container: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_container.stop.side_effect = APIError("daemon is shutting down")
        fixture.start()

        fixture.stop()

        assert "Failed to remove container" in caplog.text

    def test_context_manager_stops_on_error(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        """Test that leaving the with block removes the container even on failure."""
        with pytest.raises(RuntimeError):
            with fixture as started:
                assert started.get_connection_url() == "http://localhost:49153"
                raise RuntimeError("test failed")

        mock_container.stop.assert_called_once()
        assert not fixture.started

    def test_context_manager_reuses_started_fixture(
        self, fixture: InfluxDBFixture, docker_container_cls: MagicMock
    ) -> None:
        fixture.start()

        with fixture:
            pass

        docker_container_cls.assert_called_once()

    def test_handle_stop_stops_fixture(self, fixture: InfluxDBFixture, mock_container: MagicMock) -> None:
        handle = fixture.start()

        handle.stop()

        mock_container.stop.assert_called_once()
        assert not fixture.started


# =============================================================================
# create() Tests
# =============================================================================


class TestCreate:
    """Test suite for the create() one-shot helpers."""

    @patch.object(ReadinessCheck, "wait_until_ready")
    def test_create_returns_handle(
        self,
        mock_wait: MagicMock,
        fast_config: InfluxDBFixtureConfig,
        docker_container_cls: MagicMock,
        mock_container: MagicMock,
        wrapped_container: MagicMock,
    ) -> None:
        """Test that create() configures, starts and seeds in one call.

        **What it tests:**
          - Real SetupScript copies and runs the script on the mocked container
          - Handle carries url and client kwargs
          - handle.stop() removes the container
        """
        handle = create(fast_config)

        assert isinstance(handle, FixtureHandle)
        assert handle.get_connection_url() == "http://localhost:49153"
        assert handle.client_kwargs() == {
            "url": "http://localhost:49153",
            "token": "access-token",
            "org": "test-org",
        }
        mock_wait.assert_called_once_with(mock_container)
        wrapped_container.put_archive.assert_called_once()
        assert mock_container.exec.call_count == 2

        handle.stop()
        mock_container.stop.assert_called_once()

    @patch.object(ReadinessCheck, "wait_until_ready")
    def test_classmethod_create_returns_started_fixture(
        self, mock_wait: MagicMock, fast_config: InfluxDBFixtureConfig, docker_container_cls: MagicMock
    ) -> None:
        fixture = InfluxDBFixture.create(fast_config)

        try:
            assert fixture.started
        finally:
            fixture.stop()
