"""Disposable InfluxDB 2.x containers for integration tests.

This package starts a pinned InfluxDB image with testcontainers, waits
until the service port listens and ``/ping`` answers, runs a one-time
setup script that creates the test user, organization and bucket, and
hands back the reachable URL.

- `InfluxDBFixture`: two-phase bootstrapper (`configure()`, then `start()`)
- `create()`: configure and start in one call
- `InfluxDBFixtureConfig`: immutable credentials, image and timing settings
- `influxdb_fixture.pytest_plugin`: session-scoped pytest fixtures
"""

from .config import DEFAULT_IMAGE, InfluxDBFixtureConfig
from .container import FixtureHandle, InfluxDBFixture, create
from .exceptions import (
    ContainerRuntimeUnavailableError,
    ContainerStartError,
    FixtureError,
    FixtureStateError,
    ImageIncompatibilityError,
    InterruptedOperationError,
    ScriptTransferError,
    SetupScriptError,
    StartupTimeoutError,
)
from .image import ImageReference

__all__ = [
    "DEFAULT_IMAGE",
    "ContainerRuntimeUnavailableError",
    "ContainerStartError",
    "FixtureError",
    "FixtureHandle",
    "FixtureStateError",
    "ImageIncompatibilityError",
    "ImageReference",
    "InfluxDBFixture",
    "InfluxDBFixtureConfig",
    "InterruptedOperationError",
    "ScriptTransferError",
    "SetupScriptError",
    "StartupTimeoutError",
    "create",
]
