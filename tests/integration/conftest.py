"""Shared fixtures for integration tests.

These tests start real InfluxDB containers through testcontainers. They are
marked ``integration`` and skipped when no Docker daemon is reachable.

## Container Scoping

The `influxdb_fixture` container is session-scoped and shared by every test
in the run, so tests must use unique measurement names or clean up the
data they write. Tests that exercise failure paths start their own
short-lived fixtures.

## Orphan Container Cleanup (Ryuk)

Testcontainers includes a "Ryuk" sidecar container that removes orphaned
containers if the session crashes before teardown. To disable it:
    export TESTCONTAINERS_RYUK_DISABLED=true

## Running Tests

```bash
pytest tests/integration -m integration -v --log-cli-level=INFO
```
"""

import logging

import docker
import pytest
from docker.errors import DockerException
from requests.exceptions import RequestException

# The pytest11 entry point only registers the plugin for installed
# distributions; importing the fixtures here makes them available either way.
from influxdb_fixture.pytest_plugin import (  # noqa: F401
    influxdb_config,
    influxdb_fixture,
    influxdb_url,
)

# Configure logging for integration tests
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("docker").setLevel(logging.WARNING)
logging.getLogger("testcontainers").setLevel(logging.WARNING)


def docker_available() -> bool:
    """Check whether a Docker daemon answers ping."""
    try:
        client = docker.from_env()
        try:
            return bool(client.ping())
        finally:
            client.close()
    except (DockerException, RequestException):
        return False


@pytest.fixture(scope="session")
def require_docker() -> None:
    """Skip the requesting test when no Docker daemon is reachable."""
    if not docker_available():
        pytest.skip("Docker not available")
