"""pytest plugin exposing the InfluxDB fixture.

Installed packages register this module through the ``pytest11`` entry
point, so the fixtures below are available in any test suite without
imports.

## Fixtures

- `influxdb_config` (session): `InfluxDBFixtureConfig.from_env()`
- `influxdb_fixture` (session): a started `InfluxDBFixture`; the container
  is removed when the session ends, whatever the test outcome
- `influxdb_url` (session): ``http://host:port`` of the running instance

One container is shared by the whole session, so tests must use unique
measurement names or clean up the data they write.

## Skipping

Tests requesting these fixtures are skipped, not failed, when:
- `INFLUXDB_FIXTURE_SKIP=1` is set, or
- the Docker daemon is not reachable.

Any other bootstrap failure (timeout, setup script exit code, image
mismatch) fails the requesting tests.

## Usage

```python
import httpx

def test_bucket_exists(influxdb_fixture):
    handle = influxdb_fixture.handle
    response = httpx.get(
        f"{handle.url}/api/v2/buckets",
        headers={"Authorization": f"Token {handle.config.token}"},
    )
    assert handle.config.bucket in response.text
```
"""

import logging
import os
from collections.abc import Iterator

import pytest

from .config import InfluxDBFixtureConfig
from .container import InfluxDBFixture
from .exceptions import ContainerRuntimeUnavailableError

logger = logging.getLogger(__name__)

SKIP_ENV = "INFLUXDB_FIXTURE_SKIP"


@pytest.fixture(scope="session")
def influxdb_config() -> InfluxDBFixtureConfig:
    """Fixture configuration read from ``INFLUXDB_FIXTURE_*`` variables.

    Override this fixture in a conftest.py to pin a different config.
    """
    return InfluxDBFixtureConfig.from_env()


@pytest.fixture(scope="session")
def influxdb_fixture(influxdb_config: InfluxDBFixtureConfig) -> Iterator[InfluxDBFixture]:
    """Start one InfluxDB container for the test session.

    Yields:
        InfluxDBFixture: Started and initialized fixture.
    """
    if os.getenv(SKIP_ENV) == "1":
        pytest.skip(f"InfluxDB fixture disabled ({SKIP_ENV}=1)")

    fixture = InfluxDBFixture.configure(influxdb_config)
    try:
        fixture.start()
    except ContainerRuntimeUnavailableError as e:
        pytest.skip(f"Docker not available: {e}")

    try:
        yield fixture
    finally:
        logger.info("Stopping InfluxDB container...")
        fixture.stop()


@pytest.fixture(scope="session")
def influxdb_url(influxdb_fixture: InfluxDBFixture) -> str:
    """Connection URL of the session's InfluxDB instance."""
    return influxdb_fixture.get_connection_url()
