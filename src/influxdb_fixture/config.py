"""Configuration for the InfluxDB test fixture.

This module provides the immutable fixture configuration using Pydantic.
Defaults are the fixed test credentials and the pinned image; every value
can be overridden through environment variables, which are read once when
`InfluxDBFixtureConfig.from_env()` is called.

## Environment Variables

All variables are optional.

**Image**
- `INFLUXDB_FIXTURE_IMAGE`: Image to start
  (default: `quay.io/influxdb/influxdb:v2.0.2`). Must be compatible with the
  pinned image.
- `INFLUXDB_FIXTURE_IMAGE_SUBSTITUTE`: Set to `true` when `INFLUXDB_FIXTURE_IMAGE`
  is a drop-in replacement for the pinned image, e.g. a registry mirror
  (default: `false`)

**Credentials and tenant**
- `INFLUXDB_FIXTURE_USERNAME`: Admin user (default: `test-user`)
- `INFLUXDB_FIXTURE_PASSWORD`: Admin password (default: `test-password`)
- `INFLUXDB_FIXTURE_TOKEN`: Admin access token (default: `access-token`)
- `INFLUXDB_FIXTURE_BUCKET`: Default bucket (default: `test-bucket`)
- `INFLUXDB_FIXTURE_ORG`: Organization (default: `test-org`)
- `INFLUXDB_FIXTURE_RETENTION`: Bucket retention amount, `0` is infinite
  (default: `0`)
- `INFLUXDB_FIXTURE_RETENTION_UNIT`: Retention unit (default: `ns`)

**Timing**
- `INFLUXDB_FIXTURE_STARTUP_TIMEOUT`: Seconds to wait for readiness
  (default: `60`)
- `INFLUXDB_FIXTURE_POLL_INTERVAL`: Initial seconds between readiness
  attempts (default: `0.5`)
- `INFLUXDB_FIXTURE_MAX_POLL_INTERVAL`: Upper bound of the readiness
  backoff (default: `5`)
- `INFLUXDB_FIXTURE_REQUEST_TIMEOUT`: Per-probe timeout in seconds
  (default: `2`)

**Setup**
- `INFLUXDB_FIXTURE_SETUP_SCRIPT`: Path of the setup script on the host
  (default: the script shipped in `influxdb_fixture/resources`)

## Usage

```python
from influxdb_fixture.config import InfluxDBFixtureConfig

config = InfluxDBFixtureConfig()             # pinned defaults
config = InfluxDBFixtureConfig.from_env()    # defaults + env overrides
config.container_env()                       # env injected into the container
```
"""

import os
from importlib import resources
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .image import ImageReference

INFLUXDB_PORT = 8086

REGISTRY = "quay.io"
REPOSITORY = "influxdb/influxdb"
TAG = "v2.0.2"
DEFAULT_IMAGE = ImageReference(repository=REPOSITORY, tag=TAG, registry=REGISTRY)

NO_CONTENT_STATUS_CODE = 204
INFLUX_SETUP_SH = "influx-setup.sh"

RetentionUnit = Literal["ns", "us", "ms", "s", "m", "h", "d", "w"]

_ENV_PREFIX = "INFLUXDB_FIXTURE_"


def default_setup_script() -> Path:
    """Return the path of the setup script shipped with the package."""
    return Path(str(resources.files("influxdb_fixture").joinpath("resources", INFLUX_SETUP_SH)))


class InfluxDBFixtureConfig(BaseModel):
    """Immutable configuration of one fixture instance.

    Attributes:
        image: Image name to start. Default: the pinned InfluxDB image.
        image_is_substitute: Declare `image` a compatible substitute for the
            pinned image.
        username: Admin user created by the setup script.
        password: Admin password.
        token: Admin access token.
        bucket: Default bucket created by the setup script.
        organization: Organization created by the setup script.
        retention: Bucket retention amount. 0 keeps data forever.
        retention_unit: Unit of `retention`.
        port: Service port inside the container.
        health_path: HTTP path polled for readiness.
        health_status: HTTP status that marks the service healthy.
        startup_timeout: Seconds to wait for readiness.
        poll_interval: Initial seconds between readiness attempts.
        max_poll_interval: Upper bound of the readiness backoff.
        request_timeout: Timeout of a single readiness probe in seconds.
        setup_script: Setup script on the host.
        container_script_path: Where the setup script is placed in the container.
        interpreter: Shell used to run the setup script.
    """

    image: str = str(DEFAULT_IMAGE)
    image_is_substitute: bool = False

    # Credentials and tenant
    username: str = Field(default="test-user", min_length=1)
    password: str = Field(default="test-password", min_length=8)
    token: str = Field(default="access-token", min_length=1)
    bucket: str = Field(default="test-bucket", min_length=1)
    organization: str = Field(default="test-org", min_length=1)
    retention: int = Field(default=0, ge=0)
    retention_unit: RetentionUnit = "ns"

    # Service
    port: int = Field(default=INFLUXDB_PORT, gt=0, lt=65536)
    health_path: str = "/ping"
    health_status: int = NO_CONTENT_STATUS_CODE

    # Timing
    startup_timeout: float = Field(default=60.0, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)
    max_poll_interval: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=2.0, gt=0)

    # Setup script
    setup_script: Path = Field(default_factory=default_setup_script)
    container_script_path: str = f"/{INFLUX_SETUP_SH}"
    interpreter: str = "/bin/bash"

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "InfluxDBFixtureConfig":
        """Create InfluxDBFixtureConfig from environment variables.

        Unset variables keep their defaults.

        Returns:
            Configured InfluxDBFixtureConfig instance.

        Raises:
            ValueError: If a variable holds a value that fails validation.
        """
        env_fields = {
            "image": "IMAGE",
            "image_is_substitute": "IMAGE_SUBSTITUTE",
            "username": "USERNAME",
            "password": "PASSWORD",
            "token": "TOKEN",
            "bucket": "BUCKET",
            "organization": "ORG",
            "retention": "RETENTION",
            "retention_unit": "RETENTION_UNIT",
            "startup_timeout": "STARTUP_TIMEOUT",
            "poll_interval": "POLL_INTERVAL",
            "max_poll_interval": "MAX_POLL_INTERVAL",
            "request_timeout": "REQUEST_TIMEOUT",
            "setup_script": "SETUP_SCRIPT",
        }
        values = {
            field: os.environ[_ENV_PREFIX + suffix]
            for field, suffix in env_fields.items()
            if os.environ.get(_ENV_PREFIX + suffix)
        }
        # pydantic's ValidationError is a ValueError
        return cls(**values)

    @property
    def image_reference(self) -> ImageReference:
        reference = ImageReference.parse(self.image)
        if self.image_is_substitute:
            return reference.as_compatible_substitute_for(DEFAULT_IMAGE)
        return reference

    @property
    def retention_duration(self) -> str:
        """Retention as an InfluxDB duration literal, e.g. ``0ns`` or ``30d``."""
        return f"{self.retention}{self.retention_unit}"

    def container_env(self) -> dict[str, str]:
        """Environment variables injected into the container.

        The setup script reads these to create the user, org and bucket.
        """
        return {
            "INFLUXDB_USER": self.username,
            "INFLUXDB_PASSWORD": self.password,
            "INFLUXDB_TOKEN": self.token,
            "INFLUXDB_BUCKET": self.bucket,
            "INFLUXDB_ORG": self.organization,
            "INFLUXDB_RETENTION": str(self.retention),
            "INFLUXDB_RETENTION_UNIT": self.retention_unit,
        }
