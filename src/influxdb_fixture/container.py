"""InfluxDB test fixture bootstrapper.

This module brings up one disposable InfluxDB container per fixture,
waits until it is usable, seeds it with the configured credentials and
tenant data, and exposes its reachable address.

## Lifecycle

Construction is split in two phases so that no half-built object is ever
handed to a caller:

1. `InfluxDBFixture.configure()` validates the image against the pinned
   image and freezes the configuration. Nothing touches Docker yet.
2. `InfluxDBFixture.start()` runs Start → WaitReady → RunSetupScript and
   returns a `FixtureHandle`. If any step fails, the container is removed
   before the error propagates.

`stop()` removes the container. It is idempotent, and it also runs
automatically when the fixture is garbage collected or the interpreter
exits.

## Usage

```python
from influxdb_fixture import InfluxDBFixture, create

with InfluxDBFixture.configure() as fixture:
    url = fixture.get_connection_url()
    ...

# or, owning teardown explicitly
handle = create()
try:
    run_tests_against(handle.url, token=handle.config.token)
finally:
    handle.stop()
```
"""

import logging
import weakref
from typing import Any

import attrs
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException
from testcontainers.core.container import DockerContainer

from .config import DEFAULT_IMAGE, InfluxDBFixtureConfig
from .exceptions import (
    ContainerRuntimeUnavailableError,
    ContainerStartError,
    FixtureStateError,
)
from .image import ImageReference
from .mixins import LoggerMixin
from .readiness import ReadinessCheck
from .setup_script import SetupScript

logger = logging.getLogger(__name__)


@attrs.define(frozen=True, slots=True)
class FixtureHandle:
    """Connection info of a started, initialized fixture.

    Attributes:
        url: ``http://host:port`` reachable from the test process.
        host: Host the service port is mapped on.
        port: Mapped host port.
        container_id: Short id of the container.
        config: Configuration the fixture was started with.
    """

    url: str
    host: str
    port: int
    container_id: str
    config: InfluxDBFixtureConfig = attrs.field(repr=False)
    _fixture: "InfluxDBFixture" = attrs.field(repr=False, eq=False)

    def get_connection_url(self) -> str:
        return self.url

    def client_kwargs(self) -> dict[str, str]:
        """Keyword arguments for an InfluxDB 2.x client (url, token, org)."""
        return {"url": self.url, "token": self.config.token, "org": self.config.organization}

    def stop(self) -> None:
        """Remove the container. Safe to call more than once."""
        self._fixture.stop()


def _remove_container(container: DockerContainer, container_id: str) -> None:
    try:
        container.stop()
    except NotFound:
        logger.debug("Container already removed", extra={"container_id": container_id})
    except (DockerException, RequestException) as e:
        # Ryuk reaps the container when the session ends
        logger.warning(
            "Failed to remove container",
            extra={"container_id": container_id, "error": str(e), "error_type": type(e).__name__},
        )
    else:
        logger.info("Removed InfluxDB container", extra={"container_id": container_id})


@attrs.define(slots=True, eq=False)
class InfluxDBFixture(LoggerMixin):
    """Owns exactly one InfluxDB container from start to teardown.

    Use `configure()` to build instances; the constructor takes already
    validated collaborators.

    Attributes:
        config: Immutable fixture configuration.
        image: Image the container is started from.
        readiness: Composite readiness check awaited after start.
        setup_script: Script run once the container is ready.
    """

    config: InfluxDBFixtureConfig
    image: ImageReference
    readiness: ReadinessCheck
    setup_script: SetupScript
    _container: DockerContainer | None = attrs.field(default=None, init=False)
    _handle: FixtureHandle | None = attrs.field(default=None, init=False)
    _finalizer: weakref.finalize | None = attrs.field(default=None, init=False)

    @classmethod
    def configure(
        cls,
        config: InfluxDBFixtureConfig | None = None,
        image: ImageReference | str | None = None,
    ) -> "InfluxDBFixture":
        """Validate the image and freeze the configuration.

        Args:
            config: Fixture configuration. Default: the pinned defaults.
            image: Image to start instead of ``config.image``. Must be the
                pinned image or a declared compatible substitute.

        Returns:
            A configured, not yet started fixture.

        Raises:
            ImageIncompatibilityError: If the image is not compatible with
                the pinned image. Raised before any container exists.
        """
        config = config or InfluxDBFixtureConfig()
        if image is None:
            reference = config.image_reference
        elif isinstance(image, str):
            reference = ImageReference.parse(image)
        else:
            reference = image

        reference.assert_compatible_with(DEFAULT_IMAGE)

        return cls(
            config=config,
            image=reference,
            readiness=ReadinessCheck.for_config(config),
            setup_script=SetupScript.for_config(config),
        )

    @classmethod
    def create(
        cls,
        config: InfluxDBFixtureConfig | None = None,
        image: ImageReference | str | None = None,
    ) -> "InfluxDBFixture":
        """Configure and start a fixture, returning the started fixture."""
        fixture = cls.configure(config, image)
        fixture.start()
        return fixture

    @property
    def started(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> FixtureHandle:
        """Connection info of the started fixture.

        Raises:
            FixtureStateError: If the fixture is not started.
        """
        if self._handle is None:
            raise FixtureStateError("InfluxDB fixture is not started")
        return self._handle

    def get_connection_url(self) -> str:
        """Return ``http://host:mappedPort`` of the started fixture.

        Raises:
            FixtureStateError: If the fixture is not started.
        """
        return self.handle.url

    def start(self) -> FixtureHandle:
        """Start the container, wait for readiness and run the setup script.

        Returns:
            Handle with the connection info.

        Raises:
            FixtureStateError: If the fixture was already started.
            ContainerRuntimeUnavailableError: If Docker is unreachable.
            ContainerStartError: If the container cannot be started or exits.
            StartupTimeoutError: If readiness is not reached in time.
            ScriptTransferError: If the setup script cannot be copied.
            SetupScriptError: If the setup script fails.
            InterruptedOperationError: If the setup script is interrupted.
        """
        if self._container is not None:
            raise FixtureStateError("InfluxDB fixture already started")

        self._logger.info("Starting InfluxDB test container", extra={"image": str(self.image)})
        try:
            container = self._create_container()
            self._run_container(container)
            self.readiness.wait_until_ready(container)
            self.setup_script.transfer(container)
            self.setup_script.run(container)
            self._handle = self._build_handle(container)
        except BaseException as e:
            self._logger.error(
                "InfluxDB fixture failed to start, removing container",
                extra={"image": str(self.image), "error": str(e), "error_type": type(e).__name__},
            )
            self.stop()
            raise

        self._logger.info(
            "Started InfluxDB container",
            extra={"url": self._handle.url, "container_id": self._handle.container_id},
        )
        return self._handle

    def stop(self) -> None:
        """Stop and remove the container.

        Idempotent: calling it on a stopped, never started, or externally
        removed fixture is a no-op.
        """
        finalizer = self._finalizer
        self._finalizer = None
        self._container = None
        self._handle = None
        if finalizer is not None and finalizer.alive:
            finalizer()

    def _create_container(self) -> DockerContainer:
        try:
            container = DockerContainer(str(self.image))
        except (DockerException, RequestException) as e:
            msg = f"Docker is not available: {e}"
            raise ContainerRuntimeUnavailableError(msg) from e

        container.with_exposed_ports(self.config.port)
        for key, value in self.config.container_env().items():
            container.with_env(key, value)

        self._container = container
        return container

    def _run_container(self, container: DockerContainer) -> None:
        try:
            container.start()
        except (DockerException, RequestException) as e:
            msg = f"Could not start container from {self.image}: {e}"
            raise ContainerStartError(msg) from e
        finally:
            # Registered even when start() fails half way so the container is reaped
            wrapped = container.get_wrapped_container()
            container_id = wrapped.short_id if wrapped is not None else "<not created>"
            self._finalizer = weakref.finalize(self, _remove_container, container, container_id)

    def _build_handle(self, container: DockerContainer) -> FixtureHandle:
        try:
            host = container.get_container_host_ip()
            port = int(container.get_exposed_port(self.config.port))
        except (DockerException, RequestException) as e:
            msg = f"Could not resolve mapped port {self.config.port}: {e}"
            raise ContainerStartError(msg) from e

        return FixtureHandle(
            url=f"http://{host}:{port}",
            host=host,
            port=port,
            container_id=container.get_wrapped_container().short_id,
            config=self.config,
            fixture=self,
        )

    def __enter__(self) -> "InfluxDBFixture":
        if not self.started:
            self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def create(
    config: InfluxDBFixtureConfig | None = None,
    image: ImageReference | str | None = None,
) -> FixtureHandle:
    """Configure and start a fixture in one call.

    The returned handle keeps the fixture alive; call `FixtureHandle.stop()`
    to remove the container, otherwise it is removed at interpreter exit.

    Raises:
        FixtureError: Any bootstrap failure, see `InfluxDBFixture.start()`.
    """
    return InfluxDBFixture.configure(config, image).start()

