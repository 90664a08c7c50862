"""Readiness checks for a started fixture container.

A container counts as ready only when every probe of a `ReadinessCheck`
passes within the same evaluation:

1. `PortListeningProbe`: the mapped host port accepts TCP connections and
   the service port is listening inside the container. The in-container
   check matters because Docker's port proxy accepts connections on the
   host before the service inside has bound its socket.
2. `HttpHealthProbe`: an authenticated GET on the health path returns the
   expected status code (204 for InfluxDB's ``/ping``).

`ReadinessCheck.wait_until_ready()` evaluates the probes with exponential
backoff until they pass or the startup timeout elapses.
"""

import logging
import socket
import time
from typing import Any, Protocol, runtime_checkable

import attrs
import httpx
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException
from testcontainers.core.container import DockerContainer

from foundation.retry import RetryWithBackoff, create_retry_logger

from .config import InfluxDBFixtureConfig
from .exceptions import ContainerStartError, FixtureError, StartupTimeoutError

logger = logging.getLogger(__name__)

_DEAD_STATES = frozenset({"exited", "dead", "removing"})


class ProbeFailedError(FixtureError):
    """A single readiness probe did not pass. Retried until the timeout."""

    def __init__(self, probe: str, reason: str) -> None:
        super().__init__(f"{probe} probe failed: {reason}")
        self.probe = probe
        self.reason = reason


@runtime_checkable
class ReadinessProbe(Protocol):
    """Protocol for one readiness signal.

    `check()` returns normally when the signal holds and raises
    `ProbeFailedError` when it does not yet hold.
    """

    name: str

    def check(self, container: DockerContainer) -> None: ...


def _mapped_address(container: DockerContainer, port: int, probe: str) -> tuple[str, int]:
    try:
        host = container.get_container_host_ip()
        mapped = int(container.get_exposed_port(port))
    except (DockerException, RequestException, ConnectionError) as e:
        raise ProbeFailedError(probe, f"port {port} is not mapped yet: {e}") from e
    return host, mapped


@attrs.define(frozen=True, slots=True)
class PortListeningProbe:
    """Probe that the service port listens, seen from the host and from inside.

    Attributes:
        port: Service port inside the container.
        timeout: TCP connect timeout in seconds.
    """

    port: int
    timeout: float = 2.0
    name: str = "port"

    def internal_command(self) -> list[str]:
        # /proc/net/tcp* lists local addresses as HEXIP:HEXPORT
        script = (
            f"cat /proc/net/tcp* | awk '{{print $2}}' | grep -i ':{self.port:04x}$'"
            f" || nc -z -w 1 localhost {self.port}"
            f" || /bin/bash -c '</dev/tcp/localhost/{self.port}'"
        )
        return ["/bin/sh", "-c", script]

    def check(self, container: DockerContainer) -> None:
        host, mapped = _mapped_address(container, self.port, self.name)
        try:
            with socket.create_connection((host, mapped), timeout=self.timeout):
                pass
        except OSError as e:
            raise ProbeFailedError(self.name, f"{host}:{mapped} refused connection: {e}") from e

        try:
            result = container.exec(self.internal_command())
        except (DockerException, RequestException) as e:
            raise ProbeFailedError(self.name, f"in-container port check failed to run: {e}") from e
        if result.exit_code != 0:
            raise ProbeFailedError(self.name, f"port {self.port} not listening inside the container")


@attrs.define(frozen=True, slots=True)
class HttpHealthProbe:
    """Probe an HTTP health endpoint with basic authentication.

    Attributes:
        port: Service port inside the container.
        path: Health endpoint path.
        username: Basic auth user.
        password: Basic auth password.
        expected_status: Status code that marks the service healthy.
        timeout: Request timeout in seconds.
    """

    port: int
    path: str
    username: str
    password: str = attrs.field(repr=False)
    expected_status: int = 204
    timeout: float = 2.0
    name: str = "http"

    def url(self, container: DockerContainer) -> str:
        host, mapped = _mapped_address(container, self.port, self.name)
        return f"http://{host}:{mapped}{self.path}"

    def check(self, container: DockerContainer) -> None:
        url = self.url(container)
        try:
            response = httpx.get(url, auth=(self.username, self.password), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise ProbeFailedError(self.name, f"GET {url} failed: {type(e).__name__}") from e
        if response.status_code != self.expected_status:
            raise ProbeFailedError(
                self.name,
                f"GET {url} returned {response.status_code}, expected {self.expected_status}",
            )


def _probe_details(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, ProbeFailedError):
        return {"probe": exc.probe, "reason": exc.reason}
    return {}


@attrs.define(frozen=True, slots=True)
class ReadinessCheck:
    """All probes must pass together before the container counts as ready.

    Attributes:
        probes: Probes evaluated in order on every attempt.
        timeout: Seconds to keep polling.
        poll_interval: Initial wait between attempts.
        max_poll_interval: Upper bound of the exponential backoff.
    """

    probes: tuple[ReadinessProbe, ...] = attrs.field(converter=tuple, validator=attrs.validators.min_len(1))
    timeout: float = 60.0
    poll_interval: float = 0.5
    max_poll_interval: float = 5.0

    @classmethod
    def for_config(cls, config: InfluxDBFixtureConfig) -> "ReadinessCheck":
        """Build the port + authenticated health check for a fixture config."""
        return cls(
            probes=(
                PortListeningProbe(port=config.port, timeout=config.request_timeout),
                HttpHealthProbe(
                    port=config.port,
                    path=config.health_path,
                    username=config.username,
                    password=config.password,
                    expected_status=config.health_status,
                    timeout=config.request_timeout,
                ),
            ),
            timeout=config.startup_timeout,
            poll_interval=config.poll_interval,
            max_poll_interval=config.max_poll_interval,
        )

    def evaluate(self, container: DockerContainer) -> None:
        """Run one attempt: the container must be alive and every probe must pass.

        Raises:
            ContainerStartError: If the container is gone or has exited.
            ProbeFailedError: If a probe does not pass yet.
        """
        ensure_running(container)
        for probe in self.probes:
            probe.check(container)

    def wait_until_ready(self, container: DockerContainer) -> None:
        """Poll `evaluate()` until it passes.

        Raises:
            StartupTimeoutError: If the probes did not all pass within `timeout`.
            ContainerStartError: If the container exits while waiting.
        """
        retry = RetryWithBackoff(
            max_attempts=None,
            max_delay=self.timeout,
            wait_min=self.poll_interval,
            wait_max=self.max_poll_interval,
            multiplier=self.poll_interval,
            retry_exceptions=(ProbeFailedError,),
            logger=logger,
        )
        started = time.monotonic()
        try:
            retry.call(
                self.evaluate,
                container,
                before_sleep=create_retry_logger(logger, _probe_details, "Container not ready yet"),
            )
        except ProbeFailedError as e:
            msg = f"Container not ready after {self.timeout}s: {e}"
            raise StartupTimeoutError(msg) from e

        logger.info(
            "Container ready",
            extra={
                "probes": [probe.name for probe in self.probes],
                "elapsed_seconds": round(time.monotonic() - started, 2),
            },
        )


def ensure_running(container: DockerContainer) -> None:
    """Fail fast when the container died instead of waiting for the timeout.

    Raises:
        ContainerStartError: If the container no longer exists or has exited.
    """
    try:
        wrapped = container.get_wrapped_container()
        wrapped.reload()
    except NotFound as e:
        raise ContainerStartError("Container disappeared while starting") from e
    except (DockerException, RequestException) as e:
        raise ContainerStartError(f"Could not inspect container: {e}") from e

    if wrapped.status in _DEAD_STATES:
        try:
            tail = wrapped.logs(tail=20).decode("utf-8", errors="replace")
        except (DockerException, RequestException) as e:
            tail = f"<logs unavailable: {e}>"
        msg = f"Container {wrapped.short_id} is {wrapped.status} (exit code {wrapped.attrs['State'].get('ExitCode')}):\n{tail}"
        raise ContainerStartError(msg)
