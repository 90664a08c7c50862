"""Exception hierarchy for the InfluxDB test fixture.

All exceptions inherit from `FixtureError` so test sessions can treat any
bootstrap failure uniformly, while the subclasses tell the caller which step
of Configure → Start → WaitReady → RunSetupScript failed.

## Exception Hierarchy

- `ImageIncompatibilityError`: requested image is not the pinned image
- `ContainerStartError`: container could not be created or started, or died
  - `ContainerRuntimeUnavailableError`: Docker daemon is unreachable
- `StartupTimeoutError`: readiness was never reached
- `ScriptTransferError`: setup script could not be copied into the container
- `SetupScriptError`: setup command exited non-zero or its exec failed
- `InterruptedOperationError`: an in-container command was interrupted
- `FixtureStateError`: operation called in the wrong lifecycle phase

## Usage

```python
from influxdb_fixture import create
from influxdb_fixture.exceptions import FixtureError, StartupTimeoutError

try:
    handle = create()
except StartupTimeoutError:
    ...
except FixtureError as e:
    raise RuntimeError(f"InfluxDB fixture unavailable: {e}") from e
```
"""

from foundation.exceptions import UpstreamError


class FixtureError(Exception):
    """Base exception class for all fixture bootstrap errors."""


class ImageIncompatibilityError(FixtureError):
    """Raised when a requested image does not match the pinned image.

    Raised during configuration, before any container exists.
    """


class ContainerStartError(FixtureError):
    """Raised when the container runtime cannot create or start the container.

    Also raised when the container exits while readiness is being awaited.
    """


class ContainerRuntimeUnavailableError(ContainerStartError, UpstreamError):
    """Raised when the Docker daemon cannot be reached at all."""


class StartupTimeoutError(FixtureError):
    """Raised when the readiness check does not pass within the startup timeout.

    We use `StartupTimeoutError` instead of Python's built-in `TimeoutError`
    to keep every bootstrap failure inside the `FixtureError` hierarchy.
    """


class ScriptTransferError(FixtureError):
    """Raised when the setup script cannot be read or copied into the container."""


class SetupScriptError(FixtureError):
    """Raised when a setup command fails inside the container.

    Attributes:
        command: The command that was executed.
        exit_code: Exit code reported by the container runtime, or None when
            the exec itself failed.
        output: Combined stdout/stderr of the command, decoded as UTF-8.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.exit_code = exit_code
        self.output = output


class InterruptedOperationError(FixtureError):
    """Raised when an in-container command is interrupted before it completes."""


class FixtureStateError(FixtureError):
    """Raised when a fixture operation is called in the wrong lifecycle phase."""
