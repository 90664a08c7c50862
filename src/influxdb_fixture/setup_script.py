"""Delivery and execution of the one-time setup script.

The script is copied into the container as a tar archive through the
Docker API and then run in two steps:

1. ``chmod -x <script>``: the copied file keeps host permission bits that
   the image's shell refuses to run directly, so the bit is cleared and
2. ``<interpreter> <script>``: the script is run through an explicit shell.

Both steps must exit with status 0. Every failure, including an exec that
is cut short, is raised to the caller.
"""

import io
import logging
import tarfile
import time
from pathlib import Path, PurePosixPath

import attrs
from docker.errors import DockerException
from requests.exceptions import RequestException
from testcontainers.core.container import DockerContainer

from .config import InfluxDBFixtureConfig
from .exceptions import InterruptedOperationError, ScriptTransferError, SetupScriptError

logger = logging.getLogger(__name__)


@attrs.define(frozen=True, slots=True)
class SetupScript:
    """A host-side shell script run once inside a started container.

    Attributes:
        source: Script on the host.
        container_path: Absolute destination path inside the container.
        interpreter: Shell used to run the script.
    """

    source: Path = attrs.field(converter=Path)
    container_path: str = attrs.field(default="/influx-setup.sh")
    interpreter: str = "/bin/bash"

    @container_path.validator
    def _check_container_path(self, attribute: attrs.Attribute, value: str) -> None:
        path = PurePosixPath(value)
        if not path.is_absolute() or not path.name:
            raise ValueError(f"container_path must be an absolute file path, got {value!r}")

    @classmethod
    def for_config(cls, config: InfluxDBFixtureConfig) -> "SetupScript":
        return cls(
            source=config.setup_script,
            container_path=config.container_script_path,
            interpreter=config.interpreter,
        )

    def archive(self) -> bytes:
        """Pack the script into an in-memory tar archive for ``put_archive``.

        Raises:
            ScriptTransferError: If the script cannot be read.
        """
        try:
            data = self.source.read_bytes()
        except OSError as e:
            raise ScriptTransferError(f"Cannot read setup script {self.source}: {e}") from e

        target = PurePosixPath(self.container_path)
        info = tarfile.TarInfo(name=target.name)
        info.size = len(data)
        info.mode = 0o644
        info.mtime = int(time.time())

        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            tar.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    def transfer(self, container: DockerContainer) -> None:
        """Copy the script into the container filesystem.

        Raises:
            ScriptTransferError: If the script cannot be read or uploaded.
        """
        payload = self.archive()
        target = PurePosixPath(self.container_path)
        try:
            accepted = container.get_wrapped_container().put_archive(str(target.parent), payload)
        except (DockerException, RequestException) as e:
            raise ScriptTransferError(f"Copying {self.source} to {target} failed: {e}") from e
        if not accepted:
            raise ScriptTransferError(f"Container rejected archive for {target}")

        logger.debug("Setup script copied", extra={"source": str(self.source), "target": str(target)})

    def commands(self) -> list[list[str]]:
        """Commands run by `run()`, in order."""
        return [
            ["chmod", "-x", self.container_path],
            [self.interpreter, self.container_path],
        ]

    def run(self, container: DockerContainer) -> None:
        """Execute the script inside the container.

        Raises:
            SetupScriptError: If a step exits non-zero or its exec fails.
            InterruptedOperationError: If an exec is interrupted.
        """
        for command in self.commands():
            _exec_checked(container, command)
        logger.info("Setup script finished", extra={"script": self.container_path})


def _exec_checked(container: DockerContainer, command: list[str]) -> str:
    try:
        result = container.exec(command)
    except InterruptedError as e:
        msg = f"Interrupted while running {' '.join(command)!r}"
        raise InterruptedOperationError(msg) from e
    except (DockerException, RequestException) as e:
        msg = f"Could not run {' '.join(command)!r}: {e}"
        raise SetupScriptError(msg, command=command) from e

    output = (result.output or b"").decode("utf-8", errors="replace")
    if result.exit_code != 0:
        msg = f"{' '.join(command)!r} exited with {result.exit_code}"
        logger.error(
            "Setup command failed",
            extra={"command": command, "exit_code": result.exit_code, "output": output},
        )
        raise SetupScriptError(msg, command=command, exit_code=result.exit_code, output=output)

    logger.debug("Setup command succeeded", extra={"command": command})
    return output
