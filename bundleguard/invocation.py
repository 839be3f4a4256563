import logging
import os
import subprocess
import tempfile
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from bundleguard.blueprint import Blueprint
from bundleguard.constants import (
    BLUEPRINT_FILE_SUFFIX,
    DEFAULT_BUFFER_SIZE,
    INVOCATION_MARKER_ENV,
    SUPPORT_EMAIL,
)
from bundleguard.exceptions import BufferOverflowError, InvocationError

logger = logging.getLogger(__name__)

BUFFER_EXCEEDED_MESSAGE = (
    "Buffer size for protection summary has been exceeded. Increase the buffer size by providing "
    '"bufferSize" option to the protection function.'
)
INTERNAL_ERROR_MESSAGE = f"Internal error. Please contact {SUPPORT_EMAIL} for help resolving this issue."

READ_CHUNK_SIZE = 64 * 1024


@dataclass
class InvocationOptions:
    """
    Options for one tool invocation.

    Attributes:
        verbose: Pass --verbose to the tool.
        buffer_size: Maximum number of bytes captured from each output stream.
        timeout: Seconds to wait for the tool; None waits indefinitely.
    """

    verbose: bool = False
    buffer_size: int = DEFAULT_BUFFER_SIZE
    timeout: float | None = None


@dataclass(frozen=True)
class InvocationResult:
    stdout: str
    stderr: str


class BoundedStreamReader(threading.Thread):
    """Drain a pipe into memory, stopping once `limit` bytes were captured."""

    def __init__(self, stream: IO[bytes], limit: int, on_overflow: Callable[[], None]):
        super().__init__(daemon=True)
        self.stream = stream
        self.limit = limit
        self.on_overflow = on_overflow
        self.overflowed = False
        self._chunks: list[bytes] = []
        self._size = 0

    def run(self) -> None:
        try:
            while chunk := self.stream.read1(READ_CHUNK_SIZE):
                room = self.limit - self._size
                if len(chunk) > room:
                    self._chunks.append(chunk[:room])
                    self._size = self.limit
                    self.overflowed = True
                    self.on_overflow()
                    return
                self._chunks.append(chunk)
                self._size += len(chunk)
        finally:
            self.stream.close()

    @property
    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


def failure_message(stdout: str, detail: str) -> str:
    """Tool output captured before the failure, followed by the error detail."""
    return f"{stdout}\n{detail}"


class InvocationController:
    """
    Runs the protection tool over a blueprint.

    Args:
        binary: Path of the tool executable.
        env: Base environment for the child process; defaults to os.environ.
    """

    def __init__(self, binary: str | Path, env: Mapping[str, str] | None = None):
        self.binary = Path(binary)
        self.env = env

    def build_command(self, blueprint_file: str | Path, verbose: bool = False) -> list[str]:
        command = [str(self.binary), "--blueprint", str(blueprint_file)]
        if verbose:
            command.append("--verbose")
        return command

    def child_environment(self) -> dict[str, str]:
        """
        Environment for the tool process, marked as started by this package.

        The marker lives only in the child's environment; the parent process
        environment is left untouched.
        """
        child_env = dict(os.environ if self.env is None else self.env)
        child_env[INVOCATION_MARKER_ENV] = "true"
        return child_env

    def write_blueprint(self, blueprint: Blueprint) -> Path:
        """Serialize the blueprint to a uniquely named temporary file."""
        with tempfile.NamedTemporaryFile(
            "w", suffix=BLUEPRINT_FILE_SUFFIX, delete=False, encoding="utf-8"
        ) as blueprint_file:
            blueprint_file.write(blueprint.to_json())
        return Path(blueprint_file.name)

    def invoke(self, blueprint: Blueprint, options: InvocationOptions | None = None) -> InvocationResult:
        """
        Run the tool once and return its captured output.

        Args:
            blueprint: Normalized blueprint.
            options: Invocation options.

        Returns:
            The tool's stdout and stderr, verbatim.

        Raises:
            BufferOverflowError: If an output stream exceeded `buffer_size`.
            InvocationError: If the tool could not start, timed out or exited non-zero.
        """
        options = options or InvocationOptions()
        blueprint_path = self.write_blueprint(blueprint)
        try:
            return self._run(self.build_command(blueprint_path, options.verbose), options)
        finally:
            blueprint_path.unlink(missing_ok=True)

    def _run(self, command: list[str], options: InvocationOptions) -> InvocationResult:
        logger.debug(f"Running protection tool: {' '.join(command)}")
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self.child_environment(),
            )
        except OSError as e:
            raise InvocationError(f"Failed to start the protection tool at {self.binary}: {e}") from e

        def kill() -> None:
            if process.poll() is None:
                process.kill()

        stdout_reader = BoundedStreamReader(process.stdout, options.buffer_size, kill)
        stderr_reader = BoundedStreamReader(process.stderr, options.buffer_size, kill)
        stdout_reader.start()
        stderr_reader.start()

        timed_out = False
        try:
            process.wait(timeout=options.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            kill()
            process.wait()
        finally:
            stdout_reader.join()
            stderr_reader.join()

        stdout, stderr = stdout_reader.text, stderr_reader.text

        if stdout_reader.overflowed or stderr_reader.overflowed:
            raise BufferOverflowError(
                failure_message(stdout, BUFFER_EXCEEDED_MESSAGE), stdout=stdout, stderr=stderr
            )
        if timed_out:
            detail = f"Protection tool timed out after {options.timeout} seconds."
            raise InvocationError(failure_message(stdout, detail), stdout=stdout, stderr=stderr)
        if process.returncode != 0:
            logger.debug(f"Protection tool exited with code {process.returncode}")
            detail = stderr or INTERNAL_ERROR_MESSAGE
            raise InvocationError(failure_message(stdout, detail), stdout=stdout, stderr=stderr)

        return InvocationResult(stdout=stdout, stderr=stderr)
