"""Lifecycle of the spawned tool server process."""

from __future__ import annotations

import logging
import subprocess
from typing import IO, List, Optional, Sequence

from transport.errors import SpawnError

logger = logging.getLogger(__name__)

# Seconds to wait for SIGTERM before falling back to SIGKILL
STOP_GRACE_PERIOD = 3.0


class ChildProcessChannel:
    """Owns one child process and exposes its stdin/stdout pipes.

    The command line is ``[command, *args, script_path, *allowed_directories]``.
    stderr is inherited so server diagnostics land on the parent's console.
    """

    def __init__(
        self,
        command: str,
        script_path: str,
        allowed_directories: Sequence[str] = (),
        *,
        args: Sequence[str] = ("run", "-A"),
        cwd: Optional[str] = None,
    ):
        self.command = command
        self.args = list(args)
        self.script_path = script_path
        self.allowed_directories = list(allowed_directories)
        self.cwd = cwd
        self._process: Optional[subprocess.Popen] = None
        self._stopping = False
        self._owner: Optional[object] = None

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.args, self.script_path, *self.allowed_directories]

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def stdin(self) -> IO[bytes]:
        if self._process is None or self._process.stdin is None:
            raise RuntimeError("Channel has not been started")
        return self._process.stdin

    @property
    def stdout(self) -> IO[bytes]:
        if self._process is None or self._process.stdout is None:
            raise RuntimeError("Channel has not been started")
        return self._process.stdout

    @property
    def started(self) -> bool:
        return self._process is not None

    @property
    def stopping(self) -> bool:
        """True once stop() was requested; an exit after that is expected."""
        return self._stopping

    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def bind(self, owner: object) -> None:
        """Claim the channel for a single transport."""
        if self._owner is not None and self._owner is not owner:
            raise RuntimeError("Channel is already bound to another transport")
        self._owner = owner

    def start(self) -> None:
        """Spawn the process.

        Raises:
            SpawnError: if the executable cannot be launched
        """
        if self._process is not None:
            raise RuntimeError("Channel already started")
        try:
            self._process = subprocess.Popen(
                self.argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=None,
                cwd=self.cwd,
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn MCP server {self.command!r}: {e}") from e
        logger.info("Spawned MCP server pid=%s: %s", self.pid, " ".join(self.argv))

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for exit and return the exit code (None if never started)."""
        if self._process is None:
            return None
        return self._process.wait(timeout=timeout)

    def stop(self) -> None:
        """Terminate the process; no-op if it never started or already exited."""
        self._stopping = True
        proc = self._process
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=STOP_GRACE_PERIOD)
        except subprocess.TimeoutExpired:
            logger.warning("MCP server pid=%s ignored SIGTERM; killing", self.pid)
            proc.kill()
            proc.wait()
        logger.info("MCP server stopped.")
