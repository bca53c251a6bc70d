"""
Supervised subprocess execution for search backends.

ProcessSupervisor wraps ``asyncio.create_subprocess_exec`` in an explicit
state machine::

    RUNNING -> (timeout) -> SIGTERM_SENT -> (grace expires) -> SIGKILL_SENT -> EXITED

Every run resolves exactly once, through a single future, with one of:
natural exit, timeout, output limit exceeded or spawn error. Timeouts and
output-limit breaches are reported in the ProcessResult together with the
partial output collected so far; nothing is raised to the caller.

Only one timeout source exists per run (a ``loop.call_later`` handle); no
``asyncio.wait_for`` or other runtime timeout is layered on top.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence

from ..config import TOOLING_ALLOWED_ENV_VARS
from ..exceptions import (
    BackendError,
    OutputLimitExceededError,
    SearchTimeoutError,
    SpawnError,
)
from .environment import build_child_env

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_KILL_GRACE_SECONDS = 5.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
DEFAULT_SINGLE_VALUE_MAX_OUTPUT_BYTES = 64 * 1024
DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0

_READ_CHUNK_SIZE = 64 * 1024


class ProcessState(Enum):
    """Lifecycle states of a supervised process."""

    RUNNING = "running"
    SIGTERM_SENT = "sigterm_sent"
    SIGKILL_SENT = "sigkill_sent"
    EXITED = "exited"


@dataclass
class ProcessResult:
    """Outcome of one supervised run.

    exit_code is None unless the process exited on its own before the run
    was resolved by a timeout, output-limit breach or spawn error.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    success: bool = False
    timed_out: bool = False
    output_limit_exceeded: bool = False
    error: Optional[str] = None

    @property
    def spawn_failed(self) -> bool:
        return (
            self.error is not None
            and self.exit_code is None
            and not self.timed_out
            and not self.output_limit_exceeded
        )

    def raise_for_status(self, ok_exit_codes: Iterable[int] = (0, 1)) -> None:
        """Raise the matching CodeSearchError if the run did not succeed.

        Args:
            ok_exit_codes: Exit codes treated as success; search backends
                use 1 for "no matches"
        """
        if self.timed_out:
            raise SearchTimeoutError(self.error or "Command timed out")
        if self.output_limit_exceeded:
            raise OutputLimitExceededError(self.error or "Output size limit exceeded")
        if self.spawn_failed:
            raise SpawnError(self.error or "Failed to spawn command")
        if self.exit_code not in set(ok_exit_codes):
            raise BackendError(
                f"Command exited with code {self.exit_code}",
                self.stderr.strip() or None,
                exit_code=self.exit_code,
            )


class ProcessSupervisor:
    """Runs one backend command under timeout and output-size limits.

    Instances are single-use: call ``run()`` once.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, Optional[str]]] = None,
        allowed_env_vars: Optional[Sequence[str]] = None,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        kill_grace: float = DEFAULT_KILL_GRACE_SECONDS,
    ):
        self.command = command
        self.args: List[str] = list(args)
        self.timeout = timeout
        self.cwd = cwd
        self.env = env
        self.allowed_env_vars = allowed_env_vars
        self.max_output_bytes = max_output_bytes
        self.kill_grace = kill_grace

        self.state: Optional[ProcessState] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._future: Optional[asyncio.Future] = None
        self._resolved = False
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._grace_handle: Optional[asyncio.TimerHandle] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._total_output = 0

    @property
    def returncode(self) -> Optional[int]:
        """Exit status once the child has been reaped (negative for signals on POSIX)."""
        if self._process is None:
            return None
        return self._process.returncode

    @property
    def timers_active(self) -> bool:
        """True while a timeout or kill-grace timer is still pending."""
        return self._timeout_handle is not None or self._grace_handle is not None

    async def run(self) -> ProcessResult:
        """Spawn the command and wait for its single resolution."""
        if self._future is not None:
            raise RuntimeError("ProcessSupervisor.run() may only be called once")

        loop = asyncio.get_running_loop()
        self._future = loop.create_future()
        child_env = build_child_env(self.env, self.allowed_env_vars)

        logger.debug(f"Spawning {self.command} {self.args}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env=child_env,
            )
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to spawn command '{self.command}': {e}")
            self._resolve(
                ProcessResult(error=f"Failed to spawn command '{self.command}': {e}")
            )
            return self._future.result()

        self.state = ProcessState.RUNNING
        self._timeout_handle = loop.call_later(self.timeout, self._on_timeout)
        self._monitor_task = loop.create_task(self._monitor())

        try:
            return await asyncio.shield(self._future)
        except asyncio.CancelledError:
            # Caller went away; do not leave the child or its timers behind
            self._cancel_timers()
            self._signal(kill=True)
            raise

    async def wait_closed(self) -> None:
        """Wait until the process has exited and its pipes are drained.

        ``run()`` may return before this point after a timeout or
        output-limit breach.
        """
        if self._monitor_task is not None:
            await self._monitor_task

    async def _monitor(self) -> None:
        process = self._process
        await asyncio.gather(
            self._pump(process.stdout, self._stdout),
            self._pump(process.stderr, self._stderr),
        )
        returncode = await process.wait()
        self._on_exit(returncode)

    async def _pump(self, stream: asyncio.StreamReader, buffer: bytearray) -> None:
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                return
            if self._resolved:
                # Keep draining so the child never blocks on a full pipe
                continue

            self._total_output += len(chunk)
            if self._total_output > self.max_output_bytes:
                overflow = self._total_output - self.max_output_bytes
                buffer.extend(chunk[: len(chunk) - overflow])
                self._on_output_limit()
                continue

            buffer.extend(chunk)

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._resolved:
            return

        logger.warning(
            f"Command '{self.command}' timed out after {self.timeout}s, sending SIGTERM"
        )
        self.state = ProcessState.SIGTERM_SENT
        self._signal(kill=False)
        self._grace_handle = asyncio.get_running_loop().call_later(
            self.kill_grace, self._on_grace_expired
        )
        self._resolve(
            self._partial_result(
                timed_out=True, error=f"Command timeout after {self.timeout}s"
            )
        )

    def _on_grace_expired(self) -> None:
        self._grace_handle = None
        if self._process is None or self._process.returncode is not None:
            return

        logger.warning(
            f"Command '{self.command}' ignored SIGTERM for {self.kill_grace}s, sending SIGKILL"
        )
        self.state = ProcessState.SIGKILL_SENT
        self._signal(kill=True)

    def _on_output_limit(self) -> None:
        if self._resolved:
            return

        logger.warning(
            f"Command '{self.command}' exceeded output limit of "
            f"{self.max_output_bytes} bytes, sending SIGKILL"
        )
        self._cancel_timers()
        self.state = ProcessState.SIGKILL_SENT
        self._signal(kill=True)
        self._resolve(
            self._partial_result(
                output_limit_exceeded=True, error="Output size limit exceeded"
            )
        )

    def _on_exit(self, returncode: int) -> None:
        self.state = ProcessState.EXITED
        self._cancel_timers()
        if self._resolved:
            return

        logger.debug(f"Command '{self.command}' exited with code {returncode}")
        self._resolve(
            ProcessResult(
                stdout=self._decode(self._stdout),
                stderr=self._decode(self._stderr),
                exit_code=returncode,
                success=returncode == 0,
            )
        )

    def _partial_result(self, **kwargs) -> ProcessResult:
        return ProcessResult(
            stdout=self._decode(self._stdout),
            stderr=self._decode(self._stderr),
            **kwargs,
        )

    def _signal(self, kill: bool) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            if kill:
                process.kill()
            else:
                process.terminate()
        except ProcessLookupError:
            logger.debug(f"Process for '{self.command}' already gone")

    def _cancel_timers(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None

    def _resolve(self, result: ProcessResult) -> None:
        if self._resolved or self._future.done():
            return
        self._resolved = True
        self._future.set_result(result)

    @staticmethod
    def _decode(data: bytearray) -> str:
        return bytes(data).decode("utf-8", errors="replace")


async def run_process(
    command: str,
    args: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, Optional[str]]] = None,
    allowed_env_vars: Optional[Sequence[str]] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    kill_grace: float = DEFAULT_KILL_GRACE_SECONDS,
) -> ProcessResult:
    """Run a command under supervision and return its ProcessResult."""
    supervisor = ProcessSupervisor(
        command,
        args,
        timeout=timeout,
        cwd=cwd,
        env=env,
        allowed_env_vars=allowed_env_vars,
        max_output_bytes=max_output_bytes,
        kill_grace=kill_grace,
    )
    return await supervisor.run()


async def check_command_success(
    command: str,
    args: Sequence[str],
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    allowed_env_vars: Optional[Sequence[str]] = None,
    max_output_bytes: int = DEFAULT_SINGLE_VALUE_MAX_OUTPUT_BYTES,
) -> bool:
    """Return True if the command exits with code 0 (availability probes)."""
    result = await run_process(
        command,
        args,
        timeout=timeout,
        allowed_env_vars=allowed_env_vars,
        max_output_bytes=max_output_bytes,
    )
    return result.success


async def collect_stdout(
    command: str,
    args: Sequence[str],
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    allowed_env_vars: Optional[Sequence[str]] = None,
    max_output_bytes: int = DEFAULT_SINGLE_VALUE_MAX_OUTPUT_BYTES,
) -> Optional[str]:
    """Return trimmed stdout of a single-value command, or None on failure."""
    result = await run_process(
        command,
        args,
        timeout=timeout,
        allowed_env_vars=(
            allowed_env_vars if allowed_env_vars is not None else TOOLING_ALLOWED_ENV_VARS
        ),
        max_output_bytes=max_output_bytes,
    )
    if not result.success:
        return None
    return result.stdout.strip() or None
