#
# src/crossharness/execution.py
#
"""
Runs one test case script in the external runtime and classifies the outcome.

stdout and stderr are drained by two concurrent reader tasks into a single
log file. Every write, and the error-seen flag, goes through one lock.
"""
import asyncio
import os
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

import structlog

from crossharness.config.models import RuntimeConfig
from crossharness.exceptions import HarnessError, MissingArtifactError
from crossharness.protocols import (
    FailureReason,
    RunFail,
    RunOutcome,
    RunPass,
    RunRequest,
    RunState,
)
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("execution")

# Scripts locate the module under test through these variables:
#     const module = process.env['TEST_DOTNET_MODULE_PATH'];
#     const host = process.env['TEST_DOTNET_HOST_PATH'];
#     const test = host ? require(host).require(module) : require(module);
MODULE_PATH_ENV_VAR = "TEST_DOTNET_MODULE_PATH"
HOST_PATH_ENV_VAR = "TEST_DOTNET_HOST_PATH"

STREAM_LIMIT = 16 * 1024 * 1024
KILL_DRAIN_SECONDS = 5.0


def module_environment(module_path: str | Path, host_path: str | Path | None = None) -> dict[str, str]:
    """The handshake variables a test script reads to load the built module."""
    environment = {MODULE_PATH_ENV_VAR: str(module_path)}
    if host_path:
        environment[HOST_PATH_ENV_VAR] = str(host_path)
    return environment


class LogSink:
    """
    The shared, line-oriented log of one run.

    Each line is written and flushed under the lock, so concurrent readers
    never interleave within a line and nothing buffered is lost if the
    process dies. `error_seen` only ever goes from False to True.
    """

    def __init__(self, writer: TextIO):
        self._writer = writer
        self._lock = asyncio.Lock()
        self._error_seen = False
        self.lines_written = 0

    @property
    def error_seen(self) -> bool:
        return self._error_seen

    def write_header(self, environment: Mapping[str, str], command_line: str) -> None:
        for name, value in environment.items():
            self._writer.write(f"{name}={value}\n")
        self._writer.write("\n")
        self._writer.write(f"{command_line}\n")
        self._writer.write("\n")
        self._writer.flush()

    async def write_line(self, line: str, from_error_stream: bool = False) -> None:
        async with self._lock:
            self._writer.write(line + "\n")
            self._writer.flush()
            self.lines_written += 1
            if from_error_stream and line.strip():
                self._error_seen = True


async def _pump(stream: asyncio.StreamReader, sink: LogSink, from_error_stream: bool) -> None:
    """Copies one stream into the sink line by line, including lines longer than the reader limit."""
    partial = b""
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.LimitOverrunError as e:
            partial += await stream.readexactly(e.consumed)
            continue
        except asyncio.IncompleteReadError as e:
            # EOF; a last line without a newline is still a line.
            raw = partial + e.partial
            if raw:
                await sink.write_line(_decode_line(raw), from_error_stream)
            return
        await sink.write_line(_decode_line(partial + raw), from_error_stream)
        partial = b""


def _decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


class ExecutionHarness:
    """Launches the runtime for one script at a time; reusable across runs."""

    def __init__(self, runtime: RuntimeConfig | None = None, stream_limit: int = STREAM_LIMIT):
        self.runtime = runtime or RuntimeConfig()
        self.stream_limit = stream_limit
        self.state = RunState.NOT_STARTED
        self._log = log.bind(runtime=self.runtime.executable)

    def _set_state(self, state: RunState, **kw) -> None:
        self.state = state
        self._log.debug("Run state changed", state=state.name, **kw)

    async def run(self, request: RunRequest, timeout: float | None = None) -> RunOutcome:
        """
        Runs `request.script_path` and classifies the result.

        Args:
            request: Script, log file and extra environment for this run.
            timeout: Seconds before the process is killed. Falls back to the
                runtime config; None waits indefinitely.

        Returns:
            RunPass, or RunFail with the reason. A non-zero exit code takes
            precedence over output on the error stream.

        Raises:
            MissingArtifactError: The script file does not exist.
            HarnessError: The runtime executable could not be started.
        """
        timeout = timeout if timeout is not None else self.runtime.timeout
        script_path = request.script_path
        if not script_path.is_file():
            raise MissingArtifactError(str(script_path))

        self._set_state(RunState.NOT_STARTED, script=str(script_path))
        command = self.runtime.command(script_path)
        command_line = " ".join(command)
        run_log = self._log.bind(script=str(script_path), log_path=str(request.log_path))

        request.log_path.parent.mkdir(parents=True, exist_ok=True)
        with request.log_path.open("w", encoding="utf-8", newline="\n") as writer:
            sink = LogSink(writer)
            sink.write_header(request.environment, command_line)

            run_log.info("Starting runtime process", command=command_line, emoji_key="run")
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env={**os.environ, **request.environment},
                    limit=self.stream_limit,
                )
            except OSError as e:
                run_log.error("Runtime executable could not be started", error=str(e))
                raise HarnessError(
                    f"Runtime executable could not be started: '{self.runtime.executable}'. "
                    f"Is it installed and on PATH? Log: {request.log_path}",
                    details=e,
                ) from e
            self._set_state(RunState.RUNNING, pid=process.pid)

            readers = [
                asyncio.create_task(_pump(process.stdout, sink, False)),
                asyncio.create_task(_pump(process.stderr, sink, True)),
            ]
            timed_out = False
            try:
                try:
                    await asyncio.wait_for(process.wait(), timeout)
                except TimeoutError:
                    timed_out = True
                    run_log.warning("Runtime process timed out; killing it", timeout=timeout)
                    process.kill()
                    await process.wait()
                    # Orphaned grandchildren may keep the pipes open.
                    _, pending = await asyncio.wait(readers, timeout=KILL_DRAIN_SECONDS)
                    for task in pending:
                        task.cancel()
                # Both readers must be drained before error_seen is read.
                await asyncio.gather(*readers, return_exceptions=timed_out)
            finally:
                if process.returncode is None:
                    process.kill()
                    await process.wait()
                for task in readers:
                    if not task.done():
                        task.cancel()

            exit_code = process.returncode
            if timed_out:
                self._set_state(RunState.TIMED_OUT, exit_code=exit_code)
                writer.write(f"\n[crossharness] Process killed after {timeout} seconds.\n")
                writer.flush()
            else:
                self._set_state(RunState.COMPLETED, exit_code=exit_code)

        outcome = self._classify(request.log_path, exit_code, sink.error_seen, timed_out, timeout)
        if outcome.passed:
            run_log.info("Test case passed", exit_code=exit_code, emoji_key="pass")
        else:
            run_log.error(
                "Test case failed",
                reason=outcome.reason.name,
                exit_code=exit_code,
                emoji_key="fail",
            )
        return outcome

    @staticmethod
    def _classify(
        log_path: Path,
        exit_code: int | None,
        error_seen: bool,
        timed_out: bool = False,
        timeout: float | None = None,
    ) -> RunOutcome:
        if timed_out:
            return RunFail(
                reason=FailureReason.TIMED_OUT,
                log_path=log_path,
                exit_code=exit_code,
                message=(
                    f"Runtime process timed out after {timeout} seconds and was killed. "
                    f"Check the log for details: {log_path}"
                ),
            )
        if exit_code != 0:
            return RunFail(
                reason=FailureReason.EXIT_CODE_NON_ZERO,
                log_path=log_path,
                exit_code=exit_code,
                message=(
                    f"Runtime process exited with code: {exit_code}. "
                    f"Check the log for details: {log_path}"
                ),
            )
        if error_seen:
            return RunFail(
                reason=FailureReason.ERROR_STREAM_NON_EMPTY,
                log_path=log_path,
                exit_code=exit_code,
                message=f"Runtime process produced error output. Check the log for details: {log_path}",
            )
        return RunPass(log_path=log_path, exit_code=0)

# 🔼⚙️
