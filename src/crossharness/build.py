#
# src/crossharness/build.py
#
"""
Drives the external build toolchain (MSBuild via the dotnet CLI) for one
module at a time and extracts a single named output property.
"""
import asyncio
import os
import re
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable, Mapping
from enum import Enum, auto
from pathlib import Path

import structlog
from attrs import define, field

from crossharness.exceptions import HarnessError, ToolchainNotFoundError
from crossharness.protocols import (
    BuildFailure,
    BuildOutcome,
    BuildRequest,
    BuildSuccess,
    Toolchain,
    ToolchainResult,
)
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("build")

DEFAULT_DOTNET = "dotnet"
_SDK_LINE = re.compile(r"^\s*(?P<version>\S+)\s+\[(?P<root>.+)\]\s*$")


@define(frozen=True, slots=True)
class SdkInstance:
    """One installed .NET SDK, as reported by `dotnet --list-sdks`."""

    version: str
    path: Path = field(converter=Path)

    @property
    def sort_key(self) -> tuple:
        release, _, prerelease = self.version.partition("-")
        numbers = tuple(int(part) if part.isdigit() else 0 for part in release.split("."))
        # A release outranks any prerelease of the same version.
        if not prerelease:
            return (numbers, 1, ())
        pre_parts = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part) for part in prerelease.split(".")
        )
        return (numbers, 0, pre_parts)

    def registration_environment(self) -> dict[str, str]:
        """Variables that point child MSBuild processes at this SDK."""
        return {
            "MSBUILD_EXE_PATH": str(self.path / "MSBuild.dll"),
            "MSBuildExtensionsPath": str(self.path) + os.sep,
            "MSBuildSDKsPath": str(self.path / "Sdks"),
        }


def parse_sdk_list(output: str) -> list[SdkInstance]:
    """Parses `<version> [<sdk-root>]` lines; unparseable lines are skipped."""
    instances = []
    for line in output.splitlines():
        match = _SDK_LINE.match(line)
        if match:
            version = match.group("version")
            instances.append(SdkInstance(version, Path(match.group("root")) / version))
    return instances


def query_sdk_instances(dotnet: str = DEFAULT_DOTNET) -> list[SdkInstance]:
    executable = shutil.which(dotnet)
    if executable is None:
        raise ToolchainNotFoundError(f"dotnet executable not found: '{dotnet}'. Is it installed and on PATH?")
    try:
        completed = subprocess.run(
            [executable, "--list-sdks"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ToolchainNotFoundError("Failed to list installed .NET SDKs.", details=e) from e
    return parse_sdk_list(completed.stdout)


class InitializerState(Enum):
    UNINITIALIZED = auto()
    INITIALIZED = auto()


class ToolchainInitializer:
    """
    Locates and registers the toolchain installation, at most once.

    When several SDKs are installed the highest version wins. The check-and-set
    runs under a lock so concurrent first callers discover only once.
    """

    def __init__(
        self,
        dotnet: str = DEFAULT_DOTNET,
        query: Callable[[str], list[SdkInstance]] = query_sdk_instances,
    ):
        self.dotnet = dotnet
        self._query = query
        self._lock = threading.Lock()
        self._state = InitializerState.UNINITIALIZED
        self._instance: SdkInstance | None = None

    @property
    def state(self) -> InitializerState:
        return self._state

    @property
    def instance(self) -> SdkInstance | None:
        return self._instance

    def ensure_initialized(self) -> SdkInstance:
        with self._lock:
            if self._state is InitializerState.INITIALIZED and self._instance is not None:
                return self._instance

            instances = self._query(self.dotnet)
            if not instances:
                raise ToolchainNotFoundError("No .NET SDK installation found.")
            selected = max(instances, key=lambda inst: inst.sort_key)
            log.info(
                "Registered build toolchain",
                version=selected.version,
                path=str(selected.path),
                candidates=len(instances),
            )
            self._instance = selected
            self._state = InitializerState.INITIALIZED
            return selected

    def environment(self) -> dict[str, str]:
        return self.ensure_initialized().registration_environment()


_default_initializer: ToolchainInitializer | None = None
_default_initializer_lock = threading.Lock()


def default_initializer(dotnet: str = DEFAULT_DOTNET) -> ToolchainInitializer:
    """The process-wide initializer shared by orchestrators that don't bring their own."""
    global _default_initializer
    with _default_initializer_lock:
        if _default_initializer is None:
            _default_initializer = ToolchainInitializer(dotnet)
        return _default_initializer


class EvaluationContext:
    """
    Scratch state for exactly one build.

    Owns a private temporary directory and a copy of the registration
    environment; both are discarded on exit, success or failure.
    """

    def __init__(self, environment: Mapping[str, str] | None = None):
        self.environment: dict[str, str] = dict(environment or {})
        self._tmp: tempfile.TemporaryDirectory | None = None

    @property
    def work_dir(self) -> Path:
        if self._tmp is None:
            raise HarnessError("EvaluationContext used outside of its 'with' block.")
        return Path(self._tmp.name)

    @property
    def closed(self) -> bool:
        return self._tmp is None

    def __enter__(self) -> "EvaluationContext":
        self._tmp = tempfile.TemporaryDirectory(prefix="crossharness-build-")
        return self

    def __exit__(self, *exc_info) -> None:
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None


def _escape_property_value(value: str) -> str:
    # MSBuild splits -property values on ';' and ','.
    return value.replace("%", "%25").replace(";", "%3B").replace(",", "%2C")


def msbuild_response_lines(request: BuildRequest) -> list[str]:
    verbosity = "diagnostic" if request.verbose else "normal"
    lines = [
        "-nologo",
        "-nodeReuse:false",
        f"-target:{';'.join(request.targets)}",
    ]
    lines.extend(
        f'-property:{name}="{_escape_property_value(value)}"' for name, value in request.properties.items()
    )
    lines.append(f"-getProperty:{request.return_property}")
    lines.append("-fileLogger")
    lines.append(f'-fileLoggerParameters:LogFile="{request.log_path}";Verbosity={verbosity}')
    return lines


class MSBuildToolchain(Toolchain):
    """
    Implements the Toolchain protocol with `dotnet msbuild`.

    Arguments go through a response file in the evaluation context, so long
    property sets never hit command line limits.
    """

    def __init__(self, dotnet: str = DEFAULT_DOTNET):
        self.dotnet = dotnet

    def command(self, request: BuildRequest, response_file: Path) -> list[str]:
        return [self.dotnet, "msbuild", str(request.project_path), f"@{response_file}"]

    async def invoke(self, request: BuildRequest, context: EvaluationContext) -> ToolchainResult:
        response_file = context.work_dir / "build.rsp"
        response_file.write_text("\n".join(msbuild_response_lines(request)) + "\n", encoding="utf-8")
        command = self.command(request, response_file)

        toolchain_log = log.bind(command=" ".join(command))
        toolchain_log.debug("Invoking toolchain")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=request.project_path.parent,
                env={**os.environ, **context.environment},
            )
        except FileNotFoundError as e:
            toolchain_log.error("Toolchain executable not found", executable=self.dotnet)
            raise ToolchainNotFoundError(f"Toolchain executable not found: '{self.dotnet}'.", details=e) from e

        stdout_bytes, stderr_bytes = await process.communicate()
        exit_code = process.returncode if process.returncode is not None else -1
        return ToolchainResult(
            exit_code=exit_code,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
        )


class BuildOrchestrator:
    """Builds one module per call and reads back one output property."""

    def __init__(
        self,
        toolchain: Toolchain | None = None,
        initializer: ToolchainInitializer | None = None,
    ):
        self._initializer = initializer or default_initializer()
        self._toolchain = toolchain or MSBuildToolchain(self._initializer.dotnet)
        self._log = log.bind(toolchain=type(self._toolchain).__name__)

    async def build(self, request: BuildRequest) -> BuildOutcome:
        """
        Builds `request.project_path` and extracts `request.return_property`.

        Returns:
            BuildSuccess with the property value ("" when the property is
            unset), or BuildFailure when the toolchain reports failure. The
            log file at `request.log_path` is written in both cases.
        """
        # The toolchain must be registered before anything evaluates a project.
        # First use shells out to `dotnet --list-sdks`, so keep it off the loop.
        environment = await asyncio.to_thread(self._initializer.environment)

        request.log_path.parent.mkdir(parents=True, exist_ok=True)
        # A log left by an earlier build must not stand in for this one.
        request.log_path.unlink(missing_ok=True)
        build_log = self._log.bind(
            project=str(request.project_path),
            targets=list(request.targets),
            log_path=str(request.log_path),
        )
        build_log.info("Starting build", emoji_key="build")

        with EvaluationContext(environment) as context:
            result = await self._toolchain.invoke(request, context)

        if not result.success:
            _ensure_failure_logged(request.log_path, result)
            build_log.error("Build failed", exit_code=result.exit_code, emoji_key="fail")
            return BuildFailure(log_path=request.log_path, exit_code=result.exit_code)

        return_value = result.stdout.strip()
        build_log.info(
            "Build succeeded",
            return_property=request.return_property,
            return_value=return_value,
            emoji_key="pass",
        )
        return BuildSuccess(return_value=return_value, log_path=request.log_path)


def _ensure_failure_logged(log_path: Path, result: ToolchainResult) -> None:
    """Appends the captured toolchain output when its own log said nothing."""
    if log_path.exists() and log_path.stat().st_size > 0:
        return
    with log_path.open("a", encoding="utf-8") as writer:
        writer.write(f"Toolchain exited with code {result.exit_code}.\n")
        for text in (result.stdout, result.stderr):
            if text.strip():
                writer.write(text if text.endswith("\n") else text + "\n")

# 🔼⚙️
