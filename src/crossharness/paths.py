#
# src/crossharness/paths.py
#
"""
Locates the repository and test case roots, derives log file paths and the
canonical platform tag of the running machine.
"""
import functools
import platform
import sys
from pathlib import Path
from typing import Protocol

import structlog

from crossharness.exceptions import NotFoundError, UnsupportedPlatformError
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("paths")

SOLUTION_MARKER = "*.sln"
TEST_CASES_RELATIVE_PATH: tuple[str, ...] = ("Test", "TestCases")
DEFAULT_CONFIGURATION = "Debug"

OS_TAGS: dict[str, str] = {
    "windows": "win",
    "darwin": "osx",
    "linux": "linux",
}

ARCH_TAGS: dict[str, str] = {
    "x86": "x86",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x64": "x64",
    "x86_64": "x64",
    "amd64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv8": "arm64",
}


class FileSystem(Protocol):
    """The directory probing the root search depends on."""

    def glob(self, directory: Path, pattern: str) -> list[Path]: ...

    def is_dir(self, path: Path) -> bool: ...


class LocalFileSystem:
    """FileSystem backed by the real disk."""

    def glob(self, directory: Path, pattern: str) -> list[Path]:
        try:
            return [p for p in directory.glob(pattern) if p.is_file()]
        except OSError:
            return []

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()


LOCAL_FS = LocalFileSystem()


def resolve_repo_root(
    anchor: Path | None = None,
    marker: str = SOLUTION_MARKER,
    fs: FileSystem = LOCAL_FS,
) -> Path:
    """
    Walks upward from `anchor` to the first directory holding a solution marker.

    Args:
        anchor: Where the search starts. Defaults to the current directory.
        marker: Glob pattern for the marker file at the repository root.
        fs: Filesystem to probe.

    Returns:
        The repository root directory.

    Raises:
        NotFoundError: The filesystem root was reached without a match.
    """
    start = (anchor or Path.cwd()).absolute()
    for directory in (start, *start.parents):
        if fs.glob(directory, marker):
            log.debug("Repository root found", root=str(directory), marker=marker)
            return directory
    raise NotFoundError("Solution directory not found.", path=str(start))


@functools.cache
def repo_root(anchor: Path | None = None, marker: str = SOLUTION_MARKER) -> Path:
    """Process-wide cached `resolve_repo_root` over the local filesystem."""
    return resolve_repo_root(anchor, marker)


def resolve_test_case_root(
    root: Path,
    relative: tuple[str, ...] = TEST_CASES_RELATIVE_PATH,
    fs: FileSystem = LOCAL_FS,
) -> Path:
    test_cases_dir = root.joinpath(*relative)
    if not fs.is_dir(test_cases_dir):
        raise NotFoundError("Test cases directory not found.", path=str(test_cases_dir))
    return test_cases_dir


def module_output_dir(root: Path, module_name: str, configuration: str = DEFAULT_CONFIGURATION) -> Path:
    """Creates (if needed) and returns the per-module log directory."""
    log_dir = root / "out" / "obj" / configuration / "TestCases" / module_name
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def build_log_path(root: Path, module_name: str, configuration: str = DEFAULT_CONFIGURATION) -> Path:
    return module_output_dir(root, module_name, configuration) / "build.log"


def run_log_path(
    root: Path,
    prefix: str,
    module_name: str,
    case_name: str,
    configuration: str = DEFAULT_CONFIGURATION,
) -> Path:
    return module_output_dir(root, module_name, configuration) / f"{prefix}-{case_name}.log"


def current_platform_tag(system: str | None = None, machine: str | None = None) -> str:
    """
    Returns the `<os>-<arch>` runtime identifier, e.g. `linux-x64`.

    Only win/osx/linux on x86/x64/arm64 are supported; anything else raises
    UnsupportedPlatformError.
    """
    system = platform.system() if system is None else system
    if machine is None:
        machine = platform.machine()
        # A 32-bit interpreter on a 64-bit OS runs as an x86 process.
        if ARCH_TAGS.get(machine.lower()) == "x64" and sys.maxsize <= 2**32:
            machine = "x86"

    os_tag = OS_TAGS.get(system.lower())
    if os_tag is None:
        raise UnsupportedPlatformError(f"Platform not supported: {system or '<unknown>'}")

    arch_tag = ARCH_TAGS.get(machine.lower())
    if arch_tag is None:
        raise UnsupportedPlatformError(f"CPU architecture not supported: {machine or '<unknown>'}")

    return f"{os_tag}-{arch_tag}"

# 🔼⚙️
