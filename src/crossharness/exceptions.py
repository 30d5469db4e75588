# src/crossharness/exceptions.py

"""
Custom exceptions for the crossharness build and execution harness.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crossharness.protocols import RunFail


class HarnessError(Exception):
    """Base class for all crossharness errors."""

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(HarnessError):
    """Raised when the harness configuration is missing or invalid."""

    pass


class NotFoundError(HarnessError):
    """A required directory (repository root, test case root) does not exist."""

    def __init__(self, message: str, path: str | None = None, details: Exception | None = None):
        self.path = path
        full_message = message
        if path:
            full_message += f" (Searched: '{path}')"
        super().__init__(full_message, details=details)


class UnsupportedPlatformError(HarnessError):
    """The running OS or CPU architecture has no platform tag."""

    pass


class ToolchainNotFoundError(HarnessError):
    """No build toolchain installation could be located."""

    pass


class MissingArtifactError(HarnessError):
    """
    A script the runner expected is absent.

    Points at the build stage rather than the runtime: the artifact was
    never produced, so the runtime was never launched.
    """

    def __init__(self, script_path: str):
        self.script_path = script_path
        super().__init__(f"Script file not found: {script_path}")


class BuildError(HarnessError):
    """A module could not be built, so none of its test cases can run."""

    def __init__(self, module_name: str, log_path: str, exit_code: int | None = None):
        self.module_name = module_name
        self.log_path = log_path
        self.exit_code = exit_code
        message = f"Build failed for module '{module_name}'"
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        super().__init__(f"{message}. Check the log for details: {log_path}")


class RunFailure(HarnessError):
    """A test case run was classified as failed."""

    def __init__(self, outcome: "RunFail"):
        self.outcome = outcome
        super().__init__(outcome.message)

# 🔼⚙️
