#
# src/crossharness/protocols.py
#
"""
Defines protocols and data structures for building and running test cases.
"""
from collections.abc import Mapping
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from attrs import define, field

from crossharness.exceptions import RunFailure

if TYPE_CHECKING:
    from crossharness.build import EvaluationContext


def _as_path(value: str | Path) -> Path:
    return Path(value)


def _as_str_mapping(value: Mapping[str, str] | None) -> dict[str, str]:
    return {str(k): str(v) for k, v in (value or {}).items()}


@define(frozen=True, slots=True, order=True)
class TestCaseId:
    """Identifies one runnable scenario: a script file inside a module directory."""

    __test__ = False  # Not a pytest test class.

    module_name: str
    case_name: str

    @classmethod
    def parse(cls, value: str) -> "TestCaseId":
        """Parse the `"<module>/<case>"` form produced by `str()`."""
        module_name, sep, case_name = value.partition("/")
        if not sep or not module_name or not case_name or "/" in case_name:
            raise ValueError(f"Invalid test case id '{value}', expected '<module>/<case>'")
        return cls(module_name, case_name)

    def __str__(self) -> str:
        return f"{self.module_name}/{self.case_name}"


@define(frozen=True, slots=True)
class BuildRequest:
    """Fully specifies one build invocation."""

    project_path: Path = field(converter=_as_path)
    targets: tuple[str, ...] = field(converter=tuple)
    properties: Mapping[str, str] = field(converter=_as_str_mapping)
    return_property: str
    log_path: Path = field(converter=_as_path)
    verbose: bool = False

    @targets.validator
    def _check_targets(self, attribute, value):
        if not value:
            raise ValueError("At least one build target is required.")


@define(frozen=True, slots=True)
class BuildSuccess:
    return_value: str
    log_path: Path | None = None

    @property
    def succeeded(self) -> bool:
        return True


@define(frozen=True, slots=True)
class BuildFailure:
    """The toolchain reported that the build did not succeed."""

    log_path: Path
    exit_code: int | None = None

    @property
    def succeeded(self) -> bool:
        return False


BuildOutcome = BuildSuccess | BuildFailure


@define(frozen=True, slots=True)
class RunRequest:
    """Everything needed to run one test case script."""

    script_path: Path = field(converter=_as_path)
    log_path: Path = field(converter=_as_path)
    environment: Mapping[str, str] = field(factory=dict, converter=_as_str_mapping)


class FailureReason(Enum):
    EXIT_CODE_NON_ZERO = auto()
    ERROR_STREAM_NON_EMPTY = auto()
    TIMED_OUT = auto()


class RunState(Enum):
    """Lifecycle of one runtime process."""

    NOT_STARTED = auto()
    RUNNING = auto()
    COMPLETED = auto()
    TIMED_OUT = auto()


@define(frozen=True, slots=True)
class RunPass:
    log_path: Path
    exit_code: int = 0

    @property
    def passed(self) -> bool:
        return True

    def raise_for_outcome(self) -> None:
        return None


@define(frozen=True, slots=True)
class RunFail:
    """A failed run. `message` always names the log file."""

    reason: FailureReason
    log_path: Path
    exit_code: int | None
    message: str

    @property
    def passed(self) -> bool:
        return False

    def raise_for_outcome(self) -> None:
        raise RunFailure(self)


RunOutcome = RunPass | RunFail


@define(frozen=True, slots=True)
class ToolchainResult:
    """Raw result of one toolchain invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class Toolchain(Protocol):
    """
    Protocol for an external build toolchain.
    """

    async def invoke(self, request: BuildRequest, context: "EvaluationContext") -> ToolchainResult:
        """
        Runs the requested targets against the project.

        Args:
            request: The build to perform. The toolchain writes its log to
                `request.log_path` and reports `request.return_property`
                on stdout after a successful build.
            context: The per-build evaluation context. Scratch files go in
                `context.work_dir`; `context.environment` registers the
                toolchain installation for the child process.

        Returns:
            A ToolchainResult with the exit code and captured output.
        """
        ...

# 🔼⚙️
