#
# src/crossharness/__init__.py
#
"""
Cross-runtime integration test harness.

Discovers test case scripts by module, builds each module's companion
project with the .NET toolchain, runs every case in the script runtime and
classifies the outcome from its exit code and error stream.
"""
from .build import BuildOrchestrator, EvaluationContext, MSBuildToolchain, ToolchainInitializer
from .discovery import list_test_case_params, list_test_cases
from .exceptions import (
    BuildError,
    ConfigurationError,
    HarnessError,
    MissingArtifactError,
    NotFoundError,
    RunFailure,
    ToolchainNotFoundError,
    UnsupportedPlatformError,
)
from .execution import HOST_PATH_ENV_VAR, MODULE_PATH_ENV_VAR, ExecutionHarness, module_environment
from .paths import (
    build_log_path,
    current_platform_tag,
    repo_root,
    resolve_repo_root,
    resolve_test_case_root,
    run_log_path,
)
from .protocols import (
    BuildFailure,
    BuildOutcome,
    BuildRequest,
    BuildSuccess,
    FailureReason,
    RunFail,
    RunOutcome,
    RunPass,
    RunRequest,
    RunState,
    TestCaseId,
)
from .suite import HarnessSession

__all__ = [
    "HOST_PATH_ENV_VAR",
    "MODULE_PATH_ENV_VAR",
    "BuildError",
    "BuildFailure",
    "BuildOrchestrator",
    "BuildOutcome",
    "BuildRequest",
    "BuildSuccess",
    "ConfigurationError",
    "EvaluationContext",
    "ExecutionHarness",
    "FailureReason",
    "HarnessError",
    "HarnessSession",
    "MSBuildToolchain",
    "MissingArtifactError",
    "NotFoundError",
    "RunFail",
    "RunFailure",
    "RunOutcome",
    "RunPass",
    "RunRequest",
    "RunState",
    "TestCaseId",
    "ToolchainInitializer",
    "ToolchainNotFoundError",
    "UnsupportedPlatformError",
    "build_log_path",
    "current_platform_tag",
    "list_test_case_params",
    "list_test_cases",
    "module_environment",
    "repo_root",
    "resolve_repo_root",
    "resolve_test_case_root",
    "run_log_path",
]

# 🔼⚙️
