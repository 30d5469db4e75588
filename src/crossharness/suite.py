#
# src/crossharness/suite.py
#
"""
High-level coordinator: builds each module once and runs its test cases.
"""
import asyncio
from collections.abc import Iterable
from pathlib import Path

import structlog

from crossharness import paths
from crossharness.build import BuildOrchestrator, ToolchainInitializer, default_initializer
from crossharness.config.models import HarnessConfig
from crossharness.discovery import find_case_script, list_test_cases
from crossharness.exceptions import BuildError, HarnessError
from crossharness.execution import ExecutionHarness, module_environment
from crossharness.protocols import BuildFailure, BuildRequest, RunOutcome, RunRequest, TestCaseId
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("suite")

RUNTIME_IDENTIFIER_PROPERTY = "RuntimeIdentifier"


class HarnessSession:
    """Instantiates and coordinates the harness components for one configuration."""

    def __init__(
        self,
        config: HarnessConfig,
        orchestrator: BuildOrchestrator | None = None,
        harness: ExecutionHarness | None = None,
    ):
        self.config = config
        if orchestrator is None:
            initializer: ToolchainInitializer = default_initializer(config.build.dotnet)
            orchestrator = BuildOrchestrator(initializer=initializer)
        self.orchestrator = orchestrator
        self.harness = harness or ExecutionHarness(config.runtime)
        self._repo_root: Path | None = None
        self._module_paths: dict[str, str] = {}
        self._module_errors: dict[str, BuildError] = {}
        self._module_locks: dict[str, asyncio.Lock] = {}

    @property
    def repo_root(self) -> Path:
        if self._repo_root is None:
            configured = self.config.paths.repo_root
            if configured is not None:
                self._repo_root = paths.resolve_repo_root(configured, self.config.paths.solution_marker)
            else:
                self._repo_root = paths.repo_root(marker=self.config.paths.solution_marker)
        return self._repo_root

    @property
    def test_case_root(self) -> Path:
        return paths.resolve_test_case_root(self.repo_root, self.config.paths.test_cases_dir)

    def cases(self) -> list[TestCaseId]:
        return list(list_test_cases(self.test_case_root, self.config.paths.script_extensions))

    def build_request(self, module_name: str) -> BuildRequest:
        build = self.config.build
        properties = {
            "Configuration": build.configuration,
            RUNTIME_IDENTIFIER_PROPERTY: paths.current_platform_tag(),
            **build.properties,
        }
        return BuildRequest(
            project_path=self.test_case_root / module_name / f"{module_name}.csproj",
            targets=build.targets,
            properties=properties,
            return_property=build.return_property,
            log_path=paths.build_log_path(self.repo_root, module_name, build.configuration),
            verbose=build.verbose,
        )

    async def build_module(self, module_name: str) -> str:
        """
        Builds a module at most once per session and returns its output property.

        Raises:
            BuildError: The build failed, now or on an earlier call.
        """
        lock = self._module_locks.setdefault(module_name, asyncio.Lock())
        async with lock:
            if module_name in self._module_paths:
                return self._module_paths[module_name]
            if module_name in self._module_errors:
                cached = self._module_errors[module_name]
                raise BuildError(cached.module_name, cached.log_path, cached.exit_code)

            request = self.build_request(module_name)
            outcome = await self.orchestrator.build(request)
            if isinstance(outcome, BuildFailure):
                error = BuildError(module_name, str(outcome.log_path), outcome.exit_code)
                self._module_errors[module_name] = error
                raise error
            self._module_paths[module_name] = outcome.return_value
            return outcome.return_value

    async def run_case(self, case: TestCaseId) -> RunOutcome:
        module_path = await self.build_module(case.module_name)
        root = self.repo_root
        script = find_case_script(self.test_case_root, case, self.config.paths.script_extensions)
        request = RunRequest(
            script_path=script,
            log_path=paths.run_log_path(
                root,
                self.config.runtime.log_prefix,
                case.module_name,
                case.case_name,
                self.config.build.configuration,
            ),
            environment=module_environment(module_path, self.config.runtime.host_path),
        )
        return await self.harness.run(request)

    async def run_cases(self, cases: Iterable[TestCaseId]) -> dict[TestCaseId, RunOutcome | HarnessError]:
        """
        Runs cases one after another. Harness errors are recorded per case
        instead of aborting the remaining cases.
        """
        results: dict[TestCaseId, RunOutcome | HarnessError] = {}
        for case in cases:
            try:
                results[case] = await self.run_case(case)
            except HarnessError as e:
                log.error("Test case could not run", case=str(case), error=str(e))
                results[case] = e
        return results

# 🔼⚙️
