#
# tests/unit/test_suite.py
#
"""
Tests for the session that builds modules once and runs their cases.
"""

import traceback
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from crossharness import paths
from crossharness.config import HarnessConfig
from crossharness.exceptions import BuildError, MissingArtifactError
from crossharness.execution import MODULE_PATH_ENV_VAR
from crossharness.protocols import (
    BuildFailure,
    BuildRequest,
    BuildSuccess,
    FailureReason,
    RunFail,
    RunPass,
    TestCaseId,
)
from crossharness.suite import HarnessSession


@pytest.fixture(autouse=True)
def fixed_platform(monkeypatch) -> None:
    monkeypatch.setattr(paths, "current_platform_tag", lambda: "linux-x64")


@pytest.fixture
def orchestrator() -> AsyncMock:
    """A BuildOrchestrator double that reports `<module>.dll` as the module path."""
    mock = AsyncMock()

    async def build(request: BuildRequest):
        return BuildSuccess(str(request.project_path.with_suffix(".dll")), log_path=request.log_path)

    mock.build.side_effect = build
    return mock


@pytest.fixture
def session(harness_config: HarnessConfig, orchestrator: AsyncMock) -> HarnessSession:
    return HarnessSession(harness_config, orchestrator=orchestrator)


def test_cases_are_discovered(session: HarnessSession) -> None:
    assert sorted(session.cases()) == [
        TestCaseId("basic", "hello"),
        TestCaseId("basic", "types"),
        TestCaseId("errors", "throws"),
    ]


def test_build_request_layout(session: HarnessSession, repo_tree: Path) -> None:
    request = session.build_request("basic")

    assert request.project_path == repo_tree / "Test" / "TestCases" / "basic" / "basic.csproj"
    assert request.targets == ("Restore", "Build")
    assert request.properties == {"Configuration": "Debug", "RuntimeIdentifier": "linux-x64"}
    assert request.return_property == "TargetPath"
    assert request.log_path == repo_tree / "out" / "obj" / "Debug" / "TestCases" / "basic" / "build.log"


@pytest.mark.asyncio
class TestHarnessSession:
    async def test_module_is_built_once(self, session: HarnessSession, orchestrator: AsyncMock) -> None:
        first = await session.build_module("basic")
        second = await session.build_module("basic")

        assert first == second
        assert first.endswith("basic.dll")
        orchestrator.build.assert_awaited_once()

    async def test_run_case_injects_module_path(self, session: HarnessSession, repo_tree: Path) -> None:
        script = repo_tree / "Test" / "TestCases" / "basic" / "hello.js"
        script.write_text("import os\nprint(os.environ['TEST_DOTNET_MODULE_PATH'])\n")

        outcome = await session.run_case(TestCaseId("basic", "hello"))

        assert isinstance(outcome, RunPass)
        assert outcome.log_path == repo_tree / "out" / "obj" / "Debug" / "TestCases" / "basic" / "run-hello.log"
        log_text = outcome.log_path.read_text()
        assert f"{MODULE_PATH_ENV_VAR}=" in log_text.splitlines()[0]
        assert log_text.rstrip().endswith("basic.dll")

    async def test_run_cases_builds_each_module_once(self, session: HarnessSession, orchestrator: AsyncMock) -> None:
        results = await session.run_cases(sorted(session.cases()))

        assert isinstance(results[TestCaseId("basic", "hello")], RunPass)
        assert isinstance(results[TestCaseId("basic", "types")], RunPass)
        throws = results[TestCaseId("errors", "throws")]
        assert isinstance(throws, RunFail)
        assert throws.reason is FailureReason.ERROR_STREAM_NON_EMPTY
        assert orchestrator.build.await_count == 2

    async def test_build_failure_fails_every_case_of_the_module(
        self, session: HarnessSession, orchestrator: AsyncMock, repo_tree: Path
    ) -> None:
        async def build(request: BuildRequest):
            if request.project_path.stem == "basic":
                return BuildFailure(request.log_path, exit_code=1)
            return BuildSuccess("errors.dll", log_path=request.log_path)

        orchestrator.build.side_effect = build

        results = await session.run_cases(sorted(session.cases()))

        for name in ("hello", "types"):
            error = results[TestCaseId("basic", name)]
            assert isinstance(error, BuildError)
            assert "build.log" in str(error)
        assert isinstance(results[TestCaseId("errors", "throws")], RunFail)
        # The failed build is not retried for the second case.
        assert orchestrator.build.await_count == 2

    async def test_missing_script_is_reported(self, session: HarnessSession) -> None:
        with pytest.raises(MissingArtifactError):
            await session.run_case(TestCaseId("basic", "does_not_exist"))

    async def test_cached_build_failure_raises_a_fresh_error(
        self, session: HarnessSession, orchestrator: AsyncMock
    ) -> None:
        async def build(request: BuildRequest):
            return BuildFailure(request.log_path, exit_code=1)

        orchestrator.build.side_effect = build

        with pytest.raises(BuildError) as first:
            await session.build_module("basic")
        depth = len(list(traceback.walk_tb(first.value.__traceback__)))

        later = []
        for _ in range(3):
            with pytest.raises(BuildError) as exc_info:
                await session.build_module("basic")
            later.append(exc_info.value)

        assert all(error is not first.value for error in later)
        assert {str(error) for error in later} == {str(first.value)}
        assert len(list(traceback.walk_tb(first.value.__traceback__))) == depth
        orchestrator.build.assert_awaited_once()
