#
# tests/cli/test_cli.py
#
"""
Tests for the crossharness command line.
"""

import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from crossharness import paths
from crossharness.cli.main import cli
from crossharness.exceptions import UnsupportedPlatformError
from crossharness.suite import HarnessSession


@pytest.fixture
def config_file(tmp_path: Path, repo_tree: Path) -> Path:
    config = tmp_path / "crossharness.toml"
    config.write_text(
        f"""
[paths]
repo_root = "{repo_tree.as_posix()}"

[runtime]
executable = "{Path(sys.executable).as_posix()}"
gc_flag = "-u"
"""
    )
    return config


@pytest.fixture
def fake_build(monkeypatch) -> None:
    async def build_module(self: HarnessSession, module_name: str) -> str:
        return f"/out/{module_name}.dll"

    monkeypatch.setattr(HarnessSession, "build_module", build_module)
    monkeypatch.setattr(paths, "current_platform_tag", lambda: "linux-x64")


class TestMainCLI:
    def test_cli_help(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "crossharness" in result.output.lower()
        for command in ("list", "build", "run", "platform", "config"):
            assert command in result.output

    def test_cli_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0

    def test_invalid_log_level(self) -> None:
        result = CliRunner().invoke(cli, ["--log-level", "INVALID", "platform"])
        assert result.exit_code != 0


class TestPlatformCommand:
    def test_prints_tag(self, monkeypatch) -> None:
        monkeypatch.setattr("crossharness.cli.case_cmds.current_platform_tag", lambda: "osx-arm64")

        result = CliRunner().invoke(cli, ["platform"])

        assert result.exit_code == 0
        assert "osx-arm64" in result.output

    def test_unsupported_platform(self, monkeypatch) -> None:
        def unsupported() -> str:
            raise UnsupportedPlatformError("Platform not supported: Plan9")

        monkeypatch.setattr("crossharness.cli.case_cmds.current_platform_tag", unsupported)

        result = CliRunner().invoke(cli, ["platform"])

        assert result.exit_code == 1
        assert "Plan9" in result.output


class TestListCommand:
    def test_plain_listing(self, config_file: Path) -> None:
        result = CliRunner().invoke(cli, ["list", "--plain", "-c", str(config_file)])

        assert result.exit_code == 0
        for case in ("basic/hello", "basic/types", "errors/throws"):
            assert case in result.output
        assert "stray" not in result.output

    def test_table_listing(self, config_file: Path) -> None:
        result = CliRunner().invoke(cli, ["list", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "3 test case(s)" in result.output

    def test_missing_test_case_root(self, tmp_path: Path) -> None:
        repo = tmp_path / "empty_repo"
        repo.mkdir()
        (repo / "Empty.sln").write_text("")
        config = tmp_path / "crossharness.toml"
        config.write_text(f'[paths]\nrepo_root = "{repo.as_posix()}"\n')

        result = CliRunner().invoke(cli, ["list", "-c", str(config)])

        assert result.exit_code == 1
        assert "Test cases directory not found" in result.output


class TestConfigCommands:
    def test_config_show_valid_file(self, config_file: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "show", "--config-path", str(config_file)])

        assert result.exit_code == 0
        assert "HarnessConfig" in result.output
        assert "RuntimeConfig" in result.output

    def test_config_show_nonexistent_file(self) -> None:
        result = CliRunner().invoke(cli, ["config", "show", "--config-path", "/nonexistent/crossharness.toml"])

        assert result.exit_code != 0
        assert "does not exist" in result.output

    def test_config_show_invalid_toml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "crossharness.toml"
        config_file.write_text('[paths\nrepo_root = "missing bracket"')

        result = CliRunner().invoke(cli, ["config", "show", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Configuration problem" in result.output


class TestRunCommand:
    def test_run_reports_pass_and_fail(self, config_file: Path, fake_build) -> None:
        result = CliRunner().invoke(cli, ["run", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "2 passed, 1 failed" in result.output
        assert "ERROR_STREAM_NON_EMPTY" in result.output

    def test_run_selected_module(self, config_file: Path, fake_build) -> None:
        result = CliRunner().invoke(cli, ["run", "basic", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "2 passed, 0 failed" in result.output

    def test_run_single_case(self, config_file: Path, fake_build) -> None:
        result = CliRunner().invoke(cli, ["run", "basic/hello", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "1 passed, 0 failed" in result.output

    def test_unknown_selector(self, config_file: Path, fake_build) -> None:
        result = CliRunner().invoke(cli, ["run", "nope/case", "-c", str(config_file)])

        assert result.exit_code == 2
        assert "No test case matches" in result.output

    def test_build_command_prints_module_path(self, config_file: Path, fake_build) -> None:
        result = CliRunner().invoke(cli, ["build", "basic", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "/out/basic.dll" in result.output

    def test_unexpected_run_error_exits_2(self, config_file: Path, fake_build, monkeypatch) -> None:
        async def run_cases(self: HarnessSession, cases) -> dict:
            raise RuntimeError("event loop exploded")

        monkeypatch.setattr(HarnessSession, "run_cases", run_cases)

        result = CliRunner().invoke(cli, ["run", "-c", str(config_file)])

        assert result.exit_code == 2
        assert "event loop exploded" in result.output

    def test_unexpected_build_error_exits_2(self, config_file: Path, monkeypatch) -> None:
        async def build_module(self: HarnessSession, module_name: str) -> str:
            raise RuntimeError("toolchain went away")

        monkeypatch.setattr(HarnessSession, "build_module", build_module)

        result = CliRunner().invoke(cli, ["build", "basic", "-c", str(config_file)])

        assert result.exit_code == 2
        assert "toolchain went away" in result.output
