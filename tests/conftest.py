import sys
import textwrap
from pathlib import Path

import pytest

from crossharness.config import HarnessConfig, PathsConfig, RuntimeConfig
from crossharness.paths import repo_root


@pytest.fixture(autouse=True)
def _clear_repo_root_cache():
    repo_root.cache_clear()
    yield
    repo_root.cache_clear()


@pytest.fixture
def python_runtime() -> RuntimeConfig:
    """The current interpreter stands in for the script runtime; -u keeps output unbuffered."""
    return RuntimeConfig(executable=sys.executable, gc_flag="-u")


@pytest.fixture
def write_script(tmp_path: Path):
    """Writes a (Python) test script and returns its path."""
    scripts_dir = tmp_path / "scripts"
    scripts_dir.mkdir(exist_ok=True)

    def _write(name: str, body: str) -> Path:
        script = scripts_dir / name
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        return script

    return _write


@pytest.fixture
def repo_tree(tmp_path: Path) -> Path:
    """
    A repository with two modules:

        repo/Harness.sln
        repo/Test/TestCases/basic/{hello.js, types.ts, README.md}
        repo/Test/TestCases/errors/throws.js
        repo/Test/TestCases/stray.js
    """
    repo = tmp_path / "repo"
    cases = repo / "Test" / "TestCases"
    (cases / "basic").mkdir(parents=True)
    (cases / "errors").mkdir(parents=True)
    (repo / "Harness.sln").write_text("")
    (cases / "basic" / "hello.js").write_text("print('hello')\n")
    (cases / "basic" / "types.ts").write_text("print('types')\n")
    (cases / "basic" / "README.md").write_text("not a test case\n")
    (cases / "errors" / "throws.js").write_text("import sys\nsys.stderr.write('boom\\n')\n")
    (cases / "stray.js").write_text("print('not in a module')\n")
    return repo


@pytest.fixture
def harness_config(repo_tree: Path, python_runtime: RuntimeConfig) -> HarnessConfig:
    return HarnessConfig(
        paths=PathsConfig(repo_root=repo_tree),
        runtime=python_runtime,
    )
