#
# src/crossharness/discovery.py
#
"""
Enumerates test cases from the `<root>/<module>/<case>.<ext>` convention.
"""
from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog

from crossharness.protocols import TestCaseId
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("discovery")

SCRIPT_EXTENSIONS: tuple[str, ...] = (".js", ".ts")


def list_test_cases(
    test_case_root: Path,
    extensions: Iterable[str] = SCRIPT_EXTENSIONS,
) -> Iterator[TestCaseId]:
    """
    Yields one TestCaseId per script file found one level below each module directory.

    Every immediate subdirectory of `test_case_root` is a module; every file in
    it with a recognized extension is a case named after the file stem. Order
    follows the filesystem and is not sorted. A stem present with both
    extensions yields a single case.
    """
    suffixes = {ext.lower() for ext in extensions}
    for module_dir in Path(test_case_root).iterdir():
        if not module_dir.is_dir():
            continue
        module_name = module_dir.name
        seen: set[str] = set()
        for script in module_dir.iterdir():
            if not script.is_file() or script.suffix.lower() not in suffixes:
                continue
            # foo.js and foo.ts are the same case.
            if script.stem in seen:
                continue
            seen.add(script.stem)
            yield TestCaseId(module_name, script.stem)


def list_test_case_params(
    test_case_root: Path,
    extensions: Iterable[str] = SCRIPT_EXTENSIONS,
) -> list[str]:
    """`"module/case"` strings, ready for `pytest.mark.parametrize`."""
    params = [str(case) for case in list_test_cases(test_case_root, extensions)]
    log.debug("Test cases discovered", root=str(test_case_root), count=len(params))
    return params


def find_case_script(
    test_case_root: Path,
    case: TestCaseId,
    extensions: Iterable[str] = SCRIPT_EXTENSIONS,
) -> Path:
    """
    Source script of a case, by extension priority.

    Falls back to the first-priority path when no file exists, so the runner
    reports the missing artifact.
    """
    module_dir = Path(test_case_root) / case.module_name
    candidates = [module_dir / f"{case.case_name}{ext}" for ext in extensions]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return candidates[0]

# 🔼⚙️
