#
# config/models.py
#
"""
Attrs-based data models for crossharness configuration structure.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from attrs import define, field


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_non_empty(inst: Any, attr: Any, value: Any) -> None:
    if not value:
        raise ValueError(f"Field '{attr.name}' must not be empty")


def _validate_optional_positive(inst: Any, attr: Any, value: float | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be a positive number, got {value!r}")


def _validate_extensions(inst: Any, attr: Any, value: tuple[str, ...]) -> None:
    _validate_non_empty(inst, attr, value)
    for ext in value:
        if not ext.startswith(".") or len(ext) < 2:
            raise ValueError(f"Invalid script extension '{ext}', expected a form like '.js'")


# --- Section models ---
@define(frozen=True, slots=True)
class PathsConfig:
    """Where the repository, its test cases and its logs live."""
    repo_root: Path | None = field(default=None)
    solution_marker: str = field(default="*.sln", validator=_validate_non_empty)
    test_cases_dir: tuple[str, ...] = field(default=("Test", "TestCases"), converter=tuple)
    script_extensions: tuple[str, ...] = field(
        default=(".js", ".ts"), converter=tuple, validator=_validate_extensions
    )


@define(frozen=True, slots=True)
class BuildConfig:
    """How each module's companion project is built."""
    configuration: str = field(default="Debug", validator=_validate_non_empty)
    dotnet: str = field(default="dotnet", validator=_validate_non_empty)
    targets: tuple[str, ...] = field(
        default=("Restore", "Build"), converter=tuple, validator=_validate_non_empty
    )
    return_property: str = field(default="TargetPath", validator=_validate_non_empty)
    properties: Mapping[str, str] = field(factory=dict)
    verbose: bool = field(default=False)


@define(frozen=True, slots=True)
class RuntimeConfig:
    """The script runtime launched for every test case."""
    executable: str = field(default="node", validator=_validate_non_empty)
    gc_flag: str = field(default="--expose-gc")
    timeout: float | None = field(default=None, validator=_validate_optional_positive)
    host_path: Path | None = field(default=None)
    log_prefix: str = field(default="run", validator=_validate_non_empty)

    def command(self, script_path: Path) -> list[str]:
        args = [self.executable]
        if self.gc_flag:
            args.append(self.gc_flag)
        args.append(str(script_path))
        return args


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for crossharness."""
    log_level: str = field(default="INFO", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


@define(frozen=True, slots=True)
class HarnessConfig:
    """Root configuration object for the crossharness application."""
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    paths: PathsConfig = field(factory=PathsConfig)
    build: BuildConfig = field(factory=BuildConfig)
    runtime: RuntimeConfig = field(factory=RuntimeConfig)
    config_file_path: Path | None = field(default=None)

# 🔼⚙️
