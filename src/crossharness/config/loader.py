#
# config/loader.py
#
"""
Loads crossharness configuration from TOML and applies environment overrides.

Precedence: CLI options > environment variables > config file > defaults.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
import structlog

from crossharness.config.models import (
    BuildConfig,
    GlobalConfig,
    HarnessConfig,
    PathsConfig,
    RuntimeConfig,
)
from crossharness.exceptions import ConfigurationError
from crossharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

DEFAULT_CONFIG_FILENAME = "crossharness.toml"

ENV_CONFIGURATION = "CROSSHARNESS_CONFIGURATION"
ENV_RUNTIME = "CROSSHARNESS_RUNTIME"
ENV_RUN_TIMEOUT = "CROSSHARNESS_RUN_TIMEOUT"
ENV_LOG_LEVEL = "CROSSHARNESS_LOG_LEVEL"

SECTION_MODELS: dict[str, type] = {
    "global": GlobalConfig,
    "paths": PathsConfig,
    "build": BuildConfig,
    "runtime": RuntimeConfig,
}
PATH_FIELDS = {("paths", "repo_root"), ("runtime", "host_path")}


def _build_section(name: str, model: type, raw: Any, base_dir: Path | None) -> Any:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Section [{name}] must be a table, got {type(raw).__name__}")

    known = {a.name for a in attrs.fields(model)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in [{name}]: {', '.join(unknown)}")

    values = dict(raw)
    for section, key in PATH_FIELDS:
        if section == name and values.get(key) is not None:
            path = Path(values[key]).expanduser()
            if not path.is_absolute() and base_dir is not None:
                path = base_dir / path
            values[key] = path
    if name == "build" and "properties" in values:
        props = values["properties"]
        if not isinstance(props, Mapping):
            raise ConfigurationError("[build.properties] must be a table")
        values["properties"] = {str(k): str(v) for k, v in props.items()}

    try:
        return model(**values)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in [{name}]: {e}", details=e) from e


def _apply_env_overrides(config: HarnessConfig, environ: Mapping[str, str]) -> HarnessConfig:
    build = config.build
    runtime = config.runtime
    global_config = config.global_config
    try:
        if value := environ.get(ENV_CONFIGURATION):
            build = attrs.evolve(build, configuration=value)
            log.debug("Override from environment", var=ENV_CONFIGURATION, value=value)
        if value := environ.get(ENV_RUNTIME):
            runtime = attrs.evolve(runtime, executable=value)
            log.debug("Override from environment", var=ENV_RUNTIME, value=value)
        if value := environ.get(ENV_RUN_TIMEOUT):
            runtime = attrs.evolve(runtime, timeout=float(value))
            log.debug("Override from environment", var=ENV_RUN_TIMEOUT, value=value)
        if value := environ.get(ENV_LOG_LEVEL):
            global_config = attrs.evolve(global_config, log_level=value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment override: {e}", details=e) from e
    return attrs.evolve(config, build=build, runtime=runtime, global_config=global_config)


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> HarnessConfig:
    """
    Loads, validates and returns the harness configuration.

    Args:
        config_path: TOML file to read. None means defaults only.
        environ: Environment to take overrides from. Defaults to os.environ.

    Raises:
        ConfigurationError: The file is unreadable, not valid TOML, or holds
            unknown keys or invalid values.
    """
    environ = os.environ if environ is None else environ
    raw: dict[str, Any] = {}
    base_dir: Path | None = None

    if config_path is not None:
        config_path = Path(config_path)
        load_log = log.bind(config_path=str(config_path))
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {config_path}", details=e) from e
        except tomllib.TOMLDecodeError as e:
            load_log.error("Configuration file is not valid TOML", error=str(e))
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}", details=e) from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}", details=e) from e
        base_dir = config_path.parent.absolute()
        load_log.debug("Configuration file parsed", sections=sorted(raw))

    unknown_sections = sorted(set(raw) - set(SECTION_MODELS))
    if unknown_sections:
        raise ConfigurationError(f"Unknown section(s): {', '.join(unknown_sections)}")

    sections = {
        name: _build_section(name, model, raw[name], base_dir)
        for name, model in SECTION_MODELS.items()
        if name in raw
    }
    config = HarnessConfig(
        global_config=sections.get("global", GlobalConfig()),
        paths=sections.get("paths", PathsConfig()),
        build=sections.get("build", BuildConfig()),
        runtime=sections.get("runtime", RuntimeConfig()),
        config_file_path=config_path,
    )
    return _apply_env_overrides(config, environ)


def find_config_file(start: Path | None = None) -> Path | None:
    """The nearest `crossharness.toml` at or above `start`, if any."""
    start = (start or Path.cwd()).absolute()
    for directory in (start, *start.parents):
        candidate = directory / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None

# 🔼⚙️
