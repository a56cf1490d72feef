import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pidone.exceptions import ConfigLoadError, ConfigValidationError

from ._loader import ENV_PREFIX, deep_merge, parse_env_vars, read_toml_file
from ._models import StartupConfig


def load_config(
    *,
    config_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    environ: dict[str, str] | None = None,
) -> StartupConfig:
    """Load the startup configuration from all sources.

    Sources in increasing precedence: model defaults, the TOML file
    (`config_path`, or the PIDONE_CONFIG environment variable), PIDONE_*
    environment variables, and CLI overrides.

    Args:
        config_path: Explicit path to a TOML config file (--config flag).
        cli_overrides: Values given on the command line.
        environ: Environment to read. Defaults to os.environ.

    Returns:
        The validated, frozen StartupConfig.

    Raises:
        ConfigLoadError: If the config file is missing or cannot be parsed.
        ConfigValidationError: If the merged values are invalid.
    """
    env = dict(os.environ) if environ is None else environ

    if config_path is None and env.get(f"{ENV_PREFIX}CONFIG"):
        config_path = Path(env[f"{ENV_PREFIX}CONFIG"])

    merged: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if config_path is not None:
        try:
            merged = read_toml_file(config_path)
        except FileNotFoundError as e:
            msg = f"Config file not found: {config_path}"
            raise ConfigLoadError(msg, path=config_path) from e
        except OSError as e:
            msg = f"Failed to read config file {config_path}: {e}"
            raise ConfigLoadError(msg, path=config_path) from e

    merged = deep_merge(merged, parse_env_vars(environ=env))
    if cli_overrides:
        merged = deep_merge(merged, cli_overrides)

    try:
        return StartupConfig.model_validate(merged)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"])
        msg = f"Invalid configuration value for '{key}': {first['msg']}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=first.get("input"),
            expected=first["msg"],
        ) from e
