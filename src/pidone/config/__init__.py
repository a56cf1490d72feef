"""Configuration loading for pidone.

Configuration is resolved once at startup from, in increasing precedence,
model defaults, an optional TOML file, PIDONE_* environment variables and
command-line flags.
"""

from ._load import load_config
from ._loader import deep_merge, parse_env_vars, read_toml_file, set_nested_key
from ._models import LogFormat, LoggingConfig, LogLevel, StartupConfig

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "StartupConfig",
    "deep_merge",
    "load_config",
    "parse_env_vars",
    "read_toml_file",
    "set_nested_key",
]
