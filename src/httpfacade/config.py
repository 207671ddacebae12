"""HttpClient configuration from YAML file and environment.

Loads an optional YAML file with an ``httpfacade:`` section:

    httpfacade:
      connection_timeout_ms: 30000
      read_timeout_ms: 60000
      buffer_size: 1024
      trust_certificate_path: ${CA_CERT_PATH:-}
      logging:
        level: INFO
        json: false
        file: logs/httpfacade.log

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files. ``HTTPFACADE_*`` environment
variables override file values.
"""

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_TIMEOUT_MS = 30000
DEFAULT_READ_TIMEOUT_MS = 60000
DEFAULT_BUFFER_SIZE = 1024

CONFIG_PATH_ENV = "HTTPFACADE_CONFIG"

# Environment variable -> ClientConfig field
ENV_OVERRIDES = {
    "HTTPFACADE_CONNECTION_TIMEOUT_MS": "connection_timeout_ms",
    "HTTPFACADE_READ_TIMEOUT_MS": "read_timeout_ms",
    "HTTPFACADE_BUFFER_SIZE": "buffer_size",
    "HTTPFACADE_TRUST_CERTIFICATE": "trust_certificate_path",
    "HTTPFACADE_LOG_LEVEL": "log_level",
    "HTTPFACADE_JSON_LOGS": "json_logs",
    "HTTPFACADE_LOG_FILE": "log_file",
}

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


@dataclass
class ClientConfig:
    """HttpClient settings.

    Timeouts are in milliseconds. ``buffer_size`` is the chunk size for
    upload and download streaming and the progress reporting granularity
    for downloads.
    """

    connection_timeout_ms: int = DEFAULT_CONNECTION_TIMEOUT_MS
    read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS
    buffer_size: int = DEFAULT_BUFFER_SIZE

    # PEM or DER file trusted instead of the platform CA store
    trust_certificate_path: str | None = None

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: str | None = None

    callback_thread_name: str = "httpfacade-callback"

    def validate(self) -> None:
        """Validate configuration values and raise ValueError on the first problem."""
        self._validate_min("connection_timeout_ms", 0, inclusive=True)
        self._validate_min("read_timeout_ms", 0, inclusive=True)
        self._validate_min("buffer_size", 0, inclusive=False)

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{self.log_level}'"
            )

        if not self.callback_thread_name:
            raise ValueError("callback_thread_name must not be empty")

    def _validate_min(self, key: str, min_value: int, inclusive: bool) -> None:
        value = getattr(self, key)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        if inclusive and value < min_value:
            raise ValueError(f"{key} must be >= {min_value}, got {value}")
        elif not inclusive and value <= min_value:
            raise ValueError(f"{key} must be > {min_value}, got {value}")


def _section_to_kwargs(section: dict[str, Any]) -> dict[str, Any]:
    """Flatten the YAML section into ClientConfig keyword arguments."""
    kwargs: dict[str, Any] = {}
    known = {f.name for f in fields(ClientConfig)}

    for key, value in section.items():
        if key == "logging" and isinstance(value, dict):
            if "level" in value:
                kwargs["log_level"] = value["level"]
            if "json" in value:
                kwargs["json_logs"] = value["json"]
            if "file" in value:
                kwargs["log_file"] = value["file"]
        elif key in known:
            kwargs[key] = value
        else:
            logger.warning(f"Ignoring unknown configuration key: {key}")

    return kwargs


def _apply_env_overrides(kwargs: dict[str, Any]) -> dict[str, Any]:
    result = dict(kwargs)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None and value != "":
            result[field_name] = value
    return result


def _coerce(kwargs: dict[str, Any]) -> dict[str, Any]:
    """Convert string values (from env expansion) to the field types."""
    result = dict(kwargs)
    for key in ("connection_timeout_ms", "read_timeout_ms", "buffer_size"):
        if key in result and isinstance(result[key], str):
            try:
                result[key] = int(result[key].strip())
            except ValueError as e:
                raise ValueError(f"{key} must be an integer, got '{result[key]}'") from e
    if "json_logs" in result:
        result["json_logs"] = _to_bool(result["json_logs"])
    for key in ("trust_certificate_path", "log_file"):
        if key in result and result[key] == "":
            result[key] = None
    return result


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ClientConfig:
    """Load client configuration.

    Priority (highest to lowest): ``overrides``, ``HTTPFACADE_*`` environment
    variables, YAML file, dataclass defaults. The file path defaults to
    ``$HTTPFACADE_CONFIG``; without one only defaults and environment apply.
    """
    if config_path is None and os.getenv(CONFIG_PATH_ENV):
        config_path = Path(os.environ[CONFIG_PATH_ENV])

    section: dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(
            "Loading configuration from file",
            extra={"config_path": str(config_path)},
        )
        yaml_data = _expand_env_vars(load_yaml(config_path))
        section = yaml_data.get("httpfacade", yaml_data) or {}
        if not isinstance(section, dict):
            raise ValueError("Invalid config file: 'httpfacade:' section must be a mapping")

    kwargs = _apply_env_overrides(_section_to_kwargs(section))
    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        kwargs.update(overrides)

    config = ClientConfig(**_coerce(kwargs))
    config.validate()
    return config


_client_config: ClientConfig | None = None


def get_config() -> ClientConfig:
    """Get or load the singleton client config instance."""
    global _client_config
    if _client_config is None:
        _client_config = load_config()
    return _client_config


def set_config(config: ClientConfig) -> None:
    """Set the singleton client config instance (useful for testing)."""
    global _client_config
    _client_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _client_config
    _client_config = None
