"""vcs-bridge configuration loader."""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from vcs_bridge.errors import create_error
from vcs_bridge.logging import LogConfig
from vcs_bridge.types import Capability, LogFormat, LogLevel, ValidationIssue, ValidationResult

from .defaults import default_servers
from .models import BridgeConfig, ServerConfig

CONFIG_PATH_VAR = "VCS_BRIDGE_CONFIG"
LOG_LEVEL_VAR = "VCS_BRIDGE_LOG_LEVEL"
DEFAULT_CONFIG_FILE = "vcs-bridge.yaml"

_TOP_LEVEL_KEYS = {"servers", "logging", "vendor_dir", "client"}
_SERVER_KEYS = {"command", "args", "env", "capabilities", "enabled", "timeout", "token_vars"}


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        BridgeError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        if operator == "?":
            raise create_error(
                "CONFIG_INVALID",
                detail=operand or f"Required environment variable {var_name} not set",
            )
        raise create_error(
            "CONFIG_INVALID",
            detail=f"Required environment variable {var_name} not set",
        )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    if isinstance(data, str):
        return resolve_env_vars(data)
    return data


class ConfigLoader:
    """Load and validate vcs-bridge configuration."""

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional BridgeLogger instance
        """
        self._logger = logger
        self._config_path: Path | None = None

    @property
    def config_path(self) -> Path | None:
        """Path of the last file loaded, if any."""
        return self._config_path

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> BridgeConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. VCS_BRIDGE_CONFIG environment variable
        2. ./vcs-bridge.yaml
        3. If use_defaults=True and no file found, built-in defaults

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded BridgeConfig instance

        Raises:
            BridgeError: If file not found (when use_defaults=False) or invalid
        """
        config_path = Path(path) if path is not None else self._resolve_config_path()

        if not config_path.exists():
            if use_defaults:
                self._log("DEBUG", f"No config file at {config_path}, using defaults")
                return self.load_from_dict({})
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Top level of {config_path} must be a mapping",
            )

        data = _resolve_env_vars_recursive(data)
        config = self.load_from_dict(data)
        self._config_path = config_path
        return config

    def load_from_dict(self, data: dict[str, Any]) -> BridgeConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            BridgeConfig instance

        Raises:
            BridgeError: If configuration is invalid
        """
        validation = self.validate(data)
        for warning in validation.warnings:
            self._log("WARN", f"{warning.path}: {warning.message}")
        if not validation.valid:
            error_messages = [f"- {issue.path}: {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration validation failed:\n" + "\n".join(error_messages),
            )

        servers = default_servers()
        for name, raw in (data.get("servers") or {}).items():
            servers[name] = self._merge_server(name, raw, servers.get(name))

        config = BridgeConfig(
            servers=servers,
            vendor_dir=data.get("vendor_dir"),
            logging=self._build_log_config(data.get("logging") or {}),
        )
        client = data.get("client") or {}
        if "name" in client:
            config.client_info.name = str(client["name"])
        if "version" in client:
            config.client_info.version = str(client["version"])
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        for key in data:
            if key not in _TOP_LEVEL_KEYS:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        servers = data.get("servers")
        if servers is not None and not isinstance(servers, dict):
            errors.append(ValidationIssue(path="servers", message="servers must be a mapping"))
        elif servers:
            defaults = default_servers()
            for name, raw in servers.items():
                errors.extend(self._validate_server(name, raw, name in defaults, warnings))

        logging_section = data.get("logging")
        if logging_section is not None:
            if not isinstance(logging_section, dict):
                errors.append(ValidationIssue(path="logging", message="logging must be a mapping"))
            else:
                level = logging_section.get("level")
                if level is not None and str(level).upper() not in LogLevel.__members__:
                    errors.append(
                        ValidationIssue(path="logging.level", message=f"Unknown level: {level}")
                    )
                fmt = logging_section.get("format")
                if fmt is not None and fmt not in {f.value for f in LogFormat}:
                    errors.append(
                        ValidationIssue(path="logging.format", message=f"Unknown format: {fmt}")
                    )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def _validate_server(
        self,
        name: str,
        raw: Any,
        is_builtin: bool,
        warnings: list[ValidationIssue],
    ) -> list[ValidationIssue]:
        path = f"servers.{name}"
        if not isinstance(raw, dict):
            return [ValidationIssue(path=path, message="server entry must be a mapping")]

        errors: list[ValidationIssue] = []
        for key in raw:
            if key not in _SERVER_KEYS:
                warnings.append(
                    ValidationIssue(
                        path=f"{path}.{key}",
                        message=f"Unknown server key: {key}",
                        severity="warning",
                    )
                )
        if not is_builtin and not raw.get("command"):
            errors.append(ValidationIssue(path=f"{path}.command", message="command is required"))
        if "args" in raw and not (
            isinstance(raw["args"], list) and all(isinstance(a, str) for a in raw["args"])
        ):
            errors.append(
                ValidationIssue(path=f"{path}.args", message="args must be a list of strings")
            )
        if "token_vars" in raw and not (
            isinstance(raw["token_vars"], list)
            and all(isinstance(v, str) for v in raw["token_vars"])
        ):
            errors.append(
                ValidationIssue(
                    path=f"{path}.token_vars", message="token_vars must be a list of strings"
                )
            )
        if "env" in raw and not isinstance(raw["env"], dict):
            errors.append(ValidationIssue(path=f"{path}.env", message="env must be a mapping"))
        if "timeout" in raw:
            timeout = raw["timeout"]
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                errors.append(
                    ValidationIssue(
                        path=f"{path}.timeout", message="timeout must be a positive number"
                    )
                )
        for cap in raw.get("capabilities") or []:
            if cap not in {c.value for c in Capability}:
                errors.append(
                    ValidationIssue(
                        path=f"{path}.capabilities", message=f"Unknown capability: {cap}"
                    )
                )
        return errors

    def _merge_server(
        self, name: str, raw: dict[str, Any], base: ServerConfig | None
    ) -> ServerConfig:
        server = base.copy() if base else ServerConfig(name=name, command=raw["command"])
        if "command" in raw:
            server.command = str(raw["command"])
        if "args" in raw:
            server.args = list(raw["args"])
        if "env" in raw:
            server.env = {**server.env, **{str(k): str(v) for k, v in raw["env"].items()}}
        if "capabilities" in raw:
            server.capabilities = frozenset(Capability(c) for c in raw["capabilities"])
        if "enabled" in raw:
            server.enabled = bool(raw["enabled"])
        if "timeout" in raw:
            server.timeout = float(raw["timeout"])
        if "token_vars" in raw:
            server.token_vars = tuple(raw["token_vars"])
        return server

    def _build_log_config(self, section: dict[str, Any]) -> LogConfig:
        config = LogConfig()
        level = os.environ.get(LOG_LEVEL_VAR) or section.get("level")
        if level:
            try:
                config.level = LogLevel(str(level).upper())
            except ValueError as e:
                raise create_error("CONFIG_INVALID", detail=f"Unknown log level: {level}") from e
        if "format" in section:
            config.format = LogFormat(section["format"])
        if "truncate_at" in section:
            config.truncate_at = int(section["truncate_at"])
        if "components" in section:
            config.components.update({str(k): bool(v) for k, v in section["components"].items()})
        return config

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get(CONFIG_PATH_VAR)
        if env_path:
            return Path(env_path)
        return Path(DEFAULT_CONFIG_FILE)

    def _log(self, level: str, message: str) -> None:
        if self._logger:
            self._logger._log(LogLevel(level), "config", message)
