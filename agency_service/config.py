"""Configuration management for the agency service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml

from .registration import RegistrationSettings

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class ServiceSettings:
    """Runtime settings for the HTTP service and its collaborators."""

    registration: RegistrationSettings = field(default_factory=RegistrationSettings)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080


def _parse_verify_setting(value: object) -> Union[bool, str]:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"", "1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return str(Path(str(value)).expanduser())


def _parse_float(name: str, value: object) -> float:
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid number {value!r} for setting {name}") from exc
    if parsed <= 0:
        raise ValueError(f"Setting {name} must be greater than zero")
    return parsed


def _parse_port(name: str, value: object) -> int:
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid integer {value!r} for setting {name}") from exc
    if not 1 <= parsed <= 65535:
        raise ValueError(f"Setting {name} must be between 1 and 65535")
    return parsed


def _parse_log_level(name: str, value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r} for setting {name}")
    return level


def _section(raw: Mapping[str, object], key: str) -> Mapping[str, object]:
    value = raw.get(key) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Configuration section '{key}' must be a mapping")
    return value


def settings_from_dict(raw: Mapping[str, object]) -> ServiceSettings:
    """Create :class:`ServiceSettings` from parsed YAML data."""

    defaults = ServiceSettings()
    registration_raw = _section(raw, "registration_api")
    server_raw = _section(raw, "server")
    logging_raw = _section(raw, "logging")

    registration = RegistrationSettings(
        base_url=str(registration_raw.get("base_url", defaults.registration.base_url)),
        timeout=_parse_float(
            "registration_api.timeout",
            registration_raw.get("timeout", defaults.registration.timeout),
        ),
        verify=_parse_verify_setting(registration_raw.get("verify", defaults.registration.verify)),
    )

    return ServiceSettings(
        registration=registration,
        log_level=_parse_log_level("logging.level", logging_raw.get("level", defaults.log_level)),
        host=str(server_raw.get("host", defaults.host)),
        port=_parse_port("server.port", server_raw.get("port", defaults.port)),
    )


def apply_env_overrides(settings: ServiceSettings, environ: Mapping[str, str]) -> ServiceSettings:
    """Return ``settings`` with any ``AGENCY_*`` environment overrides applied."""

    registration_updates: Dict[str, object] = {}
    base_url = environ.get("AGENCY_REGISTRATION_API_URL")
    if base_url:
        registration_updates["base_url"] = base_url.strip()
    timeout = environ.get("AGENCY_REGISTRATION_API_TIMEOUT")
    if timeout:
        registration_updates["timeout"] = _parse_float("AGENCY_REGISTRATION_API_TIMEOUT", timeout)
    verify = environ.get("AGENCY_REGISTRATION_API_VERIFY")
    if verify is not None:
        registration_updates["verify"] = _parse_verify_setting(verify)

    updates: Dict[str, object] = {}
    if registration_updates:
        updates["registration"] = replace(settings.registration, **registration_updates)
    log_level = environ.get("AGENCY_LOG_LEVEL")
    if log_level:
        updates["log_level"] = _parse_log_level("AGENCY_LOG_LEVEL", log_level)
    host = environ.get("AGENCY_HOST")
    if host:
        updates["host"] = host.strip()
    port = environ.get("AGENCY_PORT")
    if port:
        updates["port"] = _parse_port("AGENCY_PORT", port)

    return replace(settings, **updates) if updates else settings


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "service.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceSettings:
    """Load settings from YAML (when present) and the environment.

    A missing configuration file is not an error: defaults are used and the
    environment may still override them.
    """

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("AGENCY_SERVICE_CONFIG"))

    raw: Mapping[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, Mapping):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded

    return apply_env_overrides(settings_from_dict(raw), env)


__all__ = [
    "ServiceSettings",
    "apply_env_overrides",
    "load_settings",
    "resolve_config_path",
    "settings_from_dict",
]
