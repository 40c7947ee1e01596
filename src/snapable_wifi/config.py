"""Configuration management for the Wi-Fi service."""
from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, replace
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping

from .authorization import AuthorizationState
from .settings_launcher import DEFAULT_SETTINGS_COMMAND

AUTHORIZATION_BACKENDS = ("memory", "corelocation")
NETWORK_BACKENDS = ("nmcli", "none")

DEFAULT_COMMAND_TIMEOUT = 15.0
ENV_PREFIX = "SNAPABLE_WIFI_"


@dataclass(frozen=True, slots=True)
class ServiceSettings:
    """Runtime settings for the configurator and its collaborators."""

    network_backend: str = "nmcli"
    interface: str | None = None
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    authorization_backend: str = "memory"
    initial_authorization: AuthorizationState = AuthorizationState.AUTHORIZED_ALWAYS
    authorization_timeout: float | None = None
    settings_command: tuple[str, ...] = DEFAULT_SETTINGS_COMMAND
    log_path: str | None = "data/system_log.jsonl"

    def __post_init__(self) -> None:
        if self.network_backend not in NETWORK_BACKENDS:
            raise ValueError(f"Network backend must be one of {', '.join(NETWORK_BACKENDS)}")
        if self.authorization_backend not in AUTHORIZATION_BACKENDS:
            raise ValueError(
                f"Authorization backend must be one of {', '.join(AUTHORIZATION_BACKENDS)}"
            )
        if not math.isfinite(self.command_timeout) or self.command_timeout <= 0:
            raise ValueError("Command timeout must be a positive number of seconds")
        if self.authorization_timeout is not None and (
            not math.isfinite(self.authorization_timeout) or self.authorization_timeout <= 0
        ):
            raise ValueError("Authorization timeout must be positive or null")
        if not self.settings_command:
            raise ValueError("Settings command must not be empty")

    def to_dict(self) -> dict[str, object | None]:
        return {
            "network_backend": self.network_backend,
            "interface": self.interface,
            "command_timeout": self.command_timeout,
            "authorization_backend": self.authorization_backend,
            "initial_authorization": self.initial_authorization.value,
            "authorization_timeout": self.authorization_timeout,
            "settings_command": list(self.settings_command),
            "log_path": self.log_path,
        }


DEFAULT_SETTINGS = ServiceSettings()


def _parse_choice(value: Any, choices: tuple[str, ...], *, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value.strip().lower() not in choices:
        raise ValueError(f"Expected one of {', '.join(choices)}, got {value!r}")
    return value.strip().lower()


def _parse_optional_text(value: Any, *, default: str | None) -> str | None:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError("Expected a string value")
    return value.strip() or None


def _parse_seconds(value: Any, *, default: float | None, allow_none: bool) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        return default
    if isinstance(value, bool):
        raise ValueError("Timeouts must be numeric")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Timeouts must be numeric") from exc
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError("Timeouts must be positive")
    return seconds


def _parse_command(value: Any, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        parts = value.split()
    elif isinstance(value, (list, tuple)) and all(isinstance(part, str) for part in value):
        parts = [part for part in value if part.strip()]
    else:
        raise ValueError("Settings command must be a string or list of strings")
    if not parts:
        raise ValueError("Settings command must not be empty")
    return tuple(parts)


def parse_settings(data: Mapping[str, Any], *, default: ServiceSettings = DEFAULT_SETTINGS) -> ServiceSettings:
    """Merge ``data`` over ``default``; keys that are absent keep their value."""

    if not isinstance(data, Mapping):
        raise ValueError("Settings must be a mapping")
    authorization = default.initial_authorization
    if data.get("initial_authorization") is not None:
        authorization = AuthorizationState.parse(data["initial_authorization"])
    return ServiceSettings(
        network_backend=_parse_choice(
            data.get("network_backend"), NETWORK_BACKENDS, default=default.network_backend
        ),
        interface=_parse_optional_text(data["interface"], default=None)
        if "interface" in data
        else default.interface,
        command_timeout=_parse_seconds(
            data.get("command_timeout"), default=default.command_timeout, allow_none=False
        ),
        authorization_backend=_parse_choice(
            data.get("authorization_backend"),
            AUTHORIZATION_BACKENDS,
            default=default.authorization_backend,
        ),
        initial_authorization=authorization,
        authorization_timeout=_parse_seconds(
            data["authorization_timeout"], default=None, allow_none=True
        )
        if "authorization_timeout" in data
        else default.authorization_timeout,
        settings_command=_parse_command(data.get("settings_command"), default=default.settings_command),
        log_path=_parse_optional_text(data["log_path"], default=None)
        if "log_path" in data
        else default.log_path,
    )


def settings_from_environment(
    settings: ServiceSettings, environ: Mapping[str, str] | None = None
) -> ServiceSettings:
    """Apply ``SNAPABLE_WIFI_*`` overrides, e.g. ``SNAPABLE_WIFI_INTERFACE=wlan0``."""

    source = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for field in ServiceSettings.__dataclass_fields__:
        raw = source.get(ENV_PREFIX + field.upper())
        if raw is not None:
            overrides[field] = raw
    if not overrides:
        return settings
    return parse_settings(overrides, default=settings)


class ConfigManager:
    """Stores service settings on disk with thread-safety."""

    def __init__(self, config_path: Path | str) -> None:
        self._path = Path(config_path)
        self._lock = Lock()
        self._ensure_parent()
        self._settings = self._load()

    def _ensure_parent(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> ServiceSettings:
        if not self._path.exists():
            return DEFAULT_SETTINGS
        try:
            payload = json.loads(self._path.read_text())
            if not isinstance(payload, dict):
                raise ValueError("Configuration file must contain a JSON object")
            return parse_settings(payload)
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"Failed to load configuration: {exc}") from exc

    def _save(self) -> None:
        self._path.write_text(json.dumps(self._settings.to_dict(), indent=2))

    @property
    def path(self) -> Path:
        return self._path

    def get_settings(self) -> ServiceSettings:
        with self._lock:
            return self._settings

    def update_settings(self, data: Mapping[str, Any]) -> ServiceSettings:
        with self._lock:
            settings = parse_settings(data, default=self._settings)
            self._settings = settings
            self._save()
        return settings

    def get_authorization_timeout(self) -> float | None:
        with self._lock:
            return self._settings.authorization_timeout

    def set_authorization_timeout(self, value: Any) -> float | None:
        seconds = _parse_seconds(value, default=None, allow_none=True)
        with self._lock:
            self._settings = replace(self._settings, authorization_timeout=seconds)
            self._save()
        return seconds


__all__ = [
    "AUTHORIZATION_BACKENDS",
    "ConfigManager",
    "DEFAULT_SETTINGS",
    "NETWORK_BACKENDS",
    "ServiceSettings",
    "parse_settings",
    "settings_from_environment",
]
