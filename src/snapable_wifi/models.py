"""Request and result types exchanged with the application UI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidArgumentsError


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    ALREADY_CONNECTED = "already_connected"
    USER_DENIED = "user_denied"
    CAPABILITY_NOT_AVAILABLE = "capability_not_available"
    UNSUPPORTED = "unsupported"


def _require_ssid(arguments: Mapping[str, Any] | None) -> str:
    if not isinstance(arguments, Mapping):
        raise InvalidArgumentsError("SSID is required")
    ssid = arguments.get("ssid")
    if not isinstance(ssid, str) or not ssid:
        raise InvalidArgumentsError("SSID is required")
    return ssid


def clean_password(password: object) -> str | None:
    """Trim surrounding whitespace, treating an empty result as no password."""

    if password is None:
        return None
    if not isinstance(password, str):
        raise InvalidArgumentsError("Password must be a string or null")
    cleaned = password.strip()
    return cleaned or None


@dataclass(frozen=True, slots=True)
class ConnectionRequest:
    """A validated request to join a Wi-Fi network."""

    ssid: str
    password: str | None = None
    join_once: bool = True
    request_id: int = 0

    @classmethod
    def from_arguments(
        cls, arguments: Mapping[str, Any] | None, *, request_id: int = 0
    ) -> "ConnectionRequest":
        """Build a request from raw channel arguments (``ssid``, ``password``, ``joinOnce``)."""

        ssid = _require_ssid(arguments)
        password = clean_password(arguments.get("password"))
        join_once = arguments.get("joinOnce", True)
        if join_once is None:
            join_once = True
        if not isinstance(join_once, bool):
            raise InvalidArgumentsError("joinOnce must be a boolean")
        return cls(ssid=ssid, password=password, join_once=join_once, request_id=request_id)

    @property
    def secured(self) -> bool:
        return bool(self.password)

    def describe(self) -> dict[str, object]:
        """Return loggable metadata without the passphrase."""

        return {
            "request_id": self.request_id,
            "ssid": self.ssid,
            "password_provided": self.secured,
            "join_once": self.join_once,
        }


@dataclass(slots=True)
class ConnectionResult:
    """Normalised outcome of a connection attempt."""

    success: bool
    status: ConnectionStatus
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "success": self.success,
            "status": self.status.value,
        }
        if self.message:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True, slots=True)
class RemovalRequest:
    ssid: str

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any] | None) -> "RemovalRequest":
        return cls(ssid=_require_ssid(arguments))


@dataclass(slots=True)
class RemovalResult:
    success: bool

    def to_dict(self) -> dict[str, object]:
        return {"success": self.success}


__all__ = [
    "ConnectionRequest",
    "ConnectionResult",
    "ConnectionStatus",
    "RemovalRequest",
    "RemovalResult",
    "clean_password",
]
