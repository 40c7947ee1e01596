"""Structured errors reported back across the method channel."""

from __future__ import annotations


class ChannelError(RuntimeError):
    """Failure surfaced to the caller as a ``{code, message, details}`` envelope."""

    code = "ERROR"

    def __init__(self, message: str, *, details: object | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code

    def to_dict(self) -> dict[str, object | None]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidArgumentsError(ChannelError):
    """Malformed call rejected before any OS interaction."""

    code = "INVALID_ARGS"


class RequestInProgressError(ChannelError):
    """Another connection request is still waiting for completion."""

    code = "REQUEST_IN_PROGRESS"


class UnsupportedError(ChannelError):
    """The requested capability does not exist on this platform."""

    code = "UNSUPPORTED"


class PlatformError(ChannelError):
    """Failure reported by the network configuration subsystem."""

    code = "WIFI_ERROR"


class SettingsLaunchError(ChannelError):
    code = "SETTINGS_ERROR"


__all__ = [
    "ChannelError",
    "InvalidArgumentsError",
    "PlatformError",
    "RequestInProgressError",
    "SettingsLaunchError",
    "UnsupportedError",
]
