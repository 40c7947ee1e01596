"""Method channel dispatch for the Wi-Fi calls made by the application UI."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .errors import ChannelError
from .settings_launcher import SettingsLauncher
from .wifi import WiFiConfigurator

CHANNEL_NAME = "com.snapable.wifi"

METHOD_CONNECT = "connectToWifi"
METHOD_CLEAR = "clearWifiConfiguration"
METHOD_OPEN_SETTINGS = "openWifiSettings"


class MethodNotImplemented(LookupError):
    """Raised for method names the channel does not handle."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Method {method!r} is not implemented on {CHANNEL_NAME}")
        self.method = method


class WiFiMethodChannel:
    """Route channel calls to the configurator and settings launcher."""

    def __init__(
        self,
        configurator: WiFiConfigurator,
        settings_launcher: SettingsLauncher | None = None,
    ) -> None:
        self._configurator = configurator
        self._settings_launcher = settings_launcher
        self._handlers: dict[str, Callable[[Mapping[str, Any] | None], object]] = {
            METHOD_CONNECT: self._connect,
            METHOD_CLEAR: self._clear,
            METHOD_OPEN_SETTINGS: self._open_settings,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    def invoke(self, method: str, arguments: Mapping[str, Any] | None = None) -> object:
        """Run ``method`` and return its result or raise :class:`ChannelError`."""

        handler = self._handlers.get(method)
        if handler is None:
            raise MethodNotImplemented(method)
        return handler(arguments)

    def handle(self, method: str, arguments: Mapping[str, Any] | None = None) -> dict[str, object]:
        """Run ``method`` and wrap the outcome in a reply envelope."""

        try:
            result = self.invoke(method, arguments)
        except MethodNotImplemented:
            return {"notImplemented": True}
        except ChannelError as exc:
            logging.getLogger(__name__).info("%s failed with %s: %s", method, exc.code, exc.message)
            return {"error": exc.to_dict()}
        return {"result": result}

    def _connect(self, arguments: Mapping[str, Any] | None) -> dict[str, object]:
        # Bounded by the gate timeout, if one is configured.
        return self._configurator.submit(arguments).result().to_dict()

    def _clear(self, arguments: Mapping[str, Any] | None) -> dict[str, object]:
        return self._configurator.clear_configuration(arguments).to_dict()

    def _open_settings(self, arguments: Mapping[str, Any] | None) -> bool:
        if self._settings_launcher is None:
            raise MethodNotImplemented(METHOD_OPEN_SETTINGS)
        return self._settings_launcher.open_network_settings()


__all__ = [
    "CHANNEL_NAME",
    "METHOD_CLEAR",
    "METHOD_CONNECT",
    "METHOD_OPEN_SETTINGS",
    "MethodNotImplemented",
    "WiFiMethodChannel",
]
