"""Open the host's Wi-Fi settings screen."""

from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from .errors import SettingsLaunchError

DEFAULT_SETTINGS_COMMAND = ("nm-connection-editor",)


class SettingsLauncher:
    def open_network_settings(self) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError


class CommandSettingsLauncher(SettingsLauncher):
    """Launch a settings application as a detached process."""

    def __init__(self, command: Sequence[str] = DEFAULT_SETTINGS_COMMAND) -> None:
        if not command:
            raise ValueError("Settings command must not be empty")
        self._command = list(command)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def open_network_settings(self) -> bool:
        try:
            subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            logging.getLogger(__name__).warning("Unable to open Wi-Fi settings: %s", exc)
            raise SettingsLaunchError(str(exc) or "Unable to open Wi-Fi settings") from exc
        logging.getLogger(__name__).info("Opened Wi-Fi settings with %s", self._command[0])
        return True


__all__ = ["CommandSettingsLauncher", "DEFAULT_SETTINGS_COMMAND", "SettingsLauncher"]
