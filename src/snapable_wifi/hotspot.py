"""Hotspot configuration descriptors and the network subsystem backends."""

from __future__ import annotations

import logging
import re
import string
import subprocess
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence


HOTSPOT_ERROR_DOMAIN = "HotspotConfigurationErrorDomain"

_FIELD_SPLIT = re.compile(r"(?<!\\):")

# Volatile join-once profiles are kept apart from profiles the user saved.
JOIN_ONCE_PROFILE_PREFIX = "snapable-once-"


class WiFiError(RuntimeError):
    """Raised when a network subsystem command fails without a structured code."""


class CapabilityUnsupported(WiFiError):
    """Raised when the backend cannot perform an operation on this platform."""


class HotspotErrorCode(IntEnum):
    ALREADY_ASSOCIATED = 0
    USER_DENIED = 1
    INVALID = 2
    INVALID_SSID = 3
    INVALID_WPA_PASSPHRASE = 4
    INVALID_WEP_PASSPHRASE = 5
    INVALID_EAP_SETTINGS = 6
    INVALID_HS20_SETTINGS = 7
    INVALID_HS20_DOMAIN_NAME = 8
    PENDING_SYSTEM_AUTHORIZATION = 9
    SYSTEM_CONFIGURATION_DENIED = 10


class HotspotError(Exception):
    """Structured failure tagged with an error domain and integer code."""

    def __init__(self, code: int, description: str, *, domain: str = HOTSPOT_ERROR_DOMAIN) -> None:
        super().__init__(description)
        self.code = int(code)
        self.description = description
        self.domain = domain

    def __repr__(self) -> str:
        return f"HotspotError(domain={self.domain!r}, code={self.code}, description={self.description!r})"


@dataclass(slots=True)
class HotspotConfiguration:
    """Credentials and join policy for a network, submitted to the backend."""

    ssid: str
    passphrase: str | None = None
    join_once: bool = True
    is_wep: bool = False

    @classmethod
    def for_network(cls, ssid: str, passphrase: str | None, *, join_once: bool = True) -> "HotspotConfiguration":
        """Return a WPA/WPA2 descriptor when a passphrase is given, else an open one."""

        if passphrase:
            return cls(ssid=ssid, passphrase=passphrase, join_once=join_once)
        return cls(ssid=ssid, join_once=join_once)

    @property
    def secured(self) -> bool:
        return bool(self.passphrase)

    def validate(self) -> None:
        if not 1 <= len(self.ssid.encode("utf-8")) <= 32:
            raise HotspotError(
                HotspotErrorCode.INVALID_SSID,
                "SSID must be between 1 and 32 bytes",
            )
        if self.passphrase is None:
            return
        length = len(self.passphrase)
        if length == 64 and all(char in string.hexdigits for char in self.passphrase):
            return
        if not 8 <= length <= 63:
            raise HotspotError(
                HotspotErrorCode.INVALID_WPA_PASSPHRASE,
                "WPA passphrase must be 8-63 characters or 64 hexadecimal digits",
            )

    def to_dict(self) -> dict[str, object]:
        return {
            "ssid": self.ssid,
            "security": "wpa-psk" if self.secured else "open",
            "join_once": self.join_once,
        }


class ConfigurationBackend:
    """Abstract interface to the OS network configuration subsystem."""

    def apply(self, configuration: HotspotConfiguration) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def remove(self, ssid: str) -> None:
        raise CapabilityUnsupported("Removing Wi-Fi configurations is not supported on this platform")

    def current_ssid(self) -> str | None:
        return None


class UnavailableBackend(ConfigurationBackend):
    """Backend used when the host has no manageable network subsystem."""

    def __init__(self, reason: str = "Wi-Fi configuration is not available on this platform") -> None:
        self._reason = reason

    def apply(self, configuration: HotspotConfiguration) -> None:
        raise CapabilityUnsupported(self._reason)

    def remove(self, ssid: str) -> None:
        raise CapabilityUnsupported(self._reason)


class NMCLIBackend(ConfigurationBackend):
    """Configure networks through NetworkManager's nmcli tool."""

    def __init__(self, interface: str | None = None, *, timeout: float = 15.0) -> None:
        self._preferred_interface = interface
        self._timeout = timeout
        self._detected_interface: str | None = None

    # ------------------------------- helpers -------------------------------
    def _run(self, args: Sequence[str]) -> str:
        try:
            completed = subprocess.run(
                list(args),
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:  # pragma: no cover - environment specific
            raise CapabilityUnsupported("nmcli command unavailable") from exc
        except subprocess.TimeoutExpired as exc:  # pragma: no cover - environment specific
            raise WiFiError("nmcli command timed out") from exc
        except subprocess.CalledProcessError as exc:
            error_output = exc.stderr.strip() or exc.stdout.strip() or str(exc)
            raise WiFiError(error_output)
        return completed.stdout

    def _get_interface(self) -> str:
        if self._preferred_interface:
            return self._preferred_interface
        if self._detected_interface:
            return self._detected_interface
        output = self._run(["nmcli", "-t", "-f", "DEVICE,TYPE,STATE", "device"])
        for line in output.splitlines():
            parts = line.split(":")
            if len(parts) < 3:
                continue
            device, dev_type, state = (part.strip() for part in parts[:3])
            if dev_type == "wifi" and state != "unavailable":
                self._detected_interface = device
                return device
        raise WiFiError("No Wi-Fi interface detected")

    @staticmethod
    def _split_fields(line: str) -> list[str]:
        # nmcli escapes literal backslashes and colons in terse output.
        return [
            field.replace("\\\\", "\\").replace("\\:", ":")
            for field in _FIELD_SPLIT.split(line)
        ]

    @staticmethod
    def _domain_error(message: str) -> HotspotError | None:
        """Translate nmcli failure text into a structured hotspot error."""

        lowered = message.lower()
        if "not authorized" in lowered or "not authorised" in lowered:
            return HotspotError(HotspotErrorCode.SYSTEM_CONFIGURATION_DENIED, message)
        if "secrets were required" in lowered or "psk: property is invalid" in lowered:
            return HotspotError(HotspotErrorCode.INVALID_WPA_PASSPHRASE, message)
        return None

    def _delete_profile(self, name: str) -> bool:
        try:
            self._run(["nmcli", "connection", "delete", name])
        except WiFiError as exc:
            lowered = str(exc).lower()
            if any(
                phrase in lowered
                for phrase in ("unknown connection", "cannot delete unknown connection", "no such connection")
            ):
                return False
            raise
        return True

    @staticmethod
    def join_once_profile(ssid: str) -> str:
        return JOIN_ONCE_PROFILE_PREFIX + ssid

    def _join_once(self, configuration: HotspotConfiguration, interface: str) -> None:
        name = self.join_once_profile(configuration.ssid)
        self._delete_profile(name)
        args = [
            "nmcli",
            "connection",
            "add",
            "type",
            "wifi",
            "ifname",
            interface,
            "con-name",
            name,
            "ssid",
            configuration.ssid,
            "connection.autoconnect",
            "no",
        ]
        if configuration.secured:
            args.extend(["wifi-sec.key-mgmt", "wpa-psk", "wifi-sec.psk", configuration.passphrase])
        args.extend(["save", "no"])
        self._run(args)
        try:
            self._run(["nmcli", "connection", "up", name, "ifname", interface])
        except WiFiError:
            try:
                self._delete_profile(name)
            except WiFiError:
                logging.getLogger(__name__).debug("Unable to discard volatile profile %s", name, exc_info=True)
            raise

    def _join_persistent(self, configuration: HotspotConfiguration, interface: str) -> None:
        args = ["nmcli", "device", "wifi", "connect", configuration.ssid]
        if configuration.secured:
            args.extend(["password", configuration.passphrase])
        args.extend(["ifname", interface])
        self._run(args)

    # ---------------------------- interface impl ---------------------------
    def current_ssid(self) -> str | None:
        try:
            interface = self._get_interface()
            output = self._run(["nmcli", "-t", "-f", "IN-USE,SSID", "device", "wifi", "list", "ifname", interface])
        except WiFiError:
            return None
        for line in output.splitlines():
            fields = self._split_fields(line)
            if len(fields) < 2:
                continue
            if fields[0].strip() in {"*", "yes"} and fields[1]:
                return fields[1]
        return None

    def apply(self, configuration: HotspotConfiguration) -> None:
        """Join the described network, keeping it only when ``join_once`` is false."""

        configuration.validate()
        interface = self._get_interface()
        if self.current_ssid() == configuration.ssid:
            raise HotspotError(
                HotspotErrorCode.ALREADY_ASSOCIATED,
                f'Already associated with "{configuration.ssid}"',
            )
        try:
            if configuration.join_once:
                self._join_once(configuration, interface)
            else:
                self._join_persistent(configuration, interface)
        except CapabilityUnsupported:
            raise
        except WiFiError as exc:
            mapped = self._domain_error(str(exc))
            if mapped is None:
                raise
            raise mapped from exc

    def remove(self, ssid: str) -> None:
        try:
            removed = self._delete_profile(ssid)
            removed = self._delete_profile(self.join_once_profile(ssid)) or removed
        except CapabilityUnsupported:
            raise
        except WiFiError as exc:
            mapped = self._domain_error(str(exc))
            if mapped is None:
                raise
            raise mapped from exc
        if not removed:
            logging.getLogger(__name__).info('No saved configuration for "%s" to remove', ssid)


__all__ = [
    "CapabilityUnsupported",
    "ConfigurationBackend",
    "HOTSPOT_ERROR_DOMAIN",
    "JOIN_ONCE_PROFILE_PREFIX",
    "HotspotConfiguration",
    "HotspotError",
    "HotspotErrorCode",
    "NMCLIBackend",
    "UnavailableBackend",
    "WiFiError",
]
