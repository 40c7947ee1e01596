"""Version information for the Wi-Fi configuration service."""

APP_VERSION = "0.3.0"

__all__ = ["APP_VERSION"]
