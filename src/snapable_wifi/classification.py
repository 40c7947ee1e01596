"""Map network subsystem failures onto application-facing connection results."""

from __future__ import annotations

import logging

from .errors import PlatformError
from .hotspot import HOTSPOT_ERROR_DOMAIN, HotspotError, HotspotErrorCode
from .models import ConnectionResult, ConnectionStatus

CAPABILITY_UNAVAILABLE_MESSAGE = (
    "Wi-Fi configuration requires a network configuration entitlement that this "
    "installation does not have. Please connect manually via your Wi-Fi settings."
)

# Best-effort only: these fragments come from helper-process failures that are
# reported without a structured error code. Keep the list as observed.
HELPER_FAILURE_MARKERS = ("nehelper", "Connection invalid", "internal error")


def capability_unavailable() -> ConnectionResult:
    return ConnectionResult(
        success=False,
        status=ConnectionStatus.CAPABILITY_NOT_AVAILABLE,
        message=CAPABILITY_UNAVAILABLE_MESSAGE,
    )


def _describe(error: BaseException) -> str:
    if isinstance(error, HotspotError):
        return error.description
    return str(error).strip() or error.__class__.__name__


def classify_apply_error(error: BaseException) -> ConnectionResult:
    """Return the normalised result for ``error`` or raise :class:`PlatformError`.

    Rules are evaluated in order and the first match wins:

    1. ``alreadyAssociated`` is reported as a successful ``already_connected``.
    2. ``userDenied`` becomes ``user_denied``.
    3. ``systemConfigurationDenied`` becomes ``capability_not_available``.
    4. Any other code in the hotspot domain raises a platform error carrying
       the code as details.
    5. Undomained errors mentioning a helper-process failure are treated like
       rule 3.
    6. Everything else raises a platform error with the raw description.
    """

    description = _describe(error)
    if isinstance(error, HotspotError) and error.domain == HOTSPOT_ERROR_DOMAIN:
        if error.code == HotspotErrorCode.ALREADY_ASSOCIATED:
            return ConnectionResult(success=True, status=ConnectionStatus.ALREADY_CONNECTED)
        if error.code == HotspotErrorCode.USER_DENIED:
            return ConnectionResult(success=False, status=ConnectionStatus.USER_DENIED)
        if error.code == HotspotErrorCode.SYSTEM_CONFIGURATION_DENIED:
            return capability_unavailable()
        raise PlatformError(description, details=error.code)
    if any(marker in description for marker in HELPER_FAILURE_MARKERS):
        logging.getLogger(__name__).info(
            "Treating unstructured Wi-Fi error as missing capability: %s", description
        )
        return capability_unavailable()
    raise PlatformError(description)


__all__ = [
    "CAPABILITY_UNAVAILABLE_MESSAGE",
    "HELPER_FAILURE_MARKERS",
    "capability_unavailable",
    "classify_apply_error",
]
