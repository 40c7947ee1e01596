"""Permission-gated Wi-Fi configuration with normalised results."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Deque, Mapping

from .authorization import AuthorizationState, PermissionGate
from .classification import classify_apply_error
from .errors import ChannelError, PlatformError, RequestInProgressError, UnsupportedError
from .hotspot import (
    CapabilityUnsupported,
    ConfigurationBackend,
    HotspotConfiguration,
    HotspotError,
    NMCLIBackend,
    WiFiError,
)
from .models import (
    ConnectionRequest,
    ConnectionResult,
    ConnectionStatus,
    RemovalRequest,
    RemovalResult,
)
from .system_log import CATEGORY_AUTHORIZATION, CATEGORY_WIFI, SystemLog, SystemLogEntry


class WiFiConfigurator:
    """Join and remove Wi-Fi networks on behalf of the application UI.

    Each connection request first passes the :class:`PermissionGate` and is
    then submitted to the configuration backend. Only one connection request
    is accepted at a time; a second one is rejected with
    ``REQUEST_IN_PROGRESS`` until the first completes.
    """

    def __init__(
        self,
        gate: PermissionGate,
        backend: ConfigurationBackend | None = None,
        *,
        log_path: Path | str | None = Path("data/system_log.jsonl"),
        system_log: SystemLog | None = None,
    ) -> None:
        self._gate = gate
        self._backend = backend or NMCLIBackend()
        self._lock = threading.Lock()
        self._in_flight: ConnectionRequest | None = None
        self._request_ids = itertools.count(1)
        self._log: Deque[SystemLogEntry] = deque(maxlen=200)
        self._log_lock = threading.Lock()
        if isinstance(system_log, SystemLog):
            self._system_log = system_log
        else:
            self._system_log = SystemLog(path=log_path, max_entries=1000)
        self._restore_log()

    @property
    def system_log(self) -> SystemLog:
        return self._system_log

    @property
    def gate(self) -> PermissionGate:
        return self._gate

    @property
    def backend(self) -> ConfigurationBackend:
        return self._backend

    @property
    def in_flight(self) -> ConnectionRequest | None:
        with self._lock:
            return self._in_flight

    # ------------------------------ operations -----------------------------
    def submit(self, arguments: Mapping[str, Any] | None) -> "Future[ConnectionResult]":
        """Start a connection from raw channel arguments.

        Validation errors are raised immediately. The returned future resolves
        with a :class:`ConnectionResult` or fails with a :class:`ChannelError`
        once the join attempt has completed.
        """

        request = ConnectionRequest.from_arguments(arguments, request_id=next(self._request_ids))
        future: Future[ConnectionResult] = Future()
        with self._lock:
            if self._in_flight is not None:
                raise RequestInProgressError(
                    "Another Wi-Fi connection request is in progress",
                    details=self._in_flight.request_id,
                )
            self._in_flight = request
        future.set_running_or_notify_cancel()
        self._record_log(
            CATEGORY_WIFI,
            "connect_attempt",
            f"Attempting to connect to {request.ssid}.",
            metadata=request.describe(),
        )
        try:
            self._gate.ensure_authorized(
                lambda state: self._complete(request, state, future),
                request_id=request.request_id,
            )
        except ChannelError:
            self._release(request)
            raise
        return future

    def connect(
        self,
        ssid: str | None,
        password: str | None = None,
        join_once: bool = True,
    ) -> ConnectionResult:
        """Blocking variant of :meth:`submit`."""

        future = self.submit({"ssid": ssid, "password": password, "joinOnce": join_once})
        return future.result()

    def apply(self, request: ConnectionRequest) -> ConnectionResult:
        """Submit the request's configuration and classify the outcome."""

        configuration = HotspotConfiguration.for_network(
            request.ssid, request.password, join_once=request.join_once
        )
        try:
            self._backend.apply(configuration)
        except CapabilityUnsupported as exc:
            return ConnectionResult(
                success=False,
                status=ConnectionStatus.UNSUPPORTED,
                message=str(exc) or None,
            )
        except (HotspotError, WiFiError, OSError) as exc:
            logging.getLogger(__name__).debug("Wi-Fi configuration failed: %r", exc)
            return classify_apply_error(exc)
        return ConnectionResult(success=True, status=ConnectionStatus.CONNECTED)

    def clear_configuration(self, arguments: Mapping[str, Any] | None) -> RemovalResult:
        """Remove the saved configuration for an SSID; no authorization needed."""

        request = RemovalRequest.from_arguments(arguments)
        metadata = {"ssid": request.ssid}
        try:
            self._backend.remove(request.ssid)
        except CapabilityUnsupported as exc:
            self._record_log(
                CATEGORY_WIFI, "remove_unsupported", f"Cannot remove {request.ssid}: {exc}.", metadata=metadata
            )
            raise UnsupportedError(str(exc)) from exc
        except HotspotError as exc:
            self._record_log(
                CATEGORY_WIFI, "remove_error", f"Removing {request.ssid} failed: {exc.description}.", metadata=metadata
            )
            raise PlatformError(exc.description, details=exc.code) from exc
        except (WiFiError, OSError) as exc:
            message = str(exc).strip() or "Removal failed"
            self._record_log(
                CATEGORY_WIFI, "remove_error", f"Removing {request.ssid} failed: {message}.", metadata=metadata
            )
            raise PlatformError(message) from exc
        result = RemovalResult(success=True)
        self._record_log(
            CATEGORY_WIFI,
            "remove_success",
            f"Removed configuration for {request.ssid}.",
            result=result.to_dict(),
            metadata=metadata,
        )
        return result

    def get_connection_log(self, limit: int | None = None) -> list[dict[str, object | None]]:
        """Return recent connection and authorization events, newest first."""

        with self._log_lock:
            entries = list(self._log)
        if limit is not None:
            try:
                limit_value = max(1, int(limit))
            except (TypeError, ValueError):
                limit_value = 1
            entries = entries[-limit_value:]
        return [entry.to_dict() for entry in reversed(entries)]

    # ----------------------------- implementation --------------------------
    def _complete(
        self,
        request: ConnectionRequest,
        state: AuthorizationState,
        future: "Future[ConnectionResult]",
    ) -> None:
        metadata = dict(request.describe())
        metadata["authorization"] = state.value
        if not state.is_authorized:
            self._record_log(
                CATEGORY_AUTHORIZATION,
                "authorization_not_granted",
                f"Location authorization is {state.value}; attempting to join {request.ssid} anyway.",
                metadata=metadata,
            )
        try:
            result = self.apply(request)
        except ChannelError as exc:
            self._record_log(
                CATEGORY_WIFI,
                "connect_error",
                f"Connection to {request.ssid} failed: {exc.message}.",
                result=exc.to_dict(),
                metadata=metadata,
            )
            self._release(request)
            future.set_exception(exc)
            return
        except Exception as exc:
            logging.getLogger(__name__).exception("Unexpected error while joining %s", request.ssid)
            self._release(request)
            future.set_exception(exc)
            return
        event = "connect_success" if result.success else "connect_failed"
        self._record_log(
            CATEGORY_WIFI,
            event,
            f"Connection to {request.ssid} finished with status {result.status.value}.",
            result=result.to_dict(),
            metadata=metadata,
        )
        self._release(request)
        future.set_result(result)

    def _release(self, request: ConnectionRequest) -> None:
        with self._lock:
            if self._in_flight is request:
                self._in_flight = None

    def _restore_log(self) -> None:
        for category in (CATEGORY_WIFI, CATEGORY_AUTHORIZATION):
            entries = self._system_log.tail(self._log.maxlen, category=category)
            with self._log_lock:
                self._log.extend(entries)
        with self._log_lock:
            ordered = sorted(self._log, key=lambda entry: entry.timestamp)
            self._log.clear()
            self._log.extend(ordered)

    def _record_log(
        self,
        category: str,
        event: str,
        message: str,
        *,
        result: dict[str, object | None] | None = None,
        metadata: dict[str, object | None] | None = None,
    ) -> None:
        """Store a troubleshooting entry and mirror it to the logger."""

        entry = self._system_log.record(category, event, message, result=result, metadata=metadata)
        with self._log_lock:
            self._log.append(entry)
        logger = logging.getLogger(__name__)
        if entry.metadata:
            logger.info("Wi-Fi event %s: %s | metadata=%s", event, message, entry.metadata)
        else:
            logger.info("Wi-Fi event %s: %s", event, message)


__all__ = ["WiFiConfigurator"]
