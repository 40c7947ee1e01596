"""Location authorization providers and the permission gate for Wi-Fi joins."""

from __future__ import annotations

import itertools
import logging
import threading
from enum import Enum
from typing import Callable

from .errors import RequestInProgressError


class AuthorizationState(str, Enum):
    NOT_DETERMINED = "notDetermined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    AUTHORIZED_WHEN_IN_USE = "authorizedWhenInUse"
    AUTHORIZED_ALWAYS = "authorizedAlways"

    @property
    def is_authorized(self) -> bool:
        return self in (AuthorizationState.AUTHORIZED_WHEN_IN_USE, AuthorizationState.AUTHORIZED_ALWAYS)

    @property
    def is_decided(self) -> bool:
        return self is not AuthorizationState.NOT_DETERMINED

    @classmethod
    def parse(cls, value: object) -> "AuthorizationState":
        if isinstance(value, AuthorizationState):
            return value
        if isinstance(value, str):
            text = value.strip()
            for member in cls:
                if text == member.value or text.lower() == member.name.lower():
                    return member
        raise ValueError(f"Unknown authorization state: {value!r}")


AuthorizationListener = Callable[[AuthorizationState], None]


class Subscription:
    """Handle returned by :meth:`AuthorizationProvider.subscribe`."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._active = True
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._cancel()


class AuthorizationProvider:
    """Source of the process' location authorization state."""

    def __init__(self) -> None:
        self._listeners: dict[int, AuthorizationListener] = {}
        self._listener_ids = itertools.count(1)
        self._listener_lock = threading.Lock()

    def current_state(self) -> AuthorizationState:  # pragma: no cover - interface only
        raise NotImplementedError

    def request_when_in_use(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def subscribe(self, listener: AuthorizationListener) -> Subscription:
        """Register interest in authorization transitions until cancelled."""

        with self._listener_lock:
            token = next(self._listener_ids)
            self._listeners[token] = listener

        def _remove() -> None:
            with self._listener_lock:
                self._listeners.pop(token, None)

        return Subscription(_remove)

    @property
    def subscriber_count(self) -> int:
        with self._listener_lock:
            return len(self._listeners)

    def _publish(self, state: AuthorizationState) -> None:
        with self._listener_lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(state)
            except Exception:  # pragma: no cover - listener bugs must not stop delivery
                logging.getLogger(__name__).exception("Authorization listener failed")


class InMemoryAuthorizationProvider(AuthorizationProvider):
    """Provider whose state is pushed in by the host, e.g. over the HTTP API.

    Hosts without location gating use it with ``authorizedAlways`` so every
    request proceeds straight to the network backend.
    """

    def __init__(self, state: AuthorizationState = AuthorizationState.AUTHORIZED_ALWAYS) -> None:
        super().__init__()
        self._state = AuthorizationState.parse(state)
        self._state_lock = threading.Lock()
        self.requests = 0

    def current_state(self) -> AuthorizationState:
        with self._state_lock:
            return self._state

    def request_when_in_use(self) -> None:
        with self._state_lock:
            self.requests += 1
        logging.getLogger(__name__).info("Location authorization requested")

    def update(self, state: AuthorizationState | str) -> AuthorizationState:
        """Record a new decision and notify subscribers."""

        parsed = AuthorizationState.parse(state)
        with self._state_lock:
            self._state = parsed
        self._publish(parsed)
        return parsed


class AuthorizationTicket:
    """Per-request wait handle resumed exactly once by the gate."""

    def __init__(self, request_id: int, on_ready: AuthorizationListener) -> None:
        self.request_id = request_id
        self._on_ready = on_ready
        self._event = threading.Event()
        self.state: AuthorizationState | None = None
        self.timed_out = False

    @property
    def resumed(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> AuthorizationState | None:
        self._event.wait(timeout)
        return self.state

    def _resume(self, state: AuthorizationState) -> None:
        self.state = state
        try:
            self._on_ready(state)
        finally:
            self._event.set()


class _Pending:
    __slots__ = ("ticket", "subscription", "timer")

    def __init__(self, ticket: AuthorizationTicket) -> None:
        self.ticket = ticket
        self.subscription: Subscription | None = None
        self.timer: threading.Timer | None = None


class PermissionGate:
    """Ensure location authorization has been decided before a Wi-Fi join.

    The gate never blocks on denial: a denied or restricted decision still
    resumes the waiting request and the network backend reports the failure.
    Only one request may wait for a decision at a time.
    """

    def __init__(self, provider: AuthorizationProvider, *, timeout: float | None = None) -> None:
        self._provider = provider
        self._timeout = timeout if timeout is None else max(0.0, timeout)
        self._lock = threading.Lock()
        self._pending: _Pending | None = None
        self._request_ids = itertools.count(1)

    @property
    def provider(self) -> AuthorizationProvider:
        return self._provider

    @property
    def pending_request_id(self) -> int | None:
        with self._lock:
            return self._pending.ticket.request_id if self._pending else None

    def ensure_authorized(
        self,
        on_ready: AuthorizationListener,
        *,
        request_id: int | None = None,
    ) -> AuthorizationTicket:
        """Invoke ``on_ready`` once authorization has been decided for this request."""

        logger = logging.getLogger(__name__)
        ticket = AuthorizationTicket(
            request_id if request_id is not None else next(self._request_ids),
            on_ready,
        )
        with self._lock:
            if self._pending is not None:
                raise RequestInProgressError(
                    "A Wi-Fi request is already waiting for location authorization",
                    details=self._pending.ticket.request_id,
                )
            pending = _Pending(ticket)
            # Subscribe before reading the state so no transition is missed.
            pending.subscription = self._provider.subscribe(
                lambda observed: self._on_transition(pending, observed)
            )
            state = self._provider.current_state()
            waiting = not state.is_decided
            if not waiting:
                pending.subscription.cancel()
            else:
                self._pending = pending
                if self._timeout is not None:
                    timer = threading.Timer(self._timeout, self._on_timeout, args=(pending,))
                    timer.daemon = True
                    pending.timer = timer
                    timer.start()
        if not waiting:
            logger.debug("Authorization already %s for request %s", state.value, ticket.request_id)
            ticket._resume(state)
            return ticket
        logger.info("Requesting location authorization for request %s", ticket.request_id)
        self._provider.request_when_in_use()
        return ticket

    def _release(self, pending: _Pending) -> bool:
        with self._lock:
            if self._pending is not pending or pending.ticket.resumed:
                return False
            self._pending = None
        if pending.subscription is not None:
            pending.subscription.cancel()
        if pending.timer is not None:
            pending.timer.cancel()
        return True

    def _on_transition(self, pending: _Pending, state: AuthorizationState) -> None:
        if not state.is_decided:
            return
        if not self._release(pending):
            return
        logging.getLogger(__name__).info(
            "Location authorization %s for request %s", state.value, pending.ticket.request_id
        )
        pending.ticket._resume(state)

    def _on_timeout(self, pending: _Pending) -> None:
        if not self._release(pending):
            return
        state = self._provider.current_state()
        logging.getLogger(__name__).warning(
            "No authorization decision for request %s after %.1fs; continuing as %s",
            pending.ticket.request_id,
            self._timeout,
            state.value,
        )
        pending.ticket.timed_out = True
        pending.ticket._resume(state)


__all__ = [
    "AuthorizationProvider",
    "AuthorizationState",
    "AuthorizationTicket",
    "InMemoryAuthorizationProvider",
    "PermissionGate",
    "Subscription",
]
