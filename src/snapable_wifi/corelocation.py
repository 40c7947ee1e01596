"""CoreLocation-backed authorization provider for macOS hosts (requires PyObjC)."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

import objc
from CoreLocation import CLLocationManager
from Foundation import NSDate, NSObject, NSRunLoop

from .authorization import AuthorizationProvider, AuthorizationState

# CLAuthorizationStatus raw values.
_STATUS_MAP = {
    0: AuthorizationState.NOT_DETERMINED,
    1: AuthorizationState.RESTRICTED,
    2: AuthorizationState.DENIED,
    3: AuthorizationState.AUTHORIZED_ALWAYS,
    4: AuthorizationState.AUTHORIZED_WHEN_IN_USE,
}


def state_from_status(status: int) -> AuthorizationState:
    return _STATUS_MAP.get(int(status), AuthorizationState.NOT_DETERMINED)


class _LocationDelegate(NSObject):
    def initWithCallback_(self, callback):
        self = objc.super(_LocationDelegate, self).init()
        if self is None:
            return None
        self._callback = callback
        return self

    # macOS 11+
    def locationManagerDidChangeAuthorization_(self, manager):
        self._callback(manager.authorizationStatus())

    # Older systems
    def locationManager_didChangeAuthorizationStatus_(self, manager, status):
        self._callback(status)

    def locationManager_didFailWithError_(self, manager, error):
        logging.getLogger(__name__).warning("Location manager failed: %s", error)


class CoreLocationAuthorizationProvider(AuthorizationProvider):
    """Observe CLLocationManager authorization on a dedicated run-loop thread.

    Delegate callbacks are only delivered while the run loop of the thread
    that created the manager is running, so the manager lives on a worker
    thread that pumps the loop and executes queued calls.
    """

    def __init__(self, *, poll_interval: float = 0.1) -> None:
        super().__init__()
        self._poll_interval = poll_interval
        self._calls: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._state = AuthorizationState.NOT_DETERMINED
        self._state_lock = threading.Lock()
        self._ready = threading.Event()
        self._stop = threading.Event()
        self._manager = None
        self._delegate = None
        self._start_error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name="corelocation", daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._start_error is not None:
            raise RuntimeError("Unable to start CoreLocation manager") from self._start_error

    def _run(self) -> None:
        try:
            self._delegate = _LocationDelegate.alloc().initWithCallback_(self._on_status)
            self._manager = CLLocationManager.alloc().init()
            self._manager.setDelegate_(self._delegate)
            with self._state_lock:
                self._state = state_from_status(self._manager.authorizationStatus())
        except Exception as exc:
            self._start_error = exc
            return
        finally:
            self._ready.set()
        run_loop = NSRunLoop.currentRunLoop()
        while not self._stop.is_set():
            try:
                while True:
                    self._calls.get_nowait()()
            except queue.Empty:
                pass
            run_loop.runUntilDate_(NSDate.dateWithTimeIntervalSinceNow_(self._poll_interval))

    def _on_status(self, status: int) -> None:
        state = state_from_status(status)
        with self._state_lock:
            changed = state != self._state
            self._state = state
        logging.getLogger(__name__).debug("CoreLocation authorization status %s", state.value)
        if changed:
            self._publish(state)

    def current_state(self) -> AuthorizationState:
        with self._state_lock:
            return self._state

    def request_when_in_use(self) -> None:
        self._calls.put(lambda: self._manager.requestWhenInUseAuthorization())

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1.0)


__all__ = ["CoreLocationAuthorizationProvider", "state_from_status"]
