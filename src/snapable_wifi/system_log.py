"""Persistent JSONL event log shared by the Wi-Fi service components."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque

CATEGORY_SYSTEM = "system"
CATEGORY_WIFI = "wifi"
CATEGORY_AUTHORIZATION = "authorization"


@dataclass(slots=True)
class SystemLogEntry:
    """A single recorded event."""

    timestamp: float
    category: str
    event: str
    message: str
    result: dict[str, object | None] | None = None
    metadata: dict[str, object | None] | None = None

    def to_dict(self) -> dict[str, object | None]:
        payload: dict[str, object | None] = {
            "timestamp": self.timestamp,
            "category": self.category,
            "event": self.event,
            "message": self.message,
        }
        if self.result is not None:
            payload["result"] = self.result
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, payload: object) -> "SystemLogEntry | None":
        if not isinstance(payload, dict):
            return None
        event = payload.get("event")
        message = payload.get("message")
        if not isinstance(event, str) or not isinstance(message, str):
            return None
        category = payload.get("category")
        try:
            timestamp = float(payload.get("timestamp"))
        except (TypeError, ValueError):
            timestamp = time.time()
        result = payload.get("result")
        metadata = payload.get("metadata")
        return cls(
            timestamp=timestamp,
            category=category.strip() if isinstance(category, str) and category.strip() else CATEGORY_SYSTEM,
            event=event,
            message=message,
            result=result if isinstance(result, dict) else None,
            metadata=metadata if isinstance(metadata, dict) else None,
        )


class SystemLog:
    """Bounded in-memory event log, optionally mirrored to a JSONL file."""

    def __init__(
        self,
        path: Path | str | None = Path("data/system_log.jsonl"),
        *,
        max_entries: int = 500,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._path: Path | None = Path(path) if path is not None else None
        self._entries: Deque[SystemLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:  # pragma: no cover - filesystem errors are rare
                logging.getLogger(__name__).warning("Unable to prepare system log directory: %s", exc)
                self._path = None
        self._restore()

    @property
    def path(self) -> Path | None:
        return self._path

    def record(
        self,
        category: str,
        event: str,
        message: str,
        *,
        result: dict[str, object | None] | None = None,
        metadata: dict[str, object | None] | None = None,
    ) -> SystemLogEntry:
        """Append an event and return the stored entry."""

        cleaned_metadata = {key: value for key, value in (metadata or {}).items() if value is not None}
        entry = SystemLogEntry(
            timestamp=time.time(),
            category=category.strip() if isinstance(category, str) and category.strip() else CATEGORY_SYSTEM,
            event=event,
            message=message,
            result=result,
            metadata=cleaned_metadata or None,
        )
        with self._lock:
            self._entries.append(entry)
            self._persist(entry)
        return entry

    def tail(self, limit: int | None = None, *, category: str | None = None) -> list[SystemLogEntry]:
        """Return the most recent entries, oldest first, optionally filtered."""

        with self._lock:
            entries = list(self._entries)
        if category is not None and category.strip():
            wanted = category.strip()
            entries = [entry for entry in entries if entry.category == wanted]
        if limit is not None:
            try:
                limit_value = max(1, int(limit))
            except (TypeError, ValueError):
                limit_value = 1
            entries = entries[-limit_value:]
        return entries

    def _restore(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:  # pragma: no cover - best effort logging
            logging.getLogger(__name__).warning("Unable to load system log: %s", exc)
            return
        for line in lines:
            if not line.strip():
                continue
            try:
                entry = SystemLogEntry.from_dict(json.loads(line))
            except ValueError:
                continue
            if entry is not None:
                self._entries.append(entry)

    def _persist(self, entry: SystemLogEntry) -> None:
        if self._path is None:
            return
        try:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry.to_dict(), separators=(",", ":")) + "\n")
        except OSError as exc:  # pragma: no cover - best effort logging
            logging.getLogger(__name__).warning("Unable to persist system log: %s", exc)


__all__ = [
    "CATEGORY_AUTHORIZATION",
    "CATEGORY_SYSTEM",
    "CATEGORY_WIFI",
    "SystemLog",
    "SystemLogEntry",
]
