"""Outbound side of the Director connection."""

from __future__ import annotations

from threading import Lock
from typing import Any, Protocol


class Transport(Protocol):
    def is_ready(self) -> bool: ...

    def send(self, text: str) -> bool: ...


def user_turn_frame(text: str) -> dict[str, Any]:
    return {"type": "user_message", "data": {"text": text}}


class OutboxTransport:
    """Collects outbound user turns until a Director connector drains them."""

    def __init__(self, *, connected: bool = True) -> None:
        self._outbox: list[dict[str, Any]] = []
        self._lock = Lock()
        self._connected = connected

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = bool(connected)

    def is_ready(self) -> bool:
        with self._lock:
            return self._connected

    def send(self, text: str) -> bool:
        with self._lock:
            if not self._connected:
                return False
            self._outbox.append(user_turn_frame(text))
            return True

    def drain(self) -> list[dict[str, Any]]:
        with self._lock:
            frames = self._outbox
            self._outbox = []
            return frames
