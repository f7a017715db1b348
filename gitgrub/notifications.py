"""
Notificaciones transitorias (toasts).

Los errores del backend se atrapan localmente y se muestran al usuario como
notificaciones que expiran solas. Cada usuario tiene su propio
`NotificationCenter`; el registro por usuario vive en memoria del proceso.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import get_settings

NOTIFICATION_TYPES = {"success", "error", "info", "warning"}


@dataclass
class Notification:
    id: str
    type: str
    message: str
    description: Optional[str] = None
    duration_ms: int = 4000
    created_at: float = field(default=0.0, repr=False)

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.duration_ms / 1000


class NotificationCenter:
    """Cola de notificaciones con expiración automática."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._items: List[Notification] = []

    def show(
        self,
        type: str,
        message: str,
        description: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> str:
        """
        Agrega una notificación y devuelve su id.

        Raises:
            ValueError: Si el tipo no es success|error|info|warning.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Tipo de notificación inválido: {type}")
        item = Notification(
            id=str(uuid.uuid4()),
            type=type,
            message=message,
            description=description,
            duration_ms=duration_ms or get_settings().notification_duration_ms,
            created_at=self._clock(),
        )
        with self._lock:
            self._items.append(item)
        return item.id

    def remove(self, notification_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [n for n in self._items if n.id != notification_id]
            return len(self._items) != before

    def active(self) -> List[Notification]:
        """Notificaciones vigentes (las expiradas se descartan)."""
        now = self._clock()
        with self._lock:
            self._items = [n for n in self._items if not n.expired(now)]
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


_centers: Dict[str, NotificationCenter] = {}
_centers_lock = threading.Lock()


def get_notification_center(user_id: str) -> NotificationCenter:
    """Devuelve (y crea si no existe) el centro de notificaciones del usuario."""
    with _centers_lock:
        center = _centers.get(user_id)
        if center is None:
            center = _centers[user_id] = NotificationCenter()
        return center


def drop_notification_center(user_id: str) -> None:
    with _centers_lock:
        _centers.pop(user_id, None)
