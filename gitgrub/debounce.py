"""
Debounce de llamadas (trailing edge).

Se usa para no disparar una búsqueda por cada tecla: solo el último valor
dentro de la ventana llega al callback.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional


class Debouncer:
    """
    Ejecuta `func` una sola vez, `delay` segundos después de la última llamada.

    Uso
    ---
    >>> seen = []
    >>> d = Debouncer(seen.append, delay=0.3)
    >>> d("pa"); d("pas"); d("pasta")
    >>> d.flush()
    >>> seen
    ['pasta']
    """

    def __init__(self, func: Callable[..., Any], delay: float = 0.3):
        self.func = func
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[tuple] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (args, kwargs)
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _take(self) -> Optional[tuple]:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            pending, self._pending = self._pending, None
            return pending

    def _fire(self) -> None:
        pending = self._take()
        if pending is not None:
            args, kwargs = pending
            self.func(*args, **kwargs)

    def flush(self) -> None:
        """Ejecuta ya la llamada pendiente (si hay)."""
        self._fire()

    def cancel(self) -> None:
        """Descarta la llamada pendiente."""
        self._take()
