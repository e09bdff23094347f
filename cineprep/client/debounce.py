import threading
from typing import Any, Callable, Optional

SEARCH_DEBOUNCE_SECONDS = 0.4


class Debouncer:
    """Runs `func` once calls have stopped for `wait` seconds.

    Each call cancels the pending timer and starts a new one with the latest
    arguments.
    """

    def __init__(self, func: Callable[..., Any], wait: float = SEARCH_DEBOUNCE_SECONDS):
        self.func = func
        self.wait = wait
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def __call__(self, *args, **kwargs) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.wait, self.func, args=args, kwargs=kwargs)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None and self._timer.is_alive()
