"""
Valya - Notification Port.

============================================================
PURPOSE
============================================================
Invokes the two external lifecycle callbacks:

    start()        - once per accepted trigger, synchronously
    end(state)     - once per run that settles while still current

Absent callbacks are bound to a no-op, so call sites never check
for None. A callback that raises is logged and contained; it never
escapes into the scheduler or the run task.

============================================================
"""

import inspect
import logging
from typing import Any, Callable, Optional

from .models import ValidationState


logger = logging.getLogger(__name__)


def _noop(*args: Any) -> None:
    return None


class NotificationPort:
    """Dispatches on_start / on_end for effective (non-stale) runs."""

    def __init__(
        self,
        on_start: Optional[Callable[[], Any]] = None,
        on_end: Optional[Callable[[ValidationState], Any]] = None,
    ):
        self._on_start: Callable[[], Any] = _noop
        self._on_end: Callable[[ValidationState], Any] = _noop
        self.bind(on_start, on_end)

    def bind(
        self,
        on_start: Optional[Callable[[], Any]] = None,
        on_end: Optional[Callable[[ValidationState], Any]] = None,
    ) -> None:
        """Replace the callbacks. None binds the no-op."""
        self._on_start = on_start or _noop
        self._on_end = on_end or _noop

    @property
    def has_start(self) -> bool:
        return self._on_start is not _noop

    @property
    def has_end(self) -> bool:
        return self._on_end is not _noop

    def start(self) -> None:
        self._dispatch("on_start", self._on_start)

    def end(self, state: ValidationState) -> None:
        self._dispatch("on_end", self._on_end, state)

    def _dispatch(self, name: str, callback: Callable[..., Any], *args: Any) -> None:
        try:
            result = callback(*args)
        except Exception:
            logger.error(f"{name} callback failed", exc_info=True)
            return

        # Callbacks are synchronous; a returned coroutine is closed unawaited.
        if inspect.iscoroutine(result):
            logger.warning(f"{name} callback returned a coroutine; callbacks must be synchronous")
            result.close()
