"""Transient notices with a cancellable clear timer."""

from __future__ import annotations

from typing import Callable, Protocol

from qrmenu.config import NOTICE_LONG_SECONDS, NOTICE_SHORT_SECONDS
from qrmenu.models import Notice, NoticeLevel


class TimerHandle(Protocol):
    def stop(self) -> None: ...


SetTimer = Callable[[float, Callable[[], None]], TimerHandle]


class NoticeBoard:
    """Holds the current notice and clears it when its timer fires.

    ``set_timer`` has the shape of ``textual.app.App.set_timer``. Posting a
    notice stops the clear timer of the one it replaces, so a fresh notice
    always lives for its full duration.
    """

    def __init__(self, set_timer: SetTimer, on_change: Callable[[Notice | None], None] | None = None) -> None:
        self._set_timer = set_timer
        self._on_change = on_change
        self._timer: TimerHandle | None = None
        self.current: Notice | None = None

    def post(self, text: str, level: NoticeLevel, duration: float = NOTICE_SHORT_SECONDS) -> Notice:
        notice = Notice(text=text, level=level, duration=duration)
        self._cancel_timer()
        self.current = notice
        self._timer = self._set_timer(duration, self._expire)
        self._emit()
        return notice

    def success(self, text: str, duration: float = NOTICE_SHORT_SECONDS) -> Notice:
        return self.post(text, NoticeLevel.SUCCESS, duration)

    def info(self, text: str, duration: float = NOTICE_SHORT_SECONDS) -> Notice:
        return self.post(text, NoticeLevel.INFO, duration)

    def error(self, text: str, duration: float = NOTICE_LONG_SECONDS) -> Notice:
        return self.post(text, NoticeLevel.ERROR, duration)

    def clear(self) -> None:
        self._cancel_timer()
        if self.current is None:
            return
        self.current = None
        self._emit()

    def _expire(self) -> None:
        self._timer = None
        self.current = None
        self._emit()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self.current)
