"""极简的观察者事件。"""

from __future__ import annotations

from typing import Any, Callable


class Event:
    """可订阅的事件；`trigger` 按订阅顺序同步调用所有回调。"""

    def __init__(self) -> None:
        self._callbacks: list[Callable[..., Any]] = []

    def subscribe(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        self._callbacks.append(callback)
        return callback

    def unsubscribe(self, callback: Callable[..., Any]) -> None:
        self._callbacks = [cb for cb in self._callbacks if cb is not callback]

    def trigger(self, *args: Any) -> None:
        for cb in list(self._callbacks):
            cb(*args)

    def __len__(self) -> int:
        return len(self._callbacks)
