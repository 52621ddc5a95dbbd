"""Named-event subscriptions for decoded packets."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from zanarkand.core.reporting import Reporter

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self, reporter: Reporter) -> None:
        self._reporter = reporter
        # handler -> once flag; dict keys keep each subscriber distinct and ordered
        self._handlers: dict[str, dict[Handler, bool]] = {}

    def on(self, name: str, handler: Handler) -> None:
        self._handlers.setdefault(name, {})[handler] = False

    def once(self, name: str, handler: Handler) -> None:
        self._handlers.setdefault(name, {}).setdefault(handler, True)

    def off(self, name: str, handler: Handler) -> None:
        handlers = self._handlers.get(name)
        if not handlers:
            return
        handlers.pop(handler, None)
        if not handlers:
            del self._handlers[name]

    def listener_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    def next(self, name: str) -> asyncio.Future[Any]:
        """Future resolved by the next `name` event, then detached."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def _resolve(payload: Any) -> None:
            if not future.done():
                future.set_result(payload)

        self.once(name, _resolve)
        future.add_done_callback(lambda _: self.off(name, _resolve))
        return future

    def emit(self, name: str, payload: Any) -> int:
        handlers = self._handlers.get(name)
        if not handlers:
            return 0
        snapshot = list(handlers.items())
        for handler, once in snapshot:
            if once:
                self.off(name, handler)
        for handler, _ in snapshot:
            try:
                handler(payload)
            except Exception as exc:
                self._reporter.error(f"Handler for '{name}' event raised: {exc!r}")
        return len(snapshot)
