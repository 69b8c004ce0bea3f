# gapwatch/channel.py
import logging
from typing import Any, Awaitable, Callable, List

Subscriber = Callable[[Any], Awaitable[None]]

class EventChannel:
    """
    Typed event stream owned by one component.
    Subscribers are async callables awaited in subscription order, so
    tests can assert on the exact sequence a component emitted.
    """
    def __init__(self, name: str, logger: logging.Logger):
        self.name = name
        self.logger = logger
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Subscriber:
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def publish(self, event: Any):
        for callback in list(self._subscribers):
            try:
                await callback(event)
            except Exception as e:
                # A broken subscriber must not stop the publisher's loop
                self.logger.error(f"Subscriber error on '{self.name}' channel: {e}")
