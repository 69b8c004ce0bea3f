# gapwatch/gateway.py
import logging
from typing import Any, Awaitable, Callable, List

Observer = Callable[[str, Any], Awaitable[None]]

def to_payload(data: Any) -> Any:
    """Dataclass records go out as plain dicts, lists element-wise."""
    if hasattr(data, "to_dict"):
        return data.to_dict()
    if isinstance(data, list):
        return [to_payload(item) for item in data]
    return data

class BroadcastGateway:
    """
    Fans every named event out to all connected observers.
    Best effort: no filtering, no buffering, no retries. An observer that
    raises is logged and skipped for that event only.
    """
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._observers: List[Observer] = []

    def add_observer(self, observer: Observer) -> Observer:
        if observer not in self._observers:
            self._observers.append(observer)
        return observer

    def remove_observer(self, observer: Observer):
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def client_count(self) -> int:
        return len(self._observers)

    async def broadcast(self, event: str, data: Any):
        payload = to_payload(data)
        for observer in list(self._observers):
            try:
                await observer(event, payload)
            except Exception as e:
                self.logger.warning(f"Dropped '{event}' for one observer: {e}")
