"""Per-session event bus for UI notifications such as ``project.changed``."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from engine_errors import ConfigurationError


Event = Dict[str, Any]
Handler = Callable[[Event], None]

logger = logging.getLogger("screenkit.events")


def make_event(name: str, payload: dict, session_id: str | None = None) -> Event:
    if not isinstance(name, str) or not name:
        raise ConfigurationError(code="EVENT_NAME_INVALID", message="event name must be a non-empty string")
    if not isinstance(payload, dict):
        raise ConfigurationError(code="EVENT_PAYLOAD_INVALID", message=f"payload of {name} must be an object", field=name)
    meta = {
        "event_id": str(uuid.uuid4()),
        "occurred_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "session_id": session_id,
    }
    return {"name": name, "payload": copy.deepcopy(payload), "meta": meta}


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subs.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        handlers = self._subs.get(name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._subs[name]
        return True

    def subscriber_count(self, name: str) -> int:
        return len(self._subs.get(name, []))

    def publish(self, event: Event) -> int:
        """Run the handlers for ``event`` in subscription order; returns how many succeeded."""
        delivered = 0
        for handler in list(self._subs.get(event["name"], [])):
            try:
                handler(event)
            except Exception:
                logger.exception("handler %r failed for event %s", handler, event["name"])
                continue
            delivered += 1
        return delivered
