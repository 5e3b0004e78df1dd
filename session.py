"""Per-user UI session: active project plus the session's own event bus."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from event_bus import EventBus, make_event
from grid_builder import PROJECT_CHANGED, GridDataLoader


logger = logging.getLogger("screenkit.events")


class UiSession:
    def __init__(self, session_id: str | None = None, project_id: Any = None) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.bus = EventBus()
        self.project_id = project_id
        self.loaders: Dict[str, GridDataLoader] = {}
        self.forms: Dict[str, Any] = {}

    def set_active_project(self, project_id: Any) -> bool:
        """Switch projects; every attached grid reloads once. Returns False when unchanged."""
        if project_id == self.project_id:
            return False
        previous = self.project_id
        self.project_id = project_id
        event = make_event(
            PROJECT_CHANGED,
            {"project_id": project_id, "previous_project_id": previous},
            self.session_id,
        )
        logger.info("session %s switched project %s -> %s", self.session_id, previous, project_id)
        self.bus.publish(event)
        return True

    def attach_loader(self, key: str, loader: GridDataLoader) -> None:
        existing = self.loaders.pop(key, None)
        if existing is not None:
            existing.detach(self.bus)
        loader.project_id = self.project_id
        loader.attach(self.bus)
        self.loaders[key] = loader

    def detach_loader(self, key: str) -> bool:
        loader = self.loaders.pop(key, None)
        if loader is None:
            return False
        return loader.detach(self.bus)

    def loader_keys(self) -> List[str]:
        return sorted(self.loaders.keys())

    def close(self) -> None:
        for key in list(self.loaders):
            self.detach_loader(key)
        for form in self.forms.values():
            form.unbind()
        self.forms.clear()
