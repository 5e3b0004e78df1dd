"""Base entity types shared by every generated screen."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from field_meta import ui_field


MAX_LENGTH_NAME = 100
MAX_LENGTH_DESCRIPTION = 2000


@dataclass(eq=False)
class Entity:
    id: int | None = ui_field(display_name="ID", order=0, hidden=True, read_only=True)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(self) is not type(other) or self.id is None:
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id)) if self.id is not None else id(self)


@dataclass(eq=False)
class NamedEntity(Entity):
    name: str | None = ui_field(
        display_name="Name", description="Name", order=1, required=True, max_length=MAX_LENGTH_NAME
    )
    description: str | None = ui_field(
        display_name="Description",
        description="Detailed description",
        order=2,
        max_length=MAX_LENGTH_DESCRIPTION,
    )
    created_date: datetime | None = ui_field(display_name="Created Date", order=80, read_only=True)
    last_modified_date: datetime | None = ui_field(display_name="Last Modified", order=81, read_only=True)

    def __str__(self) -> str:
        return self.name or f"{type(self).__name__}#{self.id}"


@dataclass(eq=False)
class Project(NamedEntity):
    pass


@dataclass(eq=False)
class ProjectEntity(NamedEntity):
    project: Project | None = ui_field(display_name="Project", order=3, hidden=True)

    @property
    def project_id(self) -> int | None:
        return self.project.id if self.project is not None else None


def display_text(value: Any) -> str:
    """Human-readable text for an option value (entity, enum member or scalar)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    return str(value)
