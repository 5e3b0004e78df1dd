"""Sample project-management domain served by the HTTP host."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List

from app.stores import MemoryEntityService, MemoryProjectEntityService
from entities import NamedEntity, Project, ProjectEntity
from entity_catalog import EntityCatalog
from field_meta import ui_field
from registry import ServiceRegistry


class ActivityStatus(enum.Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(eq=False)
class User(NamedEntity):
    login: str | None = ui_field(display_name="Login", order=10, required=True, max_length=50)
    email: str | None = ui_field(display_name="Email", order=11, max_length=255, placeholder="name@example.com")
    active: bool = ui_field(True, display_name="Active", order=12, default_value="true")


@dataclass(eq=False)
class ActivityType(ProjectEntity):
    color: str | None = ui_field(display_name="Color", order=10, max_length=7, default_value="#4a90e2")
    icon: str | None = ui_field(display_name="Icon", order=11, max_length=40)


@dataclass(eq=False)
class Activity(ProjectEntity):
    activity_type: ActivityType | None = ui_field(
        display_name="Type",
        order=10,
        data_provider_bean="ActivityTypeService",
        use_icon=True,
        set_background_from_color=True,
    )
    assigned_to: User | None = ui_field(
        display_name="Assigned To",
        order=11,
        data_provider_bean="UserService",
        data_provider_method="list_active",
        filter_method="search",
    )
    status: ActivityStatus | None = ui_field(display_name="Status", order=12, default_value="PLANNED")
    priority: int | None = ui_field(display_name="Priority", order=13, min=1, max=5, default_value="3")
    category: str | None = ui_field(
        display_name="Category",
        order=14,
        data_provider_bean="CategoryService",
        data_provider_method="names",
        allow_custom_value=True,
    )
    estimated_hours: Decimal | None = ui_field(display_name="Estimated Hours", order=15, min=0)
    progress: float | None = ui_field(display_name="Progress %", order=16, min=0, max=100)
    start_date: date | None = ui_field(display_name="Start Date", order=20)
    due_date: date | None = ui_field(display_name="Due Date", order=21)
    completed: bool = ui_field(False, display_name="Completed", order=22)
    participants: List[User] = ui_field(
        default_factory=list,
        display_name="Participants",
        order=30,
        data_provider_bean="UserService",
        data_provider_method="list_active",
    )
    comments: str | None = ui_field(display_name="Comments", order=40, max_length=4000)


class UserService(MemoryEntityService):
    def __init__(self) -> None:
        super().__init__(User)

    def list_active(self) -> list[User]:
        return [u for u in self.list() if u.active]


class CategoryService:
    def __init__(self, names: list[str] | None = None) -> None:
        self._names = list(names or [])

    def names(self) -> list[str]:
        return list(self._names)


def register_services(registry: ServiceRegistry, catalog: EntityCatalog) -> None:
    registry.register("ProjectService", MemoryEntityService(Project))
    registry.register("UserService", UserService())
    registry.register("ActivityTypeService", MemoryProjectEntityService(ActivityType))
    registry.register("ActivityService", MemoryProjectEntityService(Activity))
    registry.register("CategoryService", CategoryService(["Development", "Design", "Support", "Meeting"]))
    catalog.register(Project, service="ProjectService")
    catalog.register(User, service="UserService")
    catalog.register(ActivityType, service="ActivityTypeService")
    catalog.register(Activity, service="ActivityService")


def seed(registry: ServiceRegistry) -> dict:
    """Populate the services with two projects' worth of data; returns the project ids."""
    projects = registry.lookup("ProjectService")
    users = registry.lookup("UserService")
    types = registry.lookup("ActivityTypeService")
    activities = registry.lookup("ActivityService")

    alpha = projects.save(Project(name="Alpha", description="Website relaunch"))
    beta = projects.save(Project(name="Beta", description="Internal tooling"))
    ada = users.save(User(name="Ada Lovelace", login="ada", email="ada@example.com"))
    alan = users.save(User(name="Alan Turing", login="alan", email="alan@example.com"))
    users.save(User(name="Former Staff", login="former", active=False))

    task = types.save(ActivityType(name="Task", project=alpha, color="#4a90e2", icon="vaadin:tasks"))
    bug = types.save(ActivityType(name="Bug", project=alpha, color="#d0021b", icon="vaadin:bug"))
    chore = types.save(ActivityType(name="Chore", project=beta, color="#7ed321", icon="vaadin:tools"))

    activities.save(
        Activity(
            name="Design landing page",
            project=alpha,
            activity_type=task,
            assigned_to=ada,
            status=ActivityStatus.IN_PROGRESS,
            priority=2,
            category="Design",
            estimated_hours=Decimal("12.5"),
            progress=40.0,
            start_date=date(2026, 9, 1),
            due_date=date(2026, 10, 30),
            participants=[ada, alan],
            description="First pass of the new landing page.",
        )
    )
    activities.save(
        Activity(
            name="Fix login redirect",
            project=alpha,
            activity_type=bug,
            assigned_to=alan,
            status=ActivityStatus.PLANNED,
            priority=1,
            category="Development",
        )
    )
    activities.save(
        Activity(name="Rotate build agents", project=beta, activity_type=chore, assigned_to=alan, priority=4)
    )
    return {"alpha": alpha.id, "beta": beta.id}


def default_definitions(project_id: str) -> list[tuple[str, dict]]:
    screen = {
        "id": "activity.details",
        "project_id": project_id,
        "name": "Activity details",
        "entity_type": "Activity",
        "lines": [
            {"kind": "section", "caption": "Info", "name": "info"},
            {"kind": "field", "field": "name"},
            {"kind": "field", "field": "activity_type"},
            {"kind": "field", "field": "status", "overrides": {"use_radio_buttons": True}},
            {"kind": "field", "field": "assigned_to"},
            {"kind": "field", "field": "participants"},
            {"kind": "section", "caption": "Planning", "name": "planning"},
            {"kind": "field", "field": "priority"},
            {"kind": "field", "field": "estimated_hours"},
            {"kind": "field", "field": "start_date"},
            {"kind": "field", "field": "due_date"},
            {"kind": "field", "field": "completed"},
            {"kind": "section", "caption": "Notes", "name": "notes"},
            {"kind": "field", "field": "description"},
            {"kind": "field", "field": "comments", "overrides": {"display_name": "Internal comments"}},
        ],
    }
    grid = {
        "id": "activity.grid",
        "project_id": project_id,
        "name": "Activities",
        "entity_type": "Activity",
        "data_service": "ActivityService",
        "fields": "id:0,name:1,activity_type:2,status:3,assigned_to:4,due_date:5,completed:6,description:7",
    }
    return [("screen", screen), ("grid", grid)]
