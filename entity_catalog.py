"""Maps persisted entity type names to model classes and their data services."""

from __future__ import annotations

from typing import Dict, List

from engine_errors import ConfigurationError, EntityTypeNotFoundError
from field_meta import describe_as_dicts


class EntityCatalog:
    def __init__(self) -> None:
        self._classes: Dict[str, type] = {}
        self._services: Dict[str, str] = {}

    def register(self, cls: type, name: str | None = None, service: str | None = None) -> None:
        type_name = name or cls.__name__
        existing = self._classes.get(type_name)
        if existing is not None and existing is not cls:
            raise ConfigurationError(
                code="ENTITY_TYPE_DUPLICATE",
                message=f"entity type {type_name!r} already mapped to {existing.__name__}",
                field=type_name,
            )
        self._classes[type_name] = cls
        if service:
            self._services[type_name] = service

    def resolve(self, type_name: str) -> type:
        cls = self._classes.get(type_name)
        if cls is None:
            raise EntityTypeNotFoundError(
                code="ENTITY_TYPE_NOT_FOUND",
                message=f"unknown entity type {type_name!r}",
                field=type_name,
            )
        return cls

    def has(self, type_name: str) -> bool:
        return type_name in self._classes

    def name_of(self, cls: type) -> str | None:
        for type_name, klass in self._classes.items():
            if klass is cls:
                return type_name
        return None

    def service_for(self, type_name: str) -> str | None:
        return self._services.get(type_name)

    def names(self) -> List[str]:
        return sorted(self._classes.keys())

    def listing(self) -> list[dict]:
        return [
            {"entity_type": name, "service": self._services.get(name), "fields": describe_as_dicts(self._classes[name])}
            for name in self.names()
        ]
