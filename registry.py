"""Process-wide service registry: populated at start-up, read-only afterwards."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from engine_errors import ConfigurationError, RegistryLookupError, RegistryTypeError


logger = logging.getLogger("screenkit.registry")


class ServiceRegistry:
    def __init__(self) -> None:
        self._services: Dict[str, Any] = {}
        self._view: Mapping[str, Any] | None = None

    @property
    def frozen(self) -> bool:
        return self._view is not None

    def register(self, name: str, service: Any) -> None:
        if self.frozen:
            raise ConfigurationError(
                code="REGISTRY_FROZEN",
                message=f"cannot register {name!r}: registry is read-only after start-up",
                field=name,
            )
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(code="REGISTRY_NAME_INVALID", message="service name must be a non-empty string")
        if name in self._services:
            raise ConfigurationError(
                code="REGISTRY_DUPLICATE",
                message=f"service {name!r} already registered",
                field=name,
            )
        self._services[name] = service
        logger.debug("registered service %s (%s)", name, type(service).__name__)

    def freeze(self) -> None:
        if self.frozen:
            return
        # an immutable snapshot; concurrent sessions only ever read it
        self._view = MappingProxyType(dict(self._services))
        logger.info("service registry frozen with %d services", len(self._view))

    def _mapping(self) -> Mapping[str, Any]:
        return self._view if self._view is not None else self._services

    def find(self, name: str) -> Any | None:
        return self._mapping().get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._mapping()

    def names(self) -> List[str]:
        return sorted(self._mapping().keys())

    def lookup(self, name: str) -> Any:
        services = self._mapping()
        if name not in services:
            raise RegistryLookupError(
                code="REGISTRY_NOT_FOUND",
                message=f"no service registered under {name!r}",
                field=name,
            )
        return services[name]

    def lookup_typed(self, name: str, expected: type) -> Any:
        service = self.lookup(name)
        if not isinstance(service, expected):
            raise RegistryTypeError(
                code="REGISTRY_WRONG_TYPE",
                message=f"service {name!r} is {type(service).__name__}, expected {expected.__name__}",
                field=name,
                detail={"expected": expected.__name__, "actual": type(service).__name__},
            )
        return service

    def lookup_by_type(self, expected: type) -> Any:
        matches = [(n, s) for n, s in self._mapping().items() if isinstance(s, expected)]
        if not matches:
            raise RegistryLookupError(
                code="REGISTRY_TYPE_NOT_FOUND",
                message=f"no service of type {expected.__name__} registered",
                field=expected.__name__,
            )
        if len(matches) > 1:
            names = sorted(n for n, _ in matches)
            raise RegistryLookupError(
                code="REGISTRY_TYPE_AMBIGUOUS",
                message=f"{len(matches)} services of type {expected.__name__} registered: {names}",
                field=expected.__name__,
                detail={"names": names},
            )
        return matches[0][1]
