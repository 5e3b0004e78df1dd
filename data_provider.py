"""Resolves option lists for selection fields from named registry services."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List

from engine_errors import DataProviderError, RegistryLookupError
from entities import display_text
from field_meta import NO_PROVIDER, FieldMeta
from registry import ServiceRegistry
from widgets import ComboBox


logger = logging.getLogger("screenkit.providers")

DEFAULT_METHOD = "list"


def _check_signature(method: Callable, args: tuple, field_name: str, bean: str, method_name: str) -> None:
    try:
        signature = inspect.signature(method)
    except (TypeError, ValueError):
        return
    try:
        signature.bind(*args)
    except TypeError as exc:
        raise DataProviderError(
            code="PROVIDER_SIGNATURE_MISMATCH",
            message=f"{bean}.{method_name} cannot be called with {len(args)} argument(s) for field {field_name!r}: {exc}",
            field=field_name,
            detail={"bean": bean, "method": method_name},
        )


class DataProviderResolver:
    def __init__(self, registry: ServiceRegistry) -> None:
        self.registry = registry

    def _service(self, field_name: str, element_type: Any, meta: FieldMeta) -> tuple[str, Any]:
        bean = meta.data_provider_bean
        if bean:
            try:
                return bean, self.registry.lookup(bean)
            except RegistryLookupError:
                raise DataProviderError(
                    code="PROVIDER_BEAN_NOT_FOUND",
                    message=f"data provider bean {bean!r} for field {field_name!r} is not registered",
                    field=field_name,
                    detail={"bean": bean},
                )
        if meta.data_provider_class is not None:
            cls_name = meta.data_provider_class.__name__
            try:
                return cls_name, self.registry.lookup_by_type(meta.data_provider_class)
            except RegistryLookupError as exc:
                raise DataProviderError(
                    code="PROVIDER_CLASS_NOT_FOUND",
                    message=f"data provider class {cls_name} for field {field_name!r}: {exc.message}",
                    field=field_name,
                    detail={"class": cls_name},
                )
        # entity references without explicit provider use the "<Entity>Service" bean
        type_name = getattr(element_type, "__name__", None)
        bean = f"{type_name}Service" if type_name else ""
        service = self.registry.find(bean) if bean else None
        if service is None:
            raise DataProviderError(
                code="PROVIDER_NOT_CONFIGURED",
                message=f"no data provider configured for field {field_name!r} and no {bean or 'default'} service registered",
                field=field_name,
                detail={"bean": bean or None},
            )
        return bean, service

    def _method(self, service: Any, bean: str, method_name: str, field_name: str) -> Callable:
        method = getattr(service, method_name, None)
        if method is None or not callable(method):
            raise DataProviderError(
                code="PROVIDER_METHOD_NOT_FOUND",
                message=f"data provider {bean!r} has no method {method_name!r} (field {field_name!r})",
                field=field_name,
                detail={"bean": bean, "method": method_name},
            )
        return method

    def _filter_elements(self, result: Any, element_type: Any, bean: str, method_name: str, field_name: str) -> List[Any]:
        if not isinstance(result, (list, tuple)):
            raise DataProviderError(
                code="PROVIDER_RESULT_INVALID",
                message=f"{bean}.{method_name} returned {type(result).__name__}, expected a list (field {field_name!r})",
                field=field_name,
                detail={"bean": bean, "method": method_name},
            )
        if not isinstance(element_type, type):
            return list(result)
        items = [item for item in result if isinstance(item, element_type)]
        dropped = len(result) - len(items)
        if dropped:
            logger.debug("dropped %d option(s) of unexpected type from %s.%s for %s", dropped, bean, method_name, field_name)
        return items

    def resolve(self, field_name: str, element_type: Any, meta: FieldMeta) -> List[Any]:
        if meta.data_provider_bean == NO_PROVIDER:
            return []
        bean, service = self._service(field_name, element_type, meta)
        method_name = meta.data_provider_method or DEFAULT_METHOD
        method = self._method(service, bean, method_name, field_name)
        args: tuple = ()
        if meta.data_provider_param_method:
            param_method = self._method(service, bean, meta.data_provider_param_method, field_name)
            _check_signature(param_method, (), field_name, bean, meta.data_provider_param_method)
            args = (param_method(),)
        _check_signature(method, args, field_name, bean, method_name)
        result = method(*args)
        items = self._filter_elements(result, element_type, bean, method_name, field_name)
        logger.debug("resolved %d option(s) for %s from %s.%s", len(items), field_name, bean, method_name)
        return items

    def filter(self, field_name: str, element_type: Any, meta: FieldMeta, text: str) -> List[Any]:
        """Type-ahead filtering through the configured ``filter_method``."""
        if not meta.filter_method or meta.data_provider_bean == NO_PROVIDER:
            return []
        bean, service = self._service(field_name, element_type, meta)
        method = self._method(service, bean, meta.filter_method, field_name)
        _check_signature(method, (text,), field_name, bean, meta.filter_method)
        return self._filter_elements(method(text), element_type, bean, meta.filter_method, field_name)

    def apply_selection_policy(self, widget: ComboBox, options: List[Any], meta: FieldMeta, field_name: str) -> None:
        if meta.clear_on_empty_data and not options:
            widget.clear()
            return
        if meta.default_value:
            for option in options:
                if display_text(option) == meta.default_value:
                    widget.select_option(option)
                    return
            logger.warning("default value %r not among options for field %s", meta.default_value, field_name)
            return
        if meta.auto_select_first and options:
            widget.select_option(options[0])
