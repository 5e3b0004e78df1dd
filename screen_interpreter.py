"""Turns a stored screen definition into a sectioned, bound form."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from binder import Binder
from definitions import ScreenDefinition, ScreenLine
from engine_errors import ConfigurationError, FieldNotFoundError
from entity_catalog import EntityCatalog
from field_meta import FieldMeta, find_field
from form_builder import FieldResult, FormBuilder
from widgets import Container, FormLayout, Section, Widget


logger = logging.getLogger("screenkit.screens")


@dataclass
class ScreenForm:
    layout: FormLayout
    sections: Dict[str, Section] = field(default_factory=dict)
    components: Dict[str, Widget] = field(default_factory=dict)
    results: List[FieldResult] = field(default_factory=list)

    def get_section(self, name: str) -> Section | None:
        return self.sections.get(name)

    def get_component_by_name(self, section_name: str | None, field_name: str) -> Widget | None:
        """Widget for ``field_name``; ``section_name=None`` means the top level."""
        if section_name is None:
            return self.layout.get_component(field_name)
        section = self.sections.get(section_name)
        return section.get_component(field_name) if section is not None else None

    def failed(self) -> List[FieldResult]:
        return [r for r in self.results if not r.ok]


class ScreenInterpreter:
    def __init__(self, catalog: EntityCatalog, form_builder: FormBuilder) -> None:
        self.catalog = catalog
        self.form_builder = form_builder

    def build(self, screen: ScreenDefinition, binder: Binder, layout: FormLayout | None = None) -> ScreenForm:
        if binder is None:
            raise ConfigurationError(code="SCREEN_BINDER_MISSING", message=f"binder cannot be None for screen {screen.id!r}")
        entity_cls = self.catalog.resolve(screen.entity_type)
        form = ScreenForm(layout if layout is not None else FormLayout(screen.id))
        lines = screen.ordered_lines()
        if not lines:
            logger.warning("screen %s has no lines; rendering an empty form", screen.id)
            return form

        current: Container = form.layout
        for line in lines:
            if line.is_section:
                section = Section(line.name or line.caption, line.caption)
                if section.name in form.sections:
                    logger.warning("screen %s repeats section %s; later lookups see the last one", screen.id, section.name)
                form.layout.add(section)
                form.sections[section.name] = section
                current = section
                continue
            self._add_line(form, current, entity_cls, line, binder, screen.id)

        binder.ensure_complete()
        logger.debug(
            "built screen %s: %d section(s), %d field(s), %d unbound",
            screen.id,
            len(form.sections),
            len(form.components),
            len(form.failed()),
        )
        return form

    def _add_line(
        self,
        form: ScreenForm,
        container: Container,
        entity_cls: type,
        line: ScreenLine,
        binder: Binder,
        screen_id: str,
    ) -> None:
        descriptor = find_field(entity_cls, line.field)
        if descriptor is None:
            raise FieldNotFoundError(
                code="SCREEN_FIELD_NOT_FOUND",
                message=f"screen {screen_id!r} references field {line.field!r} not found on {entity_cls.__name__}",
                field=line.field,
                detail={"screen": screen_id, "entity": entity_cls.__name__},
            )
        if descriptor.meta is None and line.overrides:
            base = FieldMeta(display_name=line.field)
        else:
            base = descriptor.require_meta()
        meta = base.merged(line.overrides, line.field)
        if meta.hidden:
            logger.debug("screen %s skips hidden field %s", screen_id, line.field)
            return
        result = self.form_builder.add_field(container, descriptor.with_meta(meta), binder, meta)
        if result.widget is not None and (result.ok or line.field not in form.components):
            form.components[line.field] = result.widget
        form.results.append(result)
