"""HTML rendering of serialised form layouts and grids."""

from __future__ import annotations

from typing import Any

from jinja2 import StrictUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment


_FORM_TEMPLATE = """
{%- macro widget(node) -%}
  {%- set attrs = ('readonly ' if node.read_only else '') ~ ('required ' if node.required else '') -%}
  {%- if node.kind == 'checkbox' -%}
    <input type="checkbox" name="{{ node.name }}" {{ attrs }}{{ 'checked' if node.value else '' }}>
  {%- elif node.kind == 'textarea' -%}
    <textarea name="{{ node.name }}" {{ attrs }}{% if node.max_length %}maxlength="{{ node.max_length }}"{% endif %}>{{ node.value or '' }}</textarea>
  {%- elif node.kind in ('combobox', 'multiselect', 'radio') -%}
    <select name="{{ node.name }}" {{ attrs }}{{ 'multiple' if node.kind == 'multiselect' else '' }}>
      {%- for item in node['items'] %}
      <option{% if item == node.value or (node.value is iterable and node.value is not string and item in node.value) %} selected{% endif %}>{{ item }}</option>
      {%- endfor %}
    </select>
  {%- elif node.kind in ('date', 'datetime') -%}
    <input type="{{ 'date' if node.kind == 'date' else 'datetime-local' }}" name="{{ node.name }}" value="{{ node.value or '' }}" {{ attrs }}>
  {%- elif node.kind == 'number' -%}
    <input type="number" name="{{ node.name }}" step="{{ node.step }}" value="{{ node.value if node.value is not none else '' }}" {{ attrs }}>
  {%- else -%}
    <input type="text" name="{{ node.name }}" value="{{ node.value or '' }}" {{ attrs }}{% if node.max_length %}maxlength="{{ node.max_length }}"{% endif %}>
  {%- endif -%}
  {%- if node.error %}<span class="error">{{ node.error }}</span>{% endif -%}
  {%- if node.helper_text %}<small>{{ node.helper_text }}</small>{% endif -%}
{%- endmacro -%}
{%- macro render(node) -%}
  {%- if node.kind == 'section' -%}
    <fieldset data-section="{{ node.name }}"><legend>{{ node.caption }}</legend>
    {%- for child in node.children %}{{ render(child) }}{% endfor -%}
    </fieldset>
  {%- elif node.kind == 'row' -%}
    <div class="row" data-field="{{ node.name }}">
      <label style="min-width: {{ node.children[0].min_width }}">{% if node.children[0].bold %}<b>{{ node.children[0].text }}</b>{% else %}{{ node.children[0].text }}{% endif %}</label>
      {{ widget(node.children[1]) }}
    </div>
  {%- elif node.kind == 'form' -%}
    {%- for child in node.children %}{{ render(child) }}{% endfor -%}
  {%- endif -%}
{%- endmacro -%}
<form class="screen" data-entity="{{ entity_type }}" method="post" action="{{ action }}">
{{ render(layout) }}
<button type="submit">Save</button>
</form>
"""

_GRID_TEMPLATE = """
<table class="grid" data-grid="{{ grid.name }}">
  <thead><tr>{% for column in grid.columns %}<th data-kind="{{ column.kind }}">{{ column.header }}</th>{% endfor %}</tr></thead>
  <tbody>
  {%- for row in grid.rows %}
    <tr data-id="{{ row.id }}"{% if row.id == grid.selected %} class="selected"{% endif %}>
    {%- for column in grid.columns %}
      {%- set cell = row.cells[column.key] %}
      <td{% if 'background' in cell %} style="background: {{ cell.background }}"{% endif %}>{% if 'icon' in cell %}<i class="{{ cell.icon }}"></i> {% endif %}{{ cell.text }}</td>
    {%- endfor %}
    </tr>
  {%- endfor %}
  </tbody>
</table>
"""


def _env() -> ImmutableSandboxedEnvironment:
    env = ImmutableSandboxedEnvironment(autoescape=True, undefined=StrictUndefined)
    env.globals = {}
    return env


_ENV = _env()
_FORM = _ENV.from_string(_FORM_TEMPLATE)
_GRID = _ENV.from_string(_GRID_TEMPLATE)


def render_form_html(form: dict[str, Any], action: str = "") -> str:
    """Render ``BoundForm.to_dict()`` output as an HTML form."""
    return _FORM.render(layout=form["layout"], entity_type=form["entity_type"], action=action).strip()


def render_grid_html(grid: dict[str, Any]) -> str:
    """Render ``Grid.to_dict()`` output as an HTML table."""
    return _GRID.render(grid=grid).strip()
