"""
Template processing — render OpenShift ``Template`` documents locally.

Equivalent to ``oc process --local -f <template> -p KEY=VALUE``, without
needing the binary. Templates live in ``aao_itest/templates/`` and are
ordinary OpenShift templates:

    parameters:  [{name, value?, required?}, ...]
    objects:     [<manifest>, ...]

Substitution:
  1. ``${NAME}`` anywhere inside a string value → parameter text
  2. ``"${{NAME}}"`` as a whole value → parameter parsed as YAML/JSON
     (lists, mappings, numbers, booleans)
"""

from __future__ import annotations

import copy
import logging
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


# ── Template directory ──────────────────────────────────────────────

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"

_TEXT_PARAM_RE = re.compile(r"\$\{([A-Za-z0-9_]+)\}")
_VALUE_PARAM_RE = re.compile(r"^\$\{\{([A-Za-z0-9_]+)\}\}$")


class TemplateError(Exception):
    """Raised when a template is missing, malformed, or under-parameterised."""


def template_path(name: str) -> Path:
    """Resolve a bundled template by name (with or without ``.yaml``)."""
    filename = name if name.endswith((".yaml", ".yml")) else f"{name}.yaml"
    return TEMPLATES_DIR / filename


def load_template(source: str | Path) -> dict[str, Any]:
    """Load a template by bundled name or explicit path."""
    path = Path(source) if isinstance(source, Path) or "/" in str(source) else template_path(source)
    if not path.is_file():
        raise TemplateError(f"Template not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise TemplateError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict) or data.get("kind") != "Template":
        raise TemplateError(f"{path} is not an OpenShift Template")
    if not isinstance(data.get("objects"), list):
        raise TemplateError(f"{path} has no objects list")
    return data


def resolve_parameters(template: dict[str, Any], params: dict[str, Any]) -> dict[str, str]:
    """Merge supplied values with template defaults.

    Raises:
        TemplateError: For unknown names or a missing required value.
    """
    declared: dict[str, dict[str, Any]] = {}
    for entry in template.get("parameters") or []:
        if isinstance(entry, dict) and entry.get("name"):
            declared[str(entry["name"])] = entry

    unknown = sorted(set(params) - set(declared))
    if unknown:
        raise TemplateError(f"Unknown template parameter(s): {', '.join(unknown)}")

    values: dict[str, str] = {}
    for name, entry in declared.items():
        if name in params and params[name] is not None:
            values[name] = str(params[name])
        elif entry.get("value") is not None:
            values[name] = str(entry["value"])
        elif entry.get("required"):
            raise TemplateError(f"Template parameter {name} is required")
        else:
            values[name] = ""
    return values


def _substitute(node: Any, values: dict[str, str]) -> Any:
    if isinstance(node, dict):
        return {
            _substitute(key, values) if isinstance(key, str) else key: _substitute(value, values)
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [_substitute(item, values) for item in node]
    if not isinstance(node, str):
        return node

    whole = _VALUE_PARAM_RE.match(node)
    if whole and whole.group(1) in values:
        try:
            return yaml.safe_load(values[whole.group(1)])
        except yaml.YAMLError as e:
            raise TemplateError(f"Parameter {whole.group(1)} is not valid YAML/JSON: {e}") from e

    return _TEXT_PARAM_RE.sub(
        lambda m: values.get(m.group(1), m.group(0)),
        node,
    )


def process_template(source: str | Path, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    """Render every object of a template.

    Args:
        source: Bundled template name or path.
        params: Parameter values (missing ones fall back to defaults).

    Returns:
        The rendered manifests.
    """
    template = load_template(source)
    values = resolve_parameters(template, params or {})
    objects = [_substitute(copy.deepcopy(obj), values) for obj in template["objects"]]
    logger.debug(
        "Processed template %s → %d object(s)",
        template.get("metadata", {}).get("name", source),
        len(objects),
    )
    return objects


def render_object(source: str | Path, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Render a single-object template and return that object."""
    objects = process_template(source, params)
    if len(objects) != 1:
        raise TemplateError(f"Expected exactly one object in {source}, got {len(objects)}")
    return objects[0]
