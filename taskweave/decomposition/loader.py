"""Loading project definitions and method libraries from YAML/JSON documents."""

import json
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from taskweave.core.exceptions import DefinitionLoadError
from taskweave.decomposition.models import (
    Method,
    Pattern,
    ProjectDefinition,
    RootTaskRule,
    TaskTemplate,
)
from taskweave.decomposition.registry import MethodRegistry


def load_document(path: str | Path) -> dict[str, Any]:
    """
    Read a YAML or JSON document into a dictionary.

    ``.json`` files are parsed as JSON, anything else as YAML.

    Raises:
        DefinitionLoadError: If the file is missing, unparsable, or not a mapping.
    """
    path = Path(path)
    if not path.is_file():
        raise DefinitionLoadError(str(path), "file not found")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DefinitionLoadError(str(path), f"invalid syntax: {e}") from e

    if not isinstance(data, dict):
        raise DefinitionLoadError(str(path), "top-level document must be a mapping")

    logger.debug(f"Loaded document {path}")
    return data


def load_project_definition(path: str | Path) -> ProjectDefinition:
    """
    Load a ProjectDefinition from a YAML or JSON file.

    A top-level ``project`` key is unwrapped if present.

    Example:
        >>> project = load_project_definition("examples/todo.yaml")
        >>> project.domain
        <Domain.WEB: 'web'>
    """
    data = load_document(path)
    data = data.get("project", data)
    try:
        return ProjectDefinition.model_validate(data)
    except ValidationError as e:
        raise DefinitionLoadError(str(path), str(e)) from e


def registry_from_dict(data: dict[str, Any], source: str = "<dict>") -> MethodRegistry:
    """
    Build a MethodRegistry from a ``templates``/``methods``/``roots`` document.

    Entries are registered in document order, which fixes tie-breaking
    between methods of equal priority.

    Raises:
        DefinitionLoadError: If an entry does not validate.
        DuplicateMethodError: If two methods share task type and condition.
        UnknownTemplateError: If a method or root references a missing template.
    """
    registry = MethodRegistry()
    try:
        for entry in data.get("templates", []):
            registry.register_template(TaskTemplate.model_validate(entry))
        for entry in data.get("methods", []):
            registry.register(Method.model_validate(entry))
        for entry in data.get("roots", []):
            registry.register_root(RootTaskRule.model_validate(entry))
    except ValidationError as e:
        raise DefinitionLoadError(source, str(e)) from e

    registry.check_references()
    logger.info(f"Loaded method library from {source}: {registry!r}")
    return registry


def patterns_from_dict(data: dict[str, Any], source: str = "<dict>") -> list[Pattern]:
    """Build Pattern objects from a document's ``patterns`` list."""
    try:
        return [Pattern.model_validate(entry) for entry in data.get("patterns", [])]
    except ValidationError as e:
        raise DefinitionLoadError(source, str(e)) from e


def load_registry(path: str | Path) -> MethodRegistry:
    """Load a MethodRegistry from a YAML or JSON file."""
    return registry_from_dict(load_document(path), source=str(path))


def load_patterns(path: str | Path) -> list[Pattern]:
    """Load patterns from a YAML or JSON file."""
    return patterns_from_dict(load_document(path), source=str(path))
