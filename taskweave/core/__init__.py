"""Core module - Planner pipeline, configuration, logging and errors."""

from taskweave.core.config import Settings, get_settings
from taskweave.core.exceptions import (
    CyclicDependencyError,
    DecompositionCancelledError,
    DecompositionDepthExceededError,
    DecompositionError,
    DefinitionLoadError,
    DependencyGraphError,
    DuplicateMethodError,
    DuplicateTemplateError,
    NoApplicableMethodError,
    RegistryError,
    TaskweaveError,
    UnknownTemplateError,
)
from taskweave.core.planner import Planner

__all__ = [
    "Planner",
    "Settings",
    "get_settings",
    # Errors
    "TaskweaveError",
    "RegistryError",
    "DuplicateMethodError",
    "DuplicateTemplateError",
    "UnknownTemplateError",
    "DecompositionError",
    "NoApplicableMethodError",
    "DecompositionDepthExceededError",
    "DecompositionCancelledError",
    "DependencyGraphError",
    "CyclicDependencyError",
    "DefinitionLoadError",
]
