"""Task decomposition - project definitions into ordered primitive tasks.

This module provides the complete decomposition pipeline:
- Method registry (task templates, methods, root task rules)
- Decomposition engine (compound tasks -> task hierarchy)
- Dependency graph builder (hierarchy -> DAG + topological order)
- Completeness validation (graph -> missing mandatory components)
- Pattern suggestions (graph -> advisory implementation patterns)
"""

from taskweave.decomposition.engine import DecompositionEngine
from taskweave.decomposition.graph_builder import DependencyGraphBuilder
from taskweave.decomposition.library import build_default_registry, default_patterns
from taskweave.decomposition.loader import (
    load_patterns,
    load_project_definition,
    load_registry,
    patterns_from_dict,
    registry_from_dict,
)
from taskweave.decomposition.models import (
    ArchitecturalStyle,
    Condition,
    Domain,
    InterfaceParadigm,
    Method,
    Pattern,
    PlanResult,
    PriorityLevel,
    ProjectDefinition,
    RootTaskRule,
    TaskCategory,
    TaskGraph,
    TaskHierarchy,
    TaskKind,
    TaskNode,
    TaskTemplate,
    ValidationResult,
)
from taskweave.decomposition.patterns import PatternSuggester
from taskweave.decomposition.registry import MethodRegistry
from taskweave.decomposition.validator import CompletenessValidator

__all__ = [
    # Models
    "ArchitecturalStyle",
    "Condition",
    "Domain",
    "InterfaceParadigm",
    "Method",
    "Pattern",
    "PlanResult",
    "PriorityLevel",
    "ProjectDefinition",
    "RootTaskRule",
    "TaskCategory",
    "TaskGraph",
    "TaskHierarchy",
    "TaskKind",
    "TaskNode",
    "TaskTemplate",
    "ValidationResult",
    # Registry
    "MethodRegistry",
    "build_default_registry",
    "default_patterns",
    # Loading
    "load_patterns",
    "load_project_definition",
    "load_registry",
    "patterns_from_dict",
    "registry_from_dict",
    # Pipeline stages
    "DecompositionEngine",
    "DependencyGraphBuilder",
    "CompletenessValidator",
    "PatternSuggester",
]
