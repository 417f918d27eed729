"""Pydantic models for task decomposition.

This module defines the data structures shared by the decomposition
pipeline: the project definition supplied by the caller, the declarative
method library (templates, conditions, methods, root rules, patterns), and
the per-run outputs (task hierarchy, task graph, validation result).
"""

import re
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from taskweave.core.exceptions import NoApplicableMethodError, TaskweaveError

# =============================================================================
# ENUMS
# =============================================================================


class Domain(str, Enum):
    """Application domain of the project."""

    WEB = "web"
    MOBILE = "mobile"
    DESKTOP = "desktop"
    CLI = "cli"
    LIBRARY = "library"
    DATA = "data"
    MACHINE_LEARNING = "machine_learning"
    GAME = "game"
    IOT = "iot"


class ArchitecturalStyle(str, Enum):
    """Architectural style selections."""

    MONOLITHIC = "monolithic"
    MICROSERVICES = "microservices"
    SERVERLESS = "serverless"
    EVENT_DRIVEN = "event_driven"
    LAYERED = "layered"
    CLIENT_SERVER = "client_server"
    PLUGIN = "plugin"


class InterfaceParadigm(str, Enum):
    """How the system exposes itself to clients."""

    REST = "rest"
    GRAPHQL = "graphql"
    GRPC = "grpc"
    WEBSOCKET = "websocket"
    CLI = "cli"
    GUI = "gui"
    SDK = "sdk"


class PriorityLevel(str, Enum):
    """Priority of a quality attribute."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank for comparisons (low=0 .. critical=3)."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    PriorityLevel.LOW: 0,
    PriorityLevel.MEDIUM: 1,
    PriorityLevel.HIGH: 2,
    PriorityLevel.CRITICAL: 3,
}


class TaskKind(str, Enum):
    """Whether a task is decomposed further or executed directly."""

    COMPOUND = "compound"
    PRIMITIVE = "primitive"


class TaskCategory(str, Enum):
    """Category of development task."""

    SETUP = "setup"
    INFRASTRUCTURE = "infrastructure"
    DATA_MODEL = "data_model"
    BUSINESS_LOGIC = "business_logic"
    API = "api"
    UI = "ui"
    SECURITY = "security"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    DEPLOYMENT = "deployment"
    INTEGRATION = "integration"


# =============================================================================
# NORMALISATION HELPERS
# =============================================================================


_NON_IDENTIFIER = re.compile(r"[^a-z0-9]+")


def normalize_identifier(value: str) -> str:
    """Normalise a label such as ``"HTTP/REST"`` to ``"http_rest"``."""
    return _NON_IDENTIFIER.sub("_", str(value).strip().lower()).strip("_")


def capability_id(category: str, option: str) -> str:
    """Build the capability identifier for a selected core capability.

    Example:
        >>> capability_id("Storage", "Relational")
        'storage.relational'
    """
    return f"{normalize_identifier(category)}.{normalize_identifier(option)}"


def _normalize_enum_values(value: Any) -> Any:
    if value is None:
        return value
    if isinstance(value, Enum):
        return value
    if isinstance(value, str):
        return normalize_identifier(value)
    return [v if isinstance(v, Enum) else normalize_identifier(v) for v in value]


def _normalize_capabilities(value: Any) -> Any:
    if not isinstance(value, Mapping):
        return value
    normalized: dict[str, frozenset[str]] = {}
    for category, options in value.items():
        if isinstance(options, str):
            options = [options]
        normalized[normalize_identifier(category)] = frozenset(
            normalize_identifier(o) for o in (options or [])
        )
    return normalized


def _normalize_priorities(value: Any) -> Any:
    if not isinstance(value, Mapping):
        return value
    return {
        normalize_identifier(attr): (
            level if isinstance(level, PriorityLevel) else normalize_identifier(level)
        )
        for attr, level in value.items()
    }


def _sorted_values(items: Any) -> list[str]:
    return sorted(i.value if isinstance(i, Enum) else str(i) for i in items)


# =============================================================================
# PROJECT DEFINITION
# =============================================================================


class ProjectDefinition(BaseModel):
    """Validated, read-only description of the system to build.

    Schema validation is done upstream; this model only normalises labels
    (``"HTTP/REST"`` becomes ``"http_rest"``) so conditions can compare
    them reliably. The capability and quality mappings are read-only views,
    so instances are hashable.

    Example:
        >>> project = ProjectDefinition(
        ...     domain="web",
        ...     architectural_style=["monolithic"],
        ...     core_capabilities={"storage": ["relational"]},
        ... )
        >>> sorted(project.mandatory_components)
        ['storage.relational']
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        default="project",
        min_length=1,
        max_length=255,
        description="Project name",
    )
    domain: Domain = Field(
        ...,
        description="Application domain",
    )
    architectural_style: frozenset[ArchitecturalStyle] = Field(
        default_factory=frozenset,
        description="Selected architectural styles",
    )
    interface_paradigm: frozenset[InterfaceParadigm] = Field(
        default_factory=frozenset,
        description="Selected interface paradigms",
    )
    core_capabilities: Mapping[str, frozenset[str]] = Field(
        default_factory=dict,
        validate_default=True,
        description="Capability category -> selected options",
    )
    quality_attributes: Mapping[str, PriorityLevel] = Field(
        default_factory=dict,
        validate_default=True,
        description="Quality attribute -> priority level",
    )
    development_constraints: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Free-form development constraints",
    )
    required_components: frozenset[str] = Field(
        default_factory=frozenset,
        description="Capability identifiers required beyond the core capabilities",
    )

    @field_validator("domain", "architectural_style", "interface_paradigm", mode="before")
    @classmethod
    def normalize_enums(cls, v: Any) -> Any:
        """Accept labels such as "Web" or "Event-Driven"."""
        return _normalize_enum_values(v)

    @field_validator("core_capabilities", mode="before")
    @classmethod
    def normalize_capabilities(cls, v: Any) -> Any:
        """Normalise category and option labels to identifiers."""
        return _normalize_capabilities(v)

    @field_validator("quality_attributes", mode="before")
    @classmethod
    def normalize_quality_attributes(cls, v: Any) -> Any:
        return _normalize_priorities(v)

    @field_validator("core_capabilities", "quality_attributes")
    @classmethod
    def freeze_mappings(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Expose the mappings read-only."""
        return MappingProxyType(dict(v))

    @field_serializer("core_capabilities", "quality_attributes")
    def serialize_mappings(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return dict(v)

    def __hash__(self) -> int:
        return hash(
            (
                self.name,
                self.domain,
                self.architectural_style,
                self.interface_paradigm,
                frozenset(self.core_capabilities.items()),
                frozenset(self.quality_attributes.items()),
                self.development_constraints,
                self.required_components,
            )
        )

    @property
    def mandatory_components(self) -> frozenset[str]:
        """Capability ids that must be covered by some primitive task's effects."""
        derived = {
            capability_id(category, option)
            for category, options in self.core_capabilities.items()
            for option in options
        }
        return frozenset(self.required_components | derived)

    def has_capability(self, category: str, option: str | None = None) -> bool:
        """Check whether a capability category (or a specific option) is selected."""
        selected = self.core_capabilities.get(normalize_identifier(category), frozenset())
        if option is None:
            return bool(selected)
        return normalize_identifier(option) in selected

    def priority_of(self, attribute: str) -> PriorityLevel | None:
        """Get the priority of a quality attribute, if declared."""
        return self.quality_attributes.get(normalize_identifier(attribute))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "domain": self.domain.value,
            "architectural_style": _sorted_values(self.architectural_style),
            "interface_paradigm": _sorted_values(self.interface_paradigm),
            "core_capabilities": {
                k: sorted(v) for k, v in sorted(self.core_capabilities.items())
            },
            "quality_attributes": {
                k: v.value for k, v in sorted(self.quality_attributes.items())
            },
            "development_constraints": list(self.development_constraints),
            "mandatory_components": sorted(self.mandatory_components),
        }


# =============================================================================
# METHOD LIBRARY
# =============================================================================


class Condition(BaseModel):
    """Declarative applicability predicate over a ProjectDefinition.

    Each non-empty constraint must hold. Set-valued constraints are
    "any of"; capability constraints require one of the listed options in
    every listed category (an empty option set means "anything selected").
    An empty Condition matches every project.
    """

    model_config = ConfigDict(frozen=True)

    domains: frozenset[Domain] = Field(default_factory=frozenset)
    architectural_styles: frozenset[ArchitecturalStyle] = Field(default_factory=frozenset)
    interface_paradigms: frozenset[InterfaceParadigm] = Field(default_factory=frozenset)
    capabilities: dict[str, frozenset[str]] = Field(default_factory=dict)
    quality_attributes: dict[str, PriorityLevel] = Field(
        default_factory=dict,
        description="Attribute -> minimum priority",
    )

    @field_validator("domains", "architectural_styles", "interface_paradigms", mode="before")
    @classmethod
    def normalize_enums(cls, v: Any) -> Any:
        return _normalize_enum_values(v)

    @field_validator("capabilities", mode="before")
    @classmethod
    def normalize_capabilities(cls, v: Any) -> Any:
        return _normalize_capabilities(v)

    @field_validator("quality_attributes", mode="before")
    @classmethod
    def normalize_quality_attributes(cls, v: Any) -> Any:
        return _normalize_priorities(v)

    @property
    def is_generic(self) -> bool:
        """True when the condition places no constraint at all."""
        return not (
            self.domains
            or self.architectural_styles
            or self.interface_paradigms
            or self.capabilities
            or self.quality_attributes
        )

    @property
    def specificity(self) -> int:
        """Priority tier: 0 domain-specific, 1 otherwise constrained, 2 generic."""
        if self.domains:
            return 0
        if not self.is_generic:
            return 1
        return 2

    def unmet(self, project: ProjectDefinition) -> list[str]:
        """Describe every constraint the project does not satisfy."""
        reasons: list[str] = []

        if self.domains and project.domain not in self.domains:
            reasons.append(
                f"domain is '{project.domain.value}', requires one of "
                f"{_sorted_values(self.domains)}"
            )
        if self.architectural_styles and not (
            self.architectural_styles & project.architectural_style
        ):
            reasons.append(
                f"architectural style requires one of "
                f"{_sorted_values(self.architectural_styles)}"
            )
        if self.interface_paradigms and not (
            self.interface_paradigms & project.interface_paradigm
        ):
            reasons.append(
                f"interface paradigm requires one of "
                f"{_sorted_values(self.interface_paradigms)}"
            )
        for category, options in sorted(self.capabilities.items()):
            selected = project.core_capabilities.get(category, frozenset())
            if options and not (options & selected):
                reasons.append(f"{category} requires one of {sorted(options)}")
            elif not options and not selected:
                reasons.append(f"{category} requires a selection")
        for attribute, minimum in sorted(self.quality_attributes.items()):
            level = project.priority_of(attribute)
            if level is None or level.rank < minimum.rank:
                actual = level.value if level else "unset"
                reasons.append(
                    f"{attribute} priority is {actual}, requires {minimum.value} or higher"
                )

        return reasons

    def matches(self, project: ProjectDefinition) -> bool:
        """Evaluate the condition against a project."""
        return not self.unmet(project)

    def signature(self) -> str:
        """Canonical text form used to detect duplicate registrations."""
        parts: list[str] = []
        if self.domains:
            parts.append(f"domains={','.join(_sorted_values(self.domains))}")
        if self.architectural_styles:
            parts.append(f"styles={','.join(_sorted_values(self.architectural_styles))}")
        if self.interface_paradigms:
            parts.append(f"interfaces={','.join(_sorted_values(self.interface_paradigms))}")
        for category, options in sorted(self.capabilities.items()):
            parts.append(f"{category}={','.join(sorted(options)) or '*'}")
        for attribute, minimum in sorted(self.quality_attributes.items()):
            parts.append(f"{attribute}>={minimum.value}")
        return ";".join(parts) or "*"


class TaskTemplate(BaseModel):
    """A named unit of work, compound or primitive.

    ``preconditions``/``effects`` left as ``None`` mean "not declared": the
    instantiated node then inherits its parent's resolved annotations when
    the dependency graph is built. An explicit empty set opts out.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255, description="Task type")
    kind: TaskKind = Field(default=TaskKind.PRIMITIVE)
    preconditions: frozenset[str] | None = Field(
        default=None,
        description="Capability ids that must already be satisfied",
    )
    effects: frozenset[str] | None = Field(
        default=None,
        description="Capability ids satisfied once this task completes",
    )
    capability_tags: frozenset[str] = Field(
        default_factory=frozenset,
        description="Capabilities this task implements (used by pattern matching)",
    )
    domain_tags: frozenset[Domain] = Field(default_factory=frozenset)
    architecture_tags: frozenset[ArchitecturalStyle] = Field(default_factory=frozenset)
    requires: Condition = Field(
        default_factory=Condition,
        description="Further applicability constraint, e.g. a selected capability",
    )
    category: TaskCategory = Field(default=TaskCategory.BUSINESS_LOGIC)
    description: str = Field(default="")

    @field_validator("domain_tags", "architecture_tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> Any:
        return _normalize_enum_values(v)

    @property
    def is_compound(self) -> bool:
        return self.kind == TaskKind.COMPOUND

    def applies_to(self, project: ProjectDefinition) -> bool:
        """Check the template's applicability tags and ``requires`` condition."""
        if self.domain_tags and project.domain not in self.domain_tags:
            return False
        if self.architecture_tags and not (
            self.architecture_tags & project.architectural_style
        ):
            return False
        return self.requires.matches(project)


class Method(BaseModel):
    """Rule expanding one compound task type into ordered subtasks."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    task_type: str = Field(..., min_length=1, description="Compound task type")
    subtasks: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Ordered subtask template names",
    )
    condition: Condition = Field(default_factory=Condition)
    priority: int | None = Field(
        default=None,
        ge=0,
        description="Explicit priority (lower first); defaults to condition specificity",
    )

    @property
    def effective_priority(self) -> int:
        if self.priority is not None:
            return self.priority
        return self.condition.specificity


class RootTaskRule(BaseModel):
    """Selects a top-level compound task for matching projects."""

    model_config = ConfigDict(frozen=True)

    task_type: str = Field(..., min_length=1)
    condition: Condition = Field(default_factory=Condition)


class Pattern(BaseModel):
    """Advisory implementation patterns attached to matching tasks."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    condition: Condition = Field(default_factory=Condition)
    suggestions: tuple[str, ...] = Field(..., min_length=1)
    target_capabilities: frozenset[str] = Field(default_factory=frozenset)


# =============================================================================
# RUN OUTPUTS
# =============================================================================


class TaskNode(BaseModel):
    """An instantiated task within one decomposition run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable id: '<task type>@<path>'")
    template: str = Field(..., description="Task template name")
    kind: TaskKind
    parent_id: str | None = None
    children: tuple[str, ...] = Field(default_factory=tuple)
    depth: int = Field(default=0, ge=0)
    sequence: int = Field(default=0, ge=0, description="Creation order within the run")
    preconditions: frozenset[str] | None = None
    effects: frozenset[str] | None = None
    capability_tags: frozenset[str] = Field(default_factory=frozenset)
    category: TaskCategory = TaskCategory.BUSINESS_LOGIC
    description: str = ""
    patterns: frozenset[str] = Field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.template

    @property
    def is_primitive(self) -> bool:
        return self.kind == TaskKind.PRIMITIVE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.template,
            "kind": self.kind.value,
            "parent_id": self.parent_id,
            "children": list(self.children),
            "depth": self.depth,
            "sequence": self.sequence,
            "preconditions": sorted(self.preconditions or ()),
            "effects": sorted(self.effects or ()),
            "capability_tags": sorted(self.capability_tags),
            "category": self.category.value,
            "description": self.description,
            "patterns": sorted(self.patterns),
        }


class TaskHierarchy(BaseModel):
    """Every node created by a decomposition run, in creation order."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    roots: tuple[str, ...] = Field(default_factory=tuple)
    nodes: dict[str, TaskNode] = Field(default_factory=dict)
    errors: tuple[NoApplicableMethodError, ...] = Field(default_factory=tuple)

    def get(self, node_id: str) -> TaskNode | None:
        return self.nodes.get(node_id)

    def get_parent(self, node_id: str) -> TaskNode | None:
        node = self.nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self.nodes.get(node.parent_id)

    def children_of(self, node_id: str) -> list[TaskNode]:
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.nodes[c] for c in node.children]

    def primitive_nodes(self) -> list[TaskNode]:
        """Primitive nodes in creation order."""
        return [n for n in self.nodes.values() if n.is_primitive]

    def leaves(self) -> list[TaskNode]:
        """Nodes without children (includes unexpanded compound nodes)."""
        return [n for n in self.nodes.values() if not n.children]

    def unexpanded(self) -> list[TaskNode]:
        """Compound nodes left without children because no method could expand them."""
        return [n for n in self.nodes.values() if not n.is_primitive and not n.children]

    @property
    def depth(self) -> int:
        """Number of levels in the hierarchy (0 when empty)."""
        if not self.nodes:
            return 0
        return max(n.depth for n in self.nodes.values()) + 1

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "roots": list(self.roots),
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "errors": [e.to_dict() for e in self.errors],
        }


class TaskGraph(BaseModel):
    """DAG of primitive tasks with a deterministic execution order."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    nodes: dict[str, TaskNode] = Field(
        default_factory=dict,
        description="Primitive node id -> node with resolved annotations",
    )
    edges: tuple[tuple[str, str], ...] = Field(
        default_factory=tuple,
        description="(a, b): a must complete before b",
    )
    order: tuple[str, ...] = Field(default_factory=tuple)
    waves: tuple[tuple[str, ...], ...] = Field(default_factory=tuple)
    unsatisfied_preconditions: dict[str, frozenset[str]] = Field(default_factory=dict)
    errors: tuple[NoApplicableMethodError, ...] = Field(default_factory=tuple)

    def get(self, node_id: str) -> TaskNode | None:
        return self.nodes.get(node_id)

    def ordered_nodes(self) -> list[TaskNode]:
        """Nodes in topological order."""
        return [self.nodes[node_id] for node_id in self.order]

    def dependencies_of(self, node_id: str) -> list[str]:
        """Ids that must complete before ``node_id``."""
        return [a for a, b in self.edges if b == node_id]

    def dependents_of(self, node_id: str) -> list[str]:
        """Ids waiting on ``node_id``."""
        return [b for a, b in self.edges if a == node_id]

    def all_effects(self) -> frozenset[str]:
        effects: set[str] = set()
        for node in self.nodes.values():
            effects |= node.effects or frozenset()
        return frozenset(effects)

    def without(self, node_id: str) -> "TaskGraph":
        """Copy of the graph with one node and its edges removed."""
        return self.model_copy(
            update={
                "nodes": {k: v for k, v in self.nodes.items() if k != node_id},
                "edges": tuple(e for e in self.edges if node_id not in e),
                "order": tuple(i for i in self.order if i != node_id),
                "waves": tuple(
                    w for w in (tuple(i for i in wave if i != node_id) for wave in self.waves) if w
                ),
                "unsatisfied_preconditions": {
                    k: v for k, v in self.unsatisfied_preconditions.items() if k != node_id
                },
            }
        )

    def critical_path(self) -> list[str]:
        """Longest dependency chain through the graph.

        Ties are broken towards the earlier node in topological order.
        """
        if not self.order:
            return []

        length: dict[str, int] = {}
        previous: dict[str, str | None] = {}
        for node_id in self.order:
            best: str | None = None
            for dep in self.dependencies_of(node_id):
                if best is None or length[dep] > length[best]:
                    best = dep
            previous[node_id] = best
            length[node_id] = 1 + (length[best] if best else 0)

        end = max(self.order, key=lambda i: length[i])
        path = [end]
        while previous[path[-1]] is not None:
            path.append(previous[path[-1]])  # type: ignore[arg-type]
        return list(reversed(path))

    @property
    def total_waves(self) -> int:
        return len(self.waves)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "nodes": [n.to_dict() for n in self.ordered_nodes()],
            "edges": [list(e) for e in self.edges],
            "order": list(self.order),
            "waves": [list(w) for w in self.waves],
            "critical_path": self.critical_path(),
            "unsatisfied_preconditions": {
                k: sorted(v) for k, v in self.unsatisfied_preconditions.items()
            },
            "errors": [e.to_dict() for e in self.errors],
        }


class ValidationResult(BaseModel):
    """Outcome of checking a task graph against mandatory components."""

    model_config = ConfigDict(frozen=True)

    success: bool
    missing_components: tuple[str, ...] = Field(default_factory=tuple)
    covered_components: tuple[str, ...] = Field(default_factory=tuple)
    errors: tuple[dict[str, Any], ...] = Field(
        default_factory=tuple,
        description="Serialized errors collected during the run",
    )

    @classmethod
    def from_error(cls, error: TaskweaveError) -> "ValidationResult":
        """Failed result for a run that stopped on a structural error."""
        return cls(success=False, errors=(error.to_dict(),))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "missing_components": list(self.missing_components),
            "covered_components": list(self.covered_components),
            "errors": [dict(e) for e in self.errors],
        }


class PlanResult(BaseModel):
    """Everything produced by one pipeline run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    project: ProjectDefinition
    hierarchy: TaskHierarchy
    graph: TaskGraph
    validation: ValidationResult
    suggestions: dict[str, frozenset[str]] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.validation.success

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "graph": self.graph.to_dict(),
            "validation": self.validation.to_dict(),
            "suggestions": {k: sorted(v) for k, v in self.suggestions.items()},
        }
