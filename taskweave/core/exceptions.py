"""Exception hierarchy for Taskweave.

Structural errors (duplicate registrations, decomposition depth, dependency
cycles) abort a run. ``NoApplicableMethodError`` is branch-local: the engine
collects it and keeps expanding sibling branches.
"""

from typing import Any


class TaskweaveError(Exception):
    """Base exception for Taskweave errors."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {"error": type(self).__name__, "message": str(self)}


# =============================================================================
# REGISTRY ERRORS
# =============================================================================


class RegistryError(TaskweaveError):
    """Invalid method registry configuration."""

    pass


class DuplicateMethodError(RegistryError):
    """A method with the same task type and condition is already registered."""

    def __init__(self, task_type: str, signature: str, existing: str) -> None:
        self.task_type = task_type
        self.signature = signature
        self.existing = existing
        super().__init__(
            f"Method for '{task_type}' with condition [{signature}] "
            f"already registered as '{existing}'"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "task_type": self.task_type,
            "signature": self.signature,
            "existing": self.existing,
        }


class DuplicateTemplateError(RegistryError):
    """A task template with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Task template '{name}' already registered")


class UnknownTemplateError(RegistryError):
    """A method or root rule references a template that does not exist."""

    def __init__(self, name: str, referenced_by: str | None = None) -> None:
        self.name = name
        self.referenced_by = referenced_by
        where = f" (referenced by '{referenced_by}')" if referenced_by else ""
        super().__init__(f"Unknown task template '{name}'{where}")


# =============================================================================
# DECOMPOSITION ERRORS
# =============================================================================


class DecompositionError(TaskweaveError):
    """Failed to decompose the project definition."""

    pass


class NoApplicableMethodError(DecompositionError):
    """No registered method applies to a compound task in this project."""

    def __init__(
        self,
        task_type: str,
        node_id: str,
        unmet: list[str] | None = None,
    ) -> None:
        self.task_type = task_type
        self.node_id = node_id
        self.unmet = unmet or []
        context = "; ".join(self.unmet) if self.unmet else "no methods registered"
        super().__init__(
            f"No applicable method for compound task '{task_type}' "
            f"({node_id}): {context}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "task_type": self.task_type,
            "node_id": self.node_id,
            "unmet": list(self.unmet),
        }


class DecompositionDepthExceededError(DecompositionError):
    """Expansion went deeper than the configured bound."""

    def __init__(self, path: list[str], max_depth: int) -> None:
        self.path = path
        self.max_depth = max_depth
        super().__init__(
            f"Decomposition exceeded max depth {max_depth}: "
            f"{' -> '.join(path)}"
        )

    @property
    def cycle(self) -> list[str]:
        """One period of the repeating part of the path, e.g. [A, B, A]."""
        last = self.path[-1] if self.path else None
        if last is None or last not in self.path[:-1]:
            return []
        # Most recent earlier occurrence, so the result is one period
        start = len(self.path) - 2 - self.path[-2::-1].index(last)
        return self.path[start:]

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "path": list(self.path),
            "cycle": self.cycle,
            "max_depth": self.max_depth,
        }


class DecompositionCancelledError(DecompositionError):
    """The run was cancelled at a checkpoint between root expansions."""

    def __init__(self, completed_roots: int, total_roots: int) -> None:
        self.completed_roots = completed_roots
        self.total_roots = total_roots
        super().__init__(
            f"Decomposition cancelled after {completed_roots}/{total_roots} roots"
        )


# =============================================================================
# GRAPH ERRORS
# =============================================================================


class DependencyGraphError(TaskweaveError):
    """The dependency graph cannot be used."""

    pass


class CyclicDependencyError(DependencyGraphError):
    """Effects and preconditions form a cycle between primitive tasks."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")

    @property
    def node_ids(self) -> list[str]:
        """Distinct node ids on the cycle."""
        return list(dict.fromkeys(self.cycle))

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "cycle": list(self.cycle)}


# =============================================================================
# INPUT ERRORS
# =============================================================================


class DefinitionLoadError(TaskweaveError):
    """A project definition or method library document could not be loaded."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load {source}: {reason}")
