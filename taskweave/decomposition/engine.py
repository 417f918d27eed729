"""Decomposition engine - HTN-style expansion of compound tasks.

Starting from the root task network selected for a project, every compound
task is expanded with the highest-priority applicable method until only
primitive tasks remain. A method whose subtasks are all filtered out for the
project is passed over. Branches without a usable method are recorded and
left unexpanded; the rest of the hierarchy is still built.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import anyio
import anyio.to_thread
from loguru import logger

from taskweave.core.exceptions import (
    DecompositionCancelledError,
    DecompositionDepthExceededError,
    NoApplicableMethodError,
    TaskweaveError,
)
from taskweave.decomposition.models import Method, ProjectDefinition, TaskHierarchy, TaskNode
from taskweave.decomposition.registry import MethodRegistry

DEFAULT_MAX_DEPTH = 64

CancelCheck = Callable[[], bool]


@dataclass
class RootExpansion:
    """Nodes (pre-order) and branch errors produced by one root task."""

    index: int
    task_type: str
    nodes: list[TaskNode] = field(default_factory=list)
    errors: list[NoApplicableMethodError] = field(default_factory=list)


class DecompositionEngine:
    """
    Expand a project definition into a task hierarchy.

    Root expansions are independent of each other, so ``decompose_async``
    runs them on worker threads; both entry points merge results by root
    index and produce identical hierarchies.

    Example:
        >>> engine = DecompositionEngine(registry)
        >>> hierarchy = engine.decompose(project)
        >>> [n.name for n in hierarchy.primitive_nodes()]
        ['SetupEnvironment', 'CreateDatabase', 'CreateAPI', 'DeployApplication']
    """

    def __init__(
        self,
        registry: MethodRegistry,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_workers: int = 4,
    ) -> None:
        """
        Initialize the engine.

        Args:
            registry: Method registry; treated as read-only during runs.
            max_depth: Maximum number of hierarchy levels.
            max_workers: Worker threads for ``decompose_async``.
        """
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.registry = registry
        self.max_depth = max_depth
        self.max_workers = max_workers

    # =========================================================================
    # PUBLIC INTERFACE
    # =========================================================================

    def decompose(
        self,
        project: ProjectDefinition,
        roots: list[str] | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> TaskHierarchy:
        """
        Decompose a project sequentially.

        Args:
            project: Project definition to decompose.
            roots: Root task types; defaults to the registry's root rules.
            should_cancel: Polled before each root expansion.

        Returns:
            TaskHierarchy with all created nodes and collected branch errors.

        Raises:
            DecompositionDepthExceededError: If a branch exceeds ``max_depth``.
            DecompositionCancelledError: If ``should_cancel`` returns True.
        """
        root_types = self._select_roots(project, roots)
        expansions: list[RootExpansion] = []

        for index, root_type in enumerate(root_types):
            if should_cancel is not None and should_cancel():
                logger.warning(f"Decomposition cancelled before root {index}")
                raise DecompositionCancelledError(index, len(root_types))
            expansions.append(self.expand_root(project, root_type, index))

        return self._merge(expansions)

    async def decompose_async(
        self,
        project: ProjectDefinition,
        roots: list[str] | None = None,
    ) -> TaskHierarchy:
        """
        Decompose a project, expanding root tasks on worker threads.

        Cancelling the enclosing anyio scope stops the run between root
        expansions; a subtree already being expanded is finished first.

        Args:
            project: Project definition to decompose.
            roots: Root task types; defaults to the registry's root rules.

        Returns:
            TaskHierarchy identical to what ``decompose`` returns.
        """
        root_types = self._select_roots(project, roots)
        expansions: list[RootExpansion | None] = [None] * len(root_types)
        failures: list[tuple[int, TaskweaveError]] = []
        limiter = anyio.CapacityLimiter(self.max_workers)

        async def expand_one(index: int, root_type: str) -> None:
            try:
                expansions[index] = await anyio.to_thread.run_sync(
                    self.expand_root, project, root_type, index, limiter=limiter
                )
            except TaskweaveError as e:
                failures.append((index, e))

        async with anyio.create_task_group() as tg:
            for index, root_type in enumerate(root_types):
                tg.start_soon(expand_one, index, root_type)

        if failures:
            # Report the failure of the earliest root, not the first to finish
            _, error = min(failures, key=lambda f: f[0])
            raise error

        return self._merge([e for e in expansions if e is not None])

    def expand_root(
        self,
        project: ProjectDefinition,
        root_type: str,
        index: int,
    ) -> RootExpansion:
        """
        Expand a single root task into its full subtree.

        Args:
            project: Project definition.
            root_type: Root task type.
            index: Root position; becomes the first component of node paths.

        Returns:
            RootExpansion with nodes in pre-order.
        """
        expansion = RootExpansion(index=index, task_type=root_type)
        self._expand(
            project=project,
            task_type=root_type,
            path=str(index),
            parent_id=None,
            depth=0,
            lineage=(),
            expansion=expansion,
        )
        logger.debug(
            f"Root {index} '{root_type}' expanded into {len(expansion.nodes)} nodes "
            f"({len(expansion.errors)} errors)"
        )
        return expansion

    # =========================================================================
    # EXPANSION
    # =========================================================================

    def _select_roots(
        self,
        project: ProjectDefinition,
        roots: list[str] | None,
    ) -> list[str]:
        root_types = list(roots) if roots is not None else self.registry.root_tasks(project)
        for root_type in root_types:
            # Fail fast on unknown roots before any work is done
            self.registry.get_template(root_type)
        logger.info(
            f"Decomposing '{project.name}' ({project.domain.value}) "
            f"from {len(root_types)} root tasks: {root_types}"
        )
        if not root_types:
            logger.warning("No root tasks apply to this project definition")
        return root_types

    def _expand(
        self,
        project: ProjectDefinition,
        task_type: str,
        path: str,
        parent_id: str | None,
        depth: int,
        lineage: tuple[str, ...],
        expansion: RootExpansion,
    ) -> str:
        """Expand one task depth-first; returns the created node id."""
        lineage = (*lineage, task_type)
        if depth >= self.max_depth:
            logger.error(
                f"Max depth {self.max_depth} exceeded at {' -> '.join(lineage)}"
            )
            raise DecompositionDepthExceededError(list(lineage), self.max_depth)

        template = self.registry.get_template(task_type)
        node_id = f"{task_type}@{path}"

        # Reserve the slot so nodes stay in pre-order
        position = len(expansion.nodes)
        expansion.nodes.append(None)  # type: ignore[arg-type]

        children: list[str] = []
        if template.is_compound:
            methods = self.registry.lookup(task_type, project)
            selected = self._select_method(methods, project)
            if selected is None:
                unmet = self.registry.unmet_context(task_type, project)
                unmet.extend(f"{m.name}: no subtask applies to this project" for m in methods)
                error = NoApplicableMethodError(
                    task_type=task_type,
                    node_id=node_id,
                    unmet=unmet,
                )
                logger.warning(str(error))
                expansion.errors.append(error)
            else:
                method, subtasks = selected
                logger.debug(f"Expanding {node_id} with method '{method.name}'")
                for position_in_method, subtask in subtasks:
                    children.append(
                        self._expand(
                            project=project,
                            task_type=subtask,
                            path=f"{path}.{position_in_method}",
                            parent_id=node_id,
                            depth=depth + 1,
                            lineage=lineage,
                            expansion=expansion,
                        )
                    )

        expansion.nodes[position] = TaskNode(
            id=node_id,
            template=template.name,
            kind=template.kind,
            parent_id=parent_id,
            children=tuple(children),
            depth=depth,
            preconditions=template.preconditions,
            effects=template.effects,
            capability_tags=template.capability_tags,
            category=template.category,
            description=template.description,
        )
        return node_id

    def _select_method(
        self,
        methods: list[Method],
        project: ProjectDefinition,
    ) -> tuple[Method, list[tuple[int, str]]] | None:
        """
        Pick the first method that instantiates at least one subtask.

        Returns:
            The method and its applicable ``(position, subtask)`` pairs, or
            None when every method's subtasks are filtered out.
        """
        for method in methods:
            subtasks = [
                (position, subtask)
                for position, subtask in enumerate(method.subtasks)
                if self.registry.get_template(subtask).applies_to(project)
            ]
            if subtasks:
                return method, subtasks
            logger.debug(f"Passing over method '{method.name}': no subtask applies")
        return None

    @staticmethod
    def _merge(expansions: list[RootExpansion]) -> TaskHierarchy:
        """Combine root expansions by root index and assign creation order."""
        nodes: dict[str, TaskNode] = {}
        errors: list[NoApplicableMethodError] = []
        roots: list[str] = []
        sequence = 0

        for expansion in sorted(expansions, key=lambda e: e.index):
            if expansion.nodes:
                roots.append(expansion.nodes[0].id)
            for node in expansion.nodes:
                nodes[node.id] = node.model_copy(update={"sequence": sequence})
                sequence += 1
            errors.extend(expansion.errors)

        hierarchy = TaskHierarchy(roots=tuple(roots), nodes=nodes, errors=tuple(errors))
        logger.info(
            f"Decomposition produced {len(nodes)} nodes "
            f"({len(hierarchy.primitive_nodes())} primitive, depth {hierarchy.depth}, "
            f"{len(errors)} branch errors)"
        )
        return hierarchy
