"""Planner - runs the full decomposition pipeline.

decompose -> build dependency graph -> validate completeness and suggest
patterns (independently over the same graph) -> annotate.
"""

from loguru import logger

from taskweave.core.config import Settings, get_settings
from taskweave.decomposition.engine import CancelCheck, DecompositionEngine
from taskweave.decomposition.graph_builder import DependencyGraphBuilder
from taskweave.decomposition.library import build_default_registry, default_patterns
from taskweave.decomposition.models import (
    Pattern,
    PlanResult,
    ProjectDefinition,
    TaskHierarchy,
)
from taskweave.decomposition.patterns import PatternSuggester
from taskweave.decomposition.registry import MethodRegistry
from taskweave.decomposition.validator import CompletenessValidator


class Planner:
    """
    Main Taskweave pipeline.

    Structural errors (``DecompositionDepthExceededError``,
    ``CyclicDependencyError``, registry errors) propagate to the caller.
    Branch errors and missing components are reported in the result.

    Example:
        >>> planner = Planner()
        >>> result = planner.plan(project)
        >>> result.validation.success
        True
        >>> [n.name for n in result.graph.ordered_nodes()][:2]
        ['SetupEnvironment', 'ConfigureContinuousIntegration']
    """

    def __init__(
        self,
        registry: MethodRegistry | None = None,
        patterns: list[Pattern] | None = None,
        settings: Settings | None = None,
        max_depth: int | None = None,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the planner.

        Args:
            registry: Method registry. Uses the built-in library if not provided.
            patterns: Pattern catalogue. Uses the built-in patterns if not provided.
            settings: Optional settings override. Uses default if not provided.
            max_depth: Overrides ``settings.max_depth``.
            max_workers: Overrides ``settings.max_workers``.
        """
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else build_default_registry()
        self.engine = DecompositionEngine(
            self.registry,
            max_depth=max_depth or self.settings.max_depth,
            max_workers=max_workers or self.settings.max_workers,
        )
        self.builder = DependencyGraphBuilder()
        self.validator = CompletenessValidator()
        self.suggester = PatternSuggester(
            patterns if patterns is not None else default_patterns()
        )

    def plan(
        self,
        project: ProjectDefinition,
        should_cancel: CancelCheck | None = None,
    ) -> PlanResult:
        """
        Run the pipeline synchronously.

        Args:
            project: Project definition to plan.
            should_cancel: Polled between root expansions.

        Returns:
            PlanResult with hierarchy, annotated graph, validation and suggestions.
        """
        logger.info(f"Planning project '{project.name}'")
        hierarchy = self.engine.decompose(project, should_cancel=should_cancel)
        return self._finish(project, hierarchy)

    async def plan_async(self, project: ProjectDefinition) -> PlanResult:
        """Run the pipeline with root expansions on worker threads."""
        logger.info(f"Planning project '{project.name}' (parallel roots)")
        hierarchy = await self.engine.decompose_async(project)
        return self._finish(project, hierarchy)

    def _finish(self, project: ProjectDefinition, hierarchy: TaskHierarchy) -> PlanResult:
        graph = self.builder.build(hierarchy)
        validation = self.validator.validate(graph, project)
        suggestions = self.suggester.suggest(graph, project)
        graph = self.suggester.annotate(graph, suggestions)

        logger.info(
            f"Plan for '{project.name}': {len(graph.nodes)} tasks, "
            f"{len(graph.edges)} dependencies, validation "
            f"{'passed' if validation.success else 'failed'}"
        )
        return PlanResult(
            project=project,
            hierarchy=hierarchy,
            graph=graph,
            validation=validation,
            suggestions=suggestions,
        )
