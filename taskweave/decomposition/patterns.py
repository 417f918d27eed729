"""Pattern suggester - advisory implementation patterns for primitive tasks."""

from loguru import logger

from taskweave.decomposition.models import Pattern, ProjectDefinition, TaskGraph


class PatternSuggester:
    """
    Attach recommended implementation patterns to matching tasks.

    A pattern applies when its condition matches the project; its
    suggestions then go to every primitive task whose capability tags
    intersect the pattern's target capabilities. Graph structure is never
    changed.

    Example:
        >>> suggester = PatternSuggester(default_patterns())
        >>> suggester.suggest(graph, project)["CreateDatabase@0.1.0"]
        frozenset({'connection_pooling'})
    """

    def __init__(self, patterns: list[Pattern] | None = None) -> None:
        self.patterns: list[Pattern] = list(patterns or [])

    def add(self, pattern: Pattern) -> None:
        self.patterns.append(pattern)

    def suggest(
        self,
        graph: TaskGraph,
        project: ProjectDefinition,
    ) -> dict[str, frozenset[str]]:
        """
        Compute pattern suggestions.

        Args:
            graph: Task graph whose primitive nodes are candidates.
            project: Project definition the pattern conditions are evaluated against.

        Returns:
            Node id -> suggested pattern names, in topological order. Nodes
            without suggestions are omitted.
        """
        active = [p for p in self.patterns if p.condition.matches(project)]
        logger.debug(f"{len(active)}/{len(self.patterns)} patterns apply to '{project.name}'")

        suggestions: dict[str, set[str]] = {}
        for node in graph.ordered_nodes():
            for pattern in active:
                if node.capability_tags & pattern.target_capabilities:
                    suggestions.setdefault(node.id, set()).update(pattern.suggestions)

        logger.info(f"Suggested patterns for {len(suggestions)} tasks")
        return {node_id: frozenset(names) for node_id, names in suggestions.items()}

    @staticmethod
    def annotate(
        graph: TaskGraph,
        suggestions: dict[str, frozenset[str]],
    ) -> TaskGraph:
        """Copy of the graph with each node's ``patterns`` filled in."""
        nodes = {
            node_id: node.model_copy(
                update={"patterns": node.patterns | suggestions.get(node_id, frozenset())}
            )
            for node_id, node in graph.nodes.items()
        }
        return graph.model_copy(update={"nodes": nodes})
