"""Unit tests for pattern suggestions."""

import pytest

from taskweave.decomposition.engine import DecompositionEngine
from taskweave.decomposition.graph_builder import DependencyGraphBuilder
from taskweave.decomposition.models import Pattern, ProjectDefinition, TaskGraph
from taskweave.decomposition.patterns import PatternSuggester
from taskweave.decomposition.registry import MethodRegistry


@pytest.fixture
def graph(minimal_registry: MethodRegistry, web_project: ProjectDefinition) -> TaskGraph:
    hierarchy = DecompositionEngine(minimal_registry).decompose(web_project)
    return DependencyGraphBuilder().build(hierarchy)


@pytest.fixture
def patterns() -> list[Pattern]:
    return [
        Pattern(
            name="caching",
            condition={"quality_attributes": {"performance": "high"}},
            suggestions=("response_caching",),
            target_capabilities=["api", "database"],
        ),
        Pattern(
            name="connection_pooling",
            condition={"capabilities": {"storage": ["relational"]}},
            suggestions=("connection_pooling",),
            target_capabilities=["database"],
        ),
    ]


class TestPatternSuggester:
    """Tests for PatternSuggester."""

    def test_condition_gates_pattern(
        self,
        graph: TaskGraph,
        web_project: ProjectDefinition,
        patterns: list[Pattern],
    ) -> None:
        """Test only patterns whose condition holds are applied."""
        suggestions = PatternSuggester(patterns).suggest(graph, web_project)

        assert suggestions == {"CreateDatabase@0.1.0": frozenset({"connection_pooling"})}

    def test_suggestions_merge_per_node(
        self,
        graph: TaskGraph,
        web_project: ProjectDefinition,
        patterns: list[Pattern],
    ) -> None:
        """Test several patterns on one node are combined."""
        project = ProjectDefinition(
            **{**web_project.model_dump(), "quality_attributes": {"performance": "critical"}}
        )

        suggestions = PatternSuggester(patterns).suggest(graph, project)

        assert list(suggestions) == ["CreateDatabase@0.1.0", "CreateAPI@0.1.1"]
        assert suggestions["CreateDatabase@0.1.0"] == frozenset(
            {"response_caching", "connection_pooling"}
        )
        assert suggestions["CreateAPI@0.1.1"] == frozenset({"response_caching"})

    def test_annotate_leaves_structure(
        self,
        graph: TaskGraph,
        web_project: ProjectDefinition,
        patterns: list[Pattern],
    ) -> None:
        """Test annotation fills patterns without touching edges or order."""
        suggester = PatternSuggester(patterns)
        annotated = suggester.annotate(graph, suggester.suggest(graph, web_project))

        assert annotated.get("CreateDatabase@0.1.0").patterns == frozenset({"connection_pooling"})
        assert annotated.get("SetupEnvironment@0.0").patterns == frozenset()
        assert annotated.edges == graph.edges
        assert annotated.order == graph.order
        assert graph.get("CreateDatabase@0.1.0").patterns == frozenset()

    def test_add(self, graph: TaskGraph, web_project: ProjectDefinition) -> None:
        """Test patterns can be added after construction."""
        suggester = PatternSuggester()
        assert suggester.suggest(graph, web_project) == {}

        suggester.add(
            Pattern(name="rest", suggestions=("pagination",), target_capabilities=["api"])
        )

        assert suggester.suggest(graph, web_project) == {
            "CreateAPI@0.1.1": frozenset({"pagination"})
        }
