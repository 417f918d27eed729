"""Unit tests for the decomposition engine."""

from collections.abc import Callable

import pytest

from taskweave.core.exceptions import (
    DecompositionCancelledError,
    DecompositionDepthExceededError,
    NoApplicableMethodError,
    UnknownTemplateError,
)
from taskweave.decomposition.engine import DecompositionEngine
from taskweave.decomposition.models import (
    Method,
    ProjectDefinition,
    TaskKind,
    TaskTemplate,
)
from taskweave.decomposition.registry import MethodRegistry


@pytest.fixture
def looping_registry(make_registry: Callable[..., MethodRegistry]) -> MethodRegistry:
    """A compound task whose only method expands into itself."""
    return make_registry(
        [TaskTemplate(name="Loop", kind="compound")],
        [Method(name="loop", task_type="Loop", subtasks=("Loop",))],
        roots=["Loop"],
    )


class TestDecompose:
    """Tests for sequential decomposition."""

    def test_scenario_hierarchy(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test the full hierarchy for a simple web project."""
        hierarchy = DecompositionEngine(minimal_registry).decompose(web_project)

        assert hierarchy.success
        assert hierarchy.roots == ("BuildWebApplication@0",)
        assert list(hierarchy.nodes) == [
            "BuildWebApplication@0",
            "SetupEnvironment@0.0",
            "ImplementBackend@0.1",
            "CreateDatabase@0.1.0",
            "CreateAPI@0.1.1",
            "DeployApplication@0.2",
        ]
        assert [n.name for n in hierarchy.primitive_nodes()] == [
            "SetupEnvironment",
            "CreateDatabase",
            "CreateAPI",
            "DeployApplication",
        ]
        assert hierarchy.depth == 3

    def test_nodes_are_linked(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test parent, children, depth and sequence fields."""
        hierarchy = DecompositionEngine(minimal_registry).decompose(web_project)

        backend = hierarchy.get("ImplementBackend@0.1")
        assert backend.kind == TaskKind.COMPOUND
        assert backend.parent_id == "BuildWebApplication@0"
        assert backend.children == ("CreateDatabase@0.1.0", "CreateAPI@0.1.1")
        assert backend.depth == 1
        assert [n.sequence for n in hierarchy.nodes.values()] == list(range(6))

        api = hierarchy.get("CreateAPI@0.1.1")
        assert api.preconditions == frozenset({"has_database"})
        assert api.capability_tags == frozenset({"api"})

    def test_no_applicable_method_is_branch_local(
        self,
        registry_without_backend_method: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a missing method leaves siblings expanded."""
        hierarchy = DecompositionEngine(registry_without_backend_method).decompose(web_project)

        assert not hierarchy.success
        assert len(hierarchy.errors) == 1
        error = hierarchy.errors[0]
        assert isinstance(error, NoApplicableMethodError)
        assert error.task_type == "ImplementBackend"
        assert error.node_id == "ImplementBackend@0.1"

        assert [n.id for n in hierarchy.unexpanded()] == ["ImplementBackend@0.1"]
        assert [n.name for n in hierarchy.primitive_nodes()] == [
            "SetupEnvironment",
            "DeployApplication",
        ]

    def test_unmet_conditions_reported(
        self,
        make_registry: Callable[..., MethodRegistry],
        web_project: ProjectDefinition,
    ) -> None:
        """Test the error lists why each method was rejected."""
        registry = make_registry(
            [TaskTemplate(name="Build", kind="compound"), TaskTemplate(name="Screens")],
            [
                Method(
                    name="mobile",
                    task_type="Build",
                    subtasks=("Screens",),
                    condition={"domains": ["mobile"]},
                )
            ],
            roots=["Build"],
        )

        hierarchy = DecompositionEngine(registry).decompose(web_project)

        assert hierarchy.errors[0].unmet == [
            "mobile: domain is 'web', requires one of ['mobile']"
        ]

    def test_non_applicable_subtasks_skipped(
        self,
        make_registry: Callable[..., MethodRegistry],
        web_project: ProjectDefinition,
    ) -> None:
        """Test subtasks whose template does not apply are not instantiated."""
        registry = make_registry(
            [
                TaskTemplate(name="Build", kind="compound"),
                TaskTemplate(name="CreateRestApi", requires={"capabilities": {"communication": ["http_rest"]}}),
                TaskTemplate(name="CreateGrpcServices", requires={"capabilities": {"communication": ["grpc"]}}),
                TaskTemplate(name="SplitServices", architecture_tags=["microservices"]),
            ],
            [
                Method(
                    name="build",
                    task_type="Build",
                    subtasks=("CreateGrpcServices", "SplitServices", "CreateRestApi"),
                )
            ],
            roots=["Build"],
        )

        hierarchy = DecompositionEngine(registry).decompose(web_project)

        # Paths keep the position within the method
        assert hierarchy.get("Build@0").children == ("CreateRestApi@0.2",)

    def test_explicit_roots(
        self,
        minimal_registry: MethodRegistry,
    ) -> None:
        """Test roots can be passed instead of selected by rules."""
        project = ProjectDefinition(domain="cli")
        engine = DecompositionEngine(minimal_registry)

        assert engine.decompose(project).nodes == {}
        hierarchy = engine.decompose(project, roots=["ImplementBackend"])
        assert hierarchy.roots == ("ImplementBackend@0",)
        assert len(hierarchy.primitive_nodes()) == 2

    def test_unknown_root(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test an unknown root type fails before expansion."""
        with pytest.raises(UnknownTemplateError):
            DecompositionEngine(minimal_registry).decompose(web_project, roots=["Nope"])

    def test_same_template_twice_gets_distinct_ids(
        self,
        make_registry: Callable[..., MethodRegistry],
        web_project: ProjectDefinition,
    ) -> None:
        """Test repeated subtasks produce separate nodes."""
        registry = make_registry(
            [TaskTemplate(name="Build", kind="compound"), TaskTemplate(name="Review")],
            [Method(name="build", task_type="Build", subtasks=("Review", "Review"))],
            roots=["Build"],
        )

        hierarchy = DecompositionEngine(registry).decompose(web_project)

        assert [n.id for n in hierarchy.primitive_nodes()] == ["Review@0.0", "Review@0.1"]

    def test_deterministic(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test repeated runs produce identical hierarchies."""
        engine = DecompositionEngine(minimal_registry)

        assert engine.decompose(web_project).to_dict() == engine.decompose(web_project).to_dict()


class TestDepthBound:
    """Tests for the recursion depth bound."""

    def test_depth_exceeded(
        self,
        looping_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a self-expanding method aborts at the bound."""
        engine = DecompositionEngine(looping_registry, max_depth=5)

        with pytest.raises(DecompositionDepthExceededError) as exc_info:
            engine.decompose(web_project)

        error = exc_info.value
        assert error.max_depth == 5
        assert error.path == ["Loop"] * 6
        assert error.cycle == ["Loop", "Loop"]
        assert error.to_dict()["max_depth"] == 5

    def test_depth_exactly_at_bound(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a hierarchy with max_depth levels is accepted."""
        hierarchy = DecompositionEngine(minimal_registry, max_depth=3).decompose(web_project)
        assert hierarchy.depth == 3

        with pytest.raises(DecompositionDepthExceededError):
            DecompositionEngine(minimal_registry, max_depth=2).decompose(web_project)

    def test_invalid_bounds(self, minimal_registry: MethodRegistry) -> None:
        """Test non-positive limits are rejected."""
        with pytest.raises(ValueError):
            DecompositionEngine(minimal_registry, max_depth=0)
        with pytest.raises(ValueError):
            DecompositionEngine(minimal_registry, max_workers=0)


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_between_roots(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test cancellation is checked before each root."""
        calls: list[int] = []

        def should_cancel() -> bool:
            calls.append(1)
            return len(calls) > 1

        engine = DecompositionEngine(minimal_registry)

        with pytest.raises(DecompositionCancelledError) as exc_info:
            engine.decompose(
                web_project,
                roots=["BuildWebApplication", "ImplementBackend"],
                should_cancel=should_cancel,
            )

        assert exc_info.value.completed_roots == 1
        assert exc_info.value.total_roots == 2

    def test_not_cancelled(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a check that never fires does not change the result."""
        engine = DecompositionEngine(minimal_registry)

        hierarchy = engine.decompose(web_project, should_cancel=lambda: False)

        assert len(hierarchy.nodes) == 6


class TestDecomposeAsync:
    """Tests for parallel root expansion."""

    @pytest.mark.asyncio
    async def test_matches_sequential(
        self,
        minimal_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test parallel expansion merges to the sequential result."""
        engine = DecompositionEngine(minimal_registry, max_workers=2)
        roots = ["BuildWebApplication", "ImplementBackend", "SetupEnvironment"]

        sequential = engine.decompose(web_project, roots=roots)
        parallel = await engine.decompose_async(web_project, roots=roots)

        assert parallel.to_dict() == sequential.to_dict()
        assert parallel.roots == (
            "BuildWebApplication@0",
            "ImplementBackend@1",
            "SetupEnvironment@2",
        )

    @pytest.mark.asyncio
    async def test_collects_branch_errors(
        self,
        registry_without_backend_method: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test branch errors survive parallel expansion."""
        engine = DecompositionEngine(registry_without_backend_method)

        hierarchy = await engine.decompose_async(web_project)

        assert [e.node_id for e in hierarchy.errors] == ["ImplementBackend@0.1"]

    @pytest.mark.asyncio
    async def test_depth_error_propagates(
        self,
        looping_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a structural error from a worker reaches the caller."""
        engine = DecompositionEngine(looping_registry, max_depth=4)

        with pytest.raises(DecompositionDepthExceededError):
            await engine.decompose_async(web_project, roots=["Loop", "Loop"])


class TestMethodSelection:
    """Tests for methods whose subtasks do not apply."""

    @pytest.fixture
    def storage_templates(self) -> list[TaskTemplate]:
        return [
            TaskTemplate(name="Build", kind="compound"),
            TaskTemplate(name="ImplementStorage", kind="compound"),
            TaskTemplate(
                name="CreateDocumentCollections",
                requires={"capabilities": {"storage": ["document"]}},
            ),
            TaskTemplate(name="ConfigureFileStorage"),
        ]

    def test_filtered_method_passed_over(
        self,
        make_registry: Callable[..., MethodRegistry],
        storage_templates: list[TaskTemplate],
        web_project: ProjectDefinition,
    ) -> None:
        """Test a method with no applicable subtask falls through to the next."""
        registry = make_registry(
            storage_templates,
            [
                Method(name="build", task_type="Build", subtasks=("ImplementStorage",)),
                Method(
                    name="documents",
                    task_type="ImplementStorage",
                    subtasks=("CreateDocumentCollections",),
                    condition={"architectural_styles": ["monolithic"]},
                ),
                Method(
                    name="files",
                    task_type="ImplementStorage",
                    subtasks=("ConfigureFileStorage",),
                ),
            ],
            roots=["Build"],
        )

        hierarchy = DecompositionEngine(registry).decompose(web_project)

        assert hierarchy.success
        assert hierarchy.get("ImplementStorage@0.0").children == ("ConfigureFileStorage@0.0.0",)
        assert all(n.is_primitive for n in hierarchy.leaves())

    def test_all_subtasks_filtered_is_branch_error(
        self,
        make_registry: Callable[..., MethodRegistry],
        storage_templates: list[TaskTemplate],
        web_project: ProjectDefinition,
    ) -> None:
        """Test a compound that would get no children is reported."""
        registry = make_registry(
            storage_templates,
            [
                Method(
                    name="build",
                    task_type="Build",
                    subtasks=("ImplementStorage", "ConfigureFileStorage"),
                ),
                Method(
                    name="documents",
                    task_type="ImplementStorage",
                    subtasks=("CreateDocumentCollections",),
                ),
            ],
            roots=["Build"],
        )

        hierarchy = DecompositionEngine(registry).decompose(web_project)

        assert not hierarchy.success
        error = hierarchy.errors[0]
        assert error.node_id == "ImplementStorage@0.0"
        assert error.unmet == ["documents: no subtask applies to this project"]
        assert [n.id for n in hierarchy.unexpanded()] == ["ImplementStorage@0.0"]
        assert hierarchy.get("Build@0").children == (
            "ImplementStorage@0.0",
            "ConfigureFileStorage@0.1",
        )


class TestStructuralErrors:
    """Tests for errors that abort a run."""

    @pytest.fixture
    def dangling_registry(self, make_registry: Callable[..., MethodRegistry]) -> MethodRegistry:
        """Registry whose method names a template that was never registered."""
        return make_registry(
            [TaskTemplate(name="Build", kind="compound"), TaskTemplate(name="Compile")],
            [Method(name="build", task_type="Build", subtasks=("Compile", "Missing"))],
            roots=["Build"],
        )

    def test_unknown_subtask_sync(
        self,
        dangling_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test a dangling subtask raises UnknownTemplateError."""
        with pytest.raises(UnknownTemplateError, match="Missing"):
            DecompositionEngine(dangling_registry).decompose(web_project)

    @pytest.mark.asyncio
    async def test_unknown_subtask_async(
        self,
        dangling_registry: MethodRegistry,
        web_project: ProjectDefinition,
    ) -> None:
        """Test parallel expansion raises the same bare error type."""
        engine = DecompositionEngine(dangling_registry)

        with pytest.raises(UnknownTemplateError, match="Missing"):
            await engine.decompose_async(web_project, roots=["Compile", "Build"])

    def test_alternating_cycle(
        self,
        make_registry: Callable[..., MethodRegistry],
        web_project: ProjectDefinition,
    ) -> None:
        """Test the reported cycle is a single period of the repetition."""
        registry = make_registry(
            [
                TaskTemplate(name="Root", kind="compound"),
                TaskTemplate(name="A", kind="compound"),
                TaskTemplate(name="B", kind="compound"),
            ],
            [
                Method(name="root", task_type="Root", subtasks=("A",)),
                Method(name="a", task_type="A", subtasks=("B",)),
                Method(name="b", task_type="B", subtasks=("A",)),
            ],
            roots=["Root"],
        )

        with pytest.raises(DecompositionDepthExceededError) as exc_info:
            DecompositionEngine(registry, max_depth=6).decompose(web_project)

        assert exc_info.value.path == ["Root", "A", "B", "A", "B", "A", "B"]
        assert exc_info.value.cycle == ["B", "A", "B"]

    def test_cycle_of_path(self) -> None:
        """Test cycle extraction on a given path."""
        error = DecompositionDepthExceededError(["Root", "A", "B", "A", "B", "A"], max_depth=5)

        assert error.cycle == ["A", "B", "A"]
        assert DecompositionDepthExceededError(["Root", "A"], max_depth=1).cycle == []
