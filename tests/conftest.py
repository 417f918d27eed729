"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable, Generator

import pytest

# Set test environment
os.environ.setdefault("TASKWEAVE_LOG_LEVEL", "DEBUG")

from taskweave.decomposition.models import (  # noqa: E402
    Method,
    ProjectDefinition,
    RootTaskRule,
    TaskTemplate,
)
from taskweave.decomposition.registry import MethodRegistry  # noqa: E402


@pytest.fixture
def mock_settings() -> Generator:
    """Clear cached settings around a test."""
    from taskweave.core.config import clear_settings_cache

    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def web_project() -> ProjectDefinition:
    """Monolithic web project with relational storage and a REST API."""
    return ProjectDefinition(
        name="todo-app",
        domain="Web",
        architectural_style=["Monolithic"],
        core_capabilities={
            "storage": ["Relational"],
            "communication": ["HTTP/REST"],
        },
    )


def _minimal_registry(include_backend_method: bool = True) -> MethodRegistry:
    registry = MethodRegistry()
    for template in (
        TaskTemplate(name="BuildWebApplication", kind="compound"),
        TaskTemplate(name="SetupEnvironment"),
        TaskTemplate(name="ImplementBackend", kind="compound"),
        TaskTemplate(name="DeployApplication"),
        TaskTemplate(
            name="CreateDatabase",
            effects=["has_database", "storage.relational"],
            capability_tags=["database"],
        ),
        TaskTemplate(
            name="CreateAPI",
            preconditions=["has_database"],
            effects=["has_api", "communication.http_rest"],
            capability_tags=["api"],
        ),
    ):
        registry.register_template(template)

    registry.register(
        Method(
            name="web_application",
            task_type="BuildWebApplication",
            subtasks=("SetupEnvironment", "ImplementBackend", "DeployApplication"),
        )
    )
    if include_backend_method:
        registry.register(
            Method(
                name="backend",
                task_type="ImplementBackend",
                subtasks=("CreateDatabase", "CreateAPI"),
            )
        )
    registry.register_root(
        RootTaskRule(task_type="BuildWebApplication", condition={"domains": ["web"]})
    )
    return registry


@pytest.fixture
def minimal_registry() -> MethodRegistry:
    """Registry for BuildWebApplication -> {Setup, Backend, Deploy}."""
    return _minimal_registry()


@pytest.fixture
def registry_without_backend_method() -> MethodRegistry:
    """Same registry with no method for ImplementBackend."""
    return _minimal_registry(include_backend_method=False)


@pytest.fixture
def make_registry() -> Callable[..., MethodRegistry]:
    """Build a registry from templates, methods and root task types."""

    def factory(
        templates: list[TaskTemplate],
        methods: list[Method],
        roots: list[str] | None = None,
    ) -> MethodRegistry:
        registry = MethodRegistry()
        for template in templates:
            registry.register_template(template)
        for method in methods:
            registry.register(method)
        for root in roots or []:
            registry.register_root(RootTaskRule(task_type=root))
        return registry

    return factory
