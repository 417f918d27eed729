"""Method registry - task templates, decomposition methods and root rules.

The registry is plain data plus lookup. Engines receive an explicit
instance, so independent runs (or tests with synthetic registries) never
share rule state.
"""

from collections import defaultdict

from loguru import logger

from taskweave.core.exceptions import (
    DuplicateMethodError,
    DuplicateTemplateError,
    UnknownTemplateError,
)
from taskweave.decomposition.models import (
    Method,
    ProjectDefinition,
    RootTaskRule,
    TaskTemplate,
)


class MethodRegistry:
    """
    Typed-key registry: task type -> ordered list of decomposition methods.

    Methods for the same task type are ordered by effective priority
    (domain-specific conditions first, then otherwise-constrained, then
    generic, unless an explicit ``priority`` is given) and, within one
    priority, by registration order.

    Example:
        >>> registry = MethodRegistry()
        >>> registry.register_template(TaskTemplate(name="Build", kind="compound"))
        >>> registry.register_template(TaskTemplate(name="Compile"))
        >>> registry.register(Method(name="build", task_type="Build", subtasks=("Compile",)))
        >>> [m.name for m in registry.lookup("Build", project)]
        ['build']
    """

    def __init__(self) -> None:
        self._templates: dict[str, TaskTemplate] = {}
        self._methods: dict[str, list[tuple[int, Method]]] = defaultdict(list)
        self._roots: list[RootTaskRule] = []
        self._registration_counter = 0

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    def register_template(self, template: TaskTemplate) -> None:
        """
        Add a task template.

        Raises:
            DuplicateTemplateError: If a template with that name exists.
        """
        if template.name in self._templates:
            raise DuplicateTemplateError(template.name)
        self._templates[template.name] = template
        logger.debug(f"Registered {template.kind.value} template '{template.name}'")

    def get_template(self, name: str) -> TaskTemplate:
        """
        Get a template by name.

        Raises:
            UnknownTemplateError: If no template has that name.
        """
        template = self._templates.get(name)
        if template is None:
            raise UnknownTemplateError(name)
        return template

    def has_template(self, name: str) -> bool:
        return name in self._templates

    @property
    def templates(self) -> list[TaskTemplate]:
        return list(self._templates.values())

    # =========================================================================
    # METHODS
    # =========================================================================

    def register(self, method: Method) -> None:
        """
        Add a decomposition method.

        Args:
            method: Method to register.

        Raises:
            DuplicateMethodError: If a method with the same task type and
                condition signature is already registered.
        """
        signature = method.condition.signature()
        for _, existing in self._methods.get(method.task_type, []):
            if existing.condition.signature() == signature:
                raise DuplicateMethodError(method.task_type, signature, existing.name)

        self._methods[method.task_type].append((self._registration_counter, method))
        self._registration_counter += 1
        logger.debug(
            f"Registered method '{method.name}' for '{method.task_type}' "
            f"[{signature}] -> {list(method.subtasks)}"
        )

    def methods_for(self, task_type: str) -> list[Method]:
        """All methods for a task type in priority order."""
        entries = sorted(
            self._methods.get(task_type, []),
            key=lambda entry: (entry[1].effective_priority, entry[0]),
        )
        return [method for _, method in entries]

    def lookup(self, task_type: str, project: ProjectDefinition) -> list[Method]:
        """
        Get applicable methods for a task type.

        Args:
            task_type: Compound task type.
            project: Project definition the conditions are evaluated against.

        Returns:
            Applicable methods in priority order; empty if none apply.
        """
        return [m for m in self.methods_for(task_type) if m.condition.matches(project)]

    def unmet_context(self, task_type: str, project: ProjectDefinition) -> list[str]:
        """Explain why each method for a task type was rejected."""
        reasons: list[str] = []
        for method in self.methods_for(task_type):
            unmet = method.condition.unmet(project)
            if unmet:
                reasons.append(f"{method.name}: {', '.join(unmet)}")
        return reasons

    def task_types(self) -> list[str]:
        """Task types that have at least one method, in first-registration order."""
        return [t for t, entries in self._methods.items() if entries]

    @property
    def methods(self) -> list[Method]:
        """All methods in registration order."""
        entries = [entry for entries in self._methods.values() for entry in entries]
        return [method for _, method in sorted(entries, key=lambda e: e[0])]

    # =========================================================================
    # ROOT TASKS
    # =========================================================================

    def register_root(self, rule: RootTaskRule) -> None:
        """Add a root task rule; roots are selected in registration order."""
        self._roots.append(rule)
        logger.debug(f"Registered root task '{rule.task_type}' [{rule.condition.signature()}]")

    def root_tasks(self, project: ProjectDefinition) -> list[str]:
        """Root task types for a project, deduplicated, in registration order."""
        roots: list[str] = []
        for rule in self._roots:
            if rule.task_type not in roots and rule.condition.matches(project):
                roots.append(rule.task_type)
        return roots

    @property
    def root_rules(self) -> list[RootTaskRule]:
        return list(self._roots)

    # =========================================================================
    # CONSISTENCY
    # =========================================================================

    def check_references(self) -> None:
        """
        Verify every method and root rule references registered templates.

        Raises:
            UnknownTemplateError: For the first dangling reference found.
        """
        for method in self.methods:
            if method.task_type not in self._templates:
                raise UnknownTemplateError(method.task_type, referenced_by=method.name)
            for subtask in method.subtasks:
                if subtask not in self._templates:
                    raise UnknownTemplateError(subtask, referenced_by=method.name)
        for rule in self._roots:
            if rule.task_type not in self._templates:
                raise UnknownTemplateError(rule.task_type, referenced_by="root rules")

    def without_template(self, name: str) -> "MethodRegistry":
        """
        Copy of this registry with one template removed.

        The template is also dropped from every method's subtask list;
        methods left with no subtasks (or for the removed type) are
        dropped. Registration order is preserved.
        """
        reduced = MethodRegistry()
        for template in self._templates.values():
            if template.name != name:
                reduced.register_template(template)
        for method in self.methods:
            if method.task_type == name:
                continue
            subtasks = tuple(s for s in method.subtasks if s != name)
            if not subtasks:
                continue
            reduced.register(method.model_copy(update={"subtasks": subtasks}))
        for rule in self._roots:
            if rule.task_type != name:
                reduced.register_root(rule)
        return reduced

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._methods.values())

    def __repr__(self) -> str:
        return (
            f"MethodRegistry(templates={len(self._templates)}, "
            f"methods={len(self)}, roots={len(self._roots)})"
        )
