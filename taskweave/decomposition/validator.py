"""Completeness validation of a task graph against the project definition."""

from loguru import logger

from taskweave.decomposition.models import ProjectDefinition, TaskGraph, ValidationResult


class CompletenessValidator:
    """
    Check that every mandatory component is covered by some primitive task.

    Missing components are an expected outcome reported in the result, not
    an exception; callers decide whether to surface them or retry with a
    different method library or architecture.

    Example:
        >>> result = CompletenessValidator().validate(graph, project)
        >>> result.missing_components
        ('storage.relational',)
    """

    def validate(self, graph: TaskGraph, project: ProjectDefinition) -> ValidationResult:
        """
        Validate coverage of mandatory components.

        Args:
            graph: Task graph to check.
            project: Project definition whose mandatory components must be covered.

        Returns:
            ValidationResult; ``success`` is False when components are missing
            or branch errors were collected during decomposition.
        """
        mandatory = project.mandatory_components
        effects = graph.all_effects()

        missing = sorted(mandatory - effects)
        covered = sorted(mandatory & effects)
        errors = tuple(e.to_dict() for e in graph.errors)

        if missing:
            logger.warning(f"Missing mandatory components: {missing}")
        if errors:
            logger.warning(f"{len(errors)} branch errors collected during decomposition")

        result = ValidationResult(
            success=not missing and not errors,
            missing_components=tuple(missing),
            covered_components=tuple(covered),
            errors=errors,
        )
        logger.info(
            f"Validation {'passed' if result.success else 'failed'}: "
            f"{len(covered)}/{len(mandatory)} mandatory components covered"
        )
        return result
