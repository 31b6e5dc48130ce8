"""Shared exceptions for the versioning and workflow services."""


class WorkflowError(Exception):
    """Base class for every failure the workflow services raise on purpose."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidTransitionError(WorkflowError):
    """
    Raised when the requested (from, to) edge is not in the resolved workflow.

    No mutation has happened when this is raised.
    """

    def __init__(self, from_status: str | None, to_status: str, message: str | None = None) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Transition from '{from_status}' to '{to_status}' is not allowed",
        )


class StaleVersionError(InvalidTransitionError):
    """
    Raised when the version's status changed between validation and write.

    A concurrent request already moved the version; the caller should reload
    it and re-validate against the new status.
    """

    def __init__(self, version_id: int, expected_status: str, to_status: str) -> None:
        self.version_id = version_id
        super().__init__(
            expected_status,
            to_status,
            f"Version {version_id} is no longer in '{expected_status}'",
        )


class UnauthorizedTransitionError(WorkflowError):
    """Raised when the edge exists but the actor holds none of its roles."""

    def __init__(self, to_status: str, required_roles: frozenset[str]) -> None:
        self.to_status = to_status
        self.required_roles = required_roles
        super().__init__(
            f"User is not allowed to transition to '{to_status}' "
            f"(requires one of: {', '.join(sorted(required_roles)) or 'nobody'})",
        )


class PublishRequirementsError(WorkflowError):
    """Raised when a version's snapshot lacks fields required to publish it."""

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(
            "Cannot publish: missing required content "
            f"({', '.join(missing_fields)})",
        )


class ConfigurationError(WorkflowError):
    """Raised when no valid workflow configuration can be resolved."""


class IntegrityViolationError(WorkflowError):
    """
    Raised when persisted version pointers are inconsistent.

    Interactive paths self-heal instead of raising this; it surfaces when an
    operation cannot proceed at all (e.g. a version whose owner is gone).
    """


class VersionNotFoundError(WorkflowError):
    """Raised when a content version does not exist."""

    def __init__(self, version_id: int) -> None:
        self.version_id = version_id
        super().__init__(f"Version not found: {version_id}")


class OwnerNotFoundError(WorkflowError):
    """Raised when a versionable owner does not exist."""

    def __init__(self, owner_type: str, owner_id: int) -> None:
        self.owner_type = owner_type
        self.owner_id = owner_id
        super().__init__(f"{owner_type.title()} not found: {owner_id}")
