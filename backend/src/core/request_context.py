"""Request context types for tracking who is acting and from where."""
from dataclasses import dataclass, field
from enum import StrEnum


class RequestSource(StrEnum):
    """Where a workflow operation was initiated."""

    WEB = "web"
    API = "api"
    SCHEDULER = "scheduler"
    CLI = "cli"


@dataclass(frozen=True)
class Actor:
    """
    The identity performing a workflow operation.

    Roles come from the identity layer; the engine only intersects them with
    the roles a transition requires. user_id is None for system actions that
    are not attributed to a person.
    """

    user_id: int | None
    roles: frozenset[str] = field(default_factory=frozenset)
    source: RequestSource = RequestSource.WEB

    def has_any_role(self, required: frozenset[str] | set[str] | list[str]) -> bool:
        """True when the actor holds at least one of the required roles."""
        return not self.roles.isdisjoint(required)
