"""Resolution of the editorial workflow configuration for a piece of content."""
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.setting import Setting
from models.versionable import STATUS_PUBLISHED, Versionable, VersionableType
from services.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

POST_TYPE_KEY = "workflow.post_type.{post_type}"
VERSIONABLE_TYPE_KEY = "workflow.type.{versionable_type}"
DEFAULT_KEY = "workflow.default"


class WorkflowState(BaseModel):
    """Display metadata for one workflow status."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1, max_length=100)
    color: str | None = None
    icon: str | None = None


class TransitionRule(BaseModel):
    """One allowed edge of the workflow graph and the roles that may take it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_status: str = Field(alias="from", min_length=1, max_length=50)
    to_status: str = Field(alias="to", min_length=1, max_length=50)
    roles: tuple[str, ...]
    label: str | None = None

    def allows(self, roles: frozenset[str]) -> bool:
        return not roles.isdisjoint(self.roles)


class WorkflowConfig(BaseModel):
    """
    A named workflow graph.

    States and transitions are independent: a status listed in `states` is
    only reachable if some transition targets it, and `published` may be
    targeted without being listed.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=100)
    states: tuple[WorkflowState, ...] = Field(min_length=1)
    transitions: tuple[TransitionRule, ...]
    publish_roles: tuple[str, ...]
    edit_published_roles: tuple[str, ...]

    @model_validator(mode="before")
    @classmethod
    def default_edit_published_roles(cls, data: Any) -> Any:
        """Configs that predate edit_published_roles inherit publish_roles."""
        if isinstance(data, dict) and "edit_published_roles" not in data:
            data = {**data, "edit_published_roles": data.get("publish_roles", ())}
        return data

    @model_validator(mode="after")
    def unique_state_keys(self) -> "WorkflowConfig":
        keys = [state.key for state in self.states]
        if len(keys) != len(set(keys)):
            raise ValueError("Workflow state keys must be unique")
        return self

    def state_for(self, key: str) -> WorkflowState | None:
        """Display metadata for a status, or None when it is not listed."""
        for state in self.states:
            if state.key == key:
                return state
        return None

    def transitions_from(self, from_status: str) -> list[TransitionRule]:
        """Outgoing edges of a status, in configured order."""
        return [rule for rule in self.transitions if rule.from_status == from_status]

    def edges(self, from_status: str, to_status: str) -> list[TransitionRule]:
        """Every configured edge matching (from, to). Usually zero or one."""
        return [
            rule for rule in self.transitions
            if rule.from_status == from_status and rule.to_status == to_status
        ]

    def label_for(self, key: str) -> str:
        state = self.state_for(key)
        if state is not None:
            return state.label
        return "Published" if key == STATUS_PUBLISHED else key


DEFAULT_WORKFLOW = WorkflowConfig.model_validate({
    "name": "Default Editorial Workflow",
    "states": [
        {"key": "draft", "label": "Draft", "color": "neutral", "icon": "i-lucide-file-edit"},
        {"key": "review", "label": "Editorial Review", "color": "warning", "icon": "i-lucide-eye"},
        {"key": "copydesk", "label": "Copy Desk", "color": "info", "icon": "i-lucide-spell-check"},
        {"key": "approved", "label": "Approved", "color": "success", "icon": "i-lucide-check-circle"},
        {"key": "rejected", "label": "Needs Revision", "color": "error", "icon": "i-lucide-alert-circle"},
    ],
    "transitions": [
        {"from": "draft", "to": "review", "roles": ["Writer", "Editor", "Admin"], "label": "Submit for Review"},
        {"from": "review", "to": "copydesk", "roles": ["Editor", "Admin"], "label": "Send to Copy Desk"},
        {"from": "review", "to": "rejected", "roles": ["Editor", "Admin"], "label": "Reject"},
        {"from": "copydesk", "to": "approved", "roles": ["Editor", "Admin"], "label": "Approve"},
        {"from": "copydesk", "to": "rejected", "roles": ["Editor", "Admin"], "label": "Reject"},
        {"from": "rejected", "to": "review", "roles": ["Writer", "Editor", "Admin"], "label": "Resubmit"},
        {"from": "approved", "to": "published", "roles": ["Editor", "Admin"], "label": "Publish"},
        {"from": "published", "to": "draft", "roles": ["Editor", "Admin"], "label": "Unpublish"},
    ],
    "publish_roles": ["Editor", "Admin"],
    "edit_published_roles": ["Editor", "Admin"],
})


class WorkflowConfigService:
    """
    Resolves which workflow applies to a piece of content.

    Lookup order, first hit wins:
    1. workflow.post_type.<post_type> (when the owner has a post type)
    2. workflow.type.<versionable_type>
    3. workflow.default
    4. the built-in default workflow
    """

    def __init__(self, default: WorkflowConfig | None = DEFAULT_WORKFLOW) -> None:
        self.default = default

    @staticmethod
    def candidate_keys(
        versionable_type: VersionableType | str,
        post_type: str | None = None,
    ) -> list[str]:
        """Setting keys consulted for a content type, most specific first."""
        type_value = (
            versionable_type.value
            if isinstance(versionable_type, VersionableType)
            else versionable_type
        )
        keys = []
        if post_type:
            keys.append(POST_TYPE_KEY.format(post_type=post_type))
        keys.append(VERSIONABLE_TYPE_KEY.format(versionable_type=type_value))
        keys.append(DEFAULT_KEY)
        return keys

    async def resolve(
        self,
        db: AsyncSession,
        versionable_type: VersionableType | str,
        post_type: str | None = None,
    ) -> WorkflowConfig:
        """
        Resolve the workflow for a content type.

        Args:
            db: Database session.
            versionable_type: Owner kind (post, page).
            post_type: Optional sub-type (article, recipe).

        Returns:
            The first stored override found, else the built-in default.

        Raises:
            ConfigurationError: If a stored override is malformed, or nothing
                resolves and no default is configured.
        """
        keys = self.candidate_keys(versionable_type, post_type)
        result = await db.execute(select(Setting).where(Setting.key.in_(keys)))
        stored = {setting.key: setting.value for setting in result.scalars()}

        for key in keys:
            raw = stored.get(key)
            if raw:
                return self._parse(key, raw)

        if self.default is None:
            raise ConfigurationError(
                f"No workflow configured for {keys[0]} and no default available",
            )
        return self.default

    async def resolve_for(self, db: AsyncSession, owner: Versionable) -> WorkflowConfig:
        """Resolve the workflow for a concrete owner."""
        return await self.resolve(db, owner.versionable_type, owner.get_post_type())

    async def set_override(
        self,
        db: AsyncSession,
        key: str,
        config: WorkflowConfig | dict[str, Any],
    ) -> Setting:
        """
        Store a workflow override under a setting key.

        The value is validated before it is written so a bad override can never
        be persisted through this path.
        """
        if isinstance(config, dict):
            config = self._parse(key, config)
        value = config.model_dump(mode="json", by_alias=True)

        result = await db.execute(select(Setting).where(Setting.key == key))
        setting = result.scalar_one_or_none()
        if setting is None:
            setting = Setting(key=key, value=value)
            db.add(setting)
        else:
            setting.value = value
        await db.flush()
        logger.info("Stored workflow override %s (%s)", key, config.name)
        return setting

    def _parse(self, key: str, raw: Any) -> WorkflowConfig:
        try:
            if isinstance(raw, str):
                return WorkflowConfig.model_validate_json(raw)
            return WorkflowConfig.model_validate(raw)
        except ValidationError as e:
            if any(error["type"] == "json_invalid" for error in e.errors()):
                raise ConfigurationError(f"Workflow setting {key} is not valid JSON") from e
            raise ConfigurationError(
                f"Workflow setting {key} is malformed: {e.error_count()} validation error(s)",
            ) from e


workflow_config_service = WorkflowConfigService()
