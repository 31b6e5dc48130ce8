"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.user import User
from models.tag import Category, Tag, post_categories, post_tags  # Must be before post due to import
from models.post import Post, PostStatus
from models.page import Page
from models.content_version import ContentVersion
from models.workflow_transition import WorkflowTransition
from models.setting import Setting
from models.versionable import OwnerKey, Versionable, VersionableMixin, VersionableType

__all__ = [
    "Base",
    "Category",
    "ContentVersion",
    "OwnerKey",
    "Page",
    "Post",
    "PostStatus",
    "Setting",
    "Tag",
    "TimestampMixin",
    "User",
    "Versionable",
    "VersionableMixin",
    "VersionableType",
    "WorkflowTransition",
    "post_categories",
    "post_tags",
]
