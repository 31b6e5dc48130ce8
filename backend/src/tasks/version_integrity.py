"""
Version pointer integrity audit and repair.

Detects posts and pages whose draft_version_id / active_version_id reference a
missing version or another owner's version, content with no versions at all,
and versions flagged active that the owner does not point at. Interactive
edits already self-heal a bad draft pointer; this task finds the rest.

Usage:
    python -m tasks.version_integrity          # Report only (default)
    python -m tasks.version_integrity --fix    # Report and repair
"""
import argparse
import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session_factory
from services.version_service import IntegrityIssue, version_service
from services.version_store import MODEL_MAP

logger = logging.getLogger(__name__)


@dataclass
class IntegrityStats:
    """Statistics from a version integrity run."""

    checked: int = 0
    owners_with_issues: int = 0
    fixed: int = 0
    versions_created: int = 0
    by_issue: dict[str, int] = field(default_factory=dict)
    issues: dict[str, list[IntegrityIssue]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "checked": self.checked,
            "owners_with_issues": self.owners_with_issues,
            "fixed": self.fixed,
            "versions_created": self.versions_created,
        }


async def check_version_integrity(
    db: AsyncSession,
    fix: bool = False,
) -> IntegrityStats:
    """
    Audit every post and page, optionally repairing what is found.

    Soft-deleted content is included: its versions are retained and must
    stay consistent for an undelete.

    Args:
        db: Database session.
        fix: If True, repair issues and commit. If False (default), only report.

    Returns:
        IntegrityStats with per-owner issues keyed as "<type>:<id>".
    """
    stats = IntegrityStats()

    for versionable_type, model in MODEL_MAP.items():
        result = await db.execute(select(model).order_by(model.id))
        for owner in result.scalars().all():
            stats.checked += 1
            issues = await version_service.check_pointers(db, owner)
            if not issues:
                continue

            key = f"{versionable_type}:{owner.id}"
            stats.owners_with_issues += 1
            stats.issues[key] = issues
            for issue in issues:
                stats.by_issue[issue.kind.value] = stats.by_issue.get(issue.kind.value, 0) + 1
            logger.warning(
                "%s #%s: %s",
                versionable_type.value.title(),
                owner.id,
                ", ".join(issue.describe() for issue in issues),
            )

            if not fix:
                continue

            created = await version_service.repair_pointers(db, owner, issues)
            stats.fixed += 1
            if created is not None:
                stats.versions_created += 1

    if fix:
        await db.commit()

    return stats


async def run_version_integrity(
    db: AsyncSession | None = None,
    fix: bool = False,
) -> IntegrityStats:
    """
    Entry point for the version integrity check.

    Args:
        db: Database session. If None, creates one from the session factory.
        fix: If True, repair the issues found.

    Returns:
        IntegrityStats with results.
    """
    logger.info("Starting version integrity check (fix=%s)", fix)

    if db is not None:
        stats = await check_version_integrity(db, fix=fix)
    else:
        async with get_session_factory()() as session:
            stats = await check_version_integrity(session, fix=fix)

    logger.info("Version integrity check complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """CLI entry point with --fix flag."""
    parser = argparse.ArgumentParser(
        description="Detect and optionally repair invalid version references on posts and pages.",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Repair invalid references (default: report only)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_version_integrity(fix=args.fix))


if __name__ == "__main__":
    main()
