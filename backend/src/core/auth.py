"""Identity dependencies: resolve the acting user and their role set."""
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.request_context import Actor, RequestSource
from db.session import get_async_session
from models.user import User


def _parse_source(raw: str | None) -> RequestSource:
    """Map the X-Request-Source header onto a RequestSource, defaulting to web."""
    if raw:
        try:
            return RequestSource(raw.strip().lower())
        except ValueError:
            pass
    return RequestSource.WEB


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Dependency that resolves the acting user from the X-User-Id header.

    Authentication itself happens upstream (gateway/session layer); this
    service trusts the header and only needs the user's roles.

    Raises:
        HTTPException: 401 if the header is missing, malformed or unknown.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id",
        ) from None

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user),
    x_request_source: str | None = Header(default=None),
) -> Actor:
    """Dependency returning the workflow Actor for the current user."""
    return Actor(
        user_id=current_user.id,
        roles=current_user.role_names,
        source=_parse_source(x_request_source),
    )
