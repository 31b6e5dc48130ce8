"""Shared fixtures for API tests."""
from collections.abc import Callable

import pytest

from models.user import User


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build the identity headers the upstream gateway sends for a user."""
    def build(user: User, source: str | None = None) -> dict[str, str]:
        headers = {"X-User-Id": str(user.id)}
        if source:
            headers["X-Request-Source"] = source
        return headers

    return build
