"""Tests for the workflow configuration endpoint."""
from collections.abc import Callable

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from models.setting import Setting
from models.user import User
from services.workflow_config_service import workflow_config_service


async def test__workflow_config__requires_user(client: AsyncClient) -> None:
    response = await client.get("/workflow/config")
    assert response.status_code == 401


async def test__workflow_config__default(
    client: AsyncClient,
    writer: User,
    auth_headers: Callable,
) -> None:
    response = await client.get("/workflow/config", headers=auth_headers(writer))

    assert response.status_code == 200
    data = response.json()
    assert data["versionable_type"] == "post"
    assert data["post_type"] is None
    assert data["workflow"]["name"] == "Default Editorial Workflow"
    assert [state["key"] for state in data["workflow"]["states"]] == [
        "draft", "review", "copydesk", "approved", "rejected",
    ]
    assert data["workflow"]["transitions"][0] == {
        "from": "draft",
        "to": "review",
        "roles": ["Writer", "Editor", "Admin"],
        "label": "Submit for Review",
    }
    assert data["workflow"]["publish_roles"] == ["Editor", "Admin"]


async def test__workflow_config__post_type_override(
    client: AsyncClient,
    db_session: AsyncSession,
    writer: User,
    auth_headers: Callable,
) -> None:
    await workflow_config_service.set_override(
        db_session,
        "workflow.post_type.recipe",
        {
            "name": "Recipe Workflow",
            "states": [{"key": "draft", "label": "Draft"}],
            "transitions": [{"from": "draft", "to": "published", "roles": ["Admin"]}],
            "publish_roles": ["Admin"],
        },
    )

    recipe = await client.get(
        "/workflow/config",
        params={"versionable_type": "post", "post_type": "recipe"},
        headers=auth_headers(writer),
    )
    article = await client.get(
        "/workflow/config",
        params={"versionable_type": "post", "post_type": "article"},
        headers=auth_headers(writer),
    )

    assert recipe.json()["workflow"]["name"] == "Recipe Workflow"
    assert recipe.json()["workflow"]["edit_published_roles"] == ["Admin"]
    assert article.json()["workflow"]["name"] == "Default Editorial Workflow"


async def test__workflow_config__malformed_override_is_500(
    client: AsyncClient,
    db_session: AsyncSession,
    writer: User,
    auth_headers: Callable,
) -> None:
    db_session.add(Setting(key="workflow.type.page", value={"name": "Broken"}))
    await db_session.flush()

    response = await client.get(
        "/workflow/config",
        params={"versionable_type": "page"},
        headers=auth_headers(writer),
    )

    assert response.status_code == 500
    assert response.json()["error"] == "ConfigurationError"
