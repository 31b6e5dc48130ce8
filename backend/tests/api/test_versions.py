"""Tests for the content version API endpoints."""
from collections.abc import Callable
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.page import Page
from models.post import Post
from models.user import User
from services.version_store import version_store


async def create_version(client: AsyncClient, headers: dict, owner_path: str, **body) -> dict:
    response = await client.post(f"/versions/{owner_path}", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def transition(
    client: AsyncClient,
    headers: dict,
    version_id: int,
    to_status: str,
    comment: str | None = None,
) -> dict:
    response = await client.post(
        f"/versions/{version_id}/transition",
        json={"to_status": to_status, "comment": comment},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def writer_headers(writer: User, auth_headers: Callable) -> dict[str, str]:
    return auth_headers(writer)


@pytest.fixture
def editor_headers(editor: User, auth_headers: Callable) -> dict[str, str]:
    return auth_headers(editor)


async def publish_post_via_api(
    client: AsyncClient,
    post: Post,
    writer_headers: dict,
    editor_headers: dict,
) -> int:
    """Create a version and walk it to published, returning its id."""
    data = await create_version(client, writer_headers, f"post/{post.id}")
    version_id = data["version"]["id"]
    await transition(client, writer_headers, version_id, "review")
    await transition(client, editor_headers, version_id, "copydesk")
    await transition(client, editor_headers, version_id, "approved")
    await transition(client, editor_headers, version_id, "published")
    return version_id


class TestAuthentication:
    """Every version endpoint needs an identified user."""

    async def test__missing_user_header(self, client: AsyncClient, post: Post) -> None:
        response = await client.get(f"/versions/post/{post.id}")
        assert response.status_code == 401

    async def test__malformed_user_header(self, client: AsyncClient, post: Post) -> None:
        response = await client.get(f"/versions/post/{post.id}", headers={"X-User-Id": "abc"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid user id"

    async def test__unknown_user(self, client: AsyncClient, post: Post) -> None:
        response = await client.get(f"/versions/post/{post.id}", headers={"X-User-Id": "9999"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Unknown user"


class TestCreateAndHistory:
    """POST and GET /versions/{type}/{id}."""

    async def test__create_version__from_live_content(
        self,
        client: AsyncClient,
        post: Post,
        writer: User,
        writer_headers: dict,
    ) -> None:
        data = await create_version(client, writer_headers, f"post/{post.id}", version_note="First")

        assert data["version"]["version_number"] == 1
        assert data["version"]["workflow_status"] == "draft"
        assert data["version"]["versionable_type"] == "post"
        assert data["version"]["created_by"] == writer.id
        assert data["version"]["version_note"] == "First"
        assert data["version"]["content_snapshot"]["title"] == "Tomato Soup"
        assert data["owner"]["draft_version_id"] == data["version"]["id"]
        assert data["owner"]["active_version_id"] is None

    async def test__create_version__explicit_snapshot(
        self,
        client: AsyncClient,
        page: Page,
        writer_headers: dict,
    ) -> None:
        data = await create_version(
            client, writer_headers, f"page/{page.id}",
            content_snapshot={"title": "About", "content": "New copy"},
        )
        assert data["version"]["content_snapshot"] == {"title": "About", "content": "New copy"}

    async def test__create_version__unknown_owner(
        self,
        client: AsyncClient,
        writer_headers: dict,
    ) -> None:
        response = await client.post("/versions/post/9999", json={}, headers=writer_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "OwnerNotFoundError"

    async def test__create_version__unknown_type(
        self,
        client: AsyncClient,
        writer_headers: dict,
    ) -> None:
        response = await client.post("/versions/recipe/1", json={}, headers=writer_headers)
        assert response.status_code == 422

    async def test__create_version__soft_deleted_owner(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        page: Page,
        writer_headers: dict,
    ) -> None:
        page.deleted_at = utcnow()
        await db_session.flush()

        response = await client.post(f"/versions/page/{page.id}", json={}, headers=writer_headers)
        assert response.status_code == 404

    async def test__history__newest_first_with_transitions(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
    ) -> None:
        first = await create_version(client, writer_headers, f"post/{post.id}")
        await transition(client, writer_headers, first["version"]["id"], "review", "Ready")
        second = await create_version(client, writer_headers, f"post/{post.id}")

        response = await client.get(f"/versions/post/{post.id}", headers=writer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["versionable_type"] == "post"
        assert data["draft_version_id"] == second["version"]["id"]
        assert [item["version_number"] for item in data["items"]] == [2, 1]
        older = data["items"][1]
        assert [t["to_status"] for t in older["transitions"]] == ["draft", "review"]
        assert older["transitions"][1]["comment"] == "Ready"
        assert older["transitions"][1]["label"] == "draft → review"

    async def test__get_version__detail_and_missing(
        self,
        client: AsyncClient,
        page: Page,
        writer_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"page/{page.id}")
        version_id = created["version"]["id"]

        response = await client.get(f"/versions/{version_id}", headers=writer_headers)
        assert response.status_code == 200
        assert response.json()["transitions"][0]["label"] == "Created as draft"

        missing = await client.get("/versions/9999", headers=writer_headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "VersionNotFoundError"


class TestTransitions:
    """POST /versions/{id}/transition and available transitions."""

    async def test__transition__full_publish(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        version_id = await publish_post_via_api(client, post, writer_headers, editor_headers)

        response = await client.get(f"/versions/{version_id}", headers=editor_headers)
        data = response.json()
        assert data["workflow_status"] == "published"
        assert data["is_active"] is True

        history = (await client.get(f"/versions/post/{post.id}", headers=editor_headers)).json()
        assert history["active_version_id"] == version_id

    async def test__transition__publish_response_reports_owner(
        self,
        client: AsyncClient,
        page: Page,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"page/{page.id}")
        version_id = created["version"]["id"]
        await transition(client, writer_headers, version_id, "review")
        await transition(client, editor_headers, version_id, "copydesk")
        await transition(client, editor_headers, version_id, "approved")

        data = await transition(client, editor_headers, version_id, "published")

        assert data["owner"]["status"] == "published"
        assert data["owner"]["published_at"] is not None
        assert data["owner"]["active_version_id"] == version_id
        assert data["owner"]["workflow_status"] == "published"

    async def test__transition__invalid_edge_is_422(
        self,
        client: AsyncClient,
        post: Post,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, editor_headers, f"post/{post.id}")

        response = await client.post(
            f"/versions/{created['version']['id']}/transition",
            json={"to_status": "approved"},
            headers=editor_headers,
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "InvalidTransitionError"
        assert data["from_status"] == "draft"
        assert data["to_status"] == "approved"

    async def test__transition__missing_role_is_403(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"post/{post.id}")
        version_id = created["version"]["id"]
        await transition(client, writer_headers, version_id, "review")

        response = await client.post(
            f"/versions/{version_id}/transition",
            json={"to_status": "copydesk"},
            headers=writer_headers,
        )

        assert response.status_code == 403
        assert response.json()["required_roles"] == ["Admin", "Editor"]

    async def test__transition__missing_taxonomy_is_422(
        self,
        client: AsyncClient,
        untagged_post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"post/{untagged_post.id}")
        version_id = created["version"]["id"]
        await transition(client, writer_headers, version_id, "review")
        await transition(client, editor_headers, version_id, "copydesk")
        await transition(client, editor_headers, version_id, "approved")

        response = await client.post(
            f"/versions/{version_id}/transition",
            json={"to_status": "published"},
            headers=editor_headers,
        )

        assert response.status_code == 422
        assert response.json()["missing_fields"] == ["category_ids", "tag_ids"]

    async def test__transition__stale_version_is_409(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        created = await create_version(client, writer_headers, f"post/{post.id}")

        async def lost_race(*args, **kwargs) -> bool:
            return False

        monkeypatch.setattr(version_store, "set_status_if", lost_race)

        response = await client.post(
            f"/versions/{created['version']['id']}/transition",
            json={"to_status": "review"},
            headers=writer_headers,
        )

        assert response.status_code == 409
        assert response.json()["error"] == "StaleVersionError"

    async def test__available_transitions__by_role(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"post/{post.id}")
        version_id = created["version"]["id"]
        await transition(client, writer_headers, version_id, "review")

        as_editor = await client.get(
            f"/versions/{version_id}/transitions/available", headers=editor_headers,
        )
        as_writer = await client.get(
            f"/versions/{version_id}/transitions/available", headers=writer_headers,
        )

        assert as_editor.status_code == 200
        assert as_editor.json()["workflow_status"] == "review"
        assert [t["to"] for t in as_editor.json()["transitions"]] == ["copydesk", "rejected"]
        assert as_editor.json()["transitions"][0]["label"] == "Send to Copy Desk"
        assert as_writer.json()["transitions"] == []


class TestDraftRestoreAndLive:
    """PUT draft, restore, make-live, compare and schedule."""

    async def test__update_draft__rewrites_in_place(
        self,
        client: AsyncClient,
        page: Page,
        writer_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"page/{page.id}")

        response = await client.put(
            f"/versions/page/{page.id}/draft",
            json={"content_snapshot": {"title": "About", "content": "Edited"}},
            headers=writer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["version"]["id"] == created["version"]["id"]
        assert data["version"]["content_snapshot"]["content"] == "Edited"

    async def test__update_draft__published_content_needs_role(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        await publish_post_via_api(client, post, writer_headers, editor_headers)
        body = {"content_snapshot": {"title": "Edited live post"}}

        as_writer = await client.put(f"/versions/post/{post.id}/draft", json=body, headers=writer_headers)
        assert as_writer.status_code == 403

        as_editor = await client.put(f"/versions/post/{post.id}/draft", json=body, headers=editor_headers)
        assert as_editor.status_code == 200
        assert as_editor.json()["version"]["version_number"] == 2
        assert as_editor.json()["version"]["version_note"] == "Updated from previous version"

    async def test__restore__creates_new_draft(
        self,
        client: AsyncClient,
        page: Page,
        writer: User,
        writer_headers: dict,
    ) -> None:
        first = await create_version(
            client, writer_headers, f"page/{page.id}", content_snapshot={"title": "Old"},
        )
        await create_version(client, writer_headers, f"page/{page.id}", content_snapshot={"title": "New"})

        response = await client.post(
            f"/versions/{first['version']['id']}/restore", headers=writer_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["version"]["version_number"] == 3
        assert data["version"]["content_snapshot"] == {"title": "Old"}
        assert data["version"]["version_note"] == "Restored from version 1"
        assert data["version"]["created_by"] == writer.id
        assert data["owner"]["draft_version_id"] == data["version"]["id"]

    async def test__make_live__requires_published_content(
        self,
        client: AsyncClient,
        post: Post,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, editor_headers, f"post/{post.id}")

        response = await client.post(
            f"/versions/{created['version']['id']}/make-live", headers=editor_headers,
        )

        assert response.status_code == 422
        assert "only available for published content" in response.json()["detail"]

    async def test__make_live__switches_live_version(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        first_id = await publish_post_via_api(client, post, writer_headers, editor_headers)
        second = await create_version(client, editor_headers, f"post/{post.id}")
        second_id = second["version"]["id"]

        response = await client.post(
            f"/versions/{second_id}/make-live",
            json={"comment": "Hotfix"},
            headers=editor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["version"]["workflow_status"] == "published"
        assert data["version"]["is_active"] is True
        assert data["owner"]["active_version_id"] == second_id
        assert data["owner"]["draft_version_id"] == second_id

        first = (await client.get(f"/versions/{first_id}", headers=editor_headers)).json()
        assert first["is_active"] is False

    async def test__make_live__writer_forbidden(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        version_id = await publish_post_via_api(client, post, writer_headers, editor_headers)
        response = await client.post(f"/versions/{version_id}/make-live", headers=writer_headers)
        assert response.status_code == 403

    async def test__compare__reports_differences(
        self,
        client: AsyncClient,
        page: Page,
        writer_headers: dict,
    ) -> None:
        first = await create_version(
            client, writer_headers, f"page/{page.id}",
            content_snapshot={"title": "About", "content": "Old"},
        )
        second = await create_version(
            client, writer_headers, f"page/{page.id}",
            content_snapshot={"title": "About", "content": "New"},
        )

        response = await client.get(
            "/versions/compare",
            params={"a": first["version"]["id"], "b": second["version"]["id"]},
            headers=writer_headers,
        )

        assert response.status_code == 200
        assert response.json()["differences"] == {"content": {"old": "Old", "new": "New"}}

    async def test__schedule__approved_post(
        self,
        client: AsyncClient,
        post: Post,
        writer_headers: dict,
        editor_headers: dict,
    ) -> None:
        created = await create_version(client, writer_headers, f"post/{post.id}")
        version_id = created["version"]["id"]
        await transition(client, writer_headers, version_id, "review")
        await transition(client, editor_headers, version_id, "copydesk")
        await transition(client, editor_headers, version_id, "approved")

        when = utcnow() + timedelta(hours=3)
        response = await client.post(
            f"/versions/post/{post.id}/schedule",
            json={"scheduled_at": when.isoformat()},
            headers=editor_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "scheduled"

    async def test__schedule__pages_cannot_be_scheduled(
        self,
        client: AsyncClient,
        page: Page,
        editor_headers: dict,
    ) -> None:
        response = await client.post(
            f"/versions/page/{page.id}/schedule",
            json={"scheduled_at": utcnow().isoformat()},
            headers=editor_headers,
        )
        assert response.status_code == 422
