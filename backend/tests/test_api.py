"""
End-to-end tests for the HTTP API.

Tests cover:
- Admin token checks on author-only routes
- Chapter CRUD and the body immutability rule (awaiting feedback or annotated)
- Annotation creation, validation, replies and threads
- Author / admin deletion rules with cascading replies
- Rendered chapters with highlight markers
- Project metadata and publication progress
"""

import pytest
from fastapi.testclient import TestClient

import main
from scribeloop import config
from scribeloop.routers import annotations as annotations_router
from scribeloop.routers import chapters as chapters_router
from scribeloop.routers import metadata as metadata_router

ADMIN = {"x-admin-token": "test-admin-secret"}
CONTENT = "Hello world, this is a chapter."


@pytest.fixture
def client(db_service, monkeypatch):
    """TestClient wired to a throwaway database"""
    for module in (chapters_router, annotations_router, metadata_router):
        monkeypatch.setattr(module, "db_service", db_service)
    monkeypatch.setattr(config, "ADMIN_SECRET", "test-admin-secret")
    return TestClient(main.app)


@pytest.fixture
def chapter_id(client):
    response = client.post(
        "/api/chapters",
        json={"title": "One", "content_md": CONTENT, "status": "awaiting_feedback"},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()["id"]


def annotate(client, chapter_id, pseudo="alice", start=6, end=11, **extra):
    body = {
        "pseudo": pseudo,
        "comment": "Nice word",
        "start_offset": start,
        "end_offset": end,
        "selected_text": CONTENT[start:end] if start is not None else None,
    }
    body.update(extra)
    return client.post(f"/api/chapters/{chapter_id}/annotations", json=body)


class TestService:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestChapters:
    def test_admin_routes_require_token(self, client):
        payload = {"title": "T", "content_md": "Body"}

        assert client.post("/api/chapters", json=payload).status_code == 401
        assert (
            client.post(
                "/api/chapters", json=payload, headers={"x-admin-token": "wrong"}
            ).status_code
            == 401
        )

    def test_admin_routes_closed_without_secret(self, client, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_SECRET", None)

        response = client.post(
            "/api/chapters", json={"title": "T", "content_md": "Body"}, headers=ADMIN
        )

        assert response.status_code == 401

    def test_create_requires_title_and_content(self, client):
        response = client.post("/api/chapters", json={"title": "T"}, headers=ADMIN)

        assert response.status_code == 400

    def test_create_list_get(self, client, chapter_id):
        listing = client.get("/api/chapters").json()
        chapter = client.get(f"/api/chapters/{chapter_id}").json()

        assert [c["id"] for c in listing] == [chapter_id]
        assert "content_md" not in listing[0]
        assert chapter["content_md"] == CONTENT
        assert chapter["status"] == "awaiting_feedback"

    def test_unknown_chapter(self, client):
        assert client.get("/api/chapters/999").status_code == 404
        assert client.get("/api/chapters/999/rendered").status_code == 404

    def test_content_frozen_while_awaiting_feedback(self, client, chapter_id):
        response = client.put(
            f"/api/chapters/{chapter_id}",
            json={"content_md": "Rewritten"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert client.get(f"/api/chapters/{chapter_id}").json()["content_md"] == CONTENT

    def test_title_and_status_can_change(self, client, chapter_id):
        response = client.put(
            f"/api/chapters/{chapter_id}",
            json={"title": "Renamed", "status": "validated"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        chapter = client.get(f"/api/chapters/{chapter_id}").json()
        assert (chapter["title"], chapter["status"]) == ("Renamed", "validated")

    def test_planned_chapter_content_can_change(self, client):
        created = client.post(
            "/api/chapters", json={"title": "Draft", "content_md": "v1"}, headers=ADMIN
        ).json()

        response = client.put(
            f"/api/chapters/{created['id']}", json={"content_md": "v2"}, headers=ADMIN
        )

        assert response.status_code == 200
        assert client.get(f"/api/chapters/{created['id']}").json()["content_md"] == "v2"

    def test_annotated_planned_chapter_content_is_frozen(self, client):
        created = client.post(
            "/api/chapters", json={"title": "Draft", "content_md": CONTENT}, headers=ADMIN
        ).json()
        assert annotate(client, created["id"]).status_code == 201

        response = client.put(
            f"/api/chapters/{created['id']}",
            json={"content_md": "Totally different text"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert "annotated" in response.json()["detail"]
        rendered = client.get(f"/api/chapters/{created['id']}/rendered").json()
        assert ">world</mark>" in rendered["html"]

    def test_status_flip_does_not_unfreeze_annotated_content(self, client, chapter_id):
        annotate(client, chapter_id)

        flip = client.put(
            f"/api/chapters/{chapter_id}", json={"status": "planned"}, headers=ADMIN
        )
        edit = client.put(
            f"/api/chapters/{chapter_id}", json={"content_md": "Rewritten"}, headers=ADMIN
        )

        assert flip.status_code == 200
        assert edit.status_code == 400
        assert client.get(f"/api/chapters/{chapter_id}").json()["content_md"] == CONTENT

    def test_unchanged_body_can_be_resent(self, client, chapter_id):
        annotate(client, chapter_id)

        response = client.put(
            f"/api/chapters/{chapter_id}",
            json={"title": "Renamed", "content_md": CONTENT},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert client.get(f"/api/chapters/{chapter_id}").json()["title"] == "Renamed"

    def test_content_editable_again_once_annotations_are_gone(self, client):
        created = client.post(
            "/api/chapters", json={"title": "Draft", "content_md": CONTENT}, headers=ADMIN
        ).json()
        root_id = annotate(client, created["id"]).json()["id"]
        client.delete(f"/api/annotations/{root_id}", headers=ADMIN)

        response = client.put(
            f"/api/chapters/{created['id']}", json={"content_md": "v2"}, headers=ADMIN
        )

        assert response.status_code == 200

    def test_delete_chapter_reports_annotations(self, client, chapter_id):
        root = annotate(client, chapter_id).json()["id"]
        client.post(
            f"/api/annotations/{root}/reply", json={"pseudo": "bob", "comment": "Yes"}
        )

        assert client.delete(f"/api/chapters/{chapter_id}").status_code == 401
        response = client.delete(f"/api/chapters/{chapter_id}", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["message"] == "Chapter and 2 associated annotations deleted."
        assert client.get(f"/api/chapters/{chapter_id}").status_code == 404


class TestAnnotations:
    def test_create_and_list_nested(self, client, chapter_id):
        root = annotate(client, chapter_id)
        assert root.status_code == 201
        root_id = root.json()["id"]

        reply = client.post(
            f"/api/annotations/{root_id}/reply",
            json={"pseudo": "bob", "comment": "Agreed"},
        )
        assert reply.status_code == 201
        nested = client.post(
            f"/api/annotations/{reply.json()['id']}/reply",
            json={"pseudo": "carol", "comment": "Me too"},
        )
        assert nested.status_code == 201

        forest = client.get(f"/api/chapters/{chapter_id}/annotations").json()

        assert len(forest) == 1
        assert forest[0]["selected_text"] == "world"
        assert forest[0]["replies"][0]["pseudo"] == "bob"
        assert forest[0]["replies"][0]["replies"][0]["pseudo"] == "carol"
        assert forest[0]["replies"][0]["start_offset"] is None

    def test_roots_listed_in_text_order(self, client, chapter_id):
        later = annotate(client, chapter_id, start=13, end=17).json()["id"]
        earlier = annotate(client, chapter_id, start=0, end=5).json()["id"]

        forest = client.get(f"/api/chapters/{chapter_id}/annotations").json()

        assert [node["id"] for node in forest] == [earlier, later]

    def test_thread_endpoint(self, client, chapter_id):
        root_id = annotate(client, chapter_id).json()["id"]
        client.post(
            f"/api/annotations/{root_id}/reply", json={"pseudo": "bob", "comment": "Hi"}
        )

        thread = client.get(
            f"/api/chapters/{chapter_id}/annotations/{root_id}/thread"
        ).json()

        assert thread["id"] == root_id
        assert [r["pseudo"] for r in thread["replies"]] == ["bob"]
        assert (
            client.get(f"/api/chapters/{chapter_id}/annotations/999/thread").status_code
            == 404
        )

    @pytest.mark.parametrize(
        "overrides",
        [{"pseudo": ""}, {"pseudo": "   "}, {"comment": ""}, {"comment": None}],
    )
    def test_pseudo_and_comment_required(self, client, chapter_id, overrides):
        response = annotate(client, chapter_id, **overrides)

        assert response.status_code == 400
        assert response.json()["detail"] == "Pseudo and comment are required"

    def test_unknown_chapter(self, client):
        assert annotate(client, 999).status_code == 404

    def test_validated_chapter_is_closed(self, client, chapter_id):
        root_id = annotate(client, chapter_id).json()["id"]
        client.put(
            f"/api/chapters/{chapter_id}", json={"status": "validated"}, headers=ADMIN
        )

        response = annotate(client, chapter_id)
        reply = client.post(
            f"/api/annotations/{root_id}/reply", json={"pseudo": "bob", "comment": "Hi"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot annotate a validated chapter"
        assert reply.status_code == 400

    @pytest.mark.parametrize(
        "start, end",
        [(6, None), (None, 11), (-1, 4), (8, 8), (9, 3), (0, len(CONTENT) + 5)],
    )
    def test_invalid_offsets(self, client, chapter_id, start, end):
        response = annotate(client, chapter_id, start=start, end=end, selected_text="x")

        assert response.status_code == 400

    def test_offsets_are_optional(self, client, chapter_id):
        response = annotate(client, chapter_id, start=None, end=None)

        assert response.status_code == 201

    def test_offset_may_reach_end_of_text(self, client, chapter_id):
        length = client.get(f"/api/chapters/{chapter_id}/rendered").json()["text_length"]

        response = annotate(client, chapter_id, start=0, end=length, selected_text="all")

        assert response.status_code == 201

    def test_reply_to_missing_parent(self, client):
        response = client.post(
            "/api/annotations/999/reply", json={"pseudo": "bob", "comment": "Hi"}
        )

        assert response.status_code == 404

    def test_rendered_chapter_has_markers(self, client, chapter_id):
        root_id = annotate(client, chapter_id).json()["id"]

        rendered = client.get(f"/api/chapters/{chapter_id}/rendered").json()

        assert rendered["chapter_id"] == chapter_id
        assert f'data-annotation-id="{root_id}"' in rendered["html"]
        assert ">world</mark>" in rendered["html"]
        assert rendered["text_length"] == len(CONTENT) + 1


class TestDeletion:
    def test_other_reader_cannot_delete(self, client, chapter_id):
        root_id = annotate(client, chapter_id, pseudo="alice").json()["id"]

        response = client.delete(f"/api/annotations/{root_id}", params={"pseudo": "mallory"})
        anonymous = client.delete(f"/api/annotations/{root_id}")

        assert response.status_code == 403
        assert anonymous.status_code == 403

    def test_author_deletes_thread(self, client, chapter_id):
        root_id = annotate(client, chapter_id, pseudo="alice").json()["id"]
        reply_id = client.post(
            f"/api/annotations/{root_id}/reply", json={"pseudo": "bob", "comment": "Hi"}
        ).json()["id"]
        nested_id = client.post(
            f"/api/annotations/{reply_id}/reply", json={"pseudo": "carol", "comment": "Yo"}
        ).json()["id"]
        other_id = annotate(client, chapter_id, pseudo="dave", start=0, end=5).json()["id"]

        response = client.delete(f"/api/annotations/{root_id}", params={"pseudo": "alice"})

        assert response.status_code == 200
        assert sorted(response.json()["deleted_ids"]) == sorted(
            [root_id, reply_id, nested_id]
        )
        forest = client.get(f"/api/chapters/{chapter_id}/annotations").json()
        assert [node["id"] for node in forest] == [other_id]

    def test_admin_deletes_any_annotation(self, client, chapter_id):
        root_id = annotate(client, chapter_id, pseudo="alice").json()["id"]

        response = client.delete(f"/api/annotations/{root_id}", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["deleted_ids"] == [root_id]

    def test_delete_missing(self, client):
        assert client.delete("/api/annotations/999", headers=ADMIN).status_code == 404


class TestMetadata:
    def test_defaults(self, client, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_BOOK_TITLE", "Mon Manuscrit")

        metadata = client.get("/api/metadata").json()

        assert metadata == {
            "book_title": "Mon Manuscrit",
            "total_chapters": 0,
            "published_chapters": 0,
            "progress_percent": 0,
        }

    def test_update_requires_admin(self, client):
        assert client.put("/api/metadata", json={"book_title": "X"}).status_code == 401

    @pytest.mark.parametrize(
        "payload",
        [
            {"book_title": ""},
            {"book_title": 12},
            {"total_chapters": -1},
            {"total_chapters": "ten"},
            {"total_chapters": True},
            {"total_chapters": 2.5},
        ],
    )
    def test_update_validation(self, client, payload):
        response = client.put("/api/metadata", json=payload, headers=ADMIN)

        assert response.status_code == 400

    def test_progress(self, client, chapter_id):
        client.post(
            "/api/chapters",
            json={"title": "Two", "content_md": "Later", "status": "planned"},
            headers=ADMIN,
        )

        response = client.put(
            "/api/metadata",
            json={"book_title": "  Le Livre  ", "total_chapters": 3},
            headers=ADMIN,
        )
        metadata = client.get("/api/metadata").json()

        assert response.status_code == 200
        assert metadata["book_title"] == "Le Livre"
        assert metadata["total_chapters"] == 3
        assert metadata["published_chapters"] == 1
        assert metadata["progress_percent"] == 33
