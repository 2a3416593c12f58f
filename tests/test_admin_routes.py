"""
tests/test_admin_routes.py -- Integration tests for /api/v1/admin/*.

Covers:
  - 401 without a token, 403 for a valid non-admin token
  - user management: list (role=user only), create with any role, update,
    delete, duplicate email, self-demotion and self-deletion refused
  - post management: admin sees drafts, creates, edits and deletes any post
"""

from __future__ import annotations

import pytest
from conftest import USER_EMAIL, Site

BODY = "Administrative content long enough to be valid."


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/v1/admin/users"),
        ("get", "/api/v1/admin/posts"),
        ("delete", "/api/v1/admin/users/1"),
        ("delete", "/api/v1/admin/posts/1"),
    ],
)
def test_admin_routes_reject_non_admins(site: Site, method: str, path: str) -> None:
    anonymous = getattr(site.client, method)(path)
    assert anonymous.status_code == 401
    regular = getattr(site.client, method)(path, headers=_auth(site.user_token))
    assert regular.status_code == 403
    assert regular.json()["error"]["code"] == "forbidden"


def test_role_comes_from_the_account_not_just_the_token(site: Site, make_user) -> None:
    """A user promoted after sign-in is an admin on the next request; a demoted one is not."""
    uid, token = make_user()
    site.user_store.update_user(uid, role="admin")
    assert site.client.get("/api/v1/admin/users", headers=_auth(token)).status_code == 200
    site.user_store.update_user(uid, role="user")
    assert site.client.get("/api/v1/admin/users", headers=_auth(token)).status_code == 403


class TestUsers:
    def test_list_shows_only_regular_users(self, site: Site) -> None:
        resp = site.client.get("/api/v1/admin/users", headers=_auth(site.admin_token))
        assert resp.status_code == 200
        users = resp.json()
        assert {u["role"] for u in users} == {"user"}
        assert USER_EMAIL in {u["email"] for u in users}
        assert site.admin_id not in {u["id"] for u in users}

    def test_create_admin_account(self, site: Site) -> None:
        resp = site.client.post(
            "/api/v1/admin/users",
            json={"name": "Second Admin", "email": "second@example.com", "password": "AdminPass2", "role": "admin"},
            headers=_auth(site.admin_token),
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["role"] == "admin"

    def test_create_duplicate_email(self, site: Site) -> None:
        resp = site.client.post(
            "/api/v1/admin/users",
            json={"name": "Copy Cat", "email": USER_EMAIL, "password": "CopyPass1"},
            headers=_auth(site.admin_token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "email_taken"

    def test_get_and_update(self, site: Site, make_user) -> None:
        uid, _ = make_user()
        resp = site.client.get(f"/api/v1/admin/users/{uid}", headers=_auth(site.admin_token))
        assert resp.status_code == 200
        resp = site.client.put(
            f"/api/v1/admin/users/{uid}", json={"name": "Renamed Reader"}, headers=_auth(site.admin_token)
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed Reader"

    def test_update_nothing(self, site: Site, make_user) -> None:
        uid, _ = make_user()
        resp = site.client.put(f"/api/v1/admin/users/{uid}", json={}, headers=_auth(site.admin_token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_changes"

    def test_cannot_demote_self(self, site: Site) -> None:
        resp = site.client.put(
            f"/api/v1/admin/users/{site.admin_id}", json={"role": "user"}, headers=_auth(site.admin_token)
        )
        assert resp.status_code == 400
        assert site.user_store.get_by_id(site.admin_id).role == "admin"

    def test_cannot_delete_self(self, site: Site) -> None:
        resp = site.client.delete(f"/api/v1/admin/users/{site.admin_id}", headers=_auth(site.admin_token))
        assert resp.status_code == 400

    def test_delete_user_keeps_their_posts(self, site: Site, make_user) -> None:
        uid, token = make_user()
        post = site.client.post(
            "/api/v1/posts", json={"title": "Orphan Soon", "content": BODY}, headers=_auth(token)
        ).json()
        resp = site.client.delete(f"/api/v1/admin/users/{uid}", headers=_auth(site.admin_token))
        assert resp.status_code == 204
        assert site.user_store.get_by_id(uid) is None
        remaining = site.client.get(f"/api/v1/posts/{post['id']}").json()
        assert remaining["author"] == {"id": uid, "name": None}

    def test_missing_user(self, site: Site) -> None:
        assert site.client.get("/api/v1/admin/users/99999", headers=_auth(site.admin_token)).status_code == 404
        assert site.client.delete("/api/v1/admin/users/99999", headers=_auth(site.admin_token)).status_code == 404


class TestPosts:
    def test_admin_listing_includes_drafts(self, site: Site) -> None:
        site.client.post(
            "/api/v1/posts",
            json={"title": "Private Draft", "content": BODY, "status": "draft"},
            headers=_auth(site.user_token),
        )
        resp = site.client.get("/api/v1/admin/posts", headers=_auth(site.admin_token))
        assert resp.status_code == 200
        assert "Private Draft" in {p["title"] for p in resp.json()["posts"]}
        assert resp.json()["pagination"]["limit"] == 50

    def test_create_edit_delete(self, site: Site) -> None:
        created = site.client.post(
            "/api/v1/admin/posts",
            json={"title": "Announcement", "content": BODY, "status": "published"},
            headers=_auth(site.admin_token),
        )
        assert created.status_code == 201
        post_id = created.json()["id"]
        assert created.json()["author"]["id"] == site.admin_id

        edited = site.client.put(
            f"/api/v1/admin/posts/{post_id}", json={"tags": ["news"]}, headers=_auth(site.admin_token)
        )
        assert edited.json()["tags"] == ["news"]

        assert site.client.delete(f"/api/v1/admin/posts/{post_id}", headers=_auth(site.admin_token)).status_code == 204
        assert site.client.delete(f"/api/v1/admin/posts/{post_id}", headers=_auth(site.admin_token)).status_code == 404
