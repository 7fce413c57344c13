"""
End-to-end API flows through the FastAPI app.

Each test gets a fresh data directory; startup migrates the database and seeds
the role catalog.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import UUID

from siteforge.adapters.sqlite.repos import SQLitePostRepo, SQLiteUserRepo
from siteforge.api.deps import get_email_adapter, get_settings
from siteforge.domain.entities import Post

PASSWORD = "Secret123!"


def signup(client, email: str, role: str = "author") -> dict[str, str]:
    """Register, verify with the mailed code and return bearer headers."""
    res = client.post(
        "/api/auth/register",
        json={"name": "Tester", "email": email, "password": PASSWORD, "role": role},
    )
    assert res.status_code == 201, res.text

    mail = get_email_adapter().get_emails_to(email)[-1]
    otp = mail.body_text.rsplit(" ", 1)[-1]
    res = client.post("/api/auth/verify-email", json={"email": email, "otp": otp})
    assert res.status_code == 200, res.text

    # Cookies would win over the header for every later request
    client.cookies.clear()
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


def promote_to_admin(email: str) -> None:
    repo = SQLiteUserRepo(get_settings().db_path)
    user = repo.get_by_email(email)
    repo.update(user.model_copy(update={"legacy_role": "admin"}))


def create_site(client, auth, subdomain: str = "myblog") -> dict:
    res = client.post("/api/sites", json={"name": "My Blog", "subdomain": subdomain}, headers=auth)
    assert res.status_code == 201, res.text
    return res.json()["site"]


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.json() == {"status": "ok", "service": "api"}


class TestAuth:
    def test_register_verify_and_me(self, client):
        auth = signup(client, "jane@example.com")

        res = client.get("/api/auth/me", headers=auth)

        assert res.status_code == 200
        body = res.json()
        assert body["email"] == "jane@example.com"
        assert body["role"] == "author"
        assert body["is_email_verified"] is True

    def test_login_sets_cookie(self, client):
        signup(client, "jane@example.com")

        res = client.post(
            "/api/auth/login", data={"username": "jane@example.com", "password": PASSWORD}
        )

        assert res.status_code == 200
        assert "access_token" in res.cookies
        assert client.get("/api/auth/me").status_code == 200

    def test_wrong_password(self, client):
        signup(client, "jane@example.com")

        res = client.post(
            "/api/auth/login", data={"username": "jane@example.com", "password": "Wrong123!"}
        )

        assert res.status_code == 401
        assert res.headers["www-authenticate"] == "Bearer"
        assert res.json()["detail"]["errors"][0]["code"] == "INVALID_CREDENTIALS"

    def test_logout_revokes_token(self, client):
        auth = signup(client, "jane@example.com")

        assert client.post("/api/auth/logout", headers=auth).status_code == 200
        client.cookies.clear()

        res = client.get("/api/auth/me", headers=auth)
        assert res.status_code == 401

    def test_duplicate_registration(self, client):
        signup(client, "jane@example.com")

        res = client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "jane@example.com", "password": PASSWORD},
        )

        assert res.status_code == 409

    def test_weak_password_rejected(self, client):
        res = client.post(
            "/api/auth/register",
            json={"name": "Weak", "email": "weak@example.com", "password": "password"},
        )

        assert res.status_code == 400
        assert res.json()["detail"]["errors"][0]["field"] == "password"

    def test_me_requires_token(self, client):
        res = client.get("/api/auth/me")

        assert res.status_code == 401


class TestSitesAndPosts:
    def test_site_creation_seeds_welcome_post(self, client):
        auth = signup(client, "owner@example.com")

        site = create_site(client, auth)

        assert site["subdomain"] == "myblog"
        assert site["is_initialized"] is True
        res = client.get("/api/posts/slug/welcome", params={"site_id": site["id"]})
        assert res.status_code == 200
        assert res.json()["status"] == "published"

    def test_reserved_subdomain(self, client):
        res = client.get("/api/sites/check-subdomain/admin")

        assert res.json()["available"] is False

    def test_post_lifecycle(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)
        headers = {**auth, "X-Site-Id": site["id"]}

        res = client.post(
            "/api/posts",
            json={
                "title": "Hello World",
                "content": "<p>first</p><script>alert(1)</script>",
                "status": "published",
                "tags": ["intro"],
            },
            headers=headers,
        )
        assert res.status_code == 201, res.text
        post = res.json()
        assert post["slug"] == "hello-world"
        assert post["content"] == "<p>first</p>"
        assert post["published_at"] is not None

        res = client.put(
            f"/api/posts/{post['id']}", json={"content": "<p>second</p>"}, headers=auth
        )
        assert res.status_code == 200
        assert res.json()["published_at"] == post["published_at"]

        versions = client.get(f"/api/posts/{post['id']}/versions", headers=auth).json()
        assert [v["content"] for v in versions] == ["<p>first</p>"]

        res = client.post(
            f"/api/posts/{post['id']}/versions/{versions[0]['id']}/restore", headers=auth
        )
        assert res.status_code == 200
        assert res.json()["content"] == "<p>first</p>"
        assert len(res.json()["versions"]) == 2

        res = client.post(f"/api/posts/{post['id']}/view")
        assert res.json() == {"views": 1}

        assert client.delete(f"/api/posts/{post['id']}", headers=auth).status_code == 204
        assert client.get(f"/api/posts/{post['id']}").status_code == 404

    def test_schedule_without_offset(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)
        headers = {**auth, "X-Site-Id": site["id"]}
        body = {"title": "Later", "status": "scheduled", "scheduled_date": "2099-01-01T10:00:00"}

        res = client.post("/api/posts", json=body, headers=headers)
        assert res.status_code == 201, res.text
        assert res.json()["status"] == "scheduled"
        assert res.json()["scheduled_date"].startswith("2099-01-01T10:00:00")

        draft = client.post("/api/posts", json={"title": "Draft"}, headers=headers).json()
        res = client.put(
            f"/api/posts/{draft['id']}",
            json={"status": "scheduled", "scheduled_date": "2099-01-01T10:00:00"},
            headers=auth,
        )
        assert res.status_code == 200, res.text
        assert res.json()["status"] == "scheduled"

    def test_duplicate_titles_get_distinct_slugs(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)
        headers = {**auth, "X-Site-Id": site["id"]}

        first = client.post("/api/posts", json={"title": "Same"}, headers=headers).json()
        second = client.post("/api/posts", json={"title": "Same"}, headers=headers).json()

        assert first["slug"] == "same"
        assert second["slug"] == "same-1"

    def test_public_listing_by_host(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)
        client.post(
            "/api/posts",
            json={"title": "Hidden draft"},
            headers={**auth, "X-Site-Id": site["id"]},
        )

        res = client.get("/api/posts", headers={"Host": "myblog.example.com"})

        assert res.status_code == 200
        slugs = [p["slug"] for p in res.json()["posts"]]
        assert slugs == ["welcome"]

    def test_listing_needs_site_context(self, client):
        res = client.get("/api/posts")

        assert res.status_code == 400
        assert res.json()["detail"]["errors"][0]["code"] == "SITE_CONTEXT_REQUIRED"

    def test_unknown_site_header(self, client):
        res = client.get("/api/posts", headers={"X-Site-Id": "not-a-uuid"})

        assert res.status_code == 404

    def test_outsider_cannot_post_to_site(self, client):
        owner = signup(client, "owner@example.com")
        site = create_site(client, owner)
        outsider = signup(client, "outsider@example.com")

        res = client.post(
            "/api/posts",
            json={"title": "Sneaky"},
            headers={**outsider, "X-Site-Id": site["id"]},
        )

        assert res.status_code == 403
        assert res.json()["detail"] == {
            "message": "Access denied",
            "errors": [{"code": "ACCESS_DENIED"}],
        }

    def test_anonymous_cannot_post(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)

        res = client.post("/api/posts", json={"title": "Anon"}, headers={"X-Site-Id": site["id"]})

        assert res.status_code == 401

    def test_drafts_hidden_from_other_authors(self, client):
        owner = signup(client, "owner@example.com")
        site = create_site(client, owner)
        draft = client.post(
            "/api/posts", json={"title": "Private"}, headers={**owner, "X-Site-Id": site["id"]}
        ).json()
        other = signup(client, "other@example.com")

        assert client.get(f"/api/posts/{draft['id']}", headers=other).status_code == 403
        assert client.get(f"/api/posts/{draft['id']}", headers=owner).status_code == 200

    def test_site_delete_is_owner_only(self, client):
        owner = signup(client, "owner@example.com")
        site = create_site(client, owner)
        other = signup(client, "other@example.com")

        assert client.delete(f"/api/sites/{site['id']}", headers=other).status_code == 403
        assert client.delete(f"/api/sites/{site['id']}", headers=owner).status_code == 204
        assert client.get("/api/sites/public/myblog").status_code == 404


class TestAdminSweep:
    def _insert_due_post(self, site_id: str, author_id: str) -> Post:
        repo = SQLitePostRepo(get_settings().db_path)
        return repo.insert(
            Post(
                site_id=UUID(site_id),
                author_id=UUID(author_id),
                title="Due",
                slug="due",
                status="scheduled",
                scheduled_date=datetime.now(UTC) - timedelta(minutes=1),
            )
        )

    def test_admin_runs_sweep(self, client):
        owner = signup(client, "owner@example.com")
        site = create_site(client, owner)
        post = self._insert_due_post(site["id"], site["owner_user_id"])
        admin = signup(client, "admin@example.com")
        promote_to_admin("admin@example.com")

        res = client.post("/api/admin/scheduler/run", params={"task": "sweep"}, headers=admin)

        assert res.status_code == 200, res.text
        body = res.json()
        assert body["count"] == 1
        assert body["published_ids"] == [str(post.id)]
        published = client.get(f"/api/posts/{post.id}").json()
        assert published["status"] == "published"

    def test_sweep_requires_admin(self, client):
        author = signup(client, "author@example.com")

        res = client.post("/api/admin/scheduler/run", headers=author)

        assert res.status_code == 403

    def test_admin_purges_unverified(self, client):
        admin = signup(client, "admin@example.com")
        promote_to_admin("admin@example.com")

        res = client.post(
            "/api/admin/scheduler/run", params={"task": "purge_unverified"}, headers=admin
        )

        assert res.json() == {"task": "purge_unverified", "count": 0, "errors": []}


class TestCatalogs:
    def test_site_roles(self, client):
        res = client.get("/api/roles", params={"scope": "site"})

        assert [r["name"] for r in res.json()] == ["subscriber", "writer", "editor", "site_admin"]

    def test_plans(self, client):
        res = client.get("/api/subscriptions/plans")

        assert [p["id"] for p in res.json()] == ["free", "pro", "business"]

    def test_upgrade_site(self, client):
        auth = signup(client, "owner@example.com")
        site = create_site(client, auth)

        res = client.post(
            f"/api/subscriptions/{site['id']}/upgrade",
            json={"plan": "pro", "interval": "yearly"},
            headers=auth,
        )

        assert res.status_code == 200, res.text
        assert res.json()["billing"]["amount"] == 99.9
        usage = client.get(f"/api/subscriptions/{site['id']}/usage", headers=auth).json()
        assert usage["plan"] == "pro"
        assert usage["usage"]["users"]["limit"] == 5
