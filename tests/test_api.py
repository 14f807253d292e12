# tests/test_api.py
import io
from dataclasses import replace

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, bearer


def _create_article(client, headers, **fields):
    payload = {"title": "Review: Hollow Knight", "category": "Reviews", "content": "Great", "status": "published"}
    payload.update(fields)
    response = client.post("/api/admin/articles", json=payload, headers=headers)
    assert response.status_code == 201
    return response.get_json()["article"]


def test_root_lists_endpoints(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["endpoints"]["articles"] == "/api/articles"


# ---------------------------
# Auth
# ---------------------------
def test_register_login_me(client) -> None:
    response = client.post("/api/auth/register", json={"name": "Alice", "email": "alice@x.com", "password": "pw123"})
    assert response.status_code == 201
    body = response.get_json()
    assert body["token"]
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]

    response = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "wrongpw"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid credentials"}

    response = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "pw123"})
    assert response.status_code == 200
    token = response.get_json()["token"]

    response = client.get("/api/auth/me", headers=bearer(token))
    assert response.status_code == 200
    assert response.get_json()["email"] == "alice@x.com"


def test_register_validation_and_duplicates(client) -> None:
    response = client.post("/api/auth/register", json={"name": "Alice", "email": "alice@x.com"})
    assert response.status_code == 400

    client.post("/api/auth/register", json={"name": "Alice", "email": "alice@x.com", "password": "pw"})
    response = client.post("/api/auth/register", json={"name": "Alice", "email": "alice@x.com", "password": "pw"})
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_register_accepts_form_data(client) -> None:
    response = client.post("/api/auth/register", data={"name": "Bob", "email": "bob@x.com", "password": "pw"})
    assert response.status_code == 201


def test_non_object_json_body_is_rejected(client) -> None:
    response = client.post("/api/auth/login", json=["alice@x.com", "pw"])
    assert response.status_code == 400


def test_non_string_json_fields_are_rejected(client, admin_headers, user_headers) -> None:
    article = _create_article(client, admin_headers)
    cases = [
        ("/api/auth/register", {"name": 123, "email": "num@x.com", "password": "pw"}, None),
        ("/api/auth/register", {"name": "Num", "email": "num@x.com", "password": 12345}, None),
        ("/api/auth/login", {"email": 5, "password": "pw"}, None),
        ("/api/newsletter/subscribe", {"email": ["fan@x.com"]}, None),
        (f"/api/articles/{article['id']}/comments", {"content": 42}, user_headers),
    ]

    for url, payload, headers in cases:
        response = client.post(url, json=payload, headers=headers)
        assert response.status_code == 400, url
        assert "must be a string" in response.get_json()["error"]

    # nothing was written
    assert client.post("/api/auth/login", json={"email": "num@x.com", "password": "pw"}).status_code == 401
    assert client.get(f"/api/articles/{article['id']}/comments").get_json() == []


def test_me_without_token(client) -> None:
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Token not provided"}


def test_me_with_bad_token(client) -> None:
    response = client.get("/api/auth/me", headers=bearer("not-a-token"))
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid token"}

    response = client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


def test_me_for_vanished_user(app, client) -> None:
    services = app.extensions["gamenews"]
    with app.app_context():
        ghost = services.store.add_user(name="Ghost", email="g@x.com", password_hash="h", role="user", avatar="a")
        token = services.identity.issue_token(ghost)
        # a token for an id the store never issued
        forged = services.identity.issue_token(replace(ghost, id=999))

    assert client.get("/api/auth/me", headers=bearer(token)).status_code == 200
    assert client.get("/api/auth/me", headers=bearer(forged)).status_code == 404


# ---------------------------
# Authorization
# ---------------------------
def test_user_role_cannot_use_admin_routes(client, user_headers) -> None:
    response = client.post("/api/admin/articles", json={"title": "Hack"}, headers=user_headers)
    assert response.status_code == 403

    assert client.get("/api/admin/stats", headers=user_headers).status_code == 403
    assert client.get("/api/admin/articles", headers=user_headers).status_code == 403
    assert client.delete("/api/admin/articles/1", headers=user_headers).status_code == 403
    assert client.post("/api/admin/videos", json={"title": "x", "externalId": "y"}, headers=user_headers).status_code == 403


def test_anonymous_admin_route_is_401(client) -> None:
    assert client.get("/api/admin/stats").status_code == 401
    assert client.post("/api/admin/articles", json={"title": "x"}).status_code == 401


def test_delete_missing_article(client, admin_headers) -> None:
    response = client.delete("/api/admin/articles/999", headers=admin_headers)
    assert response.status_code == 404
    assert "error" in response.get_json()


# ---------------------------
# Articles
# ---------------------------
def test_article_lifecycle(client, admin_headers) -> None:
    article = _create_article(client, admin_headers)
    assert article["slug"] == "review-hollow-knight"
    assert article["likes"] == 0 and article["views"] == 0

    response = client.get(f"/api/articles/{article['slug']}")
    assert response.status_code == 200
    body = response.get_json()
    assert body["views"] == 1
    assert body["authorName"] == "Admin"

    assert client.get(f"/api/articles/{article['slug']}").get_json()["views"] == 2

    response = client.delete(f"/api/admin/articles/{article['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/articles/{article['slug']}").status_code == 404


def test_drafts_hidden_from_public_but_listed_for_admin(client, admin_headers) -> None:
    draft = _create_article(client, admin_headers, title="Upcoming", status=None)
    assert draft["status"] == "draft"

    assert client.get("/api/articles/upcoming").status_code == 404
    assert client.get("/api/articles").get_json() == []

    items = client.get("/api/admin/articles", headers=admin_headers).get_json()
    assert [a["title"] for a in items] == ["Upcoming"]


def test_list_articles_filters(client, admin_headers) -> None:
    _create_article(client, admin_headers, title="Old Review")
    _create_article(client, admin_headers, title="Big News", category="News", featured="true")
    _create_article(client, admin_headers, title="New Review")

    reviews = client.get("/api/articles?category=Reviews").get_json()
    assert [a["title"] for a in reviews] == ["New Review", "Old Review"]

    featured = client.get("/api/articles?featured=true").get_json()
    assert [a["title"] for a in featured] == ["Big News"]

    found = client.get("/api/articles?search=NEWS").get_json()
    assert [a["title"] for a in found] == ["Big News"]

    assert len(client.get("/api/articles?limit=1").get_json()) == 1
    assert client.get("/api/articles?limit=abc").status_code == 400


def test_create_article_validation(client, admin_headers) -> None:
    response = client.post("/api/admin/articles", json={"content": "no title"}, headers=admin_headers)
    assert response.status_code == 400


def test_create_article_with_image_upload(app, client, admin_headers) -> None:
    data = {
        "title": "Screenshots",
        "status": "published",
        "featured": "true",
        "image": (io.BytesIO(b"\x89PNG fake"), "shot.png"),
    }
    response = client.post("/api/admin/articles", data=data, headers=admin_headers,
                           content_type="multipart/form-data")
    assert response.status_code == 201
    article = response.get_json()["article"]
    assert article["image"].startswith("/uploads/")
    assert article["image"].endswith("_shot.png")
    assert article["featured"] is True

    served = client.get(article["image"])
    assert served.status_code == 200
    assert served.data == b"\x89PNG fake"
    served.close()


def test_create_article_rejects_disallowed_upload(client, admin_headers) -> None:
    data = {"title": "Bad", "image": (io.BytesIO(b"MZ"), "virus.exe")}
    response = client.post("/api/admin/articles", data=data, headers=admin_headers,
                           content_type="multipart/form-data")
    assert response.status_code == 400


# ---------------------------
# Comments & likes
# ---------------------------
def test_comments(client, admin_headers, user_headers) -> None:
    article = _create_article(client, admin_headers)
    url = f"/api/articles/{article['id']}/comments"

    assert client.post(url, json={"content": "hi"}).status_code == 401
    assert client.post(url, json={"content": ""}, headers=user_headers).status_code == 400
    assert client.post("/api/articles/999/comments", json={"content": "hi"}, headers=user_headers).status_code == 404

    response = client.post(url, json={"content": "First!"}, headers=user_headers)
    assert response.status_code == 201
    assert response.get_json()["comment"]["userName"] == "Alice"

    listed = client.get(url).get_json()
    assert [c["content"] for c in listed] == ["First!"]
    assert client.get("/api/articles/999/comments").status_code == 404


def test_like_toggle(client, admin_headers, user_headers) -> None:
    article = _create_article(client, admin_headers)
    url = f"/api/articles/{article['id']}/like"

    assert client.post(url).status_code == 401

    first = client.post(url, headers=user_headers).get_json()
    assert first["liked"] is True and first["likes"] == 1

    second = client.post(url, headers=admin_headers).get_json()
    assert second["liked"] is True and second["likes"] == 2

    third = client.post(url, headers=user_headers).get_json()
    assert third["liked"] is False and third["likes"] == 1

    assert client.post("/api/articles/999/like", headers=user_headers).status_code == 404


# ---------------------------
# Videos, newsletter, stats
# ---------------------------
def test_videos(client, admin_headers) -> None:
    response = client.post("/api/admin/videos", json={"title": "Trailer", "youtubeId": "abc123"}, headers=admin_headers)
    assert response.status_code == 201
    video = response.get_json()["video"]
    assert video["thumbnail"] == "https://img.youtube.com/vi/abc123/maxresdefault.jpg"

    client.post("/api/admin/videos", json={"title": "Soon", "youtubeId": "zzz", "status": "draft"}, headers=admin_headers)

    assert [v["title"] for v in client.get("/api/videos").get_json()] == ["Trailer"]
    assert client.post("/api/admin/videos", json={"title": "No id"}, headers=admin_headers).status_code == 400


def test_newsletter(client) -> None:
    response = client.post("/api/newsletter/subscribe", json={"email": "fan@x.com"})
    assert response.status_code == 200
    assert "message" in response.get_json()

    assert client.post("/api/newsletter/subscribe", json={"email": "FAN@x.com"}).status_code == 400
    assert client.post("/api/newsletter/subscribe", json={}).status_code == 400


def test_stats(client, admin_headers, user_headers) -> None:
    article = _create_article(client, admin_headers)
    _create_article(client, admin_headers, title="Draft", status="draft")
    client.get(f"/api/articles/{article['slug']}")
    client.post(f"/api/articles/{article['id']}/like", headers=user_headers)
    client.post(f"/api/articles/{article['id']}/comments", json={"content": "gg"}, headers=user_headers)
    client.post("/api/newsletter/subscribe", json={"email": "fan@x.com"})

    stats = client.get("/api/admin/stats", headers=admin_headers).get_json()
    assert stats == {
        "articleCount": 2,
        "publishedCount": 1,
        "userCount": 2,
        "commentCount": 1,
        "totalViews": 1,
        "totalLikes": 1,
        "subscriberCount": 1,
    }


# ---------------------------
# Errors
# ---------------------------
def test_unknown_route_is_json_404(client) -> None:
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert "error" in response.get_json()


def test_unexpected_errors_do_not_leak(app, client) -> None:
    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    response = client.get("/boom")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_main_runs_the_app(app, monkeypatch) -> None:
    from gamenews import app as app_module

    calls = []
    monkeypatch.setattr(app_module, "create_app", lambda: app)
    monkeypatch.setattr(app, "run", lambda **kwargs: calls.append(kwargs))

    app_module.main()
    assert calls == [{"debug": True}]


def test_memory_backend(tmp_path) -> None:
    from gamenews import create_app
    from gamenews.config import TestConfig
    from gamenews.store import MemoryStore

    app = create_app(TestConfig, overrides={"STORE_BACKEND": "memory", "UPLOAD_FOLDER": str(tmp_path)})
    assert isinstance(app.extensions["gamenews"].store, MemoryStore)

    client = app.test_client()
    token = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}).get_json()["token"]
    response = client.post("/api/admin/articles", json={"title": "Mem", "status": "published"}, headers=bearer(token))
    assert response.status_code == 201
    assert client.get("/api/articles/mem").get_json()["views"] == 1
