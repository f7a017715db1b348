"""
Tests de la API HTTP (FastAPI TestClient con Supabase en memoria).

Prueba:
- Rutas públicas (explorar, detalle, perfil) como anónimo
- Rutas que exigen sesión (401 sin token)
- Traducción de errores del core a códigos HTTP y notificaciones
- Toggles, ajustes con fotos, imágenes vía object URLs y cierre de sesión
"""

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_backend
from api.main import app
from api.routes import images as images_routes
from api.routes import social as social_routes
from gitgrub import images

AVATAR_URL = "https://test.supabase.co/storage/v1/object/public/avatar-photos/users/u1.png?v5"


@pytest.fixture
def backend(recipe_rows):
    recipe_rows.tables["users"] = [
        {"id": "u1", "email": "ada@example.com", "display_name": "Ada", "username": "ada",
         "avatar_photo": AVATAR_URL, "cover_photo": None},
    ]
    recipe_rows.rpc_handlers["rpc_recipe_detail"] = lambda params: {
        "recipe": {**recipe_rows.tables["recipes"][0], "version_count": 2, "liked_by_me": False},
        "latestVersion": recipe_rows.tables["recipe_versions"][1],
        "forks": [],
    } if params["p_recipe_id"] == "r1" else None
    recipe_rows.rpc_handlers["rpc_profile_view"] = lambda params: [
        {"id": "u1", "display_name": "Ada", "avatar_photo": AVATAR_URL, "cover_photo": None,
         "follower_count": 2, "following_count": 0, "followed_by_me": False},
    ] if params["p_user_id"] == "u1" else []
    return recipe_rows


@pytest.fixture
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    yield TestClient(app)
    app.dependency_overrides.clear()
    for handle in list(images_routes._handles):
        images_routes.release_profile_images(images_routes._handles[handle].viewer_id, handle_id=handle)


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Recetas
# ---------------------------------------------------------------------------

def test_explore_as_anonymous(client):
    response = client.get("/api/v1/recipes", params={"q": "carb", "tags": "Italian", "sort": "liked"})

    assert response.status_code == 200
    body = response.json()
    assert [r["id"] for r in body["recipes"]] == ["r1"]
    assert body["recipes"][0]["like_count_label"] == "3"
    assert body["query"] == {"sort": "liked", "q": "carb", "tags": "Italian"}
    assert body["has_more"] is False


def test_recipe_detail_with_old_version(client):
    response = client.get("/api/v1/recipes/r1", params={"v": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["version"]["version_no"] == 1
    assert body["latest_version_no"] == 2
    assert body["actions"]["static_like_count"] == 3
    assert body["actions"]["share"]["title"] == "Pasta Carbonara · GitGrub"
    assert "v=" not in body["actions"]["share"]["url"]


@pytest.mark.parametrize("v", ["0", "abc", "99", ""])
def test_recipe_detail_falls_back_to_latest_version(client, v):
    response = client.get("/api/v1/recipes/r1", params={"v": v})

    assert response.status_code == 200
    assert response.json()["version"]["version_no"] == 2


def test_fork_seed_with_version_zero_uses_latest(client, auth_headers):
    response = client.get("/api/v1/recipes/r1/fork", params={"v": "0"}, headers=auth_headers("u2"))

    assert response.status_code == 200
    assert response.json()["ingredients_text"] == "pasta\neggs\nguanciale"


def test_recipe_detail_not_found(client):
    assert client.get("/api/v1/recipes/missing").status_code == 404


def test_create_requires_session(client):
    response = client.post("/api/v1/recipes", json={"title": "Soup"})
    assert response.status_code == 401


def test_create_recipe(client, backend, auth_headers):
    response = client.post(
        "/api/v1/recipes",
        json={"title": "Soup", "tags": ["warm"], "ingredients_text": "water\nsalt"},
        headers=auth_headers("u2"),
    )

    assert response.status_code == 201
    new_id = response.json()["id"]
    assert any(r["id"] == new_id and r["user_id"] == "u2" for r in backend.tables["recipes"])


def test_create_recipe_with_comma_separated_tags(client, backend, auth_headers):
    response = client.post(
        "/api/v1/recipes",
        json={"title": "Soup", "tags": "warm, winter,, quick "},
        headers=auth_headers("u2"),
    )

    assert response.status_code == 201
    created = next(r for r in backend.tables["recipes"] if r["id"] == response.json()["id"])
    assert created["tags"] == ["warm", "winter", "quick"]


def test_tag_list_entries_with_commas_are_split(client, backend, auth_headers):
    response = client.post(
        "/api/v1/recipes",
        json={"title": "Pasta", "tags": ["italian, pasta"]},
        headers=auth_headers("u2"),
    )

    created = next(r for r in backend.tables["recipes"] if r["id"] == response.json()["id"])
    assert created["tags"] == ["italian", "pasta"]


def test_invalid_form_returns_400_and_notifies(client, auth_headers):
    headers = auth_headers("u2")
    response = client.post("/api/v1/recipes", json={"title": "  "}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Title is required"

    notifications = client.get("/api/v1/notifications", headers=headers).json()
    assert notifications[-1]["message"] == "Failed to create recipe"
    assert notifications[-1]["type"] == "error"


def test_edit_by_non_owner_is_forbidden(client, auth_headers):
    response = client.put("/api/v1/recipes/r1", json={"title": "Mine now"}, headers=auth_headers("u2"))
    assert response.status_code == 403


def test_edit_by_owner_creates_version(client, auth_headers):
    headers = auth_headers("u1")
    edit = client.get("/api/v1/recipes/r1/edit", headers=headers).json()
    assert edit["current_version_no"] == 2

    values = dict(edit["values"], notes="extra pecorino")
    response = client.put("/api/v1/recipes/r1", json=values, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"version_no": 3}


def test_fork_seed_and_create(client, backend, auth_headers):
    headers = auth_headers("u2")
    seed = client.get("/api/v1/recipes/r1/fork", headers=headers).json()
    assert seed["title"] == "Fork of Pasta Carbonara"

    response = client.post("/api/v1/recipes/r1/fork", json=seed, headers=headers)

    assert response.status_code == 201
    fork = next(r for r in backend.tables["recipes"] if r["id"] == response.json()["id"])
    assert fork["forked_from"] == "r1"


def test_delete_recipe(client, backend, auth_headers):
    assert client.delete("/api/v1/recipes/r1", headers=auth_headers("u2")).status_code == 403
    assert client.delete("/api/v1/recipes/r1", headers=auth_headers("u1")).status_code == 204
    assert backend.tables["recipes"] == []


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------

def test_like_toggle(client, auth_headers):
    response = client.post(
        "/api/v1/social/recipes/r1/like",
        json={"liked": False, "count": 3},
        headers=auth_headers("u2"),
    )

    assert response.status_code == 200
    assert response.json()["liked"] is True
    assert response.json()["count"] == 4


def test_like_toggles_are_not_kept_after_the_request(client, auth_headers):
    headers = auth_headers("u2")
    for i in range(20):
        client.post(f"/api/v1/social/recipes/r{i}/like", json={"liked": False, "count": 0}, headers=headers)

    assert social_routes._in_flight == set()


def test_like_while_same_toggle_in_flight_is_409(client, auth_headers):
    social_routes._in_flight.add(("like", "u2", "r1"))
    try:
        response = client.post(
            "/api/v1/social/recipes/r1/like",
            json={"liked": False, "count": 3},
            headers=auth_headers("u2"),
        )
    finally:
        social_routes._in_flight.discard(("like", "u2", "r1"))

    assert response.status_code == 409

    # Otro usuario no queda bloqueado
    other = client.post(
        "/api/v1/social/recipes/r1/like",
        json={"liked": False, "count": 3},
        headers=auth_headers("u3"),
    )
    assert other.status_code == 200
    assert other.json()["liked"] is True
    assert other.json()["count"] == 4


def test_like_backend_error(client, backend, auth_headers):
    backend.failures[("recipe_likes", "insert")] = "permission denied for table recipe_likes"

    response = client.post(
        "/api/v1/social/recipes/r1/like",
        json={"liked": False, "count": 3},
        headers=auth_headers("u2"),
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "permission denied for table recipe_likes"


def test_follow_self_is_forbidden(client, auth_headers):
    response = client.post(
        "/api/v1/social/users/u1/follow",
        json={"following": False, "follower_count": 2},
        headers=auth_headers("u1"),
    )
    assert response.status_code == 403


def test_follow_toggle_uses_server_row(client, backend, auth_headers):
    backend.rpc_handlers["rpc_follow_toggle"] = lambda params: [{"following": True, "follower_count": 10}]

    response = client.post(
        "/api/v1/social/users/u1/follow",
        json={"following": False, "follower_count": 2},
        headers=auth_headers("u2"),
    )

    assert response.json() == {"following": True, "follower_count": 10, "label": "Following"}


# ---------------------------------------------------------------------------
# Perfiles, imágenes y sesión
# ---------------------------------------------------------------------------

def test_profile_page_as_anonymous(client):
    body = client.get("/api/v1/profiles/u1").json()

    assert body["user"]["follower_count"] == 2
    assert [r["id"] for r in body["recipes"]] == ["r1"]
    assert body["is_me"] is False
    assert body["follow_disabled_reason"] == "Sign in to follow"


def test_update_settings_with_cover_upload(client, backend, auth_headers):
    response = client.put(
        "/api/v1/profiles/me",
        data={
            "email": "ada@example.com",
            "display_name": "Ada L.",
            "username": "ada",
            "avatar_photo": AVATAR_URL,
        },
        files={"cover_file": ("cover.jpg", b"jpg-bytes", "image/jpeg")},
        headers=auth_headers("u1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["display_name"] == "Ada L."
    assert body["avatar_photo"] == AVATAR_URL
    assert "/cover-photos/users/u1.jpg?v" in body["cover_photo"]


def test_update_settings_removing_avatar(client, backend, auth_headers):
    response = client.put(
        "/api/v1/profiles/me",
        data={
            "email": "ada@example.com",
            "display_name": "Ada",
            "username": "ada",
            "avatar_photo": AVATAR_URL,
            "remove_avatar_photo": "true",
        },
        headers=auth_headers("u1"),
    )

    assert response.json()["avatar_photo"] is None
    assert backend.storage.removed == [("avatar-photos", "users/u1.png")]


def test_profile_images_served_through_object_url(client, monkeypatch):
    monkeypatch.setattr(images, "_download", lambda url: (b"avatar-bytes", "image/png"))

    body = client.get("/api/v1/images/profiles/u1").json()

    assert body["avatar_photo"].startswith("/api/v1/images/objects/")
    assert body["placeholders"]["cover_photo"] == {"kind": "gradient", "value": None}

    blob = client.get(body["avatar_photo"])
    assert blob.status_code == 200
    assert blob.content == b"avatar-bytes"
    assert blob.headers["content-type"] == "image/png"

    client.delete("/api/v1/images/profiles/u1", params={"handle": body["handle"]})
    assert client.get(body["avatar_photo"]).status_code == 404


def test_profile_images_are_scoped_per_client(client, monkeypatch):
    monkeypatch.setattr(images, "_download", lambda url: (b"avatar-bytes", "image/png"))

    first = client.get("/api/v1/images/profiles/u1").json()
    second = client.get("/api/v1/images/profiles/u1").json()

    assert first["handle"] != second["handle"]
    assert client.get(first["avatar_photo"]).status_code == 200
    assert client.get(second["avatar_photo"]).status_code == 200

    # Sin handle, un anónimo no libera nada
    client.delete("/api/v1/images/profiles/u1")
    assert client.get(first["avatar_photo"]).status_code == 200

    client.delete("/api/v1/images/profiles/u1", params={"handle": first["handle"]})
    assert client.get(first["avatar_photo"]).status_code == 404
    assert client.get(second["avatar_photo"]).status_code == 200


def test_reload_with_handle_revokes_only_its_replaced_urls(client, monkeypatch):
    monkeypatch.setattr(images, "_download", lambda url: (b"avatar-bytes", "image/png"))

    other = client.get("/api/v1/images/profiles/u1").json()
    first = client.get("/api/v1/images/profiles/u1").json()
    reloaded = client.get("/api/v1/images/profiles/u1", params={"handle": first["handle"]}).json()

    assert reloaded["handle"] == first["handle"]
    assert client.get(first["avatar_photo"]).status_code == 404
    assert client.get(reloaded["avatar_photo"]).status_code == 200
    assert client.get(other["avatar_photo"]).status_code == 200


def test_profile_image_handles_are_capped(client, monkeypatch):
    monkeypatch.setattr(images, "_download", lambda url: (b"avatar-bytes", "image/png"))
    monkeypatch.setattr(images_routes, "MAX_IMAGE_HANDLES", 3)

    loads = [client.get("/api/v1/images/profiles/u1").json() for _ in range(5)]

    assert len(images_routes._handles) == 3
    assert client.get(loads[0]["avatar_photo"]).status_code == 404
    assert client.get(loads[-1]["avatar_photo"]).status_code == 200


def test_idle_profile_image_handles_expire(client, monkeypatch):
    monkeypatch.setattr(images, "_download", lambda url: (b"avatar-bytes", "image/png"))

    stale = client.get("/api/v1/images/profiles/u1").json()
    images_routes._handles[stale["handle"]].last_used -= images_routes.IMAGE_HANDLE_IDLE_SECONDS
    client.get("/api/v1/images/profiles/u1")

    assert stale["handle"] not in images_routes._handles
    assert client.get(stale["avatar_photo"]).status_code == 404


def test_session_and_sign_out(client, backend, auth_headers):
    assert client.get("/api/v1/auth/session").json() == {
        "authenticated": False,
        "user_id": None,
        "profile": None,
    }

    headers = auth_headers("u1")
    session = client.get("/api/v1/auth/session", headers=headers).json()
    assert session["profile"]["username"] == "ada"

    assert client.post("/api/v1/auth/sign-out", headers=headers).status_code == 204
    assert backend.auth.signed_out


def test_malformed_authorization_header(client):
    response = client.get("/api/v1/profiles/me", headers={"Authorization": "Token abc"})
    assert response.status_code == 401
