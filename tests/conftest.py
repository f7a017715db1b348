"""
Fixtures compartidas para los tests.

- Entorno aislado: Supabase de mentira, cache de imágenes SQLite en tmp_path.
- `FakeSupabase`: cliente en memoria con la misma forma que el SDK (query
  builder encadenable, RPCs, storage y auth) para no depender de la red.
"""

import copy
import fnmatch
import uuid

import jwt
import pytest
from postgrest.exceptions import APIError

from gitgrub.config import get_settings
from gitgrub.db.database import dispose_db_engine
from gitgrub.recipes import invalidate_recipe_detail

SUPABASE_URL = "https://test.supabase.co"
JWT_SECRET = "test-secret"


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Query builder encadenable sobre una lista de filas en memoria."""

    def __init__(self, fake, table):
        self.fake = fake
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_range = None
        self.row_limit = None

    # -- construcción ----------------------------------------------------

    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def overlaps(self, column, values):
        wanted = set(values)
        self.filters.append(lambda row: bool(wanted & set(row.get(column) or [])))
        return self

    def ilike(self, column, pattern):
        pattern = pattern.lower().replace("%", "*")
        self.filters.append(lambda row: fnmatch.fnmatch((row.get(column) or "").lower(), pattern))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.row_range = (start, end)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    # -- ejecución -------------------------------------------------------

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.fake.calls.append((self.table, self.op))
        error = self.fake.failures.pop((self.table, self.op), None)
        if error is not None:
            raise APIError({"message": error, "code": "P0001"})

        rows = self.fake.tables.setdefault(self.table, [])

        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self.fake.insert_row(self.table, dict(p)) for p in payloads]
            return FakeResponse(copy.deepcopy(inserted))

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse(copy.deepcopy(matched))

        if self.op == "delete":
            self.fake.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(copy.deepcopy(matched))

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or 0, reverse=desc)
        if self.row_range:
            start, end = self.row_range
            matched = matched[start:end + 1]
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        return FakeResponse(copy.deepcopy(matched))


class FakeRpc:
    def __init__(self, fake, name, params):
        self.fake = fake
        self.name = name
        self.params = params

    def execute(self):
        self.fake.calls.append(("rpc", self.name))
        error = self.fake.failures.pop(("rpc", self.name), None)
        if error is not None:
            raise APIError({"message": error, "code": "P0001"})
        handler = self.fake.rpc_handlers.get(self.name)
        return FakeResponse(handler(self.params) if handler else None)


class FakeBucket:
    def __init__(self, storage, bucket):
        self.storage = storage
        self.bucket = bucket

    def upload(self, path, file, file_options=None):
        if self.storage.fail_upload:
            raise RuntimeError("upload failed")
        self.storage.objects[(self.bucket, path)] = (file, dict(file_options or {}))
        return {"path": path}

    def get_public_url(self, path):
        return f"{SUPABASE_URL}/storage/v1/object/public/{self.bucket}/{path}"

    def remove(self, paths):
        if self.storage.fail_remove:
            raise RuntimeError("remove failed")
        for path in paths:
            self.storage.removed.append((self.bucket, path))
            self.storage.objects.pop((self.bucket, path), None)
        return []


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.removed = []
        self.fail_upload = False
        self.fail_remove = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeAuth:
    def __init__(self):
        self.signed_out = False
        self.fail = False

    def sign_out(self):
        if self.fail:
            raise RuntimeError("AuthSessionMissingError")
        self.signed_out = True


class FakeSupabase:
    """
    Cliente de Supabase en memoria.

    - `tables`: filas por tabla.
    - `rpc_handlers`: nombre de RPC -> función(params) que devuelve `data`.
    - `failures`: (tabla|"rpc", operación|nombre) -> mensaje; la próxima
      ejecución de esa operación levanta `APIError`.
    - `calls`: historial de (tabla, operación) ejecutadas.
    """

    def __init__(self):
        self.tables = {}
        self.rpc_handlers = {}
        self.failures = {}
        self.calls = []
        self.storage = FakeStorage()
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})

    def insert_row(self, table, row):
        row.setdefault("id", str(uuid.uuid4()))
        if table == "recipe_versions" and not row.get("version_no"):
            # Trigger: siguiente número de versión de la receta
            existing = [
                r["version_no"] for r in self.tables.get(table, [])
                if r["recipe_id"] == row["recipe_id"]
            ]
            row["version_no"] = max(existing, default=0) + 1
        self.tables.setdefault(table, []).append(row)
        return row


def make_token(user_id, secret=JWT_SECRET):
    """Access token HS256 como los que emite Supabase Auth."""
    return jwt.encode({"sub": user_id, "aud": "authenticated"}, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def gitgrub_env(monkeypatch, tmp_path):
    """Configuración aislada por test (Supabase de prueba y cache en tmp_path)."""
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("IMAGE_CACHE_URL", f"sqlite:///{tmp_path / 'cache.sqlite'}")
    get_settings.cache_clear()
    dispose_db_engine()
    invalidate_recipe_detail()
    yield
    dispose_db_engine()
    get_settings.cache_clear()
    invalidate_recipe_detail()


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def auth_headers():
    """Factory de headers Authorization para un usuario."""
    def _headers(user_id):
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers


@pytest.fixture
def recipe_rows(fake_supabase):
    """Receta `r1` de `u1` con dos versiones."""
    fake_supabase.tables["recipes"] = [
        {
            "id": "r1",
            "user_id": "u1",
            "title": "Pasta Carbonara",
            "tags": ["italian", "pasta"],
            "forked_from": None,
            "created_at": "2024-05-01T10:00:00Z",
            "like_count": 3,
            "author": {"id": "u1", "display_name": "Ada", "avatar_photo": None},
        },
    ]
    fake_supabase.tables["recipe_versions"] = [
        {
            "id": "v1",
            "recipe_id": "r1",
            "version_no": 1,
            "ingredients": ["pasta", "eggs"],
            "steps": ["boil", "mix"],
            "notes": None,
        },
        {
            "id": "v2",
            "recipe_id": "r1",
            "version_no": 2,
            "ingredients": ["pasta", "eggs", "guanciale"],
            "steps": ["boil", "fry", "mix"],
            "notes": "no cream",
        },
    ]
    return fake_supabase
