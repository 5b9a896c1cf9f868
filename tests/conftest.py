import os

# Avant tout import de l'app: pas de Redis, passerelle factice par défaut
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ["PAYMENT_GATEWAY"] = "fake"
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")

import copy
import threading
import pytest
from postgrest.exceptions import APIError
from typing import Any, Dict, Generator, List
from uuid import uuid4
from fastapi.testclient import TestClient

from storefront.app import app as fastapi_app
from storefront.payments.fake_gateway import FakeGateway
from storefront.payments.gateway import get_gateway
from storefront.utils.security import require_user, require_admin

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


# --- Supabase en mémoire (sous-ensemble du query builder postgrest) ---

class _Result:
    def __init__(self, data):
        self.data = data


class _Query:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.payload: Any = None
        self.filters: List = []
        self.order_by = None
        self.limit_n = None

    def select(self, *columns, **kwargs):
        self.op = self.op or "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda r: str(r.get(column)) in wanted)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        # Une requête = une opération atomique, comme côté Postgres
        with self.db.lock:
            return self._execute()

    def _execute(self):
        error = self.db.failures.get((self.table, self.op or "select"))
        if error:
            raise error
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            row = copy.deepcopy(self.payload)
            unique = self.db.UNIQUE.get(self.table)
            if unique and any(r.get(unique) == row.get(unique) for r in rows):
                raise APIError({
                    "message": f'duplicate key value violates unique constraint "{self.table}_{unique}_key"',
                    "code": "23505",
                    "hint": None,
                    "details": None,
                })
            row.setdefault("id", uuid4().hex)
            rows.append(row)
            return _Result([copy.deepcopy(row)])
        if self.op == "update":
            matched = [r for r in rows if self._matches(r)]
            for r in matched:
                r.update(copy.deepcopy(self.payload))
            return _Result([copy.deepcopy(r) for r in matched])
        found = [r for r in rows if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            found.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_n is not None:
            found = found[: self.limit_n]
        return _Result([copy.deepcopy(r) for r in found])


class FakeSupabase:
    # Contraintes uniques du schéma (table -> colonne)
    UNIQUE = {"checkout_attempts": "idempotency_key"}

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.lock = threading.Lock()

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    def fail(self, table: str, op: str, error: Exception) -> None:
        """Fait échouer la prochaine opération `op` sur `table` (et les suivantes)."""
        self.failures[(table, op)] = error

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])


@pytest.fixture(autouse=True)
def fake_db(monkeypatch) -> FakeSupabase:
    """Remplace les clients Supabase (anon + service) par une base en mémoire."""
    db = FakeSupabase()
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: db)
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: db)
    return db


@pytest.fixture
def catalog(fake_db) -> List[Dict[str, Any]]:
    products = [
        {"id": "p1", "name": "Keyboard", "price": 100},
        {"id": "p2", "name": "Mouse", "price": 200},
        {"id": "p3", "name": "Monitor", "price": 300},
    ]
    fake_db.tables["products"] = [dict(p) for p in products]
    return products


@pytest.fixture
def cart(catalog) -> List[Dict[str, Any]]:
    return [{"id": p["id"], "name": p["name"], "price": p["price"], "quantity": 1} for p in catalog]


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app, gateway) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_gateway, None)


@pytest.fixture
def authenticated_admin_client(app, client):
    def _override_require_admin():
        return {"id": "admin-user-id", "role": "admin", "email": "admin@example.com"}
    app.dependency_overrides[require_admin] = _override_require_admin
    yield client
    app.dependency_overrides.pop(require_admin, None)


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "role": "user",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)
