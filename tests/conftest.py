"""
Pytest fixtures for the laundry orders service.

- An in-memory SQLite database shared across the request threadpool (StaticPool)
  replaces the PostgreSQL session through `app.dependency_overrides`.
- Staff tokens are minted with `auth.create_access_token`, so requests go
  through the real bearer-token dependency.
- Two pressings, two plants and one client per pressing are seeded for every test.
"""
import os

# The app creates its tables at import; point it at a throwaway database first
os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from laundry_orders import auth, models
from laundry_orders.database import Base, get_db
from laundry_orders.main import app
from laundry_orders.workflow import Role


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(session_factory):
    """Two pressings (B has a minimum order amount), two plants, one client per pressing."""
    session = session_factory()
    pressing_a = models.Pressing(name="Pressing Central", address="1 Main St")
    pressing_b = models.Pressing(name="Pressing Nord", min_order_amount=Decimal("1000"))
    plant_x = models.Plant(name="Plant X")
    plant_y = models.Plant(name="Plant Y")
    session.add_all([pressing_a, pressing_b, plant_x, plant_y])
    session.flush()
    client_a = models.Client(full_name="Awa Diop", phone="770000001", pressing_id=pressing_a.id)
    client_b = models.Client(full_name="Moussa Fall", pressing_id=pressing_b.id)
    session.add_all([client_a, client_b])
    session.commit()
    ids = SimpleNamespace(
        pressing_a=pressing_a.id,
        pressing_b=pressing_b.id,
        plant_x=plant_x.id,
        plant_y=plant_y.id,
        client_a=client_a.id,
        client_b=client_b.id,
    )
    session.close()
    return ids


def make_user(role: Role, user_id: int, name: str, pressing_id=None, plant_id=None) -> auth.CurrentUser:
    return auth.CurrentUser(
        id=user_id, name=name, role=role, pressing_id=pressing_id, plant_id=plant_id
    )


def bearer(user: auth.CurrentUser) -> dict:
    claims = {"sub": str(user.id), "name": user.name, "role": user.role.value}
    if user.pressing_id is not None:
        claims["pressing_id"] = user.pressing_id
    if user.plant_id is not None:
        claims["plant_id"] = user.plant_id
    return {"Authorization": f"Bearer {auth.create_access_token(claims)}"}


@pytest.fixture
def staff(seed):
    """Users and their auth headers, keyed by who they are."""
    users = {
        "admin": make_user(Role.ADMIN, 1, "Admin"),
        "supervisor_a": make_user(Role.SUPERVISOR, 2, "Fatou", pressing_id=seed.pressing_a),
        "supervisor_b": make_user(Role.SUPERVISOR, 3, "Ibrahima", pressing_id=seed.pressing_b),
        "operator_x": make_user(Role.PLANT_OPERATOR, 4, "Cheikh", plant_id=seed.plant_x),
        "operator_y": make_user(Role.PLANT_OPERATOR, 5, "Aminata", plant_id=seed.plant_y),
        "unassigned_supervisor": make_user(Role.SUPERVISOR, 6, "Nobody"),
    }
    return SimpleNamespace(
        users=SimpleNamespace(**users),
        **{name: bearer(user) for name, user in users.items()},
    )


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_order(client, seed, staff):
    """Create an order through the API and return its JSON body."""
    def _make_order(items=None, headers=None, client_id=None):
        if items is None:
            items = [{"label": "Shirt", "quantity": 1, "price": "500"}]
        response = client.post(
            "/orders",
            json={"client_id": client_id or seed.client_a, "items": items},
            headers=headers or staff.supervisor_a,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _make_order


@pytest.fixture
def advance(client):
    """PATCH an order to a status and return the response."""
    def _advance(order_id, new_status, headers, plant_id=None):
        body = {"status": new_status}
        if plant_id is not None:
            body["plant_id"] = plant_id
        return client.patch(f"/orders/{order_id}/status", json=body, headers=headers)
    return _advance


@pytest.fixture
def deliver(advance, seed, staff):
    """Walk an order through the whole route with the roles that own each leg."""
    def _deliver(order_id):
        steps = [
            ("COLLECTED", staff.supervisor_a, None),
            ("RECEIVED_AT_PLANT", staff.operator_x, seed.plant_x),
            ("PROCESSING", staff.operator_x, None),
            ("PROCESSED", staff.operator_x, None),
            ("DISPATCHED", staff.operator_x, None),
            ("READY", staff.supervisor_a, None),
            ("DELIVERED", staff.supervisor_a, None),
        ]
        response = None
        for new_status, headers, plant_id in steps:
            response = advance(order_id, new_status, headers, plant_id=plant_id)
            assert response.status_code == 200, response.text
        return response.json()
    return _deliver
