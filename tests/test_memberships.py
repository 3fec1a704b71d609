from unittest.mock import patch

import pytest
from firebase_admin import auth

from app.dependencies import require_admin
from app.services.memberships import effective_status
from tests.conftest import TZ, active_membership, local, seed_student


def test_effective_status_is_derived_on_read():
    membresia = active_membership(hasta=local(2024, 2, 1, 0, 0))
    assert effective_status(membresia, local(2024, 3, 1, 14, 0), TZ) == "vencido"
    assert effective_status(active_membership(), local(2024, 3, 1, 14, 0), TZ) == "activa"
    assert effective_status({"estado": "pendiente"}, local(2024, 3, 1, 14, 0), TZ) == "pending"
    assert effective_status(None, local(2024, 3, 1, 14, 0), TZ) == "pending"


def test_get_membership_reports_expiry_without_writing(client, store):
    seed_student(store, membresia=active_membership(hasta=local(2024, 2, 1, 0, 0)))

    body = client.get("/memberships/stu-1").json()

    assert body["estado"] == "activa"
    assert body["estadoEfectivo"] == "vencido"
    assert store.get("students", "stu-1")["membresia"]["estado"] == "activa"


def test_cancel_active_membership(client, store):
    seed_student(store, membresia=active_membership(), activo=True)

    response = client.post("/memberships/stu-1/cancel")

    assert response.status_code == 200
    assert response.json()["estado"] == "cancelada"
    assert store.get("students", "stu-1")["activo"] is False


def test_cannot_reset_active_membership(client, store):
    seed_student(store, membresia=active_membership())
    assert client.post("/memberships/stu-1/reset").status_code == 409


@pytest.mark.parametrize("membresia", [
    dict(active_membership(), estado="cancelada"),
    active_membership(hasta=local(2024, 2, 1, 0, 0)),
])
def test_reset_clears_membership(client, store, membresia):
    seed_student(store, membresia=membresia)

    response = client.post("/memberships/stu-1/reset")

    assert response.status_code == 200
    student = store.get("students", "stu-1")
    assert student["membresia"] == {"estado": "pending"}
    assert student["plan"] is None


def test_cancel_unknown_student(client):
    assert client.post("/memberships/ghost/cancel").status_code == 404


@pytest.fixture
def anonymous(client):
    from app.main import app

    app.dependency_overrides.pop(require_admin)
    return client


def test_admin_actions_require_token(anonymous, store):
    seed_student(store, membresia=active_membership())
    assert anonymous.post("/memberships/stu-1/cancel").status_code == 401


def test_admin_actions_require_admin_role(anonymous, store):
    seed_student(store, membresia=active_membership())
    with patch.object(auth, "verify_id_token", return_value={"uid": "user-1"}):
        response = anonymous.post("/memberships/stu-1/cancel", headers={"Authorization": "Bearer token"})
    assert response.status_code == 403


def test_admin_can_cancel(anonymous, store):
    seed_student(store, membresia=active_membership())
    store.seed("admin", "admin-1", {"createdAt": local(2024, 1, 1, 0, 0)})
    with patch.object(auth, "verify_id_token", return_value={"uid": "admin-1"}):
        response = anonymous.post("/memberships/stu-1/cancel", headers={"Authorization": "Bearer token"})
    assert response.status_code == 200
    assert response.json()["estado"] == "cancelada"


def test_invalid_token(anonymous):
    with patch.object(auth, "verify_id_token", side_effect=ValueError("bad token")):
        response = anonymous.post("/memberships/stu-1/cancel", headers={"Authorization": "Bearer token"})
    assert response.status_code == 401
