from datetime import datetime

import pytest
import pytz
from fastapi.testclient import TestClient

from app.dependencies import get_clock, get_gateway, get_settings, get_store, require_admin
from app.utils.settings import Settings
from tests.fakes import FakeGateway, FixedClock, InMemoryStore

TZ = pytz.timezone("America/Argentina/Buenos_Aires")


def local(*args):
    return TZ.localize(datetime(*args))


def seed_plan(store, name="Plan Full", price=15000, start="08:00", end="21:30", **extra):
    data = {"name": name, "price": price, "startHour": start, "endHour": end, "days": "Lunes a Viernes"}
    data.update(extra)
    return store.seed("plans", f"plan-{name.lower().replace(' ', '-')}", data)


def seed_student(store, student_id="stu-1", access_code="4321", plan="Plan Full", membresia=None, **extra):
    data = {
        "fullName": "Ana Gómez",
        "email": "ana@example.com",
        "accessCode": access_code,
        "isCheckedIn": False,
        "plan": plan,
        "activo": False,
        "membresia": membresia if membresia is not None else {"nombre": plan, "estado": "pending"},
    }
    data.update(extra)
    return store.seed("students", student_id, data)


def active_membership(plan="Plan Full", desde=None, hasta=None):
    return {
        "nombre": plan,
        "estado": "activa",
        "fechaDesde": desde or local(2024, 3, 1, 0, 0),
        "fechaHasta": hasta or local(2024, 3, 31, 0, 0),
        "montoPagado": 15000,
        "medioPago": "Mercado Pago Hospedado",
    }


@pytest.fixture
def settings():
    return Settings(
        mp_access_token="TEST-123",
        frontend_url="https://app.cowork.test",
        backend_url="https://api.cowork.test",
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FixedClock(local(2024, 3, 1, 14, 0))


@pytest.fixture
def client(store, gateway, clock, settings):
    from app.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[require_admin] = lambda: "admin-uid"
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
