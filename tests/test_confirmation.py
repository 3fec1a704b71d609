from tests.conftest import local, seed_plan, seed_student


def confirm(client, **body):
    return client.post("/payments/confirm", json=body)


def test_not_approved_is_not_an_error(client, store, gateway):
    gateway.add_payment(10, "in_process", 15000, external_reference="stu-1|Plan Full")

    response = confirm(client, paymentId="10")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["status"] == "in_process"
    assert store.all("payments") == []


def test_non_numeric_id_is_bad_request(client):
    assert confirm(client, paymentId="abc").status_code == 400
    assert confirm(client).status_code == 400


def test_collection_id_is_accepted(client, store, gateway):
    seed_plan(store)
    seed_student(store)
    gateway.add_payment(11, "approved", 15000)

    response = confirm(client, paymentId="null", collectionId=11, externalReference="stu-1|Plan Full")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert store.get("payments", "mp-11")["facturado"] is True


def test_confirmation_creates_payment_and_activates(client, store, gateway):
    seed_plan(store, name="Pase Diario", price=5000)
    seed_student(store, plan=None)
    gateway.add_payment(12, "approved", 5000, external_reference="stu-1|Pase Diario")

    response = confirm(client, paymentId=12, status="approved")

    assert response.json() == {
        "success": True,
        "message": "Pago confirmado y plan activado",
        "paymentId": "mp-12",
        "status": "approved",
    }
    payment = store.get("payments", "mp-12")
    assert payment["studentId"] == "stu-1"
    assert payment["plan"] == "Pase Diario"
    assert payment["amount"] == 5000
    student = store.get("students", "stu-1")
    assert student["plan"] == "Pase Diario"
    assert student["membresia"]["fechaHasta"] == local(2024, 3, 1, 23, 59, 59, 999000)


def test_second_confirmation_is_idempotent(client, store, gateway, clock):
    seed_plan(store)
    seed_student(store)
    gateway.add_payment(13, "approved", 15000, external_reference="stu-1|Plan Full")

    confirm(client, paymentId=13)
    clock.now = local(2024, 3, 10, 9, 0)
    response = confirm(client, paymentId=13)

    assert response.json()["success"] is True
    assert response.json()["message"] == "Pago ya procesado anteriormente"
    assert store.get("students", "stu-1")["membresia"]["fechaDesde"] == local(2024, 3, 1, 14, 0)
    assert len(store.all("notifications")) == 1


def test_confirmation_after_webhook_reuses_payment(client, store, gateway):
    seed_plan(store)
    seed_student(store)
    store.seed("payments", "pay-1", {"studentId": "stu-1", "plan": "Plan Full", "mercadoPagoId": "14", "facturado": False})
    gateway.add_payment(14, "approved", 15000, external_reference="stu-1|Plan Full")

    client.post("/webhook/mercadopago", json={"type": "payment", "data": {"id": "14"}})
    response = confirm(client, paymentId=14)

    assert response.json()["paymentId"] == "pay-1"
    assert len(store.all("payments")) == 1


def test_plan_falls_back_to_student_plan(client, store, gateway):
    seed_plan(store)
    seed_student(store)
    gateway.add_payment(15, "approved", 15000, external_reference="stu-1")

    assert confirm(client, paymentId=15).json()["success"] is True
    assert store.get("payments", "mp-15")["plan"] == "Plan Full"


def test_missing_student_in_reference_is_bad_request(client, gateway):
    gateway.add_payment(16, "approved", 15000)
    assert confirm(client, paymentId=16, externalReference="|Plan Full").status_code == 400


def test_unknown_student_is_not_found(client, gateway):
    gateway.add_payment(17, "approved", 15000)
    assert confirm(client, paymentId=17, externalReference="ghost|Plan Full").status_code == 404


def test_linked_payment_does_not_need_reference(client, store, gateway):
    seed_plan(store)
    seed_student(store)
    store.seed("payments", "pay-1", {"studentId": "stu-1", "plan": "Plan Full", "mercadoPagoId": "18", "facturado": False, "status": "pending"})
    gateway.add_payment(18, "approved", 15000)

    response = confirm(client, paymentId=18)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["paymentId"] == "pay-1"
    assert store.get("students", "stu-1")["membresia"]["estado"] == "activa"


def test_linked_payment_wins_over_reference(client, store, gateway):
    seed_plan(store)
    seed_student(store)
    seed_student(store, student_id="stu-2", access_code="9999", email="otro@example.com")
    store.seed("payments", "pay-1", {"studentId": "stu-1", "plan": "Plan Full", "mercadoPagoId": "19", "facturado": False})
    gateway.add_payment(19, "approved", 15000, external_reference="stu-2|Plan Full")

    assert confirm(client, paymentId=19).json()["paymentId"] == "pay-1"
    assert store.get("students", "stu-1")["membresia"]["estado"] == "activa"
    assert store.get("students", "stu-2")["membresia"]["estado"] == "pending"
