from tests.conftest import local, seed_plan, seed_student


def _seed_payment(store, mercadopago_id="123456"):
    seed_plan(store)
    seed_student(store)
    store.seed("payments", "pay-1", {
        "studentId": "stu-1",
        "plan": "Plan Full",
        "amount": 15000,
        "mercadoPagoId": mercadopago_id,
        "facturado": False,
        "status": "pending",
    })


def notify(client, payment_id=123456, type_="payment"):
    return client.post("/webhook/mercadopago", json={"type": type_, "action": "payment.updated", "data": {"id": str(payment_id)}})


def test_missing_type_is_bad_request(client):
    response = client.post("/webhook/mercadopago", json={"data": {"id": "1"}})
    assert response.status_code == 400


def test_missing_data_id_is_bad_request(client):
    response = client.post("/webhook/mercadopago", json={"type": "payment", "data": {}})
    assert response.status_code == 400


def test_non_payment_notifications_are_acknowledged(client, gateway):
    response = notify(client, type_="merchant_order")
    assert response.status_code == 200
    assert "ignored" in response.json()["message"]
    assert gateway.get_calls == 0


def test_unknown_local_payment_is_not_found(client, gateway):
    gateway.add_payment(123456, "approved", 15000)
    response = notify(client)
    assert response.status_code == 404


def test_gateway_failure_asks_for_retry(client, store, gateway):
    _seed_payment(store)
    gateway.fail = True
    response = notify(client)
    assert response.status_code == 500
    assert store.get("payments", "pay-1")["facturado"] is False


def test_approved_payment_activates_membership(client, store, gateway):
    _seed_payment(store)
    gateway.add_payment(123456, "approved", 15000)

    response = notify(client)

    assert response.status_code == 200
    body = response.json()
    assert body["paymentId"] == "123456"
    assert body["applied"] is True
    student = store.get("students", "stu-1")
    assert student["membresia"]["estado"] == "activa"
    assert student["membresia"]["fechaHasta"] == local(2024, 3, 31, 14, 0)


def test_numeric_stored_id_is_matched(client, store, gateway):
    _seed_payment(store, mercadopago_id=123456)
    gateway.add_payment(123456, "approved", 15000)

    assert notify(client).status_code == 200
    payment = store.get("payments", "pay-1")
    assert payment["facturado"] is True
    assert payment["mercadoPagoId"] == "123456"


def test_duplicate_notifications_apply_once(client, store, gateway, clock):
    _seed_payment(store)
    gateway.add_payment(123456, "approved", 15000)

    assert notify(client).json()["applied"] is True
    clock.now = local(2024, 3, 3, 9, 0)
    for _ in range(4):
        response = notify(client)
        assert response.status_code == 200
        assert response.json()["applied"] is False

    membresia = store.get("students", "stu-1")["membresia"]
    assert membresia["fechaDesde"] == local(2024, 3, 1, 14, 0)
    assert len(store.all("notifications")) == 1
    assert [p["facturado"] for p in store.all("payments")] == [True]


def test_webhook_after_confirmation_is_noop(client, store, gateway, clock):
    seed_plan(store)
    seed_student(store)
    gateway.add_payment(777, "approved", 15000, external_reference="stu-1|Plan Full")

    confirmed = client.post("/payments/confirm", json={"paymentId": "777", "status": "approved"})
    assert confirmed.json()["paymentId"] == "mp-777"

    clock.now = local(2024, 3, 1, 18, 0)
    response = notify(client, payment_id=777)

    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert store.get("students", "stu-1")["membresia"]["fechaDesde"] == local(2024, 3, 1, 14, 0)
    assert len(store.all("payments")) == 1
    assert len(store.all("notifications")) == 1


def test_webhook_test_endpoint(client):
    assert client.get("/webhook/test").status_code == 200


def test_blank_data_id_is_bad_request(client, gateway):
    response = client.post("/webhook/mercadopago", json={"type": "payment", "data": {"id": ""}})
    assert response.status_code == 400
    assert gateway.get_calls == 0


def test_non_numeric_payment_id_is_bad_request(client, gateway):
    response = client.post("/webhook/mercadopago", json={"type": "payment", "data": {"id": "abc"}})
    assert response.status_code == 400
    assert gateway.get_calls == 0


def test_non_numeric_id_on_other_topics_is_acknowledged(client, gateway):
    response = client.post("/webhook/mercadopago", json={"type": "subscription_preapproval", "data": {"id": "2c9380848"}})
    assert response.status_code == 200
    assert gateway.get_calls == 0
