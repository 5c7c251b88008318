from decimal import Decimal


def pay(client, order_id, headers, method="CASH"):
    return client.post(f"/orders/{order_id}/payment", json={"method": method}, headers=headers)


def test_payment_requires_delivery(client, staff, make_order, advance):
    order = make_order()
    advance(order["id"], "COLLECTED", staff.supervisor_a)

    response = pay(client, order["id"], staff.supervisor_a)

    assert response.status_code == 400
    assert response.json()["code"] == "payment_error"
    assert "not been delivered" in response.json()["detail"]
    assert client.get(f"/orders/{order['id']}", headers=staff.admin).json()["payment"] is None


def test_payment_of_delivered_order_uses_order_total(client, staff, make_order, deliver):
    order = make_order([
        {"label": "Shirt", "quantity": 3, "price": "500"},
        {"label": "Pants", "quantity": 2, "price": "400"},
    ])
    deliver(order["id"])

    response = pay(client, order["id"], staff.supervisor_a, method="WALLET")

    assert response.status_code == 201, response.text
    payment = response.json()
    assert payment["order_id"] == order["id"]
    assert Decimal(payment["amount"]) == Decimal("2300")
    assert payment["method"] == "WALLET"
    assert payment["status"] == "PAID"
    assert payment["paid_at"] is not None

    reloaded = client.get(f"/orders/{order['id']}", headers=staff.supervisor_a).json()
    assert reloaded["payment"]["id"] == payment["id"]
    assert reloaded["status"] == "DELIVERED"


def test_order_can_only_be_paid_once(client, staff, make_order, deliver):
    order = make_order()
    deliver(order["id"])
    assert pay(client, order["id"], staff.supervisor_a, method="CASH").status_code == 201

    for method in ("CASH", "WALLET"):
        response = pay(client, order["id"], staff.admin, method=method)
        assert response.status_code == 400
        assert "already been paid" in response.json()["detail"]


def test_plant_operator_cannot_record_payment(client, staff, make_order, deliver):
    order = make_order()
    deliver(order["id"])
    assert pay(client, order["id"], staff.operator_x).status_code == 403


def test_other_pressing_cannot_record_payment(client, staff, make_order, deliver):
    order = make_order()
    deliver(order["id"])
    assert pay(client, order["id"], staff.supervisor_b).status_code == 403
    assert pay(client, order["id"], staff.supervisor_a).status_code == 201


def test_unknown_payment_method_is_rejected(client, staff, make_order, deliver):
    order = make_order()
    deliver(order["id"])
    assert pay(client, order["id"], staff.supervisor_a, method="CHEQUE").status_code == 422


def test_payment_of_unknown_order(client, staff, seed):
    assert pay(client, 999, staff.admin).status_code == 404
