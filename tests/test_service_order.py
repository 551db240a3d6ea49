from sqlmodel import select

from app.model.invoice import Invoice
from app.model.transaction import Transaction


def _order(client, headers, customer_id, **overrides):
    body = {
        "customer_id": customer_id,
        "title": "Troca de tela",
        "device_type": "Celular",
        "device_model": "Galaxy S20",
        "labor_cost": 100,
        "discount": 10,
        "items": [{"description": "Tela", "quantity": 1, "unit_price": 200}],
    }
    body.update(overrides)
    return client.post("/api/service-orders", json=body, headers=headers)


def _status(client, headers, order_id, status, **extra):
    return client.patch(f"/api/service-orders/{order_id}/status", json={"status": status, **extra}, headers=headers)


def test_create_service_order(client, admin, make_customer, jobs):
    customer = make_customer()
    response = _order(client, admin["headers"], customer["id"])
    assert response.status_code == 201, response.text
    order = response.json()

    assert order["code"] == "OS000001"
    assert order["status"] == "PENDING"
    assert order["priority"] == "NORMAL"
    assert order["parts_cost"] == 200.0
    assert order["total"] == 290.0
    assert order["customer_name"] == "Maria Silva"
    assert order["items"][0]["total"] == 200.0
    assert ("service_order_update_job", (order["id"],)) in jobs

    second = _order(client, admin["headers"], customer["id"]).json()
    assert second["code"] == "OS000002"


def test_create_requires_customer_of_same_tenant(client, admin, other_admin):
    other_customer = client.post("/api/customers", json={"name": "Cliente Outro"}, headers=other_admin["headers"]).json()
    response = _order(client, admin["headers"], other_customer["id"])
    assert response.status_code == 404
    assert response.json()["message"] == "Cliente não encontrado"


def test_update_replaces_items_and_recomputes_total(client, admin, make_customer):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()

    response = client.put(
        f"/api/service-orders/{order['id']}",
        json={
            "diagnosis": "Tela trincada",
            "labor_cost": 80,
            "items": [
                {"description": "Tela", "quantity": 1, "unit_price": 150},
                {"description": "Película", "quantity": 2, "unit_price": 10},
            ],
        },
        headers=admin["headers"],
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["diagnosis"] == "Tela trincada"
    assert updated["parts_cost"] == 170.0
    assert updated["total"] == 240.0
    assert len(updated["items"]) == 2


def test_complete_creates_receivable_and_service_invoice(client, admin, make_customer, session):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()

    response = _status(client, admin["headers"], order["id"], "COMPLETED", notes="Testado e aprovado")
    assert response.status_code == 200
    completed = response.json()
    assert completed["status"] == "COMPLETED"
    assert completed["completed_at"] is not None
    assert "[COMPLETED]: Testado e aprovado" in completed["notes"]

    transaction = session.exec(select(Transaction).where(Transaction.service_order_id == order["id"])).one()
    assert transaction.description == "OS #OS000001 - Troca de tela"
    assert transaction.status.value == "PENDING"
    assert transaction.amount == 290.0

    invoice = session.exec(select(Invoice).where(Invoice.service_order_id == order["id"])).one()
    assert invoice.type.value == "SERVICE"
    assert invoice.total == 290.0
    assert [i["description"] for i in invoice.items] == ["Tela", "Mão de obra"]
    assert invoice.warranty_days == 90


def test_complete_without_auto_invoice(client, admin, make_customer, session):
    client.put("/api/settings/general", json={"auto_generate_invoice": False}, headers=admin["headers"])
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()
    _status(client, admin["headers"], order["id"], "COMPLETED")
    assert session.exec(select(Invoice)).all() == []


def test_deliver_sends_service_invoice(client, admin, make_customer, session, jobs):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()
    _status(client, admin["headers"], order["id"], "COMPLETED")
    invoice = session.exec(select(Invoice).where(Invoice.service_order_id == order["id"])).one()

    response = _status(client, admin["headers"], order["id"], "DELIVERED")
    assert response.json()["delivered_at"] is not None
    assert ("send_invoice_job", (invoice.id, "EMAIL")) in jobs


def test_cancel_cancels_pending_receivables(client, admin, make_customer, session):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()
    _status(client, admin["headers"], order["id"], "COMPLETED")
    _status(client, admin["headers"], order["id"], "CANCELLED")

    transaction = session.exec(select(Transaction).where(Transaction.service_order_id == order["id"])).one()
    assert transaction.status.value == "CANCELLED"


def test_delete_rules(client, admin, seller, make_customer, session):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()
    _status(client, admin["headers"], order["id"], "IN_PROGRESS")

    assert client.delete(f"/api/service-orders/{order['id']}", headers=seller["headers"]).status_code == 403
    blocked = client.delete(f"/api/service-orders/{order['id']}", headers=admin["headers"])
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Só é possível remover OS pendentes ou canceladas"

    _status(client, admin["headers"], order["id"], "COMPLETED")
    _status(client, admin["headers"], order["id"], "CANCELLED")
    deleted = client.delete(f"/api/service-orders/{order['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/service-orders/{order['id']}", headers=admin["headers"]).status_code == 404

    # o lançamento continua no financeiro, sem vínculo com a OS
    transaction = session.exec(select(Transaction)).one()
    assert transaction.service_order_id is None


def test_list_filters_and_stats(client, admin, make_customer):
    customer = make_customer()
    first = _order(client, admin["headers"], customer["id"], title="Troca de bateria", priority="HIGH").json()
    _order(client, admin["headers"], customer["id"], title="Formatação", labor_cost=50, items=[], discount=0)
    _status(client, admin["headers"], first["id"], "COMPLETED")

    found = client.get("/api/service-orders", params={"search": "bateria"}, headers=admin["headers"]).json()
    assert found["total"] == 1
    high = client.get("/api/service-orders", params={"priority": "HIGH"}, headers=admin["headers"]).json()
    assert high["items"][0]["id"] == first["id"]

    stats = client.get("/api/service-orders/stats", headers=admin["headers"]).json()
    assert stats["by_status"]["COMPLETED"] == 1
    assert stats["by_status"]["PENDING"] == 1
    assert stats["revenue"] == 290.0
    assert stats["overdue"] == 0


def test_update_rejects_negative_values(client, admin, make_customer):
    customer = make_customer()
    order = _order(client, admin["headers"], customer["id"]).json()
    url = f"/api/service-orders/{order['id']}"

    negative_labor = client.put(url, json={"labor_cost": -500}, headers=admin["headers"])
    assert negative_labor.status_code == 400
    assert negative_labor.json()["errors"][0]["message"] == "O valor não pode ser negativo"

    assert client.put(url, json={"discount": -1}, headers=admin["headers"]).status_code == 400
    assert client.put(url, json={"title": "  "}, headers=admin["headers"]).status_code == 400

    # desconto maior que mão de obra + peças deixaria o total negativo
    too_much = client.put(url, json={"discount": 1000}, headers=admin["headers"])
    assert too_much.status_code == 400
    assert too_much.json()["message"] == "Desconto não pode ser maior que o valor da OS"

    current = client.get(url, headers=admin["headers"]).json()
    assert (current["labor_cost"], current["discount"], current["total"]) == (100.0, 10.0, 290.0)


def test_create_rejects_discount_above_total(client, admin, make_customer):
    customer = make_customer()
    response = _order(client, admin["headers"], customer["id"], discount=500)
    assert response.status_code == 400
    assert response.json()["message"] == "Desconto não pode ser maior que o valor da OS"
