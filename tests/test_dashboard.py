from datetime import datetime, timezone

from app.model.sale import Sale


def test_empty_overview(client, admin):
    response = client.get("/api/dashboard/overview", headers=admin["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["today"] == {"count": 0, "revenue": 0.0}
    assert data["customers"] == 0
    assert data["pending_receivables"] == 0.0


def test_overview_counts(client, admin, make_product, make_customer):
    product = make_product(stock=5, min_stock=2)
    make_product(sku="LOW", name="Meia", stock=1, min_stock=3)
    customer = make_customer()

    client.post(
        "/api/sales",
        json={"items": [{"product_id": product["id"], "quantity": 2, "unit_price": 50}]},
        headers=admin["headers"],
    )
    order = client.post(
        "/api/service-orders",
        json={"customer_id": customer["id"], "title": "Conserto", "labor_cost": 120},
        headers=admin["headers"],
    ).json()
    client.post(
        "/api/service-orders",
        json={"customer_id": customer["id"], "title": "Revisão", "labor_cost": 60},
        headers=admin["headers"],
    )
    client.patch(f"/api/service-orders/{order['id']}/status", json={"status": "COMPLETED"}, headers=admin["headers"])

    data = client.get("/api/dashboard/overview", headers=admin["headers"]).json()
    assert data["today"] == {"count": 1, "revenue": 100.0}
    assert data["month"]["revenue"] == 100.0
    assert data["customers"] == 1
    assert data["products"] == 2
    assert data["low_stock"] == 1
    assert data["open_service_orders"] == 1
    assert data["pending_receivables"] == 120.0


def test_overview_follows_permission_matrix(client, admin, seller):
    assert client.get("/api/dashboard/overview", headers=seller["headers"]).status_code == 200

    body = {"roles": [{"role": "SELLER", "permissions": [{"module": "dashboard", "view": False}]}]}
    client.put("/api/settings/permissions", json=body, headers=admin["headers"])

    response = client.get("/api/dashboard/overview", headers=seller["headers"])
    assert response.status_code == 403
    assert response.json()["message"] == "Você não tem permissão para acessar este módulo"
    assert client.get("/api/dashboard/overview", headers=admin["headers"]).status_code == 200


def test_today_and_month_follow_tenant_timezone(client, admin, make_product, session, monkeypatch):
    product = make_product(stock=10)
    first, second = (
        client.post(
            "/api/sales",
            json={"items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
            headers=admin["headers"],
        ).json()
        for _ in range(2)
    )
    # Agora: 23:00 do dia 9 em America/Sao_Paulo (02:00 UTC do dia 10)
    monkeypatch.setattr("app.api.dashboard.utc_now", lambda: datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc))
    for sale_id, when in (
        (first["id"], datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc)),
        (second["id"], datetime(2026, 3, 10, 1, 30, tzinfo=timezone.utc)),
    ):
        sale = session.get(Sale, sale_id)
        sale.created_at = when
        session.add(sale)
    session.commit()

    data = client.get("/api/dashboard/overview", headers=admin["headers"]).json()
    assert data["today"] == {"count": 2, "revenue": 100.0}
    assert data["month"] == {"count": 2, "revenue": 100.0}
