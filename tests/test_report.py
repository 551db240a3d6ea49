import io

from openpyxl import load_workbook


def _sell(client, headers, product_id, quantity=1, unit_price=50, **extra):
    body = {"items": [{"product_id": product_id, "quantity": quantity, "unit_price": unit_price}], **extra}
    response = client.post("/api/sales", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_sales_report(client, admin, make_product, make_customer):
    product = make_product(stock=20)
    customer = make_customer()
    _sell(client, admin["headers"], product["id"], quantity=2, customer_id=customer["id"], payment_method="PIX")
    _sell(client, admin["headers"], product["id"], quantity=1, payment_method="CASH")

    data = client.post("/api/reports/sales", json={}, headers=admin["headers"]).json()
    assert data["summary"]["total_sales"] == 150.0
    assert data["summary"]["total_orders"] == 2
    assert data["summary"]["average_ticket"] == 75.0
    assert data["summary"]["total_items"] == 3
    assert {item["customer"] for item in data["items"]} == {"Maria Silva", "Consumidor Final"}

    by_customer = client.post("/api/reports/sales", json={"customer": "maria"}, headers=admin["headers"]).json()
    assert [item["total"] for item in by_customer["items"]] == [100.0]
    by_method = client.post(
        "/api/reports/sales", json={"payment_method": ["CASH"]}, headers=admin["headers"]
    ).json()
    assert by_method["summary"]["total_orders"] == 1


def test_invalid_filters(client, admin):
    bad_status = client.post("/api/reports/sales", json={"status": "QUALQUER"}, headers=admin["headers"])
    assert bad_status.status_code == 400
    assert bad_status.json()["message"] == "Filtro inválido: status"

    bad_period = client.post(
        "/api/reports/sales",
        json={"period_start": "2026-05-10", "period_end": "2026-05-01"},
        headers=admin["headers"],
    )
    assert bad_period.status_code == 400

    assert client.post("/api/reports/unknown", json={}, headers=admin["headers"]).status_code == 400


def test_products_report(client, admin, make_product):
    shirt = make_product(stock=10, min_stock=2, cost_price=20)
    make_product(sku="LOW", name="Meia", stock=1, min_stock=3, cost_price=5)
    make_product(sku="OUT", name="Boné", stock=0, cost_price=30)
    _sell(client, admin["headers"], shirt["id"], quantity=4)

    data = client.post(
        "/api/reports/products",
        json={"period_start": "2020-01-01", "sort_by": "sales"},
        headers=admin["headers"],
    ).json()
    assert data["summary"] == {
        "total_products": 3,
        "stock_value": 125.0,
        "low_stock_count": 1,
        "out_of_stock_count": 1,
    }
    assert data["items"][0]["name"] == "Camiseta"
    assert data["items"][0]["sold_quantity"] == 4
    assert data["items"][0]["revenue"] == 200.0

    out = client.post("/api/reports/products", json={"stock_status": "out"}, headers=admin["headers"]).json()
    assert [item["sku"] for item in out["items"]] == ["OUT"]


def test_customers_report(client, admin, make_product, make_customer):
    product = make_product(stock=20)
    buyer = make_customer()
    make_customer(name="João Souza", email="joao@cliente.com")
    _sell(client, admin["headers"], product["id"], quantity=3, customer_id=buyer["id"])

    data = client.post(
        "/api/reports/customers", json={"sort_by": "total_spent"}, headers=admin["headers"]
    ).json()
    assert data["summary"] == {"total_customers": 2, "active_customers": 1, "total_revenue": 150.0}
    assert data["items"][0]["name"] == "Maria Silva"
    assert data["items"][0]["order_count"] == 1

    with_orders = client.post("/api/reports/customers", json={"has_orders": True}, headers=admin["headers"]).json()
    assert [item["name"] for item in with_orders["items"]] == ["Maria Silva"]


def test_financial_report(client, admin):
    for body in (
        {"type": "INCOME", "description": "Consultoria", "amount": 900, "status": "CONFIRMED"},
        {"type": "EXPENSE", "description": "Aluguel", "amount": 300, "status": "CONFIRMED"},
        {"type": "EXPENSE", "description": "Luz", "amount": 100},
    ):
        client.post(
            "/api/financial/transactions",
            json={"due_date": "2026-03-15T12:00:00Z", **body},
            headers=admin["headers"],
        )

    data = client.post("/api/reports/financial", json={}, headers=admin["headers"]).json()
    assert data["summary"] == {
        "total_income": 900.0,
        "total_expenses": 400.0,
        "balance": 500.0,
        "pending_amount": 100.0,
    }
    assert data["items"][0]["category"] == "-"

    outside = client.post(
        "/api/reports/financial",
        json={"period_start": "2026-04-01", "period_end": "2026-04-30"},
        headers=admin["headers"],
    ).json()
    assert outside["items"] == []


def test_service_orders_and_invoices_reports(client, admin, make_customer):
    customer = make_customer()
    order = client.post(
        "/api/service-orders",
        json={"customer_id": customer["id"], "title": "Troca de tela", "labor_cost": 150},
        headers=admin["headers"],
    ).json()
    client.post(
        "/api/service-orders",
        json={"customer_id": customer["id"], "title": "Revisão", "labor_cost": 60, "priority": "HIGH"},
        headers=admin["headers"],
    )
    client.patch(f"/api/service-orders/{order['id']}/status", json={"status": "COMPLETED"}, headers=admin["headers"])

    orders = client.post("/api/reports/service-orders", json={}, headers=admin["headers"]).json()
    assert orders["summary"] == {"total": 2, "completed": 1, "in_progress": 0, "revenue": 150.0}
    high = client.post("/api/reports/service-orders", json={"priority": "HIGH"}, headers=admin["headers"]).json()
    assert [item["title"] for item in high["items"]] == ["Revisão"]

    invoices = client.post("/api/reports/invoices", json={}, headers=admin["headers"]).json()
    assert invoices["summary"]["total"] == 1
    assert invoices["summary"]["total_value"] == 150.0
    assert invoices["items"][0]["customer"] == "Maria Silva"


def test_export_pdf(client, admin, make_product):
    product = make_product()
    _sell(client, admin["headers"], product["id"])

    response = client.post("/api/reports/sales/export/pdf", json={}, headers=admin["headers"])
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="relatorio-sales.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

    empty = client.post("/api/reports/invoices/export/pdf", json={}, headers=admin["headers"])
    assert empty.content.startswith(b"%PDF")


def test_export_excel(client, admin, make_product):
    product = make_product()
    _sell(client, admin["headers"], product["id"], quantity=2)

    response = client.post("/api/reports/products/export/excel", json={}, headers=admin["headers"])
    assert response.status_code == 200
    assert 'filename="relatorio-products.xlsx"' in response.headers["content-disposition"]

    sheet = load_workbook(io.BytesIO(response.content)).active
    assert sheet.title == "Relatório"
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0] == ("SKU", "Produto", "Categoria", "Estoque", "Vendidos", "Preço", "Faturamento")
    assert rows[1][:4] == ("SKU-1", "Camiseta", "-", 8)


def test_reports_are_restricted(client, seller):
    assert client.post("/api/reports/sales", json={}, headers=seller["headers"]).status_code == 403
