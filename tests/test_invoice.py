from sqlmodel import select

from app.model.notification_log import NotificationLog


def _manual_invoice(client, headers, **overrides):
    body = {
        "items": [
            {"description": "Consultoria", "quantity": 2, "unit_price": 150},
            {"description": "Deslocamento", "unit_price": 50},
        ],
        "discount": 20,
        "recipient": {"name": "Consumidor", "document": "12345678901"},
    }
    body.update(overrides)
    return client.post("/api/invoices", json=body, headers=headers)


def _sale(client, headers, product_id, **extra):
    return client.post(
        "/api/sales",
        json={"items": [{"product_id": product_id, "quantity": 2, "unit_price": 50}], **extra},
        headers=headers,
    ).json()


def test_manual_invoice(client, admin):
    response = _manual_invoice(client, admin["headers"])
    assert response.status_code == 201, response.text
    invoice = response.json()

    assert invoice["number"] == "000000001"
    assert invoice["series"] == "1"
    assert invoice["status"] == "ISSUED"
    assert invoice["issuer_name"] == "Loja Teste"
    assert invoice["recipient_name"] == "Consumidor"
    assert invoice["subtotal"] == 350.0
    assert invoice["total"] == 330.0
    assert invoice["access_key"].startswith("SF")
    assert invoice["access_key"] == invoice["access_key"].upper()
    assert invoice["qr_code_data"].endswith(f"/invoice/{invoice['access_key']}")

    second = _manual_invoice(client, admin["headers"]).json()
    assert second["number"] == "000000002"


def test_invoice_requires_items(client, admin):
    response = _manual_invoice(client, admin["headers"], items=[])
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "A nota fiscal deve ter pelo menos um item"


def test_generate_from_sale(client, admin, make_product, make_customer):
    product = make_product()
    customer = make_customer(cpf_cnpj="12345678901", city="Campinas", state="SP", address="Rua A", number="10")
    sale = _sale(client, admin["headers"], product["id"], customer_id=customer["id"], discount=5)

    response = client.post(
        "/api/invoices/generate", json={"sale_id": sale["id"], "warranty_days": 30}, headers=admin["headers"]
    )
    assert response.status_code == 201
    invoice = response.json()
    assert invoice["type"] == "SALE"
    assert invoice["sale_id"] == sale["id"]
    assert invoice["recipient_name"] == "Maria Silva"
    assert invoice["recipient_document"] == "12345678901"
    assert invoice["recipient_address"] == "Rua A, 10 - Campinas/SP"
    assert invoice["items"] == [{"description": "Camiseta", "quantity": 2, "unit_price": 50.0, "total": 100.0}]
    assert invoice["total"] == 95.0
    assert invoice["warranty_expires"] is not None
    assert invoice["description"] == f"Nota fiscal referente à venda #{sale['code']}"


def test_generate_requires_source(client, admin):
    response = client.post("/api/invoices/generate", json={}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "É necessário informar uma venda ou ordem de serviço"


def test_generate_from_cancelled_sale(client, admin, make_product):
    product = make_product()
    sale = _sale(client, admin["headers"], product["id"])
    client.post(f"/api/sales/{sale['id']}/cancel", json={}, headers=admin["headers"])
    response = client.post("/api/invoices/generate", json={"sale_id": sale["id"]}, headers=admin["headers"])
    assert response.status_code == 400


def test_public_access_by_key(client, admin):
    invoice = _manual_invoice(client, admin["headers"]).json()
    response = client.get(f"/api/invoices/access/{invoice['access_key'].lower()}")
    assert response.status_code == 200
    assert response.json()["id"] == invoice["id"]
    assert client.get("/api/invoices/access/NAOEXISTE").status_code == 404


def test_invoice_pdf(client, admin):
    invoice = _manual_invoice(client, admin["headers"]).json()
    response = client.get(f"/api/invoices/{invoice['id']}/pdf", headers=admin["headers"])
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_send_invoice_by_email(client, admin, make_product, make_customer, session, sent_emails):
    product = make_product()
    customer = make_customer()
    sale = _sale(client, admin["headers"], product["id"], customer_id=customer["id"])
    invoice = client.post("/api/invoices/generate", json={"sale_id": sale["id"]}, headers=admin["headers"]).json()

    response = client.post(f"/api/invoices/{invoice['id']}/send", json={"method": "EMAIL"}, headers=admin["headers"])
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["results"] == [{"method": "EMAIL", "recipient": "maria@cliente.com", "status": "SENT", "error": None}]
    assert body["invoice"]["status"] == "SENT"
    assert body["invoice"]["sent_method"] == "EMAIL"

    # cliente + cópia para o email da empresa
    assert [e["to"] for e in sent_emails] == ["maria@cliente.com", "admin@loja.com"]
    assert sent_emails[1]["subject"].startswith("[CÓPIA]")
    logs = session.exec(select(NotificationLog)).all()
    assert {log.status.value for log in logs} == {"SENT"}


def test_send_invoice_without_customer(client, admin):
    invoice = _manual_invoice(client, admin["headers"]).json()
    response = client.post(f"/api/invoices/{invoice['id']}/send", json={}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "Nota fiscal não possui cliente vinculado"


def test_cancel_and_delete(client, admin):
    invoice = _manual_invoice(client, admin["headers"]).json()
    url = f"/api/invoices/{invoice['id']}"

    blocked = client.delete(url, headers=admin["headers"])
    assert blocked.status_code == 400

    no_reason = client.post(f"{url}/cancel", json={"reason": " "}, headers=admin["headers"])
    assert no_reason.status_code == 400

    cancelled = client.post(f"{url}/cancel", json={"reason": "Emitida por engano"}, headers=admin["headers"]).json()
    assert cancelled["status"] == "CANCELLED"
    assert cancelled["cancel_reason"] == "Emitida por engano"

    twice = client.post(f"{url}/cancel", json={"reason": "De novo"}, headers=admin["headers"])
    assert twice.json()["message"] == "Nota fiscal já está cancelada"

    assert client.delete(url, headers=admin["headers"]).status_code == 200
    assert client.get(url, headers=admin["headers"]).status_code == 404


def test_list_filters(client, admin, other_admin):
    _manual_invoice(client, admin["headers"])
    _manual_invoice(client, admin["headers"], type="SERVICE")
    _manual_invoice(client, other_admin["headers"])

    listed = client.get("/api/invoices", headers=admin["headers"]).json()
    assert listed["total"] == 2
    services = client.get("/api/invoices", params={"type": "SERVICE"}, headers=admin["headers"]).json()
    assert services["total"] == 1


def test_send_invoice_by_whatsapp_records_phone(client, admin, make_product, make_customer, sent_whatsapp):
    product = make_product()
    customer = make_customer(whatsapp="11988887777")
    sale = _sale(client, admin["headers"], product["id"], customer_id=customer["id"])
    invoice = client.post("/api/invoices/generate", json={"sale_id": sale["id"]}, headers=admin["headers"]).json()

    response = client.post(
        f"/api/invoices/{invoice['id']}/send", json={"method": "WHATSAPP"}, headers=admin["headers"]
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["invoice"]["sent_method"] == "WHATSAPP"
    assert body["invoice"]["sent_to"] == "11988887777"
    assert [m["phone"] for m in sent_whatsapp] == ["11988887777"]


def test_send_invoice_by_both_channels_records_both_recipients(client, admin, make_product, make_customer):
    product = make_product()
    customer = make_customer(whatsapp="11988887777")
    sale = _sale(client, admin["headers"], product["id"], customer_id=customer["id"])
    invoice = client.post("/api/invoices/generate", json={"sale_id": sale["id"]}, headers=admin["headers"]).json()

    body = client.post(
        f"/api/invoices/{invoice['id']}/send", json={"methods": ["EMAIL", "WHATSAPP"]}, headers=admin["headers"]
    ).json()
    assert body["invoice"]["sent_method"] == "EMAIL,WHATSAPP"
    assert body["invoice"]["sent_to"] == "maria@cliente.com,11988887777"
