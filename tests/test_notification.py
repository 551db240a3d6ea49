import asyncio
from datetime import timedelta

import pytest
from sqlmodel import select

from app.model.base import utc_now
from app.model.invitation import Invitation
from app.model.notification_log import NotificationLog
from app.worker import job, queue


@pytest.fixture()
def worker_engine(engine, monkeypatch):
    """Os jobs abrem a própria sessão: apontá-los para o banco de teste."""
    monkeypatch.setattr("app.db.session.engine", engine)
    return engine


def test_test_whatsapp(client, admin, sent_whatsapp):
    response = client.post("/api/notifications/test-whatsapp", json={"phone": "11999998888"}, headers=admin["headers"])
    assert response.status_code == 200
    log = response.json()
    assert log["type"] == "WHATSAPP"
    assert log["status"] == "SENT"
    assert log["extra"] == {"test": True}
    assert "Loja Teste" in sent_whatsapp[-1]["text"]

    empty = client.post("/api/notifications/test-whatsapp", json={"phone": " "}, headers=admin["headers"])
    assert empty.status_code == 400


def test_failed_send_is_logged(client, admin, monkeypatch):
    monkeypatch.setattr("app.services.whatsapp_service.send_text", lambda phone, text, **kwargs: (False, "Instância offline"))
    log = client.post("/api/notifications/test-whatsapp", json={"phone": "11999998888"}, headers=admin["headers"]).json()
    assert log["status"] == "FAILED"
    assert log["error_msg"] == "Instância offline"
    assert log["sent_at"] is None


def test_logs_filters(client, admin, seller):
    client.post("/api/notifications/test-whatsapp", json={"phone": "11999998888"}, headers=admin["headers"])
    client.post("/api/settings/test-email", json={}, headers=admin["headers"])

    logs = client.get("/api/notifications/logs", headers=admin["headers"]).json()
    assert logs["total"] == 2
    emails = client.get("/api/notifications/logs", params={"type": "EMAIL"}, headers=admin["headers"]).json()
    assert [log["recipient"] for log in emails["items"]] == ["admin@loja.com"]

    assert client.get("/api/notifications/logs", headers=seller["headers"]).status_code == 403


def test_sale_confirmation_job(client, admin, make_product, make_customer, session, worker_engine, sent_emails, sent_whatsapp):
    client.put("/api/settings/notifications", json={"whatsapp_enabled": True}, headers=admin["headers"])
    product = make_product()
    customer = make_customer()
    sale = client.post(
        "/api/sales",
        json={"customer_id": customer["id"], "items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
        headers=admin["headers"],
    ).json()

    result = asyncio.run(job.sale_confirmation_job({}, sale["id"]))
    assert result == {"ok": True, "sale_id": sale["id"], "sent": ["SENT", "SENT"]}
    assert sent_emails[-1]["subject"] == "Compra confirmada - Pedido V000001"
    assert "*COMPRA CONFIRMADA*" in sent_whatsapp[-1]["text"]

    logs = session.exec(select(NotificationLog).where(NotificationLog.customer_id == customer["id"])).all()
    assert len(logs) == 2

    missing = asyncio.run(job.sale_confirmation_job({}, 999))
    assert missing["ok"] is False


def test_service_order_update_job_respects_disabled_email(client, admin, make_customer, worker_engine, sent_emails):
    client.put("/api/settings/notifications", json={"email_enabled": False}, headers=admin["headers"])
    customer = make_customer()
    order = client.post(
        "/api/service-orders", json={"customer_id": customer["id"], "title": "Reparo", "labor_cost": 10}, headers=admin["headers"]
    ).json()

    result = asyncio.run(job.service_order_update_job({}, order["id"]))
    assert result["sent"] == []
    assert sent_emails == []


def test_low_stock_alert_job(client, admin, make_product, worker_engine, sent_emails):
    product = make_product(stock=1, min_stock=5)
    result = asyncio.run(job.low_stock_alert_job({}, admin["tenant_id"], [product["id"]]))
    assert result["status"] == "SENT"
    assert sent_emails[-1]["to"] == "admin@loja.com"
    assert sent_emails[-1]["subject"] == "Alerta de estoque baixo - 1 produto(s)"


def test_send_invoice_job(client, admin, make_product, make_customer, worker_engine, session):
    product = make_product()
    customer = make_customer()
    sale = client.post(
        "/api/sales",
        json={"customer_id": customer["id"], "items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
        headers=admin["headers"],
    ).json()
    invoice = client.post("/api/invoices/generate", json={"sale_id": sale["id"]}, headers=admin["headers"]).json()

    assert asyncio.run(job.send_invoice_job({}, invoice["id"], "EMAIL")) == {"ok": True, "invoice_id": invoice["id"]}

    client.post(f"/api/invoices/{invoice['id']}/cancel", json={"reason": "Erro"}, headers=admin["headers"])
    cancelled = asyncio.run(job.send_invoice_job({}, invoice["id"], "EMAIL"))
    assert cancelled["ok"] is False
    assert cancelled["error"] == "Nota fiscal cancelada não pode ser enviada"


def test_expire_invitations_job(client, admin, session, worker_engine):
    client.post("/api/invitations", json={"email": "velho@loja.com"}, headers=admin["headers"])
    client.post("/api/invitations", json={"email": "novo@loja.com"}, headers=admin["headers"])
    old = session.exec(select(Invitation).where(Invitation.email == "velho@loja.com")).one()
    old.expires_at = utc_now() - timedelta(hours=1)
    session.add(old)
    session.commit()

    assert asyncio.run(job.expire_invitations_job({})) == {"ok": True, "expired": 1}
    session.expire_all()
    assert session.get(Invitation, old.id).status.value == "EXPIRED"


def test_enqueue_without_redis_is_not_fatal(monkeypatch):
    async def unavailable(settings):
        raise ConnectionRefusedError("redis fora do ar")

    monkeypatch.setattr(queue, "create_pool", unavailable)
    assert asyncio.run(queue.enqueue_job("sale_confirmation_job", 1)) is False
