from datetime import datetime, timedelta, timezone

from app.api.financial import MONTH_LABELS
from app.model.transaction import TransactionType
from app.model.transaction_category import TransactionCategory


def _transaction(client, headers, **overrides):
    body = {
        "type": "EXPENSE",
        "description": "Aluguel",
        "amount": 1500,
        "due_date": datetime.now(timezone.utc).isoformat(),
    }
    body.update(overrides)
    return client.post("/api/financial/transactions", json=body, headers=headers)


def test_create_confirm_and_cancel(client, admin):
    created = _transaction(client, admin["headers"])
    assert created.status_code == 201
    transaction = created.json()
    assert transaction["status"] == "PENDING"
    assert transaction["paid_date"] is None

    url = f"/api/financial/transactions/{transaction['id']}"
    confirmed = client.post(f"{url}/confirm", json={"payment_method": "PIX"}, headers=admin["headers"]).json()
    assert confirmed["status"] == "CONFIRMED"
    assert confirmed["paid_date"] is not None
    assert confirmed["payment_method"] == "PIX"

    again = client.post(f"{url}/confirm", json={}, headers=admin["headers"])
    assert again.json()["message"] == "Transação já está confirmada"

    cancelled = client.post(f"{url}/cancel", headers=admin["headers"])
    assert cancelled.json()["status"] == "CANCELLED"
    update = client.put(url, json={"amount": 10}, headers=admin["headers"])
    assert update.status_code == 400


def test_confirmed_on_create_gets_paid_date(client, admin):
    transaction = _transaction(client, admin["headers"], status="CONFIRMED").json()
    assert transaction["paid_date"] is not None


def test_amount_must_be_positive(client, admin):
    response = _transaction(client, admin["headers"], amount=0)
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Valor deve ser maior que zero"


def test_seller_has_no_access(client, seller):
    assert client.get("/api/financial/transactions", headers=seller["headers"]).status_code == 403
    assert client.get("/api/financial/balance", headers=seller["headers"]).status_code == 403


def test_balance(client, admin, make_product):
    product = make_product()
    client.post(
        "/api/sales",
        json={"items": [{"product_id": product["id"], "quantity": 2, "unit_price": 50}]},
        headers=admin["headers"],
    )
    _transaction(client, admin["headers"], amount=30, status="CONFIRMED")
    _transaction(client, admin["headers"], type="INCOME", description="Serviço avulso", amount=80)
    _transaction(client, admin["headers"], amount=20)

    balance = client.get("/api/financial/balance", headers=admin["headers"]).json()
    assert balance == {
        "income": 100.0,
        "expense": 30.0,
        "balance": 70.0,
        "pending_income": 80.0,
        "pending_expense": 20.0,
    }


def test_sale_transaction_is_protected(client, admin, make_product):
    product = make_product()
    client.post(
        "/api/sales",
        json={"items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
        headers=admin["headers"],
    )
    transaction = client.get("/api/financial/transactions", headers=admin["headers"]).json()["items"][0]
    url = f"/api/financial/transactions/{transaction['id']}"

    cancel = client.post(f"{url}/cancel", headers=admin["headers"])
    assert cancel.status_code == 400
    assert cancel.json()["message"] == "Cancele a venda para cancelar esta transação"

    delete = client.delete(url, headers=admin["headers"])
    assert delete.status_code == 400


def test_delete_manual_transaction(client, admin):
    transaction = _transaction(client, admin["headers"]).json()
    response = client.delete(f"/api/financial/transactions/{transaction['id']}", headers=admin["headers"])
    assert response.json()["message"] == "Transação removida com sucesso"
    assert client.get(f"/api/financial/transactions/{transaction['id']}", headers=admin["headers"]).status_code == 404


def test_list_filters(client, admin):
    _transaction(client, admin["headers"], description="Conta de luz", reference="LUZ-10")
    _transaction(client, admin["headers"], type="INCOME", description="Consultoria", amount=500)

    expenses = client.get("/api/financial/transactions", params={"type": "EXPENSE"}, headers=admin["headers"]).json()
    assert expenses["total"] == 1
    by_reference = client.get("/api/financial/transactions", params={"search": "luz-10"}, headers=admin["headers"]).json()
    assert by_reference["items"][0]["description"] == "Conta de luz"


def test_cash_flow(client, admin):
    _transaction(client, admin["headers"], type="INCOME", description="Venda balcão", amount=300, status="CONFIRMED")
    _transaction(client, admin["headers"], amount=120, status="CONFIRMED")

    flow = client.get("/api/financial/cash-flow", params={"months": 3}, headers=admin["headers"]).json()
    assert len(flow) == 3

    now = datetime.now(timezone.utc)
    current = flow[-1]
    assert current["month"] == f"{now.year:04d}-{now.month:02d}"
    assert current["label"] == f"{MONTH_LABELS[now.month - 1]}/{str(now.year)[-2:]}"
    assert current["income"] == 300.0
    assert current["expense"] == 120.0
    assert current["balance"] == 180.0


def _days_from_now(days):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _system_category(session, name="Aluguel", type=TransactionType.EXPENSE):
    category = TransactionCategory(name=name, type=type, is_system=True, color="#ef4444")
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def test_update_rejects_blank_description(client, admin):
    transaction = _transaction(client, admin["headers"]).json()
    url = f"/api/financial/transactions/{transaction['id']}"

    response = client.put(url, json={"description": "   "}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Descrição é obrigatório"

    updated = client.put(url, json={"description": "  Aluguel de junho "}, headers=admin["headers"]).json()
    assert updated["description"] == "Aluguel de junho"


def test_categories_include_system_ones(client, admin, session):
    system = _system_category(session)
    created = client.post(
        "/api/financial/categories",
        json={"name": "Frete", "type": "EXPENSE", "color": "#000000"},
        headers=admin["headers"],
    )
    assert created.status_code == 201
    assert created.json()["tenant_id"] == admin["tenant_id"]
    client.post("/api/financial/categories", json={"name": "Comissões", "type": "INCOME"}, headers=admin["headers"])

    categories = client.get("/api/financial/categories", headers=admin["headers"]).json()
    assert [(c["type"], c["name"]) for c in categories] == [
        ("EXPENSE", "Aluguel"),
        ("EXPENSE", "Frete"),
        ("INCOME", "Comissões"),
    ]
    incomes = client.get("/api/financial/categories", params={"type": "INCOME"}, headers=admin["headers"]).json()
    assert [c["name"] for c in incomes] == ["Comissões"]

    url = f"/api/financial/categories/{system.id}"
    edit = client.put(url, json={"name": "Outro"}, headers=admin["headers"])
    assert edit.status_code == 400
    assert edit.json()["message"] == "Não é possível editar categoria do sistema"
    remove = client.delete(url, headers=admin["headers"])
    assert remove.json()["message"] == "Não é possível remover categoria do sistema"


def test_category_update_and_delete(client, admin, other_admin):
    category = client.post(
        "/api/financial/categories", json={"name": "Frete", "type": "EXPENSE"}, headers=admin["headers"]
    ).json()
    url = f"/api/financial/categories/{category['id']}"

    assert client.put(url, json={"name": "Invasor"}, headers=other_admin["headers"]).status_code == 404
    assert client.put(url, json={"name": " "}, headers=admin["headers"]).status_code == 400
    renamed = client.put(url, json={"name": "Fretes e entregas", "color": "#111111"}, headers=admin["headers"]).json()
    assert (renamed["name"], renamed["color"]) == ("Fretes e entregas", "#111111")

    transaction = _transaction(client, admin["headers"], category_id=category["id"]).json()
    assert transaction["category_id"] == category["id"]
    blocked = client.delete(url, headers=admin["headers"])
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Categoria possui transações vinculadas"

    client.delete(f"/api/financial/transactions/{transaction['id']}", headers=admin["headers"])
    assert client.delete(url, headers=admin["headers"]).json()["message"] == "Categoria removida com sucesso"


def test_transaction_category_must_be_visible(client, admin, other_admin, session):
    foreign = client.post(
        "/api/financial/categories", json={"name": "Deles", "type": "EXPENSE"}, headers=other_admin["headers"]
    ).json()
    response = _transaction(client, admin["headers"], category_id=foreign["id"])
    assert response.status_code == 404
    assert response.json()["message"] == "Categoria não encontrada"

    system = _system_category(session)
    transaction = _transaction(client, admin["headers"], category_id=system.id).json()
    assert transaction["category_id"] == system.id

    url = f"/api/financial/transactions/{transaction['id']}"
    assert client.put(url, json={"category_id": foreign["id"]}, headers=admin["headers"]).status_code == 404
    assert client.put(url, json={"category_id": None}, headers=admin["headers"]).json()["category_id"] is None

    filtered = client.get(
        "/api/financial/transactions", params={"category_id": system.id}, headers=admin["headers"]
    ).json()
    assert filtered["total"] == 0


def test_pending_groups_by_due_date(client, admin):
    _transaction(client, admin["headers"], description="Atrasada", amount=100, due_date=_days_from_now(-3))
    _transaction(client, admin["headers"], description="Hoje", amount=50, due_date=_days_from_now(0))
    _transaction(client, admin["headers"], type="INCOME", description="Próxima", amount=70, due_date=_days_from_now(3))
    _transaction(client, admin["headers"], description="Distante", amount=999, due_date=_days_from_now(20))
    _transaction(client, admin["headers"], description="Paga", amount=10, due_date=_days_from_now(-3), status="CONFIRMED")

    pending = client.get("/api/financial/pending", headers=admin["headers"]).json()
    assert (pending["overdue"]["count"], pending["overdue"]["total"]) == (1, 100.0)
    assert pending["overdue"]["items"][0]["description"] == "Atrasada"
    assert [t["description"] for t in pending["due_today"]["items"]] == ["Hoje"]
    assert (pending["upcoming"]["count"], pending["upcoming"]["total"]) == (1, 70.0)


def test_expenses_by_category(client, admin, session):
    rent = _system_category(session)
    freight = client.post(
        "/api/financial/categories", json={"name": "Frete", "type": "EXPENSE"}, headers=admin["headers"]
    ).json()
    _transaction(client, admin["headers"], amount=1500, status="CONFIRMED", category_id=rent.id)
    _transaction(client, admin["headers"], amount=80, status="CONFIRMED", category_id=freight["id"])
    _transaction(client, admin["headers"], amount=40, status="CONFIRMED", category_id=freight["id"])
    _transaction(client, admin["headers"], amount=300, status="CONFIRMED")
    _transaction(client, admin["headers"], amount=5000, category_id=rent.id)

    expenses = client.get("/api/financial/expenses-by-category", headers=admin["headers"]).json()
    assert [(e["category_name"], e["total"], e["count"]) for e in expenses] == [
        ("Aluguel", 1500.0, 1),
        ("Sem categoria", 300.0, 1),
        ("Frete", 120.0, 2),
    ]
    assert expenses[1]["category_id"] is None
    assert expenses[1]["category_color"] == "#64748b"

    future = client.get(
        "/api/financial/expenses-by-category", params={"start_date": _days_from_now(1)}, headers=admin["headers"]
    ).json()
    assert future == []


def test_financial_dashboard(client, admin):
    _transaction(client, admin["headers"], type="INCOME", description="Consultoria", amount=900, status="CONFIRMED")
    _transaction(client, admin["headers"], amount=200, status="CONFIRMED")
    _transaction(client, admin["headers"], amount=150, due_date=_days_from_now(-2))
    _transaction(client, admin["headers"], amount=50, due_date=_days_from_now(5))
    _transaction(client, admin["headers"], type="INCOME", description="A receber", amount=400, due_date=_days_from_now(5))

    data = client.get("/api/financial/dashboard", headers=admin["headers"]).json()
    assert data["current_month"] == {
        "income": 900.0,
        "expense": 200.0,
        "balance": 700.0,
        "income_growth": 0.0,
        "expense_growth": 0.0,
    }
    assert data["pending"] == {"total": 200.0, "count": 2}
    assert data["receivable"] == {"total": 400.0, "count": 1}
    assert data["overdue"] == {"total": 150.0, "count": 1}
    assert data["expenses_by_category"][0]["category_name"] == "Sem categoria"
