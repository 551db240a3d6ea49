def test_create_normalizes_document_and_email(client, admin, make_customer):
    customer = make_customer(cpf_cnpj="123.456.789-01", email="  Maria@Cliente.COM ")
    assert customer["cpf_cnpj"] == "12345678901"
    assert customer["email"] == "maria@cliente.com"
    assert customer["type"] == "PF"
    assert customer["points"] == 0
    assert customer["total_spent"] == 0


def test_invalid_document_length(client, admin):
    response = client.post("/api/customers", json={"name": "Fulano", "cpf_cnpj": "1234"}, headers=admin["headers"])
    assert response.status_code == 400
    assert {"field": "cpf_cnpj", "message": "CPF/CNPJ deve ter 11 ou 14 dígitos"} in response.json()["errors"]


def test_duplicate_document_in_same_tenant(client, admin, other_admin, make_customer):
    make_customer(cpf_cnpj="12.345.678/0001-90", type="PJ", name="Empresa X")
    duplicate = client.post(
        "/api/customers", json={"name": "Outra", "cpf_cnpj": "12345678000190"}, headers=admin["headers"]
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "CPF/CNPJ já cadastrado"

    other_tenant = client.post(
        "/api/customers", json={"name": "Outra", "cpf_cnpj": "12345678000190"}, headers=other_admin["headers"]
    )
    assert other_tenant.status_code == 201


def test_search_by_name_and_document(client, admin, make_customer):
    make_customer(name="Ana Souza", cpf_cnpj="11122233344", email=None)
    make_customer(name="Bruno Lima", email="bruno@cliente.com", phone="21988887777")

    by_name = client.get("/api/customers", params={"search": "souza"}, headers=admin["headers"]).json()
    assert [c["name"] for c in by_name["items"]] == ["Ana Souza"]

    by_document = client.get("/api/customers", params={"search": "222.333"}, headers=admin["headers"]).json()
    assert by_document["total"] == 1


def test_update_customer(client, admin, make_customer):
    customer = make_customer()
    response = client.put(
        f"/api/customers/{customer['id']}", json={"city": "Campinas", "state": "SP"}, headers=admin["headers"]
    )
    assert response.status_code == 200
    assert response.json()["city"] == "Campinas"

    short = client.put(f"/api/customers/{customer['id']}", json={"name": "A"}, headers=admin["headers"])
    assert short.status_code == 400


def test_points(client, admin, make_customer):
    customer = make_customer()
    url = f"/api/customers/{customer['id']}/points"

    assert client.post(url, json={"points": 50}, headers=admin["headers"]).json()["points"] == 50
    assert client.post(url, json={"points": -20}, headers=admin["headers"]).json()["points"] == 30

    too_many = client.post(url, json={"points": -31}, headers=admin["headers"])
    assert too_many.status_code == 400
    assert too_many.json()["message"] == "Pontos insuficientes"


def test_delete_without_history_removes(client, admin, make_customer):
    customer = make_customer()
    response = client.delete(f"/api/customers/{customer['id']}", headers=admin["headers"])
    assert response.json()["message"] == "Cliente removido com sucesso"
    assert client.get(f"/api/customers/{customer['id']}", headers=admin["headers"]).status_code == 404


def test_delete_with_sales_deactivates(client, admin, make_customer, make_product):
    customer = make_customer()
    product = make_product()
    client.post(
        "/api/sales",
        json={"customer_id": customer["id"], "items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
        headers=admin["headers"],
    )

    response = client.delete(f"/api/customers/{customer['id']}", headers=admin["headers"])
    assert response.json()["message"] == "Cliente desativado (possui vendas/OS vinculadas)"
    assert client.get(f"/api/customers/{customer['id']}", headers=admin["headers"]).json()["is_active"] is False


def test_history_and_top(client, admin, make_customer, make_product):
    big = make_customer(name="Cliente Grande", email="grande@cliente.com")
    small = make_customer(name="Cliente Pequeno", email="pequeno@cliente.com")
    product = make_product(stock=50)

    for customer, quantity in ((big, 5), (small, 1)):
        client.post(
            "/api/sales",
            json={
                "customer_id": customer["id"],
                "items": [{"product_id": product["id"], "quantity": quantity, "unit_price": 50}],
            },
            headers=admin["headers"],
        )
    client.post(
        "/api/service-orders",
        json={"customer_id": big["id"], "title": "Ajuste", "labor_cost": 30},
        headers=admin["headers"],
    )

    history = client.get(f"/api/customers/{big['id']}/history", headers=admin["headers"]).json()
    assert history["customer"]["total_spent"] == 250.0
    assert len(history["sales"]) == 1
    assert history["sales"][0]["payment_method"] == "CASH"
    assert history["service_orders"][0]["title"] == "Ajuste"

    top = client.get("/api/customers/top", params={"limit": 2}, headers=admin["headers"]).json()
    assert [c["name"] for c in top] == ["Cliente Grande", "Cliente Pequeno"]
