def _supplier(client, headers, **overrides):
    body = {"name": "Distribuidora Sul", "cpf_cnpj": "12.345.678/0001-90", "city": "Curitiba", "state": "PR"}
    body.update(overrides)
    return client.post("/api/suppliers", json=body, headers=headers)


def test_create_and_get_supplier(client, admin):
    response = _supplier(client, admin["headers"], email=" Compras@Sul.COM ", rating=4, min_order_value=500)
    assert response.status_code == 201, response.text
    supplier = response.json()
    assert supplier["cpf_cnpj"] == "12345678000190"
    assert supplier["email"] == "compras@sul.com"
    assert supplier["type"] == "PJ"
    assert supplier["country"] == "Brasil"
    assert supplier["product_count"] == 0

    detail = client.get(f"/api/suppliers/{supplier['id']}", headers=admin["headers"]).json()
    assert detail["products"] == []
    assert detail["min_order_value"] == 500.0


def test_validation(client, admin):
    short_name = _supplier(client, admin["headers"], name="A")
    assert short_name.status_code == 400
    bad_document = _supplier(client, admin["headers"], cpf_cnpj="123")
    assert bad_document.json()["errors"][0]["message"] == "CPF/CNPJ deve ter 11 ou 14 dígitos"
    bad_rating = _supplier(client, admin["headers"], rating=9)
    assert bad_rating.json()["errors"][0]["message"] == "Avaliação deve ser de 1 a 5"
    negative = _supplier(client, admin["headers"], lead_time=-1)
    assert negative.json()["errors"][0]["message"] == "O valor não pode ser negativo"


def test_duplicate_document_conflicts(client, admin, other_admin):
    first = _supplier(client, admin["headers"]).json()
    duplicate = _supplier(client, admin["headers"], name="Outro")
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Já existe um fornecedor com este CPF/CNPJ"

    assert _supplier(client, other_admin["headers"]).status_code == 201

    second = _supplier(client, admin["headers"], name="Atacado Norte", cpf_cnpj="98765432000110").json()
    update = client.put(
        f"/api/suppliers/{second['id']}", json={"cpf_cnpj": first["cpf_cnpj"]}, headers=admin["headers"]
    )
    assert update.status_code == 409
    assert update.json()["message"] == "Já existe outro fornecedor com este CPF/CNPJ"


def test_list_filters_and_simple(client, admin):
    _supplier(client, admin["headers"])
    _supplier(client, admin["headers"], name="Atacado Norte", cpf_cnpj=None, city="Manaus", state="AM", contact_person="Joana")
    _supplier(client, admin["headers"], name="Inativo Ltda", cpf_cnpj=None, is_active=False)

    by_contact = client.get("/api/suppliers", params={"search": "joana"}, headers=admin["headers"]).json()
    assert [s["name"] for s in by_contact["items"]] == ["Atacado Norte"]
    by_document = client.get("/api/suppliers", params={"search": "12.345"}, headers=admin["headers"]).json()
    assert [s["name"] for s in by_document["items"]] == ["Distribuidora Sul"]
    by_state = client.get("/api/suppliers", params={"state": "pr"}, headers=admin["headers"]).json()
    assert by_state["total"] == 1
    inactive = client.get("/api/suppliers", params={"is_active": False}, headers=admin["headers"]).json()
    assert [s["name"] for s in inactive["items"]] == ["Inativo Ltda"]

    simple = client.get("/api/suppliers/simple", headers=admin["headers"]).json()
    assert [s["name"] for s in simple] == ["Atacado Norte", "Distribuidora Sul"]


def test_product_link_stats_and_delete(client, admin, make_product):
    supplier = _supplier(client, admin["headers"]).json()
    _supplier(client, admin["headers"], name="Sem Produtos", cpf_cnpj=None)
    make_product(supplier_id=supplier["id"])
    make_product(sku="SKU-2", name="Bermuda", supplier_id=supplier["id"])

    detail = client.get(f"/api/suppliers/{supplier['id']}", headers=admin["headers"]).json()
    assert detail["product_count"] == 2
    assert [p["name"] for p in detail["products"]] == ["Bermuda", "Camiseta"]

    stats = client.get("/api/suppliers/stats", headers=admin["headers"]).json()
    assert stats["total"] == 2
    assert stats["active"] == 2
    assert stats["with_products"] == 1
    assert stats["without_products"] == 1
    assert stats["top_by_products"] == [{"id": supplier["id"], "name": "Distribuidora Sul", "product_count": 2}]

    blocked = client.delete(f"/api/suppliers/{supplier['id']}", headers=admin["headers"])
    assert blocked.status_code == 409
    assert blocked.json()["message"] == "Não é possível excluir: 2 produto(s) vinculado(s) a este fornecedor"


def test_delete_supplier(client, admin):
    supplier = _supplier(client, admin["headers"]).json()
    response = client.delete(f"/api/suppliers/{supplier['id']}", headers=admin["headers"])
    assert response.json()["message"] == "Fornecedor excluído com sucesso"
    assert client.get(f"/api/suppliers/{supplier['id']}", headers=admin["headers"]).status_code == 404


def test_product_rejects_supplier_of_other_tenant(client, admin, other_admin, make_product):
    foreign = _supplier(client, other_admin["headers"]).json()
    response = client.post(
        "/api/products",
        json={"sku": "X-1", "name": "Boné", "sale_price": 30, "cost_price": 10, "supplier_id": foreign["id"]},
        headers=admin["headers"],
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Fornecedor não encontrado"

    product = make_product()
    update = client.put(f"/api/products/{product['id']}", json={"supplier_id": foreign["id"]}, headers=admin["headers"])
    assert update.status_code == 404


def test_seller_reads_but_cannot_write(client, admin, seller):
    supplier = _supplier(client, admin["headers"]).json()
    assert client.get("/api/suppliers", headers=seller["headers"]).status_code == 200
    assert _supplier(client, seller["headers"], name="Outro", cpf_cnpj=None).status_code == 403
    assert client.delete(f"/api/suppliers/{supplier['id']}", headers=seller["headers"]).status_code == 403
