def _category(client, headers, **body):
    return client.post("/api/categories", json=body, headers=headers)


def test_create_and_duplicate_name(client, admin):
    created = _category(client, admin["headers"], name="Roupas", color="#ff0000")
    assert created.status_code == 201
    assert created.json()["product_count"] == 0

    duplicate = _category(client, admin["headers"], name="  roupas ")
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Categoria com este nome já existe"


def test_empty_name_is_validation_error(client, admin):
    response = _category(client, admin["headers"], name="   ")
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Nome é obrigatório"


def test_seller_cannot_create_category(client, seller):
    assert _category(client, seller["headers"], name="Acessórios").status_code == 403


def test_parent_rules(client, admin, other_admin):
    parent = _category(client, admin["headers"], name="Eletrônicos").json()
    child = _category(client, admin["headers"], name="Celulares", parent_id=parent["id"]).json()
    assert child["parent_id"] == parent["id"]

    self_parent = client.put(
        f"/api/categories/{parent['id']}", json={"parent_id": parent["id"]}, headers=admin["headers"]
    )
    assert self_parent.status_code == 400

    foreign = _category(client, other_admin["headers"], name="Outra").json()
    response = client.put(f"/api/categories/{child['id']}", json={"parent_id": foreign["id"]}, headers=admin["headers"])
    assert response.status_code == 404


def test_delete_category(client, admin, make_product):
    parent = _category(client, admin["headers"], name="Moda").json()
    child = _category(client, admin["headers"], name="Camisetas", parent_id=parent["id"]).json()

    deleted = client.delete(f"/api/categories/{parent['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/categories/{child['id']}", headers=admin["headers"]).json()["parent_id"] is None

    make_product(category_id=child["id"])
    assert client.get(f"/api/categories/{child['id']}", headers=admin["headers"]).json()["product_count"] == 1
    blocked = client.delete(f"/api/categories/{child['id']}", headers=admin["headers"])
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Não é possível remover categoria com produtos vinculados"


def test_list_is_per_tenant(client, admin, other_admin):
    _category(client, admin["headers"], name="Calçados")
    _category(client, admin["headers"], name="Bolsas")
    _category(client, other_admin["headers"], name="Outra")

    listed = client.get("/api/categories", headers=admin["headers"]).json()
    assert [c["name"] for c in listed["items"]] == ["Bolsas", "Calçados"]

    searched = client.get("/api/categories", params={"search": "bol"}, headers=admin["headers"]).json()
    assert searched["total"] == 1
