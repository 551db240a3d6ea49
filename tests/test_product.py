def test_create_product_registers_initial_stock(client, admin, make_product):
    product = make_product(stock=5)
    assert product["stock"] == 5
    assert product["is_variation"] is False

    movements = client.get(f"/api/products/{product['id']}/stock-movements", headers=admin["headers"]).json()
    assert movements["total"] == 1
    movement = movements["items"][0]
    assert movement["type"] == "IN"
    assert movement["quantity"] == 5
    assert movement["previous_stock"] == 0
    assert movement["reason"] == "Estoque inicial"


def test_duplicate_sku_is_rejected(client, admin, make_product):
    make_product(sku="ABC")
    response = client.post("/api/products", json={"sku": "ABC", "name": "Outro", "sale_price": 10}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "SKU já está em uso"


def test_same_sku_in_other_tenant_is_allowed(client, other_admin, make_product):
    make_product(sku="ABC")
    response = client.post(
        "/api/products", json={"sku": "ABC", "name": "Outro", "sale_price": 10}, headers=other_admin["headers"]
    )
    assert response.status_code == 201


def test_product_from_other_tenant_is_not_found(client, other_admin, make_product):
    product = make_product()
    response = client.get(f"/api/products/{product['id']}", headers=other_admin["headers"])
    assert response.status_code == 404
    assert response.json()["message"] == "Produto não encontrado"


def test_list_search_and_low_stock(client, admin, make_product):
    make_product(sku="A1", name="Camiseta Azul", stock=10, min_stock=2)
    make_product(sku="B1", name="Boné", stock=1, min_stock=3)

    found = client.get("/api/products", params={"search": "azul"}, headers=admin["headers"]).json()
    assert found["total"] == 1
    assert found["items"][0]["sku"] == "A1"

    low = client.get("/api/products", params={"low_stock": True}, headers=admin["headers"]).json()
    assert [p["sku"] for p in low["items"]] == ["B1"]

    low_route = client.get("/api/products/low-stock", headers=admin["headers"]).json()
    assert [p["sku"] for p in low_route] == ["B1"]


def test_list_pagination(client, admin, make_product):
    for i in range(5):
        make_product(sku=f"P{i}", name=f"Produto {i}")
    page = client.get("/api/products", params={"page": 2, "limit": 2}, headers=admin["headers"]).json()
    assert page["total"] == 5
    assert page["page"] == 2
    assert page["total_pages"] == 3
    assert len(page["items"]) == 2


def test_stock_in_out_and_adjustment(client, admin, make_product):
    product = make_product(stock=10)
    url = f"/api/products/{product['id']}/stock"

    entry = client.post(url, json={"type": "IN", "quantity": 5}, headers=admin["headers"]).json()
    assert entry["previous_stock"] == 10
    assert entry["new_stock"] == 15

    out = client.post(url, json={"type": "OUT", "quantity": 3, "reason": "Avaria"}, headers=admin["headers"]).json()
    assert out["new_stock"] == 12

    adjust = client.post(url, json={"type": "ADJUSTMENT", "quantity": 7}, headers=admin["headers"]).json()
    assert adjust["new_stock"] == 7

    movements = client.get(f"/api/products/{product['id']}/stock-movements", headers=admin["headers"]).json()
    assert movements["total"] == 4
    assert movements["items"][0]["type"] == "OUT"
    assert movements["items"][0]["new_stock"] == 7


def test_stock_out_cannot_go_negative(client, admin, make_product):
    product = make_product(stock=2)
    response = client.post(
        f"/api/products/{product['id']}/stock", json={"type": "OUT", "quantity": 3}, headers=admin["headers"]
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Estoque insuficiente"
    assert client.get(f"/api/products/{product['id']}", headers=admin["headers"]).json()["stock"] == 2


def test_low_stock_after_movement_enqueues_alert(client, admin, make_product, jobs):
    product = make_product(stock=10, min_stock=3)
    jobs.clear()
    client.post(f"/api/products/{product['id']}/stock", json={"type": "OUT", "quantity": 8}, headers=admin["headers"])
    assert ("low_stock_alert_job", (admin["tenant_id"], [product["id"]])) in jobs


def test_update_product_stock_creates_movement(client, admin, make_product):
    product = make_product(stock=4)
    response = client.put(
        f"/api/products/{product['id']}", json={"name": "Camiseta Nova", "stock": 9}, headers=admin["headers"]
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Camiseta Nova"
    assert response.json()["stock"] == 9

    movements = client.get(f"/api/products/{product['id']}/stock-movements", headers=admin["headers"]).json()
    assert movements["items"][0]["reason"] == "Ajuste manual de estoque"


def test_delete_product_without_sales_removes_it(client, admin, make_product):
    product = make_product()
    response = client.delete(f"/api/products/{product['id']}", headers=admin["headers"])
    assert response.status_code == 200
    assert response.json()["message"] == "Produto removido com sucesso"
    assert client.get(f"/api/products/{product['id']}", headers=admin["headers"]).status_code == 404


def test_delete_product_with_sales_deactivates_it(client, admin, make_product):
    product = make_product()
    sale = client.post(
        "/api/sales",
        json={"items": [{"product_id": product["id"], "quantity": 1, "unit_price": 50}]},
        headers=admin["headers"],
    )
    assert sale.status_code == 201

    response = client.delete(f"/api/products/{product['id']}", headers=admin["headers"])
    assert response.status_code == 200
    assert response.json()["product"]["is_active"] is False


def test_seller_cannot_delete_product(client, seller, make_product):
    product = make_product()
    response = client.delete(f"/api/products/{product['id']}", headers=seller["headers"])
    assert response.status_code == 403


def test_variations(client, admin, make_product):
    parent = make_product(sku="CAM", name="Camiseta", stock=0)
    response = client.post(
        f"/api/products/{parent['id']}/variations",
        json=[{"color": "Azul", "size": "M", "stock": 3}, {"color": "Preta", "size": "G"}],
        headers=admin["headers"],
    )
    assert response.status_code == 201, response.text
    variations = response.json()
    assert [v["sku"] for v in variations] == ["CAM-azul-m", "CAM-preta-g"]
    assert variations[0]["name"] == "Azul - M"
    assert variations[0]["stock"] == 3
    assert variations[0]["parent_product_id"] == parent["id"]
    assert variations[0]["sale_price"] == parent["sale_price"]

    again = client.post(
        f"/api/products/{parent['id']}/variations", json=[{"color": "Azul", "size": "M"}], headers=admin["headers"]
    )
    assert again.status_code == 400
    assert again.json()["message"] == "SKU CAM-azul-m já existe"

    listed = client.get(f"/api/products/{parent['id']}/variations", headers=admin["headers"]).json()
    assert len(listed) == 2

    only_parents = client.get("/api/products", params={"include_variations": False}, headers=admin["headers"]).json()
    assert only_parents["total"] == 1

    deleted = client.delete(f"/api/products/variations/{variations[1]['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    not_variation = client.delete(f"/api/products/variations/{parent['id']}", headers=admin["headers"])
    assert not_variation.status_code == 400


def test_stats_and_top_selling(client, admin, make_product):
    a = make_product(sku="A", name="A", sale_price=10, cost_price=4, stock=10)
    make_product(sku="B", name="B", sale_price=20, cost_price=5, stock=0)
    client.post(
        "/api/sales",
        json={"items": [{"product_id": a["id"], "quantity": 3, "unit_price": 10}]},
        headers=admin["headers"],
    )

    stats = client.get("/api/products/stats", headers=admin["headers"]).json()
    assert stats["total_products"] == 2
    assert stats["out_of_stock_count"] == 1
    assert stats["stock_value"] == 70.0
    assert stats["stock_cost"] == 28.0

    top = client.get("/api/products/top-selling", headers=admin["headers"]).json()
    assert top[0]["product_id"] == a["id"]
    assert top[0]["quantity_sold"] == 3
    assert top[0]["revenue"] == 30.0


def test_update_rejects_negative_prices_and_stock(client, admin, make_product):
    product = make_product(stock=5, min_stock=1)
    url = f"/api/products/{product['id']}"

    negative_price = client.put(url, json={"sale_price": -10}, headers=admin["headers"])
    assert negative_price.status_code == 400
    assert negative_price.json()["errors"][0]["message"] == "O preço não pode ser negativo"

    negative_min = client.put(url, json={"min_stock": -3}, headers=admin["headers"])
    assert negative_min.status_code == 400
    assert negative_min.json()["errors"][0]["message"] == "O estoque não pode ser negativo"

    unchanged = client.get(url, headers=admin["headers"]).json()
    assert unchanged["sale_price"] == product["sale_price"]
    assert unchanged["min_stock"] == 1

    # null explícito em coluna obrigatória é ignorado
    kept = client.put(url, json={"sale_price": None, "name": "Camiseta Lisa"}, headers=admin["headers"])
    assert kept.status_code == 200
    assert kept.json()["sale_price"] == product["sale_price"]


def test_stock_operation_without_change_is_recorded(client, admin, make_product):
    product = make_product(stock=10)
    url = f"/api/products/{product['id']}/stock"

    adjust = client.post(url, json={"type": "ADJUSTMENT", "quantity": 10, "reason": "Inventário"}, headers=admin["headers"])
    assert adjust.status_code == 200
    assert adjust.json()["new_stock"] == 10
    client.post(url, json={"type": "IN", "quantity": 0}, headers=admin["headers"])

    movements = client.get(f"/api/products/{product['id']}/stock-movements", headers=admin["headers"]).json()
    assert [m["reason"] for m in movements["items"]] == ["Entrada de estoque", "Inventário", "Estoque inicial"]
    assert movements["items"][0]["type"] == "IN"
    assert movements["items"][1]["quantity"] == 0
    assert movements["items"][1]["previous_stock"] == movements["items"][1]["new_stock"] == 10
