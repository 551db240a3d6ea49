def test_company_settings(client, admin, seller):
    company = client.get("/api/settings/company", headers=admin["headers"]).json()
    assert company["name"] == "Loja Teste"
    assert company["email"] == "admin@loja.com"

    updated = client.put(
        "/api/settings/company",
        json={"document": "12345678000190", "city": "São Paulo", "email": "Contato@Loja.com"},
        headers=admin["headers"],
    ).json()
    assert updated["city"] == "São Paulo"
    assert updated["email"] == "contato@loja.com"

    short = client.put("/api/settings/company", json={"name": "AB"}, headers=admin["headers"])
    assert short.status_code == 400
    assert client.put("/api/settings/company", json={"city": "X"}, headers=seller["headers"]).status_code == 403


def test_notification_settings_hide_secrets(client, admin):
    defaults = client.get("/api/settings/notifications", headers=admin["headers"]).json()
    assert defaults["email_enabled"] is True
    assert defaults["whatsapp_enabled"] is False
    assert defaults["has_resend_api_key"] is False

    updated = client.put(
        "/api/settings/notifications",
        json={"whatsapp_enabled": True, "resend_api_key": "re_secreta", "evolution_instance": "loja"},
        headers=admin["headers"],
    ).json()
    assert updated["whatsapp_enabled"] is True
    assert updated["has_resend_api_key"] is True
    assert "resend_api_key" not in updated

    # chave vazia não apaga a existente
    kept = client.put("/api/settings/notifications", json={"resend_api_key": ""}, headers=admin["headers"]).json()
    assert kept["has_resend_api_key"] is True


def test_permissions(client, admin, seller):
    data = client.get("/api/settings/permissions", headers=admin["headers"]).json()
    assert "financeiro" in data["modules"]
    assert {r["role"] for r in data["roles"]} == {"ADMIN", "MANAGER", "SELLER", "VIEWER"}

    check = client.get(
        "/api/settings/permissions/check", params={"module": "financeiro", "action": "view"}, headers=seller["headers"]
    ).json()
    assert check == {"module": "financeiro", "action": "view", "role": "SELLER", "allowed": False}

    body = {"roles": [{"role": "SELLER", "permissions": [{"module": "financeiro", "view": True}]}]}
    assert client.put("/api/settings/permissions", json=body, headers=seller["headers"]).status_code == 403

    updated = client.put("/api/settings/permissions", json=body, headers=admin["headers"])
    assert updated.status_code == 200
    seller_role = next(r for r in updated.json()["roles"] if r["role"] == "SELLER")
    assert seller_role["display_name"] == "Vendedor"

    check = client.get(
        "/api/settings/permissions/check", params={"module": "financeiro", "action": "view"}, headers=seller["headers"]
    ).json()
    assert check["allowed"] is True

    invalid = client.put(
        "/api/settings/permissions",
        json={"roles": [{"role": "SELLER", "permissions": [{"module": "inexistente"}]}]},
        headers=admin["headers"],
    )
    assert invalid.status_code == 400

    client.post("/api/settings/permissions/reset", headers=admin["headers"])
    check = client.get(
        "/api/settings/permissions/check", params={"module": "financeiro", "action": "view"}, headers=seller["headers"]
    ).json()
    assert check["allowed"] is False


def test_view_settings(client, seller):
    assert client.get("/api/settings/view", headers=seller["headers"]).json()["items_per_page"] == 20

    updated = client.put("/api/settings/view", json={"dark_mode": True}, headers=seller["headers"]).json()
    assert updated["dark_mode"] is True
    assert updated["default_currency"] == "BRL"

    invalid = client.put("/api/settings/view", json={"items_per_page": 3}, headers=seller["headers"])
    assert invalid.status_code == 400
    assert invalid.json()["errors"][0]["message"] == "Itens por página deve estar entre 5 e 100"


def test_general_settings(client, admin, seller):
    general = client.get("/api/settings/general", headers=admin["headers"]).json()
    assert general["auto_generate_invoice"] is True
    assert general["max_discount_percent"] == 15

    updated = client.put("/api/settings/general", json={"warranty_days": 180}, headers=admin["headers"]).json()
    assert updated["warranty_days"] == 180
    assert updated["allow_negative_stock"] is False

    assert client.put("/api/settings/general", json={"warranty_days": 1}, headers=seller["headers"]).status_code == 403
    too_high = client.put("/api/settings/general", json={"max_discount_percent": 120}, headers=admin["headers"])
    assert too_high.status_code == 400


def test_test_email(client, admin, sent_emails):
    response = client.post("/api/settings/test-email", json={}, headers=admin["headers"])
    assert response.json() == {"success": True, "message": "Email de teste enviado com sucesso"}
    assert sent_emails[-1]["to"] == "admin@loja.com"

    invalid = client.post("/api/settings/test-email", json={"email": "nao-e-email"}, headers=admin["headers"])
    assert invalid.status_code == 400
