def _members(client, headers, **params):
    return client.get("/api/users", params=params, headers=headers).json()


def _membership_id(client, headers, email):
    return next(m["membership_id"] for m in _members(client, headers)["items"] if m["email"] == email)


def test_list_team(client, admin, seller, other_admin):
    team = _members(client, admin["headers"])
    assert team["total"] == 2
    assert {m["email"] for m in team["items"]} == {"admin@loja.com", "vendedor@loja.com"}

    sellers = _members(client, admin["headers"], role="SELLER")
    assert [m["name"] for m in sellers["items"]] == ["Vendedor Teste"]

    assert client.get("/api/users", headers=seller["headers"]).status_code == 403


def test_change_role(client, admin, seller):
    seller_id = _membership_id(client, admin["headers"], "vendedor@loja.com")
    response = client.patch(f"/api/users/{seller_id}", json={"role": "MANAGER"}, headers=admin["headers"])
    assert response.status_code == 200
    assert response.json()["role"] == "MANAGER"

    assert client.patch(f"/api/users/{seller_id}", json={"role": "ADMIN"}, headers=seller["headers"]).status_code == 403


def test_last_admin_is_protected(client, admin, seller):
    admin_id = _membership_id(client, admin["headers"], "admin@loja.com")
    response = client.patch(f"/api/users/{admin_id}", json={"role": "SELLER"}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "A empresa precisa de pelo menos um administrador ativo"

    seller_id = _membership_id(client, admin["headers"], "vendedor@loja.com")
    client.patch(f"/api/users/{seller_id}", json={"role": "ADMIN"}, headers=admin["headers"])
    demoted = client.patch(f"/api/users/{admin_id}", json={"role": "MANAGER"}, headers=admin["headers"])
    assert demoted.status_code == 200


def test_remove_member(client, admin, seller):
    admin_id = _membership_id(client, admin["headers"], "admin@loja.com")
    seller_id = _membership_id(client, admin["headers"], "vendedor@loja.com")

    self_remove = client.delete(f"/api/users/{admin_id}", headers=admin["headers"])
    assert self_remove.json()["message"] == "Você não pode remover a si mesmo"

    removed = client.delete(f"/api/users/{seller_id}", headers=admin["headers"])
    assert removed.json()["message"] == "Usuário removido da equipe"
    assert client.get(f"/api/users/{seller_id}", headers=admin["headers"]).json()["status"] == "INACTIVE"

    # sem membership ativo, o token do vendedor não dá mais acesso à empresa
    assert client.get("/api/products", headers=seller["headers"]).status_code == 403


def test_member_of_other_tenant_is_hidden(client, admin, other_admin):
    other_id = _membership_id(client, other_admin["headers"], "outro@empresa.com")
    assert client.get(f"/api/users/{other_id}", headers=admin["headers"]).status_code == 404


def test_inactive_admin_does_not_count_as_last_admin(client, admin, seller):
    admin_id = _membership_id(client, admin["headers"], "admin@loja.com")
    seller_id = _membership_id(client, admin["headers"], "vendedor@loja.com")
    client.patch(f"/api/users/{seller_id}", json={"role": "ADMIN"}, headers=admin["headers"])
    deactivated = client.patch(f"/api/users/{seller_id}", json={"status": "INACTIVE"}, headers=admin["headers"])
    assert deactivated.status_code == 200

    # Rebaixar um ADMIN inativo não reduz os administradores ativos
    demoted = client.patch(f"/api/users/{seller_id}", json={"role": "SELLER"}, headers=admin["headers"])
    assert demoted.status_code == 200
    assert demoted.json()["role"] == "SELLER"

    client.patch(f"/api/users/{seller_id}", json={"role": "ADMIN"}, headers=admin["headers"])
    blocked = client.patch(f"/api/users/{admin_id}", json={"status": "INACTIVE"}, headers=admin["headers"])
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "A empresa precisa de pelo menos um administrador ativo"
