import os

# Banco em memória antes de importar a aplicação (app.db.session cria o engine no import)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("RESEND_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import app.model  # noqa: E402,F401
from app.db.session import get_session  # noqa: E402
from app.main import app  # noqa: E402


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def client(engine):
    def _get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _get_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def jobs(monkeypatch):
    """Jobs enfileirados pelas rotas: lista de (função, args)."""
    calls: list[tuple[str, tuple]] = []

    async def fake_enqueue_job(function: str, *args) -> bool:
        calls.append((function, args))
        return True

    for module in ("app.api.product", "app.api.sale", "app.api.service_order"):
        monkeypatch.setattr(f"{module}.enqueue_job", fake_enqueue_job)
    return calls


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Emails 'enviados' (o Resend nunca é chamado nos testes)."""
    sent: list[dict] = []

    def fake_send_email(to_email, subject, html_body, text_body=None, **kwargs):
        sent.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body})
        return True, ""

    monkeypatch.setattr("app.services.email_service.send_email", fake_send_email)
    return sent


@pytest.fixture(autouse=True)
def sent_whatsapp(monkeypatch):
    sent: list[dict] = []

    def fake_send_text(phone, text, **kwargs):
        sent.append({"phone": phone, "text": text})
        return True, ""

    monkeypatch.setattr("app.services.whatsapp_service.send_text", fake_send_text)
    return sent


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, *, email: str, tenant_name: str = "Loja Teste", name: str = "Admin Teste") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": "Senha123", "tenant_name": tenant_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def admin(client):
    data = register(client, email="admin@loja.com")
    return {
        "headers": auth_headers(data["access_token"]),
        "tenant_id": data["user"]["tenant_id"],
        "user": data["user"],
        "refresh_token": data["refresh_token"],
    }


@pytest.fixture()
def other_admin(client):
    data = register(client, email="outro@empresa.com", tenant_name="Outra Empresa")
    return {"headers": auth_headers(data["access_token"]), "tenant_id": data["user"]["tenant_id"]}


@pytest.fixture()
def seller(client, admin):
    """Vendedor da mesma empresa do admin (entra pelo tenant_id)."""
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Vendedor Teste",
            "email": "vendedor@loja.com",
            "password": "Senha123",
            "tenant_id": admin["tenant_id"],
        },
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return {"headers": auth_headers(data["access_token"]), "user": data["user"]}


@pytest.fixture()
def make_product(client, admin):
    def _make(**overrides):
        body = {"sku": "SKU-1", "name": "Camiseta", "sale_price": 50.0, "cost_price": 20.0, "stock": 10, "min_stock": 2}
        body.update(overrides)
        response = client.post("/api/products", json=body, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def make_customer(client, admin):
    def _make(**overrides):
        body = {"name": "Maria Silva", "email": "maria@cliente.com", "phone": "11999998888"}
        body.update(overrides)
        response = client.post("/api/customers", json=body, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make
