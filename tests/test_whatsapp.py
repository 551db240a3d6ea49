import httpx

from app.services import whatsapp_service
from app.services.whatsapp_service import send_text

EVOLUTION = {"api_url": "https://evo.example.com/", "api_key": "chave-123", "instance": "loja"}


class FakeResponse:
    def __init__(self, status_code=201, text=""):
        self.status_code = status_code
        self.text = text


def _capture_post(monkeypatch, response=None):
    calls: list[dict] = []

    def fake_post(url, **kwargs):
        calls.append({"url": url, **kwargs})
        return response or FakeResponse()

    monkeypatch.setattr(whatsapp_service.httpx, "post", fake_post)
    return calls


def test_send_text_calls_evolution_api(monkeypatch):
    calls = _capture_post(monkeypatch)

    assert send_text("(11) 98888-7777", "Olá", **EVOLUTION) == (True, "")

    assert len(calls) == 1
    call = calls[0]
    assert call["url"] == "https://evo.example.com/message/sendText/loja"
    assert call["headers"]["apikey"] == "chave-123"
    assert call["json"] == {
        "number": "5511988887777",
        "options": {"delay": 1200},
        "textMessage": {"text": "Olá"},
    }


def test_send_text_keeps_number_with_country_code(monkeypatch):
    calls = _capture_post(monkeypatch)
    send_text("5511988887777", "Olá", **EVOLUTION)
    assert calls[0]["json"]["number"] == "5511988887777"


def test_send_text_is_simulated_without_configuration(monkeypatch):
    for name in ("EVOLUTION_API_URL", "EVOLUTION_API_KEY", "EVOLUTION_INSTANCE"):
        monkeypatch.delenv(name, raising=False)
    calls = _capture_post(monkeypatch)

    assert send_text("11988887777", "Olá") == (True, "")
    assert calls == []


def test_send_text_reads_configuration_from_environment(monkeypatch):
    monkeypatch.setenv("EVOLUTION_API_URL", "https://env.example.com")
    monkeypatch.setenv("EVOLUTION_API_KEY", "chave-env")
    monkeypatch.setenv("EVOLUTION_INSTANCE", "principal")
    calls = _capture_post(monkeypatch)

    send_text("11988887777", "Olá")
    assert calls[0]["url"] == "https://env.example.com/message/sendText/principal"
    assert calls[0]["headers"]["apikey"] == "chave-env"


def test_send_text_rejects_invalid_phone(monkeypatch):
    calls = _capture_post(monkeypatch)
    assert send_text("abc", "Olá", **EVOLUTION) == (False, "Telefone inválido para envio de WhatsApp")
    assert calls == []


def test_send_text_reports_api_error(monkeypatch):
    _capture_post(monkeypatch, FakeResponse(status_code=500, text="instance offline"))
    success, error = send_text("11988887777", "Olá", **EVOLUTION)
    assert success is False
    assert error == "Evolution API retornou 500: instance offline"


def test_send_text_reports_connection_error(monkeypatch):
    def failing_post(url, **kwargs):
        raise httpx.ConnectError("recusado")

    monkeypatch.setattr(whatsapp_service.httpx, "post", failing_post)
    success, error = send_text("11988887777", "Olá", **EVOLUTION)
    assert success is False
    assert error.startswith("Erro de conexão com o WhatsApp")
