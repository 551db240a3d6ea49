"""
Tradução de erros do ORM e da validação (pydantic) para mensagens em pt-BR.

Usado pelos exception handlers globais em app/main.py. As funções aqui são puras
(não dependem de request) para facilitar teste.
"""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy.exc import IntegrityError

FIELD_LABELS: dict[str, str] = {
    "name": "Nome",
    "email": "E-mail",
    "phone": "Telefone",
    "cpf_cnpj": "CPF/CNPJ",
    "document": "CPF/CNPJ",
    "sku": "Código SKU",
    "barcode": "Código de barras",
    "password": "Senha",
    "code": "Código",
    "title": "Título",
    "description": "Descrição",
    "address": "Endereço",
    "city": "Cidade",
    "state": "Estado",
    "zip_code": "CEP",
    "birth_date": "Data de nascimento",
    "tenant_id": "Empresa",
    "customer_id": "Cliente",
    "product_id": "Produto",
    "category_id": "Categoria",
    "account_id": "Usuário",
    "slug": "Identificador",
    "token": "Token",
    "number": "Número",
    "access_key": "Chave de acesso",
    "quantity": "Quantidade",
    "amount": "Valor",
    "unit_price": "Preço unitário",
    "role": "Perfil",
}

# Colunas de escopo que aparecem em constraints compostas, mas não identificam o campo duplicado
_SCOPE_COLUMNS = {"tenant_id", "series"}

UNIQUE_SQLSTATE = "23505"
FOREIGN_KEY_SQLSTATE = "23503"

_PG_KEY_RE = re.compile(r"Key \(([^)]+)\)")
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (.+)")


def field_label(field: str) -> str:
    if field in FIELD_LABELS:
        return FIELD_LABELS[field]
    return field.replace("_", " ").strip().capitalize() or "Campo"


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _unique_fields(message: str) -> list[str]:
    m = _PG_KEY_RE.search(message)
    if m:
        return [c.strip() for c in m.group(1).split(",")]
    m = _SQLITE_UNIQUE_RE.search(message)
    if m:
        # "product.tenant_id, product.sku" -> ["tenant_id", "sku"]
        return [c.strip().split(".")[-1] for c in m.group(1).split(",")]
    return []


def translate_integrity_error(exc: IntegrityError) -> tuple[int, str, list[dict[str, str]] | None]:
    """
    Converte IntegrityError (Postgres/psycopg ou SQLite) em (status, mensagem, errors).
    """
    message = str(getattr(exc, "orig", None) or exc)
    lowered = message.lower()
    sqlstate = _sqlstate(exc)

    if (
        sqlstate == UNIQUE_SQLSTATE
        or "unique constraint" in lowered
        or "duplicate key value" in lowered
    ):
        fields = [f for f in _unique_fields(message) if f not in _SCOPE_COLUMNS]
        if not fields:
            return 409, "Registro já está cadastrado no sistema.", None
        field = fields[-1]
        label = field_label(field)
        return (
            409,
            f"{label} já está cadastrado no sistema.",
            [{"field": field, "message": f"{label} já existe"}],
        )

    if sqlstate == FOREIGN_KEY_SQLSTATE or "foreign key constraint" in lowered:
        # Postgres: "is still referenced from table" (delete) vs "is not present in table" (insert)
        if "still referenced" in lowered or "delete" in lowered:
            return 400, "Não é possível realizar esta operação. Existem registros vinculados.", None
        return 400, "Registro relacionado não encontrado.", None

    if "not null constraint" in lowered or "null value in column" in lowered:
        return 400, "Campo obrigatório não informado.", None

    return 400, "Não foi possível salvar o registro.", None


def _validation_field(loc: tuple[Any, ...] | list[Any]) -> str:
    # loc vem como ("body", "items", 0, "quantity"); descartamos a origem e índices
    parts = [str(p) for p in loc if not isinstance(p, int) and p not in ("body", "query", "path", "header")]
    return parts[-1] if parts else "body"


def translate_validation_error(error: dict[str, Any]) -> dict[str, str]:
    """Traduz um item de RequestValidationError.errors() para {field, message}."""
    field = _validation_field(error.get("loc") or ())
    label = field_label(field)
    err_type = str(error.get("type") or "")
    ctx = error.get("ctx") or {}

    if err_type == "missing":
        message = f"{label} é obrigatório"
    elif err_type.startswith("string_type"):
        message = f"{label} deve ser um texto"
    elif err_type == "string_too_short":
        message = f"{label} deve ter no mínimo {ctx.get('min_length')} caracteres"
    elif err_type == "string_too_long":
        message = f"{label} deve ter no máximo {ctx.get('max_length')} caracteres"
    elif err_type.startswith("int_"):
        message = f"{label} deve ser um número inteiro"
    elif err_type.startswith("float_") or err_type.startswith("decimal_"):
        message = f"{label} deve ser um número"
    elif err_type.startswith("bool_"):
        message = f"{label} deve ser verdadeiro ou falso"
    elif err_type in ("greater_than_equal", "greater_than"):
        limit = ctx.get("ge", ctx.get("gt"))
        message = f"{label} deve ser no mínimo {limit}"
    elif err_type in ("less_than_equal", "less_than"):
        limit = ctx.get("le", ctx.get("lt"))
        message = f"{label} deve ser no máximo {limit}"
    elif err_type == "enum" or err_type == "literal_error":
        message = f"{label} possui um valor inválido"
    elif err_type.startswith("date") or err_type.startswith("datetime"):
        message = f"{label} deve ser uma data válida"
    elif err_type == "value_error" and "email" in str(error.get("msg", "")).lower():
        message = f"{label} deve ser um e-mail válido"
    elif err_type == "value_error":
        # Mensagens próprias dos validators (já em pt-BR)
        message = str(error.get("msg", "")).removeprefix("Value error, ")
    elif err_type.startswith("list_"):
        message = f"{label} deve ser uma lista"
    else:
        message = f"{label} possui um valor inválido"

    return {"field": field, "message": message}
