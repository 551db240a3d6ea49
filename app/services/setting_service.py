"""
Configurações por tenant, persistidas em `tenant.settings` (JSON).

Seções: notifications, permissions, view, general. Os dados da empresa
(company) ficam nas colunas do próprio Tenant, pois são copiados para as notas.
"""

from __future__ import annotations

import copy
from typing import Any

from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import Session

from app.model.base import utc_now
from app.model.tenant import Tenant

ACTIONS = ("view", "create", "edit", "delete", "export")

MODULES = (
    "dashboard",
    "pdv",
    "vendas",
    "produtos",
    "categorias",
    "clientes",
    "ordens-servico",
    "financeiro",
    "notas",
    "usuarios",
    "configuracoes",
)

ROLE_DISPLAY = {
    "ADMIN": ("Administrador", 1),
    "MANAGER": ("Gerente", 2),
    "SELLER": ("Vendedor", 3),
    "VIEWER": ("Visualizador", 4),
}


def role_label(role: str) -> str:
    return ROLE_DISPLAY[role][0] if role in ROLE_DISPLAY else role


# Flags por módulo na ordem de ACTIONS (1 = permitido)
_ROLE_MATRIX: dict[str, dict[str, str]] = {
    "ADMIN": {module: "11111" for module in MODULES},
    "MANAGER": {
        "dashboard": "11101",
        "pdv": "11111",
        "vendas": "11101",
        "produtos": "11111",
        "categorias": "11111",
        "clientes": "11101",
        "ordens-servico": "11101",
        "financeiro": "11101",
        "notas": "11001",
        "usuarios": "10000",
        "configuracoes": "10000",
    },
    "SELLER": {
        "dashboard": "10000",
        "pdv": "11000",
        "vendas": "11000",
        "produtos": "10000",
        "categorias": "10000",
        "clientes": "11100",
        "ordens-servico": "11100",
        "financeiro": "00000",
        "notas": "10000",
        "usuarios": "00000",
        "configuracoes": "00000",
    },
    "VIEWER": {
        "dashboard": "10000",
        "pdv": "00000",
        "vendas": "10000",
        "produtos": "10000",
        "categorias": "10000",
        "clientes": "10000",
        "ordens-servico": "10000",
        "financeiro": "10000",
        "notas": "10000",
        "usuarios": "00000",
        "configuracoes": "00000",
    },
}


def _build_default_permissions() -> list[dict[str, Any]]:
    roles = []
    for role, matrix in _ROLE_MATRIX.items():
        display_name, level = ROLE_DISPLAY[role]
        roles.append(
            {
                "role": role,
                "display_name": display_name,
                "hierarchy_level": level,
                "permissions": [
                    {"module": module, **{action: flags[i] == "1" for i, action in enumerate(ACTIONS)}}
                    for module, flags in matrix.items()
                ],
            }
        )
    return roles


DEFAULT_PERMISSIONS: list[dict[str, Any]] = _build_default_permissions()

DEFAULT_VIEW_SETTINGS: dict[str, Any] = {
    "compact_mode": False,
    "dark_mode": False,
    "items_per_page": 20,
    "show_inactive_items": False,
    "default_currency": "BRL",
    "date_format": "DD/MM/YYYY",
    "time_format": "24h",
}

DEFAULT_GENERAL_SETTINGS: dict[str, Any] = {
    "require_approval_for_discounts": False,
    "max_discount_percent": 15,
    "allow_negative_stock": False,
    "low_stock_threshold": 10,
    "auto_generate_invoice": True,
    "warranty_days": 90,
    "loyalty_points_per_real": 1,
    "loyalty_points_value": 0.1,
}

DEFAULT_NOTIFICATION_SETTINGS: dict[str, Any] = {
    "email_enabled": True,
    "whatsapp_enabled": False,
    "email_from": None,
    "resend_api_key": None,
    "evolution_api_url": None,
    "evolution_api_key": None,
    "evolution_instance": None,
}

# Nunca devolvidos pela API
SECRET_NOTIFICATION_KEYS = ("resend_api_key", "evolution_api_key")


def _settings(tenant: Tenant) -> dict[str, Any]:
    return dict(tenant.settings or {})


def _save_section(session: Session, tenant: Tenant, section: str, value: Any) -> None:
    settings = _settings(tenant)
    settings[section] = value
    tenant.settings = settings
    # JSON sem MutableDict: avisar o SQLAlchemy que o valor mudou
    flag_modified(tenant, "settings")
    tenant.updated_at = utc_now()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)


def get_notification_settings(tenant: Tenant) -> dict[str, Any]:
    return {**DEFAULT_NOTIFICATION_SETTINGS, **(_settings(tenant).get("notifications") or {})}


def public_notification_settings(tenant: Tenant) -> dict[str, Any]:
    current = get_notification_settings(tenant)
    public = {k: v for k, v in current.items() if k not in SECRET_NOTIFICATION_KEYS}
    for key in SECRET_NOTIFICATION_KEYS:
        public[f"has_{key}"] = bool(current.get(key))
    return public


def update_notification_settings(session: Session, tenant: Tenant, data: dict[str, Any]) -> dict[str, Any]:
    current = get_notification_settings(tenant)
    for key, value in data.items():
        if key in SECRET_NOTIFICATION_KEYS and not value:
            # Segredo só é trocado quando informado
            continue
        current[key] = value
    _save_section(session, tenant, "notifications", current)
    return public_notification_settings(tenant)


def get_permissions(tenant: Tenant) -> list[dict[str, Any]]:
    return _settings(tenant).get("permissions") or copy.deepcopy(DEFAULT_PERMISSIONS)


def update_permissions(session: Session, tenant: Tenant, roles: list[dict[str, Any]]) -> list[dict[str, Any]]:
    _save_section(session, tenant, "permissions", roles)
    return roles


def reset_permissions(session: Session, tenant: Tenant) -> list[dict[str, Any]]:
    defaults = copy.deepcopy(DEFAULT_PERMISSIONS)
    _save_section(session, tenant, "permissions", defaults)
    return defaults


def check_permission(tenant: Tenant, role: str, module: str, action: str) -> bool:
    role_permissions = next((p for p in get_permissions(tenant) if p.get("role") == role), None)
    if role_permissions is None:
        role_permissions = next((p for p in DEFAULT_PERMISSIONS if p["role"] == role), None)
    if not role_permissions:
        return False
    module_permission = next(
        (p for p in role_permissions.get("permissions", []) if p.get("module") == module), None
    )
    if not module_permission:
        return False
    return module_permission.get(action) is True


def get_view_settings(tenant: Tenant) -> dict[str, Any]:
    return {**DEFAULT_VIEW_SETTINGS, **(_settings(tenant).get("view") or {})}


def update_view_settings(session: Session, tenant: Tenant, data: dict[str, Any]) -> dict[str, Any]:
    merged = {**get_view_settings(tenant), **data}
    _save_section(session, tenant, "view", merged)
    return merged


def get_general_settings(tenant: Tenant) -> dict[str, Any]:
    return {**DEFAULT_GENERAL_SETTINGS, **(_settings(tenant).get("general") or {})}


def update_general_settings(session: Session, tenant: Tenant, data: dict[str, Any]) -> dict[str, Any]:
    merged = {**get_general_settings(tenant), **data}
    _save_section(session, tenant, "general", merged)
    return merged
