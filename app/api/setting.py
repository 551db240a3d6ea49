from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlmodel import Session

from app.auth.dependencies import get_current_membership, get_current_tenant, require_role
from app.db.session import get_session
from app.lib.text import normalize_email
from app.model.base import utc_now
from app.model.membership import Membership
from app.model.tenant import Tenant
from app.services import email_template, setting_service
from app.services.notification_service import send_logged_email

router = APIRouter(prefix="/settings", tags=["Settings"])


class CompanySettings(PydanticBaseModel):
    name: str
    document: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    logo: str | None = None

    class Config:
        from_attributes = True


class CompanySettingsUpdate(PydanticBaseModel):
    name: str | None = None
    document: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    logo: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Nome deve ter no mínimo 3 caracteres")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return normalize_email(v)


class NotificationSettingsUpdate(PydanticBaseModel):
    email_enabled: bool | None = None
    whatsapp_enabled: bool | None = None
    email_from: str | None = None
    resend_api_key: str | None = None
    evolution_api_url: str | None = None
    evolution_api_key: str | None = None
    evolution_instance: str | None = None


class ModulePermission(PydanticBaseModel):
    module: str
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    export: bool = False

    @field_validator("module")
    @classmethod
    def validate_module(cls, v: str) -> str:
        if v not in setting_service.MODULES:
            raise ValueError(f"Módulo inválido: {v}")
        return v


class RolePermissions(PydanticBaseModel):
    role: str
    display_name: str | None = None
    hierarchy_level: int | None = None
    permissions: list[ModulePermission]


class PermissionsUpdate(PydanticBaseModel):
    roles: list[RolePermissions]


class PermissionCheckResponse(PydanticBaseModel):
    module: str
    action: str
    role: str
    allowed: bool


class ViewSettingsUpdate(PydanticBaseModel):
    compact_mode: bool | None = None
    dark_mode: bool | None = None
    items_per_page: int | None = None
    show_inactive_items: bool | None = None
    default_currency: str | None = None
    date_format: str | None = None
    time_format: str | None = None

    @field_validator("items_per_page")
    @classmethod
    def validate_items_per_page(cls, v: int | None) -> int | None:
        if v is not None and (v < 5 or v > 100):
            raise ValueError("Itens por página deve estar entre 5 e 100")
        return v


class GeneralSettingsUpdate(PydanticBaseModel):
    require_approval_for_discounts: bool | None = None
    max_discount_percent: float | None = None
    allow_negative_stock: bool | None = None
    low_stock_threshold: int | None = None
    auto_generate_invoice: bool | None = None
    warranty_days: int | None = None
    loyalty_points_per_real: float | None = None
    loyalty_points_value: float | None = None

    @field_validator("max_discount_percent")
    @classmethod
    def validate_percent(cls, v: float | None) -> float | None:
        if v is not None and (v < 0 or v > 100):
            raise ValueError("Desconto máximo deve estar entre 0 e 100")
        return v


class TestEmailRequest(PydanticBaseModel):
    email: str | None = None


def _set_only(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@router.get("/company", response_model=CompanySettings)
def get_company(tenant: Tenant = Depends(get_current_tenant)):
    return tenant


@router.put("/company", response_model=CompanySettings)
def update_company(
    body: CompanySettingsUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    for key, value in body.model_dump(exclude_unset=True).items():
        if key == "name" and value is None:
            continue
        setattr(tenant, key, value)
    tenant.updated_at = utc_now()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@router.get("/notifications")
def get_notifications(tenant: Tenant = Depends(get_current_tenant)):
    """Configurações de notificação; chaves secretas só aparecem como has_*."""
    return setting_service.public_notification_settings(tenant)


@router.put("/notifications")
def update_notifications(
    body: NotificationSettingsUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    return setting_service.update_notification_settings(session, tenant, _set_only(body.model_dump()))


@router.get("/permissions")
def get_permissions(tenant: Tenant = Depends(get_current_tenant)):
    return {
        "modules": list(setting_service.MODULES),
        "actions": list(setting_service.ACTIONS),
        "roles": setting_service.get_permissions(tenant),
    }


@router.get("/permissions/check", response_model=PermissionCheckResponse)
def check_permission(
    module: str = Query(...),
    action: str = Query(...),
    membership: Membership = Depends(get_current_membership),
    tenant: Tenant = Depends(get_current_tenant),
):
    role = membership.role.value
    return PermissionCheckResponse(
        module=module,
        action=action,
        role=role,
        allowed=setting_service.check_permission(tenant, role, module, action),
    )


@router.put("/permissions")
def update_permissions(
    body: PermissionsUpdate,
    membership: Membership = Depends(get_current_membership),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    if membership.role.value != "ADMIN":
        raise HTTPException(status_code=403, detail="Apenas administradores podem alterar permissões")

    current = {p["role"]: p for p in setting_service.get_permissions(tenant)}
    for role_data in body.roles:
        if role_data.role not in setting_service.ROLE_DISPLAY:
            raise HTTPException(status_code=400, detail=f"Perfil inválido: {role_data.role}")
        base = current.get(role_data.role, {"role": role_data.role})
        current[role_data.role] = {
            "role": role_data.role,
            "display_name": role_data.display_name or base.get("display_name") or setting_service.role_label(role_data.role),
            "hierarchy_level": role_data.hierarchy_level if role_data.hierarchy_level is not None else base.get("hierarchy_level"),
            "permissions": [p.model_dump() for p in role_data.permissions],
        }
    roles = setting_service.update_permissions(session, tenant, list(current.values()))
    return {"message": "Permissões atualizadas com sucesso", "roles": roles}


@router.post("/permissions/reset")
def reset_permissions(
    membership: Membership = Depends(get_current_membership),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    if membership.role.value != "ADMIN":
        raise HTTPException(status_code=403, detail="Apenas administradores podem alterar permissões")
    roles = setting_service.reset_permissions(session, tenant)
    return {"message": "Permissões restauradas para o padrão", "roles": roles}


@router.get("/view")
def get_view(tenant: Tenant = Depends(get_current_tenant)):
    return setting_service.get_view_settings(tenant)


@router.put("/view")
def update_view(
    body: ViewSettingsUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    return setting_service.update_view_settings(session, tenant, _set_only(body.model_dump()))


@router.get("/general")
def get_general(tenant: Tenant = Depends(get_current_tenant)):
    return setting_service.get_general_settings(tenant)


@router.put("/general")
def update_general(
    body: GeneralSettingsUpdate,
    membership: Membership = Depends(get_current_membership),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    if membership.role.value not in ("ADMIN", "MANAGER"):
        raise HTTPException(status_code=403, detail="Sem permissão para alterar configurações gerais")
    return setting_service.update_general_settings(session, tenant, _set_only(body.model_dump()))


@router.post("/test-email")
def send_test_email(
    body: TestEmailRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    try:
        to_email = normalize_email(body.email) if body.email else tenant.email
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not to_email:
        raise HTTPException(status_code=400, detail="Informe um email ou cadastre o email da empresa")
    html, text = email_template.test_email(company_name=tenant.name)
    log = send_logged_email(
        session,
        tenant,
        to_email=to_email,
        subject="Email de teste - SmartFlux ERP",
        html=html,
        text=text,
        extra={"test": True},
    )
    success = log.status.value == "SENT"
    return {
        "success": success,
        "message": "Email de teste enviado com sucesso" if success else (log.error_msg or "Falha ao enviar email de teste"),
    }
