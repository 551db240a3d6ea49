"""
Templates HTML/texto dos emails enviados pelo sistema.
Todos usam o mesmo layout (cabeçalho com o nome da empresa e rodapé automático).
"""
from __future__ import annotations

from datetime import datetime
from html import escape

from app.lib.text import ensure_utc


def _brl(value: float | None) -> str:
    formatted = f"{float(value or 0):,.2f}"
    # 1,234.56 -> 1.234,56
    return "R$ " + formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def _date_br(dt: datetime | None) -> str:
    dt = ensure_utc(dt)
    return dt.strftime("%d/%m/%Y") if dt else "-"


def _layout(title: str, company_name: str, body_html: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="pt-BR">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #2563EB; padding: 20px; border-radius: 8px 8px 0 0;">
        <h1 style="color: #ffffff; margin: 0; font-size: 22px;">{escape(company_name)}</h1>
    </div>
    <div style="padding: 20px; border: 1px solid #e5e7eb; border-top: none;">
        {body_html}
    </div>
    <div style="padding-top: 20px; font-size: 12px; color: #6c757d;">
        <p style="margin: 0;">Este é um email automático do SmartFlux ERP. Por favor, não responda este email.</p>
    </div>
</body>
</html>
    """.strip()


def _items_table(items: list[dict]) -> str:
    rows = "".join(
        f"<tr><td>{escape(str(i.get('description', '')))}</td>"
        f"<td style='text-align:center'>{i.get('quantity', 1)}</td>"
        f"<td style='text-align:right'>{_brl(i.get('total'))}</td></tr>"
        for i in items
    )
    return (
        "<table width='100%' cellpadding='6' style='border-collapse: collapse;'>"
        "<tr style='background:#f3f4f6'><th align='left'>Item</th><th>Qtd</th><th align='right'>Total</th></tr>"
        f"{rows}</table>"
    )


def invitation_email(*, tenant_name: str, inviter_name: str, role_label: str, invite_link: str,
                     expires_at: datetime) -> tuple[str, str]:
    body = f"""
        <h2 style="margin-top: 0;">Você foi convidado!</h2>
        <p><strong>{escape(inviter_name)}</strong> convidou você para fazer parte da equipe
        <strong>{escape(tenant_name)}</strong> no SmartFlux ERP.</p>
        <p>Função: <strong>{escape(role_label)}</strong><br>Válido até: <strong>{_date_br(expires_at)}</strong></p>
        <div style="text-align: center; margin: 30px 0;">
            <a href="{invite_link}" style="background-color: #2563EB; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; display: inline-block; font-weight: bold;">
                Aceitar Convite
            </a>
        </div>
        <p>Ou copie e cole este link no seu navegador:</p>
        <p style="word-break: break-all; color: #2563EB;">{invite_link}</p>
        <p style="font-size: 13px; color: #94a3b8;">Este convite expira em 7 dias. Se você não solicitou este convite, pode ignorar este email.</p>
    """
    text = (
        f"{inviter_name} convidou você para fazer parte da equipe {tenant_name} no SmartFlux ERP.\n"
        f"Função: {role_label}\nVálido até: {_date_br(expires_at)}\n\n"
        f"Para aceitar o convite, acesse:\n{invite_link}\n"
    )
    return _layout("Convite SmartFlux ERP", tenant_name, body), text


def reset_code_email(*, name: str, code: str) -> tuple[str, str]:
    body = f"""
        <p>Olá <strong>{escape(name)}</strong>,</p>
        <p>Use o código abaixo para redefinir sua senha. Ele é válido por 15 minutos.</p>
        <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px; text-align: center;">{code}</p>
        <p>Se você não solicitou a redefinição, ignore este email.</p>
    """
    text = f"Olá {name},\n\nSeu código de verificação é: {code}\nEle é válido por 15 minutos.\n"
    return _layout("Código de Verificação", "SmartFlux ERP", body), text


def invoice_email(*, company_name: str, recipient_name: str, number: str, series: str, total: float,
                  items: list[dict], access_link: str | None, warranty_expires: datetime | None) -> tuple[str, str]:
    warranty = (
        f"<p>Garantia válida até <strong>{_date_br(warranty_expires)}</strong>.</p>" if warranty_expires else ""
    )
    link = (
        f"<p>Consulte sua nota em: <a href='{access_link}'>{access_link}</a></p>" if access_link else ""
    )
    body = f"""
        <p>Olá <strong>{escape(recipient_name or 'cliente')}</strong>,</p>
        <p>Segue a sua nota fiscal nº <strong>{number}</strong> (série {escape(series)}).</p>
        {_items_table(items)}
        <p style="text-align: right; font-size: 18px;">Total: <strong>{_brl(total)}</strong></p>
        {warranty}
        {link}
        <p>Obrigado pela preferência!</p>
    """
    text = (
        f"Olá {recipient_name or 'cliente'},\n\nNota fiscal nº {number} (série {series})\n"
        f"Total: {_brl(total)}\n" + (f"Consulte: {access_link}\n" if access_link else "")
    )
    return _layout(f"Nota Fiscal {number}", company_name, body), text


def sale_confirmation_email(*, company_name: str, customer_name: str, code: str, total: float,
                            items: list[dict]) -> tuple[str, str]:
    body = f"""
        <p>Olá <strong>{escape(customer_name)}</strong>,</p>
        <p>Sua compra <strong>{escape(code)}</strong> foi confirmada.</p>
        {_items_table(items)}
        <p style="text-align: right; font-size: 18px;">Total: <strong>{_brl(total)}</strong></p>
        <p>Obrigado pela preferência!</p>
    """
    text = f"Olá {customer_name},\n\nSua compra {code} foi confirmada.\nTotal: {_brl(total)}\n"
    return _layout(f"Compra {code} confirmada", company_name, body), text


def service_order_email(*, company_name: str, customer_name: str, code: str, title: str,
                        status_label: str, total: float) -> tuple[str, str]:
    body = f"""
        <p>Olá <strong>{escape(customer_name)}</strong>,</p>
        <p>Sua ordem de serviço <strong>{escape(code)}</strong> ({escape(title)}) foi atualizada.</p>
        <p>Situação atual: <strong>{escape(status_label)}</strong></p>
        <p>Valor: <strong>{_brl(total)}</strong></p>
    """
    text = f"Olá {customer_name},\n\nSua OS {code} ({title}) foi atualizada.\nSituação: {status_label}\n"
    return _layout(f"OS {code} - {status_label}", company_name, body), text


def low_stock_email(*, company_name: str, products: list[dict]) -> tuple[str, str]:
    rows = "".join(
        f"<tr><td>{escape(p['name'])}</td><td>{escape(p['sku'])}</td>"
        f"<td style='text-align:center'>{p['stock']}</td><td style='text-align:center'>{p['min_stock']}</td></tr>"
        for p in products
    )
    body = f"""
        <h2 style="margin-top: 0; color: #b91c1c;">Alerta de estoque baixo</h2>
        <p>Os produtos abaixo atingiram o estoque mínimo:</p>
        <table width='100%' cellpadding='6' style='border-collapse: collapse;'>
            <tr style='background:#f3f4f6'><th align='left'>Produto</th><th align='left'>SKU</th><th>Estoque</th><th>Mínimo</th></tr>
            {rows}
        </table>
    """
    text = "Alerta de estoque baixo:\n" + "\n".join(
        f"- {p['name']} ({p['sku']}): {p['stock']} (mínimo {p['min_stock']})" for p in products
    )
    return _layout("Alerta de estoque baixo", company_name, body), text


def test_email(*, company_name: str) -> tuple[str, str]:
    body = """
        <h2 style="margin-top: 0;">Configuração de email funcionando!</h2>
        <p>Este é um email de teste enviado pelas configurações de notificações.</p>
    """
    return _layout("Email de teste", company_name, body), "Configuração de email funcionando!"
