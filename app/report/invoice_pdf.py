from __future__ import annotations

from app.lib.text import ensure_utc
from app.model.invoice import Invoice
from app.report.pdf_layout import build_document_pdf

INVOICE_TYPE_LABELS = {
    "SALE": "Venda",
    "SERVICE": "Serviço",
    "WARRANTY": "Garantia",
}

INVOICE_STATUS_LABELS = {
    "DRAFT": "Rascunho",
    "ISSUED": "Emitida",
    "SENT": "Enviada",
    "CANCELLED": "Cancelada",
}


def _brl(value: float | None) -> str:
    formatted = f"{float(value or 0):,.2f}"
    return "R$ " + formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def _date_br(dt) -> str:
    dt = ensure_utc(dt)
    return dt.strftime("%d/%m/%Y %H:%M") if dt else ""


def build_invoice_pdf(invoice: Invoice) -> bytes:
    title = f"Nota Fiscal nº {invoice.number} - Série {invoice.series}"
    if invoice.status.value == "CANCELLED":
        title += " (CANCELADA)"

    info_sections = [
        (
            "Documento",
            [
                ("Tipo", INVOICE_TYPE_LABELS.get(invoice.type.value, invoice.type.value)),
                ("Situação", INVOICE_STATUS_LABELS.get(invoice.status.value, invoice.status.value)),
                ("Emissão", _date_br(invoice.created_at)),
                ("Chave de acesso", invoice.access_key),
                ("Consulta", invoice.qr_code_data),
            ],
        ),
        (
            "Emitente",
            [
                ("Nome", invoice.issuer_name),
                ("CPF/CNPJ", invoice.issuer_document),
                ("Endereço", invoice.issuer_address),
                ("Telefone", invoice.issuer_phone),
                ("E-mail", invoice.issuer_email),
            ],
        ),
        (
            "Destinatário",
            [
                ("Nome", invoice.recipient_name or "Consumidor Final"),
                ("CPF/CNPJ", invoice.recipient_document),
                ("Endereço", invoice.recipient_address),
                ("Telefone", invoice.recipient_phone),
                ("E-mail", invoice.recipient_email),
            ],
        ),
    ]

    rows = [
        [
            item.get("description", ""),
            str(item.get("quantity", 1)),
            _brl(item.get("unit_price")),
            _brl(item.get("total")),
        ]
        for item in invoice.items or []
    ]

    footer = [
        ("Subtotal", _brl(invoice.subtotal)),
        ("Desconto", _brl(invoice.discount)),
        ("Impostos", _brl(invoice.tax)),
        ("Total", _brl(invoice.total)),
    ]
    if invoice.warranty_expires:
        footer.append(("Garantia", f"{invoice.warranty_days} dias (até {_date_br(invoice.warranty_expires)[:10]})"))
    if invoice.cancel_reason:
        footer.append(("Motivo do cancelamento", invoice.cancel_reason))

    return build_document_pdf(
        header_title=invoice.issuer_name,
        title=title,
        info_sections=info_sections,
        headers=["Descrição", "Qtd", "Valor unit.", "Total"],
        rows=rows,
        col_ratios=[0.52, 0.1, 0.19, 0.19],
        footer_rows=footer,
    )
