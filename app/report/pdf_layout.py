"""
Layout reutilizável para documentos PDF: cabeçalho com o nome da empresa,
título do documento, seção de informações (rótulo/valor) e tabela.
"""

from __future__ import annotations

import io

REPORT_BAR_BLUE = "#2563EB"


def _build_header_elements(header_title: str, doc, styles):
    from reportlab.lib import colors
    from reportlab.platypus import Table, TableStyle, Paragraph, Spacer
    from reportlab.lib.styles import ParagraphStyle
    from reportlab.pdfbase.pdfmetrics import stringWidth

    # Barra azul da margem esquerda até o nome; nome alinhado à direita da página
    header_font = "Helvetica-Bold"
    header_font_size = 18
    header_style = ParagraphStyle(
        name="ReportHeader",
        parent=styles["Normal"],
        fontName=header_font,
        fontSize=header_font_size,
        textColor="#111827",
    )
    title_w = min(stringWidth(header_title, header_font, header_font_size) + 8, doc.width * 0.7)
    bar_col_w = doc.width - title_w
    header_table = Table(
        [["", Paragraph(header_title, header_style)]],
        colWidths=[bar_col_w, title_w],
    )
    header_table.setStyle(
        TableStyle([
            ("LINEBELOW", (0, 0), (0, 0), 2, colors.HexColor(REPORT_BAR_BLUE)),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ("RIGHTPADDING", (1, 0), (1, 0), 0),
            ("TOPPADDING", (0, 0), (-1, -1), 0),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ])
    )
    return [header_table, Spacer(1, 10)]


def _build_title_elements(title: str, doc, styles):
    from reportlab.platypus import Table, TableStyle, Paragraph, Spacer
    from reportlab.lib.styles import ParagraphStyle

    title_style = ParagraphStyle(
        name="ReportTitle",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=14,
        textColor="#111827",
    )
    title_table = Table([[Paragraph(title, title_style)]], colWidths=[doc.width])
    title_table.setStyle(
        TableStyle([
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ])
    )
    return [title_table, Spacer(1, 6)]


def _build_info_elements(rows: list[tuple[str, str]], doc, styles):
    from reportlab.lib import colors
    from reportlab.platypus import Table, TableStyle, Paragraph, Spacer
    from reportlab.lib.styles import ParagraphStyle

    label_style = ParagraphStyle(
        name="InfoLabel",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=10,
        textColor="#111827",
    )
    value_style = ParagraphStyle(
        name="InfoValue",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=10,
        textColor="#111827",
    )
    label_col_w = doc.width * 0.25
    data = [[Paragraph(label, label_style), Paragraph(value, value_style)] for label, value in rows]
    table = Table(data, colWidths=[label_col_w, doc.width - label_col_w])
    table.setStyle(
        TableStyle([
            ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#E5E7EB")),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#9CA3AF")),
            ("LEFTPADDING", (0, 0), (-1, -1), 8),
            ("RIGHTPADDING", (0, 0), (-1, -1), 8),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ])
    )
    return [table, Spacer(1, 10)]


def _build_table_elements(headers: list[str], rows: list[list[str]], doc, styles, col_ratios: list[float] | None = None):
    from reportlab.lib import colors
    from reportlab.platypus import Table, TableStyle, Paragraph
    from reportlab.lib.styles import ParagraphStyle

    header_style = ParagraphStyle(
        name="TableHeader",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=10,
        textColor=colors.whitesmoke,
    )
    cell_style = ParagraphStyle(
        name="TableCell",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=9,
        textColor=colors.HexColor("#111827"),
    )
    data = [[Paragraph(h, header_style) for h in headers]]
    for row in rows:
        data.append([Paragraph(str(cell), cell_style) for cell in row])
    ratios = col_ratios or [1 / len(headers)] * len(headers)
    table = Table(data, colWidths=[doc.width * r for r in ratios])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(REPORT_BAR_BLUE)),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F9FAFB")]),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#E5E7EB")),
                ("LEFTPADDING", (0, 0), (-1, -1), 6),
                ("RIGHTPADDING", (0, 0), (-1, -1), 6),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    return [table]


def build_document_pdf(
    header_title: str,
    title: str,
    info_sections: list[tuple[str, list[tuple[str, str]]]] | None = None,
    headers: list[str] | None = None,
    rows: list[list[str]] | None = None,
    col_ratios: list[float] | None = None,
    footer_rows: list[tuple[str, str]] | None = None,
) -> bytes:
    """
    Gera PDF A4: cabeçalho (nome da empresa), título, seções de informações
    (cada seção = subtítulo + linhas rótulo/valor), tabela e linhas de rodapé (totais).
    """
    from reportlab.lib.pagesizes import A4
    from reportlab.platypus import SimpleDocTemplate, Spacer, Paragraph
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.lib.units import cm

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        rightMargin=1 * cm,
        leftMargin=1 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=title,
    )
    styles = getSampleStyleSheet()
    elements: list = []

    elements.extend(_build_header_elements(header_title, doc, styles))
    elements.append(Spacer(1, 4))
    elements.extend(_build_title_elements(title, doc, styles))

    for section_title, section_rows in info_sections or []:
        rows_clean = [(label, str(value)) for label, value in section_rows if value not in (None, "")]
        if not rows_clean:
            continue
        elements.append(Paragraph(section_title, styles["Heading4"]))
        elements.extend(_build_info_elements(rows_clean, doc, styles))

    if headers and rows is not None:
        elements.extend(_build_table_elements(headers, rows, doc, styles, col_ratios))
        elements.append(Spacer(1, 10))

    if footer_rows:
        elements.extend(_build_info_elements(footer_rows, doc, styles))

    doc.build(elements)
    return buf.getvalue()
