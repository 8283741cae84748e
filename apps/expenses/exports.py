"""Expense report PDF for the admin review page."""

from __future__ import annotations

import re
from decimal import Decimal
from io import BytesIO

from django.http import HttpResponse
from django.utils import timezone
from django.utils.html import escape
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .models import Currency, ExpenseReport

ITEM_HEADERS = ["Qty", "Description", "Unit Price", "Line Total"]

HEADER_GREY = colors.HexColor("#f3f4f6")
RULE_GREY = colors.HexColor("#e5e7eb")


def money(value, currency: str) -> str:
    """'USD 1,234.50'"""
    return f"{currency} {Decimal(value):,.2f}"


def currency_sections(report: ExpenseReport) -> list[dict]:
    """
    One section per currency that has items or a total. USD and EUR
    sections carry the exchange rate and their NIS value.
    """
    items = list(report.items.all())
    sections = []
    for currency, total, rate, in_nis in [
        (Currency.NIS, report.total_nis, None, None),
        (Currency.USD, report.total_usd, report.exchange_rate_usd, report.total_usd_in_nis),
        (Currency.EUR, report.total_eur, report.exchange_rate_eur, report.total_eur_in_nis),
    ]:
        rows = [item for item in items if item.currency == currency]
        if not rows and not total:
            continue
        sections.append({
            "currency": str(currency),
            "items": rows,
            "total": total,
            "rate": rate,
            "total_in_nis": in_nis,
        })
    return sections


def _section_flowables(section: dict, styles) -> list:
    currency = section["currency"]
    data = [ITEM_HEADERS] + [
        [str(item.quantity), item.description, money(item.unit_price, currency), money(item.line_total, currency)]
        for item in section["items"]
    ]
    table = Table(data, colWidths=[15 * mm, None, 35 * mm, 35 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_GREY),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("LINEBELOW", (0, 1), (-1, -1), 0.5, RULE_GREY),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))

    flowables = [
        Spacer(1, 6 * mm),
        Paragraph(f"EXPENSES IN {currency}", styles["section"]),
        table,
        Paragraph(f"Total {currency}: <b>{money(section['total'], currency)}</b>", styles["right"]),
    ]
    if section["rate"] is not None:
        flowables += [
            Paragraph(f"Exchange Rate: {section['rate']}", styles["right"]),
            Paragraph(f"Total NIS: <b>{money(section['total_in_nis'], Currency.NIS)}</b>", styles["right"]),
        ]
    return flowables


def build_report_pdf(report: ExpenseReport) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Expense Report {report.month}",
    )

    sample = getSampleStyleSheet()
    styles = {
        "title": ParagraphStyle("ExpenseTitle", parent=sample["Heading1"], fontSize=20),
        "body": ParagraphStyle("ExpenseBody", parent=sample["Normal"], fontSize=10, leading=14),
        "section": ParagraphStyle("ExpenseSection", parent=sample["Heading3"], fontSize=12, spaceAfter=4),
        "right": ParagraphStyle("ExpenseRight", parent=sample["Normal"], fontSize=10, leading=14, alignment=TA_RIGHT),
        "grand": ParagraphStyle(
            "ExpenseGrand", parent=sample["Heading2"], fontSize=13, alignment=TA_RIGHT, textColor=colors.HexColor("#15803d")
        ),
    }

    requested = timezone.localtime(report.created_at) if report.created_at else timezone.localtime()
    elements = [
        Paragraph("Expense Report", styles["title"]),
        Paragraph(f"Employee: {escape(report.user_name)}", styles["body"]),
        Paragraph(f"Request Date: {requested:%B %d, %Y}", styles["body"]),
        Paragraph(f"Expense Period: {escape(report.expense_period)}", styles["body"]),
    ]
    if report.checked_by:
        elements.append(Paragraph(f"Checked By: {escape(report.checked_by)}", styles["body"]))
    if report.approved_by:
        elements.append(Paragraph(f"Approved By: {escape(report.approved_by)}", styles["body"]))

    for section in currency_sections(report):
        elements += _section_flowables(section, styles)

    elements += [
        Spacer(1, 8 * mm),
        Paragraph(f"GRAND TOTAL: {money(report.grand_total_nis, Currency.NIS)}", styles["grand"]),
        Paragraph(f"Status: {report.status.upper()}", styles["body"]),
    ]

    doc.build(elements)
    return buffer.getvalue()


def report_pdf_filename(report: ExpenseReport) -> str:
    clean = re.sub(r"\s+", "_", re.sub(r"[^\w\s]", "", report.user_name, flags=re.ASCII).strip()) or "employee"
    return f"expense_report_{clean}_{report.month}.pdf"


def report_pdf_response(report: ExpenseReport) -> HttpResponse:
    response = HttpResponse(build_report_pdf(report), content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="{report_pdf_filename(report)}"'
    return response
