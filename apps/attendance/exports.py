"""Monthly shift exports: the payroll spreadsheet and the employee PDF report."""

from __future__ import annotations

import calendar
import re
from io import BytesIO

from django.http import HttpResponse
from django.utils import timezone
from django.utils.html import escape
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from apps.core.months import format_duration, format_minutes, month_key

HEADERS = ["Employee", "Date", "Check In", "Check Out", "Break (min)", "Net Duration", "Notes", "Department"]

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _clock(value) -> str:
    return timezone.localtime(value).strftime("%H:%M") if value else "-"


def shift_rows(shifts) -> list[list]:
    """One row per shift. The employee column shows the user's current name."""
    rows = []
    for shift in shifts:
        user = shift.user
        rows.append([
            user.name if user else shift.user_name,
            shift.date.strftime("%d/%m/%Y"),
            _clock(shift.check_in),
            _clock(shift.check_out),
            shift.break_minutes or "",
            format_minutes(shift.duration),
            shift.note,
            user.department if user else "",
        ])
    return rows


def summary(shifts) -> tuple[int, str]:
    """(working days, total hours). A working day is a distinct (user, date)."""
    days = len({(s.user_id, s.date) for s in shifts})
    return days, format_minutes(sum(s.duration for s in shifts))


def build_workbook(shifts, year: int, month: int) -> Workbook:
    shifts = list(shifts)

    wb = Workbook()
    ws = wb.active
    ws.title = month_key(year, month)

    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in shift_rows(shifts):
        ws.append(row)

    days, hours = summary(shifts)
    ws.append([])
    ws.append(["Summary"])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)
    ws.append(["Total Working Days", days])
    ws.append(["Total Working Hours", hours])

    for col in range(1, len(HEADERS) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18
    ws.column_dimensions[get_column_letter(7)].width = 40

    return wb


def shifts_xlsx_response(shifts, year: int, month: int) -> HttpResponse:
    bio = BytesIO()
    build_workbook(shifts, year, month).save(bio)
    bio.seek(0)

    response = HttpResponse(bio.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = f'attachment; filename="shifts_{month_key(year, month)}.xlsx"'
    return response


# =============================================================================
# Employee attendance PDF
# =============================================================================

PDF_HEADERS = ["Date", "Day", "Check In", "Check Out", "Duration", "Notes"]

HEADER_BLUE = colors.HexColor("#667eea")
ROW_TINT = colors.HexColor("#f5f7ff")

# Helvetica has no Hebrew glyphs
_HEBREW = re.compile(r"[\u0590-\u05FF]")


def pdf_note(note: str) -> str:
    return _HEBREW.sub("", note or "").strip() or "-"


def pdf_rows(shifts) -> list[list[str]]:
    """Table rows, newest date first."""
    rows = []
    for shift in sorted(shifts, key=lambda s: s.date, reverse=True):
        rows.append([
            shift.date.strftime("%d/%m/%Y"),
            shift.date.strftime("%a"),
            _clock(shift.check_in),
            _clock(shift.check_out),
            format_duration(shift.duration),
            pdf_note(shift.note),
        ])
    return rows


def build_attendance_pdf(shifts, employee_name: str, year: int, month: int) -> bytes:
    """Attendance report of one employee for one month."""
    shifts = list(shifts)
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=f"Attendance Report {month_key(year, month)}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Heading1"], alignment=TA_CENTER, fontSize=20)
    centered = ParagraphStyle("Centered", parent=styles["Normal"], alignment=TA_CENTER, fontSize=13, leading=18)
    total_style = ParagraphStyle("Total", parent=styles["Heading2"], alignment=TA_CENTER, fontSize=14)
    footer_style = ParagraphStyle("Footer", parent=styles["Normal"], alignment=TA_CENTER, fontSize=9, textColor=colors.grey)

    elements = [
        Paragraph("Attendance Report", title_style),
        Paragraph(f"Employee: {escape(employee_name)}", centered),
        Paragraph(f"Month: {calendar.month_name[month]} {year}", centered),
        Spacer(1, 8 * mm),
    ]

    table = Table(
        [PDF_HEADERS] + pdf_rows(shifts),
        colWidths=[28 * mm, 18 * mm, 22 * mm, 22 * mm, 26 * mm, None],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BLUE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_TINT]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
    ]))
    elements.append(table)

    total = sum(s.duration for s in shifts)
    elements += [
        Spacer(1, 6 * mm),
        Paragraph(f"Total: {total // 60} hours and {total % 60} minutes", total_style),
        Paragraph(f"Generated on: {timezone.localdate():%d/%m/%Y}", footer_style),
    ]

    doc.build(elements)
    return buffer.getvalue()


def pdf_filename(employee_name: str, year: int, month: int) -> str:
    clean = re.sub(r"\s+", "_", re.sub(r"[^\w\s]", "", employee_name, flags=re.ASCII).strip()) or "employee"
    return f"attendance_{clean}_{calendar.month_name[month]}_{year}.pdf"


def shifts_pdf_response(shifts, employee_name: str, year: int, month: int) -> HttpResponse:
    response = HttpResponse(build_attendance_pdf(shifts, employee_name, year, month), content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="{pdf_filename(employee_name, year, month)}"'
    return response
