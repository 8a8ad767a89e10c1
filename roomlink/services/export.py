"""
Report rendering (CSV, Excel, PDF) for bookings, payments and complaints.

Each report is a list of ``(header, extractor)`` columns; the renderers only
know about columns, so adding a report means adding a column list.
"""

import csv
import io
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from roomlink.core.exceptions import ValidationError
from roomlink.models.booking import Booking
from roomlink.models.complaint import Complaint
from roomlink.models.enums import ComplaintStatus, PaymentStatus
from roomlink.models.payment import Payment

Column = Tuple[str, Callable[[Any], Any]]


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


BOOKING_COLUMNS: List[Column] = [
    ("Booking ID", lambda b: b.id),
    ("Guest", lambda b: (b.guest_details or {}).get("name", "")),
    ("Email", lambda b: (b.guest_details or {}).get("email", "")),
    ("Hostel ID", lambda b: b.hostel_id),
    ("Room ID", lambda b: b.room_id),
    ("Check-in", lambda b: b.check_in_date.strftime("%Y-%m-%d")),
    ("Check-out", lambda b: b.check_out_date.strftime("%Y-%m-%d")),
    ("Nights", lambda b: b.nights),
    ("Guests", lambda b: b.number_of_guests),
    ("Rooms", lambda b: b.number_of_rooms),
    ("Total", lambda b: f"{b.total_price:.2f}"),
    ("Status", lambda b: b.status.value),
    ("Payment", lambda b: b.payment_status.value),
]

PAYMENT_COLUMNS: List[Column] = [
    ("Payment ID", lambda p: p.id),
    ("Transaction ID", lambda p: p.transaction_id or ""),
    ("User ID", lambda p: p.user_id),
    ("Booking ID", lambda p: p.booking_id or ""),
    ("Provider", lambda p: p.provider.value),
    ("Amount", lambda p: f"{p.amount:.2f}"),
    ("Currency", lambda p: p.currency),
    ("Status", lambda p: p.status.value),
    ("Receipt", lambda p: p.receipt_number or ""),
    ("Refund", lambda p: p.refund_status.value),
    ("Created", lambda p: _timestamp(p.created_at)),
]

COMPLAINT_COLUMNS: List[Column] = [
    ("Complaint ID", lambda c: c.id),
    ("Title", lambda c: c.title),
    ("Category", lambda c: c.category.value),
    ("Priority", lambda c: c.priority.value),
    ("Status", lambda c: c.status.value),
    ("Hostel ID", lambda c: c.hostel_id),
    ("Filed By", lambda c: c.user_id),
    ("Assigned To", lambda c: c.handled_by or "Unassigned"),
    ("Escalated", lambda c: "yes" if c.is_escalated else "no"),
    ("Created", lambda c: _timestamp(c.created_at)),
    ("Resolved", lambda c: _timestamp(c.resolution_date)),
]

_HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)


def _rows(items: Iterable[Any], columns: Sequence[Column]) -> List[List[Any]]:
    return [[extract(item) for _, extract in columns] for item in items]


def _headers(columns: Sequence[Column]) -> List[str]:
    return [header for header, _ in columns]


def to_csv(items: Iterable[Any], columns: Sequence[Column]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(_headers(columns))
    writer.writerows(_rows(items, columns))
    return buffer.getvalue().encode("utf-8")


def to_xlsx(items: Iterable[Any], columns: Sequence[Column], title: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title

    headers = _headers(columns)
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = _BORDER

    for row in _rows(items, columns):
        sheet.append(row)

    for index, header in enumerate(headers, start=1):
        width = max([len(header)] + [len(str(c.value or "")) for c in sheet[get_column_letter(index)]])
        sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, 40)
    sheet.freeze_panes = "A2"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def to_pdf(
    items: Iterable[Any],
    columns: Sequence[Column],
    title: str,
    summary: Optional[List[str]] = None,
) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=1 * cm,
        rightMargin=1 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=title,
    )
    styles = getSampleStyleSheet()

    # The id column is long; the PDF shows only its prefix
    rows = [
        [str(value)[:8] if i == 0 else str(value) for i, value in enumerate(row)]
        for row in _rows(items, columns)
    ]
    table = Table([_headers(columns)] + rows, repeatRows=1)
    table.setStyle(
        TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 7),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F2F2F2")]),
        ])
    )

    story = [Paragraph(title, styles["Title"])]
    for line in summary or []:
        story.append(Paragraph(line, styles["Normal"]))
    story += [Spacer(1, 0.4 * cm), table]
    doc.build(story)
    return buffer.getvalue()


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_MEDIA_TYPES: Dict[str, str] = {
    "csv": "text/csv",
    "xlsx": XLSX_MEDIA_TYPE,
    "pdf": "application/pdf",
}

EXPORT_FORMATS = frozenset(_MEDIA_TYPES)


def ensure_export_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(
            f"Unsupported export format '{fmt}'",
            details={"allowed": sorted(EXPORT_FORMATS)},
        )
    return fmt


def export_filename(prefix: str, fmt: str, now) -> str:
    return f"{prefix}_{now.strftime('%Y%m%d%H%M%S')}.{fmt}"


def render(
    items: Iterable[Any],
    columns: Sequence[Column],
    fmt: str,
    title: str,
    summary: Optional[List[str]] = None,
) -> Tuple[bytes, str]:
    """Render ``items`` as ``fmt``; returns (content, media type)."""
    media_type = _MEDIA_TYPES[fmt]
    items = list(items)
    if fmt == "csv":
        return to_csv(items, columns), media_type
    if fmt == "xlsx":
        return to_xlsx(items, columns, title), media_type
    return to_pdf(items, columns, title, summary), media_type


def render_bookings(bookings: Iterable[Booking], fmt: str) -> Tuple[bytes, str]:
    return render(bookings, BOOKING_COLUMNS, fmt, "Bookings")


def payment_summary(payments: Sequence[Payment]) -> List[str]:
    completed = [p for p in payments if p.status == PaymentStatus.COMPLETED]
    revenue = sum((p.amount for p in completed), Decimal("0.00"))
    by_provider: Dict[str, Decimal] = {}
    for payment in completed:
        by_provider[payment.provider.value] = by_provider.get(payment.provider.value, Decimal("0.00")) + payment.amount

    lines = [
        f"Total revenue: {revenue:.2f}",
        f"Completed transactions: {len(completed)} of {len(payments)}",
    ]
    if completed:
        lines.append(f"Average per transaction: {revenue / len(completed):.2f}")
    lines += [f"{provider}: {amount:.2f}" for provider, amount in sorted(by_provider.items())]
    return lines


def render_payments(payments: Iterable[Payment], fmt: str) -> Tuple[bytes, str]:
    payments = list(payments)
    return render(payments, PAYMENT_COLUMNS, fmt, "Payments", payment_summary(payments))


def complaint_summary(complaints: Sequence[Complaint]) -> List[str]:
    resolved = sum(1 for c in complaints if c.status in (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED))
    by_priority: Dict[str, int] = {}
    for complaint in complaints:
        by_priority[complaint.priority.value] = by_priority.get(complaint.priority.value, 0) + 1

    lines = [
        f"Total complaints: {len(complaints)}",
        f"Resolved: {resolved}",
        f"Pending: {len(complaints) - resolved}",
    ]
    lines += [f"{priority}: {count}" for priority, count in sorted(by_priority.items())]
    return lines


def render_complaints(complaints: Iterable[Complaint], fmt: str) -> Tuple[bytes, str]:
    complaints = list(complaints)
    return render(complaints, COMPLAINT_COLUMNS, fmt, "Complaints", complaint_summary(complaints))
