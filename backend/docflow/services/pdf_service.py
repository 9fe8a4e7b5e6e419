from datetime import datetime, timezone
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from sqlalchemy.orm import Session

from docflow.database import get_capabilities
from docflow.models.enums import DocumentKind, Role
from docflow.models.user import User
from docflow.services import history_service
from docflow.services.attachment_service import signature_file
from docflow.services.line_items import stored_items

TITLES = {
    DocumentKind.GOODS: ("BERITA ACARA PEMERIKSAAN BARANG", "Goods Receipt Report"),
    DocumentKind.WORK: ("BERITA ACARA PEMERIKSAAN PEKERJAAN", "Work Receipt Report"),
}
APPROVER_ROLE = {
    DocumentKind.GOODS: (Role.INSPECTOR, "Inspector"),
    DocumentKind.WORK: (Role.EXECUTIVE, "Executive"),
}


def _latin1(text) -> str:
    """Encode to latin-1, replacing unsupported chars. fpdf built-in fonts are latin-1 only."""
    return str(text).encode("latin-1", errors="replace").decode("latin-1")


def format_currency(amount) -> str:
    """IDR without decimals, dot thousands separator: Rp 1.500.000"""
    try:
        value = round(float(amount))
    except (TypeError, ValueError):
        return "Rp 0"
    return "Rp " + f"{value:,}".replace(",", ".")


def _line(pdf: FPDF, text: str, h: float = 6):
    pdf.cell(0, h, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _field(pdf: FPDF, label: str, value):
    pdf.set_font("Helvetica", "B", 10)
    pdf.cell(45, 6, _latin1(label))
    pdf.set_font("Helvetica", "", 10)
    pdf.multi_cell(0, 6, _latin1(value if value not in (None, "") else "-"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _divider(pdf: FPDF):
    pdf.ln(2)
    pdf.set_draw_color(200, 200, 200)
    pdf.line(20, pdf.get_y(), 190, pdf.get_y())
    pdf.ln(4)


def _table(pdf: FPDF, headers: list[tuple[str, float, str]], rows: list[list]):
    pdf.set_font("Helvetica", "B", 9)
    pdf.set_fill_color(242, 242, 242)
    for title, width, align in headers:
        pdf.cell(width, 7, _latin1(title), border=1, align=align, fill=True)
    pdf.ln()
    pdf.set_font("Helvetica", "", 9)
    for row in rows:
        for (_, width, align), value in zip(headers, row):
            text = _latin1(value)
            while text and pdf.get_string_width(text) > width - 2:
                text = text[:-1]
            pdf.cell(width, 7, text, border=1, align=align)
        pdf.ln()


def _goods_body(pdf: FPDF, doc, notes: dict):
    _field(pdf, "Contract number", doc.contract_number)
    _field(pdf, "Project", doc.project_name)
    _field(pdf, "Contract value", format_currency(doc.contract_value))
    _field(pdf, "Document date", doc.document_date)
    _field(pdf, "Delivery date", doc.delivery_date)
    _field(pdf, "Courier", doc.courier)
    _field(pdf, "Deadline", doc.deadline)
    _field(pdf, "Description", doc.description)
    _divider(pdf)

    items = stored_items(doc.items)
    _table(
        pdf,
        [("No", 10, "C"), ("Item", 60, "L"), ("Qty", 18, "R"), ("Unit", 22, "L"),
         ("Inspection", 28, "L"), ("Notes", 32, "L")],
        [
            [i, it.get("name", ""), it.get("quantity", 0), it.get("unit", ""),
             it.get("inspection_status", ""), it.get("notes", "")]
            for i, it in enumerate(items, start=1)
        ],
    )
    pdf.ln(3)
    _field(pdf, "Inspection result", doc.inspection_result)
    _field(pdf, "Additional notes", doc.additional_notes)
    for label, value in notes.items():
        _field(pdf, label, value)


def _work_body(pdf: FPDF, doc, notes: dict):
    _field(pdf, "Contract number", doc.contract_number)
    _field(pdf, "Contract date", doc.contract_date)
    _field(pdf, "Contract value", format_currency(doc.contract_value))
    _field(pdf, "Work location", doc.work_location)
    _field(pdf, "Deadline", doc.deadline)
    _divider(pdf)

    items = stored_items(doc.items)
    _table(
        pdf,
        [("No", 10, "C"), ("Item", 56, "L"), ("Qty", 16, "R"), ("Unit", 20, "L"),
         ("Unit price", 34, "R"), ("Total", 34, "R")],
        [
            [i, it.get("item", ""), it.get("quantity", 0), it.get("unit", ""),
             format_currency(it.get("unit_price")), format_currency(it.get("total"))]
            for i, it in enumerate(items, start=1)
        ],
    )
    grand_total = sum(float(it.get("total") or 0) for it in items)
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(136, 7, "Total", border=1, align="R")
    pdf.cell(34, 7, _latin1(format_currency(grand_total)), border=1, align="R")
    pdf.ln(10)
    _field(pdf, "Inspection result", doc.inspection_result)
    _field(pdf, "Remarks", doc.remarks)
    for label, value in notes.items():
        _field(pdf, label, value)


def _signature_block(pdf: FPDF, vendor_name: str, approver_label: str, approver_name: str | None,
                     signed_at: str | None, signature: Path | None):
    pdf.ln(8)
    top = pdf.get_y()
    pdf.set_font("Helvetica", "B", 10)
    pdf.set_xy(20, top)
    pdf.cell(80, 6, "Vendor", align="C")
    pdf.set_xy(110, top)
    pdf.cell(80, 6, _latin1(approver_label), align="C")

    if signature is not None:
        pdf.image(str(signature), x=130, y=top + 8, w=40, h=20)

    pdf.set_font("Helvetica", "", 10)
    pdf.set_xy(20, top + 32)
    pdf.cell(80, 6, _latin1(vendor_name or "-"), align="C")
    pdf.set_xy(110, top + 32)
    pdf.cell(80, 6, _latin1(approver_name or "-"), align="C")
    if signed_at:
        pdf.set_font("Helvetica", "", 8)
        pdf.set_xy(110, top + 38)
        pdf.cell(80, 5, _latin1(f"Signed {signed_at}"), align="C")
    pdf.set_xy(20, top + 48)


def render_document_pdf(db: Session, kind: DocumentKind, doc) -> bytes:
    """Printable snapshot of a receipt: metadata, line items, notes and signatures."""
    caps = get_capabilities(db.get_bind())
    table = doc.__tablename__
    notes = {}
    for column, label in (
        ("inspector_note", "Inspector note"),
        ("approval_note", "Approval note"),
        ("rejection_reason", "Rejection reason"),
    ):
        if caps.has(table, column) and getattr(doc, column):
            notes[label] = getattr(doc, column)

    vendor = db.get(User, doc.vendor_id)
    approver_role, approver_label = APPROVER_ROLE[kind]
    entry = history_service.latest_by_role(db, kind, doc.id, approver_role)
    approver = db.get(User, entry.actor_id) if entry else None
    if kind is DocumentKind.GOODS:
        signed_at = doc.inspector_signed_at
    else:
        signed_at = doc.executive_signed_at

    title, subtitle = TITLES[kind]
    pdf = FPDF()
    pdf.set_margins(20, 20, 20)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 9, title, align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", "", 11)
    pdf.set_text_color(80, 80, 80)
    pdf.cell(0, 6, _latin1(f"{subtitle} - No. {doc.number}"), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(0, 0, 0)
    _divider(pdf)

    _field(pdf, "Vendor", vendor.company_name or vendor.full_name if vendor else None)
    if kind is DocumentKind.GOODS:
        _goods_body(pdf, doc, notes)
    else:
        _work_body(pdf, doc, notes)

    _signature_block(
        pdf,
        vendor.full_name if vendor else "-",
        approver_label,
        approver.full_name if approver else None,
        signed_at,
        signature_file(approver) if signed_at else None,
    )

    pdf.set_font("Helvetica", "I", 8)
    pdf.set_text_color(130, 130, 130)
    printed = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    _line(pdf, f"Status: {doc.status}    Printed: {printed}", h=5)
    return bytes(pdf.output())
