from fastapi.responses import Response
from sqlalchemy.orm import Session

from docflow.database import SchemaCapabilities, get_capabilities
from docflow.models.attachment import Attachment
from docflow.models.document import GoodsReceipt, WorkReceipt
from docflow.models.enums import DocumentKind
from docflow.models.history import HistoryEntry
from docflow.models.notification import Notification
from docflow.models.user import User
from docflow.schemas.attachment import AttachmentResponse
from docflow.schemas.auth import UserResponse
from docflow.schemas.document import (
    GoodsReceiptDetail,
    GoodsReceiptResponse,
    WorkReceiptDetail,
    WorkReceiptResponse,
)
from docflow.schemas.history import HistoryEntryResponse, InspectorSummary
from docflow.schemas.notification import NotificationResponse
from docflow.services import attachment_service, history_service
from docflow.services.line_items import stored_items
from docflow.utils.filesystem import sanitize_filename


def _optional(doc, caps: SchemaCapabilities, *columns: str) -> dict:
    table = doc.__tablename__
    return {c: getattr(doc, c) for c in columns if caps.has(table, c)}


def goods_to_response(doc: GoodsReceipt, caps: SchemaCapabilities) -> dict:
    vendor = doc.vendor
    return dict(
        id=doc.id,
        number=doc.number,
        vendor_id=doc.vendor_id,
        vendor_name=vendor.full_name if vendor else None,
        vendor_email=vendor.email if vendor else None,
        contract_number=doc.contract_number,
        project_name=doc.project_name,
        contract_value=doc.contract_value,
        description=doc.description,
        document_date=doc.document_date,
        deadline=doc.deadline,
        delivery_date=doc.delivery_date,
        courier=doc.courier,
        items=stored_items(doc.items),
        inspection_result=doc.inspection_result,
        additional_notes=doc.additional_notes,
        status=doc.status,
        reviewed_at=doc.reviewed_at,
        approved_at=doc.approved_at,
        inspector_signed_at=doc.inspector_signed_at,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
        **_optional(doc, caps, "inspector_note", "approval_note", "rejection_reason"),
    )


def work_to_response(doc: WorkReceipt, caps: SchemaCapabilities) -> dict:
    vendor = doc.vendor
    return dict(
        id=doc.id,
        number=doc.number,
        vendor_id=doc.vendor_id,
        vendor_name=vendor.full_name if vendor else None,
        vendor_email=vendor.email if vendor else None,
        contract_number=doc.contract_number,
        contract_date=doc.contract_date,
        contract_value=doc.contract_value,
        work_location=doc.work_location,
        items=stored_items(doc.items),
        inspection_result=doc.inspection_result,
        remarks=doc.remarks,
        deadline=doc.deadline,
        status=doc.status,
        executive_signed_at=doc.executive_signed_at,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
        **_optional(doc, caps, "approval_note", "rejection_reason"),
    )


def goods_response(db: Session, doc: GoodsReceipt) -> GoodsReceiptResponse:
    return GoodsReceiptResponse(**goods_to_response(doc, get_capabilities(db.get_bind())))


def work_response(db: Session, doc: WorkReceipt) -> WorkReceiptResponse:
    return WorkReceiptResponse(**work_to_response(doc, get_capabilities(db.get_bind())))


def _relations(db: Session, kind: DocumentKind, doc_id: int) -> dict:
    last = history_service.last_inspector(db, kind, doc_id)
    return dict(
        timeline=[history_to_response(h) for h in history_service.timeline(db, kind, doc_id)],
        attachments=[attachment_to_response(a) for a in attachment_service.list_attachments(db, kind, doc_id)],
        last_inspector=InspectorSummary(
            actor_id=last.actor_id,
            actor_name=last.actor_name,
            action=last.action,
            acted_at=last.created_at,
        ) if last else None,
    )


def goods_detail(db: Session, doc: GoodsReceipt) -> GoodsReceiptDetail:
    caps = get_capabilities(db.get_bind())
    return GoodsReceiptDetail(
        **goods_to_response(doc, caps), **_relations(db, DocumentKind.GOODS, doc.id)
    )


def work_detail(db: Session, doc: WorkReceipt) -> WorkReceiptDetail:
    caps = get_capabilities(db.get_bind())
    return WorkReceiptDetail(
        **work_to_response(doc, caps), **_relations(db, DocumentKind.WORK, doc.id)
    )


def attachment_to_response(a: Attachment) -> AttachmentResponse:
    return AttachmentResponse(
        id=a.id,
        document_kind=a.document_kind,
        document_id=a.document_id,
        original_filename=a.original_filename,
        mime_type=a.mime_type,
        size_bytes=a.size_bytes,
        caption=a.caption,
        uploaded_by_id=a.uploaded_by_id,
        uploaded_by_name=a.uploaded_by_name,
        uploaded_at=a.uploaded_at,
    )


def history_to_response(h: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=h.id,
        document_kind=h.document_kind,
        document_id=h.document_id,
        actor_role=h.actor_role,
        actor_id=h.actor_id,
        actor_name=h.actor_name,
        action=h.action,
        note=h.note,
        status_before=h.status_before,
        status_after=h.status_after,
        created_at=h.created_at,
    )


def notification_to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.title,
        description=n.description,
        type=n.notification_type,
        document_kind=n.document_kind,
        document_id=n.document_id,
        is_read=bool(n.is_read),
        created_at=n.created_at,
    )


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        role=user.role,
        email=user.email,
        full_name=user.full_name,
        company_name=user.company_name,
        address=user.address,
        phone=user.phone,
        position=user.position,
        has_signature=bool(user.signature_path),
        created_at=user.created_at,
    )


def pdf_response(content: bytes, number: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{sanitize_filename(number)}.pdf"'},
    )
