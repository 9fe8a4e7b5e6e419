from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from docflow.database import get_db
from docflow.dependencies import get_current_actor, get_dispatcher, require_role
from docflow.models.enums import DocumentKind, Role
from docflow.routers.responses import pdf_response, work_detail, work_response
from docflow.schemas.document import (
    ApproveRequest,
    RejectRequest,
    WorkReceiptCreate,
    WorkReceiptDetail,
    WorkReceiptListResponse,
    WorkReceiptResponse,
    WorkReceiptUpdate,
)
from docflow.services import document_query, workflow
from docflow.services.identity_service import Actor
from docflow.services.notification_service import NotificationDispatcher
from docflow.services.pdf_service import render_document_pdf

KIND = DocumentKind.WORK

router = APIRouter(
    prefix="/bapp",
    tags=["work-receipts"],
    dependencies=[Depends(get_current_actor)],
)


@router.get("", response_model=WorkReceiptListResponse)
async def list_work_receipts(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    rows, total = document_query.list_documents(db, KIND, actor, page, per_page, status, search)
    return WorkReceiptListResponse(
        items=[work_response(db, doc) for doc in rows],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=document_query.total_pages(total, per_page),
    )


@router.get("/overview-direksi", response_model=list[WorkReceiptResponse])
async def executive_overview(actor: Actor = Depends(require_role(Role.EXECUTIVE)), db: Session = Depends(get_db)):
    """Work receipts the executive has already decided on, latest first."""
    return [work_response(db, doc) for doc in document_query.executive_overview(db, actor)]


@router.get("/download/{doc_id}")
async def download_work_receipt(doc_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    doc = document_query.get_document(db, KIND, doc_id, actor)
    return pdf_response(render_document_pdf(db, KIND, doc), doc.number)


@router.get("/{ref}", response_model=WorkReceiptDetail)
async def get_work_receipt(ref: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return work_detail(db, document_query.get_document(db, KIND, ref, actor))


@router.post("", response_model=WorkReceiptResponse, status_code=201)
async def create_work_receipt(
    req: WorkReceiptCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return work_response(db, workflow.create_work_receipt(db, actor, req))


@router.put("/{doc_id}", response_model=WorkReceiptResponse)
async def update_work_receipt(
    doc_id: int,
    req: WorkReceiptUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return work_response(db, workflow.update_work_receipt(db, doc_id, actor, req))


@router.delete("/{doc_id}")
async def delete_work_receipt(doc_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    workflow.delete_document(db, KIND, doc_id, actor)
    return {"message": "Work receipt deleted"}


@router.patch("/{doc_id}/submit", response_model=WorkReceiptResponse)
async def submit_work_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.submit(db, KIND, doc_id, actor)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return work_response(db, result.document)


@router.put("/{doc_id}/approve-direksi", response_model=WorkReceiptResponse)
async def approve_work_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    req: ApproveRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.approve(db, KIND, doc_id, actor, note=req.note if req else None)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return work_response(db, result.document)


@router.put("/{doc_id}/reject", response_model=WorkReceiptResponse)
async def reject_work_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    req: RejectRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.reject(db, KIND, doc_id, actor, reason=req.reason if req else None)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return work_response(db, result.document)
