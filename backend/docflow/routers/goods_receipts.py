from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from docflow.database import get_db
from docflow.dependencies import get_current_actor, get_dispatcher
from docflow.models.enums import DocumentKind
from docflow.routers.responses import goods_detail, goods_response, pdf_response
from docflow.schemas.document import (
    ApproveRequest,
    GoodsReceiptCreate,
    GoodsReceiptDetail,
    GoodsReceiptListResponse,
    GoodsReceiptResponse,
    GoodsReceiptUpdate,
    RejectRequest,
    ReviewRequest,
)
from docflow.services import document_query, workflow
from docflow.services.identity_service import Actor
from docflow.services.notification_service import NotificationDispatcher
from docflow.services.pdf_service import render_document_pdf

KIND = DocumentKind.GOODS

router = APIRouter(
    prefix="/bapb",
    tags=["goods-receipts"],
    dependencies=[Depends(get_current_actor)],
)


@router.get("", response_model=GoodsReceiptListResponse)
async def list_goods_receipts(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    rows, total = document_query.list_documents(db, KIND, actor, page, per_page, status, search)
    return GoodsReceiptListResponse(
        items=[goods_response(db, doc) for doc in rows],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=document_query.total_pages(total, per_page),
    )


@router.get("/download/{doc_id}")
async def download_goods_receipt(doc_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    doc = document_query.get_document(db, KIND, doc_id, actor)
    return pdf_response(render_document_pdf(db, KIND, doc), doc.number)


@router.get("/{ref}", response_model=GoodsReceiptDetail)
async def get_goods_receipt(ref: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Fetch by numeric id or document number, with timeline and attachments."""
    return goods_detail(db, document_query.get_document(db, KIND, ref, actor))


@router.post("", response_model=GoodsReceiptResponse, status_code=201)
async def create_goods_receipt(
    req: GoodsReceiptCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return goods_response(db, workflow.create_goods_receipt(db, actor, req))


@router.put("/{doc_id}", response_model=GoodsReceiptResponse)
async def update_goods_receipt(
    doc_id: int,
    req: GoodsReceiptUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return goods_response(db, workflow.update_goods_receipt(db, doc_id, actor, req))


@router.delete("/{doc_id}")
async def delete_goods_receipt(doc_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    workflow.delete_document(db, KIND, doc_id, actor)
    return {"message": "Goods receipt deleted"}


@router.patch("/{doc_id}/submit", response_model=GoodsReceiptResponse)
async def submit_goods_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.submit(db, KIND, doc_id, actor)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return goods_response(db, result.document)


@router.put("/{doc_id}/review", response_model=GoodsReceiptResponse)
async def review_goods_receipt(
    doc_id: int,
    req: ReviewRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.review(db, doc_id, actor, items=req.items, note=req.note)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return goods_response(db, result.document)


@router.put("/{doc_id}/approve", response_model=GoodsReceiptResponse)
async def approve_goods_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    req: ApproveRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.approve(db, KIND, doc_id, actor, note=req.note if req else None)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return goods_response(db, result.document)


@router.put("/{doc_id}/reject", response_model=GoodsReceiptResponse)
async def reject_goods_receipt(
    doc_id: int,
    background_tasks: BackgroundTasks,
    req: RejectRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.reject(db, KIND, doc_id, actor, reason=req.reason if req else None)
    background_tasks.add_task(dispatcher.deliver, result.pushes)
    return goods_response(db, result.document)
