from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from docflow.database import get_db
from docflow.dependencies import get_current_actor
from docflow.models.enums import DocumentKind
from docflow.routers.responses import history_to_response, pdf_response
from docflow.schemas.document import CombinedListResponse, DocumentSummary, StatsResponse
from docflow.schemas.history import HistoryEntryResponse
from docflow.services import document_query, history_service
from docflow.services.identity_service import Actor
from docflow.services.pdf_service import render_document_pdf

router = APIRouter(
    prefix="/documents",
    tags=["documents"],
    dependencies=[Depends(get_current_actor)],
)


@router.get("/combined", response_model=CombinedListResponse)
async def combined_documents(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Goods and work receipts in one list, newest first."""
    rows, total = document_query.combined(db, actor, page, per_page, status, search)
    return CombinedListResponse(
        items=[DocumentSummary(**row) for row in rows],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=document_query.total_pages(total, per_page),
    )


@router.get("/history", response_model=list[HistoryEntryResponse])
async def history_feed(
    kind: DocumentKind | None = None,
    document_id: int | None = None,
    limit: int = Query(history_service.FEED_LIMIT, ge=1, le=history_service.FEED_LIMIT),
    db: Session = Depends(get_db),
):
    entries = history_service.feed(db, kind=kind, document_id=document_id, limit=limit)
    return [history_to_response(e) for e in entries]


@router.get("/stats", response_model=StatsResponse)
async def document_stats(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return StatsResponse(**document_query.stats(db, actor))


@router.get("/{kind}/{doc_id}/pdf")
async def document_pdf(
    kind: DocumentKind,
    doc_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    doc = document_query.get_document(db, kind, doc_id, actor)
    return pdf_response(render_document_pdf(db, kind, doc), doc.number)
