import math

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from docflow.errors import Forbidden, NotFound
from docflow.models.document import GoodsReceipt, WorkReceipt
from docflow.models.enums import DocumentKind, Role, WorkStatus
from docflow.models.user import User
from docflow.services.workflow import rules_for

SUBMITTED_GROUP = {"submitted", "reviewed", "reviewed_pic"}
APPROVED_GROUP = {"approved", "approved_direksi"}


def parse_status_filter(status: str | None) -> list[str]:
    if not status:
        return []
    return [s.strip() for s in status.split(",") if s.strip()]


def total_pages(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if total else 0


def _search_columns(model):
    if model is GoodsReceipt:
        return [model.number, model.contract_number, model.project_name]
    return [model.number, model.contract_number, model.work_location]


def _filtered(kind: DocumentKind, actor, statuses: list[str], search: str | None):
    model = rules_for(kind).model
    query = select(model)
    if actor.role is Role.VENDOR:
        query = query.where(model.vendor_id == actor.id)
    if statuses:
        query = query.where(model.status.in_(statuses))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(*(col.ilike(pattern) for col in _search_columns(model))))
    return query


def list_documents(
    db: Session,
    kind: DocumentKind,
    actor,
    page: int = 1,
    per_page: int = 10,
    status: str | None = None,
    search: str | None = None,
) -> tuple[list, int]:
    model = rules_for(kind).model
    query = _filtered(kind, actor, parse_status_filter(status), search)
    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    rows = db.execute(
        query.order_by(model.created_at.desc(), model.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    ).scalars().all()
    return list(rows), total


def get_document(db: Session, kind: DocumentKind, ref: str | int, actor):
    """Look a document up by numeric id or by document number."""
    rules = rules_for(kind)
    model = rules.model
    ref = str(ref)
    doc = db.get(model, int(ref)) if ref.isdigit() else None
    if doc is None:
        # Numbers may be all digits too; the id wins when both match.
        doc = db.execute(select(model).where(model.number == ref)).scalar_one_or_none()
    if doc is None or (actor.role is Role.VENDOR and doc.vendor_id != actor.id):
        raise NotFound(f"{rules.label} {ref} not found")
    return doc


def executive_overview(db: Session, actor) -> list[WorkReceipt]:
    if actor.role is not Role.EXECUTIVE:
        raise Forbidden("Only executives can view the decision overview")
    return list(db.execute(
        select(WorkReceipt)
        .where(WorkReceipt.status.in_([WorkStatus.APPROVED.value, WorkStatus.REJECTED.value]))
        .order_by(WorkReceipt.updated_at.desc(), WorkReceipt.id.desc())
    ).scalars())


def combined(
    db: Session,
    actor,
    page: int = 1,
    per_page: int = 10,
    status: str | None = None,
    search: str | None = None,
) -> tuple[list[dict], int]:
    statuses = parse_status_filter(status)
    summaries = []
    for kind in DocumentKind:
        model = rules_for(kind).model
        query = _filtered(kind, actor, statuses, search).add_columns(User.full_name).join(
            User, User.id == model.vendor_id
        )
        for doc, vendor_name in db.execute(query):
            summaries.append({
                "kind": kind,
                "id": doc.id,
                "number": doc.number,
                "vendor_id": doc.vendor_id,
                "vendor_name": vendor_name,
                "contract_number": doc.contract_number,
                "contract_value": doc.contract_value,
                "status": doc.status,
                "created_at": doc.created_at,
                "updated_at": doc.updated_at,
            })
    summaries.sort(key=lambda s: (s["created_at"], s["kind"].value, s["id"]), reverse=True)
    start = (page - 1) * per_page
    return summaries[start:start + per_page], len(summaries)


def _status_counts(db: Session, kind: DocumentKind, actor) -> dict[str, int]:
    model = rules_for(kind).model
    query = select(model.status, func.count(model.id)).group_by(model.status)
    if actor.role is Role.VENDOR:
        query = query.where(model.vendor_id == actor.id)
    return {status: n for status, n in db.execute(query)}


def stats(db: Session, actor) -> dict:
    if actor.role is Role.INSPECTOR:
        kinds = [DocumentKind.GOODS]
    elif actor.role is Role.EXECUTIVE:
        kinds = [DocumentKind.WORK]
    else:
        kinds = list(DocumentKind)

    counts: dict[str, int] = {}
    for kind in kinds:
        for status, n in _status_counts(db, kind, actor).items():
            counts[status] = counts.get(status, 0) + n

    result = {
        "total": sum(counts.values()),
        "draft": counts.get("draft", 0),
        "submitted": sum(counts.get(s, 0) for s in SUBMITTED_GROUP),
        "approved": sum(counts.get(s, 0) for s in APPROVED_GROUP),
        "rejected": counts.get("rejected", 0),
    }
    if actor.role is Role.EXECUTIVE:
        result["pending_work"] = sum(
            counts.get(s, 0) for s in ("draft", "submitted", "reviewed_pic")
        )
        result["approved_work"] = counts.get(WorkStatus.APPROVED.value, 0)
        result["rejected_work"] = counts.get(WorkStatus.REJECTED.value, 0)
    return result
