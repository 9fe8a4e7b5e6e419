"""
Lifecycle of goods receipts (bapb) and work receipts (bapp).

Goods receipt:  draft -> submitted -> reviewed -> approved | rejected
Work receipt:   draft | submitted | reviewed_pic -> approved_direksi | rejected

Every status change runs in one transaction: the row is re-read under a lock,
its status is compared against the transition's sources, the update itself is
guarded by the same status condition, and the history entry and notification
rows are written before commit. Push messages are returned to the caller and
delivered after commit.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow.database import OPTIONAL_COLUMNS, get_capabilities, transaction
from docflow.errors import Conflict, Forbidden, InvalidState, NotFound, PreconditionFailed, ValidationFailed
from docflow.models.document import GoodsReceipt, WorkReceipt
from docflow.models.enums import DocumentKind, GoodsStatus, Role, WorkStatus
from docflow.models.user import User
from docflow.schemas.document import (
    GoodsReceiptCreate,
    GoodsReceiptUpdate,
    WorkReceiptCreate,
    WorkReceiptUpdate,
)
from docflow.services import attachment_service, history_service
from docflow.services.line_items import parse_goods_items, parse_work_items
from docflow.services.notification_service import PushMessage, notify
from docflow.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

DRAFT = "draft"


@dataclass(frozen=True)
class Transition:
    action: str
    role: Role
    sources: frozenset[str]
    target: str
    owner_only: bool = False


@dataclass(frozen=True)
class KindRules:
    kind: DocumentKind
    model: type
    label: str
    transitions: dict[str, Transition]

    @property
    def table(self) -> str:
        return self.model.__tablename__


_WORK_DECIDABLE = frozenset({WorkStatus.DRAFT.value, WorkStatus.SUBMITTED.value, WorkStatus.REVIEWED_PIC.value})

RULES = {
    DocumentKind.GOODS: KindRules(
        kind=DocumentKind.GOODS,
        model=GoodsReceipt,
        label="Goods receipt",
        transitions={
            "submit": Transition("submitted", Role.VENDOR, frozenset({GoodsStatus.DRAFT.value}), GoodsStatus.SUBMITTED.value, owner_only=True),
            "review": Transition("reviewed", Role.INSPECTOR, frozenset({GoodsStatus.SUBMITTED.value}), GoodsStatus.REVIEWED.value),
            "approve": Transition("approved", Role.INSPECTOR, frozenset({GoodsStatus.REVIEWED.value}), GoodsStatus.APPROVED.value),
            "reject": Transition("rejected", Role.INSPECTOR, frozenset({GoodsStatus.REVIEWED.value}), GoodsStatus.REJECTED.value),
        },
    ),
    DocumentKind.WORK: KindRules(
        kind=DocumentKind.WORK,
        model=WorkReceipt,
        label="Work receipt",
        transitions={
            "submit": Transition("submitted", Role.VENDOR, frozenset({WorkStatus.DRAFT.value}), WorkStatus.SUBMITTED.value, owner_only=True),
            "approve": Transition("approved", Role.EXECUTIVE, _WORK_DECIDABLE, WorkStatus.APPROVED.value),
            "reject": Transition("rejected", Role.EXECUTIVE, _WORK_DECIDABLE, WorkStatus.REJECTED.value),
        },
    ),
}


@dataclass
class TransitionResult:
    document: Any
    pushes: list[PushMessage] = field(default_factory=list)


def rules_for(kind: DocumentKind) -> KindRules:
    return RULES[kind]


def _require_vendor(actor, rules: KindRules, verb: str):
    if actor.role is not Role.VENDOR:
        raise Forbidden(f"Only vendors can {verb} a {rules.label.lower()}")


def _authorize(actor, rules: KindRules, transition: Transition):
    if actor.role is not transition.role:
        raise Forbidden(
            f"Role '{actor.role.value}' cannot perform '{transition.action}' on a {rules.label.lower()}"
        )


def _lock(db: Session, rules: KindRules, doc_id: int, actor, owner_only: bool):
    model = rules.model
    query = select(model).where(model.id == doc_id)
    if owner_only:
        query = query.where(model.vendor_id == actor.id)
    doc = db.execute(
        query.with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if doc is None:
        raise NotFound(f"{rules.label} #{doc_id} not found")
    return doc


def _check_source(rules: KindRules, transition: Transition, status: str):
    if status not in transition.sources:
        raise InvalidState(
            f"{rules.label} is '{status}'; '{transition.action}' requires "
            f"{', '.join(sorted(transition.sources))}",
            current_status=status,
        )


def _supported(db: Session, rules: KindRules, values: dict) -> dict:
    """Drop optional columns the connected schema does not have."""
    caps = get_capabilities(db.get_bind())
    optional = OPTIONAL_COLUMNS.get(rules.table, ())
    return {k: v for k, v in values.items() if k not in optional or caps.has(rules.table, k)}


def _guarded_update(db: Session, rules: KindRules, doc, sources, values: dict):
    model = rules.model
    result = db.execute(
        update(model)
        .where(model.id == doc.id, model.status.in_(sorted(sources)))
        .values(**_supported(db, rules, values))
    )
    if result.rowcount != 1:
        current = db.execute(select(model.status).where(model.id == doc.id)).scalar_one_or_none()
        raise InvalidState(
            f"{rules.label} #{doc.id} changed concurrently (current status: {current})",
            current_status=current,
        )


def _run(
    db: Session,
    kind: DocumentKind,
    action: str,
    doc_id: int,
    actor,
    fields: dict | None = None,
    note: str | None = None,
    guard: Callable[[Session, Any], None] | None = None,
    notifications: Callable[[Session, Any], list[PushMessage]] | None = None,
) -> TransitionResult:
    rules = rules_for(kind)
    transition = rules.transitions[action]
    _authorize(actor, rules, transition)
    get_capabilities(db.get_bind())

    with transaction(db):
        doc = _lock(db, rules, doc_id, actor, transition.owner_only)
        before = doc.status
        _check_source(rules, transition, before)
        if guard is not None:
            guard(db, doc)
        _guarded_update(
            db, rules, doc, transition.sources,
            {"status": transition.target, "updated_at": utc_now(), **(fields or {})},
        )
        history_service.record(
            db, kind, doc.id, actor, transition.action, before, transition.target, note=note,
        )
        pushes = notifications(db, doc) if notifications is not None else []

    logger.info(
        "%s #%s: %s -> %s by %s #%s",
        rules.label, doc_id, before, transition.target, actor.role.value, actor.id,
    )
    return TransitionResult(document=doc, pushes=pushes)


# Create / update / delete


def _is_number_conflict(exc: IntegrityError, table: str) -> bool:
    """True when the violated constraint is the per-kind unique document number."""
    message = str(exc.orig)
    return f"{table}.number" in message or f"uq_{table}_number" in message


def _create(db: Session, kind: DocumentKind, actor, values: dict):
    rules = rules_for(kind)
    _require_vendor(actor, rules, "create")
    model = rules.model
    now = utc_now()
    values = {**values, "vendor_id": actor.id, "status": DRAFT, "created_at": now, "updated_at": now}
    try:
        with transaction(db):
            doc_id = db.execute(insert(model).values(**values).returning(model.id)).scalar_one()
            history_service.record(db, kind, doc_id, actor, "created", None, DRAFT)
    except IntegrityError as exc:
        if not _is_number_conflict(exc, rules.table):
            raise
        raise Conflict(f"Document number {values['number']} is already in use")
    logger.info("%s #%s (%s) created by vendor #%s", rules.label, doc_id, values["number"], actor.id)
    return db.get(model, doc_id)


def create_goods_receipt(db: Session, actor, req: GoodsReceiptCreate) -> GoodsReceipt:
    values = req.model_dump(exclude={"items"})
    values["items"] = parse_goods_items(req.items)
    return _create(db, DocumentKind.GOODS, actor, values)


def create_work_receipt(db: Session, actor, req: WorkReceiptCreate) -> WorkReceipt:
    values = req.model_dump(exclude={"items"})
    values["items"] = parse_work_items(req.items)
    return _create(db, DocumentKind.WORK, actor, values)


def _update(db: Session, kind: DocumentKind, doc_id: int, actor, values: dict):
    rules = rules_for(kind)
    _require_vendor(actor, rules, "edit")
    get_capabilities(db.get_bind())
    try:
        with transaction(db):
            doc = _lock(db, rules, doc_id, actor, owner_only=True)
            if doc.status != DRAFT:
                raise InvalidState(
                    f"Only draft documents can be edited (current status: {doc.status})",
                    current_status=doc.status,
                )
            _guarded_update(db, rules, doc, {DRAFT}, {**values, "updated_at": utc_now()})
            history_service.record(db, kind, doc.id, actor, "updated", DRAFT, DRAFT)
    except IntegrityError as exc:
        if not _is_number_conflict(exc, rules.table):
            raise
        raise Conflict(f"Document number {values.get('number')} is already in use")
    return doc


def update_goods_receipt(db: Session, doc_id: int, actor, req: GoodsReceiptUpdate) -> GoodsReceipt:
    values = req.model_dump(exclude_unset=True, exclude={"items"})
    if req.items is not None:
        values["items"] = parse_goods_items(req.items)
    return _update(db, DocumentKind.GOODS, doc_id, actor, values)


def update_work_receipt(db: Session, doc_id: int, actor, req: WorkReceiptUpdate) -> WorkReceipt:
    values = req.model_dump(exclude_unset=True, exclude={"items"})
    if req.items is not None:
        values["items"] = parse_work_items(req.items)
    return _update(db, DocumentKind.WORK, doc_id, actor, values)


def delete_document(db: Session, kind: DocumentKind, doc_id: int, actor):
    """Delete a draft with its history and attachments."""
    rules = rules_for(kind)
    _require_vendor(actor, rules, "delete")
    model = rules.model
    with transaction(db):
        doc = _lock(db, rules, doc_id, actor, owner_only=True)
        if doc.status != DRAFT:
            raise InvalidState(
                f"Only draft documents can be deleted (current status: {doc.status})",
                current_status=doc.status,
            )
        history_service.purge(db, kind, doc_id)
        blobs = attachment_service.purge_rows(db, kind, doc_id)
        result = db.execute(
            delete(model)
            .where(model.id == doc_id, model.status == DRAFT)
        )
        if result.rowcount != 1:
            raise InvalidState(f"{rules.label} #{doc_id} changed concurrently")
    attachment_service.remove_blobs(blobs)
    logger.info("%s #%s deleted by vendor #%s", rules.label, doc_id, actor.id)


# Transitions


def _inspector_ids(db: Session) -> list[int]:
    return list(db.execute(
        select(User.id).where(User.role == Role.INSPECTOR.value).order_by(User.id)
    ).scalars())


def submit(db: Session, kind: DocumentKind, doc_id: int, actor) -> TransitionResult:
    def require_attachment(db, doc):
        if attachment_service.count(db, kind, doc.id) == 0:
            raise PreconditionFailed("At least one attachment is required before submitting")

    def notifications(db, doc):
        if kind is not DocumentKind.GOODS:
            return []
        pushes = [
            notify(
                db, inspector_id, "New goods receipt",
                f"{actor.name} submitted goods receipt {doc.number} for review.",
                "info", kind, doc.id,
            )
            for inspector_id in _inspector_ids(db)
        ]
        pushes.append(notify(
            db, doc.vendor_id, "Goods receipt submitted",
            f"Goods receipt {doc.number} was submitted and is waiting for inspection.",
            "info", kind, doc.id,
        ))
        return pushes

    return _run(db, kind, "submit", doc_id, actor, guard=require_attachment, notifications=notifications)


def review(db: Session, doc_id: int, actor, items, note: str | None = None) -> TransitionResult:
    """Record the inspection: the checked line items are required."""
    kind = DocumentKind.GOODS
    _authorize(actor, rules_for(kind), rules_for(kind).transitions["review"])
    if items is None:
        raise ValidationFailed("Reviewed line items are required")
    fields = {"reviewed_at": utc_now(), "inspector_note": note, "items": parse_goods_items(items)}

    def notifications(db, doc):
        return [notify(
            db, doc.vendor_id, "Goods receipt reviewed",
            f"Goods receipt {doc.number} was reviewed by {actor.name}.",
            "info", kind, doc.id,
        )]

    return _run(db, kind, "review", doc_id, actor, fields=fields, note=note, notifications=notifications)


def approve(db: Session, kind: DocumentKind, doc_id: int, actor, note: str | None = None) -> TransitionResult:
    now = utc_now()
    if kind is DocumentKind.GOODS:
        fields = {"approved_at": now, "inspector_signed_at": now, "approval_note": note}
    else:
        fields = {"executive_signed_at": now, "approval_note": note}
    label = rules_for(kind).label

    def notifications(db, doc):
        pushes = [notify(
            db, doc.vendor_id, f"{label} approved",
            f"{label} {doc.number} was approved by {actor.name}.",
            "success", kind, doc.id,
        )]
        if kind is DocumentKind.GOODS:
            pushes.append(notify(
                db, actor.id, f"{label} approved",
                f"You approved goods receipt {doc.number}.",
                "success", kind, doc.id,
            ))
        return pushes

    return _run(db, kind, "approve", doc_id, actor, fields=fields, note=note, notifications=notifications)


def reject(db: Session, kind: DocumentKind, doc_id: int, actor, reason: str | None) -> TransitionResult:
    rules = rules_for(kind)
    _authorize(actor, rules, rules.transitions["reject"])
    if not reason or not reason.strip():
        raise ValidationFailed("A rejection reason is required")
    reason = reason.strip()
    label = rules.label

    def notifications(db, doc):
        pushes = [notify(
            db, doc.vendor_id, f"{label} rejected",
            f"{label} {doc.number} was rejected by {actor.name}. Reason: {reason}",
            "error", kind, doc.id,
        )]
        if kind is DocumentKind.GOODS:
            pushes.append(notify(
                db, actor.id, f"{label} rejected",
                f"You rejected goods receipt {doc.number}.",
                "error", kind, doc.id,
            ))
        return pushes

    return _run(
        db, kind, "reject", doc_id, actor,
        fields={"rejection_reason": reason}, note=reason, notifications=notifications,
    )
