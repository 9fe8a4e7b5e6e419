from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from docflow.models.enums import DocumentKind, Role
from docflow.models.history import HistoryEntry
from docflow.utils.timestamps import utc_now

FEED_LIMIT = 100


def record(
    db: Session,
    kind: DocumentKind,
    document_id: int,
    actor,
    action: str,
    status_before: str | None,
    status_after: str,
    note: str | None = None,
) -> HistoryEntry:
    """Append one entry. Runs inside the caller's transaction."""
    entry = HistoryEntry(
        document_kind=kind.value,
        document_id=document_id,
        actor_role=actor.role.value,
        actor_id=actor.id,
        actor_name=actor.name,
        action=action,
        note=note,
        status_before=status_before,
        status_after=status_after,
        created_at=utc_now(),
    )
    db.add(entry)
    return entry


def timeline(db: Session, kind: DocumentKind, document_id: int) -> list[HistoryEntry]:
    return list(db.execute(
        select(HistoryEntry)
        .where(HistoryEntry.document_kind == kind.value, HistoryEntry.document_id == document_id)
        .order_by(HistoryEntry.created_at.asc(), HistoryEntry.id.asc())
    ).scalars())


def feed(
    db: Session,
    kind: DocumentKind | None = None,
    document_id: int | None = None,
    limit: int = FEED_LIMIT,
) -> list[HistoryEntry]:
    query = select(HistoryEntry)
    if kind is not None:
        query = query.where(HistoryEntry.document_kind == kind.value)
    if document_id is not None:
        query = query.where(HistoryEntry.document_id == document_id)
    query = query.order_by(HistoryEntry.created_at.desc(), HistoryEntry.id.desc())
    return list(db.execute(query.limit(min(limit, FEED_LIMIT))).scalars())


def latest_by_role(db: Session, kind: DocumentKind, document_id: int, role: Role) -> HistoryEntry | None:
    return db.execute(
        select(HistoryEntry)
        .where(
            HistoryEntry.document_kind == kind.value,
            HistoryEntry.document_id == document_id,
            HistoryEntry.actor_role == role.value,
        )
        .order_by(HistoryEntry.created_at.desc(), HistoryEntry.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def last_inspector(db: Session, kind: DocumentKind, document_id: int) -> HistoryEntry | None:
    return latest_by_role(db, kind, document_id, Role.INSPECTOR)


def purge(db: Session, kind: DocumentKind, document_id: int) -> int:
    """Delete a document's entries. Only the draft-delete cascade calls this."""
    result = db.execute(
        delete(HistoryEntry).where(
            HistoryEntry.document_kind == kind.value,
            HistoryEntry.document_id == document_id,
        )
    )
    return result.rowcount
