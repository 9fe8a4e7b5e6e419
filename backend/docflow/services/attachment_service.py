import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from docflow.config import settings
from docflow.database import transaction
from docflow.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from docflow.models.attachment import Attachment
from docflow.models.document import DOCUMENT_MODELS
from docflow.models.enums import DocumentKind, Role
from docflow.models.user import User
from docflow.utils.filesystem import ensure_upload_dirs, file_extension, stored_name_for
from docflow.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    content_type: str | None
    content: bytes


def validate_files(files: list[IncomingFile]):
    if not files:
        raise ValidationFailed("No files were uploaded")
    if len(files) > settings.max_files_per_upload:
        raise ValidationFailed(f"At most {settings.max_files_per_upload} files per upload")
    for f in files:
        if file_extension(f.filename) not in settings.allowed_upload_extensions:
            allowed = ", ".join(sorted(settings.allowed_upload_extensions))
            raise ValidationFailed(f"{f.filename}: file type not allowed (allowed: {allowed})")
        if not f.content:
            raise ValidationFailed(f"{f.filename}: file is empty")
        if len(f.content) > settings.max_upload_bytes:
            raise ValidationFailed(f"{f.filename}: file too large (max {settings.max_upload_bytes} bytes)")


def list_attachments(db: Session, kind: DocumentKind, document_id: int) -> list[Attachment]:
    return list(db.execute(
        select(Attachment)
        .where(Attachment.document_kind == kind.value, Attachment.document_id == document_id)
        .order_by(Attachment.uploaded_at.desc(), Attachment.id.desc())
    ).scalars())


def count(db: Session, kind: DocumentKind, document_id: int) -> int:
    return db.execute(
        select(func.count(Attachment.id))
        .where(Attachment.document_kind == kind.value, Attachment.document_id == document_id)
    ).scalar_one()


def _owned_draft(db: Session, kind: DocumentKind, document_id: int, actor):
    model = DOCUMENT_MODELS[kind]
    doc = db.execute(
        select(model)
        .where(model.id == document_id, model.vendor_id == actor.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if doc is None:
        raise NotFound("Document not found")
    if doc.status != "draft":
        raise InvalidState(
            f"Attachments can only be changed while the document is a draft (current status: {doc.status})",
            current_status=doc.status,
        )
    return doc


def add_attachments(
    db: Session,
    kind: DocumentKind,
    document_id: int,
    actor,
    files: list[IncomingFile],
    caption: str | None = None,
) -> list[Attachment]:
    if actor.role is not Role.VENDOR:
        raise Forbidden("Only the owning vendor can upload attachments")
    validate_files(files)
    upload_dir, _ = ensure_upload_dirs()

    written: list[Path] = []
    try:
        stored = []
        for f in files:
            path = upload_dir / stored_name_for(f.filename)
            path.write_bytes(f.content)
            written.append(path)
            stored.append((f, path.name))

        with transaction(db):
            _owned_draft(db, kind, document_id, actor)
            now = utc_now()
            rows = [
                Attachment(
                    document_kind=kind.value,
                    document_id=document_id,
                    original_filename=f.filename,
                    stored_filename=name,
                    mime_type=f.content_type,
                    size_bytes=len(f.content),
                    caption=caption or f"Attachment uploaded by {actor.name}",
                    uploaded_by_id=actor.id,
                    uploaded_by_name=actor.name,
                    uploaded_at=now,
                )
                for f, name in stored
            ]
            db.add_all(rows)
            db.flush()
    except Exception:
        for path in written:
            path.unlink(missing_ok=True)
        raise

    logger.info("Stored %d attachment(s) for %s #%s", len(rows), kind.value, document_id)
    return rows


def remove_attachment(db: Session, attachment_id: int, actor):
    if actor.role is not Role.VENDOR:
        raise Forbidden("Only the owning vendor can delete attachments")
    with transaction(db):
        attachment = db.get(Attachment, attachment_id)
        if attachment is None:
            raise NotFound("Attachment not found")
        _owned_draft(db, DocumentKind(attachment.document_kind), attachment.document_id, actor)
        stored_filename = attachment.stored_filename
        db.delete(attachment)
    _unlink_blob(settings.upload_dir / stored_filename)


def _unlink_blob(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        logger.info("Attachment file %s was already gone", path.name)
    except OSError as exc:
        logger.warning("Leaked blob %s: %s", path, exc)


def get_download(db: Session, attachment_id: int) -> tuple[Attachment, Path]:
    attachment = db.get(Attachment, attachment_id)
    if attachment is None:
        raise NotFound("Attachment not found")
    path = settings.upload_dir / attachment.stored_filename
    if not path.is_file():
        raise NotFound("Attachment file is missing from storage")
    return attachment, path


def purge_rows(db: Session, kind: DocumentKind, document_id: int) -> list[str]:
    """Delete a document's attachment rows, returning their stored filenames."""
    names = list(db.execute(
        select(Attachment.stored_filename)
        .where(Attachment.document_kind == kind.value, Attachment.document_id == document_id)
    ).scalars())
    db.execute(
        delete(Attachment)
        .where(Attachment.document_kind == kind.value, Attachment.document_id == document_id)
    )
    return names


def remove_blobs(names: list[str]):
    for name in names:
        _unlink_blob(settings.upload_dir / name)


def save_signature(db: Session, actor, filename: str, content: bytes) -> str:
    if actor.role not in (Role.INSPECTOR, Role.EXECUTIVE):
        raise Forbidden("Only inspectors and executives can upload a signature")
    ext = file_extension(filename)
    if ext not in settings.allowed_signature_extensions:
        raise ValidationFailed("Signature must be a JPEG or PNG image")
    if not content:
        raise ValidationFailed("Signature file is empty")
    if len(content) > settings.max_signature_bytes:
        raise ValidationFailed(f"Signature too large (max {settings.max_signature_bytes} bytes)")

    _, signature_dir = ensure_upload_dirs()
    name = stored_name_for(filename, prefix=f"{actor.role.value}-{actor.id}-")
    path = signature_dir / name
    path.write_bytes(content)
    try:
        with transaction(db):
            user = db.get(User, actor.id)
            if user is None:
                raise NotFound("User not found")
            previous = user.signature_path
            user.signature_path = name
            user.updated_at = utc_now()
    except Exception:
        path.unlink(missing_ok=True)
        raise
    if previous and previous != name:
        _unlink_blob(signature_dir / previous)
    return name


def signature_file(user: User | None) -> Path | None:
    if user is None or not user.signature_path:
        return None
    path = settings.signature_dir / user.signature_path
    return path if path.is_file() else None
