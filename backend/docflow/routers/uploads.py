from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from docflow.config import settings
from docflow.database import get_db
from docflow.dependencies import get_current_actor, require_role
from docflow.errors import ValidationFailed
from docflow.models.enums import DocumentKind, Role
from docflow.routers.responses import attachment_to_response
from docflow.schemas.attachment import AttachmentResponse, SignatureResponse, UploadResponse
from docflow.services import attachment_service
from docflow.services.attachment_service import IncomingFile
from docflow.services.identity_service import Actor

router = APIRouter(
    prefix="/upload",
    tags=["uploads"],
    dependencies=[Depends(get_current_actor)],
)


async def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise ValidationFailed(f"{file.filename}: file too large (max {max_bytes} bytes)")
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/signature", response_model=SignatureResponse)
async def upload_signature(
    signature: UploadFile = File(...),
    actor: Actor = Depends(require_role(Role.INSPECTOR, Role.EXECUTIVE)),
    db: Session = Depends(get_db),
):
    content = await _read_limited(signature, settings.max_signature_bytes)
    name = attachment_service.save_signature(db, actor, signature.filename or "", content)
    return SignatureResponse(message="Signature saved", filename=name)


@router.post("/{kind}/{doc_id}", response_model=UploadResponse, status_code=201)
async def upload_attachments(
    kind: DocumentKind,
    doc_id: int,
    files: list[UploadFile] = File(...),
    caption: str | None = Form(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if len(files) > settings.max_files_per_upload:
        raise ValidationFailed(f"At most {settings.max_files_per_upload} files per upload")
    incoming = [
        IncomingFile(
            filename=f.filename or "",
            content_type=f.content_type,
            content=await _read_limited(f, settings.max_upload_bytes),
        )
        for f in files
    ]
    rows = attachment_service.add_attachments(db, kind, doc_id, actor, incoming, caption)
    uploaded = [attachment_to_response(a) for a in rows]
    return UploadResponse(uploaded=uploaded, count=len(uploaded))


@router.get("/{kind}/{doc_id}/list", response_model=list[AttachmentResponse])
async def list_attachments(kind: DocumentKind, doc_id: int, db: Session = Depends(get_db)):
    return [attachment_to_response(a) for a in attachment_service.list_attachments(db, kind, doc_id)]


@router.get("/download/{attachment_id}")
async def download_attachment(attachment_id: int, db: Session = Depends(get_db)):
    attachment, path = attachment_service.get_download(db, attachment_id)
    return FileResponse(
        path=str(path),
        filename=attachment.original_filename,
        media_type=attachment.mime_type or "application/octet-stream",
    )


@router.delete("/{attachment_id}")
async def delete_attachment(
    attachment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    attachment_service.remove_attachment(db, attachment_id, actor)
    return {"message": "Attachment deleted"}
