from pydantic import BaseModel

from docflow.models.enums import DocumentKind


class AttachmentResponse(BaseModel):
    id: int
    document_kind: DocumentKind
    document_id: int
    original_filename: str
    mime_type: str | None
    size_bytes: int
    caption: str | None
    uploaded_by_id: int
    uploaded_by_name: str
    uploaded_at: str


class UploadResponse(BaseModel):
    uploaded: list[AttachmentResponse]
    count: int


class SignatureResponse(BaseModel):
    message: str
    filename: str
