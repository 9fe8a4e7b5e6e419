from pydantic import BaseModel

from docflow.models.enums import DocumentKind


class NotificationResponse(BaseModel):
    id: int
    title: str
    description: str | None
    type: str
    document_kind: DocumentKind | None
    document_id: int | None
    is_read: bool
    created_at: str


class NotificationPreferences(BaseModel):
    incoming_goods: bool = True
    document_approved: bool = True
    new_comment: bool = True


class PushSubscriptionRequest(BaseModel):
    endpoint: str | None = None
    keys: dict[str, str] | None = None
    expirationTime: int | None = None


class VapidKeyResponse(BaseModel):
    public_key: str
