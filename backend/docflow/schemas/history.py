from pydantic import BaseModel

from docflow.models.enums import DocumentKind, Role


class HistoryEntryResponse(BaseModel):
    id: int
    document_kind: DocumentKind
    document_id: int
    actor_role: Role
    actor_id: int
    actor_name: str
    action: str
    note: str | None
    status_before: str | None
    status_after: str
    created_at: str


class InspectorSummary(BaseModel):
    actor_id: int
    actor_name: str
    action: str
    acted_at: str
