from typing import Literal

from pydantic import BaseModel, Field

from docflow.models.enums import DocumentKind, InspectionStatus
from docflow.schemas.attachment import AttachmentResponse
from docflow.schemas.history import HistoryEntryResponse, InspectorSummary


class GoodsLineItem(BaseModel):
    name: str = Field(min_length=1)
    # 0 marks a line kept as free text (see line_items.NON_STANDARD_NOTE).
    quantity: int = Field(ge=0)
    unit: str = ""
    notes: str = ""
    inspection_status: InspectionStatus = InspectionStatus.UNCHECKED


class WorkLineItem(BaseModel):
    item: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    unit: str = Field(min_length=1)
    unit_price: float = Field(gt=0)
    total: float = Field(gt=0)


class GoodsReceiptCreate(BaseModel):
    number: str = Field(min_length=1)
    contract_number: str = Field(min_length=1)
    project_name: str = Field(min_length=1)
    contract_value: float = Field(gt=0)
    description: str = Field(min_length=1)
    document_date: str
    deadline: str | None = None
    delivery_date: str
    courier: str | None = None
    # A list, a JSON array string, or numbered "1. Name: 5 unit" lines.
    items: list[GoodsLineItem] | str
    inspection_result: str = Field(min_length=1)
    additional_notes: str | None = None


class GoodsReceiptUpdate(BaseModel):
    number: str | None = Field(default=None, min_length=1)
    contract_number: str | None = None
    project_name: str | None = None
    contract_value: float | None = Field(default=None, gt=0)
    description: str | None = None
    document_date: str | None = None
    deadline: str | None = None
    delivery_date: str | None = None
    courier: str | None = None
    items: list[GoodsLineItem] | str | None = None
    inspection_result: str | None = None
    additional_notes: str | None = None


class WorkReceiptCreate(BaseModel):
    number: str = Field(min_length=1)
    contract_number: str = Field(min_length=1)
    contract_date: str
    contract_value: float = Field(gt=0)
    work_location: str = Field(min_length=1)
    items: list[WorkLineItem] = Field(min_length=1)
    inspection_result: str = Field(min_length=1)
    remarks: str | None = None
    deadline: str | None = None


class WorkReceiptUpdate(BaseModel):
    number: str | None = Field(default=None, min_length=1)
    contract_number: str | None = None
    contract_date: str | None = None
    contract_value: float | None = Field(default=None, gt=0)
    work_location: str | None = None
    items: list[WorkLineItem] | None = Field(default=None, min_length=1)
    inspection_result: str | None = None
    remarks: str | None = None
    deadline: str | None = None


class ReviewRequest(BaseModel):
    items: list[GoodsLineItem] | str
    note: str | None = None


class ApproveRequest(BaseModel):
    note: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class GoodsReceiptResponse(BaseModel):
    id: int
    kind: Literal["bapb"] = "bapb"
    number: str
    vendor_id: int
    vendor_name: str | None = None
    vendor_email: str | None = None
    contract_number: str
    project_name: str
    contract_value: float
    description: str
    document_date: str
    deadline: str | None
    delivery_date: str
    courier: str | None
    items: list[dict]
    inspection_result: str
    additional_notes: str | None
    status: str
    reviewed_at: str | None
    approved_at: str | None
    inspector_signed_at: str | None
    inspector_note: str | None = None
    approval_note: str | None = None
    rejection_reason: str | None = None
    created_at: str
    updated_at: str


class WorkReceiptResponse(BaseModel):
    id: int
    kind: Literal["bapp"] = "bapp"
    number: str
    vendor_id: int
    vendor_name: str | None = None
    vendor_email: str | None = None
    contract_number: str
    contract_date: str
    contract_value: float
    work_location: str
    items: list[dict]
    inspection_result: str
    remarks: str | None
    deadline: str | None
    status: str
    executive_signed_at: str | None
    approval_note: str | None = None
    rejection_reason: str | None = None
    created_at: str
    updated_at: str


class DocumentRelations(BaseModel):
    timeline: list[HistoryEntryResponse] = []
    attachments: list[AttachmentResponse] = []
    last_inspector: InspectorSummary | None = None


class GoodsReceiptDetail(GoodsReceiptResponse, DocumentRelations):
    pass


class WorkReceiptDetail(WorkReceiptResponse, DocumentRelations):
    pass


class GoodsReceiptListResponse(BaseModel):
    items: list[GoodsReceiptResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class WorkReceiptListResponse(BaseModel):
    items: list[WorkReceiptResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class DocumentSummary(BaseModel):
    kind: DocumentKind
    id: int
    number: str
    vendor_id: int
    vendor_name: str | None
    contract_number: str
    contract_value: float
    status: str
    created_at: str
    updated_at: str


class CombinedListResponse(BaseModel):
    items: list[DocumentSummary]
    total: int
    page: int
    per_page: int
    total_pages: int


class StatsResponse(BaseModel):
    total: int = 0
    draft: int = 0
    submitted: int = 0
    approved: int = 0
    rejected: int = 0
    pending_work: int | None = None
    approved_work: int | None = None
    rejected_work: int | None = None
