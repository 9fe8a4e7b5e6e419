from sqlalchemy import JSON, CheckConstraint, Column, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import deferred, relationship
from docflow.database import Base
from docflow.models.enums import DocumentKind


class GoodsReceipt(Base):
    __tablename__ = "goods_receipts"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','submitted','reviewed','approved','rejected')",
            name="ck_goods_receipts_status",
        ),
        UniqueConstraint("number", name="uq_goods_receipts_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Text, nullable=False)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contract_number = Column(Text, nullable=False)
    project_name = Column(Text, nullable=False)
    contract_value = Column(Float, nullable=False)
    description = Column(Text, nullable=False)
    document_date = Column(Text, nullable=False)
    deadline = Column(Text)
    delivery_date = Column(Text, nullable=False)
    courier = Column(Text)
    items = Column(JSON, nullable=False, default=list)
    inspection_result = Column(Text, nullable=False)
    additional_notes = Column(Text)
    status = Column(Text, nullable=False, default="draft", index=True)
    reviewed_at = Column(Text)
    approved_at = Column(Text)
    inspector_signed_at = Column(Text)
    # Optional columns: only read when SchemaCapabilities reports them.
    inspector_note = deferred(Column(Text))
    approval_note = deferred(Column(Text))
    rejection_reason = deferred(Column(Text))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    vendor = relationship("User")


class WorkReceipt(Base):
    __tablename__ = "work_receipts"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','submitted','reviewed_pic','approved_direksi','rejected')",
            name="ck_work_receipts_status",
        ),
        UniqueConstraint("number", name="uq_work_receipts_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Text, nullable=False)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contract_number = Column(Text, nullable=False)
    contract_date = Column(Text, nullable=False)
    contract_value = Column(Float, nullable=False)
    work_location = Column(Text, nullable=False)
    items = Column(JSON, nullable=False, default=list)
    inspection_result = Column(Text, nullable=False)
    remarks = Column(Text)
    deadline = Column(Text)
    status = Column(Text, nullable=False, default="draft", index=True)
    executive_signed_at = Column(Text)
    approval_note = deferred(Column(Text))
    rejection_reason = deferred(Column(Text))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    vendor = relationship("User")


DOCUMENT_MODELS = {
    DocumentKind.GOODS: GoodsReceipt,
    DocumentKind.WORK: WorkReceipt,
}
