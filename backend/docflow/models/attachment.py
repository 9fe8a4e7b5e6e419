from sqlalchemy import Column, ForeignKey, Index, Integer, Text
from docflow.database import Base


class Attachment(Base):
    __tablename__ = "attachments"
    __table_args__ = (Index("idx_attachments_document", "document_kind", "document_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_kind = Column(Text, nullable=False)
    document_id = Column(Integer, nullable=False)
    original_filename = Column(Text, nullable=False)
    stored_filename = Column(Text, nullable=False, unique=True)
    mime_type = Column(Text)
    size_bytes = Column(Integer, nullable=False)
    caption = Column(Text)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_by_name = Column(Text, nullable=False)
    uploaded_at = Column(Text, nullable=False)
