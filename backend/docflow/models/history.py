from sqlalchemy import Column, Index, Integer, Text
from docflow.database import Base


class HistoryEntry(Base):
    __tablename__ = "document_history"
    __table_args__ = (Index("idx_history_document", "document_kind", "document_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_kind = Column(Text, nullable=False)
    document_id = Column(Integer, nullable=False)
    actor_role = Column(Text, nullable=False)
    actor_id = Column(Integer, nullable=False)
    actor_name = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    note = Column(Text)
    status_before = Column(Text)
    status_after = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
