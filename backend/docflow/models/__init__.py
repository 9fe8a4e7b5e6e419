from docflow.models.user import User
from docflow.models.document import DOCUMENT_MODELS, GoodsReceipt, WorkReceipt
from docflow.models.attachment import Attachment
from docflow.models.history import HistoryEntry
from docflow.models.notification import Notification, PushSubscription

__all__ = [
    "User", "DOCUMENT_MODELS", "GoodsReceipt", "WorkReceipt", "Attachment",
    "HistoryEntry", "Notification", "PushSubscription",
]
