"""
In-app notifications and Web Push delivery.

``notify`` only writes a row inside the caller's transaction and returns the
push message to send. ``NotificationDispatcher.deliver`` runs after commit
(scheduled as a background task), opens its own session, and never raises.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Callable

from pywebpush import WebPushException, webpush
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from docflow.database import transaction
from docflow.errors import NotFound, Unavailable, ValidationFailed
from docflow.models.enums import DocumentKind
from docflow.models.notification import Notification, PushSubscription
from docflow.models.user import User
from docflow.schemas.notification import NotificationPreferences
from docflow.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

LIST_LIMIT = 50
GONE_STATUSES = {404, 410}


@dataclass(frozen=True)
class PushConfig:
    public_key: str | None = None
    private_key: str | None = None
    subject: str | None = None
    ttl_seconds: int = 3600

    @property
    def enabled(self) -> bool:
        return bool(self.public_key and self.private_key and self.subject)

    @classmethod
    def from_settings(cls, settings) -> "PushConfig":
        return cls(
            public_key=settings.vapid_public_key,
            private_key=settings.vapid_private_key,
            subject=settings.vapid_subject,
        )


@dataclass(frozen=True)
class PushMessage:
    user_id: int
    title: str
    body: str
    data: dict = field(default_factory=dict)

    def payload(self) -> str:
        return json.dumps({"title": self.title, "body": self.body, "data": self.data})


def notify(
    db: Session,
    user_id: int,
    title: str,
    description: str | None = None,
    notification_type: str = "info",
    kind: DocumentKind | None = None,
    document_id: int | None = None,
) -> PushMessage:
    db.add(Notification(
        user_id=user_id,
        title=title,
        description=description,
        notification_type=notification_type,
        document_kind=kind.value if kind else None,
        document_id=document_id,
        is_read=False,
        created_at=utc_now(),
    ))
    data = {"kind": kind.value, "document_id": document_id} if kind else {}
    return PushMessage(user_id=user_id, title=title, body=description or "", data=data)


def _webpush_sender(subscription_info: dict, payload: str, config: PushConfig):
    webpush(
        subscription_info=subscription_info,
        data=payload,
        vapid_private_key=config.private_key,
        vapid_claims={"sub": config.subject},
        ttl=config.ttl_seconds,
    )


class NotificationDispatcher:
    def __init__(
        self,
        config: PushConfig,
        session_factory: Callable[[], Session],
        sender: Callable[[dict, str, PushConfig], None] = _webpush_sender,
    ):
        self.config = config
        self.session_factory = session_factory
        self.sender = sender

    def deliver(self, messages: list[PushMessage]):
        if not messages or not self.config.enabled:
            return
        db = self.session_factory()
        try:
            for message in messages:
                self._deliver_one(db, message)
        except SQLAlchemyError as exc:
            logger.warning("Push delivery aborted, could not read subscriptions: %s", exc)
        finally:
            db.close()

    def _deliver_one(self, db: Session, message: PushMessage):
        subscriptions = db.execute(
            select(PushSubscription).where(PushSubscription.user_id == message.user_id)
        ).scalars().all()
        payload = message.payload()
        for sub in subscriptions:
            try:
                self.sender(json.loads(sub.subscription), payload, self.config)
            except WebPushException as exc:
                status = exc.response.status_code if exc.response is not None else None
                if status in GONE_STATUSES:
                    with transaction(db):
                        db.delete(sub)
                    logger.info("Pruned push subscription #%s for user #%s (%s)", sub.id, message.user_id, status)
                else:
                    logger.warning("Push to user #%s failed: %s", message.user_id, exc)
            except Exception as exc:
                logger.warning("Push to user #%s failed: %s", message.user_id, exc)


def list_notifications(db: Session, user_id: int) -> list[Notification]:
    return list(db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(LIST_LIMIT)
    ).scalars())


def mark_read(db: Session, user_id: int, notification_id: int):
    with transaction(db):
        result = db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        if result.rowcount == 0:
            raise NotFound("Notification not found")


def mark_all_read(db: Session, user_id: int) -> int:
    with transaction(db):
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
    return result.rowcount


def get_preferences(db: Session, user_id: int) -> NotificationPreferences:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if not user.notification_preferences:
        return NotificationPreferences()
    return NotificationPreferences.model_validate_json(user.notification_preferences)


def set_preferences(db: Session, user_id: int, prefs: NotificationPreferences) -> NotificationPreferences:
    with transaction(db):
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        user.notification_preferences = prefs.model_dump_json()
        user.updated_at = utc_now()
    return prefs


def vapid_public_key(config: PushConfig) -> str:
    if not config.enabled:
        raise Unavailable("Push notifications are not configured on this server")
    return config.public_key


def subscribe(db: Session, user_id: int, subscription: dict) -> bool:
    """Store a push subscription. Returns False when the endpoint was already stored."""
    endpoint = subscription.get("endpoint")
    if not endpoint:
        raise ValidationFailed("Subscription endpoint is required")
    existing = db.execute(
        select(PushSubscription).where(PushSubscription.endpoint == endpoint)
    ).scalar_one_or_none()
    if existing is not None and existing.user_id == user_id:
        return False
    try:
        with transaction(db):
            if existing is not None:
                # Same browser, different account: move the endpoint over.
                existing.user_id = user_id
                existing.subscription = json.dumps(subscription)
            else:
                db.add(PushSubscription(
                    user_id=user_id,
                    endpoint=endpoint,
                    subscription=json.dumps(subscription),
                    created_at=utc_now(),
                ))
    except IntegrityError:
        return False
    return True
