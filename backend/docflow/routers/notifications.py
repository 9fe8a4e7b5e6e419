from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from docflow.database import get_db
from docflow.dependencies import get_current_actor, get_dispatcher
from docflow.routers.responses import notification_to_response
from docflow.schemas.notification import (
    NotificationPreferences,
    NotificationResponse,
    PushSubscriptionRequest,
    VapidKeyResponse,
)
from docflow.services import notification_service
from docflow.services.identity_service import Actor
from docflow.services.notification_service import NotificationDispatcher

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(get_current_actor)],
)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [notification_to_response(n) for n in notification_service.list_notifications(db, actor.id)]


@router.patch("/read-all")
async def mark_all_read(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    updated = notification_service.mark_all_read(db, actor.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_read(notification_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    notification_service.mark_read(db, actor.id, notification_id)
    return {"message": "Notification marked as read"}


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return notification_service.get_preferences(db, actor.id)


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    req: NotificationPreferences,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return notification_service.set_preferences(db, actor.id, req)


@router.get("/vapid-key", response_model=VapidKeyResponse)
async def vapid_key(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    return VapidKeyResponse(public_key=notification_service.vapid_public_key(dispatcher.config))


@router.post("/subscribe")
async def subscribe(
    req: PushSubscriptionRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    created = notification_service.subscribe(db, actor.id, req.model_dump(exclude_none=True))
    if created:
        return JSONResponse(status_code=201, content={"message": "Subscribed to push notifications"})
    return {"message": "Already subscribed"}
