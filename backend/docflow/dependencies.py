from fastapi import Depends, Header

from docflow.config import settings
from docflow.database import SessionLocal
from docflow.errors import Forbidden, Unauthorized
from docflow.models.enums import Role
from docflow.services.identity_service import Actor, actor_from_token
from docflow.services.notification_service import NotificationDispatcher, PushConfig

_dispatcher: NotificationDispatcher | None = None


async def get_current_actor(authorization: str | None = Header(None)) -> Actor:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Missing bearer token")
    return actor_from_token(authorization[7:])


def require_role(*roles: Role):
    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise Forbidden(f"This action requires role: {allowed}")
        return actor
    return checker


def get_push_config() -> PushConfig:
    return PushConfig.from_settings(settings)


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(get_push_config(), SessionLocal)
    return _dispatcher
