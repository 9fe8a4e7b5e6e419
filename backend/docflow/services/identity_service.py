import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow.database import transaction
from docflow.errors import Conflict, NotFound, Unauthorized, ValidationFailed
from docflow.models.enums import Role
from docflow.models.user import User
from docflow.utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from docflow.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a request."""

    id: int
    role: Role
    name: str
    email: str | None = None


def actor_from_token(token: str) -> Actor:
    claims = decode_access_token(token)
    try:
        role = Role(claims["role"])
        user_id = int(claims["sub"])
    except (KeyError, ValueError):
        raise Unauthorized("Invalid token")
    return Actor(id=user_id, role=role, name=claims.get("name") or "User", email=claims.get("email"))


def find_user(db: Session, role: Role, email: str) -> User | None:
    return db.execute(
        select(User).where(User.role == role.value, User.email == email.lower())
    ).scalar_one_or_none()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def authenticate(db: Session, role: Role, email: str, password: str) -> tuple[str, User]:
    user = find_user(db, role, email)
    # Same message for unknown email and wrong password.
    if user is None or not verify_password(user.password_hash, password):
        raise Unauthorized("Email or password is incorrect")
    token = create_access_token(user.id, user.role, user.email, user.full_name)
    logger.info("Login: %s #%s", user.role, user.id)
    return token, user


def create_user(
    db: Session,
    role: Role,
    email: str,
    full_name: str,
    password: str,
    company_name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    position: str | None = None,
) -> User:
    now = utc_now()
    user = User(
        role=role.value,
        email=email.lower(),
        full_name=full_name,
        password_hash=hash_password(password),
        company_name=company_name or None,
        phone=phone or None,
        address=address or None,
        position=position or None,
        created_at=now,
        updated_at=now,
    )
    try:
        with transaction(db):
            db.add(user)
            db.flush()
    except IntegrityError:
        raise Conflict(f"Email {email} is already registered")
    db.refresh(user)
    logger.info("Created %s account #%s", role.value, user.id)
    return user


def register_vendor(db: Session, email: str, full_name: str, password: str, **profile) -> User:
    return create_user(db, Role.VENDOR, email, full_name, password, **profile)


def change_password(db: Session, actor: Actor, current_password: str, new_password: str):
    user = get_user(db, actor.id)
    if not verify_password(user.password_hash, current_password):
        raise ValidationFailed("Current password is incorrect")
    with transaction(db):
        user.password_hash = hash_password(new_password)
        user.updated_at = utc_now()
