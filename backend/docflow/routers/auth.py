from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from docflow.database import get_db
from docflow.dependencies import get_current_actor
from docflow.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    TokenClaims,
    UserResponse,
    VendorRegisterRequest,
    VerifyResponse,
)
from docflow.routers.responses import user_to_response
from docflow.services import identity_service
from docflow.services.identity_service import Actor
from docflow.utils.security import decode_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
    token, user = identity_service.authenticate(db, req.role, req.email, req.password)
    return LoginResponse(token=token, user=user_to_response(user))


@router.post("/register/vendor", response_model=UserResponse, status_code=201)
async def register_vendor(req: VendorRegisterRequest, db: Session = Depends(get_db)):
    """Create a vendor account. The caller logs in separately afterwards."""
    user = identity_service.register_vendor(
        db,
        email=req.email,
        full_name=req.full_name,
        password=req.password,
        company_name=req.company_name,
        phone=req.phone,
        address=req.address,
    )
    return user_to_response(user)


@router.post("/change-password")
async def change_password(
    req: ChangePasswordRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    identity_service.change_password(db, actor, req.current_password, req.new_password)
    return {"message": "Password updated"}


@router.get("/verify", response_model=VerifyResponse)
async def verify(
    actor: Actor = Depends(get_current_actor),
    authorization: str = Header(...),
):
    claims = decode_access_token(authorization[7:])
    return VerifyResponse(user=TokenClaims(
        id=actor.id,
        role=actor.role,
        email=actor.email,
        name=actor.name,
        expires_at=claims["exp"],
    ))


@router.get("/profile", response_model=UserResponse)
async def profile(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return user_to_response(identity_service.get_user(db, actor.id))
