from pydantic import BaseModel, EmailStr, Field

from docflow.models.enums import Role


class LoginRequest(BaseModel):
    role: Role
    email: EmailStr
    password: str


class VendorRegisterRequest(BaseModel):
    full_name: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    company_name: str | None = None
    phone: str | None = None
    address: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class UserResponse(BaseModel):
    id: int
    role: Role
    email: str
    full_name: str
    company_name: str | None
    address: str | None
    phone: str | None
    position: str | None
    has_signature: bool = False
    created_at: str


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


class TokenClaims(BaseModel):
    id: int
    role: Role
    email: str | None
    name: str | None
    expires_at: int


class VerifyResponse(BaseModel):
    valid: bool = True
    user: TokenClaims
