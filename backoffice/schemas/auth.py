from datetime import datetime
from typing import Optional
import enum

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserRole(str, enum.Enum):
    admin = "ADMIN"
    user = "USER"


class UserCreate(BaseModel):
    email: EmailStr
    name: str
    password: str = Field(min_length=6)
    role: UserRole = UserRole.user

    @field_validator("name", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRole] = None


class User(BaseModel):
    """Stored user document; carries the password hash and never leaves the API."""
    id: str
    email: EmailStr
    name: str
    password_hash: str
    role: UserRole = UserRole.user
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ResetToken(BaseModel):
    email: str
    token: str
    expires_at: datetime
    # set while a reset is consuming the token
    claimed: bool = False


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PasswordForgotRequest(BaseModel):
    email: str


class PasswordResetRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=6)


class UserRecordCreate(BaseModel):
    email: EmailStr
    name: str
    password_hash: str
    role: UserRole = UserRole.user


class UserRecordUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password_hash: Optional[str] = None
    role: Optional[UserRole] = None
