import smtplib
from email.message import EmailMessage

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..deps import get_credentials
from ..schemas.auth import (
    LoginRequest,
    PasswordForgotRequest,
    PasswordResetRequest,
    RegisterRequest,
    TokenResponse,
    User,
    UserResponse,
)
from .credentials import CredentialService
from .security import create_access_token, get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(user: User) -> TokenResponse:
    access = create_access_token(user.id, user.role.value)
    return TokenResponse(access_token=access, user=UserResponse.model_validate(user.model_dump()))


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterRequest, creds: CredentialService = Depends(get_credentials)):
    user = creds.register(payload)
    structlog.get_logger().info("user_registered", user_id=user.id)
    return _token_for(user)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, creds: CredentialService = Depends(get_credentials)):
    user = creds.authenticate(req.email, req.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_for(user)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user.model_dump())


# Password reset
@router.post("/password/forgot")
def password_forgot(req: PasswordForgotRequest, creds: CredentialService = Depends(get_credentials)):
    issued = creds.issue_reset_token(req.email)
    if issued is None:
        return {"status": "ok"}
    # email link
    try:
        if settings.smtp_host and settings.mail_from and settings.public_base_url:
            link = f"{settings.public_base_url}/reset-password?token={issued.token}"
            msg = EmailMessage()
            msg["Subject"] = f"Reset your {settings.app_name} password"
            msg["From"] = settings.mail_from
            msg["To"] = issued.email
            msg.set_content(f"Click to reset your password: {link}")
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as s:
                if settings.smtp_tls:
                    s.starttls()
                if settings.smtp_username and settings.smtp_password:
                    s.login(settings.smtp_username, settings.smtp_password)
                s.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        structlog.get_logger().warning("password_reset_email_failed", error=str(e))
    return {"status": "ok"}


@router.post("/password/reset")
def password_reset(req: PasswordResetRequest, creds: CredentialService = Depends(get_credentials)):
    creds.consume_reset_token(req.token, req.new_password)
    return {"status": "ok"}
