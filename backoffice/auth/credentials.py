"""
Credential operations on top of the user and reset-token repositories.

Reset tokens are single use: consuming one first claims the token, then stores
the new password hash, then removes the token. Only one concurrent reset can
claim a token. Failing to remove the token is logged and does not undo the
password change.
"""
import secrets
from datetime import timedelta
from typing import Optional

import structlog

from ..config import settings
from ..errors import InvalidToken, StoreError
from ..repositories.base import utcnow, validate_input
from ..repositories.users import ResetTokenRepository, UserRepository
from ..schemas.auth import RegisterRequest, ResetToken, User, UserCreate, UserRole, UserUpdate
from .security import get_password_hash, verify_password


logger = structlog.get_logger(__name__)


class CredentialService:
    def __init__(self, users: UserRepository, reset_tokens: ResetTokenRepository):
        self.users = users
        self.reset_tokens = reset_tokens

    # ---------- accounts ----------
    def create_user(self, candidate) -> User:
        data = validate_input(UserCreate, candidate)
        return self.users.create({
            "email": data.email,
            "name": data.name,
            "role": data.role,
            "password_hash": get_password_hash(data.password),
        })

    def register(self, candidate) -> User:
        data = validate_input(RegisterRequest, candidate)
        return self.create_user({
            "email": data.email,
            "name": data.name,
            "password": data.password,
            "role": UserRole.user,
        })

    def update_user(self, user_id: str, patch) -> User:
        data = validate_input(UserUpdate, patch).model_dump(exclude_unset=True)
        password = data.pop("password", None)
        if password:
            data["password_hash"] = get_password_hash(password)
        return self.users.update(user_id, data)

    def authenticate(self, email: str, password: str) -> Optional[User]:
        user = self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    # ---------- password reset ----------
    def issue_reset_token(self, email: str) -> Optional[ResetToken]:
        """Create a reset token for a known email; unknown emails get None."""
        user = self.users.get_by_email(email)
        if user is None:
            return None
        token = secrets.token_urlsafe(32)
        expires_at = utcnow() + timedelta(hours=settings.reset_token_ttl_hours)
        issued = self.reset_tokens.replace(user.email, token, expires_at)
        logger.info("reset_token_issued", user_id=user.id)
        return issued

    def consume_reset_token(self, token: str, new_password: str) -> User:
        record = self.reset_tokens.claim(token, utcnow())
        user = self.users.get_by_email(record.email)
        if user is None:
            self.reset_tokens.release(token)
            raise InvalidToken()
        try:
            user = self.users.update(user.id, {"password_hash": get_password_hash(new_password)})
        except StoreError:
            self.reset_tokens.release(token)
            raise
        try:
            self.reset_tokens.delete(token)
        except StoreError as e:
            # the token stays claimed, so it cannot be used again
            logger.warning("reset_token_delete_failed", user_id=user.id, error=str(e))
        logger.info("password_reset", user_id=user.id)
        return user
