from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth.credentials import CredentialService
from ..auth.security import require_roles
from ..deps import get_credentials, get_repositories
from ..repositories import Repositories
from ..schemas.auth import User, UserCreate, UserResponse, UserUpdate
from ..schemas.files import DeleteOutcome


router = APIRouter(prefix="/users", tags=["users"])


def _public(user: User) -> UserResponse:
    return UserResponse.model_validate(user.model_dump())


@router.get("", response_model=List[UserResponse])
def list_users(repos: Repositories = Depends(get_repositories), _=Depends(require_roles("ADMIN"))):
    return [_public(u) for u in repos.users.list()]


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    payload: UserCreate,
    creds: CredentialService = Depends(get_credentials),
    _=Depends(require_roles("ADMIN")),
):
    return _public(creds.create_user(payload))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UserUpdate,
    creds: CredentialService = Depends(get_credentials),
    _=Depends(require_roles("ADMIN")),
):
    return _public(creds.update_user(user_id, payload))


@router.delete("/{user_id}", response_model=DeleteOutcome)
def delete_user(
    user_id: str,
    repos: Repositories = Depends(get_repositories),
    admin: User = Depends(require_roles("ADMIN")),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    return repos.users.delete(user_id)
