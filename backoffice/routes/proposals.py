from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..auth.security import get_current_user
from ..deps import get_repositories
from ..repositories import Repositories
from ..schemas.auth import User
from ..schemas.files import DeleteOutcome
from ..schemas.proposals import Proposal, ProposalCreate, ProposalStatus, ProposalUpdate


router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.get("", response_model=List[Proposal])
def list_proposals(
    status: Optional[ProposalStatus] = Query(default=None),
    repos: Repositories = Depends(get_repositories),
    _=Depends(get_current_user),
):
    return repos.proposals.list(status=status)


@router.post("", response_model=Proposal, status_code=201)
def create_proposal(
    payload: ProposalCreate,
    repos: Repositories = Depends(get_repositories),
    user: User = Depends(get_current_user),
):
    if not payload.created_by:
        payload = payload.model_copy(update={"created_by": user.name})
    return repos.proposals.create(payload)


@router.get("/{proposal_id}", response_model=Proposal)
def get_proposal(proposal_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.proposals.get(proposal_id)


@router.patch("/{proposal_id}", response_model=Proposal)
def update_proposal(
    proposal_id: str,
    payload: ProposalUpdate,
    repos: Repositories = Depends(get_repositories),
    _=Depends(get_current_user),
):
    return repos.proposals.update(proposal_id, payload)


@router.delete("/{proposal_id}", response_model=DeleteOutcome)
def delete_proposal(proposal_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.proposals.delete(proposal_id)
