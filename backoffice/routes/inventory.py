from typing import List

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user
from ..deps import get_repositories
from ..repositories import Repositories
from ..schemas.files import DeleteOutcome
from ..schemas.inventory import (
    Assignment,
    AssignmentCreate,
    AssignmentUpdate,
    InventoryItem,
    InventoryItemCreate,
    InventoryItemUpdate,
)


router = APIRouter(prefix="/inventory", tags=["inventory"], dependencies=[Depends(get_current_user)])
assignments_router = APIRouter(prefix="/assignments", tags=["inventory"], dependencies=[Depends(get_current_user)])


# ---------- ITEMS ----------
@router.get("", response_model=List[InventoryItem])
def list_items(repos: Repositories = Depends(get_repositories)):
    return repos.inventory.list()


@router.post("", response_model=InventoryItem, status_code=201)
def create_item(payload: InventoryItemCreate, repos: Repositories = Depends(get_repositories)):
    return repos.inventory.create(payload)


@router.get("/{item_id}", response_model=InventoryItem)
def get_item(item_id: str, repos: Repositories = Depends(get_repositories)):
    return repos.inventory.get(item_id)


@router.patch("/{item_id}", response_model=InventoryItem)
def update_item(item_id: str, payload: InventoryItemUpdate, repos: Repositories = Depends(get_repositories)):
    return repos.inventory.update(item_id, payload)


@router.delete("/{item_id}", response_model=DeleteOutcome)
def delete_item(item_id: str, repos: Repositories = Depends(get_repositories)):
    return repos.inventory.delete(item_id)


# ---------- ASSIGNMENTS ----------
@assignments_router.get("", response_model=List[Assignment])
def list_assignments(repos: Repositories = Depends(get_repositories)):
    return repos.assignments.list()


@assignments_router.post("", response_model=Assignment, status_code=201)
def create_assignment(payload: AssignmentCreate, repos: Repositories = Depends(get_repositories)):
    return repos.assignments.create(payload)


@assignments_router.get("/{assignment_id}", response_model=Assignment)
def get_assignment(assignment_id: str, repos: Repositories = Depends(get_repositories)):
    return repos.assignments.get(assignment_id)


@assignments_router.patch("/{assignment_id}", response_model=Assignment)
def update_assignment(assignment_id: str, payload: AssignmentUpdate, repos: Repositories = Depends(get_repositories)):
    return repos.assignments.update(assignment_id, payload)


@assignments_router.delete("/{assignment_id}", response_model=DeleteOutcome)
def delete_assignment(assignment_id: str, repos: Repositories = Depends(get_repositories)):
    return repos.assignments.delete(assignment_id)
