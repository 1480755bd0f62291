import mimetypes
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response

from ..auth.security import get_current_user
from ..deps import get_repositories
from ..repositories import Repositories
from ..schemas.employees import Employee, EmployeeCreate, EmployeeUpdate
from ..schemas.files import DeleteOutcome, UploadResult
from ..schemas.inventory import Assignment


router = APIRouter(prefix="/employees", tags=["employees"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=List[Employee])
def list_employees(repos: Repositories = Depends(get_repositories)):
    return repos.employees.list()


@router.post("", response_model=Employee, status_code=201)
def create_employee(payload: EmployeeCreate, repos: Repositories = Depends(get_repositories)):
    return repos.employees.create(payload)


@router.get("/{employee_id}", response_model=Employee)
def get_employee(employee_id: str, repos: Repositories = Depends(get_repositories)):
    return repos.employees.get(employee_id)


@router.patch("/{employee_id}", response_model=Employee)
def update_employee(employee_id: str, payload: EmployeeUpdate, repos: Repositories = Depends(get_repositories)):
    return repos.employees.update(employee_id, payload)


@router.delete("/{employee_id}", response_model=DeleteOutcome)
def delete_employee(
    employee_id: str,
    cascade: Optional[bool] = Query(default=None),
    repos: Repositories = Depends(get_repositories),
):
    return repos.employees.delete(employee_id, cascade=cascade)


@router.get("/{employee_id}/assignments", response_model=List[Assignment])
def employee_assignments(employee_id: str, repos: Repositories = Depends(get_repositories)):
    repos.employees.get(employee_id)
    return repos.assignments.list_for_employee(employee_id)


# ---------- DOCUMENTS ----------
@router.post("/{employee_id}/files", response_model=List[UploadResult])
def upload_documents(
    employee_id: str,
    files: List[UploadFile] = File(...),
    repos: Repositories = Depends(get_repositories),
):
    uploads = [(f.filename or "file", f.file.read()) for f in files]
    return repos.employees.add_documents(employee_id, uploads)


@router.get("/{employee_id}/files/{document_id}")
def download_document(employee_id: str, document_id: str, repos: Repositories = Depends(get_repositories)):
    document, data = repos.employees.get_document(employee_id, document_id)
    media_type = mimetypes.guess_type(document.path)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'inline; filename="{document.path}"'},
    )


@router.delete("/{employee_id}/files/{document_id}")
def delete_document(employee_id: str, document_id: str, repos: Repositories = Depends(get_repositories)):
    repos.employees.delete_document(employee_id, document_id)
    return {"status": "ok"}
