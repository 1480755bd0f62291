import datetime as dt
import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from ..auth.security import get_current_user
from ..deps import get_repositories
from ..document_creator.pdf_builder import render
from ..errors import ValidationError
from ..repositories import Repositories
from ..schemas.auth import User
from ..schemas.files import DeleteOutcome, UploadResult
from ..schemas.notes import Note


router = APIRouter(prefix="/notes", tags=["notes"])


class NoteWithUploads(BaseModel):
    note: Note
    uploads: List[UploadResult] = []


def _uploads(files: Optional[List[UploadFile]]):
    return [(f.filename or "file", f.file.read()) for f in files or [] if f.filename]


def _keep_list(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    try:
        keep = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError("files must be a JSON list of file names", {"reason": str(e)}) from e
    if not isinstance(keep, list) or not all(isinstance(k, str) for k in keep):
        raise ValidationError("files must be a JSON list of file names")
    return keep


@router.get("", response_model=List[Note])
def list_notes(repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.notes.list()


@router.post("", response_model=NoteWithUploads, status_code=201)
def create_note(
    customer_name: str = Form(...),
    subject: str = Form(...),
    content: str = Form(...),
    date: dt.date = Form(...),
    files: Optional[List[UploadFile]] = File(default=None),
    repos: Repositories = Depends(get_repositories),
    user: User = Depends(get_current_user),
):
    note = repos.notes.create({
        "customer_name": customer_name,
        "subject": subject,
        "content": content,
        "date": date,
        "created_by": user.name,
    })
    results = []
    uploads = _uploads(files)
    if uploads:
        results = repos.notes.add_files(note.id, uploads)
        note = repos.notes.get(note.id)
    return NoteWithUploads(note=note, uploads=results)


@router.get("/{note_id}", response_model=Note)
def get_note(note_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.notes.get(note_id)


@router.put("/{note_id}", response_model=NoteWithUploads)
def update_note(
    note_id: str,
    customer_name: Optional[str] = Form(default=None),
    subject: Optional[str] = Form(default=None),
    content: Optional[str] = Form(default=None),
    date: Optional[dt.date] = Form(default=None),
    existing_files: Optional[str] = Form(default=None),
    files: Optional[List[UploadFile]] = File(default=None),
    repos: Repositories = Depends(get_repositories),
    _=Depends(get_current_user),
):
    patch = {
        k: v
        for k, v in {"customer_name": customer_name, "subject": subject, "content": content, "date": date}.items()
        if v is not None
    }
    keep = _keep_list(existing_files)
    if keep is not None:
        patch["files"] = keep
    note = repos.notes.update(note_id, patch)
    results = []
    uploads = _uploads(files)
    if uploads:
        results = repos.notes.add_files(note_id, uploads)
        note = repos.notes.get(note_id)
    return NoteWithUploads(note=note, uploads=results)


@router.delete("/{note_id}", response_model=DeleteOutcome)
def delete_note(note_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    return repos.notes.delete(note_id)


@router.get("/{note_id}/download")
def download_note(note_id: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    data, filename = render(repos.notes.get(note_id), "note")
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------- FILES ----------
@router.get("/{note_id}/files/{name}")
def get_note_file(note_id: str, name: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    data, media_type = repos.notes.get_file(note_id, name)
    return Response(content=data, media_type=media_type, headers={"Content-Disposition": f'inline; filename="{name}"'})


@router.delete("/{note_id}/files/{name}")
def delete_note_file(note_id: str, name: str, repos: Repositories = Depends(get_repositories), _=Depends(get_current_user)):
    repos.notes.delete_file(note_id, name)
    return {"status": "ok"}
