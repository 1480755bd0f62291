from pydantic import BaseModel
from typing import Optional


class UploadResult(BaseModel):
    filename: str
    ok: bool
    stored_name: Optional[str] = None
    document_id: Optional[str] = None
    error: Optional[str] = None


class DeleteOutcome(BaseModel):
    id: str
    removed_dependents: list[str] = []
    cleanup_errors: list[str] = []
