import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class NoteFile(BaseModel):
    name: str
    path: str


class NoteBase(BaseModel):
    customer_name: str
    subject: str
    content: str
    date: dt.date

    @field_validator("customer_name", "subject", "content", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class NoteCreate(NoteBase):
    created_by: str


class NoteUpdate(BaseModel):
    customer_name: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    date: Optional[dt.date] = None
    # names of the attachments to keep; None keeps all of them
    files: Optional[List[str]] = None


class Note(NoteBase):
    id: str
    created_by: str
    files: List[NoteFile] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
