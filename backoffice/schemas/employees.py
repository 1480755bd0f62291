from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator


def _required_text(v):
    if v is None:
        return v
    v = str(v).strip()
    if not v:
        raise ValueError("must not be empty")
    return v


class EmployeeDocument(BaseModel):
    id: str
    name: str
    path: str
    upload_date: datetime


class EmployeeBase(BaseModel):
    full_name: str
    national_id: str
    birth_date: date
    social_security_no: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    phone: str

    @field_validator("full_name", "national_id", "social_security_no", "phone", mode="before")
    @classmethod
    def strip_required(cls, v):
        return _required_text(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    full_name: Optional[str] = None
    national_id: Optional[str] = None
    birth_date: Optional[date] = None
    social_security_no: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    phone: Optional[str] = None

    @field_validator("full_name", "national_id", "social_security_no", "phone", mode="before")
    @classmethod
    def strip_required(cls, v):
        return _required_text(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Employee(EmployeeBase):
    id: str
    documents: List[EmployeeDocument] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
