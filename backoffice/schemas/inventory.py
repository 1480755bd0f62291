import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class InventoryItemBase(BaseModel):
    name: str
    quantity: int = Field(default=0, ge=0)
    unit: str

    @field_validator("name", "unit", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class InventoryItemCreate(InventoryItemBase):
    pass


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = None


class InventoryItem(InventoryItemBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentLine(BaseModel):
    inventory_id: str
    quantity: int = Field(gt=0)


class AssignmentCreate(BaseModel):
    employee_id: str
    date: dt.date
    items: List[AssignmentLine] = Field(min_length=1)


class AssignmentUpdate(BaseModel):
    employee_id: Optional[str] = None
    date: Optional[dt.date] = None
    items: Optional[List[AssignmentLine]] = Field(default=None, min_length=1)


class Assignment(AssignmentCreate):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
