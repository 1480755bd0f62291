from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class RateCardServiceInput(BaseModel):
    id: Optional[str] = None
    name: str
    price: Decimal = Field(ge=0)
    unit: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class RateCardCategoryInput(BaseModel):
    id: Optional[str] = None
    name: str
    services: List[RateCardServiceInput] = []

    @field_validator("name", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class RateCardService(RateCardServiceInput):
    id: str


class RateCardCategory(BaseModel):
    id: str
    name: str
    services: List[RateCardService] = []


class RateCardBase(BaseModel):
    customer_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("customer_name", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RateCardCreate(RateCardBase):
    categories: List[RateCardCategoryInput] = []
    created_by: Optional[str] = None


class RateCardUpdate(BaseModel):
    customer_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    categories: Optional[List[RateCardCategoryInput]] = None


class RateCard(RateCardBase):
    id: str
    categories: List[RateCardCategory] = []
    created_by: Optional[str] = None
    source_file: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RateCardSheet(BaseModel):
    """Rate card content read from a spreadsheet, before it is stored."""
    customer_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    categories: List[RateCardCategoryInput] = []

    def create_payload(self, created_by: Optional[str] = None) -> dict:
        return {**self.model_dump(), "created_by": created_by}


class RateCardUploadResult(BaseModel):
    customer_name: str
    ok: bool
    id: Optional[str] = None
    error: Optional[Any] = None
