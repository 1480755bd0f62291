import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import enum

from pydantic import BaseModel, Field, field_validator


class ProposalStatus(str, enum.Enum):
    draft = "draft"
    approved = "approved"
    rejected = "rejected"
    awaiting_invoice = "awaiting_invoice"
    invoiced = "invoiced"


class AdjustmentType(str, enum.Enum):
    percentage = "percentage"
    amount = "amount"


class Adjustment(BaseModel):
    type: AdjustmentType
    value: Decimal = Field(ge=0)


class ServiceLineInput(BaseModel):
    name: str
    quantity: Decimal = Field(default=Decimal(1), ge=0)
    days: int = Field(default=1, ge=1)
    unit: Optional[str] = None
    unit_price: Decimal = Field(ge=0)


class ServiceLine(ServiceLineInput):
    total: Decimal = Decimal(0)


class TopicInput(BaseModel):
    title: str
    services: List[ServiceLineInput] = []


class Topic(BaseModel):
    title: str
    services: List[ServiceLine] = []
    total: Decimal = Decimal(0)


class ProposalBase(BaseModel):
    customer_name: str
    project_name: str
    date: dt.date
    discount: Optional[Adjustment] = None
    agency_commission: Optional[Adjustment] = None
    terms: Optional[str] = None
    show_total: bool = True

    @field_validator("customer_name", "project_name", mode="before")
    @classmethod
    def strip_required(cls, v):
        v = str(v).strip() if v is not None else v
        if not v:
            raise ValueError("must not be empty")
        return v


class ProposalCreate(ProposalBase):
    topics: List[TopicInput] = []
    created_by: Optional[str] = None


class ProposalUpdate(BaseModel):
    customer_name: Optional[str] = None
    project_name: Optional[str] = None
    date: Optional[dt.date] = None
    topics: Optional[List[TopicInput]] = None
    discount: Optional[Adjustment] = None
    agency_commission: Optional[Adjustment] = None
    terms: Optional[str] = None
    show_total: Optional[bool] = None
    status: Optional[ProposalStatus] = None


class Proposal(ProposalBase):
    id: str
    topics: List[Topic] = []
    subtotal: Decimal = Decimal(0)
    total_amount: Decimal = Decimal(0)
    status: ProposalStatus = ProposalStatus.draft
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
