from pydantic import BaseModel, EmailStr, Field
from typing import Dict, Optional, List
from datetime import datetime
from decimal import Decimal
from brokerage.models.transaction import (
    MarketType, TransactionType, ClientType, CommissionType,
)


class PropertyData(BaseModel):
    address: str = Field(..., min_length=1)
    property_type: str = Field(..., min_length=1)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, gt=0)
    price: float = Field(..., gt=0)
    description: Optional[str] = None


class ClientData(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    type: ClientType
    source: str = Field(..., min_length=1)
    notes: Optional[str] = None


class CoBrokingData(BaseModel):
    agent_name: str = Field(..., min_length=1)
    agency_name: str = Field(..., min_length=1)
    commission_split: float = Field(..., ge=0, le=100)
    contact_info: str = Field(..., min_length=1)


class TransactionBase(BaseModel):
    market_type: MarketType
    transaction_type: TransactionType
    transaction_date: datetime
    property_data: Optional[PropertyData] = None
    client_data: Optional[ClientData] = None
    is_co_broking: bool = False
    co_broking_data: Optional[CoBrokingData] = None
    commission_type: CommissionType
    commission_value: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    commission_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    notes: Optional[str] = None


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    market_type: Optional[MarketType] = None
    transaction_type: Optional[TransactionType] = None
    transaction_date: Optional[datetime] = None
    property_data: Optional[PropertyData] = None
    client_data: Optional[ClientData] = None
    is_co_broking: Optional[bool] = None
    co_broking_data: Optional[CoBrokingData] = None
    commission_type: Optional[CommissionType] = None
    commission_value: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    commission_amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    notes: Optional[str] = None


class TransactionInDB(BaseModel):
    id: int
    agent_id: int
    market_type: str
    transaction_type: str
    transaction_date: datetime
    property_data: Optional[dict] = None
    client_data: Optional[dict] = None
    is_co_broking: Optional[bool] = None
    co_broking_data: Optional[dict] = None
    commission_type: str
    commission_value: Decimal
    commission_amount: Decimal
    notes: Optional[str] = None
    status: str
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by_id: Optional[int] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Transaction(TransactionInDB):
    pass


class StatusChange(BaseModel):
    id: int
    transaction_id: int
    from_status: str
    to_status: str
    changed_by_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class TransactionList(BaseModel):
    total: int
    items: List[Transaction]


class BulkReviewRequest(BaseModel):
    transaction_ids: List[int] = Field(..., min_length=1, max_length=100)
    action: str = Field(..., pattern="^(approve|reject)$")
    notes: Optional[str] = None
    reason: Optional[str] = None


class BulkReviewItem(BaseModel):
    transaction_id: int
    success: bool
    status: Optional[str] = None
    error_type: Optional[str] = None
    detail: Optional[str] = None


class BulkReviewResult(BaseModel):
    succeeded: int
    failed: int
    results: List[BulkReviewItem]


class TransactionStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    pending_review: int
    own_commission_total: Decimal
    leadership_bonus_total: Decimal
