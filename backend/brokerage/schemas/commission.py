from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class LedgerEntry(BaseModel):
    id: int
    transaction_id: int
    recipient_agent_id: int
    source_agent_id: int
    role: str
    amount: Decimal
    rate_percent: Decimal
    base_amount: Decimal
    recipient_tier: str
    hop: int
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalResult(BaseModel):
    transaction_id: int
    status: str
    approver_id: int
    commission_amount: Decimal
    agent_share: Decimal
    company_share: Decimal
    total_bonus: Decimal
    company_net_share: Decimal
    approved_at: datetime
    entries: List[LedgerEntry]

    class Config:
        from_attributes = True


class CommissionPreviewRequest(BaseModel):
    commission_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)


class BonusAllocation(BaseModel):
    upline_agent_id: int
    upline_name: str
    upline_tier: str
    hop: int
    rate_percent: Decimal
    amount: Decimal

    class Config:
        from_attributes = True


class CommissionPreview(BaseModel):
    agent_id: int
    agent_tier: str
    commission_amount: Decimal
    split_percent: Decimal
    agent_share: Decimal
    company_share: Decimal
    bonuses: List[BonusAllocation]
    total_bonus: Decimal
    company_net_share: Decimal


class LeadershipBonusSummary(BaseModel):
    agent_id: int
    current_tier: str
    leadership_bonus_rate: Decimal
    downline_count: int
    total_bonus: Decimal
    payment_count: int
    recent_payments: List[LedgerEntry]
