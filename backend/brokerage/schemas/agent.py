from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from brokerage.models.agent import AgentTier


class TierRequirements(BaseModel):
    monthly_sales: int
    team_members: int

    class Config:
        from_attributes = True


class TierConfig(BaseModel):
    tier: AgentTier
    display_name: str
    description: str
    commission_split_percent: Decimal
    leadership_bonus_rate_percent: Decimal
    is_bonus_eligible: bool
    requirements: TierRequirements

    class Config:
        from_attributes = True


class AgentSummary(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    agent_tier: AgentTier
    recruited_by_id: Optional[int] = None
    recruited_at: Optional[datetime] = None
    tier_effective_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class AgentTierInfo(AgentSummary):
    tier_config: TierConfig
    next_tier: Optional[TierConfig] = None


class AssignRecruiterRequest(BaseModel):
    recruiter_id: int


class PromoteRequest(BaseModel):
    new_tier: AgentTier
    reason: str = Field(..., min_length=1)
    enforce_requirements: bool = False


class TierHistoryEntry(BaseModel):
    id: int
    agent_id: int
    previous_tier: Optional[str] = None
    new_tier: str
    effective_date: datetime
    promoted_by_id: Optional[int] = None
    reason: Optional[str] = None
    performance_metrics: Optional[dict] = None

    class Config:
        from_attributes = True


class PerformanceMetrics(BaseModel):
    period: str
    monthly_sales: int
    team_members: int


class TierEligibility(BaseModel):
    agent_id: int
    current_tier: str
    target_tier: Optional[str] = None
    eligible: bool
    missing_requirements: List[str]
    metrics: PerformanceMetrics


class AgentWithTier(AgentSummary):
    tier_config: TierConfig


class BulkPromoteItem(BaseModel):
    agent_id: int
    new_tier: AgentTier
    reason: str = Field(..., min_length=1)


class BulkPromoteRequest(BaseModel):
    updates: List[BulkPromoteItem] = Field(..., min_length=1, max_length=100)


class BulkPromoteResult(BaseModel):
    agent_id: int
    success: bool
    agent_tier: Optional[str] = None
    error_type: Optional[str] = None
    detail: Optional[str] = None
