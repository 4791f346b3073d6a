"""Agent tiers API: tier table, recruiter graph, promotions, leadership bonuses."""
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from brokerage.core.database import get_db
from brokerage.core.security import get_current_user, require_admin
from brokerage.models.agent import Agent
from brokerage.models.commission import CommissionLedgerEntry, LedgerEntryRole
from brokerage.schemas.agent import (
    AgentSummary, AgentTierInfo, AgentWithTier, AssignRecruiterRequest, BulkPromoteRequest,
    BulkPromoteResult, PromoteRequest, TierConfig, TierEligibility, TierHistoryEntry,
)
from brokerage.schemas.commission import (
    BonusAllocation, CommissionPreview, CommissionPreviewRequest, LeadershipBonusSummary,
)
from brokerage.services.agent_tiers import AgentTierService
from brokerage.services.commission import CommissionCalculationService
from brokerage.services.recruiter_graph import RecruiterGraphResolver
from brokerage.services.tiers import tier_registry

router = APIRouter(prefix="/api/agent-tiers", tags=["agent-tiers"])


def _require_self_or_admin(current_user: Agent, agent_id: int):
    if not current_user.is_admin and current_user.id != agent_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized"
        )


@router.get("", response_model=List[TierConfig])
def list_tiers(current_user: Agent = Depends(get_current_user)):
    """All tiers, lowest first"""
    return [TierConfig.model_validate(config) for config in tier_registry.ordered()]


@router.get("/me", response_model=AgentTierInfo)
def get_my_tier(current_user: Agent = Depends(get_current_user)):
    """Current user's tier, its configuration, and the next tier up"""
    info = AgentSummary.model_validate(current_user).model_dump()
    next_tier = tier_registry.next_tier(current_user.agent_tier)
    info["tier_config"] = TierConfig.model_validate(tier_registry.lookup(current_user.agent_tier))
    info["next_tier"] = TierConfig.model_validate(next_tier) if next_tier else None
    return info


@router.post("/preview", response_model=CommissionPreview)
def preview_commission(
    body: CommissionPreviewRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Commission split and upline bonuses for a prospective amount. Nothing is saved."""
    preview = CommissionCalculationService(db).preview(current_user.id, body.commission_amount)
    return {
        "agent_id": preview.agent_id,
        "agent_tier": preview.agent_tier,
        "commission_amount": preview.split.commission_amount,
        "split_percent": preview.split.split_percent,
        "agent_share": preview.split.agent_share,
        "company_share": preview.split.company_share,
        "bonuses": [BonusAllocation.model_validate(b) for b in preview.bonuses],
        "total_bonus": preview.total_bonus,
        "company_net_share": preview.company_net_share,
    }


@router.get("/me/leadership-bonuses", response_model=LeadershipBonusSummary)
def get_my_leadership_bonuses(
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Leadership bonuses paid to the current user from their downline"""
    payments = (
        db.query(CommissionLedgerEntry)
        .filter(
            CommissionLedgerEntry.recipient_agent_id == current_user.id,
            CommissionLedgerEntry.role == LedgerEntryRole.LEADERSHIP_BONUS.value,
        )
        .order_by(CommissionLedgerEntry.id.desc())
        .all()
    )
    config = tier_registry.lookup(current_user.agent_tier)

    return {
        "agent_id": current_user.id,
        "current_tier": config.tier.value,
        "leadership_bonus_rate": config.leadership_bonus_rate_percent,
        "downline_count": RecruiterGraphResolver(db).count_downline(current_user.id),
        "total_bonus": sum((p.amount for p in payments), Decimal("0")),
        "payment_count": len(payments),
        "recent_payments": payments[:10],
    }


@router.get("/agents", response_model=List[AgentWithTier])
def list_agents_with_tiers(
    limit: int = 50,
    offset: int = 0,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Every agent with their tier configuration, oldest first (admin only)"""
    require_admin(current_user)
    limit = max(1, min(limit, 100))
    agents = (
        db.query(Agent)
        .order_by(Agent.created_at, Agent.id)
        .offset(max(offset, 0))
        .limit(limit)
        .all()
    )

    items = []
    for agent in agents:
        info = AgentSummary.model_validate(agent).model_dump()
        info["tier_config"] = TierConfig.model_validate(tier_registry.lookup(agent.agent_tier))
        items.append(info)
    return items


@router.post("/bulk-promote", response_model=List[BulkPromoteResult])
def bulk_promote(
    body: BulkPromoteRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Promote several agents (admin only). Each promotion succeeds or fails on its own."""
    require_admin(current_user)
    return AgentTierService(db).bulk_promote(
        [update.model_dump() for update in body.updates], current_user.id
    )


@router.get("/{agent_id}/upline", response_model=Optional[AgentSummary])
def get_upline(
    agent_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Direct recruiter of an agent (null at the root)"""
    _require_self_or_admin(current_user, agent_id)
    return RecruiterGraphResolver(db).get_upline(agent_id)


@router.get("/{agent_id}/upline-chain", response_model=List[AgentSummary])
def get_upline_chain(
    agent_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recruiters from the direct one up to the root"""
    _require_self_or_admin(current_user, agent_id)
    return RecruiterGraphResolver(db).upline_chain(agent_id)


@router.get("/{agent_id}/downline", response_model=List[AgentSummary])
def get_downline(
    agent_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Agents directly recruited by this agent"""
    _require_self_or_admin(current_user, agent_id)
    return RecruiterGraphResolver(db).get_downline(agent_id)


@router.put("/{agent_id}/recruiter", response_model=AgentSummary)
def assign_recruiter(
    agent_id: int,
    body: AssignRecruiterRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Set an agent's recruiter (admin only)"""
    require_admin(current_user)
    agent = RecruiterGraphResolver(db).assign_recruiter(agent_id, body.recruiter_id)
    db.commit()
    db.refresh(agent)
    return agent


@router.get("/{agent_id}/eligibility", response_model=TierEligibility)
def get_tier_eligibility(
    agent_id: int,
    target_tier: Optional[str] = None,
    period: Optional[str] = None,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Check an agent against a tier's promotion requirements.
    Defaults to the next tier up and the current month (period format: YYYY-MM).
    """
    _require_self_or_admin(current_user, agent_id)
    return AgentTierService(db).evaluate(agent_id, target_tier, period)


@router.post("/{agent_id}/promote", response_model=AgentSummary)
def promote_agent(
    agent_id: int,
    body: PromoteRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Promote an agent to a higher tier (admin only)"""
    require_admin(current_user)
    return AgentTierService(db).promote(
        agent_id,
        body.new_tier,
        current_user.id,
        body.reason,
        enforce_requirements=body.enforce_requirements,
    )


@router.get("/{agent_id}/history", response_model=List[TierHistoryEntry])
def get_tier_history(
    agent_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tier changes of an agent, oldest first"""
    _require_self_or_admin(current_user, agent_id)
    return AgentTierService(db).tier_history(agent_id)
