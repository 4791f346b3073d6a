"""Agent tier promotions.

Promotion requirements are checked against the agent's approved sales for a
month and the size of their direct team. Tier changes are always upward
through this service; every change leaves an AgentTierHistory row.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from brokerage.core.exceptions import CommissionEngineError, ValidationError
from brokerage.models.agent import Agent, AgentTier, AgentTierHistory
from brokerage.models.transaction import Transaction, TransactionStatus
from brokerage.services.recruiter_graph import RecruiterGraphResolver
from brokerage.services.tiers import TierRegistry, tier_registry

logger = logging.getLogger(__name__)

COUNTED_STATUSES = (TransactionStatus.APPROVED.value, TransactionStatus.COMPLETED.value)


def period_bounds(period: str):
    """'YYYY-MM' -> [first day of month, first day of next month)"""
    try:
        year, month = map(int, period.split("-"))
        start = datetime(year, month, 1, tzinfo=timezone.utc)
    except (ValueError, AttributeError):
        raise ValidationError(f"Period must be formatted YYYY-MM, got {period!r}")
    return start, start + relativedelta(months=1)


def current_period() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m")


class AgentTierService:
    def __init__(self, db: Session, registry: TierRegistry = tier_registry):
        self.db = db
        self.registry = registry
        self.resolver = RecruiterGraphResolver(db)

    def performance_metrics(self, agent_id: int, period: Optional[str] = None) -> Dict:
        """Approved sales in the period (by transaction date) and direct team size."""
        period = period or current_period()
        self.resolver.get_agent(agent_id)
        start, end = period_bounds(period)

        monthly_sales = (
            self.db.query(Transaction)
            .filter(
                Transaction.agent_id == agent_id,
                Transaction.status.in_(COUNTED_STATUSES),
                Transaction.transaction_date >= start,
                Transaction.transaction_date < end,
            )
            .count()
        )

        return {
            "period": period,
            "monthly_sales": monthly_sales,
            "team_members": self.resolver.count_downline(agent_id),
        }

    def evaluate(self, agent_id: int, target_tier=None, period: Optional[str] = None) -> Dict:
        """
        Check an agent against a tier's requirements. Without a target tier
        the next tier up is used; agents at the top tier have nothing to reach.
        """
        agent = self.resolver.get_agent(agent_id)
        metrics = self.performance_metrics(agent_id, period)

        if target_tier is None:
            next_config = self.registry.next_tier(agent.agent_tier)
            if next_config is None:
                return {
                    "agent_id": agent.id,
                    "current_tier": AgentTier(agent.agent_tier).value,
                    "target_tier": None,
                    "eligible": False,
                    "missing_requirements": [],
                    "metrics": metrics,
                }
            target_tier = next_config.tier

        target = self.registry.lookup(target_tier)
        eligible, missing = self.registry.check_requirements(
            target.tier, metrics["monthly_sales"], metrics["team_members"]
        )

        return {
            "agent_id": agent.id,
            "current_tier": AgentTier(agent.agent_tier).value,
            "target_tier": target.tier.value,
            "eligible": eligible,
            "missing_requirements": missing,
            "metrics": metrics,
        }

    def promote(
        self,
        agent_id: int,
        new_tier,
        promoted_by_id: int,
        reason: str,
        performance_metrics: Optional[Dict] = None,
        enforce_requirements: bool = False,
    ) -> Agent:
        agent = self.resolver.get_agent(agent_id)
        self.resolver.get_agent(promoted_by_id)
        target = self.registry.lookup(new_tier)

        previous = AgentTier(agent.agent_tier)
        if self.registry.rank(target.tier) == self.registry.rank(previous):
            raise ValidationError(f"Agent {agent_id} is already {target.display_name}")
        if self.registry.rank(target.tier) < self.registry.rank(previous):
            raise ValidationError("Cannot demote agent tier. Use separate demotion process.")

        if enforce_requirements:
            evaluation = self.evaluate(agent_id, target.tier)
            if not evaluation["eligible"]:
                raise ValidationError(
                    f"Agent {agent_id} does not meet {target.display_name} requirements",
                    errors=evaluation["missing_requirements"],
                )
            if performance_metrics is None:
                performance_metrics = evaluation["metrics"]

        effective_date = datetime.now(timezone.utc)
        agent.agent_tier = target.tier
        agent.tier_effective_date = effective_date
        agent.tier_promoted_by_id = promoted_by_id

        self.db.add(
            AgentTierHistory(
                agent_id=agent.id,
                previous_tier=previous.value,
                new_tier=target.tier.value,
                effective_date=effective_date,
                promoted_by_id=promoted_by_id,
                reason=reason,
                performance_metrics=performance_metrics,
            )
        )
        self.db.commit()
        self.db.refresh(agent)

        logger.info(
            f"Agent {agent_id} promoted {previous.value} -> {target.tier.value} by {promoted_by_id}"
        )
        return agent

    def bulk_promote(self, updates: List[Dict], promoted_by_id: int) -> List[Dict]:
        """
        Promote several agents. Each promotion commits on its own; failures
        are reported per agent and do not stop the rest.
        """
        results = []
        for update in updates:
            agent_id = update["agent_id"]
            try:
                agent = self.promote(agent_id, update["new_tier"], promoted_by_id, update["reason"])
            except CommissionEngineError as e:
                self.db.rollback()
                results.append({
                    "agent_id": agent_id,
                    "success": False,
                    "error_type": e.error_type,
                    "detail": e.message,
                })
                continue
            results.append({
                "agent_id": agent_id,
                "success": True,
                "agent_tier": AgentTier(agent.agent_tier).value,
            })
        return results

    def tier_history(self, agent_id: int) -> List[AgentTierHistory]:
        self.resolver.get_agent(agent_id)
        return (
            self.db.query(AgentTierHistory)
            .filter(AgentTierHistory.agent_id == agent_id)
            .order_by(AgentTierHistory.effective_date, AgentTierHistory.id)
            .all()
        )
