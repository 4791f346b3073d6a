from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import List, Union

from sqlalchemy.orm import Session

from brokerage.core.exceptions import ValidationError
from brokerage.models.agent import AgentTier
from brokerage.models.commission import CommissionLedgerEntry, LedgerEntryRole
from brokerage.services.tiers import TierRegistry, tier_registry

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Largest value a Numeric(15, 2) column holds
MAX_COMMISSION_AMOUNT = Decimal("9999999999999.99")


def to_cents(amount: Decimal) -> Decimal:
    """Round to the currency minor unit, half to even."""
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)
    except InvalidOperation:
        raise ValidationError(f"Amount cannot be rounded to cents: {amount}")


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their printed value, not their binary one
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Commission amount is not a number: {value!r}")


@dataclass(frozen=True)
class CommissionSplit:
    commission_amount: Decimal
    split_percent: Decimal
    agent_share: Decimal
    company_share: Decimal


@dataclass
class CommissionPreview:
    agent_id: int
    agent_tier: str
    split: CommissionSplit
    bonuses: List = field(default_factory=list)

    @property
    def total_bonus(self) -> Decimal:
        return sum((b.amount for b in self.bonuses), Decimal("0"))

    @property
    def company_net_share(self) -> Decimal:
        return self.split.company_share - self.total_bonus


def compute_split(
    commission_amount: Union[Decimal, int, float, str],
    tier: Union[AgentTier, str],
    registry: TierRegistry = tier_registry,
) -> CommissionSplit:
    """
    Split a commission between the agent and the company.

    agent_share is rounded to the cent; company_share is the exact remainder
    so the two always add back up to commission_amount.
    """
    amount = to_decimal(commission_amount)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Commission amount must be positive, got {commission_amount}")
    if amount > MAX_COMMISSION_AMOUNT:
        raise ValidationError(f"Commission amount exceeds {MAX_COMMISSION_AMOUNT}, got {commission_amount}")

    config = registry.lookup(tier)
    agent_share = to_cents(amount * config.commission_split_percent / HUNDRED)
    company_share = amount - agent_share

    return CommissionSplit(
        commission_amount=amount,
        split_percent=config.commission_split_percent,
        agent_share=agent_share,
        company_share=company_share,
    )


class CommissionCalculationService:
    """
    Commission calculation:
    1. Agent's tier sets the agent/company split of the commission amount
    2. Each bonus-eligible upline takes its rate of the company share
    3. Figures use the tier configuration at the moment of calculation
    """

    def __init__(self, db: Session, registry: TierRegistry = tier_registry):
        self.db = db
        self.registry = registry

    def compute_split(self, commission_amount, tier) -> CommissionSplit:
        return compute_split(commission_amount, tier, self.registry)

    def own_commission_entry(
        self,
        transaction_id: int,
        agent_id: int,
        tier: Union[AgentTier, str],
        split: CommissionSplit,
        created_by_id: int = None,
    ) -> CommissionLedgerEntry:
        """Unsaved ledger entry for the submitting agent's own share."""
        return CommissionLedgerEntry(
            transaction_id=transaction_id,
            recipient_agent_id=agent_id,
            source_agent_id=agent_id,
            role=LedgerEntryRole.OWN_COMMISSION.value,
            amount=split.agent_share,
            rate_percent=split.split_percent,
            base_amount=split.commission_amount,
            recipient_tier=AgentTier(tier).value,
            hop=0,
            created_by_id=created_by_id,
        )

    def preview(self, agent_id: int, commission_amount) -> CommissionPreview:
        """Split and upline bonuses for a prospective commission. Nothing is saved."""
        from brokerage.services.leadership_bonus import LeadershipBonusDistributor
        from brokerage.services.recruiter_graph import RecruiterGraphResolver

        resolver = RecruiterGraphResolver(self.db)
        agent = resolver.get_agent(agent_id)
        split = self.compute_split(commission_amount, agent.agent_tier)

        distributor = LeadershipBonusDistributor(resolver, self.registry)
        bonuses = distributor.compute_bonuses(agent.id, split.company_share)

        return CommissionPreview(
            agent_id=agent.id,
            agent_tier=AgentTier(agent.agent_tier).value,
            split=split,
            bonuses=bonuses,
        )
