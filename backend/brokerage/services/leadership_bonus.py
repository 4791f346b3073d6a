"""Leadership bonus: overrides paid to upline recruiters out of the company share.

Every eligible upline earns its tier's rate of the *same* company share;
the pool is not depleted hop by hop, so with several eligible uplines the
bonuses can add up to more than the company share. That is logged, not capped.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from brokerage.core.config import settings
from brokerage.models.agent import AgentTier
from brokerage.models.commission import CommissionLedgerEntry, LedgerEntryRole
from brokerage.services.commission import HUNDRED, to_cents
from brokerage.services.recruiter_graph import RecruiterGraphResolver
from brokerage.services.tiers import TierRegistry, tier_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BonusAllocation:
    upline_agent_id: int
    upline_name: str
    upline_tier: str
    hop: int
    rate_percent: Decimal
    company_share: Decimal
    amount: Decimal


class LeadershipBonusDistributor:
    def __init__(
        self,
        resolver: RecruiterGraphResolver,
        registry: TierRegistry = tier_registry,
        max_depth: int = None,
    ):
        self.resolver = resolver
        self.registry = registry
        self.max_depth = max_depth if max_depth is not None else settings.MAX_UPLINE_DEPTH

    def compute_bonuses(self, submitting_agent_id: int, company_share: Decimal) -> List[BonusAllocation]:
        """
        Walk the upline nearest-first. Ineligible tiers are skipped without
        ending the walk. A recruiter cycle raises CycleDetectedError.
        """
        allocations = []

        for hop, upline in enumerate(
            self.resolver.walk_upline_chain(submitting_agent_id, self.max_depth), start=1
        ):
            config = self.registry.lookup(upline.agent_tier)
            if not config.is_bonus_eligible:
                continue

            amount = to_cents(company_share * config.leadership_bonus_rate_percent / HUNDRED)
            allocations.append(
                BonusAllocation(
                    upline_agent_id=upline.id,
                    upline_name=upline.full_name or upline.email,
                    upline_tier=config.tier.value,
                    hop=hop,
                    rate_percent=config.leadership_bonus_rate_percent,
                    company_share=company_share,
                    amount=amount,
                )
            )

        total = sum((a.amount for a in allocations), Decimal("0"))
        if total > company_share:
            logger.warning(
                f"Leadership bonuses for agent {submitting_agent_id} total {total}, "
                f"exceeding company share {company_share}"
            )

        return allocations

    def distribute_bonus(
        self,
        transaction_id: int,
        submitting_agent_id: int,
        company_share: Decimal,
        created_by_id: int = None,
    ) -> List[CommissionLedgerEntry]:
        """Unsaved leadership_bonus ledger entries, one per eligible upline."""
        entries = [
            CommissionLedgerEntry(
                transaction_id=transaction_id,
                recipient_agent_id=allocation.upline_agent_id,
                source_agent_id=submitting_agent_id,
                role=LedgerEntryRole.LEADERSHIP_BONUS.value,
                amount=allocation.amount,
                rate_percent=allocation.rate_percent,
                base_amount=company_share,
                recipient_tier=AgentTier(allocation.upline_tier).value,
                hop=allocation.hop,
                created_by_id=created_by_id,
            )
            for allocation in self.compute_bonuses(submitting_agent_id, company_share)
        ]

        logger.info(
            f"Transaction {transaction_id}: {len(entries)} leadership bonus entries "
            f"from company share {company_share}"
        )
        return entries
