"""Leadership plan tier registry.

Tiers are flat, independent configurations looked up by key:
- commission split: the agent's share of a transaction's commission
- leadership bonus rate: paid to an upline of this tier, as a percentage of
  the company's retained share (not the gross commission)
- promotion requirements: monthly sales and direct team members
"""
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from brokerage.core.exceptions import ConfigurationError
from brokerage.models.agent import AgentTier

TIER_ORDER: Tuple[AgentTier, ...] = (
    AgentTier.ADVISOR,
    AgentTier.SALES_LEADER,
    AgentTier.TEAM_LEADER,
    AgentTier.GROUP_LEADER,
    AgentTier.SUPREME_LEADER,
)


@dataclass(frozen=True)
class PromotionRequirements:
    monthly_sales: int
    team_members: int


@dataclass(frozen=True)
class TierConfig:
    tier: AgentTier
    commission_split_percent: Decimal
    leadership_bonus_rate_percent: Decimal
    requirements: PromotionRequirements
    display_name: str
    description: str = ""

    @property
    def is_bonus_eligible(self) -> bool:
        return self.leadership_bonus_rate_percent > 0


DEFAULT_TIER_CONFIG: Dict[AgentTier, TierConfig] = {
    AgentTier.ADVISOR: TierConfig(
        tier=AgentTier.ADVISOR,
        commission_split_percent=Decimal("70"),
        leadership_bonus_rate_percent=Decimal("0"),
        requirements=PromotionRequirements(monthly_sales=0, team_members=0),
        display_name="Advisor",
        description="Entry level agent",
    ),
    AgentTier.SALES_LEADER: TierConfig(
        tier=AgentTier.SALES_LEADER,
        commission_split_percent=Decimal("80"),
        leadership_bonus_rate_percent=Decimal("7"),
        requirements=PromotionRequirements(monthly_sales=2, team_members=0),
        display_name="Sales Leader",
        description="2+ monthly sales",
    ),
    AgentTier.TEAM_LEADER: TierConfig(
        tier=AgentTier.TEAM_LEADER,
        commission_split_percent=Decimal("83"),
        leadership_bonus_rate_percent=Decimal("5"),
        requirements=PromotionRequirements(monthly_sales=3, team_members=3),
        display_name="Team Leader",
        description="3+ sales, 3+ team members",
    ),
    AgentTier.GROUP_LEADER: TierConfig(
        tier=AgentTier.GROUP_LEADER,
        commission_split_percent=Decimal("85"),
        leadership_bonus_rate_percent=Decimal("8"),
        requirements=PromotionRequirements(monthly_sales=5, team_members=5),
        display_name="Group Leader",
        description="5+ sales, 5+ team members",
    ),
    AgentTier.SUPREME_LEADER: TierConfig(
        tier=AgentTier.SUPREME_LEADER,
        commission_split_percent=Decimal("85"),
        leadership_bonus_rate_percent=Decimal("6"),
        requirements=PromotionRequirements(monthly_sales=8, team_members=10),
        display_name="Supreme Leader",
        description="8+ sales, 10+ team members",
    ),
}


def _coerce_tier(tier: Union[AgentTier, str]) -> AgentTier:
    if isinstance(tier, AgentTier):
        return tier
    try:
        return AgentTier(tier)
    except ValueError:
        raise ConfigurationError(f"Unknown agent tier: {tier!r}")


class TierRegistry:
    """Immutable lookup table over the five leadership tiers."""

    def __init__(self, configs: Mapping[AgentTier, TierConfig] = None):
        configs = dict(configs if configs is not None else DEFAULT_TIER_CONFIG)

        missing = [t.value for t in TIER_ORDER if t not in configs]
        if missing:
            raise ConfigurationError(f"Tier configuration missing for: {', '.join(missing)}")

        for tier, config in configs.items():
            if config.tier != tier:
                raise ConfigurationError(f"Tier config keyed as {tier.value} describes {config.tier.value}")
            for label, pct in (
                ("commission split", config.commission_split_percent),
                ("leadership bonus rate", config.leadership_bonus_rate_percent),
            ):
                if not Decimal("0") <= pct <= Decimal("100"):
                    raise ConfigurationError(
                        f"{config.display_name}: {label} {pct} is outside 0-100"
                    )

        self._configs = MappingProxyType(configs)

    def lookup(self, tier: Union[AgentTier, str]) -> TierConfig:
        tier = _coerce_tier(tier)
        try:
            return self._configs[tier]
        except KeyError:
            raise ConfigurationError(f"No configuration for tier: {tier.value}")

    def next_tier(self, tier: Union[AgentTier, str]) -> Optional[TierConfig]:
        index = TIER_ORDER.index(_coerce_tier(tier))
        if index + 1 >= len(TIER_ORDER):
            return None
        return self.lookup(TIER_ORDER[index + 1])

    def previous_tier(self, tier: Union[AgentTier, str]) -> Optional[TierConfig]:
        index = TIER_ORDER.index(_coerce_tier(tier))
        if index == 0:
            return None
        return self.lookup(TIER_ORDER[index - 1])

    def is_eligible_for_bonus(self, tier: Union[AgentTier, str]) -> bool:
        return self.lookup(tier).is_bonus_eligible

    def rank(self, tier: Union[AgentTier, str]) -> int:
        return TIER_ORDER.index(_coerce_tier(tier))

    def ordered(self) -> List[TierConfig]:
        return [self.lookup(t) for t in TIER_ORDER]

    def check_requirements(
        self,
        target_tier: Union[AgentTier, str],
        monthly_sales: int,
        team_members: int,
    ) -> Tuple[bool, List[str]]:
        """
        Check performance metrics against a tier's promotion requirements.
        Returns (eligible, missing_requirements).
        """
        requirements = self.lookup(target_tier).requirements
        missing = []

        if monthly_sales < requirements.monthly_sales:
            missing.append(
                f"Need {requirements.monthly_sales} monthly sales (current: {monthly_sales})"
            )
        if team_members < requirements.team_members:
            missing.append(
                f"Need {requirements.team_members} team members (current: {team_members})"
            )

        return len(missing) == 0, missing


tier_registry = TierRegistry()
