from brokerage.models.agent import Agent, AgentRole, AgentTier, AgentTierHistory
from brokerage.models.transaction import (
    Transaction, TransactionStatus, TransactionStatusChange,
    MarketType, TransactionType, ClientType, CommissionType,
)
from brokerage.models.commission import CommissionLedgerEntry, LedgerEntryRole, LedgerImmutableError

__all__ = [
    "Agent",
    "AgentRole",
    "AgentTier",
    "AgentTierHistory",
    "Transaction",
    "TransactionStatus",
    "TransactionStatusChange",
    "MarketType",
    "TransactionType",
    "ClientType",
    "CommissionType",
    "CommissionLedgerEntry",
    "LedgerEntryRole",
    "LedgerImmutableError",
]
