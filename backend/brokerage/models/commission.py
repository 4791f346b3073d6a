from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from brokerage.core.database import Base
import enum


class LedgerEntryRole(str, enum.Enum):
    OWN_COMMISSION = "own_commission"
    LEADERSHIP_BONUS = "leadership_bonus"


class CommissionLedgerEntry(Base):
    """Commission paid out of an approved transaction.

    Append-only: rows are created once, atomically with the approval, and
    never updated or deleted. A correction is a new offsetting entry.
    """
    __tablename__ = "commission_ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            "transaction_id", "recipient_agent_id", "role",
            name="uq_ledger_transaction_recipient_role",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    recipient_agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False, index=True)
    source_agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False)  # submitting agent

    role = Column(String, nullable=False)  # own_commission, leadership_bonus
    amount = Column(Numeric(15, 2), nullable=False)

    # Inputs at time of calculation
    rate_percent = Column(Numeric(5, 2), nullable=False)  # split % or bonus %
    base_amount = Column(Numeric(15, 2), nullable=False)  # commission amount or company share
    recipient_tier = Column(String, nullable=False)
    hop = Column(Integer, default=0, nullable=False)  # 0 = submitting agent, 1 = direct recruiter, ...

    created_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    transaction = relationship("Transaction", back_populates="ledger_entries")
    recipient = relationship("Agent", foreign_keys=[recipient_agent_id])
    source_agent = relationship("Agent", foreign_keys=[source_agent_id])


class LedgerImmutableError(RuntimeError):
    pass


@event.listens_for(CommissionLedgerEntry, "before_update")
def _block_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(
        f"Ledger entry {target.id} is append-only; record an offsetting entry instead"
    )


@event.listens_for(CommissionLedgerEntry, "before_delete")
def _block_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(
        f"Ledger entry {target.id} is append-only; record an offsetting entry instead"
    )
