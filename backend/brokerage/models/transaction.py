from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, Boolean, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from brokerage.core.database import Base
import enum


class MarketType(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class TransactionType(str, enum.Enum):
    SALE = "sale"
    LEASE = "lease"
    RENTAL = "rental"


class ClientType(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    TENANT = "tenant"
    LANDLORD = "landlord"


class CommissionType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TransactionStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)

    # Submitting agent
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False, index=True)

    # Initiation
    market_type = Column(String, nullable=False)  # primary, secondary
    transaction_type = Column(String, nullable=False)  # sale, lease, rental
    transaction_date = Column(DateTime(timezone=True), nullable=False)

    # Property: {"address", "property_type", "price", "bedrooms", "bathrooms", "area", "description"}
    property_data = Column(JSON, nullable=True)

    # Client: {"name", "email", "phone", "type", "source", "notes"}
    client_data = Column(JSON, nullable=True)

    # Co-broking: {"agent_name", "agency_name", "commission_split", "contact_info"}
    is_co_broking = Column(Boolean, default=False)
    co_broking_data = Column(JSON, nullable=True)

    # Commission input. Splits and bonuses are computed at approval, never stored here.
    commission_type = Column(String, nullable=False)  # percentage, fixed
    commission_value = Column(Numeric(15, 2), nullable=False)
    commission_amount = Column(Numeric(15, 2), nullable=False)

    notes = Column(Text, nullable=True)

    # Approval workflow
    status = Column(String, default=TransactionStatus.DRAFT.value, nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    agent = relationship("Agent", back_populates="transactions", foreign_keys=[agent_id])
    reviewed_by = relationship("Agent", foreign_keys=[reviewed_by_id])
    ledger_entries = relationship("CommissionLedgerEntry", back_populates="transaction")
    status_changes = relationship(
        "TransactionStatusChange",
        back_populates="transaction",
        order_by="TransactionStatusChange.id",
    )


class TransactionStatusChange(Base):
    """One row per successful workflow transition."""
    __tablename__ = "transaction_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    from_status = Column(String, nullable=False)
    to_status = Column(String, nullable=False)
    changed_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    transaction = relationship("Transaction", back_populates="status_changes")
