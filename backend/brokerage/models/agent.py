from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from brokerage.core.database import Base
import enum


class AgentRole(str, enum.Enum):
    ADMIN = "admin"
    AGENT = "agent"


class AgentTier(str, enum.Enum):
    """Leadership plan tiers, lowest first. Ordering lives in the tier registry."""
    ADVISOR = "advisor"
    SALES_LEADER = "sales_leader"
    TEAM_LEADER = "team_leader"
    GROUP_LEADER = "group_leader"
    SUPREME_LEADER = "supreme_leader"


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    role = Column(String, default="agent", nullable=False)
    is_active = Column(Boolean, default=True)

    # Leadership plan
    agent_tier = Column(
        Enum(AgentTier, values_callable=lambda e: [m.value for m in e], name="agent_tier"),
        default=AgentTier.ADVISOR,
        nullable=False,
        index=True,
    )
    tier_effective_date = Column(DateTime(timezone=True), server_default=func.now())
    tier_promoted_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True)

    # Upline: set once when the agent is recruited
    recruited_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True, index=True)
    recruited_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    recruiter = relationship(
        "Agent",
        remote_side=[id],
        foreign_keys=[recruited_by_id],
        back_populates="recruits",
    )
    recruits = relationship("Agent", foreign_keys=[recruited_by_id], back_populates="recruiter")
    transactions = relationship("Transaction", back_populates="agent", foreign_keys="Transaction.agent_id")
    tier_history = relationship(
        "AgentTierHistory",
        back_populates="agent",
        foreign_keys="AgentTierHistory.agent_id",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == AgentRole.ADMIN.value


class AgentTierHistory(Base):
    """Audit trail of tier changes."""
    __tablename__ = "agent_tier_history"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False, index=True)

    previous_tier = Column(String, nullable=True)
    new_tier = Column(String, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)

    promoted_by_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    reason = Column(Text, nullable=True)
    performance_metrics = Column(JSON, nullable=True)  # {"monthly_sales": 3, "team_members": 4}

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    agent = relationship("Agent", back_populates="tier_history", foreign_keys=[agent_id])
    promoted_by = relationship("Agent", foreign_keys=[promoted_by_id])
