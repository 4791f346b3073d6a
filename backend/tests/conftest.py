import itertools
import os
from datetime import datetime, timezone
from decimal import Decimal

# Must be set before brokerage.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from brokerage.core.database import Base, get_db
from brokerage.core.security import get_current_user
from brokerage.main import app
from brokerage.models import (
    Agent, AgentRole, AgentTier, Transaction, TransactionStatus,
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def make_agent(db):
    counter = itertools.count(1)

    def _make(tier=AgentTier.ADVISOR, recruiter=None, role=AgentRole.AGENT.value, full_name=None):
        n = next(counter)
        agent = Agent(
            email=f"agent{n}@brokerage.test",
            full_name=full_name or f"Agent {n}",
            role=role,
            agent_tier=tier,
            recruited_by_id=recruiter.id if recruiter else None,
        )
        db.add(agent)
        db.commit()
        db.refresh(agent)
        return agent

    return _make


@pytest.fixture
def admin(make_agent):
    return make_agent(role=AgentRole.ADMIN.value, full_name="Admin")


@pytest.fixture
def make_transaction(db):
    def _make(agent, status=TransactionStatus.DRAFT, commission_amount="12500.00", **overrides):
        fields = {
            "agent_id": agent.id,
            "market_type": "secondary",
            "transaction_type": "sale",
            "transaction_date": datetime(2026, 10, 5, 10, 0, tzinfo=timezone.utc),
            "property_data": {
                "address": "12 Jalan Ampang, Kuala Lumpur",
                "property_type": "condominium",
                "price": 625000,
            },
            "client_data": {
                "name": "Lee Mei Ling",
                "email": "meiling@gmail.com",
                "phone": "+60123456789",
                "type": "buyer",
                "source": "referral",
            },
            "is_co_broking": False,
            "commission_type": "percentage",
            "commission_value": Decimal("2.00"),
            "commission_amount": Decimal(commission_amount),
            "status": TransactionStatus(status).value,
        }
        fields.update(overrides)
        transaction = Transaction(**fields)
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction

    return _make


@pytest.fixture
def auth_state():
    return {}


@pytest.fixture
def login(auth_state):
    def _login(agent):
        auth_state["user"] = agent

    return _login


@pytest.fixture
def client(db, auth_state):
    def override_get_db():
        yield db

    def override_get_current_user():
        return auth_state["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
