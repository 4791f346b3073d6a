"""
Database initialization script
Run this to create tables and seed a sample recruiter chain
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from brokerage.core.database import engine, Base, SessionLocal
from brokerage.core.security import create_access_token
from brokerage.models import Agent, AgentRole, AgentTier


# (email, full_name, tier, recruiter email)
SAMPLE_AGENTS = [
    ("supreme@brokerage.test", "Sam Supreme", AgentTier.SUPREME_LEADER, None),
    ("group@brokerage.test", "Grace Group", AgentTier.GROUP_LEADER, "supreme@brokerage.test"),
    ("team@brokerage.test", "Tom Team", AgentTier.TEAM_LEADER, "group@brokerage.test"),
    ("sales@brokerage.test", "Sara Sales", AgentTier.SALES_LEADER, "team@brokerage.test"),
    ("advisor@brokerage.test", "Adam Advisor", AgentTier.ADVISOR, "sales@brokerage.test"),
]


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed an admin and a five-level upline chain"""
    db = SessionLocal()

    try:
        print("\nSeeding initial data...")

        admin = db.query(Agent).filter(Agent.email == "admin@brokerage.test").first()
        if not admin:
            admin = Agent(
                email="admin@brokerage.test",
                full_name="System Administrator",
                role=AgentRole.ADMIN.value,
            )
            db.add(admin)
            db.flush()
            print("✓ Admin created (admin@brokerage.test)")

        by_email = {}
        for email, full_name, tier, recruiter_email in SAMPLE_AGENTS:
            agent = db.query(Agent).filter(Agent.email == email).first()
            if not agent:
                # Recruiters are seeded before their recruits
                recruiter = by_email.get(recruiter_email)
                agent = Agent(
                    email=email,
                    full_name=full_name,
                    role=AgentRole.AGENT.value,
                    agent_tier=tier,
                    recruited_by_id=recruiter.id if recruiter else None,
                    recruited_at=datetime.now(timezone.utc) if recruiter else None,
                )
                db.add(agent)
                db.flush()
                print(f"✓ Created {full_name} ({tier.value})")
            by_email[email] = agent

        db.commit()
        print("\n✓ Database seeded successfully!")
        print(f"\nAdmin token: {create_access_token(admin.id)}")

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print("Brokerage Back Office - Database Initialization")
    print("=" * 60)

    init_db()
    seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    print("=" * 60)
