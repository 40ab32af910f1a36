"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from purchase_timeline.database import Base
from purchase_timeline.models import Property, StepCategory, User
from purchase_timeline.orchestrators import TimelineOrchestrator
from purchase_timeline.services import InMemoryStorageProvider


# Test database setup - in-memory SQLite shared by every connection
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db, email: str, full_name: str) -> User:
    user = User(email=email, full_name=full_name, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _make_property(db, user: User, address: str) -> Property:
    prop = Property(
        user_id=user.id,
        address=address,
        city="Springfield",
        state="IL",
        zip_code="62701",
        price=35000000,
    )
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


@pytest.fixture
def owner(db) -> User:
    """Buyer who owns the test property."""
    return _make_user(db, "buyer@example.com", "Test Buyer")


@pytest.fixture
def other_user(db) -> User:
    """A second, unrelated buyer."""
    return _make_user(db, "someone.else@example.com", "Other Buyer")


@pytest.fixture
def test_property(db, owner) -> Property:
    """Property owned by ``owner``."""
    return _make_property(db, owner, "742 Evergreen Terrace")


@pytest.fixture
def other_property(db, other_user) -> Property:
    """Property owned by ``other_user``."""
    return _make_property(db, other_user, "1600 Pennsylvania Ave")


@pytest.fixture
def storage() -> InMemoryStorageProvider:
    """Storage provider keeping bytes in memory."""
    return InMemoryStorageProvider()


@pytest.fixture
def orchestrator(db, storage) -> TimelineOrchestrator:
    """Timeline orchestrator wired to the test session."""
    return TimelineOrchestrator(db, storage=storage)


@pytest.fixture
def default_timeline(orchestrator, owner, test_property):
    """Timeline seeded from the default template."""
    return orchestrator.create_timeline(owner.id, property_id=test_property.id)


def _abc_steps():
    return [
        {
            "title": "A",
            "description": "First step",
            "category": StepCategory.LEGAL,
            "days_from_start": 0,
            "estimated_duration": 1,
            "estimated_cost": "100.00",
        },
        {
            "title": "B",
            "description": "Second step",
            "category": StepCategory.FINANCING,
            "days_from_start": 2,
            "estimated_duration": 3,
            "estimated_cost": "250.50",
            "dependencies": ["A"],
        },
        {
            "title": "C",
            "description": "Third step",
            "category": StepCategory.INSPECTION,
            "days_from_start": 5,
            "estimated_duration": 2,
            "dependencies": ["A", "B"],
        },
    ]


@pytest.fixture
def abc_timeline(orchestrator, owner, test_property):
    """Timeline with custom steps A (CURRENT), B and C."""
    return orchestrator.create_timeline(
        owner.id,
        property_id=test_property.id,
        title="ABC",
        custom_steps=_abc_steps(),
    )


@pytest.fixture
def steps_of(orchestrator, owner):
    """Return a function mapping step title to step for a timeline."""
    def _steps_of(timeline_id):
        return {s.title: s for s in orchestrator.get_steps(owner.id, timeline_id)}
    return _steps_of
