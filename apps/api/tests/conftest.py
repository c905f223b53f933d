"""Shared fixtures: in-memory SQLite database, a Starter org and an authenticated ADMIN."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("CLERK_JWKS_URL", None)
os.environ.pop("CLERK_SECRET_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studioops.db import Base
from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.deps import get_db
from studioops.main import app
from studioops.models import MembershipStatus
from studioops.models import Organization
from studioops.models import OrgMembership
from studioops.models import OrgRole
from studioops.models import User
from studioops.tiers import LicenseTier
from studioops.tiers import SubscriptionStatus


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org(db_session):
    """Organization 1 on an active Starter subscription, with user 1 as ADMIN."""
    org = Organization(
        id=1,
        name="Test Dojo",
        license_tier=LicenseTier.STARTER.value,
        subscription_status=SubscriptionStatus.ACTIVE.value,
    )
    user = User(id=1, auth_provider="clerk", auth_subject="user_1", email="admin@example.com", name="Admin")
    db_session.add_all([org, user])
    db_session.flush()
    db_session.add(
        OrgMembership(org_id=1, user_id=1, role=OrgRole.ADMIN, status=MembershipStatus.ACTIVE)
    )
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def set_license(db_session, org):
    """Switch organization 1 to another tier/status."""
    def _set(tier, status=SubscriptionStatus.ACTIVE):
        org.license_tier = tier.value if isinstance(tier, LicenseTier) else tier
        org.subscription_status = status.value if isinstance(status, SubscriptionStatus) else status
        db_session.commit()
        return org

    return _set


@pytest.fixture
def auth_context():
    return AuthContext(user_id=1, org_id=1, role=OrgRole.ADMIN)


@pytest.fixture
def client(db_session, org, auth_context):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_caller] = lambda: auth_context
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client(db_session):
    """Client that goes through real token handling (dev-mode bypass, no Clerk keys)."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
