"""Tests for coach endpoints and the coach headcount quota."""
from fastapi import status

from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.main import app
from studioops.models import MembershipStatus
from studioops.models import OrgMembership
from studioops.models import OrgRole
from studioops.models import User
from studioops.tiers import LicenseTier


class TestListCoaches:
    """Tests for GET /api/coaches endpoint."""

    def test_admin_is_listed(self, client):
        response = client.get("/api/coaches")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["email"] == "admin@example.com"
        assert data[0]["role"] == "ADMIN"


class TestAddCoach:
    """Tests for POST /api/coaches endpoint."""

    def test_invite_new_coach(self, client, db_session):
        response = client.post("/api/coaches", json={"email": "coach@example.com", "name": "Coach Kim"})
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["role"] == "COACH"
        assert data["status"] == "ACTIVE"
        assert data["name"] == "Coach Kim"

        user = db_session.query(User).filter(User.email == "coach@example.com").one()
        assert user.auth_provider == "invite"

    def test_starter_coach_limit(self, client):
        """Starter allows two coaches and the ADMIN already counts as one."""
        first = client.post("/api/coaches", json={"email": "one@example.com"})
        assert first.status_code == status.HTTP_201_CREATED

        second = client.post("/api/coaches", json={"email": "two@example.com"})
        assert second.status_code == status.HTTP_402_PAYMENT_REQUIRED
        details = second.json()["detail"]["details"]
        assert details["limitType"] == "maxTrainers"
        assert details["current"] == 2
        assert details["limit"] == 2
        assert details["suggestedTier"] == "PROFESSIONAL"

    def test_professional_unlimited_coaches(self, client, set_license):
        set_license(LicenseTier.PROFESSIONAL)
        for i in range(5):
            response = client.post("/api/coaches", json={"email": f"coach{i}@example.com"})
            assert response.status_code == status.HTTP_201_CREATED

    def test_promote_existing_staff(self, client, db_session):
        db_session.add(User(id=2, auth_subject="u2", email="staff@example.com"))
        db_session.flush()
        db_session.add(OrgMembership(org_id=1, user_id=2, role=OrgRole.STAFF))
        db_session.commit()

        response = client.post("/api/coaches", json={"email": "staff@example.com"})
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["user_id"] == 2
        assert db_session.query(OrgMembership).filter(OrgMembership.user_id == 2).count() == 1

    def test_already_a_coach(self, client):
        response = client.post("/api/coaches", json={"email": "admin@example.com"})
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_reactivate_disabled_coach_counts_against_limit(self, client, db_session):
        db_session.add_all([
            User(id=2, auth_subject="u2", email="active@example.com"),
            User(id=3, auth_subject="u3", email="disabled@example.com"),
        ])
        db_session.flush()
        db_session.add_all([
            OrgMembership(org_id=1, user_id=2, role=OrgRole.COACH),
            OrgMembership(org_id=1, user_id=3, role=OrgRole.COACH, status=MembershipStatus.DISABLED),
        ])
        db_session.commit()

        response = client.post("/api/coaches", json={"email": "disabled@example.com"})
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED

    def test_only_admin_can_add_coaches(self, client):
        app.dependency_overrides[get_caller] = lambda: AuthContext(user_id=1, org_id=1, role=OrgRole.COACH)
        response = client.post("/api/coaches", json={"email": "new@example.com"})
        assert response.status_code == status.HTTP_403_FORBIDDEN
