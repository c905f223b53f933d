"""Tests for member endpoints and server-side headcount enforcement."""
from fastapi import status
from sqlalchemy import insert

from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.main import app
from studioops.models import Member
from studioops.models import MemberStatus
from studioops.models import OrgRole
from studioops.tiers import LicenseTier
from studioops.tiers import SubscriptionStatus


def add_members(db_session, count, status=MemberStatus.ACTIVE):
    db_session.execute(
        insert(Member),
        [{"org_id": 1, "name": f"Member {i}", "status": status} for i in range(count)],
    )
    db_session.commit()


class TestListMembers:
    """Tests for GET /api/members endpoint."""

    def test_list_members_empty(self, client):
        response = client.get("/api/members")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_list_members_only_returns_own_org(self, client, db_session):
        """Members of other organizations are not returned."""
        from studioops.models import Organization

        db_session.add(Organization(id=2, name="Other Dojo"))
        db_session.commit()
        db_session.add_all([
            Member(org_id=1, name="Own Member"),
            Member(org_id=2, name="Foreign Member"),
        ])
        db_session.commit()

        response = client.get("/api/members")
        data = response.json()
        assert len(data) == 1
        assert data[0]["name"] == "Own Member"
        assert data[0]["org_id"] == 1


class TestCreateMember:
    """Tests for POST /api/members endpoint."""

    def test_create_member(self, client):
        payload = {"name": "Kovács Anna", "email": "anna@example.com"}
        response = client.post("/api/members", json=payload)
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["name"] == "Kovács Anna"
        assert data["email"] == "anna@example.com"
        assert data["status"] == "ACTIVE"
        assert data["org_id"] == 1

    def test_create_member_validation(self, client):
        response = client.post("/api/members", json={"name": ""})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_create_member_below_limit(self, client, db_session):
        add_members(db_session, 24)
        response = client.post("/api/members", json={"name": "Twenty-fifth"})
        assert response.status_code == status.HTTP_201_CREATED

    def test_create_member_at_limit(self, client, db_session):
        """The 26th member on Starter is refused before it is written."""
        add_members(db_session, 25)
        response = client.post("/api/members", json={"name": "One Too Many"})
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        detail = response.json()["detail"]
        assert detail["error"] == "LIMIT_EXCEEDED"
        assert detail["details"] == {
            "current": 25,
            "limit": 25,
            "limitType": "maxStudents",
            "currentTier": "Starter",
            "suggestedTier": "PROFESSIONAL",
            "suggestedTierName": "Professional",
        }
        assert db_session.query(Member).count() == 25

    def test_inactive_members_free_up_headcount(self, client, db_session):
        add_members(db_session, 24)
        add_members(db_session, 5, status=MemberStatus.INACTIVE)
        response = client.post("/api/members", json={"name": "Fits"})
        assert response.status_code == status.HTTP_201_CREATED

    def test_create_member_unlimited_tier(self, client, db_session, set_license):
        set_license(LicenseTier.ENTERPRISE)
        add_members(db_session, 200)
        response = client.post("/api/members", json={"name": "Still Fine"})
        assert response.status_code == status.HTTP_201_CREATED

    def test_create_member_without_tier(self, client, set_license):
        set_license(None, None)
        response = client.post("/api/members", json={"name": "Nobody"})
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["detail"]["error"] == "FEATURE_NOT_AVAILABLE"

    def test_create_member_trial_without_tier_hits_zero_quota(self, client, set_license):
        set_license(None, SubscriptionStatus.TRIALING)
        response = client.post("/api/members", json={"name": "Nobody"})
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        detail = response.json()["detail"]
        assert detail["error"] == "LIMIT_EXCEEDED"
        assert detail["details"]["limit"] == 0
        assert detail["details"]["suggestedTier"] == "STARTER"

    def test_caller_without_organization(self, client):
        app.dependency_overrides[get_caller] = lambda: AuthContext(user_id=1, org_id=None, role=None)
        response = client.post("/api/members", json={"name": "Nobody"})
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestUpdateMember:
    """Tests for PATCH /api/members/{member_id} endpoint."""

    def test_update_member_name(self, client, db_session):
        member = Member(org_id=1, name="Old Name")
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)

        response = client.patch(f"/api/members/{member.id}", json={"name": "New Name"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "New Name"

    def test_deactivate_member_at_limit(self, client, db_session):
        add_members(db_session, 25)
        response = client.patch("/api/members/1", json={"status": "INACTIVE"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "INACTIVE"

    def test_reactivate_member_at_limit(self, client, db_session):
        add_members(db_session, 25)
        dormant = Member(org_id=1, name="Dormant", status=MemberStatus.INACTIVE)
        db_session.add(dormant)
        db_session.commit()
        db_session.refresh(dormant)

        response = client.patch(f"/api/members/{dormant.id}", json={"status": "ACTIVE"})
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        db_session.refresh(dormant)
        assert dormant.status == MemberStatus.INACTIVE

    def test_update_member_not_found(self, client):
        response = client.patch("/api/members/999", json={"name": "Ghost"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_member_from_other_org(self, client, db_session):
        from studioops.models import Organization

        db_session.add(Organization(id=2, name="Other Dojo"))
        db_session.commit()
        member = Member(org_id=2, name="Foreign")
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)

        response = client.patch(f"/api/members/{member.id}", json={"name": "Hijacked"})
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestMemberPermissions:
    """Tests for role checks on member endpoints."""

    def test_coach_can_add_members(self, client):
        app.dependency_overrides[get_caller] = lambda: AuthContext(user_id=1, org_id=1, role=OrgRole.COACH)
        response = client.post("/api/members", json={"name": "Added By Coach"})
        assert response.status_code == status.HTTP_201_CREATED
