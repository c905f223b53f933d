"""Tests for organization data export."""
from fastapi import status

from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.main import app
from studioops.models import Member
from studioops.models import MemberStatus
from studioops.models import OrgRole
from studioops.models import Payment


def seed(db_session):
    anna = Member(org_id=1, name="Kovács Anna", email="anna@example.com")
    gone = Member(org_id=1, name="Old Member", status=MemberStatus.INACTIVE)
    db_session.add_all([anna, gone])
    db_session.flush()
    db_session.add(Payment(org_id=1, member_id=anna.id, amount=15000))
    db_session.commit()


class TestExport:
    """Tests for GET /api/export endpoint."""

    def test_json_export(self, client, db_session):
        seed(db_session)
        response = client.get("/api/export")
        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("application/json")
        assert "attachment" in response.headers["content-disposition"]

        data = response.json()
        assert data["organization"]["name"] == "Test Dojo"
        assert data["organization"]["licenseTier"] == "STARTER"
        assert [m["name"] for m in data["members"]] == ["Kovács Anna", "Old Member"]
        assert data["members"][1]["status"] == "INACTIVE"
        assert data["coaches"][0]["role"] == "ADMIN"
        assert data["payments"][0]["memberName"] == "Kovács Anna"
        assert data["payments"][0]["amount"] == 15000

    def test_csv_export(self, client, db_session):
        seed(db_session)
        response = client.get("/api/export", params={"format": "csv"})
        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/csv")
        assert response.content.startswith(b"\xef\xbb\xbf")

        lines = response.content.decode("utf-8-sig").splitlines()
        assert lines[0] == "ID;Name;Email;Phone;Status;Joined"
        assert lines[1].split(";")[1:3] == ["Kovács Anna", "anna@example.com"]
        assert len(lines) == 3

    def test_unknown_format(self, client):
        response = client.get("/api/export", params={"format": "xml"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_admin_only(self, client):
        app.dependency_overrides[get_caller] = lambda: AuthContext(user_id=1, org_id=1, role=OrgRole.COACH)
        response = client.get("/api/export")
        assert response.status_code == status.HTTP_403_FORBIDDEN
