"""Tests for session scheduling endpoints and the monthly session quota."""
from datetime import datetime, timedelta, timezone

from fastapi import status
from sqlalchemy import insert

from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.license import month_window
from studioops.main import app
from studioops.models import OrgRole
from studioops.models import TrainingSession
from studioops.tiers import LicenseTier


def add_sessions(db_session, count, created_at=None, starts_at=None):
    created_at = created_at or datetime.now(timezone.utc)
    db_session.execute(
        insert(TrainingSession),
        [
            {"org_id": 1, "title": f"Class {i}", "starts_at": starts_at or created_at, "created_at": created_at}
            for i in range(count)
        ],
    )
    db_session.commit()


def next_month_start():
    _, end = month_window()
    return end + timedelta(days=2)


def session_payload(**overrides):
    payload = {
        "title": "BJJ Fundamentals",
        "starts_at": datetime.now(timezone.utc).isoformat(),
        "duration_minutes": 90,
    }
    payload.update(overrides)
    return payload


class TestListSessions:
    """Tests for GET /api/sessions endpoint."""

    def test_list_sessions_ordered_by_start(self, client, db_session):
        now = datetime.now(timezone.utc)
        db_session.add_all([
            TrainingSession(org_id=1, title="Later", starts_at=now + timedelta(hours=2)),
            TrainingSession(org_id=1, title="Sooner", starts_at=now + timedelta(hours=1)),
        ])
        db_session.commit()

        response = client.get("/api/sessions")
        assert response.status_code == status.HTTP_200_OK
        assert [s["title"] for s in response.json()] == ["Sooner", "Later"]


class TestCreateSession:
    """Tests for POST /api/sessions endpoint."""

    def test_create_session(self, client):
        response = client.post("/api/sessions", json=session_payload(location="Mat 1"))
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["title"] == "BJJ Fundamentals"
        assert data["duration_minutes"] == 90
        assert data["location"] == "Mat 1"
        assert data["org_id"] == 1

    def test_create_session_validation(self, client):
        response = client.post("/api/sessions", json=session_payload(duration_minutes=0))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_monthly_limit_reached(self, client, db_session):
        add_sessions(db_session, 100)
        response = client.post("/api/sessions", json=session_payload())
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        details = response.json()["detail"]["details"]
        assert details["limitType"] == "maxSessionsPerMonth"
        assert details["current"] == 100
        assert details["limit"] == 100

    def test_sessions_created_last_month_do_not_count(self, client, db_session):
        start, _ = month_window()
        add_sessions(db_session, 100, created_at=start - timedelta(days=3))
        response = client.post("/api/sessions", json=session_payload())
        assert response.status_code == status.HTTP_201_CREATED

    def test_sessions_scheduled_for_later_months_count_now(self, client, db_session):
        """Scheduling into a future month does not escape this month's quota."""
        add_sessions(db_session, 99, starts_at=next_month_start())

        payload = session_payload(starts_at=next_month_start().isoformat())
        assert client.post("/api/sessions", json=payload).status_code == status.HTTP_201_CREATED

        response = client.post("/api/sessions", json=payload)
        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        details = response.json()["detail"]["details"]
        assert details["limitType"] == "maxSessionsPerMonth"
        assert details["current"] == 100
        assert db_session.query(TrainingSession).count() == 100

    def test_professional_has_higher_quota(self, client, db_session, set_license):
        set_license(LicenseTier.PROFESSIONAL)
        add_sessions(db_session, 100)
        response = client.post("/api/sessions", json=session_payload())
        assert response.status_code == status.HTTP_201_CREATED

    def test_coach_must_belong_to_org(self, client):
        response = client.post("/api/sessions", json=session_payload(coach_user_id=99))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_admin_can_lead_session(self, client):
        response = client.post("/api/sessions", json=session_payload(coach_user_id=1))
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["coach_user_id"] == 1

    def test_staff_cannot_schedule(self, client):
        app.dependency_overrides[get_caller] = lambda: AuthContext(user_id=1, org_id=1, role=OrgRole.STAFF)
        response = client.post("/api/sessions", json=session_payload())
        assert response.status_code == status.HTTP_403_FORBIDDEN
