"""Organization data export (ADMIN only)."""
import json
import logging
from datetime import datetime, timezone

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.deps import AuthContext, get_db, require_role
from studioops.license import COACH_ROLES
from studioops.models import Member, Organization, OrgMembership, OrgRole, Payment, TrainingSession, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/export", tags=["export"])

# Most recent rows only; older history stays in the app
EXPORT_ROW_LIMIT = 1000

MEMBER_CSV_COLUMNS = {
    "id": "ID",
    "name": "Name",
    "email": "Email",
    "phone": "Phone",
    "status": "Status",
    "createdAt": "Joined",
}


def _iso(value):
    return value.isoformat() if value else None


def collect_export(db: Session, org_id: int) -> dict:
    org = db.execute(select(Organization).where(Organization.id == org_id)).scalars().one_or_none()
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")

    members = db.execute(
        select(Member).where(Member.org_id == org_id).order_by(Member.id)
    ).scalars().all()
    coaches = db.execute(
        select(OrgMembership, User)
        .join(User, User.id == OrgMembership.user_id)
        .where(OrgMembership.org_id == org_id, OrgMembership.role.in_(COACH_ROLES))
        .order_by(OrgMembership.id)
    ).all()
    sessions = db.execute(
        select(TrainingSession)
        .where(TrainingSession.org_id == org_id)
        .order_by(TrainingSession.starts_at.desc())
        .limit(EXPORT_ROW_LIMIT)
    ).scalars().all()
    payments = db.execute(
        select(Payment, Member.name)
        .join(Member, Member.id == Payment.member_id)
        .where(Payment.org_id == org_id)
        .order_by(Payment.recorded_at.desc())
        .limit(EXPORT_ROW_LIMIT)
    ).all()

    return {
        "exportDate": datetime.now(timezone.utc).isoformat(),
        "organization": {
            "id": org.id,
            "name": org.name,
            "licenseTier": org.license_tier,
            "subscriptionStatus": org.subscription_status,
            "createdAt": _iso(org.created_at),
        },
        "members": [
            {
                "id": m.id,
                "name": m.name,
                "email": m.email,
                "phone": m.phone,
                "status": m.status.value,
                "createdAt": _iso(m.created_at),
            }
            for m in members
        ],
        "coaches": [
            {
                "userId": user.id,
                "name": user.name,
                "email": user.email,
                "role": membership.role.value,
                "status": membership.status.value,
            }
            for membership, user in coaches
        ],
        "sessions": [
            {
                "id": s.id,
                "title": s.title,
                "startsAt": _iso(s.starts_at),
                "durationMinutes": s.duration_minutes,
                "location": s.location,
                "coachUserId": s.coach_user_id,
            }
            for s in sessions
        ],
        "payments": [
            {
                "id": p.id,
                "memberId": p.member_id,
                "memberName": member_name,
                "amount": p.amount,
                "currency": p.currency,
                "method": p.method.value,
                "note": p.note,
                "recordedAt": _iso(p.recorded_at),
            }
            for p, member_name in payments
        ],
    }


def members_csv(members: list[dict]) -> str:
    """Member list as a semicolon separated CSV with a BOM so Excel opens accented names correctly."""
    df = pd.DataFrame(members, columns=["id", "name", "email", "phone", "status", "createdAt"])
    df = df.rename(columns=MEMBER_CSV_COLUMNS)
    return "\ufeff" + df.to_csv(index=False, sep=";")


@router.get("")
def export_data(
    export_format: str = Query("json", alias="format", pattern="^(json|csv)$"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_role([OrgRole.ADMIN])),
) -> Response:
    data = collect_export(db, auth.org_id)
    stamp = datetime.now(timezone.utc).date().isoformat()
    logger.info(f"Org {auth.org_id} exported data as {export_format}")

    if export_format == "csv":
        return Response(
            content=members_csv(data["members"]),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="studio-export-{stamp}.csv"'},
        )

    return Response(
        content=json.dumps(data, indent=2, ensure_ascii=False),
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="studio-export-{stamp}.json"'},
    )
