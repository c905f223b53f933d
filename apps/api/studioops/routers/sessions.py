from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.deps import AuthContext
from studioops.deps import ensure_within_limit
from studioops.deps import get_current_auth
from studioops.deps import get_db
from studioops.deps import require_feature
from studioops.license import COACH_ROLES
from studioops.license import LicenseContext
from studioops.models import MembershipStatus
from studioops.models import OrgMembership
from studioops.models import TrainingSession
from studioops.permissions import can_schedule_sessions
from studioops.schemas import SessionCreate
from studioops.schemas import SessionOut
from studioops.tiers import Feature
from studioops.tiers import Resource

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=list[SessionOut])
def list_sessions(
    starts_after: Optional[datetime] = Query(None),
    starts_before: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
) -> list[TrainingSession]:
    stmt = select(TrainingSession).where(TrainingSession.org_id == auth.org_id)
    if starts_after:
        stmt = stmt.where(TrainingSession.starts_at >= starts_after)
    if starts_before:
        stmt = stmt.where(TrainingSession.starts_at < starts_before)
    return db.execute(stmt.order_by(TrainingSession.starts_at)).scalars().all()


@router.post("", response_model=SessionOut, status_code=201)
def create_session(
    payload: SessionCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(require_feature(Feature.SESSION_SCHEDULING)),
) -> TrainingSession:
    if not can_schedule_sessions(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to schedule sessions")

    if payload.coach_user_id is not None:
        coach = db.execute(
            select(OrgMembership.id).where(
                OrgMembership.org_id == auth.org_id,
                OrgMembership.user_id == payload.coach_user_id,
                OrgMembership.status == MembershipStatus.ACTIVE,
                OrgMembership.role.in_(COACH_ROLES),
            )
        ).scalar_one_or_none()
        if coach is None:
            raise HTTPException(status_code=404, detail="Coach not found")

    # The monthly quota counts the current month only
    ensure_within_limit(db, license_ctx, Resource.SESSIONS_PER_MONTH)

    session = TrainingSession(
        org_id=auth.org_id,
        coach_user_id=payload.coach_user_id,
        title=payload.title,
        starts_at=payload.starts_at,
        duration_minutes=payload.duration_minutes,
        location=payload.location,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session
