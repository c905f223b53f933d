import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.deps import AuthContext
from studioops.deps import ensure_within_limit
from studioops.deps import get_current_auth
from studioops.deps import get_db
from studioops.deps import get_license_context
from studioops.license import COACH_ROLES
from studioops.license import LicenseContext
from studioops.models import MembershipStatus
from studioops.models import OrgMembership
from studioops.models import OrgRole
from studioops.models import User
from studioops.permissions import can_manage_coaches
from studioops.schemas import CoachCreate
from studioops.schemas import CoachOut
from studioops.tiers import Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coaches", tags=["coaches"])

INVITE_PROVIDER = "invite"


def _coach_out(membership: OrgMembership, user: User) -> CoachOut:
    return CoachOut(
        membership_id=membership.id,
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=membership.role,
        status=membership.status,
    )


@router.get("", response_model=list[CoachOut])
def list_coaches(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
) -> list[CoachOut]:
    rows = db.execute(
        select(OrgMembership, User)
        .join(User, User.id == OrgMembership.user_id)
        .where(OrgMembership.org_id == auth.org_id, OrgMembership.role.in_(COACH_ROLES))
        .order_by(OrgMembership.id)
    ).all()
    return [_coach_out(membership, user) for membership, user in rows]


@router.post("", response_model=CoachOut, status_code=201)
def add_coach(
    payload: CoachCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(get_license_context),
) -> CoachOut:
    """Give a user a COACH membership, inviting them by email if they have no account yet."""
    if not can_manage_coaches(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to add coaches")

    user = db.execute(select(User).where(User.email == payload.email)).scalars().first()

    membership = None
    if user:
        membership = (
            db.execute(
                select(OrgMembership).where(
                    OrgMembership.org_id == auth.org_id, OrgMembership.user_id == user.id
                )
            )
            .scalars()
            .one_or_none()
        )
        if (
            membership
            and membership.status == MembershipStatus.ACTIVE
            and membership.role in COACH_ROLES
        ):
            raise HTTPException(status_code=409, detail="User is already a coach of this organization")

    ensure_within_limit(db, license_ctx, Resource.COACHES)

    if not user:
        user = User(
            auth_provider=INVITE_PROVIDER,
            auth_subject=payload.email,
            email=payload.email,
            name=payload.name,
        )
        db.add(user)
        db.flush()
        logger.info(f"Invited {payload.email} as coach of org {auth.org_id}")

    if membership:
        membership.role = OrgRole.COACH
        membership.status = MembershipStatus.ACTIVE
    else:
        membership = OrgMembership(
            org_id=auth.org_id,
            user_id=user.id,
            role=OrgRole.COACH,
            status=MembershipStatus.ACTIVE,
        )
        db.add(membership)

    db.commit()
    db.refresh(membership)
    db.refresh(user)
    return _coach_out(membership, user)
