from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Path
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.deps import AuthContext
from studioops.deps import ensure_within_limit
from studioops.deps import get_current_auth
from studioops.deps import get_db
from studioops.deps import require_feature
from studioops.license import LicenseContext
from studioops.models import Member
from studioops.models import MemberStatus
from studioops.permissions import can_manage_members
from studioops.schemas import MemberCreate
from studioops.schemas import MemberOut
from studioops.schemas import MemberUpdate
from studioops.tiers import Feature
from studioops.tiers import Resource

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("", response_model=list[MemberOut])
def list_members(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
) -> list[Member]:
    members = (
        db.execute(select(Member).where(Member.org_id == auth.org_id).order_by(Member.id))
        .scalars()
        .all()
    )
    return members


@router.post("", response_model=MemberOut, status_code=201)
def create_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(require_feature(Feature.STUDENT_MANAGEMENT)),
) -> Member:
    if not can_manage_members(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to add members")

    ensure_within_limit(db, license_ctx, Resource.MEMBERS)

    member = Member(
        org_id=auth.org_id,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        status=MemberStatus.ACTIVE,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@router.patch("/{member_id}", response_model=MemberOut)
def update_member(
    payload: MemberUpdate,
    member_id: int = Path(ge=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(require_feature(Feature.STUDENT_MANAGEMENT)),
) -> Member:
    if not can_manage_members(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to update members")
    member = (
        db.execute(select(Member).where(Member.id == member_id, Member.org_id == auth.org_id))
        .scalars()
        .one_or_none()
    )
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    updates = payload.model_dump(exclude_unset=True)

    # Reactivation puts the member back into the headcount
    if updates.get("status") == MemberStatus.ACTIVE and member.status != MemberStatus.ACTIVE:
        ensure_within_limit(db, license_ctx, Resource.MEMBERS)

    for field, value in updates.items():
        setattr(member, field, value)

    db.commit()
    db.refresh(member)
    return member
