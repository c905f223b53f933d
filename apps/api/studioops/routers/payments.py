from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.deps import AuthContext
from studioops.deps import ensure_within_limit
from studioops.deps import feature_denied_detail
from studioops.deps import get_current_auth
from studioops.deps import get_db
from studioops.deps import require_feature
from studioops.exceptions import FeatureNotAvailable
from studioops.license import LicenseContext
from studioops.license import enforce_feature
from studioops.models import Member
from studioops.models import Payment
from studioops.models import PaymentMethod
from studioops.permissions import can_record_payments
from studioops.schemas import PaymentCreate
from studioops.schemas import PaymentOut
from studioops.tiers import Feature
from studioops.tiers import Resource

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get(
    "",
    response_model=list[PaymentOut],
    dependencies=[Depends(require_feature(Feature.PAYMENT_TRACKING))],
)
def list_payments(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
) -> list[Payment]:
    payments = (
        db.execute(
            select(Payment).where(Payment.org_id == auth.org_id).order_by(Payment.recorded_at.desc())
        )
        .scalars()
        .all()
    )
    return payments


@router.post("", response_model=PaymentOut, status_code=201)
def record_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
    license_ctx: LicenseContext = Depends(require_feature(Feature.PAYMENT_TRACKING)),
) -> Payment:
    if not can_record_payments(auth):
        raise HTTPException(status_code=403, detail="Insufficient permissions to record payments")

    if payload.method == PaymentMethod.CARD:
        try:
            enforce_feature(license_ctx, Feature.STRIPE_PAYMENTS)
        except FeatureNotAvailable as e:
            raise HTTPException(status_code=402, detail=feature_denied_detail(e))

    member = db.execute(
        select(Member.id).where(Member.id == payload.member_id, Member.org_id == auth.org_id)
    ).scalar_one_or_none()
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")

    ensure_within_limit(db, license_ctx, Resource.PAYMENTS_PER_MONTH)

    payment = Payment(
        org_id=auth.org_id,
        member_id=payload.member_id,
        amount=payload.amount,
        currency=payload.currency.upper(),
        method=payload.method,
        note=payload.note,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment
