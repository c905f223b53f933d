"""Billing endpoints: plan status, upgrade preview and Stripe sessions."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

import stripe
from studioops.core.stripe_client import get_price_id_for_tier
from studioops.core.stripe_client import get_web_base_url
from studioops.core.stripe_client import require_stripe
from studioops.deps import AuthContext
from studioops.deps import get_db
from studioops.deps import require_role
from studioops.exceptions import InvalidLicenseArgument
from studioops.exceptions import LicenseReadError
from studioops.license import can_upgrade
from studioops.license import check_limit
from studioops.license import get_upgrade_benefits
from studioops.license import resolve_license_context
from studioops.models import Organization
from studioops.models import OrgRole
from studioops.schemas import BillingStatusOut
from studioops.schemas import UpgradePreviewOut
from studioops.schemas import UsageOut
from studioops.tiers import LicenseTier
from studioops.tiers import Resource
from studioops.tiers import get_tier_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


def _get_org(db: Session, org_id: int) -> Organization:
    org = (
        db.execute(select(Organization).where(Organization.id == org_id))
        .scalars()
        .one_or_none()
    )
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _parse_tier(value: str) -> LicenseTier:
    try:
        return LicenseTier.parse(value)
    except InvalidLicenseArgument as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_or_create_stripe_customer(org: Organization, db: Session) -> str:
    """Get or create Stripe customer for organization.

    Args:
        org: Organization instance
        db: Database session

    Returns:
        Stripe customer ID
    """
    if org.stripe_customer_id:
        return org.stripe_customer_id

    customer = stripe.Customer.create(
        name=org.name,
        metadata={"org_id": str(org.id)}
    )

    org.stripe_customer_id = customer.id
    db.commit()
    db.refresh(org)

    return customer.id


@router.get("/status", response_model=BillingStatusOut)
def get_billing_status(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_role([OrgRole.ADMIN])),
) -> BillingStatusOut:
    """Plan, subscription status and usage against every quota (ADMIN only)."""
    org = _get_org(db, auth.org_id)
    try:
        context = resolve_license_context(db, org.id)
        checks = [check_limit(db, context, resource) for resource in Resource]
    except LicenseReadError:
        raise HTTPException(status_code=503, detail="License information is temporarily unavailable")

    config = get_tier_config(context.tier) if context.tier else None
    return BillingStatusOut(
        org_id=org.id,
        org_name=org.name,
        tier=context.tier.value if context.tier else None,
        tier_name=config.display_name if config else None,
        status=context.status.value,
        monthly_price=config.monthly_price if config else None,
        current_period_end=org.current_period_end,
        trial_ends_at=org.trial_ends_at,
        usage={
            check.resource.value: UsageOut(
                current=check.current, limit=check.limit.to_wire(), allowed=check.allowed
            )
            for check in checks
        },
    )


@router.get("/upgrade-preview", response_model=UpgradePreviewOut)
def get_upgrade_preview(
    target_tier: str = Query(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_role([OrgRole.ADMIN])),
) -> UpgradePreviewOut:
    """What moving to ``target_tier`` would unlock. Read-only; no billing happens here."""
    target = _parse_tier(target_tier)
    try:
        context = resolve_license_context(db, auth.org_id)
    except LicenseReadError:
        raise HTTPException(status_code=503, detail="License information is temporarily unavailable")

    if context.tier is None:
        raise HTTPException(status_code=400, detail="Organization has no license tier")

    benefits = get_upgrade_benefits(context.tier, target)
    return UpgradePreviewOut(
        current_tier=context.tier.value,
        target_tier=target.value,
        can_upgrade=can_upgrade(context.tier, target),
        new_features=[feature.value for feature in benefits.new_features],
        price_difference=benefits.price_difference,
        raised_quotas={
            resource.value: quota.to_wire() for resource, quota in benefits.raised_quotas.items()
        },
    )


@router.post("/checkout-session")
def create_checkout_session(
    tier: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_role([OrgRole.ADMIN])),
) -> dict:
    """Create Stripe Checkout Session for a tier subscription (ADMIN only).

    The organization keeps its current tier until Stripe confirms the
    subscription; nothing is changed here.
    """
    org = _get_org(db, auth.org_id)
    target = _parse_tier(tier)

    if org.license_tier == target.value and org.subscription_status == "active":
        raise HTTPException(status_code=400, detail="Already on this tier")

    price_id = get_price_id_for_tier(target)
    if not price_id:
        raise HTTPException(
            status_code=500,
            detail=f"Price ID not configured for tier: {target.value}"
        )

    web_base_url = get_web_base_url()

    try:
        require_stripe()
        customer_id = get_or_create_stripe_customer(org, db)
        checkout_session = stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{web_base_url}/subscribe/success",
            cancel_url=f"{web_base_url}/subscribe?canceled=1",
            allow_promotion_codes=True,
            metadata={"org_id": str(org.id), "tier": target.value},
            subscription_data={
                "metadata": {"org_id": str(org.id), "tier": target.value}
            }
        )
    except RuntimeError as e:
        logger.error(f"Stripe not configured: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout failed for org {org.id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Stripe error: {str(e)}")

    logger.info(f"Created checkout session for org {org.id} -> {target.value}")
    return {"url": checkout_session.url}


@router.post("/portal")
def create_portal_session(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_role([OrgRole.ADMIN])),
) -> dict:
    """Create Stripe Billing Portal session (ADMIN only)."""
    org = _get_org(db, auth.org_id)

    if not org.stripe_customer_id:
        raise HTTPException(
            status_code=400,
            detail="No Stripe customer found. Please subscribe to a plan first."
        )

    try:
        require_stripe()
        portal_session = stripe.billing_portal.Session.create(
            customer=org.stripe_customer_id,
            return_url=f"{get_web_base_url()}/admin/subscription"
        )
    except RuntimeError as e:
        logger.error(f"Stripe not configured: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    except stripe.StripeError as e:
        raise HTTPException(status_code=500, detail=f"Stripe error: {str(e)}")

    return {"url": portal_session.url}
