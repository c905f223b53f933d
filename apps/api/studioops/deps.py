"""FastAPI dependencies: db session, caller identity, license context."""
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioops.auth import get_user_from_token
from studioops.db import SessionLocal
from studioops.exceptions import FeatureNotAvailable
from studioops.exceptions import LicenseReadError
from studioops.exceptions import LimitExceeded
from studioops.exceptions import OrganizationNotFound
from studioops.license import LicenseContext
from studioops.license import enforce_batch_limit
from studioops.license import enforce_feature
from studioops.license import enforce_limit
from studioops.license import resolve_license_context
from studioops.models import MembershipStatus
from studioops.models import OrgMembership
from studioops.models import OrgRole
from studioops.tiers import Feature
from studioops.tiers import Resource
from studioops.tiers import get_tier_config

logger = logging.getLogger(__name__)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@dataclass
class AuthContext:
    user_id: int
    org_id: Optional[int]
    role: Optional[OrgRole]


def get_caller(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
    x_org_id: Optional[int] = Header(None),
) -> AuthContext:
    """Authenticated user plus their active organization, if any.

    ``X-Org-Id`` picks among several memberships; otherwise the oldest active
    membership wins. A user without a membership gets ``org_id=None``.
    """
    try:
        user = get_user_from_token(db, authorization)

        stmt = select(OrgMembership).where(
            OrgMembership.user_id == user.id,
            OrgMembership.status == MembershipStatus.ACTIVE,
        )
        if x_org_id is not None:
            stmt = stmt.where(OrgMembership.org_id == x_org_id)
        membership = db.execute(stmt.order_by(OrgMembership.id)).scalars().first()
    except SQLAlchemyError as e:
        # Rendered as a retryable 503 by the app-level handler
        logger.error(f"Failed to load caller identity: {str(e)}")
        raise LicenseReadError("Could not load caller identity") from e

    if membership is None:
        logger.info(f"User {user.id} has no active membership (requested org: {x_org_id})")
        if x_org_id is not None:
            raise HTTPException(status_code=403, detail="Not a member of this organization")
        return AuthContext(user_id=user.id, org_id=None, role=None)

    return AuthContext(user_id=user.id, org_id=membership.org_id, role=membership.role)


def get_current_auth(auth: AuthContext = Depends(get_caller)) -> AuthContext:
    """Caller who must belong to an organization."""
    if auth.org_id is None:
        raise HTTPException(status_code=403, detail="No active organization membership")
    return auth


def require_role(roles: list[OrgRole]) -> Callable[..., AuthContext]:
    def dependency(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if auth.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return auth

    return dependency


def get_license_context(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
) -> LicenseContext:
    """License context for routes that mutate org data. Failures become HTTP errors."""
    try:
        return resolve_license_context(db, auth.org_id)
    except OrganizationNotFound:
        raise HTTPException(status_code=404, detail="Organization not found")
    except LicenseReadError:
        raise HTTPException(status_code=503, detail="License information is temporarily unavailable")


def require_feature(feature: Feature) -> Callable[..., LicenseContext]:
    """Dependency that rejects the request with 402 unless ``feature`` is available."""
    def dependency(context: LicenseContext = Depends(get_license_context)) -> LicenseContext:
        try:
            enforce_feature(context, feature)
        except FeatureNotAvailable as e:
            raise HTTPException(status_code=402, detail=feature_denied_detail(e))
        return context

    return dependency


def feature_denied_detail(error: FeatureNotAvailable) -> dict:
    return {
        "error": error.code,
        "message": str(error),
        "details": {
            "feature": error.feature.value,
            "currentTier": error.tier.value if error.tier else None,
        },
    }


def limit_exceeded_detail(error: LimitExceeded) -> dict:
    check = error.check
    current_tier = get_tier_config(check.tier).display_name if check.tier else None
    suggested = error.suggested_tier
    return {
        "error": error.code,
        "message": f"You have reached the {check.resource.value} limit "
                   f"({check.limit.to_wire()}) of your {current_tier or 'current'} plan.",
        "details": {
            "current": check.current,
            "limit": check.limit.to_wire(),
            "limitType": check.resource.value,
            "currentTier": current_tier,
            "suggestedTier": suggested.value if suggested else None,
            "suggestedTierName": get_tier_config(suggested).display_name if suggested else None,
        },
    }


def ensure_within_limit(
    db: Session, context: LicenseContext, resource: Resource, count: int = 1
) -> None:
    """Re-check a quota right before an insert; 402 when the org is at its limit."""
    try:
        if count == 1:
            enforce_limit(db, context, resource)
        else:
            enforce_batch_limit(db, context, resource, count)
    except LimitExceeded as e:
        raise HTTPException(status_code=402, detail=limit_exceeded_detail(e))
    except LicenseReadError:
        raise HTTPException(status_code=503, detail="License information is temporarily unavailable")
