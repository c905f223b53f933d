"""License context resolution, quota checks and feature gating."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioops.exceptions import FeatureNotAvailable
from studioops.exceptions import InvalidLicenseArgument
from studioops.exceptions import LicenseReadError
from studioops.exceptions import LimitExceeded
from studioops.exceptions import OrganizationNotFound
from studioops.models import Member
from studioops.models import MemberStatus
from studioops.models import MembershipStatus
from studioops.models import Organization
from studioops.models import OrgMembership
from studioops.models import OrgRole
from studioops.models import Payment
from studioops.models import TrainingSession
from studioops.tiers import Feature
from studioops.tiers import LicenseTier
from studioops.tiers import Quota
from studioops.tiers import Resource
from studioops.tiers import SubscriptionStatus
from studioops.tiers import TIER_CATALOG
from studioops.tiers import TIER_ORDER
from studioops.tiers import get_tier_config
from studioops.tiers import next_tier
from studioops.tiers import tier_rank

logger = logging.getLogger(__name__)

# Roles that run sessions and count against maxTrainers
COACH_ROLES = (OrgRole.ADMIN, OrgRole.COACH)

NO_TIER_QUOTA = Quota.finite(0)


@dataclass(frozen=True)
class LicenseContext:
    """Licensing view of the caller's organization.

    ``tier`` is None when the caller has no organization or the organization
    has never been assigned a tier; such a context is denied every quota and
    every feature (trial aside).
    """
    org_id: Optional[int]
    tier: Optional[LicenseTier]
    status: SubscriptionStatus = SubscriptionStatus.NONE

    @property
    def is_trialing(self) -> bool:
        return self.status is SubscriptionStatus.TRIALING


@dataclass(frozen=True)
class QuotaCheck:
    resource: Resource
    allowed: bool
    current: int
    limit: Quota
    tier: Optional[LicenseTier] = None

    def to_wire(self) -> dict:
        return {"allowed": self.allowed, "current": self.current, "limit": self.limit.to_wire()}


@dataclass(frozen=True)
class UpgradeBenefits:
    current_tier: LicenseTier
    target_tier: LicenseTier
    new_features: list[Feature] = field(default_factory=list)
    price_difference: int = 0
    raised_quotas: dict[Resource, Quota] = field(default_factory=dict)


def resolve_license_context(db: Session, org_id: Optional[int]) -> LicenseContext:
    """Load tier and subscription status for an organization.

    Raises:
        OrganizationNotFound: org_id does not reference an existing organization
        LicenseReadError: the organization row could not be read
    """
    if org_id is None:
        return LicenseContext(org_id=None, tier=None)

    try:
        row = db.execute(
            select(Organization.license_tier, Organization.subscription_status).where(
                Organization.id == org_id
            )
        ).one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load license context for org {org_id}: {str(e)}")
        raise LicenseReadError(f"Could not load organization {org_id}") from e

    if row is None:
        raise OrganizationNotFound(org_id)

    stored_tier, stored_status = row
    tier = None
    if stored_tier:
        try:
            tier = LicenseTier.parse(stored_tier)
        except InvalidLicenseArgument:
            logger.warning(f"Organization {org_id} has unknown license tier {stored_tier!r}; treating as no tier")

    return LicenseContext(org_id=org_id, tier=tier, status=SubscriptionStatus.parse(stored_status))


def month_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return [start of month, start of next month) in UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def count_usage(
    db: Session, org_id: int, resource: Resource, now: Optional[datetime] = None
) -> int:
    """Live usage count for a resource. Monthly resources count the current calendar month."""
    if resource is Resource.MEMBERS:
        stmt = select(func.count(Member.id)).where(
            Member.org_id == org_id, Member.status == MemberStatus.ACTIVE
        )
    elif resource is Resource.COACHES:
        stmt = select(func.count(OrgMembership.id)).where(
            OrgMembership.org_id == org_id,
            OrgMembership.status == MembershipStatus.ACTIVE,
            OrgMembership.role.in_(COACH_ROLES),
        )
    elif resource is Resource.SESSIONS_PER_MONTH:
        start, end = month_window(now)
        stmt = select(func.count(TrainingSession.id)).where(
            TrainingSession.org_id == org_id,
            TrainingSession.created_at >= start,
            TrainingSession.created_at < end,
        )
    elif resource is Resource.PAYMENTS_PER_MONTH:
        start, end = month_window(now)
        stmt = select(func.count(Payment.id)).where(
            Payment.org_id == org_id,
            Payment.recorded_at >= start,
            Payment.recorded_at < end,
        )
    else:
        raise InvalidLicenseArgument("limit type", resource, [r.value for r in Resource])

    try:
        return db.execute(stmt).scalar() or 0
    except SQLAlchemyError as e:
        logger.error(f"Failed to count {resource.value} for org {org_id}: {str(e)}")
        raise LicenseReadError(f"Could not count {resource.value}") from e


def check_limit(
    db: Session,
    context: LicenseContext,
    resource: Resource,
    now: Optional[datetime] = None,
) -> QuotaCheck:
    """Decide whether the organization may create one more unit of ``resource``.

    Advisory only: the count may change between this check and the insert.
    """
    current = count_usage(db, context.org_id, resource, now) if context.org_id is not None else 0

    if context.tier is None:
        return QuotaCheck(resource=resource, allowed=False, current=current, limit=NO_TIER_QUOTA)

    limit = get_tier_config(context.tier).quota(resource)
    return QuotaCheck(
        resource=resource,
        allowed=limit.allows(current),
        current=current,
        limit=limit,
        tier=context.tier,
    )


def suggest_tier(tier: Optional[LicenseTier], resource: Resource) -> Optional[LicenseTier]:
    """Next tier up whose quota for ``resource`` is strictly larger."""
    if tier is None:
        return TIER_ORDER[0]
    candidate = next_tier(tier)
    if candidate and get_tier_config(candidate).quota(resource).exceeds(get_tier_config(tier).quota(resource)):
        return candidate
    return None


def enforce_limit(
    db: Session,
    context: LicenseContext,
    resource: Resource,
    now: Optional[datetime] = None,
) -> QuotaCheck:
    """Server-side quota check for mutating endpoints. Raises LimitExceeded on denial."""
    check = check_limit(db, context, resource, now)
    if not check.allowed:
        logger.warning(
            f"Org {context.org_id} hit {resource.value} limit "
            f"({check.current}/{check.limit.to_wire()}) on tier {context.tier}"
        )
        raise LimitExceeded(check, suggest_tier(context.tier, resource))
    return check


def enforce_batch_limit(
    db: Session,
    context: LicenseContext,
    resource: Resource,
    count: int,
    now: Optional[datetime] = None,
) -> QuotaCheck:
    """Like ``enforce_limit`` but for ``count`` new units created together.

    The whole batch is refused when it does not fit; nothing is partially allowed.
    """
    check = check_limit(db, context, resource, now)
    remaining = check.limit.remaining(check.current)
    if remaining is not None and count > remaining:
        denied = QuotaCheck(
            resource=resource,
            allowed=False,
            current=check.current,
            limit=check.limit,
            tier=check.tier,
        )
        logger.warning(
            f"Org {context.org_id} tried to add {count} {resource.value} "
            f"with {remaining} left on tier {context.tier}"
        )
        raise LimitExceeded(denied, suggest_tier(context.tier, resource))
    return check


def check_feature_access(context: LicenseContext, feature: Feature) -> bool:
    """Whether ``feature`` is available to the organization right now.

    Trialing organizations get every feature regardless of tier.
    """
    if context.is_trialing:
        return True
    if context.tier is None:
        return False
    return get_tier_config(context.tier).has(feature)


def has_feature(context: LicenseContext, feature_name: str) -> bool:
    """Fail-closed variant for rendering decisions: unknown names are simply False."""
    try:
        feature = Feature.parse(feature_name)
    except InvalidLicenseArgument:
        logger.warning(f"Unknown feature {feature_name!r} requested; denying")
        return False
    return check_feature_access(context, feature)


def enforce_feature(context: LicenseContext, feature: Feature) -> None:
    if not check_feature_access(context, feature):
        logger.warning(f"Org {context.org_id} denied feature {feature.value} on tier {context.tier}")
        raise FeatureNotAvailable(feature, context.tier)


def get_upgrade_benefits(current: LicenseTier, target: LicenseTier) -> UpgradeBenefits:
    """Describe what moving from ``current`` to ``target`` would unlock.

    Purely descriptive: a downgrade pair yields no new features and a negative
    price difference.
    """
    current_config = get_tier_config(current)
    target_config = get_tier_config(target)

    new_features = [
        feature
        for feature in Feature
        if target_config.has(feature) and not current_config.has(feature)
    ]
    raised_quotas = {
        resource: target_config.quota(resource)
        for resource in Resource
        if target_config.quota(resource).exceeds(current_config.quota(resource))
    }
    return UpgradeBenefits(
        current_tier=current,
        target_tier=target,
        new_features=new_features,
        price_difference=target_config.monthly_price - current_config.monthly_price,
        raised_quotas=raised_quotas,
    )


def can_upgrade(current: Optional[LicenseTier], target: LicenseTier) -> bool:
    if current is None:
        return False
    return tier_rank(target) > tier_rank(current)


def current_tier_summary(context: LicenseContext) -> dict:
    """Payload for the ``currentTier`` license action."""
    if context.tier is None:
        return {"tier": None, "status": context.status.value, "features": {}, "limitations": {}}

    config = TIER_CATALOG[context.tier]
    return {
        "tier": context.tier.value,
        "status": context.status.value,
        "features": config.features_dict(),
        "limitations": config.limitations_dict(),
    }
