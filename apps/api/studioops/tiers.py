"""License tier catalog.

Single source of truth for what each tier costs, how much of each countable
resource it allows and which features it turns on. The web client mirrors the
wire names used here (``maxStudents``, ``stripePayments``...).

Quotas and features must never decrease as the tier rank goes up; the catalog
is built so that each tier's feature set extends the one below it.
"""
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import ClassVar, Mapping, Optional

from studioops.exceptions import InvalidLicenseArgument


class LicenseTier(str, enum.Enum):
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"

    @classmethod
    def parse(cls, value: str) -> "LicenseTier":
        try:
            return cls(value.upper())
        except (ValueError, AttributeError):
            raise InvalidLicenseArgument("tier", value, [t.value for t in cls]) from None


class Resource(str, enum.Enum):
    """Countable resources bounded by a tier quota."""

    MEMBERS = "maxStudents"
    COACHES = "maxTrainers"
    SESSIONS_PER_MONTH = "maxSessionsPerMonth"
    PAYMENTS_PER_MONTH = "maxPaymentsPerMonth"

    @property
    def is_monthly(self) -> bool:
        return self in (Resource.SESSIONS_PER_MONTH, Resource.PAYMENTS_PER_MONTH)

    @classmethod
    def parse(cls, value: str) -> "Resource":
        if isinstance(value, str):
            if value in _RESOURCE_ALIASES:
                return _RESOURCE_ALIASES[value]
            try:
                return cls(value)
            except ValueError:
                pass
        allowed = [r.value for r in cls] + sorted(_RESOURCE_ALIASES)
        raise InvalidLicenseArgument("limit type", value, allowed)


# Short names used by the server-side limit helpers
_RESOURCE_ALIASES = {
    "members": Resource.MEMBERS,
    "students": Resource.MEMBERS,
    "coaches": Resource.COACHES,
    "trainers": Resource.COACHES,
    "sessions": Resource.SESSIONS_PER_MONTH,
    "payments": Resource.PAYMENTS_PER_MONTH,
}


class Feature(str, enum.Enum):
    STUDENT_MANAGEMENT = "studentManagement"
    SESSION_SCHEDULING = "sessionScheduling"
    BASIC_ATTENDANCE = "basicAttendance"
    PAYMENT_TRACKING = "paymentTracking"
    STRIPE_PAYMENTS = "stripePayments"
    SMS_NOTIFICATIONS = "smsNotifications"
    EMAIL_NOTIFICATIONS = "emailNotifications"
    PUSH_NOTIFICATIONS = "pushNotifications"
    ADVANCED_REPORTS = "advancedReports"
    MULTI_LOCATION = "multiLocation"
    CUSTOM_BRANDING = "customBranding"
    API_ACCESS = "apiAccess"
    PRIORITY_SUPPORT = "prioritySupport"
    STUDENT_PROGRESS = "studentProgress"
    EVENT_MANAGEMENT = "eventManagement"
    MARKETING_TOOLS = "marketingTools"

    @classmethod
    def parse(cls, value: str) -> "Feature":
        try:
            return cls(value)
        except ValueError:
            raise InvalidLicenseArgument("feature", value, [f.value for f in cls]) from None


class SubscriptionStatus(str, enum.Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SubscriptionStatus":
        """Map a stored status to the enum. Unknown or NULL values mean no subscription."""
        if not value:
            return cls.NONE
        normalized = value.strip().lower()
        normalized = _LEGACY_STATUSES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.NONE


_LEGACY_STATUSES = {
    "trial": "trialing",
    "canceled": "cancelled",
    "inactive": "none",
}


@dataclass(frozen=True)
class Quota:
    """Upper bound for a resource count. ``maximum`` of None means unlimited."""

    maximum: Optional[int]

    UNLIMITED: ClassVar["Quota"]

    @classmethod
    def finite(cls, maximum: int) -> "Quota":
        if maximum < 0:
            raise ValueError(f"Quota must be non-negative, got {maximum}")
        return cls(maximum)

    @classmethod
    def from_wire(cls, value: int) -> "Quota":
        return cls.UNLIMITED if value == -1 else cls.finite(value)

    @property
    def is_unlimited(self) -> bool:
        return self.maximum is None

    def allows(self, current: int) -> bool:
        """Whether one more unit may be created when ``current`` already exist."""
        if self.maximum is None:
            return True
        return current < self.maximum

    def remaining(self, current: int) -> Optional[int]:
        """Units that may still be created, or None when unlimited."""
        if self.maximum is None:
            return None
        return max(self.maximum - current, 0)

    def exceeds(self, other: "Quota") -> bool:
        """Strictly larger than ``other``; unlimited is larger than any finite quota."""
        if other.maximum is None:
            return False
        if self.maximum is None:
            return True
        return self.maximum > other.maximum

    def at_least(self, other: "Quota") -> bool:
        return self == other or self.exceeds(other)

    def to_wire(self) -> int:
        return -1 if self.maximum is None else self.maximum


Quota.UNLIMITED = Quota(None)


@dataclass(frozen=True)
class TierConfig:
    tier: LicenseTier
    display_name: str
    monthly_price: int
    quotas: Mapping[Resource, Quota]
    features: Mapping[Feature, bool]

    def quota(self, resource: Resource) -> Quota:
        return self.quotas[resource]

    def has(self, feature: Feature) -> bool:
        return self.features[feature]

    def features_dict(self) -> dict[str, bool]:
        return {feature.value: enabled for feature, enabled in self.features.items()}

    def limitations_dict(self) -> dict[str, int]:
        return {resource.value: quota.to_wire() for resource, quota in self.quotas.items()}


def _tier(
    tier: LicenseTier,
    display_name: str,
    monthly_price: int,
    quotas: dict[Resource, Quota],
    enabled: frozenset[Feature],
) -> TierConfig:
    missing = set(Resource) - set(quotas)
    if missing:
        raise ValueError(f"{tier.value} is missing quotas for {sorted(r.value for r in missing)}")
    return TierConfig(
        tier=tier,
        display_name=display_name,
        monthly_price=monthly_price,
        quotas=MappingProxyType({resource: quotas[resource] for resource in Resource}),
        features=MappingProxyType({feature: feature in enabled for feature in Feature}),
    )


_STARTER_FEATURES = frozenset({
    Feature.STUDENT_MANAGEMENT,
    Feature.SESSION_SCHEDULING,
    Feature.BASIC_ATTENDANCE,
    Feature.EMAIL_NOTIFICATIONS,
    Feature.PUSH_NOTIFICATIONS,
})

_PROFESSIONAL_FEATURES = _STARTER_FEATURES | {
    Feature.PAYMENT_TRACKING,
    Feature.STRIPE_PAYMENTS,
    Feature.SMS_NOTIFICATIONS,
    Feature.ADVANCED_REPORTS,
}

_ENTERPRISE_FEATURES = frozenset(Feature)


TIER_ORDER: tuple[LicenseTier, ...] = (
    LicenseTier.STARTER,
    LicenseTier.PROFESSIONAL,
    LicenseTier.ENTERPRISE,
)

TIER_CATALOG: Mapping[LicenseTier, TierConfig] = MappingProxyType({
    LicenseTier.STARTER: _tier(
        LicenseTier.STARTER,
        "Starter",
        29,
        {
            Resource.MEMBERS: Quota.finite(25),
            Resource.COACHES: Quota.finite(2),
            Resource.SESSIONS_PER_MONTH: Quota.finite(100),
            Resource.PAYMENTS_PER_MONTH: Quota.finite(50),
        },
        _STARTER_FEATURES,
    ),
    LicenseTier.PROFESSIONAL: _tier(
        LicenseTier.PROFESSIONAL,
        "Professional",
        79,
        {
            Resource.MEMBERS: Quota.finite(100),
            Resource.COACHES: Quota.UNLIMITED,
            Resource.SESSIONS_PER_MONTH: Quota.finite(500),
            Resource.PAYMENTS_PER_MONTH: Quota.finite(200),
        },
        _PROFESSIONAL_FEATURES,
    ),
    LicenseTier.ENTERPRISE: _tier(
        LicenseTier.ENTERPRISE,
        "Enterprise",
        199,
        {
            Resource.MEMBERS: Quota.UNLIMITED,
            Resource.COACHES: Quota.UNLIMITED,
            Resource.SESSIONS_PER_MONTH: Quota.UNLIMITED,
            Resource.PAYMENTS_PER_MONTH: Quota.UNLIMITED,
        },
        _ENTERPRISE_FEATURES,
    ),
})


def get_tier_config(tier: LicenseTier) -> TierConfig:
    return TIER_CATALOG[tier]


def tier_rank(tier: LicenseTier) -> int:
    return TIER_ORDER.index(tier)


def next_tier(tier: LicenseTier) -> Optional[LicenseTier]:
    rank = tier_rank(tier)
    if rank + 1 < len(TIER_ORDER):
        return TIER_ORDER[rank + 1]
    return None
