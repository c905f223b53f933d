"""Licensing errors.

Lookup/argument/read failures are kept distinct from business denials so the
HTTP layer can tell "upgrade required" apart from "try again later".
"""
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from studioops.license import QuotaCheck
    from studioops.tiers import Feature, LicenseTier


class LicenseError(Exception):
    """Base class for licensing failures."""

    code = "LICENSE_ERROR"


class OrganizationNotFound(LicenseError):
    code = "ORGANIZATION_NOT_FOUND"

    def __init__(self, org_id: int):
        super().__init__(f"Organization {org_id} not found")
        self.org_id = org_id


class InvalidLicenseArgument(LicenseError, ValueError):
    """A tier, resource or feature name outside the known set."""

    code = "INVALID_ARGUMENT"

    def __init__(self, kind: str, value: object, allowed: list[str]):
        super().__init__(f"Invalid {kind} {value!r}. Must be one of: {', '.join(allowed)}")
        self.kind = kind
        self.value = value
        self.allowed = allowed


class LicenseReadError(LicenseError):
    """The data store could not be read. Callers must not treat this as an allow."""

    code = "LICENSE_READ_FAILED"


class LimitExceeded(LicenseError):
    code = "LIMIT_EXCEEDED"

    def __init__(self, check: "QuotaCheck", suggested_tier: Optional["LicenseTier"] = None):
        super().__init__(
            f"{check.resource.value} limit reached ({check.current}/{check.limit.to_wire()})"
        )
        self.check = check
        self.suggested_tier = suggested_tier


class FeatureNotAvailable(LicenseError):
    code = "FEATURE_NOT_AVAILABLE"

    def __init__(self, feature: "Feature", tier: Optional["LicenseTier"]):
        tier_name = tier.value if tier else "no tier"
        super().__init__(f"Feature {feature.value} is not available on {tier_name}")
        self.feature = feature
        self.tier = tier
