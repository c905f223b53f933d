"""Assign a license tier (and optionally a subscription status) to an organization."""
import sys

from studioops.db import SessionLocal
from studioops.exceptions import InvalidLicenseArgument
from studioops.models import Organization
from studioops.tiers import LicenseTier, SubscriptionStatus


def list_organizations(db):
    print("\nAvailable organizations:")
    for org in db.query(Organization).order_by(Organization.id).all():
        print(f"  - ID: {org.id}, Name: {org.name}, Tier: {org.license_tier or '(none)'}, Status: {org.subscription_status or '(none)'}")


def set_license_tier(org_id: int, tier_name: str, status_name: str = None):
    try:
        tier = LicenseTier.parse(tier_name)
    except InvalidLicenseArgument as e:
        print(f"Error: {e}")
        return

    status = None
    if status_name:
        status = SubscriptionStatus.parse(status_name)
        if status is SubscriptionStatus.NONE and status_name.lower() not in ("none", "inactive"):
            print(f"Error: unknown subscription status {status_name!r}")
            return

    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.id == org_id).first()
        if not org:
            print(f"Organization {org_id} not found.")
            list_organizations(db)
            return

        org.license_tier = tier.value
        if status:
            org.subscription_status = status.value
        db.commit()
        print(f"✓ {org.name} (ID: {org.id}) is now on {tier.value} ({org.subscription_status or 'no status'})")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python set_license_tier.py <org_id> <tier> [status]")
        print("\nExamples:")
        print("  python set_license_tier.py 1 PROFESSIONAL")
        print("  python set_license_tier.py 1 ENTERPRISE active")
        print(f"\nTiers: {', '.join(t.value for t in LicenseTier)}")
        print(f"Statuses: {', '.join(s.value for s in SubscriptionStatus)}")
        db = SessionLocal()
        try:
            list_organizations(db)
        finally:
            db.close()
        sys.exit(1)

    set_license_tier(int(sys.argv[1]), sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
