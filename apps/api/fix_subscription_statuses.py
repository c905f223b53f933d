"""Normalize legacy subscription status values in the database."""
from sqlalchemy import text

from studioops.db import engine


def fix_subscription_statuses():
    """Rewrite upper-case/legacy statuses (TRIAL, ACTIVE, INACTIVE...) to the stored spelling."""
    with engine.connect() as conn:
        trans = conn.begin()
        try:
            result = conn.execute(
                text("UPDATE organizations SET subscription_status = 'trialing' WHERE UPPER(subscription_status) IN ('TRIAL', 'TRIALING')")
            )
            print(f"Updated {result.rowcount} organization(s) to 'trialing'")

            result = conn.execute(
                text("UPDATE organizations SET subscription_status = 'cancelled' WHERE UPPER(subscription_status) IN ('CANCELED', 'CANCELLED')")
            )
            print(f"Updated {result.rowcount} organization(s) to 'cancelled'")

            result = conn.execute(
                text("UPDATE organizations SET subscription_status = 'none' WHERE UPPER(subscription_status) = 'INACTIVE'")
            )
            print(f"Updated {result.rowcount} organization(s) from 'INACTIVE' to 'none'")

            result = conn.execute(
                text("UPDATE organizations SET subscription_status = LOWER(subscription_status) WHERE subscription_status != LOWER(subscription_status)")
            )
            print(f"Updated {result.rowcount} organization(s) to lowercase")

            result = conn.execute(
                text("UPDATE organizations SET license_tier = UPPER(license_tier) WHERE license_tier != UPPER(license_tier)")
            )
            print(f"Updated {result.rowcount} organization(s) license tier to uppercase")

            trans.commit()
            print("Subscription statuses fixed successfully!")
        except Exception as e:
            trans.rollback()
            print(f"Error fixing subscription statuses: {e}")
            raise


if __name__ == "__main__":
    fix_subscription_statuses()
