"""Seed database with a trialing Starter organization for local development."""
from datetime import datetime, timedelta, timezone

from studioops.db import SessionLocal
from studioops.models import Member, Organization, OrgMembership, User, OrgRole, MembershipStatus
from studioops.tiers import LicenseTier, SubscriptionStatus

TRIAL_PERIOD_DAYS = 15


def seed():
    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.name == "Test Dojo").first()
        if not org:
            org = Organization(
                name="Test Dojo",
                license_tier=LicenseTier.STARTER.value,
                subscription_status=SubscriptionStatus.TRIALING.value,
                trial_ends_at=datetime.now(timezone.utc) + timedelta(days=TRIAL_PERIOD_DAYS),
            )
            db.add(org)
            db.flush()
            print(f"Created organization: Test Dojo (ID: {org.id}, {org.license_tier}, trialing)")
        else:
            print(f"Organization already exists: Test Dojo (ID: {org.id})")

        # Matches the dev-mode auth bypass subject
        user = db.query(User).filter(User.auth_subject == "dev_user_1").first()
        if not user:
            user = User(
                auth_provider="clerk",
                auth_subject="dev_user_1",
                email="dev@example.com",
                name="Dev User"
            )
            db.add(user)
            db.flush()
            print(f"Created user: dev@example.com (ID: {user.id})")
        else:
            print(f"User already exists: dev@example.com (ID: {user.id})")

        membership = (
            db.query(OrgMembership)
            .filter(OrgMembership.org_id == org.id, OrgMembership.user_id == user.id)
            .first()
        )
        if not membership:
            db.add(OrgMembership(
                org_id=org.id,
                user_id=user.id,
                role=OrgRole.ADMIN,
                status=MembershipStatus.ACTIVE
            ))
            print(f"Created membership: user {user.id} -> org {org.id} (ADMIN)")

        if db.query(Member).filter(Member.org_id == org.id).count() == 0:
            db.add_all([
                Member(org_id=org.id, name="Kovács Anna", email="anna@example.com"),
                Member(org_id=org.id, name="Nagy Péter", phone="+36 30 123 4567"),
            ])
            print("Created 2 sample members")

        db.commit()
        print("Database seeded successfully!")
    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
