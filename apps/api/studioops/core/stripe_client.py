"""Stripe client initialization and utilities."""
import os
from typing import Optional

import stripe

from studioops.tiers import LicenseTier

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")


def require_stripe() -> None:
    """Fail loudly when a Stripe call is attempted without credentials."""
    if not stripe.api_key:
        raise RuntimeError("STRIPE_SECRET_KEY environment variable is required")


def get_price_id_for_tier(tier: LicenseTier) -> Optional[str]:
    """Get the Stripe price ID configured for a license tier.

    Args:
        tier: License tier

    Returns:
        Stripe price ID or None if not configured
    """
    price_mapping = {
        LicenseTier.STARTER: os.getenv("STRIPE_PRICE_STARTER"),
        LicenseTier.PROFESSIONAL: os.getenv("STRIPE_PRICE_PROFESSIONAL"),
        LicenseTier.ENTERPRISE: os.getenv("STRIPE_PRICE_ENTERPRISE"),
    }
    return price_mapping.get(tier)


def get_web_base_url() -> str:
    return os.getenv("WEB_BASE_URL", os.getenv("FRONTEND_URL", "http://localhost:3000"))
