"""Clerk JWT verification and user management."""
import logging
import os
from typing import Optional

import httpx
import jwt
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from studioops.models import User

logger = logging.getLogger(__name__)

CLERK_JWKS_URL = os.getenv("CLERK_JWKS_URL", "")
CLERK_SECRET_KEY = os.getenv("CLERK_SECRET_KEY", "")

# JWKS documents keyed by URL
_jwks_cache: dict[str, dict] = {}


def get_clerk_jwks(jwks_url: str) -> dict:
    """Fetch (and cache) the Clerk JSON Web Key Set."""
    if jwks_url in _jwks_cache:
        return _jwks_cache[jwks_url]

    try:
        response = httpx.get(jwks_url, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Failed to fetch JWKS from {jwks_url}: {str(e)}")
        raise HTTPException(status_code=401, detail="Unable to fetch JWKS")

    jwks = response.json()
    _jwks_cache[jwks_url] = jwks
    logger.info(f"Fetched JWKS with {len(jwks.get('keys', []))} keys")
    return jwks


def _resolve_jwks_url(token: str) -> Optional[str]:
    if CLERK_JWKS_URL:
        return CLERK_JWKS_URL
    # Clerk dev instances publish keys at <issuer>/.well-known/jwks.json
    unverified = jwt.decode(token, options={"verify_signature": False})
    issuer = unverified.get("iss", "")
    if issuer and "clerk.accounts.dev" in issuer:
        return f"{issuer}/.well-known/jwks.json"
    return None


def _signing_key(token: str, jwks: dict):
    # kid lives in the token header; tokens without one fall back to the first key
    kid = jwt.get_unverified_header(token).get("kid")
    keys = jwks.get("keys", [])
    for jwk in keys:
        if kid and jwk.get("kid") == kid:
            return jwt.algorithms.RSAAlgorithm.from_jwk(jwk)
    if keys:
        logger.info("No kid match found, trying first key in JWKS")
        return jwt.algorithms.RSAAlgorithm.from_jwk(keys[0])
    return None


def verify_clerk_token(token: str) -> dict:
    """Verify a Clerk session token and return its claims."""
    if not CLERK_SECRET_KEY and not CLERK_JWKS_URL:
        logger.warning("No Clerk keys configured - using dev mode bypass")
        return {"sub": "dev_user_1", "email": "dev@example.com", "name": "Dev User"}

    try:
        jwks_url = _resolve_jwks_url(token)
        if jwks_url:
            key = _signing_key(token, get_clerk_jwks(jwks_url))
            if not key:
                raise HTTPException(status_code=401, detail="Invalid token key")
            return jwt.decode(token, key, algorithms=["RS256"])

        if CLERK_SECRET_KEY:
            logger.warning("No JWKS URL found, skipping signature verification (DEV MODE ONLY)")
            return jwt.decode(token, options={"verify_signature": False})

        raise HTTPException(status_code=401, detail="Unable to verify token - no JWKS URL or secret key")
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.error(f"Invalid token: {str(e)}")
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")


def get_or_create_user(
    db: Session,
    auth_subject: str,
    email: str,
    name: Optional[str] = None,
    auth_provider: str = "clerk"
) -> User:
    """Get existing user or create new one from auth provider."""
    user = (
        db.execute(
            select(User).where(
                User.auth_provider == auth_provider,
                User.auth_subject == auth_subject
            )
        )
        .scalars()
        .one_or_none()
    )

    if user:
        changed = False
        if email and user.email != email:
            user.email = email
            changed = True
        if name and user.name != name:
            user.name = name
            changed = True
        if changed:
            db.commit()
            db.refresh(user)
        return user

    # A coach invited by email claims the placeholder account on first sign-in
    invited = (
        db.execute(select(User).where(User.auth_provider == "invite", User.email == email))
        .scalars()
        .first()
    )
    if invited:
        invited.auth_provider = auth_provider
        invited.auth_subject = auth_subject
        if name:
            invited.name = name
        db.commit()
        db.refresh(invited)
        logger.info(f"User {invited.id} claimed invite for {email}")
        return invited

    user = User(
        auth_provider=auth_provider,
        auth_subject=auth_subject,
        email=email,
        name=name
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} for {auth_provider} subject {auth_subject}")
    return user


def _claims_email(payload: dict) -> str:
    addresses = payload.get("email_addresses") or [{}]
    return (
        payload.get("email")
        or payload.get("primary_email_address")
        or addresses[0].get("email_address")
        or ""
    )


def _claims_name(payload: dict) -> Optional[str]:
    full = f"{payload.get('first_name', '')} {payload.get('last_name', '')}".strip()
    return payload.get("name") or full or None


def get_user_from_token(db: Session, authorization: Optional[str]) -> User:
    """Extract the user from an ``Authorization: Bearer`` header."""
    if not authorization:
        logger.warning("Missing authorization header")
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        logger.warning("Invalid authorization header format")
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    payload = verify_clerk_token(authorization[len("Bearer "):])

    auth_subject = payload.get("sub")
    if not auth_subject:
        logger.warning(f"Token missing subject. Payload keys: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Token missing subject")

    email = _claims_email(payload)
    if not email:
        logger.warning(f"Token for {auth_subject} has no email claim")

    return get_or_create_user(
        db, auth_subject, email or f"user_{auth_subject}@clerk.local", _claims_name(payload)
    )
