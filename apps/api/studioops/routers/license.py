"""License endpoint used by the web client to gate UI and pre-check limits."""
import logging
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from studioops.deps import AuthContext
from studioops.deps import get_caller
from studioops.deps import get_db
from studioops.exceptions import InvalidLicenseArgument
from studioops.exceptions import LicenseError
from studioops.exceptions import LicenseReadError
from studioops.exceptions import OrganizationNotFound
from studioops.license import check_feature_access
from studioops.license import check_limit
from studioops.license import current_tier_summary
from studioops.license import resolve_license_context
from studioops.tiers import Feature
from studioops.tiers import Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/license", tags=["license"])

DENIED_LIMIT = {"allowed": False, "current": 0, "limit": 0}
DENIED_FEATURE = {"hasAccess": False}
NO_TIER = {"tier": None, "status": "none", "features": {}, "limitations": {}}

_SAFE_PAYLOADS = {
    "checkFeature": DENIED_FEATURE,
    "checkLimit": DENIED_LIMIT,
    "currentTier": NO_TIER,
}


def _status_for(error: LicenseError) -> int:
    if isinstance(error, OrganizationNotFound):
        return 404
    if isinstance(error, InvalidLicenseArgument):
        return 400
    if isinstance(error, LicenseReadError):
        return 503
    return 500


def _denial(error: LicenseError, safe_payload: dict) -> JSONResponse:
    content = {**safe_payload, "error": error.code, "message": str(error)}
    if isinstance(error, LicenseReadError):
        content["retryable"] = True
    return JSONResponse(status_code=_status_for(error), content=content)


def read_failure_handler(request: Request, exc: Exception) -> JSONResponse:
    """503 for data-store outages anywhere in the request, dependencies included.

    License queries get the denial payload of the action they asked for.
    """
    logger.error(f"Data store unavailable for {request.url.path}: {str(exc)}")
    safe_payload = {}
    if request.url.path.rstrip("/") == router.prefix:
        safe_payload = _SAFE_PAYLOADS.get(request.query_params.get("action"), {})
    return JSONResponse(
        status_code=503,
        content={
            **safe_payload,
            "error": LicenseReadError.code,
            "message": "License information is temporarily unavailable",
            "retryable": True,
        },
    )


@router.get("")
def license_action(
    action: Optional[str] = Query(None),
    feature: Optional[str] = Query(None),
    limit_type: Optional[str] = Query(None, alias="limitType"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_caller),
):
    """Dispatch ``checkFeature``, ``checkLimit`` and ``currentTier`` actions.

    Every failure is answered with a non-2xx status and a denial payload, so a
    client that only reads the body still sees "no access".
    """
    if action == "checkFeature":
        if not feature:
            return JSONResponse(
                status_code=400, content={**DENIED_FEATURE, "error": "Feature parameter required"}
            )
        try:
            parsed = Feature.parse(feature)
            context = resolve_license_context(db, auth.org_id)
        except LicenseError as e:
            logger.warning(f"checkFeature {feature!r} failed for user {auth.user_id}: {str(e)}")
            return _denial(e, DENIED_FEATURE)
        return {"hasAccess": check_feature_access(context, parsed)}

    if action == "checkLimit":
        if not limit_type:
            return JSONResponse(
                status_code=400, content={**DENIED_LIMIT, "error": "Limit type parameter required"}
            )
        try:
            resource = Resource.parse(limit_type)
            context = resolve_license_context(db, auth.org_id)
            result = check_limit(db, context, resource)
        except LicenseError as e:
            logger.warning(f"checkLimit {limit_type!r} failed for user {auth.user_id}: {str(e)}")
            return _denial(e, DENIED_LIMIT)
        return result.to_wire()

    if action == "currentTier":
        try:
            context = resolve_license_context(db, auth.org_id)
        except LicenseError as e:
            logger.warning(f"currentTier failed for user {auth.user_id}: {str(e)}")
            return _denial(e, NO_TIER)
        return current_tier_summary(context)

    return JSONResponse(status_code=400, content={"error": "Invalid action"})
