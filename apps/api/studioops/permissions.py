from studioops.deps import AuthContext
from studioops.models import OrgRole


def can_manage_members(auth: AuthContext) -> bool:
    return auth.role in (OrgRole.ADMIN, OrgRole.COACH, OrgRole.STAFF)


def can_manage_coaches(auth: AuthContext) -> bool:
    return auth.role == OrgRole.ADMIN


def can_schedule_sessions(auth: AuthContext) -> bool:
    return auth.role in (OrgRole.ADMIN, OrgRole.COACH)


def can_record_payments(auth: AuthContext) -> bool:
    return auth.role in (OrgRole.ADMIN, OrgRole.STAFF)
