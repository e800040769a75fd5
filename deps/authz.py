# deps/authz.py
from fastapi import Depends, HTTPException, status

from deps.auth import get_current_profile
from models import Role, UserProfile

_STAFF = frozenset({Role.WAREHOUSE_STAFF, Role.ADMIN, Role.SUPERVISOR})
_MANAGERS = frozenset({Role.SUPERVISOR, Role.ADMIN})
_FLOOR = frozenset({Role.TECHNICIAN, Role.SUPERVISOR, Role.ADMIN})
_EVERYONE = frozenset(Role)

# operation code -> roles allowed to call it
PERMISSIONS: dict[str, frozenset[Role]] = {
    "journey.inward": _STAFF,
    "journey.assign": _MANAGERS,
    "journey.set_priority": _MANAGERS,
    "journey.resume": _MANAGERS,
    "journey.scan": _EVERYONE,
    "journey.start": frozenset({Role.TECHNICIAN}),
    "journey.checklist": frozenset({Role.TECHNICIAN}),
    "journey.complete": frozenset({Role.TECHNICIAN}),
    "journey.flag_issue": _FLOOR,
    "journey.queue": frozenset({Role.TECHNICIAN}),
    "qc.review": _MANAGERS,
    "reports.view": _MANAGERS,
    "sales.can_invoice": _EVERYONE,
    "locations.view": _STAFF,
    "locations.manage": _MANAGERS,
    "bins.view": _STAFF,
    "bins.manage": _MANAGERS,
    "bins.move": _STAFF,
    "bins.reconcile": frozenset({Role.ADMIN}),
    "users.manage_technicians": _MANAGERS,
}


def allowed_roles(perm_code: str) -> frozenset[Role]:
    try:
        return PERMISSIONS[perm_code]
    except KeyError:
        raise LookupError(f"Unknown permission: {perm_code}") from None


def has_perm(profile: UserProfile, perm_code: str) -> bool:
    try:
        role = Role(profile.role)
    except ValueError:
        return False
    return role in allowed_roles(perm_code)


def require_perm(perm_code: str):
    roles = allowed_roles(perm_code)  # unknown codes fail at import time
    need = ", ".join(sorted(r.value for r in roles))

    def dep(profile: UserProfile = Depends(get_current_profile)) -> UserProfile:
        if not has_perm(profile, perm_code):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {need}",
            )
        return profile

    dep.perm_code = perm_code
    return dep
