# tests/test_authz.py
import pytest

from deps.authz import PERMISSIONS, allowed_roles, has_perm, require_perm
from models import Role, UserProfile
from routers import assembly, auth, bins, locations, qc, users

ROUTERS = (assembly.router, auth.router, bins.router, locations.router, qc.router, users.router)


def _route_perm_codes():
    codes = set()
    for router in ROUTERS:
        for route in router.routes:
            dependant = getattr(route, "dependant", None)
            if dependant is None:
                continue
            stack = list(dependant.dependencies)
            while stack:
                d = stack.pop()
                code = getattr(d.call, "perm_code", None)
                if code:
                    codes.add(code)
                stack.extend(d.dependencies)
    return codes


def test_every_route_permission_is_declared():
    used = _route_perm_codes()
    assert used, "no route declares a permission"
    assert used <= set(PERMISSIONS)


def test_every_declared_permission_is_used_and_names_known_roles():
    assert set(PERMISSIONS) == _route_perm_codes()
    for code, roles in PERMISSIONS.items():
        assert roles, code
        assert all(isinstance(r, Role) for r in roles), code


def test_unknown_permission_code_fails_fast():
    with pytest.raises(LookupError):
        allowed_roles("journey.teleport")
    with pytest.raises(LookupError):
        require_perm("journey.teleport")


@pytest.mark.parametrize(
    "role, code, expected",
    [
        (Role.TECHNICIAN, "journey.start", True),
        (Role.SUPERVISOR, "journey.start", False),
        (Role.WAREHOUSE_STAFF, "journey.inward", True),
        (Role.TECHNICIAN, "journey.inward", False),
        (Role.SUPERVISOR, "qc.review", True),
        (Role.TECHNICIAN, "qc.review", False),
        (Role.SUPERVISOR, "bins.reconcile", False),
        (Role.ADMIN, "bins.reconcile", True),
        (Role.TECHNICIAN, "sales.can_invoice", True),
    ],
)
def test_role_matrix(role, code, expected):
    assert has_perm(UserProfile(role=role.value), code) is expected


def test_unknown_role_has_no_permissions():
    assert has_perm(UserProfile(role="intern"), "journey.scan") is False
