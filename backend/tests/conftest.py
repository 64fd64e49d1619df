import os, sys, pytest
# Ensure backend directory is on path so 'authz' can be imported without installation
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from authz.constants.roles import build_preset_roles
from authz.models.context import UserContext
from authz.models.role import PermissionEntry, RoleDefinition, RoleLevel
from authz.services.permissions import reset_calculator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ('AUTHZ_TIE_BREAK', 'AUTHZ_CACHE_LIMIT', 'AUTHZ_ENFORCE_LOCATION_SCOPE', 'AUTHZ_CHECK_CHILD_ROLES'):
        monkeypatch.delenv(key, raising=False)
    reset_calculator()
    yield
    reset_calculator()


@pytest.fixture()
def preset_roles():
    """system-admin -> executive -> manager -> employee"""
    return build_preset_roles()


@pytest.fixture()
def roles_by_id(preset_roles):
    return {r.id: r for r in preset_roles}


@pytest.fixture()
def cyclic_roles():
    # A -> C -> B -> A
    return [
        RoleDefinition(id='A', name='Role A', inherit_from='C'),
        RoleDefinition(id='B', name='Role B', inherit_from='A'),
        RoleDefinition(id='C', name='Role C', inherit_from='B'),
    ]


@pytest.fixture()
def parent_child_docs():
    parent = RoleDefinition(
        id='parent', name='Parent Role', role_level=RoleLevel.MANAGEMENT,
        permissions=(PermissionEntry('docs', {'read'}, priority=50),),
    )
    child = RoleDefinition(
        id='child', name='Child Role', inherit_from='parent',
        permissions=(PermissionEntry('docs', {'read', 'write', 'delete'}, priority=80),),
    )
    return parent, child


@pytest.fixture()
def sales_user():
    return UserContext(
        user_id='user123', department='sales', location='headquarters', seniority_level=5,
        skills={'project-management', 'leadership'}, security_clearance='standard',
    )
