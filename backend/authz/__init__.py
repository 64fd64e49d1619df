"""Role hierarchy permission engine.

Consumes a flat batch of role definitions and answers effective-permission queries and
role-assignment checks. Persistence, transport and presentation stay with the caller.
"""
from dotenv import load_dotenv

load_dotenv()

from .config.settings import Settings, TieBreak, load_settings  # noqa: E402
from .errors import (  # noqa: E402
    AssignmentLimitExceeded, AuthzError, CannotOverridePermission, CircularDependency, DepartmentMismatch,
    DuplicatePermission, DuplicateRole, HasChildRoles, HierarchyError, HierarchyValidationFailed, InconsistentChildRoles,
    InvalidHierarchy, LocationMismatch, PermissionDenied, RoleInactive, RoleInUse, RoleNotFound,
    SystemRoleProtected, ValidationRuleFailed, error_payload,
)
from .models.context import UserContext  # noqa: E402
from .models.role import PermissionEntry, RoleDefinition, RoleLevel, load_roles  # noqa: E402
from .models.rules import (  # noqa: E402
    CustomRule, DepartmentMatch, LocationMatch, SecurityClearance, SeniorityThreshold, SkillRequirement,
    parse_rule,
)
from .services.hierarchy import (  # noqa: E402
    RoleSet, get_ancestors, get_descendants, get_role_hierarchy, validate_all, validate_hierarchy,
)
from .services.permissions import (  # noqa: E402
    PermissionCalculator, PermissionDiff, calculate_effective_permissions, get_permission_diff, has_permission,
)
from .services.assignment import AssignmentValidator, get_assignable_roles, validate_role_assignment  # noqa: E402
from .services.registry import RoleRegistry  # noqa: E402

__all__ = [
    'Settings', 'TieBreak', 'load_settings',
    'AuthzError', 'HierarchyError', 'CircularDependency', 'InvalidHierarchy', 'InconsistentChildRoles',
    'CannotOverridePermission', 'DuplicatePermission', 'RoleNotFound', 'RoleInactive', 'DepartmentMismatch',
    'LocationMismatch', 'ValidationRuleFailed', 'AssignmentLimitExceeded', 'PermissionDenied', 'HierarchyValidationFailed',
    'DuplicateRole', 'HasChildRoles', 'RoleInUse', 'SystemRoleProtected', 'error_payload',
    'UserContext', 'PermissionEntry', 'RoleDefinition', 'RoleLevel', 'load_roles',
    'SkillRequirement', 'SeniorityThreshold', 'DepartmentMatch', 'LocationMatch', 'SecurityClearance',
    'CustomRule', 'parse_rule',
    'RoleSet', 'get_ancestors', 'get_descendants', 'get_role_hierarchy', 'validate_all', 'validate_hierarchy',
    'PermissionCalculator', 'PermissionDiff', 'calculate_effective_permissions', 'get_permission_diff',
    'has_permission',
    'AssignmentValidator', 'get_assignable_roles', 'validate_role_assignment',
    'RoleRegistry',
]
