"""Error taxonomy for role hierarchy resolution and role assignment.

Every error is a werkzeug HTTPException so an application layer can let it propagate to its
unified error handler unchanged. Structural errors (HierarchyError subclasses) are collected and
returned as lists by the validation entry points; the remaining errors are raised.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Sequence

from werkzeug.exceptions import HTTPException


class AuthzError(HTTPException):
    """Base class; `kind` is the stable, transport independent error identifier."""
    code = 400
    kind = 'authzError'

    def __init__(self, description: Optional[str] = None):
        super().__init__(description=description)

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.kind}: {self.description}>'


# --- Structural (collected) ---
class HierarchyError(AuthzError):
    code = 409
    kind = 'hierarchyError'


class CircularDependency(HierarchyError):
    kind = 'circularDependency'

    def __init__(self, role_id: str, cycle: Sequence[str] = ()):
        self.role_id = role_id
        self.cycle = tuple(cycle)
        path = ' -> '.join(self.cycle) if self.cycle else role_id
        super().__init__(f"Role '{role_id}' inherits from itself: {path}")


class InvalidHierarchy(HierarchyError):
    kind = 'invalidHierarchy'
    LEVEL = 'level'
    ORPHANED_PARENT = 'orphaned_parent'

    def __init__(self, child_id: str, parent_id: str, reason: str = LEVEL):
        self.child_id = child_id
        self.parent_id = parent_id
        self.reason = reason
        if reason == self.ORPHANED_PARENT:
            detail = f"Role '{child_id}' inherits from unknown role '{parent_id}'"
        else:
            detail = f"Role '{child_id}' is more privileged than its parent '{parent_id}'"
        super().__init__(detail)


class InconsistentChildRoles(HierarchyError):
    kind = 'inconsistentChildRoles'

    def __init__(self, role_id: str, missing: Iterable[str] = (), unexpected: Iterable[str] = ()):
        self.role_id = role_id
        self.missing = tuple(sorted(missing))
        self.unexpected = tuple(sorted(unexpected))
        super().__init__(
            f"Role '{role_id}' child list out of sync (missing: {list(self.missing)}, "
            f"unexpected: {list(self.unexpected)})"
        )


class CannotOverridePermission(HierarchyError):
    kind = 'cannotOverridePermission'

    def __init__(self, role_id: str, resource: str, parent_id: str):
        self.role_id = role_id
        self.resource = resource
        self.parent_id = parent_id
        super().__init__(f"Role '{role_id}' cannot override '{resource}' locked by ancestor '{parent_id}'")


class DuplicatePermission(HierarchyError):
    kind = 'duplicatePermission'

    def __init__(self, role_id: str, resource: str):
        self.role_id = role_id
        self.resource = resource
        super().__init__(f"Role '{role_id}' declares '{resource}' more than once")


# --- Lookup ---
class RoleNotFound(AuthzError):
    code = 404
    kind = 'roleNotFound'

    def __init__(self, role_id: str, description: Optional[str] = None):
        self.role_id = role_id
        super().__init__(description or f"Role with ID '{role_id}' not found")


class RoleInactive(RoleNotFound):
    def __init__(self, role_id: str):
        super().__init__(role_id, f"Role '{role_id}' is inactive and cannot be assigned")


# --- Assignment ---
class AssignmentError(AuthzError):
    code = 403
    kind = 'assignmentError'


class DepartmentMismatch(AssignmentError):
    kind = 'departmentMismatch'

    def __init__(self, role_id: str, department: str, allowed: Iterable[str]):
        self.role_id = role_id
        self.department = department
        self.allowed = tuple(sorted(allowed))
        super().__init__(
            f"Role '{role_id}' not available for department '{department}'. Allowed: {', '.join(self.allowed)}"
        )


class LocationMismatch(AssignmentError):
    kind = 'locationMismatch'

    def __init__(self, role_id: str, location: str, allowed: Iterable[str]):
        self.role_id = role_id
        self.location = location
        self.allowed = tuple(sorted(allowed))
        super().__init__(
            f"Role '{role_id}' not available for location '{location}'. Allowed: {', '.join(self.allowed)}"
        )


class ValidationRuleFailed(AssignmentError):
    kind = 'validationRuleFailed'

    def __init__(self, role_id: str, rule: str, message: str):
        self.role_id = role_id
        self.rule = rule
        self.message = message
        super().__init__(f"Role '{role_id}' validation failed for rule '{rule}': {message}")


class AssignmentLimitExceeded(AssignmentError):
    code = 409
    kind = 'assignmentLimitExceeded'

    def __init__(self, role_id: str, current: int, maximum: int):
        self.role_id = role_id
        self.current = current
        self.maximum = maximum
        super().__init__(f"Role '{role_id}' has reached maximum assignments ({current}/{maximum})")


class PermissionDenied(AuthzError):
    code = 403
    kind = 'permissionDenied'

    def __init__(self, role_id: str, resource: str, action: str):
        self.role_id = role_id
        self.resource = resource
        self.action = action
        super().__init__(f"Role '{role_id}' lacks '{action}' on '{resource}'")


# --- Registry mutation ---
class HierarchyValidationFailed(AuthzError):
    code = 400
    kind = 'validationFailed'

    def __init__(self, errors: Sequence[HierarchyError]):
        self.errors = list(errors)
        kinds = ', '.join(sorted({e.kind for e in self.errors}))
        super().__init__(f'Role validation failed: {len(self.errors)} errors ({kinds})')


class DuplicateRole(AuthzError):
    code = 409
    kind = 'duplicateRole'

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"Role '{role_id}' already exists")


class HasChildRoles(AuthzError):
    code = 409
    kind = 'hasChildRoles'

    def __init__(self, role_id: str, child_ids: Iterable[str]):
        self.role_id = role_id
        self.child_ids = tuple(sorted(child_ids))
        super().__init__(f"Cannot delete role '{role_id}' - has {len(self.child_ids)} child roles")


class RoleInUse(AuthzError):
    code = 409
    kind = 'roleInUse'

    def __init__(self, role_id: str, user_count: int):
        self.role_id = role_id
        self.user_count = user_count
        super().__init__(f"Cannot delete role '{role_id}' - assigned to {user_count} users")


class SystemRoleProtected(AuthzError):
    code = 403
    kind = 'systemRole'

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"Role '{role_id}' is a system role and cannot be deleted")


def error_payload(exc: HTTPException) -> Dict[str, Any]:
    """Standardized JSON error shape used by the consuming application's error handler."""
    return {
        'error': {
            'status': exc.code,
            'title': exc.name,
            'detail': exc.description,
            'kind': getattr(exc, 'kind', None),
        }
    }


__all__ = [
    'AuthzError', 'HierarchyError', 'CircularDependency', 'InvalidHierarchy', 'InconsistentChildRoles',
    'CannotOverridePermission', 'DuplicatePermission', 'RoleNotFound', 'RoleInactive', 'AssignmentError',
    'DepartmentMismatch', 'LocationMismatch', 'ValidationRuleFailed', 'AssignmentLimitExceeded', 'PermissionDenied',
    'HierarchyValidationFailed', 'DuplicateRole', 'HasChildRoles', 'RoleInUse', 'SystemRoleProtected',
    'error_payload',
]
