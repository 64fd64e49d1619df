"""Role assignment gating.

Checks run in a fixed order and stop at the first failure:
role exists, role active, department scope, location scope (feature flag), active validation
rules in declaration order, assignment cap. The validator never mutates anything; the current
assignment count comes from the caller or from an injected counter.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from authz.config.settings import Settings, load_settings
from authz.errors import (
    AssignmentError, AssignmentLimitExceeded, DepartmentMismatch, LocationMismatch, RoleInactive, RoleNotFound,
    ValidationRuleFailed,
)
from authz.models.context import UserContext
from authz.models.role import RoleDefinition
from authz.services.hierarchy import RoleBatch, RoleSet

logger = logging.getLogger(__name__)

AssignmentCounter = Callable[[str], int]


def no_assignments(role_id: str) -> int:
    return 0


class AssignmentValidator:

    def __init__(self, settings: Optional[Settings] = None, assignment_counter: Optional[AssignmentCounter] = None):
        self.settings = settings or load_settings()
        self.assignment_counter = assignment_counter or no_assignments

    def _require_role(self, role_id: str, role_set: RoleSet) -> RoleDefinition:
        role = role_set.get(role_id)
        if role is None:
            raise RoleNotFound(role_id)
        if not role.is_active:
            raise RoleInactive(role_id)
        return role

    def _check_scope(self, role: RoleDefinition, context: UserContext) -> None:
        if role.department_scope and context.department not in role.department_scope:
            raise DepartmentMismatch(role.id, context.department, role.department_scope)
        if (
            self.settings.enforce_location_scope
            and role.location_scope
            and context.location not in role.location_scope
        ):
            raise LocationMismatch(role.id, context.location, role.location_scope)

    def _check_rules(self, role: RoleDefinition, context: UserContext) -> None:
        for rule in role.validation_rules:
            if not rule.is_active:
                continue
            if not rule.is_satisfied_by(context):
                raise ValidationRuleFailed(role.id, rule.condition, rule.error_message)

    def _check_limit(self, role: RoleDefinition, current_assignments: Optional[int]) -> None:
        if role.max_assignments is None:
            return
        current = current_assignments if current_assignments is not None else self.assignment_counter(role.id)
        if current >= role.max_assignments:
            raise AssignmentLimitExceeded(role.id, current, role.max_assignments)

    def validate_role_assignment(
        self,
        role_id: str,
        user_id: str,
        user_context: UserContext,
        all_roles: RoleBatch,
        current_assignments: Optional[int] = None,
    ) -> bool:
        """Return True if user_id may take role_id; raise the first failing check otherwise."""
        role_set = RoleSet.coerce(all_roles)
        role = self._require_role(role_id, role_set)
        self._check_scope(role, user_context)
        self._check_rules(role, user_context)
        self._check_limit(role, current_assignments)
        logger.debug('Assignment of %s to user %s passed validation', role_id, user_id)
        return True

    def can_assign(
        self,
        role_id: str,
        user_id: str,
        user_context: UserContext,
        all_roles: RoleBatch,
        current_assignments: Optional[int] = None,
    ) -> bool:
        try:
            return self.validate_role_assignment(role_id, user_id, user_context, all_roles, current_assignments)
        except (RoleNotFound, AssignmentError) as e:
            logger.debug('Assignment of %s to user %s rejected: %s', role_id, user_id, e.kind)
            return False


def get_assignable_roles(current_role_id: str, all_roles: RoleBatch):
    """Active, non-system roles no more privileged than the current role."""
    role_set = RoleSet.coerce(all_roles)
    current = role_set.get(current_role_id)
    if current is None:
        return []
    return [
        r for r in role_set
        if r.role_level >= current.role_level and r.is_active and not r.is_system_role
    ]


def validate_role_assignment(
    role_id: str,
    user_id: str,
    user_context: UserContext,
    all_roles: RoleBatch,
    current_assignments: int = 0,
) -> bool:
    return AssignmentValidator().validate_role_assignment(
        role_id, user_id, user_context, all_roles, current_assignments
    )


__all__ = [
    'AssignmentValidator', 'AssignmentCounter', 'no_assignments', 'get_assignable_roles', 'validate_role_assignment',
]
