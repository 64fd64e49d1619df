"""In-memory role registry: one mutable role batch with validated edits.

Every create/update/delete produces a new snapshot (and version), so memoized effective
permissions of the previous snapshot are never served again. After each change the registry
recomputes `effective_permissions` of the changed role and its descendants, keeps each role's
`child_roles` mirror in sync with the parent edges, and emits an audit event.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from authz.config.settings import Settings, load_settings
from authz.decorators.audit import audit_log
from authz.errors import (
    DuplicateRole, HasChildRoles, HierarchyValidationFailed, RoleInUse, RoleNotFound, SystemRoleProtected,
)
from authz.models.context import UserContext
from authz.models.role import RoleDefinition
from authz.services.assignment import AssignmentCounter, AssignmentValidator, get_assignable_roles
from authz.services.audit import AuditSink
from authz.services.hierarchy import (
    RoleHierarchyNode, RoleSet, build_children_index, get_descendants, get_role_hierarchy, validate_all,
    validate_hierarchy,
)
from authz.services.permissions import EffectivePermissions, PermissionCalculator, PermissionDiff

logger = logging.getLogger(__name__)


class RoleRegistry:

    def __init__(
        self,
        roles: Iterable[RoleDefinition] = (),
        settings: Optional[Settings] = None,
        assignment_counter: Optional[AssignmentCounter] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.settings = settings or load_settings()
        self.calculator = PermissionCalculator(self.settings)
        self.validator = AssignmentValidator(self.settings, assignment_counter)
        self.audit_sink = audit_sink
        self._roles: Dict[str, RoleDefinition] = {}
        self._snapshot: Optional[RoleSet] = None
        self.load(roles)

    # --- Snapshot ---
    def snapshot(self) -> RoleSet:
        if self._snapshot is None:
            self._snapshot = RoleSet(self._roles.values())
        return self._snapshot

    @property
    def version(self) -> str:
        return self.snapshot().version

    @property
    def roles(self) -> List[RoleDefinition]:
        return list(self._roles.values())

    @property
    def assignment_counter(self) -> AssignmentCounter:
        return self.validator.assignment_counter

    def get(self, role_id: str) -> RoleDefinition:
        role = self._roles.get(role_id)
        if role is None:
            raise RoleNotFound(role_id)
        return role

    def __contains__(self, role_id) -> bool:
        return role_id in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    def _changed(self) -> None:
        index = build_children_index(self._roles.values())
        for role in self._roles.values():
            role.child_roles = frozenset(index.get(role.id, []))
        self._snapshot = None

    def _recalculate(self, role_ids: Iterable[str]) -> None:
        snapshot = self.snapshot()
        targets = []
        for role_id in role_ids:
            role = snapshot.get(role_id)
            if role is None:
                continue
            targets.append(role)
            targets.extend(get_descendants(role, snapshot))
        seen = set()
        for role in targets:
            if role.id not in seen:
                seen.add(role.id)
                self.calculator.calculate_effective_permissions(role, snapshot)
        logger.debug('Recalculated effective permissions for %d roles', len(seen))

    def load(self, roles: Iterable[RoleDefinition]) -> None:
        """Replace the whole batch (e.g. after a fresh fetch) and recompute every role."""
        self._roles = {}
        for role in roles:
            if role.id in self._roles:
                raise DuplicateRole(role.id)
            self._roles[role.id] = role
        self._changed()
        self.calculator.calculate_all(self.snapshot())
        problems = validate_all(self.snapshot(), check_child_roles=False)
        if problems:
            logger.warning('Loaded role batch has structural problems in %d roles: %s', len(problems), sorted(problems))

    def _validated(self, role: RoleDefinition, candidate: Iterable[RoleDefinition]) -> None:
        """Validate role and every role below it in the would-be set.

        Descendants include roles that already named role.id as parent before it existed.
        """
        candidate_set = RoleSet(candidate)
        errors = []
        for target in [role] + get_descendants(role, candidate_set):
            errors.extend(validate_hierarchy(target, candidate_set, check_child_roles=False))
        if errors:
            raise HierarchyValidationFailed(errors)

    # --- Mutations ---
    @audit_log('ROLE.CREATE', entity_id_attr='id', meta_builder=lambda rv, a, kw: {'name': rv.name})
    def create_role(self, role: RoleDefinition) -> RoleDefinition:
        if role.id in self._roles:
            raise DuplicateRole(role.id)
        self._validated(role, self.roles + [role])
        self._roles[role.id] = role
        self._changed()
        self._recalculate([role.id])
        logger.info('Created role %s', role.id)
        return role

    @audit_log(
        'ROLE.UPDATE',
        entity_id_attr='id',
        meta_builder=lambda rv, a, kw: {'version': rv.version, 'inherit_from': rv.inherit_from},
    )
    def update_role(self, role: RoleDefinition) -> RoleDefinition:
        old = self.get(role.id)
        self._validated(role, [role if r.id == role.id else r for r in self.roles])
        role.version = old.version + 1
        self._roles[role.id] = role
        self._changed()
        self._recalculate([role.id])
        logger.info('Updated role %s to version %d', role.id, role.version)
        return role

    @audit_log('ROLE.DELETE', entity_id_arg='role_id', meta_builder=lambda rv, a, kw: {'deleted': rv})
    def delete_role(self, role_id: str, cascade: bool = False, reparent: bool = True) -> List[str]:
        """Delete role_id; returns the deleted ids.

        With cascade all descendants go too. Otherwise children move to the deleted role's parent
        (or become roots), unless reparent is False, in which case HasChildRoles is raised.
        """
        role = self.get(role_id)
        if role.is_system_role:
            raise SystemRoleProtected(role_id)
        snapshot = self.snapshot()
        children = snapshot.children_of(role_id)
        if children and not cascade and not reparent:
            raise HasChildRoles(role_id, [c.id for c in children])
        doomed = [role] + (get_descendants(role, snapshot) if cascade else [])
        for target in doomed:
            if target is not role and target.is_system_role:
                raise SystemRoleProtected(target.id)
            count = self.assignment_counter(target.id)
            if count > 0:
                raise RoleInUse(target.id, count)

        moved = []
        if not cascade:
            for child in children:
                child.inherit_from = role.inherit_from
                child.version += 1
                moved.append(child.id)
        deleted = [t.id for t in doomed]
        for target_id in deleted:
            del self._roles[target_id]
        self._changed()
        self._recalculate(moved)
        logger.info('Deleted roles %s (reparented %s)', deleted, moved)
        return deleted

    # --- Queries ---
    def effective_permissions(self, role_id: str) -> EffectivePermissions:
        return self.calculator.effective_permissions(role_id, self.snapshot())

    def has_permission(self, role_id: str, resource: str, action: str) -> bool:
        return self.calculator.has_permission(role_id, resource, action, self.snapshot())

    def get_permission_diff(self, from_role_id: str, to_role_id: str) -> PermissionDiff:
        return self.calculator.get_permission_diff(from_role_id, to_role_id, self.snapshot())

    def validate_role_assignment(
        self,
        role_id: str,
        user_id: str,
        user_context: UserContext,
        current_assignments: Optional[int] = None,
    ) -> bool:
        return self.validator.validate_role_assignment(
            role_id, user_id, user_context, self.snapshot(), current_assignments
        )

    def can_assign(self, role_id: str, user_id: str, user_context: UserContext) -> bool:
        return self.validator.can_assign(role_id, user_id, user_context, self.snapshot())

    def get_assignable_roles(self, current_role_id: str) -> List[RoleDefinition]:
        return get_assignable_roles(current_role_id, self.snapshot())

    def get_role_hierarchy(self) -> List[RoleHierarchyNode]:
        return get_role_hierarchy(self.snapshot())

    def validate(self):
        return validate_all(self.snapshot(), self.settings.check_child_roles)


__all__ = ['RoleRegistry']
