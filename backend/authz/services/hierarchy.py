"""Graph queries over a role batch: ancestry, descendants, structural validation.

All traversals are total: they terminate on cyclic or dangling input and leave reporting of
those defects to `validate_hierarchy`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from authz.config.settings import load_settings
from authz.errors import (
    CannotOverridePermission, CircularDependency, DuplicatePermission, HierarchyError, InconsistentChildRoles,
    InvalidHierarchy,
)
from authz.models.role import RoleDefinition
from authz.utils.snapshot import role_fingerprint, snapshot_version

logger = logging.getLogger(__name__)


def build_children_index(roles: Iterable[RoleDefinition]) -> Dict[str, List[str]]:
    """parent id -> sorted child ids, derived from the inherit_from edges."""
    index: Dict[str, List[str]] = {}
    for role in roles:
        if role.inherit_from is not None:
            index.setdefault(role.inherit_from, []).append(role.id)
    for child_ids in index.values():
        child_ids.sort()
    return index


class RoleSet:
    """View over one batch of role definitions.

    Duplicate ids keep the first occurrence. Member roles may be edited in place: every access to
    `children` or `version` compares the members' defining fields with the last seen values and
    rebuilds the children index and version when they differ. Reuse one RoleSet across queries;
    wrapping a plain list per call re-serializes the whole batch each time.
    """

    def __init__(self, roles: Iterable[RoleDefinition]):
        self.roles: List[RoleDefinition] = list(roles)
        self.by_id: Dict[str, RoleDefinition] = {}
        for role in self.roles:
            self.by_id.setdefault(role.id, role)
        self._fingerprint: Optional[tuple] = None
        self._children: Dict[str, List[str]] = {}
        self._version: Optional[str] = None

    @classmethod
    def coerce(cls, roles: Union['RoleSet', Iterable[RoleDefinition]]) -> 'RoleSet':
        return roles if isinstance(roles, cls) else cls(roles)

    def _refresh(self) -> None:
        fingerprint = tuple(role_fingerprint(r) for r in self.by_id.values())
        if fingerprint == self._fingerprint:
            return
        if self._fingerprint is not None:
            logger.debug('Role set edited in place; rebuilding index and version')
        self._fingerprint = fingerprint
        self._children = build_children_index(self.by_id.values())
        self._version = None

    @property
    def children(self) -> Dict[str, List[str]]:
        """parent id -> child ids, current as of this access."""
        self._refresh()
        return self._children

    @property
    def version(self) -> str:
        self._refresh()
        if self._version is None:
            self._version = snapshot_version(self.by_id.values())
        return self._version

    def get(self, role_id: Optional[str]) -> Optional[RoleDefinition]:
        if role_id is None:
            return None
        return self.by_id.get(role_id)

    def children_of(self, role_id: str) -> List[RoleDefinition]:
        return [self.by_id[c] for c in self.children.get(role_id, [])]

    def __contains__(self, role_id) -> bool:
        return role_id in self.by_id

    def __iter__(self):
        return iter(self.by_id.values())

    def __len__(self) -> int:
        return len(self.by_id)


RoleBatch = Union[RoleSet, Iterable[RoleDefinition]]


def get_ancestors(role: RoleDefinition, all_roles: RoleBatch) -> List[RoleDefinition]:
    """Ancestors nearest first, ending at a root, a missing parent, or where a cycle closes."""
    role_set = RoleSet.coerce(all_roles)
    ancestors: List[RoleDefinition] = []
    seen = {role.id}
    current = role
    while current.inherit_from is not None:
        parent_id = current.inherit_from
        if parent_id in seen:
            logger.warning('Cycle reached walking ancestors of %s at %s', role.id, parent_id)
            break
        parent = role_set.get(parent_id)
        if parent is None:
            logger.warning('Role %s inherits from missing role %s', current.id, parent_id)
            break
        seen.add(parent_id)
        ancestors.append(parent)
        current = parent
    return ancestors


def get_descendants(role: RoleDefinition, all_roles: RoleBatch) -> List[RoleDefinition]:
    """All transitive children in breadth-first order, each role at most once."""
    role_set = RoleSet.coerce(all_roles)
    children = role_set.children
    descendants: List[RoleDefinition] = []
    seen = {role.id}
    queue = list(children.get(role.id, []))
    while queue:
        child_id = queue.pop(0)
        if child_id in seen:
            continue
        seen.add(child_id)
        child = role_set.by_id[child_id]
        descendants.append(child)
        queue.extend(children.get(child_id, []))
    return descendants


def find_cycle(role: RoleDefinition, all_roles: RoleBatch) -> Optional[List[str]]:
    """Return the id path role -> ... -> role if role is reachable from itself, else None."""
    role_set = RoleSet.coerce(all_roles)
    path = [role.id]
    seen = {role.id}
    current = role
    while current.inherit_from is not None:
        parent_id = current.inherit_from
        if parent_id == role.id:
            return path + [role.id]
        if parent_id in seen:
            # cycle upstream that does not pass through role
            return None
        parent = role_set.get(parent_id)
        if parent is None:
            return None
        seen.add(parent_id)
        path.append(parent_id)
        current = parent
    return None


def validate_hierarchy(
    role: RoleDefinition,
    all_roles: RoleBatch,
    check_child_roles: Optional[bool] = None,
) -> List[HierarchyError]:
    """Collect every structural violation for role; never raises for malformed graphs.

    check_child_roles defaults to the AUTHZ_CHECK_CHILD_ROLES setting.
    """
    role_set = RoleSet.coerce(all_roles)
    if check_child_roles is None:
        check_child_roles = load_settings().check_child_roles
    errors: List[HierarchyError] = []

    declared = [p.resource for p in role.permissions]
    for resource in sorted({r for r in declared if declared.count(r) > 1}):
        errors.append(DuplicatePermission(role.id, resource))

    cycle = find_cycle(role, role_set)
    if cycle is not None:
        errors.append(CircularDependency(role.id, cycle))

    if role.inherit_from is not None:
        parent = role_set.get(role.inherit_from)
        if parent is None:
            errors.append(InvalidHierarchy(role.id, role.inherit_from, InvalidHierarchy.ORPHANED_PARENT))
        elif role.role_level < parent.role_level:
            errors.append(InvalidHierarchy(role.id, parent.id, InvalidHierarchy.LEVEL))

    own_resources = {p.resource for p in role.permissions}
    for ancestor in get_ancestors(role, role_set):
        for entry in ancestor.permissions:
            if not entry.can_override and entry.resource in own_resources:
                errors.append(CannotOverridePermission(role.id, entry.resource, ancestor.id))

    if check_child_roles and role.child_roles is not None:
        derived = set(role_set.children.get(role.id, []))
        missing = derived - role.child_roles
        unexpected = role.child_roles - derived
        if missing or unexpected:
            errors.append(InconsistentChildRoles(role.id, missing, unexpected))

    return errors


def validate_all(
    all_roles: RoleBatch,
    check_child_roles: Optional[bool] = None,
) -> Dict[str, List[HierarchyError]]:
    """role id -> violations, for roles that have any."""
    role_set = RoleSet.coerce(all_roles)
    if check_child_roles is None:
        check_child_roles = load_settings().check_child_roles
    report: Dict[str, List[HierarchyError]] = {}
    for role in role_set:
        errors = validate_hierarchy(role, role_set, check_child_roles)
        if errors:
            report[role.id] = errors
    return report


def get_hierarchy_depth(role_id: str, all_roles: RoleBatch) -> int:
    role_set = RoleSet.coerce(all_roles)
    role = role_set.get(role_id)
    if role is None:
        return 0
    return len(get_ancestors(role, role_set))


def get_root_roles(all_roles: RoleBatch) -> List[RoleDefinition]:
    """Roles with no parent, or whose parent is missing from the batch."""
    role_set = RoleSet.coerce(all_roles)
    return [r for r in role_set if r.inherit_from is None or r.inherit_from not in role_set]


@dataclass
class RoleHierarchyNode:
    role: RoleDefinition
    depth: int
    children: List['RoleHierarchyNode'] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


def get_role_hierarchy(all_roles: RoleBatch) -> List[RoleHierarchyNode]:
    """Forest of hierarchy nodes from the root roles; children ordered by id."""
    role_set = RoleSet.coerce(all_roles)
    seen = set()

    def build(role: RoleDefinition, depth: int) -> RoleHierarchyNode:
        seen.add(role.id)
        node = RoleHierarchyNode(role=role, depth=depth)
        for child in role_set.children_of(role.id):
            if child.id not in seen:
                node.children.append(build(child, depth + 1))
        return node

    return [build(root, 0) for root in sorted(get_root_roles(role_set), key=lambda r: r.id)]


def sync_child_roles(roles: Iterable[RoleDefinition]) -> List[RoleDefinition]:
    """Copies of roles whose child_roles mirror the derived children index."""
    roles = list(roles)
    index = build_children_index(roles)
    return [r.copy(child_roles=frozenset(index.get(r.id, []))) for r in roles]


__all__ = [
    'RoleSet', 'RoleBatch', 'RoleHierarchyNode', 'build_children_index', 'get_ancestors', 'get_descendants',
    'find_cycle', 'validate_hierarchy', 'validate_all', 'get_hierarchy_depth', 'get_root_roles',
    'get_role_hierarchy', 'sync_child_roles',
]
