from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from authz.constants.permissions import WILDCARD
from authz.models.context import UserContext
from authz.models.rules import ValidationRule, parse_rule
from authz.utils.validation import first_present, validate_choice

PermissionKey = Tuple[str, FrozenSet[str]]


class RoleLevel(IntEnum):
    """Seniority of a role; lower value = more privileged."""
    SYSTEM = 0
    EXECUTIVE = 1
    MANAGEMENT = 2
    SUPERVISORY = 3
    STANDARD = 4
    RESTRICTED = 5

    @classmethod
    def parse(cls, raw) -> 'RoleLevel':
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, int):
            return cls(raw)
        name = validate_choice(str(raw).strip().upper(), cls.__members__, 'roleLevel')
        return cls[name]


def _as_frozenset(values) -> FrozenSet[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset((values,))
    return frozenset(values)


# --- Core Models ---
@dataclass(frozen=True)
class PermissionEntry:
    """Grant of `actions` on `resource`.

    `inherited` and `inherited_from` are set only on computed effective entries.
    An entry with `can_override=False` cannot be replaced by a descendant role's grant.
    """
    resource: str
    actions: FrozenSet[str] = frozenset()
    priority: int = 0
    conditions: Tuple[str, ...] = ()
    can_override: bool = True
    inherited: bool = False
    inherited_from: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'actions', _as_frozenset(self.actions))
        object.__setattr__(self, 'conditions', tuple(self.conditions or ()))

    @property
    def key(self) -> PermissionKey:
        """Identity used when comparing permission sets (tags and priority ignored)."""
        return (self.resource, self.actions)

    def grants(self, resource: str, action: str) -> bool:
        if self.resource != resource and self.resource != WILDCARD:
            return False
        return action in self.actions or WILDCARD in self.actions

    def tagged(self, inherited: bool, inherited_from: Optional[str] = None) -> 'PermissionEntry':
        return replace(self, inherited=inherited, inherited_from=inherited_from if inherited else None)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'resource': self.resource,
            'actions': sorted(self.actions),
            'priority': self.priority,
            'conditions': list(self.conditions),
            'canOverride': self.can_override,
        }
        if self.inherited:
            data['inherited'] = True
            data['inheritedFrom'] = self.inherited_from
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PermissionEntry':
        if isinstance(data, cls):
            return data
        resource = data.get('resource')
        if not resource:
            raise ValueError('permission resource required')
        return cls(
            resource=resource,
            actions=data.get('actions') or (),
            priority=int(data.get('priority') or 0),
            conditions=data.get('conditions') or (),
            can_override=bool(first_present(data, 'canOverride', 'can_override', default=True)),
        )


@dataclass(eq=False)
class RoleDefinition:
    """A node of the role hierarchy.

    `inherit_from` is the only edge stored as truth. `child_roles` is an optional denormalized
    mirror (None when the source does not maintain it). `effective_permissions` is a derived
    cache written by the permission calculator.
    """
    id: str
    name: str = ''
    description: str = ''
    inherit_from: Optional[str] = None
    child_roles: Optional[FrozenSet[str]] = None
    permissions: Tuple[PermissionEntry, ...] = ()
    effective_permissions: Tuple[PermissionEntry, ...] = field(default=(), repr=False)
    is_system_role: bool = False
    role_level: RoleLevel = RoleLevel.STANDARD
    priority: int = 0
    department_scope: FrozenSet[str] = frozenset()
    location_scope: FrozenSet[str] = frozenset()
    validation_rules: Tuple[ValidationRule, ...] = ()
    max_assignments: Optional[int] = None
    requires_approval: bool = False
    is_active: bool = True
    version: int = 1

    def __post_init__(self):
        if not self.id:
            raise ValueError('role id required')
        self.inherit_from = self.inherit_from or None
        if self.child_roles is not None:
            self.child_roles = _as_frozenset(self.child_roles)
        self.permissions = tuple(PermissionEntry.from_dict(p) for p in self.permissions or ())
        self.effective_permissions = tuple(self.effective_permissions or ())
        self.role_level = RoleLevel.parse(self.role_level)
        self.department_scope = _as_frozenset(self.department_scope)
        self.location_scope = _as_frozenset(self.location_scope)
        self.validation_rules = tuple(parse_rule(r) for r in self.validation_rules or ())
        if self.max_assignments is not None:
            self.max_assignments = int(self.max_assignments)

    @property
    def has_parent(self) -> bool:
        return self.inherit_from is not None

    @property
    def is_root_role(self) -> bool:
        return self.inherit_from is None

    def copy(self, **changes) -> 'RoleDefinition':
        return replace(self, **changes)

    def to_dict(self, include_effective: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'inheritFrom': self.inherit_from,
            'childRoles': sorted(self.child_roles) if self.child_roles is not None else None,
            'permissions': [p.to_dict() for p in self.permissions],
            'isSystemRole': self.is_system_role,
            'roleLevel': self.role_level.name.lower(),
            'priority': self.priority,
            'departmentScope': sorted(self.department_scope),
            'locationScope': sorted(self.location_scope),
            'validationRules': [r.to_dict() for r in self.validation_rules],
            'maxAssignments': self.max_assignments,
            'requiresApproval': self.requires_approval,
            'isActive': self.is_active,
            'version': self.version,
        }
        if include_effective:
            data['effectivePermissions'] = [p.to_dict() for p in self.effective_permissions]
        return data

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        custom_predicates: Optional[Mapping[str, Callable[[UserContext], bool]]] = None,
    ) -> 'RoleDefinition':
        role_id = data.get('id')
        if not role_id:
            raise ValueError('role id required')
        rules = first_present(data, 'validationRules', 'validation_rules', default=())
        return cls(
            id=str(role_id),
            name=data.get('name') or '',
            description=data.get('description') or '',
            inherit_from=first_present(data, 'inheritFrom', 'inherit_from'),
            child_roles=first_present(data, 'childRoles', 'child_roles'),
            permissions=tuple(PermissionEntry.from_dict(p) for p in data.get('permissions') or ()),
            is_system_role=bool(first_present(data, 'isSystemRole', 'is_system_role', default=False)),
            role_level=first_present(data, 'roleLevel', 'role_level', default=RoleLevel.STANDARD),
            priority=int(data.get('priority') or 0),
            department_scope=first_present(data, 'departmentScope', 'department_scope', default=()),
            location_scope=first_present(data, 'locationScope', 'location_scope', default=()),
            validation_rules=tuple(parse_rule(r, custom_predicates) for r in rules),
            max_assignments=first_present(data, 'maxAssignments', 'max_assignments'),
            requires_approval=bool(first_present(data, 'requiresApproval', 'requires_approval', default=False)),
            is_active=bool(first_present(data, 'isActive', 'is_active', default=True)),
            version=int(data.get('version') or 1),
        )


def load_roles(
    rows: Iterable[Mapping[str, Any]],
    custom_predicates: Optional[Mapping[str, Callable[[UserContext], bool]]] = None,
) -> list:
    """Convert a flat batch of stored role mappings into RoleDefinitions."""
    return [RoleDefinition.from_dict(row, custom_predicates) for row in rows]


__all__ = ['RoleLevel', 'PermissionEntry', 'PermissionKey', 'RoleDefinition', 'load_roles']
