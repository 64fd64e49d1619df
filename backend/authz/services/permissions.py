"""Effective permission computation.

Effective permissions of a role are its ancestors' grants merged root-first, then its own grants,
one entry per resource. A later (closer to the role) entry replaces the kept one when its priority
is higher; on equal priority the configured tie-break decides (descendant wins by default). An
entry with can_override=False is never replaced by a grant from another role.

Results are memoized per (role id, snapshot version). Any change to the batch produces a new
version, so stale entries are never served; they simply age out of the bounded cache.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from authz.config.settings import Settings, TieBreak, load_settings
from authz.errors import RoleNotFound
from authz.models.role import PermissionEntry, PermissionKey, RoleDefinition
from authz.services.hierarchy import RoleBatch, RoleSet, get_ancestors

logger = logging.getLogger(__name__)

EffectivePermissions = Tuple[PermissionEntry, ...]


@dataclass(frozen=True)
class PermissionDiff:
    added: FrozenSet[PermissionKey]
    removed: FrozenSet[PermissionKey]
    unchanged: FrozenSet[PermissionKey]

    def describe(self) -> Dict[str, list]:
        """String form (resource:action,action) for audit displays."""
        return {
            'added': sorted(format_key(k) for k in self.added),
            'removed': sorted(format_key(k) for k in self.removed),
            'unchanged': sorted(format_key(k) for k in self.unchanged),
        }


def format_key(key: PermissionKey) -> str:
    resource, actions = key
    return f"{resource}:{','.join(sorted(actions))}"


class PermissionCalculator:

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        self._cache: 'OrderedDict[Tuple[str, str], EffectivePermissions]' = OrderedDict()

    # --- Cache ---
    def _cached(self, key: Tuple[str, str]) -> Optional[EffectivePermissions]:
        hit = self._cache.get(key)
        if hit is not None:
            self._cache.move_to_end(key)
            logger.debug('Effective permissions cache hit for %s@%s', key[0], key[1][:12])
        return hit

    def _remember(self, key: Tuple[str, str], value: EffectivePermissions) -> None:
        self._cache[key] = value
        self._cache.move_to_end(key)
        while len(self._cache) > self.settings.cache_limit:
            self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # --- Resolution ---
    def _replaces(self, kept: PermissionEntry, kept_source: str, incoming: PermissionEntry, source: str) -> bool:
        if not kept.can_override and kept_source != source:
            return False
        if incoming.priority != kept.priority:
            return incoming.priority > kept.priority
        return self.settings.tie_break == TieBreak.DESCENDANT

    def _compute(self, role: RoleDefinition, role_set: RoleSet) -> EffectivePermissions:
        # one entry per resource: a role declaring a resource twice keeps the higher priority grant
        # (ties follow the tie-break); validate_hierarchy reports it as DuplicatePermission
        lineage = list(reversed(get_ancestors(role, role_set))) + [role]
        merged: Dict[str, PermissionEntry] = {}
        sources: Dict[str, str] = {}
        for source in lineage:
            inherited = source is not role
            for entry in source.permissions:
                incoming = entry.tagged(inherited, source.id)
                kept = merged.get(entry.resource)
                if kept is None or self._replaces(kept, sources[entry.resource], incoming, source.id):
                    merged[entry.resource] = incoming
                    sources[entry.resource] = source.id
        return tuple(merged.values())

    def effective_permissions(self, role_id: str, all_roles: RoleBatch) -> EffectivePermissions:
        """Memoized effective permissions of the role with id role_id within the batch."""
        role_set = RoleSet.coerce(all_roles)
        role = role_set.get(role_id)
        if role is None:
            raise RoleNotFound(role_id)
        key = (role_id, role_set.version)
        cached = self._cached(key)
        if cached is not None:
            return cached
        computed = self._compute(role, role_set)
        self._remember(key, computed)
        logger.debug('Computed %d effective permissions for %s', len(computed), role_id)
        return computed

    def calculate_effective_permissions(self, role: RoleDefinition, all_roles: RoleBatch) -> None:
        """Write the role's effective permissions onto role.effective_permissions."""
        role_set = RoleSet.coerce(all_roles)
        if role_set.get(role.id) is role:
            role.effective_permissions = self.effective_permissions(role.id, role_set)
        else:
            # role is not the batch member (e.g. a candidate edit); resolve without caching
            role.effective_permissions = self._compute(role, role_set)

    def calculate_all(self, all_roles: RoleBatch) -> None:
        role_set = RoleSet.coerce(all_roles)
        for role in role_set:
            self.calculate_effective_permissions(role, role_set)

    def has_permission(self, role_id: str, resource: str, action: str, all_roles: RoleBatch) -> bool:
        role_set = RoleSet.coerce(all_roles)
        if role_id not in role_set:
            logger.debug('Permission check for unknown role %s', role_id)
            return False
        return any(entry.grants(resource, action) for entry in self.effective_permissions(role_id, role_set))

    def get_permission_diff(self, from_role_id: str, to_role_id: str, all_roles: RoleBatch) -> PermissionDiff:
        role_set = RoleSet.coerce(all_roles)
        before = {e.key for e in self.effective_permissions(from_role_id, role_set)}
        after = {e.key for e in self.effective_permissions(to_role_id, role_set)}
        return PermissionDiff(
            added=frozenset(after - before),
            removed=frozenset(before - after),
            unchanged=frozenset(before & after),
        )


# Shared calculator for the module-level helpers
_calculator: Optional[PermissionCalculator] = None


def get_calculator() -> PermissionCalculator:
    """Get or initialize the shared calculator (settings read from the environment once)."""
    global _calculator

    if _calculator is None:
        _calculator = PermissionCalculator()

    return _calculator


def reset_calculator() -> None:
    global _calculator
    _calculator = None


def calculate_effective_permissions(role: RoleDefinition, all_roles: RoleBatch) -> None:
    get_calculator().calculate_effective_permissions(role, all_roles)


def has_permission(role_id: str, resource: str, action: str, all_roles: RoleBatch) -> bool:
    """Check against the shared calculator.

    Pass a RoleSet when querying repeatedly: a plain list is wrapped and its version hashed on every
    call, while a reused RoleSet only rehashes after one of its roles changed.

        roles = RoleSet(load_roles(rows))
        has_permission('employee', 'tasks', 'edit', roles)
    """
    return get_calculator().has_permission(role_id, resource, action, all_roles)


def get_permission_diff(from_role_id: str, to_role_id: str, all_roles: RoleBatch) -> PermissionDiff:
    return get_calculator().get_permission_diff(from_role_id, to_role_id, all_roles)


__all__ = [
    'PermissionCalculator', 'PermissionDiff', 'EffectivePermissions', 'format_key', 'get_calculator',
    'reset_calculator', 'calculate_effective_permissions', 'has_permission', 'get_permission_diff',
]
