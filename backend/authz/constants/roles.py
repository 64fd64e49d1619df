"""Built-in role presets: the standard four-level chain every deployment starts from.

system-admin -> executive -> manager -> employee
"""
from __future__ import annotations
from typing import Any, Dict, List

from authz.constants.permissions import WILDCARD

ROLE_PRESETS: Dict[str, Dict[str, Any]] = {
    'system-admin': {
        'name': 'System Administrator',
        'description': 'Full system access',
        'inherit_from': None,
        'permissions': [{'resource': WILDCARD, 'actions': [WILDCARD], 'priority': 100}],
        'is_system_role': True,
        'role_level': 'system',
        'priority': 100,
    },
    'executive': {
        'name': 'Executive',
        'description': 'Executive level access',
        'inherit_from': 'system-admin',
        'permissions': [
            {'resource': 'reports', 'actions': ['read', 'create', 'export'], 'priority': 90},
            {'resource': 'analytics', 'actions': ['read'], 'priority': 90},
        ],
        'role_level': 'executive',
        'priority': 90,
    },
    # Manager: operational authority, scoped to the revenue-side departments
    'manager': {
        'name': 'Manager',
        'description': 'Management level access',
        'inherit_from': 'executive',
        'permissions': [
            {'resource': 'team', 'actions': ['read', 'manage'], 'priority': 80},
            {'resource': 'projects', 'actions': ['read', 'create', 'edit'], 'priority': 80},
        ],
        'department_scope': ['sales', 'marketing', 'operations'],
        'role_level': 'management',
        'priority': 80,
    },
    'employee': {
        'name': 'Employee',
        'description': 'Standard employee access',
        'inherit_from': 'manager',
        'permissions': [
            {'resource': 'tasks', 'actions': ['read', 'create', 'edit'], 'priority': 70},
            {'resource': 'calendar', 'actions': ['read', 'edit'], 'priority': 70},
        ],
        'role_level': 'standard',
        'priority': 70,
        'max_assignments': 1000,
    },
}


def build_preset_roles() -> List:
    """Fresh RoleDefinitions for the presets, with child_roles synced to the parent edges."""
    from authz.models.role import RoleDefinition  # local import to avoid circular
    from authz.services.hierarchy import sync_child_roles

    roles = [RoleDefinition.from_dict({'id': role_id, **preset}) for role_id, preset in ROLE_PRESETS.items()]
    return sync_child_roles(roles)


__all__ = ['ROLE_PRESETS', 'build_preset_roles']
