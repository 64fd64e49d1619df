"""Central definitions for permission strings to avoid typos across role data.
Extend cautiously; never rename resource or action names silently since stored roles reference them.
"""
WILDCARD = '*'

ACTIONS = ['read', 'create', 'edit', 'delete', 'manage', 'approve', 'export']

RESOURCES = ['reports', 'analytics', 'team', 'projects', 'tasks', 'calendar', 'documents']

__all__ = ['WILDCARD', 'ACTIONS', 'RESOURCES']
