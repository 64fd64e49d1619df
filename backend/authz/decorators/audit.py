"""Audit logging decorator for role registry mutations.

Usage examples:

@audit_log('ROLE.CREATE', entity_id_attr='id', meta_builder=lambda rv, args, kwargs: {'name': rv.name})
def create_role(self, role): ...

@audit_log('ROLE.DELETE', entity_id_arg='role_id')
def delete_role(self, role_id, cascade=False): ...

Parameters:
  action: required audit action code (e.g. ROLE.CREATE)
  entity: entity label, defaults to Role
  entity_id_attr: attribute of the return value whose value becomes entity_id.
  entity_id_arg: name of the method argument to use for entity_id (fallback if the attribute is absent).
  meta_builder: callable returning a meta dict; receives (return_value, args, kwargs).

The decorated method's owner must expose `audit_sink` and `version`. Events are emitted only
after the wrapped call returns; a raised error emits nothing.
"""
from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, Optional

from authz.services.audit import add_audit


def _argument(fn, args: tuple, kwargs: dict, name: str) -> Any:
    if name in kwargs:
        return kwargs[name]
    params = list(inspect.signature(fn).parameters)[1:]  # drop self
    if name in params:
        position = params.index(name)
        if position < len(args):
            return args[position]
    return None


def audit_log(
    action: str,
    *,
    entity: str = 'Role',
    entity_id_attr: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_builder: Optional[Callable[[Any, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            rv = fn(self, *args, **kwargs)
            entity_id = getattr(rv, entity_id_attr, None) if entity_id_attr else None
            if entity_id is None and entity_id_arg:
                entity_id = _argument(fn, args, kwargs, entity_id_arg)
            meta = meta_builder(rv, args, kwargs) if meta_builder else None
            add_audit(self.audit_sink, action, entity, entity_id, meta, snapshot_version=self.version)
            return rv
        return wrapper
    return outer
