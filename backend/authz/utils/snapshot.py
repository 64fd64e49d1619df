"""Deterministic version stamp for a batch of role definitions.

The stamp is a SHA-256 over the canonical JSON of every role's defining fields (derived
effective permissions excluded), so identical content yields the identical version regardless of
input order and any add/edit/delete yields a new one.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from typing import Any, Dict, Iterable


def canonical_role(role) -> Dict[str, Any]:
    return role.to_dict(include_effective=False)


def role_fingerprint(role) -> tuple:
    """Defining field values of a role, compared to notice in-place edits without hashing."""
    return tuple(getattr(role, f.name) for f in fields(role) if f.name != 'effective_permissions')


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(',', ':'))


def snapshot_version(roles: Iterable) -> str:
    rows = sorted(canonical_json(canonical_role(r)) for r in roles)
    return hashlib.sha256(canonical_json(rows).encode('utf-8')).hexdigest()


__all__ = ['canonical_role', 'role_fingerprint', 'canonical_json', 'snapshot_version']
