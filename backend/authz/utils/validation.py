"""Reusable validation helpers for loading role data from plain mappings.

Stored role data arrives with either camelCase or snake_case keys; these helpers keep the
lookups and the "value must be one of" checks in one place with consistent ValueError messages.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def validate_choice(value: str, allowed: Iterable[str], field_name: str = 'value') -> str:
    """Validate that value is inside allowed.

    Returns the value (to enable inline usage) or raises ValueError.
    """
    if value not in allowed:
        raise ValueError(f'{field_name} invalid: {value!r}')
    return value


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def first_present(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present (and not None) in data."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


__all__ = ['validate_choice', 'snake_case', 'first_present']
