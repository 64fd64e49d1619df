"""Runtime settings for the role hierarchy engine.

Values come from the environment (a local .env is loaded on package import) and may be
overridden by a mapping, e.g. in tests:

    settings = load_settings({'AUTHZ_TIE_BREAK': 'ancestor'})
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from authz.utils.validation import validate_choice

DEFAULT_TIE_BREAK = 'descendant'
DEFAULT_CACHE_LIMIT = 100
MAX_CACHE_LIMIT = 10000

# Feature flag names (must align with .env / deployment settings)
FLAG_LOCATION_SCOPE = 'AUTHZ_ENFORCE_LOCATION_SCOPE'
FLAG_CHILD_ROLES = 'AUTHZ_CHECK_CHILD_ROLES'

TRUTHY = {'1', 'true', 'yes', 'on'}
FALSY = {'0', 'false', 'no', 'off', ''}


class TieBreak(str, Enum):
    """Which grant survives when two entries for one resource carry equal priority."""
    DESCENDANT = 'descendant'
    ANCESTOR = 'ancestor'


@dataclass(frozen=True)
class Settings:
    tie_break: TieBreak = TieBreak.DESCENDANT
    cache_limit: int = DEFAULT_CACHE_LIMIT
    enforce_location_scope: bool = True
    check_child_roles: bool = True


def normalize_tie_break(raw) -> TieBreak:
    if isinstance(raw, TieBreak):
        return raw
    value = str(raw if raw is not None else DEFAULT_TIE_BREAK).strip().lower()
    return TieBreak(validate_choice(value, [t.value for t in TieBreak], 'AUTHZ_TIE_BREAK'))


def normalize_cache_limit(raw) -> int:
    try:
        limit = int(raw) if raw is not None else DEFAULT_CACHE_LIMIT
    except (TypeError, ValueError):
        raise ValueError('AUTHZ_CACHE_LIMIT must be int')
    return max(1, min(limit, MAX_CACHE_LIMIT))


def parse_flag(raw, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ValueError(f'invalid boolean flag value {raw!r}')


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    config: Dict[str, Any] = {
        'AUTHZ_TIE_BREAK': os.getenv('AUTHZ_TIE_BREAK', DEFAULT_TIE_BREAK),
        'AUTHZ_CACHE_LIMIT': os.getenv('AUTHZ_CACHE_LIMIT', str(DEFAULT_CACHE_LIMIT)),
        FLAG_LOCATION_SCOPE: os.getenv(FLAG_LOCATION_SCOPE),
        FLAG_CHILD_ROLES: os.getenv(FLAG_CHILD_ROLES),
    }
    if overrides:
        # allow tests or callers to override default config values
        config.update(overrides)
    return Settings(
        tie_break=normalize_tie_break(config['AUTHZ_TIE_BREAK']),
        cache_limit=normalize_cache_limit(config['AUTHZ_CACHE_LIMIT']),
        enforce_location_scope=parse_flag(config[FLAG_LOCATION_SCOPE], True),
        check_child_roles=parse_flag(config[FLAG_CHILD_ROLES], True),
    )


__all__ = [
    'Settings', 'TieBreak', 'load_settings', 'normalize_tie_break', 'normalize_cache_limit', 'parse_flag',
    'FLAG_LOCATION_SCOPE', 'FLAG_CHILD_ROLES',
]
