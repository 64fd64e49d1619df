from functools import wraps
from typing import Any, Callable

from authz.errors import PermissionDenied


def require_permission(resource: str, action: str, *, registry_getter: Callable[[], Any], role_getter: Callable[..., str]):
    """Gate a callable on the effective permissions of the role role_getter(*args, **kwargs) names."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role_id = role_getter(*args, **kwargs)
            if not registry_getter().has_permission(role_id, resource, action):
                raise PermissionDenied(role_id, resource, action)
            return fn(*args, **kwargs)
        return wrapper
    return outer
