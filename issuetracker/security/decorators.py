from __future__ import annotations

from collections.abc import Callable


def require_permissions(permissions: list[str]) -> Callable:
    """
    Declare that an endpoint needs every permission in `permissions`.

    The decorator does not check anything itself. It attaches metadata that the
    global `enforce_security` dependency reads after routing.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_permissions__", set()))
        setattr(fn, "__security_required_permissions__", existing | set(permissions))
        return fn

    return decorator


def require_any_permission(permissions: list[str]) -> Callable:
    """
    Declare that an endpoint needs at least one permission in `permissions`.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_any_permissions__", set()))
        setattr(fn, "__security_any_permissions__", existing | set(permissions))
        return fn

    return decorator
