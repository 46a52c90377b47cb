from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from issuetracker.db.session import get_db
from issuetracker.errors import Unauthenticated
from issuetracker.identity import TokenValidator
from issuetracker.security.auth import authenticate
from issuetracker.security.config import SecurityConfig
from issuetracker.security.context import Actor, RequestAuthz
from issuetracker.security.gates import check_all, check_any
from issuetracker.security.resolver import PermissionResolver

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_permission_resolver(request: Request) -> PermissionResolver:
    resolver = getattr(request.app.state, "permission_resolver", None)
    if resolver is None:
        raise RuntimeError("Permission resolver not configured. Did app startup run?")
    return resolver


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency.

    Runs after routing so both the YAML route rules and decorator metadata on
    the endpoint apply. Order: authenticate, then route-level gates. Gates that
    depend on a specific resource run inside the handler once the resource has
    been loaded.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_required = set(getattr(endpoint, "__security_required_permissions__", set())) if endpoint else set()
    decorator_any = set(getattr(endpoint, "__security_any_permissions__", set())) if endpoint else set()

    auth_required = rule.auth_required or bool(decorator_required) or bool(decorator_any)
    if not auth_required:
        request.state.authz = RequestAuthz(None, resolver)
        return

    validator: TokenValidator | None = getattr(request.app.state, "token_validator", None)
    actor = authenticate(request, db, config, validator)
    if actor is None:
        raise Unauthenticated()

    authz = RequestAuthz(actor, resolver)
    request.state.authz = authz

    required = set(rule.required_permissions) | decorator_required
    if required:
        check_all(authz, required)

    alternatives = set(rule.any_permissions) | decorator_any
    if alternatives:
        check_any(authz, alternatives)


def get_authz(request: Request) -> RequestAuthz:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise RuntimeError("Authorization context missing. Is enforce_security installed?")
    return authz


def get_current_actor(authz: RequestAuthz = Depends(get_authz)) -> Actor:
    return authz.require_actor()
