from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from issuetracker.db.ids import is_valid_id
from issuetracker.errors import StoreUnavailable, Unauthenticated
from issuetracker.identity import RoleClaim, TokenValidationError, TokenValidator
from issuetracker.models.security import User
from issuetracker.security.config import SecurityConfig
from issuetracker.security.context import Actor

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Read `Authorization: Bearer <token>`.

    Returns None when the header is absent; a present but malformed header is
    rejected outright.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing %s header path=%s method=%s", header_name, request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid %s header format path=%s method=%s", header_name, request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Missing token after '{bearer_prefix}'.")

    return token


def load_user(db: Session, user_id: str) -> User:
    if not is_valid_id(user_id):
        raise Unauthenticated("Invalid or inactive user")
    return _active_user(db, select(User).where(User.id == user_id))


def load_user_by_email(db: Session, email: str) -> User:
    return _active_user(db, select(User).where(User.email == email))


def _active_user(db: Session, stmt) -> User:
    try:
        user = db.execute(stmt).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("User lookup failed during authentication")
        raise StoreUnavailable() from exc

    if user is None or not user.is_active:
        raise Unauthenticated("Invalid or inactive user")
    return user


def actor_from_user(user: User, role_claim: object = None) -> Actor:
    # The stored role wins; the provider's claim is only a fallback.
    raw_role = user.role if RoleClaim.parse(user.role).role_codes() else role_claim
    return Actor(
        id=user.id,
        email=user.email,
        full_name=user.display_name,
        role_codes=RoleClaim.parse(raw_role).role_codes(),
    )


def authenticate(
    request: Request,
    db: Session,
    config: SecurityConfig,
    validator: TokenValidator | None = None,
) -> Actor | None:
    """
    Resolve the request's Actor, or None when no credentials were sent.

    Providers:
    - header: the bearer token is the user id (local/demo setups).
    - jwt: the bearer token is a signed JWT; the user is found by its email claim.
    """

    token = extract_bearer_token(request, config)
    if token is None:
        return None

    if config.auth.provider == "header":
        return actor_from_user(load_user(db, token))

    if validator is None:
        raise RuntimeError("JWT provider configured but no token validator is available")

    try:
        claims = validator.validate(token)
    except TokenValidationError as exc:
        raise Unauthenticated("Invalid or expired token") from exc

    if not claims.email:
        raise Unauthenticated("Token carries no email claim")

    return actor_from_user(load_user_by_email(db, claims.email), claims.role)
