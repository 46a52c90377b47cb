from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    provider: Literal["header", "jwt"] = "header"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class AuthorizationOptions(BaseModel):
    # Deprecated: also treat `assigned_to_user_name == actor.email` as "assigned to me".
    assignee_name_fallback: bool = True


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_permissions: list[str] = Field(default_factory=list)
    any_permissions: list[str] = Field(default_factory=list)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_permissions: list[str] = Field(default_factory=list)
    any_permissions: list[str] = Field(default_factory=list)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    authorization: AuthorizationOptions = Field(default_factory=AuthorizationOptions)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Gate for one request: `required_permissions` are ANDed, `any_permissions` ORed.

    Permissions come only from the matched route rule. The default block
    supplies them just for paths no rule matches.
    """

    auth_required: bool
    required_permissions: frozenset[str]
    any_permissions: frozenset[str]


@dataclass(frozen=True)
class _CompiledRule:
    methods: frozenset[str]
    pattern: re.Pattern[str] | None
    rule: EffectiveRule

    def accepts(self, method: str) -> bool:
        return method in self.methods


def _template_pattern(path: str) -> re.Pattern[str] | None:
    # "/bugs/{bug_id}/close" -> ^/bugs/[^/]+/close$ ; plain paths need no regex.
    if "{" not in path:
        return None
    return re.compile("^" + re.sub(r"\{[^/]+\}", "[^/]+", path) + "$")


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    named_permissions = bool(rule.required_permissions or rule.any_permissions)
    auth_required = rule.auth_required
    if auth_required is None:
        # Naming a permission implies authentication even under a public default.
        auth_required = default.auth_required or named_permissions
    return EffectiveRule(
        auth_required=auth_required,
        required_permissions=frozenset(rule.required_permissions),
        any_permissions=frozenset(rule.any_permissions),
    )


class SecurityConfig:
    """Validated security config plus route lookup (exact path first, then templates)."""

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        self._exact: dict[str, list[_CompiledRule]] = {}
        self._templates: list[_CompiledRule] = []
        for route in model.routes:
            pattern = _template_pattern(route.path)
            compiled = _CompiledRule(frozenset(route.normalized_methods()), pattern, _effective(route, model.default))
            if pattern is None:
                self._exact.setdefault(route.path, []).append(compiled)
            else:
                self._templates.append(compiled)

        default = model.default
        self._fallback = EffectiveRule(
            auth_required=default.auth_required,
            required_permissions=frozenset(default.required_permissions),
            any_permissions=frozenset(default.any_permissions),
        )

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    @property
    def authorization(self) -> AuthorizationOptions:
        return self.model.authorization

    def match(self, path: str, method: str) -> EffectiveRule:
        method = method.upper()
        for compiled in self._exact.get(path, ()):
            if compiled.accepts(method):
                return compiled.rule
        for compiled in self._templates:
            if compiled.accepts(method) and compiled.pattern.match(path):
                return compiled.rule
        return self._fallback


def parse_security_config(raw: dict[str, Any], source: str = "<memory>") -> SecurityConfig:
    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {source}")
    return SecurityConfig(SecurityConfigModel.model_validate(raw["security"]))


def load_security_config(path: Path) -> SecurityConfig:
    raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return parse_security_config(raw, str(path))
