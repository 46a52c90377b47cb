"""
Resource-scoped mutation authorization.

Every bug mutation (and user edit) uses the same rule shape:

    allowed = perms[blanket]
           or (perms[assigned_scope] and actor is the current assignee)
           or (perms[owner_scope]    and actor is the original reporter)

Only the permission names differ per action, so they live in one table and
the decision is written once.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from issuetracker.errors import Forbidden
from issuetracker.models.tracker import Bug
from issuetracker.security.context import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationRule:
    action: str
    blanket: str
    assigned_scope: str | None = None
    owner_scope: str | None = None

    def permission_names(self) -> tuple[str, ...]:
        return tuple(p for p in (self.blanket, self.assigned_scope, self.owner_scope) if p)


BUG_EDIT = MutationRule("edit bug", "canEditAnyBug", "canEditIfAssignedTo", "canEditMyBug")
BUG_CLASSIFY = MutationRule("classify bug", "canClassifyAnyBug", "canEditIfAssignedTo", "canEditMyBug")
BUG_ASSIGN = MutationRule("assign bug", "canReassignAnyBug", "canReassignIfAssignedTo", "canEditMyBug")
BUG_CLOSE = MutationRule("close bug", "canCloseAnyBug")
USER_EDIT = MutationRule("edit user", "canEditAnyUser")

# Changing another user's role: either grant is enough.
ROLE_ASSIGNMENT_PERMISSIONS = ("canAssignRoles", "canEditAnyUser")


@dataclass(frozen=True)
class ResourceFacts:
    """Relationship facts about the target resource, supplied by the resource store."""

    author_identities: tuple[str, ...] = ()
    assigned_to_id: str | None = None
    assigned_to_name: str | None = None


def bug_facts(bug: Bug) -> ResourceFacts:
    authors = tuple(dict.fromkeys(a for a in (bug.author_of_bug, bug.created_by) if a))
    return ResourceFacts(
        author_identities=authors,
        assigned_to_id=bug.assigned_to_user_id,
        assigned_to_name=bug.assigned_to_user_name,
    )


def is_assignee(actor: Actor, facts: ResourceFacts, *, name_fallback: bool = True) -> bool:
    if facts.assigned_to_id and facts.assigned_to_id == actor.id:
        return True

    if name_fallback and facts.assigned_to_name and facts.assigned_to_name == actor.email:
        logger.warning(
            "Assignee matched by display name only (deprecated) actor=%s; store assigned_to_user_id instead",
            actor.id,
        )
        return True

    return False


def is_author(actor: Actor, facts: ResourceFacts) -> bool:
    return bool(actor.email) and actor.email in facts.author_identities


def can_perform(
    rule: MutationRule,
    actor: Actor,
    permissions: Mapping[str, bool],
    facts: ResourceFacts,
    *,
    name_fallback: bool = True,
) -> bool:
    if permissions.get(rule.blanket):
        return True

    if rule.assigned_scope and permissions.get(rule.assigned_scope):
        if is_assignee(actor, facts, name_fallback=name_fallback):
            return True

    if rule.owner_scope and permissions.get(rule.owner_scope):
        if is_author(actor, facts):
            return True

    return False


def authorize_mutation(
    rule: MutationRule,
    actor: Actor,
    permissions: Mapping[str, bool],
    facts: ResourceFacts,
    *,
    name_fallback: bool = True,
) -> None:
    """Raise Forbidden unless `actor` may perform `rule` on the resource described by `facts`."""

    if can_perform(rule, actor, permissions, facts, name_fallback=name_fallback):
        return

    missing = [p for p in rule.permission_names() if not permissions.get(p)]
    raise Forbidden(missing=missing, reason=f"not allowed to {rule.action}")
