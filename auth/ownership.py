"""
auth/ownership.py -- Per-resource ownership guard.

authorize() answers one question: may this subject perform this action on
this resource? Reads are open to everyone. Mutations (edit, delete) are
allowed for the resource's author and for admins, and denied for everyone
else.

The guard returns a Decision rather than raising. Callers that want an HTTP
refusal use auth.dependencies.ensure_can_modify(), which maps a denial to
403 "forbidden". A missing credential never reaches this module -- that is a
401 handled by get_current_user().

Layer rule: no imports from api/, web/, or blog/. Resources are matched
structurally (anything with an author_id attribute), so blog.models.Post
satisfies Owned without auth/ importing it.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from auth.models import ROLE_ADMIN


class Action(str, Enum):
    READ = "read"
    EDIT = "edit"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class Subject(Protocol):
    id: int | None
    role: str


class Owned(Protocol):
    author_id: int


_MUTATIONS = frozenset({Action.EDIT, Action.DELETE})


def authorize(subject: Subject, resource: Owned, action: Action) -> Decision:
    if action not in _MUTATIONS:
        return Decision.ALLOW
    if subject.role == ROLE_ADMIN:
        return Decision.ALLOW
    if subject.id is not None and subject.id == resource.author_id:
        return Decision.ALLOW
    return Decision.DENY
