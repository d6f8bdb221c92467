# publication/workflows/__init__.py
from __future__ import annotations

from typing import Dict, FrozenSet, List, NamedTuple, Optional


# ===============================================================
# Canonical workflow definitions
# ===============================================================

DRAFT = "draft"
MODERATING = "moderating"
VALIDATING = "validating"
VALID = "valid"
PUBLISHED = "published"
ARCHIVED = "archived"

STATUSES: FrozenSet[str] = frozenset(
    {DRAFT, MODERATING, VALIDATING, VALID, PUBLISHED, ARCHIVED}
)

# Copy kinds
DRAFT_COPY = False
PUBLISHED_COPY = True


class TransitionGuard(NamedTuple):
    from_statuses: FrozenSet[str]
    is_target: bool
    to_status: str
    role: str


# Role names used by the script-facing API
EDIT = "edit"
CONTRIBUTE = "contribute"
MODERATE = "moderate"
VALIDATE = "validate"


TRANSITIONS: Dict[str, TransitionGuard] = {
    "submit_for_moderation": TransitionGuard(frozenset({DRAFT}), DRAFT_COPY, MODERATING, CONTRIBUTE),
    "refuse_moderation": TransitionGuard(frozenset({MODERATING}), DRAFT_COPY, DRAFT, MODERATE),
    "submit_for_validation": TransitionGuard(frozenset({DRAFT, MODERATING}), DRAFT_COPY, VALIDATING, MODERATE),
    "refuse_validation": TransitionGuard(frozenset({VALIDATING}), DRAFT_COPY, DRAFT, VALIDATE),
    "validate": TransitionGuard(frozenset({VALIDATING}), DRAFT_COPY, VALID, VALIDATE),
    "publish": TransitionGuard(frozenset({VALIDATING, VALID}), DRAFT_COPY, PUBLISHED, VALIDATE),
    "unpublish": TransitionGuard(frozenset({PUBLISHED, ARCHIVED}), PUBLISHED_COPY, DRAFT, CONTRIBUTE),
    "edit_draft": TransitionGuard(frozenset({PUBLISHED}), DRAFT_COPY, DRAFT, CONTRIBUTE),
    "archive": TransitionGuard(frozenset({PUBLISHED}), PUBLISHED_COPY, ARCHIVED, CONTRIBUTE),
    "unarchive": TransitionGuard(frozenset({ARCHIVED}), PUBLISHED_COPY, DRAFT, CONTRIBUTE),
    "publish_from_archive": TransitionGuard(frozenset({ARCHIVED}), PUBLISHED_COPY, PUBLISHED, VALIDATE),
}


def normalize_status(value: str) -> str:
    return str(value or "").strip().lower()


def is_allowed(action: str, status: str, is_target: bool) -> bool:
    guard = TRANSITIONS.get(action)
    if guard is None:
        return False
    if bool(is_target) != guard.is_target:
        return False
    return normalize_status(status) in guard.from_statuses


def allowed_actions(status: str, is_target: bool) -> List[str]:
    return sorted(a for a in TRANSITIONS if is_allowed(a, status, is_target))


def required_role(action: str) -> Optional[str]:
    guard = TRANSITIONS.get(action)
    return guard.role if guard else None
