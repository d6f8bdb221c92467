# publication/workflows/rights.py
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Set

from django.conf import settings

from publication.models import Document, RightsEntry

logger = logging.getLogger(__name__)


VIEW = RightsEntry.Level.VIEW.value
COMMENT = RightsEntry.Level.COMMENT.value
EDIT = RightsEntry.Level.EDIT.value

WIKI_EDIT_PERMISSION = "publication.change_document"


# ===============================================================
# Principals
# ===============================================================

def is_authenticated(user) -> bool:
    return bool(user is not None and getattr(user, "is_authenticated", False))


def group_names(user) -> Set[str]:
    if not is_authenticated(user):
        return set()
    return set(user.groups.values_list("name", flat=True))


def is_wiki_admin(user) -> bool:
    if not is_authenticated(user):
        return False
    if getattr(user, "is_superuser", False):
        return True
    admin_groups = getattr(settings, "PUBLICATION_ADMIN_GROUPS", [])
    if not admin_groups:
        return False
    return user.groups.filter(name__in=admin_groups).exists()


# ===============================================================
# Access checks
# ===============================================================

def has_access(user, level: str, document: Optional[Document] = None) -> bool:
    """
    Evaluate document rights for ``user``.

    A matching deny entry wins. When allow entries exist for the level,
    only their principals pass. Without entries for the level the wiki
    default applies: everybody may view or comment, editing needs the
    ``publication.change_document`` permission.
    """
    if not is_authenticated(user):
        return False
    if is_wiki_admin(user):
        return True

    def _wiki_default() -> bool:
        if level == EDIT:
            return user.has_perm(WIKI_EDIT_PERMISSION)
        return True

    if document is None:
        return _wiki_default()

    entries = [e for e in document.get_rights() if level in (e.levels or [])]
    if not entries:
        return _wiki_default()

    username = user.get_username()
    groups = group_names(user)

    if any(not e.allow and e.matches(level, username, groups) for e in entries):
        return False

    allows = [e for e in entries if e.allow]
    if not allows:
        return _wiki_default()
    return any(e.matches(level, username, groups) for e in allows)


# ===============================================================
# Rights projection
# ===============================================================

class RightsProjector:
    """
    Writes access-control entries on an in-memory document.

    Nothing is persisted here; the caller saves the document once its
    workflow state and rights are consistent.
    """

    def _entry(
        self,
        levels: Iterable[str],
        groups: Sequence[str],
        users: Sequence[str],
        allow: bool,
    ) -> Optional[RightsEntry]:
        groups = [g for g in groups if g]
        users = [u for u in users if u]
        if not groups and not users:
            return None
        return RightsEntry(
            levels=list(dict.fromkeys(levels)),
            groups=list(groups),
            users=list(users),
            allow=allow,
        )

    def set_rights(
        self,
        document: Document,
        levels: Iterable[str],
        groups: Sequence[str] = (),
        users: Sequence[str] = (),
        allow: bool = True,
    ) -> None:
        entry = self._entry(levels, groups, users, allow)
        document.set_rights_entries([entry] if entry is not None else [])

    def add_rights(
        self,
        document: Document,
        levels: Iterable[str],
        groups: Sequence[str] = (),
        users: Sequence[str] = (),
        allow: bool = True,
    ) -> None:
        entry = self._entry(levels, groups, users, allow)
        if entry is None:
            return
        document.set_rights_entries(list(document.get_rights()) + [entry])
