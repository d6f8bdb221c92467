# publication/workflows/roles.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from django.db import DatabaseError

from publication.exceptions import PublicationError
from publication.models import Document
from publication.references import DocumentReference
from publication.workflows.config import WorkflowConfigManager
from publication.workflows.rights import EDIT, has_access, is_authenticated, is_wiki_admin

logger = logging.getLogger(__name__)


# Checked in this order; the first match wins.
CONTRIBUTE_ROLES = ("contributor", "moderator", "validator")
MODERATE_ROLES = ("moderator", "validator")
VALIDATE_ROLES = ("validator",)


DocumentLike = Union[Document, DocumentReference, None]


class PublicationRoles:
    """
    Decides whether a user may contribute, moderate or validate a workflow
    document. Lookup failures deny.
    """

    def __init__(self, config_manager: Optional[WorkflowConfigManager] = None):
        self.config_manager = config_manager or WorkflowConfigManager()

    # -----------------------------------------------------------
    # Public checks
    # -----------------------------------------------------------
    def can_contribute(self, user, document: DocumentLike = None) -> bool:
        return self._check(user, document, CONTRIBUTE_ROLES, "contribute")

    def can_moderate(self, user, document: DocumentLike = None) -> bool:
        return self._check(user, document, MODERATE_ROLES, "moderate")

    def can_validate(self, user, document: DocumentLike = None) -> bool:
        return self._check(user, document, VALIDATE_ROLES, "validate")

    def roles_for(self, user, document: DocumentLike = None) -> List[str]:
        roles = []
        if self.can_contribute(user, document):
            roles.append("contributor")
        if self.can_moderate(user, document):
            roles.append("moderator")
        if self.can_validate(user, document):
            roles.append("validator")
        return roles

    # -----------------------------------------------------------
    # Internals
    # -----------------------------------------------------------
    def _load(self, document: DocumentLike) -> Optional[Document]:
        if isinstance(document, DocumentReference):
            return Document.objects.get_by_reference(document)
        return document

    def _is_member(self, user, groups: Sequence[str], users: Sequence[str]) -> bool:
        if user.get_username() in users:
            return True
        if not groups:
            return False
        return user.groups.filter(name__in=list(groups)).exists()

    def _check(self, user, document: DocumentLike, roles: Sequence[str], what: str) -> bool:
        if not is_authenticated(user):
            return False

        try:
            doc = self._load(document)
            config = self.config_manager.get_workflow_config_for_document(doc)

            if config is None:
                return has_access(user, EDIT, doc)

            if is_wiki_admin(user):
                return True

            for role in roles:
                groups, users = config.principals(role)
                if self._is_member(user, groups, users):
                    return True
            return False

        except (DatabaseError, PublicationError):
            logger.error(
                "Could not check whether %s can %s %s",
                user.get_username(),
                what,
                document,
                exc_info=True,
            )
            return False
