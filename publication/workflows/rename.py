# publication/workflows/rename.py
"""
Keep drafts and published copies paired when one of them is moved.

Moving a draft computes where its published copy should now live by
replaying the change of the draft's path onto the published path:

    Drafts.Topic.WebHome → Drafts.Topic2.WebHome
    Public.Topic.WebHome → Public.Topic2.WebHome

Moving a published copy updates the target fields, and with the
``move_drafts`` and ``move_all`` strategies replays the move onto the
draft the same way.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import local
from typing import Optional

from django.db import DatabaseError, transaction

from publication import documents as store
from publication.exceptions import InvalidReference, PublicationError
from publication.models import Document, WorkflowConfig, WorkflowMetadata
from publication.references import (
    DocumentReference,
    common_prefix_length,
    parse_document_reference,
)
from publication.workflows import PUBLISHED
from publication.workflows.rights import EDIT, has_access

logger = logging.getLogger(__name__)

MoveStrategy = WorkflowConfig.MoveStrategy

# ===============================================================
# Moves made by the reconciler itself are not followed again
# ===============================================================
_state = local()


@contextmanager
def _equivalent_move():
    _state.active = True
    try:
        yield
    finally:
        _state.active = False


def _in_equivalent_move() -> bool:
    return getattr(_state, "active", False)


def compute_equivalent_reference(
    old_reference: DocumentReference,
    new_reference: DocumentReference,
    old_equivalent: DocumentReference,
) -> DocumentReference:
    """
    Apply the move ``old_reference`` → ``new_reference`` to ``old_equivalent``.

    The part of the old path that changed is cut from the end of the
    equivalent and replaced by the new tail. Returns ``old_equivalent``
    unchanged when the result would not be a valid document address.
    """
    old_path = old_reference.segments
    new_path = new_reference.segments
    equivalent_path = old_equivalent.segments

    shared = common_prefix_length(old_path, new_path)
    old_tail = old_path[shared:]
    new_tail = new_path[shared:]

    keep = max(len(equivalent_path) - len(old_tail), 0)
    if equivalent_path[keep:] != old_tail:
        logger.debug(
            "Location of %s does not mirror %s, relocating it from its root",
            old_equivalent,
            old_reference,
        )

    candidate = equivalent_path[:keep] + new_tail
    if len(candidate) < 2:
        logger.warning(
            "Unable to compute new location for the document [%s]",
            old_equivalent.serialize(),
        )
        return old_equivalent

    return DocumentReference.from_segments(old_equivalent.wiki, candidate)


class RenameReconciler:
    def __init__(self, workflow=None):
        if workflow is None:
            from publication.workflows.engine import PublicationWorkflow

            workflow = PublicationWorkflow()
        self.workflow = workflow

    def handle_moved(self, old_reference: DocumentReference, document: Document, user) -> None:
        """Best effort: failures are logged and leave the pair as it was."""
        workflow = document.get_workflow()
        if workflow is None:
            return

        try:
            with transaction.atomic():
                if workflow.is_target:
                    self._published_moved(old_reference, document, workflow, user)
                else:
                    self._draft_moved(old_reference, document, workflow, user)
        except (DatabaseError, PublicationError):
            logger.error(
                "Could not reconcile the move of %s to %s",
                old_reference,
                document.reference,
                exc_info=True,
            )

    def _strategy(self, workflow: WorkflowMetadata, reference: DocumentReference) -> Optional[str]:
        config = self.workflow.config_manager.get_workflow_config(workflow.config_ref)
        if config is None:
            logger.warning(
                "Workflow configuration %s of %s not found, move not followed",
                workflow.config_ref,
                reference,
            )
            return None
        return config.move_strategy

    def _move_equivalent(
        self,
        old_equivalent: DocumentReference,
        new_equivalent: DocumentReference,
        moved: DocumentReference,
        user,
    ) -> bool:
        if not store.exists(old_equivalent):
            logger.info("%s does not exist anymore", old_equivalent)
            return False
        if new_equivalent == moved or store.exists(new_equivalent):
            logger.warning(
                "Cannot move %s to %s: a document already exists there",
                old_equivalent,
                new_equivalent,
            )
            return False

        with _equivalent_move():
            store.move_document(old_equivalent, new_equivalent, user=user)
        return True

    # -----------------------------------------------------------
    # Draft moved
    # -----------------------------------------------------------
    def _draft_moved(
        self,
        old_reference: DocumentReference,
        document: Document,
        workflow: WorkflowMetadata,
        user,
    ) -> None:
        if _in_equivalent_move():
            return

        strategy = self._strategy(workflow, document.reference)
        if strategy is None or strategy == MoveStrategy.DO_NOTHING:
            return

        try:
            old_target = parse_document_reference(workflow.target, old_reference)
        except InvalidReference:
            logger.warning("Draft %s has an invalid target [%s]", document.reference, workflow.target)
            return

        new_target = compute_equivalent_reference(old_reference, document.reference, old_target)
        if new_target == old_target:
            return

        published = Document.objects.get_by_reference(old_target)
        published_workflow = published.get_workflow() if published is not None else None

        if published_workflow is None or not published_workflow.is_target:
            if strategy != MoveStrategy.MOVE_TARGET_IF_UNPUBLISHED:
                logger.info("Draft %s keeps its target %s", document.reference, old_target)
                return
            workflow.target = new_target.compact(document.wiki)
            store.save_document(
                document,
                user=user,
                comment=f"Changed target to {workflow.target} after move",
                minor_edit=True,
            )
            logger.info("Draft %s now targets %s", document.reference, new_target)
            return

        if strategy not in (MoveStrategy.MOVE_TARGET, MoveStrategy.MOVE_ALL):
            logger.info("Published copy %s of %s left in place", old_target, document.reference)
            return

        if workflow.status != PUBLISHED:
            logger.info(
                "Draft %s is %s, published copy %s left in place",
                document.reference,
                workflow.status,
                old_target,
            )
            return

        if not self.workflow.roles.can_validate(user, document):
            logger.warning(
                "%s may not move the published copy %s of %s",
                user.get_username() if user is not None else "system",
                old_target,
                document.reference,
            )
            return

        # The move of the published copy updates both target fields
        if self._move_equivalent(old_target, new_target, document.reference, user):
            logger.info("Published copy %s moved to %s", old_target, new_target)

    # -----------------------------------------------------------
    # Published copy moved
    # -----------------------------------------------------------
    def _published_moved(
        self,
        old_reference: DocumentReference,
        document: Document,
        workflow: WorkflowMetadata,
        user,
    ) -> None:
        new_reference = document.reference
        try:
            old_target = parse_document_reference(workflow.target, old_reference)
        except InvalidReference:
            old_target = old_reference

        if old_target == new_reference:
            return

        draft_ref = self.workflow.get_draft_document(old_target)

        workflow.target = new_reference.compact()
        store.save_document(
            document,
            user=user,
            comment=f"Changed target to {workflow.target} after move",
            minor_edit=True,
        )

        if draft_ref is None:
            return

        draft = Document.objects.get_by_reference(draft_ref)
        draft_workflow = draft.get_workflow()
        draft_workflow.target = new_reference.compact(draft.wiki)
        store.save_document(
            draft,
            user=user,
            comment=f"Changed target to {draft_workflow.target} after move",
            minor_edit=True,
        )
        logger.info("Draft %s now targets %s", draft_ref, new_reference)

        if _in_equivalent_move():
            return
        if self._strategy(draft_workflow, draft_ref) not in (MoveStrategy.MOVE_DRAFTS, MoveStrategy.MOVE_ALL):
            return

        new_draft = compute_equivalent_reference(old_target, new_reference, draft_ref)
        if new_draft == draft_ref:
            return

        if not has_access(user, EDIT):
            logger.warning(
                "%s may not move the draft %s to %s",
                user.get_username() if user is not None else "system",
                draft_ref,
                new_draft,
            )
            return

        if self._move_equivalent(draft_ref, new_draft, new_reference, user):
            logger.info("Draft %s moved to %s", draft_ref, new_draft)
