# publication/signals.py
from __future__ import annotations

import logging

from django.dispatch import receiver

from publication.events import (
    document_child_publishing,
    document_copying,
    document_moved,
    document_publishing,
)
from publication.models import Document
from publication.workflows.reference_rewriter import ReferenceRewriter
from publication.workflows.rename import RenameReconciler

logger = logging.getLogger(__name__)


# ===============================================================
# Copies never share a workflow with their source
# ===============================================================
@receiver(document_copying, sender=Document)
def strip_workflow_from_copy(sender, source, document, user=None, **kwargs):
    if document.get_workflow() is None:
        return
    document.remove_workflow()
    logger.info(
        "Removed workflow metadata from %s, copied from %s",
        document.reference,
        source.reference,
    )


# ===============================================================
# Published content points at published documents
# ===============================================================
@receiver(document_publishing, sender=Document)
def rewrite_published_references(sender, document, draft_reference, user=None, **kwargs):
    ReferenceRewriter().rewrite(document, draft_reference)


@receiver(document_child_publishing, sender=Document)
def rewrite_published_child_references(sender, document, draft_reference, user=None, **kwargs):
    ReferenceRewriter().rewrite(document, draft_reference)


# ===============================================================
# Moves keep draft and published copy paired
# ===============================================================
@receiver(document_moved, sender=Document)
def reconcile_moved_document(sender, old_reference, document, user=None, **kwargs):
    RenameReconciler().handle_moved(old_reference, document, user)
