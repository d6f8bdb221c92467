# publication/workflows/reference_rewriter.py
from __future__ import annotations

import logging
from typing import Optional

from publication import rendering
from publication.exceptions import InvalidReference
from publication.models import Document
from publication.references import (
    AttachmentReference,
    DocumentReference,
    parse_attachment_reference,
    parse_document_reference,
)
from publication.rendering import ResourceReference

logger = logging.getLogger(__name__)


class ReferenceRewriter:
    """
    Points links and images of a freshly published copy at published
    documents instead of drafts.

    References are resolved relative to the draft the content was written
    in. A reference is rewritten when it lands on a draft (directly, or on
    a child of a draft whose workflow includes children); anything else is
    left as written.
    """

    def __init__(self, workflow=None):
        if workflow is None:
            from publication.workflows.engine import PublicationWorkflow

            workflow = PublicationWorkflow()
        self.workflow = workflow

    # -----------------------------------------------------------
    # Target lookup
    # -----------------------------------------------------------
    def published_reference_for(self, reference: DocumentReference) -> Optional[DocumentReference]:
        document = Document.objects.get_by_reference(reference)
        workflow = document.get_workflow() if document is not None else None

        if workflow is not None:
            if workflow.is_target or not workflow.target:
                return None
            try:
                return parse_document_reference(workflow.target, reference)
            except InvalidReference:
                logger.warning("Draft %s has an invalid target [%s]", reference, workflow.target)
                return None

        root = self.workflow.get_workflow_document(reference)
        if root is None or root == reference:
            return None
        root_target = self.published_reference_for(root)
        if root_target is None:
            return None
        return self.workflow.get_child_target(reference, root, root_target)

    # -----------------------------------------------------------
    # Rewriting
    # -----------------------------------------------------------
    def _rewrite_document(self, resource: ResourceReference, base: DocumentReference, wiki: str) -> bool:
        try:
            reference = parse_document_reference(resource.reference, base)
        except InvalidReference:
            return False

        published = self.published_reference_for(reference)
        if published is None:
            return False

        resource.reference = published.compact(wiki)
        return True

    def _rewrite_attachment(self, resource: ResourceReference, base: DocumentReference, wiki: str) -> bool:
        try:
            attachment = parse_attachment_reference(resource.reference, base)
        except InvalidReference:
            return False

        published = self.published_reference_for(attachment.document)
        if published is None:
            return False

        resource.reference = AttachmentReference(published, attachment.filename).compact(wiki)
        return True

    def rewrite(self, document: Document, draft_reference: DocumentReference) -> bool:
        """Rewrite ``document.content`` in memory. Returns True when something changed."""
        tree = rendering.parse(document.content)
        wiki = document.wiki
        changed = False

        for link in tree.links():
            if link.resource.type == rendering.DOCUMENT:
                changed |= self._rewrite_document(link.resource, draft_reference, wiki)
            elif link.resource.type == rendering.ATTACHMENT:
                changed |= self._rewrite_attachment(link.resource, draft_reference, wiki)

        for image in tree.images():
            if not image.freestanding:
                changed |= self._rewrite_attachment(image.resource, draft_reference, wiki)

        if changed:
            document.content = tree.render()
            logger.info("Rewrote references to drafts in %s", document.reference)
        return changed
