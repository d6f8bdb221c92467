# publication/documents.py
"""
Document store: load, save, copy, move and delete documents by reference.

Documents keep their workflow metadata, rights and attachments in memory
until ``save_document`` writes everything in one transaction. Copies and
moves announce themselves through the signals in ``publication.events``.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q

from publication.events import document_copied, document_copying, document_moved
from publication.exceptions import DocumentNotFound, PublicationError
from publication.models import Attachment, Document, RightsEntry, WorkflowMetadata
from publication.models.core import _UNSET
from publication.references import DocumentReference

logger = logging.getLogger(__name__)


# ===============================================================
# Helpers
# ===============================================================

def truncate_comment(comment: Optional[str]) -> str:
    limit = getattr(settings, "PUBLICATION_COMMENT_MAX_LENGTH", 1023)
    comment = comment or ""
    return comment[:limit]


def _is_real_user(user) -> bool:
    return bool(user is not None and getattr(user, "is_authenticated", False) and user.pk)


def clone_workflow(metadata: WorkflowMetadata) -> WorkflowMetadata:
    return WorkflowMetadata(
        config_ref=metadata.config_ref,
        target=metadata.target,
        status=metadata.status,
        is_target=metadata.is_target,
        include_children=metadata.include_children,
        status_author=metadata.status_author,
        publication_comment=metadata.publication_comment,
    )


def clone_rights(entries: List[RightsEntry]) -> List[RightsEntry]:
    return [
        RightsEntry(
            levels=list(e.levels),
            groups=list(e.groups),
            users=list(e.users),
            allow=e.allow,
        )
        for e in entries
    ]


def copy_contents(source: Document, target: Document) -> None:
    """Copy title, content and attachments. Rights and workflow are left alone."""
    target.title = source.title
    target.content = source.content
    target.set_attachments(
        [
            Attachment(
                filename=a.filename,
                mimetype=a.mimetype,
                content=bytes(a.content or b""),
            )
            for a in source.get_attachments()
        ]
    )


# ===============================================================
# Reads
# ===============================================================

def get_document(reference: DocumentReference) -> Document:
    """Existing document, or a new unsaved one addressed at ``reference``."""
    document = Document.objects.get_by_reference(reference)
    if document is None:
        document = Document()
        document.set_reference(reference)
    return document


def get_existing_document(reference: DocumentReference) -> Document:
    document = Document.objects.get_by_reference(reference)
    if document is None:
        raise DocumentNotFound(reference)
    return document


def exists(reference: DocumentReference) -> bool:
    return Document.objects.for_reference(reference).exists()


def get_children(reference: DocumentReference) -> List[DocumentReference]:
    """
    Direct children of a home page: terminal pages in its space and the
    home pages of the spaces right below it. Terminal pages have none.
    """
    if not reference.is_default_page:
        return []

    prefix = reference.serialized_spaces
    depth = len(reference.spaces)
    qs = Document.objects.filter(wiki=reference.wiki).filter(
        Q(space=prefix) | Q(space__startswith=prefix + ".")
    )

    children: List[DocumentReference] = []
    for document in qs:
        ref = document.reference
        if ref == reference or ref.spaces[:depth] != reference.spaces:
            continue
        if ref.spaces == reference.spaces:
            children.append(ref)
        elif len(ref.spaces) == depth + 1 and ref.is_default_page:
            children.append(ref)
    return children


def is_modified(from_reference: DocumentReference, to_reference: DocumentReference) -> bool:
    """True when title, content or attachments differ. Workflow and rights are ignored."""
    a = get_existing_document(from_reference)
    b = get_existing_document(to_reference)

    if a.title != b.title or a.content != b.content:
        return True

    def _files(doc):
        return {att.filename: bytes(att.content or b"") for att in doc.get_attachments()}

    return _files(a) != _files(b)


# ===============================================================
# Writes
# ===============================================================

def _sync_workflow(document: Document, workflow_bypass: bool) -> None:
    state = getattr(document, "_workflow_state", _UNSET)
    if state is _UNSET:
        return

    if state is None:
        if getattr(document, "_workflow_dirty", False):
            WorkflowMetadata.objects.filter(document=document).delete()
    else:
        if state.pk is None:
            WorkflowMetadata.objects.filter(document=document).delete()
        state.document = document
        state.save(_workflow_bypass=workflow_bypass)

    document._workflow_dirty = False


def _sync_rights(document: Document) -> None:
    if not getattr(document, "_rights_dirty", False):
        return

    document.rights.all().delete()
    saved = []
    for entry in document.get_rights():
        entry.pk = None
        entry.document = document
        entry.save()
        saved.append(entry)
    document._rights_state = saved
    document._rights_dirty = False


def _sync_attachments(document: Document) -> None:
    if not getattr(document, "_attachments_dirty", False):
        return

    document.attachments.all().delete()
    saved = []
    for attachment in document.get_attachments():
        attachment.pk = None
        attachment.document = document
        attachment.save()
        saved.append(attachment)
    document._attachments_state = saved
    document._attachments_dirty = False


@transaction.atomic
def save_document(
    document: Document,
    *,
    user=None,
    comment: str = "",
    minor_edit: bool = False,
    workflow_bypass: bool = False,
) -> Document:
    """
    Persist the document row together with its pending workflow metadata,
    rights and attachments.

    ``workflow_bypass`` lets the workflow engine change status fields that
    the write guard otherwise protects.
    """
    if _is_real_user(user):
        document.author = user
        if document.pk is None:
            document.creator = user

    document.comment = truncate_comment(comment)
    if not minor_edit or not document.version:
        document.version = (document.version or 0) + 1

    document.save()

    _sync_workflow(document, workflow_bypass)
    _sync_rights(document)
    _sync_attachments(document)

    logger.debug("Saved %s (version %s): %s", document.reference, document.version, document.comment)
    return document


def copy_document(
    source_reference: DocumentReference,
    target_reference: DocumentReference,
    *,
    user=None,
) -> Document:
    """
    Copy a document, with its rights and workflow metadata, over whatever
    lives at ``target_reference``. Receivers of ``document_copying`` may
    alter the copy before it is written.
    """
    source = get_existing_document(source_reference)
    target = get_document(target_reference)

    copy_contents(source, target)
    target.hidden = source.hidden
    target.set_rights_entries(clone_rights(source.get_rights()))

    workflow = source.get_workflow()
    if workflow is not None:
        target.set_workflow(clone_workflow(workflow))

    document_copying.send(sender=Document, source=source, document=target, user=user)

    save_document(
        target,
        user=user,
        comment=f"Copied from {source_reference.serialize()}",
        workflow_bypass=True,
    )

    document_copied.send(sender=Document, source=source, document=target, user=user)
    return target


def move_document(
    old_reference: DocumentReference,
    new_reference: DocumentReference,
    *,
    user=None,
) -> Document:
    if old_reference == new_reference:
        return get_existing_document(old_reference)

    document = get_existing_document(old_reference)
    if exists(new_reference):
        raise PublicationError(f"Document [{new_reference}] already exists")

    with transaction.atomic():
        document.set_reference(new_reference)
        save_document(
            document,
            user=user,
            comment=f"Moved from {old_reference.serialize()}",
            minor_edit=True,
        )
        WorkflowMetadata.objects.filter(document=document).update(wiki=new_reference.wiki)

    logger.info("Moved %s to %s", old_reference, new_reference)
    document_moved.send(
        sender=Document,
        old_reference=old_reference,
        document=document,
        user=user,
    )
    return document


def delete_document(reference: DocumentReference, *, user=None) -> bool:
    document = Document.objects.get_by_reference(reference)
    if document is None:
        return False

    document.delete()
    logger.info(
        "Deleted %s%s",
        reference,
        f" by {user.get_username()}" if _is_real_user(user) else "",
    )
    return True
