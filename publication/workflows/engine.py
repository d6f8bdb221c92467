# publication/workflows/engine.py
"""
Publication workflow state machine.

A draft document moves through draft → moderating → validating → valid and
is then copied to its target address, where the published copy lives with
``is_target=True``. Both copies point at the same target value, so the draft
of a published document is found by a reverse lookup on that field.

Every operation takes the acting user explicitly. Precondition failures
return ``False``/``None`` and are logged; database errors propagate.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Union

from publication import documents as store
from publication.events import document_child_publishing, document_publishing
from publication.exceptions import InvalidReference
from publication.models import Document, WorkflowConfig, WorkflowMetadata, WorkflowTransition
from publication.references import DocumentReference, parse_document_reference
from publication.workflows import (
    ARCHIVED,
    DRAFT,
    DRAFT_COPY,
    PUBLISHED,
    PUBLISHED_COPY,
    TRANSITIONS,
)
from publication.workflows.config import WorkflowConfigManager
from publication.workflows.rights import COMMENT, EDIT, VIEW, RightsProjector
from publication.workflows.roles import PublicationRoles

logger = logging.getLogger(__name__)


ALL_ROLES = ("contributor", "moderator", "validator")

DocumentLike = Union[Document, DocumentReference]


def _username(user) -> str:
    if user is None or not getattr(user, "is_authenticated", False):
        return "system"
    return user.get_username()


def _real_user(user):
    if user is None or not getattr(user, "is_authenticated", False) or not user.pk:
        return None
    return user


class PublicationWorkflow:
    """
    Collaborators are injected; defaults are built per instance so nothing is
    shared between callers.
    """

    def __init__(
        self,
        *,
        config_manager: Optional[WorkflowConfigManager] = None,
        roles: Optional[PublicationRoles] = None,
        rights: Optional[RightsProjector] = None,
    ):
        self.config_manager = config_manager or WorkflowConfigManager()
        self.roles = roles or PublicationRoles(self.config_manager)
        self.rights = rights or RightsProjector()

    # ===========================================================
    # Lookups
    # ===========================================================
    def _load(self, document: DocumentLike) -> Optional[Document]:
        if isinstance(document, Document):
            return document
        return Document.objects.get_by_reference(document)

    def is_workflow_document(self, document: DocumentLike) -> bool:
        doc = self._load(document)
        return doc is not None and doc.get_workflow() is not None

    def get_draft_document(
        self, target: DocumentReference, wiki: Optional[str] = None
    ) -> Optional[DocumentReference]:
        """First draft whose target is ``target``, searched in ``wiki`` (target's wiki by default)."""
        wiki = wiki or target.wiki
        metadata = (
            WorkflowMetadata.objects.filter(
                wiki=wiki,
                target=target.compact(wiki),
                is_target=False,
            )
            .select_related("document")
            .order_by("pk")
            .first()
        )
        return metadata.document.reference if metadata else None

    def get_workflow_document(self, reference: DocumentReference) -> Optional[DocumentReference]:
        """
        The document itself when it carries workflow metadata, otherwise the
        nearest ancestor whose workflow includes its children.
        """
        doc = self._load(reference)
        if doc is not None and doc.get_workflow() is not None:
            return reference

        parent = reference.parent
        while parent is not None:
            ancestor = self._load(parent)
            workflow = ancestor.get_workflow() if ancestor is not None else None
            if workflow is not None:
                return parent if workflow.include_children else None
            parent = parent.parent
        return None

    def get_child_target(
        self,
        child: DocumentReference,
        workflow_draft: DocumentReference,
        workflow_target: DocumentReference,
    ) -> Optional[DocumentReference]:
        """Address of ``child`` once the tree under ``workflow_draft`` is published to ``workflow_target``."""
        if not (workflow_draft.is_default_page and workflow_target.is_default_page):
            return None
        try:
            return child.replace_space_prefix(
                workflow_draft.spaces, workflow_target.spaces
            ).with_wiki(workflow_target.wiki)
        except InvalidReference:
            return None

    def is_modified(self, from_reference: DocumentReference, to_reference: DocumentReference) -> bool:
        return store.is_modified(from_reference, to_reference)

    # ===========================================================
    # Guards
    # ===========================================================
    def validate_workflow(
        self,
        document: Optional[Document],
        expected_statuses: Iterable[str],
        is_target: bool,
        action: str = "",
    ) -> Optional[WorkflowMetadata]:
        """Workflow metadata of ``document`` when it is in one of the expected states, else None."""
        if document is None or document.pk is None:
            logger.warning("%s: document does not exist", action)
            return None

        workflow = document.get_workflow()
        if workflow is None:
            logger.warning("%s: %s is not a workflow document", action, document.reference)
            return None

        expected = set(expected_statuses)
        if workflow.status not in expected:
            logger.warning(
                "%s: %s has status %s, expected one of %s",
                action,
                document.reference,
                workflow.status,
                sorted(expected),
            )
            return None

        if bool(workflow.is_target) != is_target:
            logger.warning(
                "%s: %s is a %s copy",
                action,
                document.reference,
                "published" if workflow.is_target else "draft",
            )
            return None

        return workflow

    def _guard(self, document: Optional[Document], action: str) -> Optional[WorkflowMetadata]:
        guard = TRANSITIONS[action]
        return self.validate_workflow(document, guard.from_statuses, guard.is_target, action)

    def _config(self, workflow: WorkflowMetadata, action: str) -> Optional[WorkflowConfig]:
        config = self.config_manager.get_workflow_config(workflow.config_ref)
        if config is None:
            logger.warning("%s: workflow configuration %s not found", action, workflow.config_ref)
        return config

    def _resolve_target(self, workflow: WorkflowMetadata, base: DocumentReference) -> Optional[DocumentReference]:
        if not (workflow.target or "").strip():
            logger.warning("%s has no target", base)
            return None
        try:
            return parse_document_reference(workflow.target, base)
        except InvalidReference:
            logger.warning("%s has an invalid target [%s]", base, workflow.target)
            return None

    # ===========================================================
    # Rights
    # ===========================================================
    def _layer_readers(self, document: Document, config: WorkflowConfig) -> None:
        viewers = config.principals("viewer")
        self.rights.add_rights(document, (VIEW,), *viewers)
        commenters = config.principals("commenter")
        self.rights.add_rights(document, (VIEW, COMMENT), *commenters)

    def _draft_rights(self, document: Document, config: WorkflowConfig) -> None:
        if config.skip_draft_rights:
            return
        self.rights.set_rights(document, (VIEW, COMMENT, EDIT), *config.principals(*ALL_ROLES))
        self._layer_readers(document, config)

    def _moderation_rights(self, document: Document, config: WorkflowConfig) -> None:
        if config.skip_draft_rights:
            return
        self.rights.set_rights(document, (VIEW, COMMENT, EDIT), *config.principals("moderator", "validator"))
        self.rights.add_rights(document, (VIEW,), *config.principals("contributor"))
        self._layer_readers(document, config)

    def _validation_rights(self, document: Document, config: WorkflowConfig) -> None:
        if config.skip_draft_rights:
            return
        self.rights.set_rights(document, (VIEW, COMMENT, EDIT), *config.principals("validator"))
        self.rights.add_rights(document, (VIEW,), *config.principals("contributor", "moderator"))
        self._layer_readers(document, config)

    def _published_draft_rights(self, document: Document, config: WorkflowConfig) -> None:
        if config.skip_draft_rights:
            return
        self.rights.set_rights(document, (VIEW,), *config.principals(*ALL_ROLES))
        self._layer_readers(document, config)

    def _published_rights(self, document: Document, config: WorkflowConfig) -> None:
        # Published copies stay readable by everybody; only editing is revoked
        self.rights.set_rights(document, (EDIT,), *config.principals(*ALL_ROLES), allow=False)
        self.rights.add_rights(document, (COMMENT,), *config.principals("commenter"))

    def _descendants(self, reference: DocumentReference) -> List[Document]:
        out: List[Document] = []
        for child_ref in store.get_children(reference):
            child = self._load(child_ref)
            if child is None or child.get_workflow() is not None:
                continue
            out.append(child)
            out.extend(self._descendants(child_ref))
        return out

    def _propagate_rights(self, document: Document, workflow: WorkflowMetadata, user) -> None:
        """Children of a workflow that includes them share the workflow document's rights."""
        if not workflow.include_children:
            return
        for child in self._descendants(document.reference):
            child.set_rights_entries(store.clone_rights(document.get_rights()))
            store.save_document(child, user=user, comment="Updated workflow rights", minor_edit=True)

    def _set_children_hidden(self, document: Document, workflow: WorkflowMetadata, hidden: bool, user) -> None:
        if not workflow.include_children:
            return
        for child in self._descendants(document.reference):
            if child.hidden == hidden:
                continue
            child.hidden = hidden
            store.save_document(child, user=user, comment="Updated hidden status", minor_edit=True)

    # ===========================================================
    # Persistence
    # ===========================================================
    def _save(
        self,
        document: Document,
        user,
        comment: str,
        *,
        action: Optional[str] = None,
        from_status: str = "",
        minor_edit: bool = False,
    ) -> None:
        store.save_document(
            document,
            user=user,
            comment=comment,
            minor_edit=minor_edit,
            workflow_bypass=True,
        )
        if action:
            workflow = document.get_workflow()
            WorkflowTransition.objects.create(
                document=document,
                reference=document.reference.serialize(),
                action=action,
                from_status=from_status or "",
                to_status=workflow.status if workflow is not None else "",
                performed_by=_real_user(user),
                comment=store.truncate_comment(comment),
            )

    def _set_status(self, workflow: WorkflowMetadata, status: str, user) -> str:
        previous = workflow.status
        workflow.status = status
        workflow.status_author = _real_user(user)
        return previous

    def _step(
        self,
        reference: DocumentReference,
        *,
        user,
        action: str,
        comment: str,
        apply_rights: Optional[Callable[[Document, WorkflowConfig], None]],
    ) -> bool:
        """Shared body of the draft-side transitions."""
        document = self._load(reference)
        workflow = self._guard(document, action)
        if workflow is None:
            return False

        config = self._config(workflow, action)
        if config is None:
            return False

        to_status = TRANSITIONS[action].to_status
        previous = self._set_status(workflow, to_status, user)
        if apply_rights is not None:
            apply_rights(document, config)

        self._save(document, user, comment, action=action, from_status=previous)
        if apply_rights is not None:
            self._propagate_rights(document, workflow, user)

        logger.info("%s: %s %s → %s by %s", action, reference, previous, to_status, _username(user))
        return True

    # ===========================================================
    # Starting a workflow
    # ===========================================================
    def start_workflow(
        self,
        document: DocumentReference,
        config_name: str,
        target: DocumentReference,
        *,
        user,
        include_children: bool = False,
    ) -> bool:
        config = self.config_manager.get_workflow_config(config_name)
        if config is None:
            logger.warning("start_workflow: workflow configuration %s not found", config_name)
            return False

        if target == document:
            logger.warning("start_workflow: %s cannot be its own target", document)
            return False

        existing = self.get_draft_document(target, document.wiki)
        if existing is not None:
            logger.warning(
                "start_workflow: target %s already has the draft %s", target, existing
            )
            return False

        doc = store.get_document(document)
        workflow = doc.get_workflow()
        previous = ""
        if workflow is None:
            workflow = WorkflowMetadata()
            doc.set_workflow(workflow)
        else:
            previous = workflow.status

        workflow.config_ref = config.name
        workflow.target = target.compact(document.wiki)
        workflow.is_target = False
        workflow.include_children = include_children
        workflow.publication_comment = ""
        self._set_status(workflow, DRAFT, user)

        doc.hidden = config.drafts_hidden
        self._draft_rights(doc, config)

        self._save(
            doc,
            user,
            f"Started workflow {config.name} on document {document.compact()}",
            action="start_workflow",
            from_status=previous,
        )
        self._propagate_rights(doc, workflow, user)
        if config.drafts_hidden:
            self._set_children_hidden(doc, workflow, True, user)

        logger.info("Started workflow %s on %s targeting %s", config.name, document, target)
        return True

    def start_workflow_as_target(
        self,
        target: DocumentReference,
        config_name: str,
        *,
        user,
        include_children: bool = True,
    ) -> bool:
        """
        Mark an existing document as the published copy of itself. A draft
        can be created for it later.
        """
        config = self.config_manager.get_workflow_config(config_name)
        if config is None:
            logger.warning("start_workflow_as_target: workflow configuration %s not found", config_name)
            return False

        doc = self._load(target)
        if doc is None:
            logger.warning("start_workflow_as_target: %s does not exist", target)
            return False

        if doc.get_workflow() is not None:
            logger.warning("start_workflow_as_target: %s already has a workflow", target)
            return False

        workflow = WorkflowMetadata(
            config_ref=config.name,
            target=target.compact(),
            is_target=True,
            include_children=include_children,
        )
        self._set_status(workflow, PUBLISHED, user)
        doc.set_workflow(workflow)
        self._published_rights(doc, config)

        self._save(
            doc,
            user,
            f"Started workflow {config.name} on document {target.compact()}",
            action="start_workflow_as_target",
        )
        logger.info("Started workflow %s on published document %s", config.name, target)
        return True

    def create_draft_document(self, target: DocumentReference, *, user) -> Optional[DocumentReference]:
        """
        Draft synthesis for a published document is not supported yet:
        default location and naming of new drafts are undecided.
        """
        if self.get_draft_document(target) is not None:
            return None

        published = self._load(target)
        if self.validate_workflow(published, (PUBLISHED, ARCHIVED), PUBLISHED_COPY, "create_draft") is None:
            return None

        logger.warning(
            "create_draft: creating a draft for %s is not supported (requested by %s)",
            target,
            _username(user),
        )
        return None

    # ===========================================================
    # Draft-side transitions
    # ===========================================================
    def submit_for_moderation(self, document: DocumentReference, *, user) -> bool:
        doc = self._load(document)
        workflow = self._guard(doc, "submit_for_moderation")
        if workflow is None:
            return False

        config = self._config(workflow, "submit_for_moderation")
        if config is None:
            return False

        groups, users = config.principals("moderator")
        if not groups and not users:
            # No moderation step configured
            return self.submit_for_validation(document, user=user)

        return self._step(
            document,
            user=user,
            action="submit_for_moderation",
            comment="Submitted document for moderation",
            apply_rights=self._moderation_rights,
        )

    def refuse_moderation(self, document: DocumentReference, reason: str = "", *, user) -> bool:
        return self._step(
            document,
            user=user,
            action="refuse_moderation",
            comment=f"Refused moderation : {reason or ''}",
            apply_rights=self._draft_rights,
        )

    def submit_for_validation(self, document: DocumentReference, *, user) -> bool:
        return self._step(
            document,
            user=user,
            action="submit_for_validation",
            comment="Submitted document for validation",
            apply_rights=self._validation_rights,
        )

    def refuse_validation(self, document: DocumentReference, reason: str = "", *, user) -> bool:
        return self._step(
            document,
            user=user,
            action="refuse_validation",
            comment=f"Refused validation : {reason or ''}",
            apply_rights=self._draft_rights,
        )

    def validate(self, document: DocumentReference, *, user) -> bool:
        return self._step(
            document,
            user=user,
            action="validate",
            comment="Marked document as valid",
            apply_rights=None,
        )

    def edit_draft(self, document: DocumentReference, *, user) -> bool:
        return self._step(
            document,
            user=user,
            action="edit_draft",
            comment="Back to draft status to enable editing.",
            apply_rights=self._draft_rights,
        )

    # ===========================================================
    # Publishing
    # ===========================================================
    def publish(
        self,
        document: DocumentReference,
        *,
        user,
        comment: Optional[str] = None,
    ) -> Optional[DocumentReference]:
        draft = self._load(document)
        workflow = self._guard(draft, "publish")
        if workflow is None:
            return None

        config = self._config(workflow, "publish")
        if config is None:
            return None

        target = self._resolve_target(workflow, document)
        if target is None:
            return None
        if target == document:
            logger.warning("publish: %s targets itself", document)
            return None

        if config.allow_custom_publication_comment and comment:
            workflow.publication_comment = comment
        message = workflow.publication_comment or (
            f"Published new version of the document by {_username(user)}"
        )

        self._publish_copy(
            draft,
            target,
            workflow=workflow,
            config=config,
            user=user,
            message=message,
            root_draft=document,
            root_target=target,
        )
        self._complete_publication(draft, workflow, config, target, user)

        logger.info("Published %s to %s by %s", document, target, _username(user))
        return target

    def _publish_copy(
        self,
        source: Document,
        target: DocumentReference,
        *,
        workflow: WorkflowMetadata,
        config: WorkflowConfig,
        user,
        message: str,
        root_draft: DocumentReference,
        root_target: DocumentReference,
    ) -> Document:
        is_root = source.reference == root_draft

        published = store.get_document(target)
        store.copy_contents(source, published)
        published.hidden = False

        previous = ""
        if is_root:
            metadata = published.get_workflow()
            if metadata is None:
                metadata = WorkflowMetadata()
                published.set_workflow(metadata)
            else:
                previous = metadata.status
            metadata.config_ref = workflow.config_ref
            metadata.target = target.compact()
            metadata.is_target = True
            metadata.include_children = workflow.include_children
            metadata.publication_comment = workflow.publication_comment
            self._set_status(metadata, PUBLISHED, user)

        self._published_rights(published, config)

        if is_root:
            document_publishing.send(
                sender=Document,
                document=published,
                draft_reference=source.reference,
                user=user,
            )
        else:
            document_child_publishing.send(
                sender=Document,
                document=published,
                draft_reference=source.reference,
                workflow_document=root_draft,
                user=user,
            )

        self._save(
            published,
            user,
            message,
            action="publish" if is_root else None,
            from_status=previous,
        )

        if workflow.include_children:
            for child_ref in store.get_children(source.reference):
                child = self._load(child_ref)
                if child is None or child.get_workflow() is not None:
                    continue
                child_target = self.get_child_target(child_ref, root_draft, root_target)
                if child_target is None:
                    continue
                self._publish_copy(
                    child,
                    child_target,
                    workflow=workflow,
                    config=config,
                    user=user,
                    message=message,
                    root_draft=root_draft,
                    root_target=root_target,
                )

        return published

    def _complete_publication(
        self,
        draft: Document,
        workflow: WorkflowMetadata,
        config: WorkflowConfig,
        target: DocumentReference,
        user,
    ) -> None:
        previous = self._set_status(workflow, PUBLISHED, user)
        self._published_draft_rights(draft, config)
        self._save(
            draft,
            user,
            f"Published this document to {target.compact(draft.wiki)}",
            action="publish",
            from_status=previous,
        )
        self._propagate_rights(draft, workflow, user)

    def complete_publication(self, document: DocumentReference, *, user) -> bool:
        """
        Mark a draft published when its published copy was already written.
        Repairs a publish interrupted between the two saves.
        """
        draft = self._load(document)
        workflow = self.validate_workflow(
            draft, TRANSITIONS["publish"].from_statuses, DRAFT_COPY, "complete_publication"
        )
        if workflow is None:
            return False

        config = self._config(workflow, "complete_publication")
        if config is None:
            return False

        target = self._resolve_target(workflow, document)
        if target is None:
            return False

        published = self._load(target)
        published_workflow = published.get_workflow() if published is not None else None
        if published_workflow is None or not published_workflow.is_target:
            logger.warning("complete_publication: %s has no published copy at %s", document, target)
            return False

        self._complete_publication(draft, workflow, config, target, user)
        logger.info("Completed interrupted publication of %s to %s", document, target)
        return True

    # ===========================================================
    # Published-side transitions
    # ===========================================================
    def unpublish(
        self, document: DocumentReference, force_to_draft: bool = False, *, user
    ) -> Optional[DocumentReference]:
        published = self._load(document)
        workflow = self._guard(published, "unpublish")
        if workflow is None:
            return None
        return self._back_to_draft(published, workflow, force_to_draft, user, "unpublish")

    def unarchive(
        self, document: DocumentReference, force_to_draft: bool = False, *, user
    ) -> Optional[DocumentReference]:
        published = self._load(document)
        workflow = self._guard(published, "unarchive")
        if workflow is None:
            return None
        return self._back_to_draft(published, workflow, force_to_draft, user, "unarchive")

    def _back_to_draft(
        self,
        published: Document,
        workflow: WorkflowMetadata,
        force_to_draft: bool,
        user,
        action: str,
    ) -> Optional[DocumentReference]:
        config = self._config(workflow, action)
        if config is None:
            return None

        reference = published.reference
        draft_ref = self.get_draft_document(reference)
        if draft_ref is None:
            logger.warning(
                "%s: %s has no draft and creating one is not supported", action, reference
            )
            return None

        draft = self._load(draft_ref)
        draft_workflow = draft.get_workflow()

        if force_to_draft:
            store.copy_contents(published, draft)

        previous = self._set_status(draft_workflow, DRAFT, user)
        draft.hidden = config.drafts_hidden
        self._draft_rights(draft, config)
        self._save(
            draft,
            user,
            f"Created draft from published document {reference.compact()}.",
            action=action,
            from_status=previous,
        )
        self._propagate_rights(draft, draft_workflow, user)
        if config.drafts_hidden:
            self._set_children_hidden(draft, draft_workflow, True, user)

        WorkflowTransition.objects.create(
            document=published,
            reference=reference.serialize(),
            action=action,
            from_status=workflow.status,
            to_status="",
            performed_by=_real_user(user),
            comment="Unpublished document",
        )
        if workflow.include_children:
            for child in self._descendants(reference):
                store.delete_document(child.reference, user=user)
        store.delete_document(reference, user=user)

        logger.info("%s: %s removed, draft %s is editable again", action, reference, draft_ref)
        return draft_ref

    def archive(self, document: DocumentReference, *, user) -> bool:
        published = self._load(document)
        workflow = self._guard(published, "archive")
        if workflow is None:
            return False

        previous = self._set_status(workflow, ARCHIVED, user)
        published.hidden = True
        self._save(
            published,
            user,
            f"Archived document by {_username(user)}.",
            action="archive",
            from_status=previous,
        )
        self._set_children_hidden(published, workflow, True, user)

        self._cascade_to_draft(document, PUBLISHED, ARCHIVED, user, "archive")
        logger.info("Archived %s by %s", document, _username(user))
        return True

    def publish_from_archive(self, document: DocumentReference, *, user) -> bool:
        published = self._load(document)
        workflow = self._guard(published, "publish_from_archive")
        if workflow is None:
            return False

        previous = self._set_status(workflow, PUBLISHED, user)
        published.hidden = False
        self._save(
            published,
            user,
            "Published document from archive",
            action="publish_from_archive",
            from_status=previous,
        )
        self._set_children_hidden(published, workflow, False, user)

        self._cascade_to_draft(document, ARCHIVED, PUBLISHED, user, "publish_from_archive")
        logger.info("Published %s from archive by %s", document, _username(user))
        return True

    def _cascade_to_draft(
        self,
        target: DocumentReference,
        from_status: str,
        to_status: str,
        user,
        action: str,
    ) -> None:
        """Keep an untouched draft in step with its published copy."""
        draft_ref = self.get_draft_document(target)
        if draft_ref is None:
            return
        draft = self._load(draft_ref)
        draft_workflow = draft.get_workflow() if draft is not None else None
        if draft_workflow is None or draft_workflow.status != from_status:
            return

        self._set_status(draft_workflow, to_status, user)
        self._save(
            draft,
            user,
            f"Status of the published document {target.compact()} changed to {to_status}",
            action=action,
            from_status=from_status,
            minor_edit=True,
        )
