# publication/models/core.py

from __future__ import annotations

from typing import List, Optional

from django.conf import settings
from django.db import models

from publication.references import DocumentReference, split_spaces


_UNSET = object()


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Document
# ============================================================
class DocumentQuerySet(models.QuerySet):
    def for_reference(self, reference: DocumentReference):
        return self.filter(
            wiki=reference.wiki,
            space=reference.serialized_spaces,
            name=reference.name,
        )

    def get_by_reference(self, reference: DocumentReference) -> Optional["Document"]:
        return self.for_reference(reference).first()


class Document(TimeStampedModel):
    """
    A content node addressed by ``wiki:Space.SubSpace.Page``.

    Workflow metadata, rights and attachments are loaded lazily and kept
    in memory once touched; ``publication.documents.save_document``
    writes them back together with the row.
    """

    wiki = models.CharField(max_length=64)
    space = models.CharField(max_length=512)
    name = models.CharField(max_length=255)

    title = models.CharField(max_length=255, blank=True)
    content = models.TextField(blank=True)
    hidden = models.BooleanField(default=False)

    version = models.PositiveIntegerField(default=0)
    comment = models.CharField(max_length=1023, blank=True)

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_documents",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="authored_documents",
    )

    objects = DocumentQuerySet.as_manager()

    class Meta:
        ordering = ["wiki", "space", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["wiki", "space", "name"],
                name="uniq_document_reference",
            ),
        ]

    def __str__(self):
        return self.reference.serialize()

    # --------------------------------------------------------
    # Addressing
    # --------------------------------------------------------
    @property
    def reference(self) -> DocumentReference:
        return DocumentReference(self.wiki, split_spaces(self.space), self.name)

    def set_reference(self, reference: DocumentReference) -> None:
        self.wiki = reference.wiki
        self.space = reference.serialized_spaces
        self.name = reference.name

    # --------------------------------------------------------
    # Workflow metadata
    # --------------------------------------------------------
    def get_workflow(self):
        state = getattr(self, "_workflow_state", _UNSET)
        if state is _UNSET:
            from publication.models.workflow import WorkflowMetadata

            state = None
            if self.pk is not None:
                state = WorkflowMetadata.objects.filter(document_id=self.pk).first()
            self._workflow_state = state
        return state

    def set_workflow(self, metadata) -> None:
        self._workflow_state = metadata
        self._workflow_dirty = True

    def remove_workflow(self) -> None:
        self.set_workflow(None)

    # --------------------------------------------------------
    # Rights
    # --------------------------------------------------------
    def get_rights(self) -> List["RightsEntry"]:
        state = getattr(self, "_rights_state", _UNSET)
        if state is _UNSET:
            state = list(self.rights.all()) if self.pk is not None else []
            self._rights_state = state
        return state

    def set_rights_entries(self, entries: List["RightsEntry"]) -> None:
        self._rights_state = list(entries)
        self._rights_dirty = True

    # --------------------------------------------------------
    # Attachments
    # --------------------------------------------------------
    def get_attachments(self) -> List["Attachment"]:
        state = getattr(self, "_attachments_state", _UNSET)
        if state is _UNSET:
            state = list(self.attachments.all()) if self.pk is not None else []
            self._attachments_state = state
        return state

    def set_attachments(self, attachments: List["Attachment"]) -> None:
        self._attachments_state = list(attachments)
        self._attachments_dirty = True

    def get_attachment(self, filename: str) -> Optional["Attachment"]:
        for attachment in self.get_attachments():
            if attachment.filename == filename:
                return attachment
        return None


# ============================================================
# Attachment
# ============================================================
class Attachment(TimeStampedModel):
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name="attachments",
    )
    filename = models.CharField(max_length=255)
    mimetype = models.CharField(max_length=128, blank=True)
    content = models.BinaryField(default=bytes, blank=True)

    class Meta:
        ordering = ["filename"]
        unique_together = ("document", "filename")

    def __str__(self):
        return f"{self.document}@{self.filename}"


# ============================================================
# Rights
# ============================================================
class RightsEntry(models.Model):
    class Level(models.TextChoices):
        VIEW = "view", "View"
        COMMENT = "comment", "Comment"
        EDIT = "edit", "Edit"

    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name="rights",
    )
    levels = models.JSONField(default=list)
    groups = models.JSONField(default=list, blank=True)
    users = models.JSONField(default=list, blank=True)
    allow = models.BooleanField(default=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "rights entries"

    def __str__(self):
        verb = "allow" if self.allow else "deny"
        return f"{verb} {','.join(self.levels)} on {self.document_id}"

    def matches(self, level: str, username: str, group_names) -> bool:
        if level not in (self.levels or []):
            return False
        if username in (self.users or []):
            return True
        return bool(set(self.groups or []) & set(group_names))
