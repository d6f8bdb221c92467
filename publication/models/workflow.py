# publication/models/workflow.py

from __future__ import annotations

from typing import List, Tuple

from django.conf import settings
from django.db import models
from django.db.models import Q

from publication.models.core import Document, TimeStampedModel
from publication.workflows.guards import WorkflowWriteGuardMixin


USER_PREFIX = "user:"


def split_principals(value: str) -> Tuple[List[str], List[str]]:
    """
    Split a comma-separated role value into (groups, users).

    Entries prefixed with ``user:`` name a single user, everything else is a
    group name.
    """
    groups: List[str] = []
    users: List[str] = []
    for raw in (value or "").split(","):
        item = raw.strip()
        if not item:
            continue
        if item.startswith(USER_PREFIX):
            name = item[len(USER_PREFIX):].strip()
            if name:
                users.append(name)
        else:
            groups.append(item)
    return groups, users


# ============================================================
# Workflow configuration
# ============================================================
class WorkflowConfig(TimeStampedModel):
    class MoveStrategy(models.TextChoices):
        DO_NOTHING = "do_nothing", "Do nothing"
        MOVE_TARGET_IF_UNPUBLISHED = "move_target_if_unpublished", "Move target if unpublished"
        MOVE_TARGET = "move_target", "Move target"
        MOVE_DRAFTS = "move_drafts", "Move drafts"
        MOVE_ALL = "move_all", "Move all"

    name = models.CharField(max_length=255, unique=True)

    contributor = models.CharField(max_length=512, blank=True)
    moderator = models.CharField(max_length=512, blank=True)
    validator = models.CharField(max_length=512, blank=True)
    viewer = models.CharField(max_length=512, blank=True)
    commenter = models.CharField(max_length=512, blank=True)

    default_draft_space = models.CharField(max_length=512, blank=True)
    default_target_space = models.CharField(max_length=512, blank=True)

    drafts_hidden = models.BooleanField(default=True)
    skip_draft_rights = models.BooleanField(default=False)
    allow_custom_publication_comment = models.BooleanField(default=False)

    move_strategy = models.CharField(
        max_length=32,
        choices=MoveStrategy.choices,
        default=MoveStrategy.MOVE_TARGET,
    )

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def principals(self, *roles: str) -> Tuple[List[str], List[str]]:
        """Union of groups and users configured for the given roles."""
        groups: List[str] = []
        users: List[str] = []
        for role in roles:
            g, u = split_principals(getattr(self, role, ""))
            groups.extend(x for x in g if x not in groups)
            users.extend(x for x in u if x not in users)
        return groups, users


# ============================================================
# Workflow metadata
# ============================================================
class WorkflowMetadata(WorkflowWriteGuardMixin, TimeStampedModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        MODERATING = "moderating", "Moderating"
        VALIDATING = "validating", "Validating"
        VALID = "valid", "Valid"
        PUBLISHED = "published", "Published"
        ARCHIVED = "archived", "Archived"

    document = models.OneToOneField(
        Document,
        on_delete=models.CASCADE,
        related_name="workflow",
    )

    # Mirrors document.wiki for the uniqueness constraints below
    wiki = models.CharField(max_length=64, editable=False)

    config_ref = models.CharField(max_length=255)
    target = models.CharField(max_length=1024, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    is_target = models.BooleanField(default=False)
    include_children = models.BooleanField(default=False)

    status_author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    publication_comment = models.TextField(blank=True)

    class Meta:
        verbose_name_plural = "workflow metadata"
        indexes = [
            models.Index(fields=["target", "is_target"], name="wfmeta_target_kind_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["wiki", "target"],
                condition=Q(is_target=False) & ~Q(target=""),
                name="uniq_draft_per_target",
            ),
            models.UniqueConstraint(
                fields=["wiki", "target"],
                condition=Q(is_target=True) & ~Q(target=""),
                name="uniq_published_per_target",
            ),
        ]

    def __str__(self):
        kind = "published" if self.is_target else "draft"
        return f"{self.status} {kind} -> {self.target}"

    def save(self, *args, **kwargs):
        self.wiki = self.document.wiki
        return super().save(*args, **kwargs)


# ============================================================
# Transition audit log
# ============================================================
class WorkflowTransition(models.Model):
    """
    Immutable audit log of publication workflow transitions.
    """

    document = models.ForeignKey(
        Document,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transitions",
    )
    reference = models.CharField(max_length=1024)

    action = models.CharField(max_length=64)
    from_status = models.CharField(max_length=16, blank=True)
    to_status = models.CharField(max_length=16, blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="publication_transitions",
    )
    comment = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["reference"], name="wftransition_reference_idx"),
        ]

    def __str__(self):
        who = self.performed_by.username if self.performed_by else "system"
        return f"{self.reference}: {self.action} {self.from_status} → {self.to_status} by {who}"
