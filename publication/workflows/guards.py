# publication/workflows/guards.py

from django.core.exceptions import PermissionDenied
from django.db import models


class WorkflowWriteGuardMixin(models.Model):
    """
    Prevent direct modification of workflow-controlled fields outside the
    publication workflow engine.

    Status and copy kind only move through ``PublicationWorkflow``; a plain
    ``.save()`` that changes any of WORKFLOW_FIELDS on an existing row is
    rejected.

    Escape hatch:
      - pass _workflow_bypass=True to save(), OR
      - set instance._workflow_bypass = True
    The engine and data repair commands use it.
    """

    WORKFLOW_FIELDS = ("status", "is_target")
    WORKFLOW_BYPASS_KWARG = "_workflow_bypass"

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        bypass = bool(
            kwargs.pop(self.WORKFLOW_BYPASS_KWARG, False)
            or getattr(self, "_workflow_bypass", False)
        )

        if not bypass and self.pk is not None and self.WORKFLOW_FIELDS:
            old = (
                self.__class__.objects.filter(pk=self.pk)
                .values(*self.WORKFLOW_FIELDS)
                .first()
            )
            if old is not None:
                for field in self.WORKFLOW_FIELDS:
                    if old[field] != getattr(self, field, None):
                        raise PermissionDenied(
                            f"Direct modification of '{field}' is forbidden. "
                            "Use publication workflow transitions."
                        )

        return super().save(*args, **kwargs)
