# publication/admin.py

from django.contrib import admin

from .models import (
    Attachment,
    Document,
    RightsEntry,
    WorkflowConfig,
    WorkflowMetadata,
    WorkflowTransition,
)


# =============================================================
# Documents
# =============================================================

class RightsEntryInline(admin.TabularInline):
    model = RightsEntry
    extra = 0


class AttachmentInline(admin.TabularInline):
    model = Attachment
    extra = 0
    fields = ("filename", "mimetype")


class WorkflowMetadataInline(admin.StackedInline):
    model = WorkflowMetadata
    extra = 0
    can_delete = False
    # Status fields only move through workflow transitions
    readonly_fields = ("status", "is_target", "status_author")


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ("wiki", "space", "name", "title", "hidden", "version", "updated_at")
    list_filter = ("wiki", "hidden")
    search_fields = ("space", "name", "title")
    ordering = ("wiki", "space", "name")
    inlines = (WorkflowMetadataInline, RightsEntryInline, AttachmentInline)


# =============================================================
# Workflow configuration
# =============================================================

@admin.register(WorkflowConfig)
class WorkflowConfigAdmin(admin.ModelAdmin):
    list_display = ("name", "contributor", "moderator", "validator", "move_strategy")
    search_fields = ("name",)


# =============================================================
# Workflow transitions (READ-ONLY AUDIT LOG)
# =============================================================

@admin.register(WorkflowTransition)
class WorkflowTransitionAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "action",
        "from_status",
        "to_status",
        "performed_by",
        "created_at",
    )
    list_filter = (
        "action",
        "from_status",
        "to_status",
    )
    search_fields = (
        "reference",
        "performed_by__username",
    )
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in WorkflowTransition._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
