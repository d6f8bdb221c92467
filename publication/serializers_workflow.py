# publication/serializers_workflow.py
from __future__ import annotations

from typing import Any, Dict

from django.conf import settings
from rest_framework import serializers

from publication.exceptions import InvalidReference
from publication.models import WorkflowMetadata, WorkflowTransition
from publication.references import parse_document_reference
from publication.workflows import allowed_actions


class WorkflowActionSerializer(serializers.Serializer):
    document = serializers.CharField()
    target = serializers.CharField(required=False, allow_blank=True)
    config = serializers.CharField(required=False, allow_blank=True)
    include_children = serializers.BooleanField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    force_to_draft = serializers.BooleanField(required=False, default=False)
    comment = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_document(self, value: str):
        try:
            return parse_document_reference(value)
        except InvalidReference as exc:
            raise serializers.ValidationError(str(exc))

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        target = (attrs.get("target") or "").strip()
        if target:
            try:
                attrs["target"] = parse_document_reference(target, attrs["document"])
            except InvalidReference as exc:
                raise serializers.ValidationError({"target": str(exc)})
        else:
            attrs["target"] = None

        attrs["config"] = (attrs.get("config") or "").strip() or settings.PUBLICATION_DEFAULT_CONFIG
        return attrs


class WorkflowMetadataSerializer(serializers.ModelSerializer):
    document = serializers.SerializerMethodField()
    status_author = serializers.SerializerMethodField()
    allowed_actions = serializers.SerializerMethodField()

    class Meta:
        model = WorkflowMetadata
        fields = (
            "document",
            "config_ref",
            "target",
            "status",
            "is_target",
            "include_children",
            "status_author",
            "publication_comment",
            "allowed_actions",
            "updated_at",
        )
        read_only_fields = fields

    def get_document(self, obj) -> str:
        return obj.document.reference.serialize()

    def get_status_author(self, obj):
        return obj.status_author.username if obj.status_author else None

    def get_allowed_actions(self, obj):
        return allowed_actions(obj.status, obj.is_target)


class WorkflowTransitionSerializer(serializers.ModelSerializer):
    performed_by_username = serializers.CharField(source="performed_by.username", read_only=True)

    class Meta:
        model = WorkflowTransition
        fields = (
            "id",
            "reference",
            "action",
            "from_status",
            "to_status",
            "performed_by",
            "performed_by_username",
            "comment",
            "created_at",
        )
        read_only_fields = fields
