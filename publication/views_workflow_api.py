# publication/views_workflow_api.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from rest_framework import status, viewsets
from rest_framework.exceptions import NotAuthenticated, NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from publication.exceptions import InvalidReference
from publication.filters import WorkflowTransitionFilter
from publication.models import Document, WorkflowTransition
from publication.references import DocumentReference, parse_document_reference
from publication.serializers_workflow import (
    WorkflowActionSerializer,
    WorkflowMetadataSerializer,
    WorkflowTransitionSerializer,
)
from publication.workflows import CONTRIBUTE, EDIT, MODERATE, required_role
from publication.workflows.engine import PublicationWorkflow
from publication.workflows.rights import EDIT as EDIT_LEVEL, has_access


# =============================================================
# Action registry
# =============================================================
#
# action -> (required role, needs an existing document, handler)
#
# Transitions take their role from the transition table.

Handler = Callable[[PublicationWorkflow, Dict[str, Any], Any], Any]


def _start(wf, d, user):
    if d["target"] is None:
        raise ValidationError({"target": "This field is required."})
    return wf.start_workflow(
        d["document"],
        d["config"],
        d["target"],
        user=user,
        include_children=d.get("include_children", False),
    )


ACTIONS: Dict[str, Tuple[str, bool, Handler]] = {
    "start": (EDIT, False, _start),
    "start-as-target": (
        EDIT,
        True,
        lambda wf, d, u: wf.start_workflow_as_target(
            d["document"], d["config"], user=u, include_children=d.get("include_children", True)
        ),
    ),
    "create-draft": (CONTRIBUTE, True, lambda wf, d, u: wf.create_draft_document(d["document"], user=u)),
    "submit-for-moderation": (required_role("submit_for_moderation"), True, lambda wf, d, u: wf.submit_for_moderation(d["document"], user=u)),
    "refuse-moderation": (required_role("refuse_moderation"), True, lambda wf, d, u: wf.refuse_moderation(d["document"], d["reason"], user=u)),
    "submit-for-validation": (required_role("submit_for_validation"), True, lambda wf, d, u: wf.submit_for_validation(d["document"], user=u)),
    "refuse-validation": (required_role("refuse_validation"), True, lambda wf, d, u: wf.refuse_validation(d["document"], d["reason"], user=u)),
    "validate": (required_role("validate"), True, lambda wf, d, u: wf.validate(d["document"], user=u)),
    "publish": (required_role("publish"), True, lambda wf, d, u: wf.publish(d["document"], user=u, comment=d["comment"])),
    "unpublish": (required_role("unpublish"), True, lambda wf, d, u: wf.unpublish(d["document"], d["force_to_draft"], user=u)),
    "edit-draft": (required_role("edit_draft"), True, lambda wf, d, u: wf.edit_draft(d["document"], user=u)),
    "archive": (required_role("archive"), True, lambda wf, d, u: wf.archive(d["document"], user=u)),
    "unarchive": (required_role("unarchive"), True, lambda wf, d, u: wf.unarchive(d["document"], d["force_to_draft"], user=u)),
    "publish-from-archive": (required_role("publish_from_archive"), True, lambda wf, d, u: wf.publish_from_archive(d["document"], user=u)),
}


# =============================================================
# Helpers
# =============================================================

def _require_auth(user) -> None:
    """
    Enforce authentication in a way that returns DRF's normal 401/403
    instead of Django login redirects (302) under session-based setups.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated("Authentication credentials were not provided.")


def _parse(value: Optional[str], field: str) -> DocumentReference:
    if not value:
        raise ValidationError({field: "This field is required."})
    try:
        return parse_document_reference(value)
    except InvalidReference as exc:
        raise ValidationError({field: str(exc)})


def _check_role(workflow: PublicationWorkflow, user, role: str, document: Optional[Document]) -> None:
    if role == EDIT:
        allowed = has_access(user, EDIT_LEVEL, document)
    elif role == CONTRIBUTE:
        allowed = workflow.roles.can_contribute(user, document)
    elif role == MODERATE:
        allowed = workflow.roles.can_moderate(user, document)
    else:
        allowed = workflow.roles.can_validate(user, document)

    if not allowed:
        raise PermissionDenied(f"You are not allowed to {role} this document.")


def _result(value: Any) -> Tuple[bool, Optional[str]]:
    if isinstance(value, DocumentReference):
        return True, value.serialize()
    return bool(value), None


# =============================================================
# API: Execute a workflow action
# =============================================================

class WorkflowActionView(APIView):
    """
    POST /publication/workflow/<action>/

    Body:
        { "document": "xwiki:Drafts.Topic.WebHome", ... }

    The caller's role is checked before the engine runs. A refused
    transition answers 409 with ok=false.
    """
    # Auth is enforced explicitly to get 401 instead of login redirects.
    permission_classes = [AllowAny]

    def post(self, request, action: str):
        _require_auth(request.user)

        entry = ACTIONS.get(action)
        if entry is None:
            raise NotFound(f"Unknown workflow action '{action}'.")
        role, needs_document, handler = entry

        serializer = WorkflowActionSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        document = Document.objects.get_by_reference(data["document"])
        if document is None and needs_document:
            raise NotFound(f"Document {data['document']} does not exist.")

        workflow = PublicationWorkflow()
        _check_role(workflow, request.user, role, document)

        ok, reference = _result(handler(workflow, data, request.user))

        return Response(
            {
                "action": action,
                "document": data["document"].serialize(),
                "ok": ok,
                "result": reference,
            },
            status=status.HTTP_200_OK if ok else status.HTTP_409_CONFLICT,
        )


# =============================================================
# API: Lookups
# =============================================================

class DraftLookupView(APIView):
    """
    GET /publication/workflow/draft/?target=<reference>[&wiki=<wiki>]
    """
    permission_classes = [AllowAny]

    def get(self, request):
        _require_auth(request.user)

        target = _parse(request.query_params.get("target"), "target")
        wiki = request.query_params.get("wiki") or None

        draft = PublicationWorkflow().get_draft_document(target, wiki)
        return Response(
            {
                "target": target.serialize(),
                "draft": draft.serialize() if draft else None,
            }
        )


class WorkflowStatusView(APIView):
    """
    GET /publication/workflow/status/?document=<reference>

    Returns the workflow metadata and the caller's roles on the document.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        _require_auth(request.user)

        reference = _parse(request.query_params.get("document"), "document")
        document = Document.objects.get_by_reference(reference)
        if document is None:
            raise NotFound(f"Document {reference} does not exist.")

        workflow = PublicationWorkflow()
        metadata = document.get_workflow()

        return Response(
            {
                "document": reference.serialize(),
                "workflow": WorkflowMetadataSerializer(metadata).data if metadata else None,
                "roles": workflow.roles.roles_for(request.user, document),
            }
        )


# =============================================================
# API: Transition audit log
# =============================================================

class WorkflowTransitionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = WorkflowTransition.objects.select_related("performed_by").all()
    serializer_class = WorkflowTransitionSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = WorkflowTransitionFilter
