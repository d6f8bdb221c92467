# publication/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views_workflow_api import (
    DraftLookupView,
    WorkflowActionView,
    WorkflowStatusView,
    WorkflowTransitionViewSet,
)

app_name = "publication"

router = DefaultRouter()
router.register(r"transitions", WorkflowTransitionViewSet, basename="transition")

urlpatterns = [
    path("workflow/draft/", DraftLookupView.as_view(), name="workflow-draft"),
    path("workflow/status/", WorkflowStatusView.as_view(), name="workflow-status"),
    path("workflow/<str:action>/", WorkflowActionView.as_view(), name="workflow-action"),
    path("", include(router.urls)),
]
