# publication/filters.py
import django_filters as df

from .models import WorkflowTransition


class WorkflowTransitionFilter(df.FilterSet):
    reference = df.CharFilter(field_name="reference", lookup_expr="icontains")
    action = df.CharFilter(field_name="action")
    performed_by = df.CharFilter(field_name="performed_by__username")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = WorkflowTransition
        fields = ["reference", "action", "from_status", "to_status", "performed_by", "created_at"]
