# publication/tasks.py
from __future__ import annotations

from celery import shared_task
from django.contrib.auth import get_user_model

from publication.workflows.consistency import (
    find_inconsistencies,
    repair_interrupted_publications,
)


@shared_task
def scan_publication_consistency(repair: bool = False, performed_by_user_id: int | None = None) -> int:
    user = None
    if performed_by_user_id:
        User = get_user_model()
        user = User.objects.filter(id=performed_by_user_id).first()

    issues = find_inconsistencies()
    if repair:
        repair_interrupted_publications(user=user, issues=issues)
    return len(issues)
