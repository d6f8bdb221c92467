# publication/workflows/consistency.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from publication.exceptions import InvalidReference
from publication.models import Document, WorkflowMetadata, WorkflowTransition
from publication.references import DocumentReference, parse_document_reference
from publication.workflows import PUBLISHED, VALID, VALIDATING

logger = logging.getLogger(__name__)


INTERRUPTED_PUBLICATION = "interrupted_publication"
DUPLICATE_DRAFTS = "duplicate_drafts"
MISSING_PUBLISHED_COPY = "missing_published_copy"
INVALID_TARGET = "invalid_target"


@dataclass(frozen=True)
class Inconsistency:
    kind: str
    document: DocumentReference
    detail: str

    def __str__(self):
        return f"[{self.kind}] {self.document}: {self.detail}"


def _last_transition_id(document: Document, **filters) -> Optional[int]:
    return (
        WorkflowTransition.objects.filter(document=document, **filters)
        .order_by("-id")
        .values_list("id", flat=True)
        .first()
    )


def _is_interrupted(metadata: WorkflowMetadata, target: DocumentReference) -> bool:
    """
    The published copy logged a publish that the draft never followed
    with a transition of its own.
    """
    if metadata.status not in (VALIDATING, VALID):
        return False

    published = Document.objects.get_by_reference(target)
    if published is None:
        return False
    published_workflow = published.get_workflow()
    if published_workflow is None or not published_workflow.is_target:
        return False
    if published_workflow.status != PUBLISHED:
        return False

    published_at = _last_transition_id(published, action="publish")
    if published_at is None:
        return False
    draft_at = _last_transition_id(metadata.document)
    return draft_at is None or published_at > draft_at


def find_inconsistencies() -> List[Inconsistency]:
    issues: List[Inconsistency] = []
    claims: Dict[Tuple[str, str], List[DocumentReference]] = defaultdict(list)

    drafts = (
        WorkflowMetadata.objects.filter(is_target=False)
        .exclude(target="")
        .select_related("document")
        .order_by("pk")
    )

    for metadata in drafts.iterator():
        draft = metadata.document.reference
        try:
            target = parse_document_reference(metadata.target, draft)
        except InvalidReference:
            issues.append(Inconsistency(INVALID_TARGET, draft, f"cannot parse target [{metadata.target}]"))
            continue

        claims[(metadata.wiki, metadata.target)].append(draft)

        if _is_interrupted(metadata, target):
            issues.append(
                Inconsistency(
                    INTERRUPTED_PUBLICATION,
                    draft,
                    f"published to {target} but still {metadata.status}",
                )
            )
            continue

        if metadata.status == PUBLISHED:
            published = Document.objects.get_by_reference(target)
            published_workflow = published.get_workflow() if published is not None else None
            if published_workflow is None or not published_workflow.is_target:
                issues.append(
                    Inconsistency(
                        MISSING_PUBLISHED_COPY,
                        draft,
                        f"published but {target} is not its published copy",
                    )
                )

    for (_wiki, target), refs in claims.items():
        if len(refs) > 1:
            for ref in refs[1:]:
                issues.append(
                    Inconsistency(
                        DUPLICATE_DRAFTS,
                        ref,
                        f"target {target} is also claimed by {refs[0]}",
                    )
                )

    logger.info("Publication consistency scan found %d issue(s)", len(issues))
    return issues


def repair_interrupted_publications(*, user=None, workflow=None, issues: Optional[List[Inconsistency]] = None) -> int:
    """Finish publications whose draft save never happened."""
    if workflow is None:
        from publication.workflows.engine import PublicationWorkflow

        workflow = PublicationWorkflow()

    if issues is None:
        issues = find_inconsistencies()

    repaired = 0
    for issue in issues:
        if issue.kind != INTERRUPTED_PUBLICATION:
            continue
        if workflow.complete_publication(issue.document, user=user):
            repaired += 1
    return repaired
