import pytest

from publication.models import WorkflowMetadata, WorkflowTransition
from publication.tests.helpers import CONFIG_NAME, ref, reload
from publication.workflows import (
    DRAFT,
    DRAFT_COPY,
    MODERATING,
    PUBLISHED,
    PUBLISHED_COPY,
    STATUSES,
    TRANSITIONS,
    VALID,
    VALIDATING,
    is_allowed,
)
from publication.workflows.rights import COMMENT, EDIT, VIEW, has_access


pytestmark = pytest.mark.django_db


def _status(document):
    return reload(document).get_workflow().status


def test_start_workflow_marks_draft(draft, contributor):
    metadata = draft.get_workflow()

    assert metadata.status == DRAFT
    assert metadata.is_target is False
    assert metadata.target == "Public.Topic.WebHome"
    assert metadata.config_ref == CONFIG_NAME
    assert metadata.status_author == contributor
    assert draft.hidden is True
    assert draft.comment == f"Started workflow {CONFIG_NAME} on document Drafts.Topic.WebHome"


def test_draft_rights_give_all_roles_edit(draft, contributor, moderator, validator, outsider):
    for user in (contributor, moderator, validator):
        assert has_access(user, EDIT, draft)
        assert has_access(user, COMMENT, draft)
    assert not has_access(outsider, VIEW, draft)


def test_full_moderated_path(draft, workflow, contributor, moderator, validator, outsider):
    assert workflow.submit_for_moderation(draft.reference, user=contributor)
    moderating = reload(draft)
    assert moderating.get_workflow().status == MODERATING
    assert not has_access(contributor, EDIT, moderating)
    assert has_access(contributor, VIEW, moderating)
    assert has_access(moderator, EDIT, moderating)

    assert workflow.submit_for_validation(draft.reference, user=moderator)
    validating = reload(draft)
    assert validating.get_workflow().status == VALIDATING
    assert not has_access(moderator, EDIT, validating)
    assert has_access(validator, EDIT, validating)

    assert workflow.validate(draft.reference, user=validator)
    assert _status(draft) == VALID

    target = workflow.publish(draft.reference, user=validator)
    assert target == ref("xwiki:Public.Topic.WebHome")
    assert _status(draft) == PUBLISHED

    actions = list(
        WorkflowTransition.objects.filter(reference=draft.reference.serialize())
        .order_by("id")
        .values_list("action", "from_status", "to_status")
    )
    assert actions == [
        ("start_workflow", "", DRAFT),
        ("submit_for_moderation", DRAFT, MODERATING),
        ("submit_for_validation", MODERATING, VALIDATING),
        ("validate", VALIDATING, VALID),
        ("publish", VALID, PUBLISHED),
    ]


def test_refusals_return_to_draft(draft, workflow, contributor, moderator, validator):
    assert workflow.submit_for_moderation(draft.reference, user=contributor)
    assert workflow.refuse_moderation(draft.reference, "too short", user=moderator)

    refused = reload(draft)
    assert refused.get_workflow().status == DRAFT
    assert refused.comment == "Refused moderation : too short"
    assert has_access(contributor, EDIT, refused)

    assert workflow.submit_for_validation(draft.reference, user=moderator)
    assert workflow.refuse_validation(draft.reference, "needs sources", user=validator)
    assert _status(draft) == DRAFT
    assert reload(draft).comment == "Refused validation : needs sources"


def test_submit_without_moderators_goes_to_validation(draft, workflow, workflow_config, contributor):
    workflow_config.moderator = ""
    workflow_config.save()

    assert workflow.submit_for_moderation(draft.reference, user=contributor)
    assert _status(draft) == VALIDATING


def test_viewers_and_commenters_are_layered(draft, workflow, workflow_config, contributor, outsider):
    workflow_config.commenter = "user:outsider"
    workflow_config.save()

    assert workflow.submit_for_moderation(draft.reference, user=contributor)
    moderating = reload(draft)
    assert has_access(outsider, COMMENT, moderating)
    assert not has_access(outsider, EDIT, moderating)


def test_skip_draft_rights_leaves_rights_alone(db, make_document, workflow, workflow_config, contributor):
    workflow_config.skip_draft_rights = True
    workflow_config.save()
    document = make_document("xwiki:Drafts.Free.WebHome")

    assert workflow.start_workflow(
        document.reference, CONFIG_NAME, ref("xwiki:Public.Free.WebHome"), user=contributor
    )
    assert reload(document).get_rights() == []


GUARDED_CASES = [
    pytest.param(action, status, is_target, id=f"{action}-{status}-{'published' if is_target else 'draft'}")
    for action in sorted(TRANSITIONS)
    for status in sorted(STATUSES)
    for is_target in (DRAFT_COPY, PUBLISHED_COPY)
    if not is_allowed(action, status, is_target)
]


@pytest.mark.parametrize("action, status, is_target", GUARDED_CASES)
def test_transition_outside_its_guard_is_a_no_op(
    make_document, workflow, workflow_config, validator, action, status, is_target
):
    document = make_document("xwiki:Space.Page.WebHome", content="content")
    WorkflowMetadata(
        document=document,
        config_ref=workflow_config.name,
        target="Other.Page.WebHome",
        status=status,
        is_target=is_target,
    ).save(_workflow_bypass=True)
    before = reload(document)

    result = getattr(workflow, action)(document.reference, user=validator)

    assert result is False or result is None
    after = reload(document)
    assert after.version == before.version
    assert after.get_workflow().status == status
    assert after.get_workflow().is_target is is_target
    assert not WorkflowTransition.objects.exists()



def test_transitions_on_unknown_document_fail(db, workflow, validator):
    missing = ref("xwiki:Nowhere.WebHome")
    assert workflow.submit_for_validation(missing, user=validator) is False
    assert workflow.publish(missing, user=validator) is None


def test_missing_configuration_blocks_start(db, make_document, workflow, contributor):
    document = make_document("xwiki:Drafts.Orphan.WebHome")
    assert workflow.start_workflow(
        document.reference, "No.Such.Config", ref("xwiki:Public.Orphan.WebHome"), user=contributor
    ) is False
    assert reload(document).get_workflow() is None


def test_draft_side_action_on_published_copy_fails(published, workflow, validator):
    assert workflow.submit_for_validation(published.reference, user=validator) is False
    assert reload(published).get_workflow().status == PUBLISHED
