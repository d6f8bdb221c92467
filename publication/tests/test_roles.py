import logging

import pytest
from django.contrib.auth.models import AnonymousUser, Group, Permission
from django.db import DatabaseError

from publication.tests.helpers import reload
from publication.workflows.config import WorkflowConfigManager
from publication.workflows.roles import PublicationRoles


pytestmark = pytest.mark.django_db


@pytest.fixture
def roles():
    return PublicationRoles()


def test_role_membership_follows_configuration(draft, roles, contributor, moderator, validator, outsider):
    assert roles.roles_for(contributor, draft) == ["contributor"]
    assert roles.roles_for(moderator, draft) == ["contributor", "moderator"]
    assert roles.roles_for(validator, draft) == ["contributor", "moderator", "validator"]
    assert roles.roles_for(outsider, draft) == []


def test_roles_accept_references(draft, roles, validator):
    assert roles.can_validate(validator, draft.reference)


def test_user_entries_in_role_values(draft, roles, workflow_config, outsider):
    workflow_config.validator = "Validators, user:outsider"
    workflow_config.save()

    assert roles.can_validate(outsider, draft)
    assert roles.can_contribute(outsider, draft)


def test_wiki_admin_holds_every_role(draft, roles, wiki_admin):
    assert roles.can_validate(wiki_admin, draft)


def test_admin_group_holds_every_role(draft, roles, outsider, settings):
    settings.PUBLICATION_ADMIN_GROUPS = ["WikiAdmins"]
    outsider.groups.add(Group.objects.create(name="WikiAdmins"))

    assert roles.can_moderate(outsider, draft)


def test_without_workflow_edit_right_decides(make_document, roles, outsider):
    document = make_document("xwiki:Main.Plain")
    assert not roles.can_contribute(outsider, document)

    outsider.user_permissions.add(Permission.objects.get(codename="change_document"))
    outsider = type(outsider).objects.get(pk=outsider.pk)
    assert roles.can_contribute(outsider, reload(document))
    assert roles.can_validate(outsider, reload(document))


def test_anonymous_user_has_no_role(draft, roles):
    assert not roles.can_contribute(AnonymousUser(), draft)
    assert roles.roles_for(AnonymousUser(), draft) == []


def test_lookup_failure_denies(draft, validator, monkeypatch, caplog):
    manager = WorkflowConfigManager()

    def _boom(document):
        raise DatabaseError("connection lost")

    monkeypatch.setattr(manager, "get_workflow_config_for_document", _boom)
    roles = PublicationRoles(manager)

    with caplog.at_level(logging.ERROR, logger="publication"):
        assert roles.can_validate(validator, draft) is False

    assert any("can validate" in r.getMessage() for r in caplog.records)


def test_missing_configuration_falls_back_to_edit_right(draft, roles, workflow_config, contributor):
    workflow_config.delete()
    # Draft rights still grant edit to the contributors group
    assert roles.can_validate(contributor, reload(draft))
