import pytest

from publication.models import RightsEntry
from publication.tests.helpers import reload
from publication.workflows.rights import COMMENT, EDIT, VIEW, RightsProjector, has_access


pytestmark = pytest.mark.django_db


@pytest.fixture
def page(make_document):
    return make_document("xwiki:Main.Page", content="text")


@pytest.fixture
def projector():
    return RightsProjector()


def test_set_rights_replaces_entries(page, projector):
    projector.set_rights(page, (VIEW,), ["Readers"])
    projector.set_rights(page, (VIEW, EDIT), ["Editors"], ["alice"])

    entries = page.get_rights()
    assert len(entries) == 1
    assert entries[0].levels == [VIEW, EDIT]
    assert entries[0].groups == ["Editors"]
    assert entries[0].users == ["alice"]
    assert entries[0].allow is True


def test_add_rights_appends(page, projector):
    projector.set_rights(page, (VIEW,), ["Readers"])
    projector.add_rights(page, (COMMENT,), ["Commenters"])

    assert [e.groups for e in page.get_rights()] == [["Readers"], ["Commenters"]]


def test_entries_without_principals_are_skipped(page, projector):
    projector.set_rights(page, (VIEW,), ["Readers"])
    projector.add_rights(page, (COMMENT,), [], [])
    assert len(page.get_rights()) == 1

    projector.set_rights(page, (VIEW,), [""], [])
    assert page.get_rights() == []


def test_rights_are_persisted_on_save(page, projector):
    from publication import documents as store

    projector.set_rights(page, (EDIT,), ["Editors"], allow=False)
    store.save_document(page, comment="rights")

    stored = list(RightsEntry.objects.filter(document=page))
    assert len(stored) == 1
    assert stored[0].allow is False
    assert reload(page).get_rights()[0].groups == ["Editors"]


def test_has_access_without_entries_uses_wiki_defaults(page, outsider):
    assert has_access(outsider, VIEW, page)
    assert has_access(outsider, COMMENT, page)
    assert not has_access(outsider, EDIT, page)


def test_allow_entries_restrict_the_level(page, projector, contributor, outsider):
    projector.set_rights(page, (VIEW,), ["Contributors"])

    assert has_access(contributor, VIEW, page)
    assert not has_access(outsider, VIEW, page)
    # Other levels keep their defaults
    assert has_access(outsider, COMMENT, page)


def test_deny_wins(page, projector, contributor):
    projector.set_rights(page, (VIEW,), ["Contributors"])
    projector.add_rights(page, (VIEW,), [], ["contrib"], allow=False)

    assert not has_access(contributor, VIEW, page)


def test_wiki_admin_bypasses_rights(page, projector, wiki_admin):
    projector.set_rights(page, (EDIT,), [], ["admin"], allow=False)
    assert has_access(wiki_admin, EDIT, page)
