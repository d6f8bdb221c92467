import pytest

from publication import documents as store
from publication.events import document_copied
from publication.models import Document, WorkflowMetadata
from publication.tests.helpers import ref
from publication.workflows.rights import EDIT, has_access


pytestmark = pytest.mark.django_db


def test_copy_of_draft_has_no_workflow(draft, contributor):
    copy = store.copy_document(draft.reference, ref("xwiki:Copies.Topic.WebHome"), user=contributor)

    stored = Document.objects.get_by_reference(ref("xwiki:Copies.Topic.WebHome"))
    assert stored.get_workflow() is None
    assert stored.content == "Draft content"
    assert copy.comment == "Copied from xwiki:Drafts.Topic.WebHome"

    # Rights travel with the copy
    assert has_access(contributor, EDIT, stored)

    # The draft itself is untouched
    assert WorkflowMetadata.objects.filter(document=draft).exists()
    assert WorkflowMetadata.objects.count() == 1


def test_copy_of_published_copy_has_no_workflow(published, outsider):
    store.copy_document(published.reference, ref("xwiki:Copies.Public.WebHome"), user=outsider)

    assert Document.objects.get_by_reference(ref("xwiki:Copies.Public.WebHome")).get_workflow() is None


def test_copied_signal_sees_stripped_copy(draft):
    seen = []

    def _listener(sender, source, document, **kwargs):
        seen.append(WorkflowMetadata.objects.filter(document=document).exists())

    document_copied.connect(_listener, sender=Document)
    try:
        store.copy_document(draft.reference, ref("xwiki:Copies.Other.WebHome"))
    finally:
        document_copied.disconnect(_listener, sender=Document)

    assert seen == [False]


def test_copy_of_plain_document(make_document):
    make_document("xwiki:Main.Plain", content="plain")
    store.copy_document(ref("xwiki:Main.Plain"), ref("xwiki:Main.Plain2"))

    copy = Document.objects.get_by_reference(ref("xwiki:Main.Plain2"))
    assert copy.content == "plain"
    assert copy.get_workflow() is None
