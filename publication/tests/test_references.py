import pytest

from publication.exceptions import InvalidReference
from publication.references import (
    AttachmentReference,
    DocumentReference,
    parse_attachment_reference,
    parse_document_reference,
)


def test_parse_absolute_reference():
    reference = parse_document_reference("mywiki:Main.Public.Topic.WebHome")
    assert reference.wiki == "mywiki"
    assert reference.spaces == ("Main", "Public", "Topic")
    assert reference.name == "WebHome"
    assert reference.is_default_page


def test_wiki_defaults_to_main_wiki(settings):
    settings.PUBLICATION_MAIN_WIKI = "main"
    assert parse_document_reference("Space.Page").wiki == "main"


def test_single_segment_resolves_in_base_space():
    base = DocumentReference("xwiki", ("Drafts", "Topic"), "WebHome")
    assert parse_document_reference("Sibling", base) == DocumentReference(
        "xwiki", ("Drafts", "Topic"), "Sibling"
    )


def test_single_segment_without_base_is_rejected():
    with pytest.raises(InvalidReference):
        parse_document_reference("Page")


@pytest.mark.parametrize("value", ["", "   ", "Space..Page", ".Page"])
def test_malformed_references_are_rejected(value):
    with pytest.raises(InvalidReference):
        parse_document_reference(value)


def test_escaped_separators_survive_serialization():
    reference = DocumentReference("xwiki", ("Dotted.Space",), "a:b@c")
    serialized = reference.serialize()
    assert serialized == "xwiki:Dotted\\.Space.a\\:b\\@c"
    assert parse_document_reference(serialized) == reference


def test_compact_omits_matching_wiki():
    reference = DocumentReference("xwiki", ("Public",), "Topic")
    assert reference.compact() == "Public.Topic"
    assert reference.compact("xwiki") == "Public.Topic"
    assert reference.compact("other") == "xwiki:Public.Topic"


def test_parent_of_nested_and_terminal_pages():
    nested = DocumentReference("xwiki", ("A", "B"), "WebHome")
    terminal = DocumentReference("xwiki", ("A", "B"), "Page")

    assert nested.parent == DocumentReference("xwiki", ("A",), "WebHome")
    assert terminal.parent == nested
    assert DocumentReference("xwiki", ("A",), "WebHome").parent is None


def test_replace_space_prefix():
    child = DocumentReference("xwiki", ("Drafts", "Topic", "Child"), "WebHome")
    moved = child.replace_space_prefix(("Drafts", "Topic"), ("Public", "Topic"))
    assert moved == DocumentReference("xwiki", ("Public", "Topic", "Child"), "WebHome")

    with pytest.raises(InvalidReference):
        child.replace_space_prefix(("Other",), ("Public",))


def test_attachment_reference_relative_and_absolute():
    base = DocumentReference("xwiki", ("Drafts",), "Topic")

    bare = parse_attachment_reference("photo.png", base)
    assert bare == AttachmentReference(base, "photo.png")

    full = parse_attachment_reference("Public.Other@report.pdf", base)
    assert full.document == DocumentReference("xwiki", ("Public",), "Other")
    assert full.filename == "report.pdf"
    assert full.compact("xwiki") == "Public.Other@report.pdf"


def test_attachment_file_name_keeps_dots_and_colons():
    document = DocumentReference("xwiki", ("Public",), "Other")
    attachment = AttachmentReference(document, "v1.2:final@draft.pdf")

    assert attachment.compact() == "Public.Other@v1.2:final\\@draft.pdf"
    assert str(attachment) == "xwiki:Public.Other@v1.2:final\\@draft.pdf"
    assert parse_attachment_reference(attachment.compact(), document) == attachment
