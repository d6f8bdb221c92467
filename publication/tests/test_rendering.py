from publication import rendering
from publication.rendering import ImageBlock, LinkBlock, TextBlock


def test_plain_content_round_trips():
    content = "= Title =\n\nSome **bold** text, no links."
    tree = rendering.parse(content)
    assert [type(b) for b in tree.blocks] == [TextBlock]
    assert rendering.render(tree) == content


def test_links_and_images_are_recognised():
    content = (
        "See [[the topic>>Drafts.Topic.WebHome]], [[Drafts.Other]], "
        "[[file>>attach:Drafts.Topic.WebHome@doc.pdf]], "
        "[[image:photo.png||width=\"200\"]] and [[site>>https://example.org]]."
    )
    tree = rendering.parse(content)

    links = tree.links()
    assert [l.resource.type for l in links] == ["doc", "doc", "attach", "url"]
    assert links[0].label == "the topic"
    assert links[1].label is None
    assert links[2].resource.reference == "Drafts.Topic.WebHome@doc.pdf"

    images = tree.images()
    assert len(images) == 1
    assert images[0].resource.reference == "photo.png"
    assert images[0].parameters == 'width="200"'
    assert not images[0].freestanding

    assert rendering.render(tree) == content


def test_url_images_are_freestanding():
    tree = rendering.parse("[[image:https://example.org/logo.png]]")
    assert tree.images()[0].freestanding


def test_rewritten_reference_keeps_syntax():
    tree = rendering.parse("Go to [[label>>doc:Drafts.Topic]] or [[Drafts.Topic||anchor=\"x\"]].")
    for link in tree.links():
        link.resource.reference = "Public.Topic"
    assert tree.render() == 'Go to [[label>>doc:Public.Topic]] or [[Public.Topic||anchor="x"]].'


def test_link_block_renders_without_label():
    block = LinkBlock(rendering.ResourceReference("doc", "A.B", typed=False))
    assert block.render() == "[[A.B]]"
    assert ImageBlock(rendering.ResourceReference("attach", "A.B@c.png")).render() == "[[image:A.B@c.png]]"


def test_image_label_is_a_child_of_its_link():
    content = "See [[[[image:photo.png||width=\"50\"]]>>Drafts.Other.WebHome]] here."
    tree = rendering.parse(content)

    assert [type(b) for b in tree.blocks] == [TextBlock, LinkBlock, TextBlock]
    link = tree.blocks[1]
    assert link.resource.reference == "Drafts.Other.WebHome"
    assert [type(b) for b in link.children] == [ImageBlock]
    assert tree.images()[0].resource.reference == "photo.png"

    link.resource.reference = "Public.Other.WebHome"
    link.children[0].resource.reference = "Drafts.Other.WebHome@photo.png"
    assert tree.render() == (
        "See [[[[image:Drafts.Other.WebHome@photo.png||width=\"50\"]]>>Public.Other.WebHome]] here."
    )


def test_unbalanced_brackets_stay_text():
    content = "Broken [[ opener, then [[Drafts.Topic]] end."
    tree = rendering.parse(content)
    assert [l.resource.reference for l in tree.links()] == ["Drafts.Topic"]
    assert tree.render() == content
