# publication/rendering.py
"""
Minimal reader/writer for the link and image syntax of wiki content.

Content is parsed into a block tree; everything that is not a link or an
image stays a ``TextBlock`` so rendering gives back the exact input when
nothing was changed. Link labels are parsed too, so an image used as a
label is a child block of its link.

    [[label>>Space.Page]]         link to a document
    [[Space.Page]]                link without label
    [[label>>doc:Space.Page]]     explicit document link
    [[label>>attach:Space.Page@file.pdf]]
    [[image:Space.Page@photo.png]]
    [[image:photo.png]]           attachment of the current document
    [[[[image:photo.png]]>>Space.Page]]
    [[label>>url:https://...]]    left untouched
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union


DOCUMENT = "doc"
ATTACHMENT = "attach"
URL = "url"
MAILTO = "mailto"

_URL_SCHEMES = ("http://", "https://", "ftp://")

OPEN = "[["
CLOSE = "]]"
LABEL_SEPARATOR = ">>"


@dataclass
class ResourceReference:
    type: str
    reference: str
    # False when the source text carried no "type:" prefix
    typed: bool = True

    def render(self) -> str:
        if not self.typed:
            return self.reference
        return f"{self.type}:{self.reference}"


@dataclass
class TextBlock:
    text: str

    def render(self) -> str:
        return self.text


@dataclass
class LinkBlock:
    resource: ResourceReference
    # Parsed label; None when the link has no label
    children: Optional[List["Block"]] = None
    parameters: str = ""

    @property
    def label(self) -> Optional[str]:
        if self.children is None:
            return None
        return "".join(b.render() for b in self.children)

    def render(self) -> str:
        target = self.resource.render()
        if self.parameters:
            target = f"{target}||{self.parameters}"
        if self.children is None:
            return f"[[{target}]]"
        return f"[[{self.label}{LABEL_SEPARATOR}{target}]]"


@dataclass
class ImageBlock:
    resource: ResourceReference
    parameters: str = ""

    @property
    def freestanding(self) -> bool:
        """Images pointing at a URL rather than an attachment."""
        return self.resource.type == URL

    def render(self) -> str:
        suffix = f"||{self.parameters}" if self.parameters else ""
        return f"[[image:{self.resource.reference}{suffix}]]"


Block = Union[TextBlock, LinkBlock, ImageBlock]


def _walk(blocks: List[Block]) -> Iterator[Block]:
    for block in blocks:
        yield block
        if isinstance(block, LinkBlock) and block.children:
            yield from _walk(block.children)


@dataclass
class BlockTree:
    blocks: List[Block] = field(default_factory=list)

    def descendants(self) -> Iterator[Block]:
        """Every block of the tree, label blocks included, in document order."""
        return _walk(self.blocks)

    def links(self) -> List[LinkBlock]:
        return [b for b in self.descendants() if isinstance(b, LinkBlock)]

    def images(self) -> List[ImageBlock]:
        return [b for b in self.descendants() if isinstance(b, ImageBlock)]

    def render(self) -> str:
        return "".join(b.render() for b in self.blocks)


# ===============================================================
# Parsing
# ===============================================================

def _closing(content: str, start: int) -> int:
    """
    Index just past the ``]]`` matching the ``[[`` at ``start``, or -1.

    A ``]`` directly followed by ``]]`` belongs to the content, as in
    ``[[a[b]]]``.
    """
    depth = 0
    i = start
    while i < len(content):
        if content.startswith(OPEN, i):
            depth += 1
            i += 2
        elif content.startswith(CLOSE, i):
            if depth == 1 and content.startswith("]", i + 2):
                i += 1
                continue
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return -1


def _top_level_separator(body: str) -> int:
    """Position of the last ``>>`` outside nested ``[[...]]``, or -1."""
    depth = 0
    found = -1
    i = 0
    while i < len(body):
        if body.startswith(OPEN, i):
            depth += 1
            i += 2
        elif body.startswith(CLOSE, i) and depth > 0:
            depth -= 1
            i += 2
        elif depth == 0 and body.startswith(LABEL_SEPARATOR, i):
            found = i
            i += 2
        else:
            i += 1
    return found


def _resource(raw: str) -> ResourceReference:
    raw = raw.strip()
    for scheme in _URL_SCHEMES:
        if raw.startswith(scheme):
            return ResourceReference(URL, raw, typed=False)
    if raw.startswith(MAILTO + ":"):
        return ResourceReference(MAILTO, raw[len(MAILTO) + 1:])

    for prefix in (DOCUMENT, ATTACHMENT, URL):
        if raw.startswith(prefix + ":"):
            return ResourceReference(prefix, raw[len(prefix) + 1:])

    return ResourceReference(DOCUMENT, raw, typed=False)


def _image(body: str) -> ImageBlock:
    source, _, parameters = body[len("image:"):].partition("||")
    source = source.strip()
    for scheme in _URL_SCHEMES:
        if source.startswith(scheme):
            return ImageBlock(ResourceReference(URL, source), parameters)
    return ImageBlock(ResourceReference(ATTACHMENT, source), parameters)


def _block(body: str, raw: str) -> Block:
    separator = _top_level_separator(body)
    if body.startswith("image:") and separator < 0:
        return _image(body)

    children: Optional[List[Block]] = None
    target = body
    if separator >= 0:
        children = _parse_blocks(body[:separator])
        target = body[separator + len(LABEL_SEPARATOR):]
    target, _, parameters = target.partition("||")

    if not target.strip():
        return TextBlock(raw)
    return LinkBlock(_resource(target), children, parameters)


def _macros(content: str) -> Iterator[Tuple[int, int]]:
    pos = 0
    while True:
        start = content.find(OPEN, pos)
        if start < 0:
            return
        end = _closing(content, start)
        if end < 0:
            # unbalanced, keep it as text
            pos = start + len(OPEN)
            continue
        yield start, end
        pos = end


def _parse_blocks(content: str) -> List[Block]:
    blocks: List[Block] = []
    pos = 0
    for start, end in _macros(content):
        if start > pos:
            blocks.append(TextBlock(content[pos:start]))
        raw = content[start:end]
        blocks.append(_block(raw[len(OPEN):-len(CLOSE)], raw))
        pos = end
    if pos < len(content):
        blocks.append(TextBlock(content[pos:]))
    return blocks


def parse(content: str) -> BlockTree:
    return BlockTree(_parse_blocks(content or ""))


def render(tree: BlockTree) -> str:
    return tree.render()
