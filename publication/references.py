# publication/references.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from django.conf import settings

from publication.exceptions import InvalidReference


# ===============================================================
# Syntax
# ===============================================================
#
#   [wiki:]Space[.SubSpace...].Page[@attachment]
#
# Separators inside names are escaped with a backslash.

ESCAPE = "\\"
WIKI_SEPARATOR = ":"
SPACE_SEPARATOR = "."
ATTACHMENT_SEPARATOR = "@"

_SPECIAL = (ESCAPE, WIKI_SEPARATOR, SPACE_SEPARATOR, ATTACHMENT_SEPARATOR)


def main_wiki() -> str:
    return getattr(settings, "PUBLICATION_MAIN_WIKI", "xwiki")


def default_page_name() -> str:
    return getattr(settings, "PUBLICATION_DEFAULT_PAGE", "WebHome")


def escape(value: str) -> str:
    out = []
    for ch in value:
        if ch in _SPECIAL:
            out.append(ESCAPE)
        out.append(ch)
    return "".join(out)


def escape_filename(value: str) -> str:
    """File names only need the escape and attachment separators escaped."""
    out = []
    for ch in value:
        if ch in (ESCAPE, ATTACHMENT_SEPARATOR):
            out.append(ESCAPE)
        out.append(ch)
    return "".join(out)


def unescape(value: str) -> str:
    out = []
    escaped = False
    for ch in value:
        if escaped:
            out.append(ch)
            escaped = False
        elif ch == ESCAPE:
            escaped = True
        else:
            out.append(ch)
    return "".join(out)


def _split(value: str, sep: str) -> List[str]:
    """
    Split on unescaped separators. Escapes are kept so that later
    splits on other separators still see them.
    """
    parts: List[str] = []
    buf: List[str] = []
    escaped = False
    for ch in value:
        if escaped:
            buf.append(ch)
            escaped = False
        elif ch == ESCAPE:
            buf.append(ch)
            escaped = True
        elif ch == sep:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))
    return parts


# ===============================================================
# Document references
# ===============================================================

@dataclass(frozen=True)
class DocumentReference:
    wiki: str
    spaces: Tuple[str, ...]
    name: str

    def __post_init__(self):
        if not self.wiki or not self.name or not self.spaces:
            raise InvalidReference(
                f"Incomplete document reference: wiki={self.wiki!r} "
                f"spaces={self.spaces!r} name={self.name!r}"
            )
        if any(not s for s in self.spaces):
            raise InvalidReference(f"Empty space name in {self.spaces!r}")

    @classmethod
    def from_segments(cls, wiki: str, segments: Sequence[str]) -> "DocumentReference":
        segments = tuple(segments)
        if len(segments) < 2:
            raise InvalidReference(f"A document needs a space and a name: {segments!r}")
        return cls(wiki, segments[:-1], segments[-1])

    # -----------------------------------------------------------
    # Path helpers
    # -----------------------------------------------------------
    @property
    def segments(self) -> Tuple[str, ...]:
        return self.spaces + (self.name,)

    @property
    def is_default_page(self) -> bool:
        return self.name == default_page_name()

    @property
    def serialized_spaces(self) -> str:
        return SPACE_SEPARATOR.join(escape(s) for s in self.spaces)

    @property
    def parent(self) -> Optional["DocumentReference"]:
        """
        Home page of the enclosing container. A terminal page's parent is
        the home page of its own space; a home page's parent is the home
        page of the space above it.
        """
        if not self.is_default_page:
            return DocumentReference(self.wiki, self.spaces, default_page_name())
        if len(self.spaces) > 1:
            return DocumentReference(self.wiki, self.spaces[:-1], default_page_name())
        return None

    def replace_space_prefix(
        self, old: Sequence[str], new: Sequence[str]
    ) -> "DocumentReference":
        old = tuple(old)
        if self.spaces[: len(old)] != old:
            raise InvalidReference(f"{self} is not located under {'.'.join(old)}")
        return DocumentReference(self.wiki, tuple(new) + self.spaces[len(old):], self.name)

    def with_wiki(self, wiki: str) -> "DocumentReference":
        return DocumentReference(wiki, self.spaces, self.name)

    # -----------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------
    def serialize(self) -> str:
        return f"{escape(self.wiki)}{WIKI_SEPARATOR}{self.compact()}"

    def compact(self, wiki: Optional[str] = None) -> str:
        """
        Serialize without the wiki prefix when it matches ``wiki``
        (the reference's own wiki when not given).
        """
        local = SPACE_SEPARATOR.join(escape(s) for s in self.segments)
        if wiki is None or wiki == self.wiki:
            return local
        return f"{escape(self.wiki)}{WIKI_SEPARATOR}{local}"

    def __str__(self) -> str:
        return self.serialize()


def split_spaces(serialized: str) -> Tuple[str, ...]:
    return tuple(unescape(s) for s in _split(serialized, SPACE_SEPARATOR))


def parse_document_reference(
    value: str, base: Optional[DocumentReference] = None
) -> DocumentReference:
    """
    Resolve a reference string, relative to ``base`` when it is partial.

    ``Page`` resolves in the base's space, ``Space.Page`` in the base's wiki.
    """
    value = (value or "").strip()
    if not value:
        raise InvalidReference("Empty document reference")

    wiki_parts = _split(value, WIKI_SEPARATOR)
    if len(wiki_parts) > 1:
        wiki = unescape(wiki_parts[0])
        local = WIKI_SEPARATOR.join(wiki_parts[1:])
    else:
        wiki = base.wiki if base is not None else main_wiki()
        local = value

    segments = [unescape(s) for s in _split(local, SPACE_SEPARATOR)]
    if any(not s for s in segments):
        raise InvalidReference(f"Empty segment in document reference [{value}]")

    if len(segments) == 1:
        if base is None:
            raise InvalidReference(f"Cannot resolve [{value}] without a base document")
        return DocumentReference(wiki, base.spaces, segments[0])

    return DocumentReference.from_segments(wiki, segments)


# ===============================================================
# Attachment references
# ===============================================================

@dataclass(frozen=True)
class AttachmentReference:
    document: DocumentReference
    filename: str

    def compact(self, wiki: Optional[str] = None) -> str:
        return f"{self.document.compact(wiki)}{ATTACHMENT_SEPARATOR}{escape_filename(self.filename)}"

    def __str__(self) -> str:
        return f"{self.document.serialize()}{ATTACHMENT_SEPARATOR}{escape_filename(self.filename)}"


def parse_attachment_reference(
    value: str, base: DocumentReference
) -> AttachmentReference:
    """A bare file name is attached to ``base``."""
    value = (value or "").strip()
    if not value:
        raise InvalidReference("Empty attachment reference")

    parts = _split(value, ATTACHMENT_SEPARATOR)
    if len(parts) == 1:
        return AttachmentReference(base, unescape(value))

    filename = unescape(parts[-1])
    if not filename:
        raise InvalidReference(f"Missing file name in [{value}]")
    document = parse_document_reference(ATTACHMENT_SEPARATOR.join(parts[:-1]), base)
    return AttachmentReference(document, filename)


def common_prefix_length(a: Iterable[str], b: Iterable[str]) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n
