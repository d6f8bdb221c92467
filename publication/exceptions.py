# publication/exceptions.py
from __future__ import annotations


class PublicationError(Exception):
    """Base error for the publication document store."""


class InvalidReference(PublicationError, ValueError):
    """A reference string could not be parsed."""


class DocumentNotFound(PublicationError):
    def __init__(self, reference) -> None:
        super().__init__(f"Document [{reference}] does not exist")
        self.reference = reference
