# publication/tests/helpers.py

from publication.models import Document
from publication.references import DocumentReference, parse_document_reference

CONFIG_NAME = "PublicationWorkflow.DefaultConfig"


def ref(value: str) -> DocumentReference:
    return parse_document_reference(value)


def reload(document: Document) -> Document:
    return Document.objects.get(pk=document.pk)
