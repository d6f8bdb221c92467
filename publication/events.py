# publication/events.py
"""
Document lifecycle signals sent by the publication document store and
workflow engine.

All signals are sent with ``sender=Document``.
"""

from django.dispatch import Signal

# kwargs: source, document, user. Sent before the copy is written.
document_copying = Signal()

# kwargs: source, document, user. Sent after the copy is written.
document_copied = Signal()

# kwargs: old_reference, document, user
document_moved = Signal()

# kwargs: document, draft_reference, user. Sent while the published copy
# is being persisted, before the write.
document_publishing = Signal()

# kwargs: document, draft_reference, workflow_document, user
document_child_publishing = Signal()
