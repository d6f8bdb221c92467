# publication/models/__init__.py

from .core import Attachment, Document, RightsEntry, TimeStampedModel  # noqa: F401
from .workflow import (  # noqa: F401
    WorkflowConfig,
    WorkflowMetadata,
    WorkflowTransition,
    split_principals,
)
