# publication/workflows/config.py
from __future__ import annotations

import logging
from typing import Optional

from publication.models import Document, WorkflowConfig

logger = logging.getLogger(__name__)


class WorkflowConfigManager:
    """Resolves workflow configurations by name or through a document's metadata."""

    def get_workflow_config(self, name: Optional[str]) -> Optional[WorkflowConfig]:
        name = (name or "").strip()
        if not name:
            return None

        config = WorkflowConfig.objects.filter(name=name).first()
        if config is None:
            logger.debug("Workflow configuration %s does not exist", name)
        return config

    def get_workflow_config_for_document(
        self, document: Optional[Document]
    ) -> Optional[WorkflowConfig]:
        if document is None:
            return None

        workflow = document.get_workflow()
        if workflow is None:
            return None
        return self.get_workflow_config(workflow.config_ref)

