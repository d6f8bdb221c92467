# publication/tests/conftest.py

from __future__ import annotations

from typing import Callable, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from publication import documents as store
from publication.models import Document, WorkflowConfig
from publication.tests.helpers import CONFIG_NAME, ref
from publication.workflows.engine import PublicationWorkflow


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # DO NOT call force_authenticate(user=None) here.
        # DRF's force_authenticate(user=None) calls self.logout() internally.
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


def _user(username: str, group: Optional[str] = None, **defaults):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username=username, defaults=defaults)
    # Always ensure password works even if user already existed
    user.set_password("pass123")
    user.save(update_fields=["password"])
    if group:
        user.groups.add(Group.objects.get_or_create(name=group)[0])
    return user


@pytest.fixture
def contributor(db):
    return _user("contrib", "Contributors")


@pytest.fixture
def moderator(db):
    return _user("moder", "Moderators")


@pytest.fixture
def validator(db):
    return _user("valid", "Validators")


@pytest.fixture
def outsider(db):
    return _user("outsider")


@pytest.fixture
def wiki_admin(db):
    return _user("admin", is_superuser=True, is_staff=True)


@pytest.fixture
def workflow_config(db) -> WorkflowConfig:
    config, _ = WorkflowConfig.objects.get_or_create(
        name=CONFIG_NAME,
        defaults={
            "contributor": "Contributors",
            "moderator": "Moderators",
            "validator": "Validators",
        },
    )
    return config


@pytest.fixture
def workflow() -> PublicationWorkflow:
    return PublicationWorkflow()


@pytest.fixture
def make_document(db) -> Callable[..., Document]:
    """
    Factory for stored documents addressed by a reference string.
    """

    def _factory(reference: str, content: str = "", title: str = "", **extra) -> Document:
        document = store.get_document(ref(reference))
        document.content = content
        document.title = title
        for key, value in extra.items():
            setattr(document, key, value)
        return store.save_document(document, comment="created")

    return _factory


@pytest.fixture
def draft(db, make_document, workflow, workflow_config, contributor) -> Document:
    """
    Draft Drafts.Topic.WebHome in workflow, targeting Public.Topic.WebHome.
    """
    document = make_document("xwiki:Drafts.Topic.WebHome", content="Draft content", title="Topic")
    assert workflow.start_workflow(
        document.reference,
        CONFIG_NAME,
        ref("xwiki:Public.Topic.WebHome"),
        user=contributor,
    )
    return Document.objects.get(pk=document.pk)


@pytest.fixture
def published(db, draft, workflow, validator) -> Document:
    """
    ``draft`` pushed through validation and published.
    """
    assert workflow.submit_for_validation(draft.reference, user=validator)
    target = workflow.publish(draft.reference, user=validator)
    assert target == ref("xwiki:Public.Topic.WebHome")
    return Document.objects.get_by_reference(target)
