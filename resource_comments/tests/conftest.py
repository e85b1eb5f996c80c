"""
Pytest fixtures for resource_comments tests.
"""
import pytest
from django.contrib.auth.models import Group
from django.test import RequestFactory
from rest_framework.test import APIClient, APIRequestFactory

from . import jobs
from .base import USER_AGENT
from .factories import (
    CommentFactory,
    ItemFactory,
    ItemSetFactory,
    ModeratorFactory,
    StaffUserFactory,
    UserFactory,
)


# ============================================================================
# Database and Environment Setup
# ============================================================================

@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """
    Set up the test database with any required initial data.
    """
    with django_db_blocker.unblock():
        Group.objects.get_or_create(name='Moderators')


@pytest.fixture(autouse=True)
def clear_scheduled_jobs():
    jobs.clear_jobs()
    yield
    jobs.clear_jobs()


@pytest.fixture
def scheduled_jobs():
    return jobs.scheduled_jobs


@pytest.fixture
def request_factory():
    return RequestFactory()


@pytest.fixture
def api_request_factory():
    return APIRequestFactory()


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def api_client():
    """
    Return an unauthenticated DRF API client sending a browser user agent.
    """
    client = APIClient()
    client.credentials(HTTP_USER_AGENT=USER_AGENT)
    return client


@pytest.fixture
def authenticated_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def moderator_client(moderator_user):
    client = APIClient()
    client.credentials(HTTP_USER_AGENT=USER_AGENT)
    client.force_authenticate(user=moderator_user)
    return client


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return StaffUserFactory()


@pytest.fixture
def moderator_user(db):
    return ModeratorFactory()


@pytest.fixture
def item_set(db):
    return ItemSetFactory()


@pytest.fixture
def item(db, item_set):
    return ItemFactory(item_sets=[item_set])


@pytest.fixture
def comment(db, item):
    return CommentFactory(target=item)
