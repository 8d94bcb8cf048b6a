"""
Shared fixtures for django-cms-engine tests.
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from cms_engine.choices import PostStatus, Role
from cms_engine.models import Category, Post, User


def make_user(username, role=Role.SUBSCRIBER, **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
        role=role,
        **extra,
    )


@pytest.fixture
def admin_user(db):
    return make_user("admin", Role.ADMIN)


@pytest.fixture
def super_admin(db):
    return make_user("root", Role.SUPER_ADMIN)


@pytest.fixture
def editor(db):
    return make_user("editor", Role.EDITOR)


@pytest.fixture
def author(db):
    return make_user("author", Role.AUTHOR)


@pytest.fixture
def other_author(db):
    return make_user("writer", Role.AUTHOR)


@pytest.fixture
def subscriber(db):
    return make_user("reader", Role.SUBSCRIBER)


@pytest.fixture
def category(db):
    return Category.objects.create(name="Test Category")


@pytest.fixture
def make_post(db, author):
    def factory(**fields):
        fields.setdefault("title", "Test Post")
        fields.setdefault("content", "This is a test post body with enough words.")
        fields.setdefault("author", author)
        return Post.objects.create(**fields)

    return factory


@pytest.fixture
def published_post(make_post):
    return make_post(title="Hello World", status=PostStatus.PUBLISHED)


@pytest.fixture
def draft_post(make_post):
    return make_post(title="Draft Thoughts")


@pytest.fixture
def scheduled_post(make_post):
    return make_post(
        title="Coming Soon",
        status=PostStatus.PUBLISHED,
        published_at=timezone.now() + timedelta(days=1),
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    """Return an APIClient authenticated as the given user (or anonymous for None)."""

    def factory(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client

    return factory
