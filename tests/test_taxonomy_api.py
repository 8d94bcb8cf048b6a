"""
Tests for the category and tag endpoints.
"""
import pytest

from cms_engine.choices import PostStatus
from cms_engine.models import Category, Post, Tag

CATEGORIES = "/api/categories/"
TAGS = "/api/tags/"


@pytest.fixture
def category_tree(db):
    root = Category.objects.create(name="Technology")
    child = Category.objects.create(name="Programming", parent=root)
    leaf = Category.objects.create(name="Python", parent=child)
    Category.objects.create(name="Archive", is_active=False)
    return root, child, leaf


class TestCategoryList:
    """Tree and flat listings."""

    def test_tree(self, api_client, category_tree):
        response = api_client.get(CATEGORIES)
        assert response.status_code == 200
        assert len(response.data) == 1
        root = response.data[0]
        assert root["name"] == "Technology"
        assert root["children"][0]["name"] == "Programming"
        assert root["children"][0]["children"][0]["slug"] == "python"

    def test_flat(self, api_client, category_tree):
        response = api_client.get(CATEGORIES, {"flat": "true"})
        assert {item["name"] for item in response.data} == {"Technology", "Programming", "Python"}
        assert "children" not in response.data[0]

    def test_inactive_for_moderators_only(self, api_client, client_for, editor, category_tree):
        params = {"flat": "true", "include_inactive": "true"}
        public = api_client.get(CATEGORIES, params)
        assert "Archive" not in {item["name"] for item in public.data}

        moderated = client_for(editor).get(CATEGORIES, params)
        assert "Archive" in {item["name"] for item in moderated.data}

    def test_detail_has_ancestors(self, api_client, category_tree):
        root, child, leaf = category_tree
        response = api_client.get(f"{CATEGORIES}slug/python/")
        assert response.status_code == 200
        assert [item["slug"] for item in response.data["ancestors"]] == ["technology", "programming"]

        response = api_client.get(f"{CATEGORIES}{root.pk}/")
        assert [item["name"] for item in response.data["children"]] == ["Programming"]

    def test_posts(self, api_client, category, make_post):
        make_post(title="Filed One", status=PostStatus.PUBLISHED, category=category)
        make_post(title="Filed Draft", category=category)

        response = api_client.get(f"{CATEGORIES}{category.pk}/posts/")
        assert response.status_code == 200
        assert [item["title"] for item in response.data["results"]] == ["Filed One"]
        assert response.data["pagination"]["total_items"] == 1


class TestCategoryWrite:
    """Creating, moving and deleting categories."""

    def test_editor_creates(self, client_for, editor):
        response = client_for(editor).post(CATEGORIES, {"name": "News & Events", "color": "#1e90ff"})
        assert response.status_code == 201
        assert response.data["slug"] == "news-events"

    def test_author_cannot_create(self, client_for, author):
        assert client_for(author).post(CATEGORIES, {"name": "Mine"}).status_code == 403

    def test_duplicate_conflicts(self, client_for, editor, category):
        response = client_for(editor).post(CATEGORIES, {"name": "Test Category"})
        assert response.status_code == 409

    def test_bad_color(self, client_for, editor):
        response = client_for(editor).post(CATEGORIES, {"name": "Colourful", "color": "blue"})
        assert response.status_code == 400

    def test_cycle_rejected(self, client_for, editor, category_tree):
        root, child, leaf = category_tree
        response = client_for(editor).patch(f"{CATEGORIES}{root.pk}/", {"parent": leaf.pk})
        assert response.status_code == 400

        root.refresh_from_db()
        assert root.parent is None

    def test_delete_needs_reassignment(self, client_for, admin_user, category, make_post):
        make_post(category=category)
        response = client_for(admin_user).delete(f"{CATEGORIES}{category.pk}/")
        assert response.status_code == 409
        assert Category.objects.filter(pk=category.pk).exists()

    def test_delete_with_reassignment(self, client_for, admin_user, category, make_post):
        target = Category.objects.create(name="Target")
        post = make_post(category=category)

        response = client_for(admin_user).delete(f"{CATEGORIES}{category.pk}/?reassign_to={target.pk}")
        assert response.status_code == 200
        assert response.data == {"reassigned_posts": 1}

        post.refresh_from_db()
        assert post.category == target

    def test_missing_target(self, client_for, admin_user, category, make_post):
        make_post(category=category)
        response = client_for(admin_user).delete(f"{CATEGORIES}{category.pk}/?reassign_to=9999")
        assert response.status_code == 400

    def test_malformed_target(self, client_for, admin_user, category, make_post):
        make_post(category=category)
        response = client_for(admin_user).delete(f"{CATEGORIES}{category.pk}/?reassign_to=abc")
        assert response.status_code == 400
        assert Category.objects.filter(pk=category.pk).exists()

    def test_editor_cannot_delete(self, client_for, editor, category):
        assert client_for(editor).delete(f"{CATEGORIES}{category.pk}/").status_code == 403


class TestTags:
    """Tag endpoints."""

    @pytest.fixture
    def tags(self, make_post):
        python = Tag.objects.create(name="Python")
        django = Tag.objects.create(name="Django")
        Tag.objects.create(name="Unused")
        for number in range(2):
            make_post(title=f"Python post {number}", status=PostStatus.PUBLISHED).tags.add(python)
        make_post(title="Django post", status=PostStatus.PUBLISHED).tags.add(django)
        make_post(title="Draft django post").tags.add(django)
        return python, django

    def test_list_orders_by_usage(self, api_client, tags):
        response = api_client.get(TAGS)
        assert response.status_code == 200
        results = response.data["results"]
        assert [(item["name"], item["posts_count"]) for item in results] == [("Python", 2), ("Django", 1)]

    def test_include_empty(self, api_client, tags):
        response = api_client.get(TAGS, {"include_empty": "true"})
        assert "Unused" in [item["name"] for item in response.data["results"]]

    def test_search(self, api_client, tags):
        response = api_client.get(TAGS, {"search": "dja"})
        assert [item["name"] for item in response.data["results"]] == ["Django"]

    def test_by_slug(self, api_client, tags):
        response = api_client.get(f"{TAGS}slug/django/")
        assert response.status_code == 200
        assert response.data["posts_count"] == 1

    def test_author_creates(self, client_for, author):
        response = client_for(author).post(TAGS, {"name": "Web Dev"})
        assert response.status_code == 201
        assert response.data["slug"] == "web-dev"

    def test_subscriber_cannot_create(self, client_for, subscriber):
        assert client_for(subscriber).post(TAGS, {"name": "Spam"}).status_code == 403

    def test_duplicate_conflicts(self, client_for, author, tags):
        assert client_for(author).post(TAGS, {"name": "Python"}).status_code == 409

    def test_admin_deletes(self, client_for, admin_user, tags):
        python, _ = tags
        assert client_for(admin_user).delete(f"{TAGS}{python.pk}/").status_code == 204
        assert Post.objects.filter(tags__name="Python").count() == 0
        assert Post.objects.filter(title__startswith="Python post").count() == 2
