"""
Tests for the settings, media and dashboard endpoints.
"""
import io

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from cms_engine.models import Comment, Media, Setting
from cms_engine.policy import ANONYMOUS_ACTOR

from .conftest import make_user

SETTINGS = "/api/settings/"
MEDIA = "/api/media/"
DASHBOARD = "/api/dashboard/stats/"


@pytest.fixture
def site_settings(db):
    Setting.objects.create(key="site_name", value="My CMS", is_public=True)
    Setting.objects.create(key="posts_per_page", value="10", type="number", is_public=True, category="reading")
    Setting.objects.create(key="smtp_password", value="hunter2")
    Setting.objects.create(key="install_id", value="abc", is_editable=False, is_public=True)


def image_upload(name="photo.png"):
    buffer = io.BytesIO()
    Image.new("RGB", (8, 6), color="blue").save(buffer, format="PNG")
    return SimpleUploadedFile(name, buffer.getvalue(), content_type="image/png")


class TestSettings:
    """Site settings endpoints."""

    def test_public_list(self, api_client, site_settings):
        response = api_client.get(SETTINGS)
        assert response.status_code == 200
        keys = {item["key"] for item in response.data}
        assert keys == {"site_name", "posts_per_page", "install_id"}

    def test_admin_sees_private(self, client_for, admin_user, site_settings):
        response = client_for(admin_user).get(SETTINGS)
        assert "smtp_password" in {item["key"] for item in response.data}

    def test_filter_by_category(self, api_client, site_settings):
        response = api_client.get(SETTINGS, {"category": "reading"})
        assert [item["key"] for item in response.data] == ["posts_per_page"]

    def test_retrieve_parses_value(self, api_client, site_settings):
        response = api_client.get(f"{SETTINGS}posts_per_page/")
        assert response.status_code == 200
        assert response.data["value"] == 10

    def test_private_is_not_found(self, api_client, client_for, editor, site_settings):
        assert api_client.get(f"{SETTINGS}smtp_password/").status_code == 404
        assert client_for(editor).get(f"{SETTINGS}smtp_password/").status_code == 404

    def test_super_admin_creates(self, client_for, super_admin, db):
        response = client_for(super_admin).post(SETTINGS, {
            "key": "features",
            "value": ["comments", "likes"],
            "type": "array",
            "is_public": True,
        })
        assert response.status_code == 201
        assert response.data["value"] == ["comments", "likes"]
        assert Setting.get_value("features") == ["comments", "likes"]

    def test_duplicate_key(self, client_for, super_admin, site_settings):
        response = client_for(super_admin).post(SETTINGS, {"key": "site_name", "value": "Again"})
        assert response.status_code == 409

    def test_wrong_value_kind(self, client_for, super_admin, db):
        response = client_for(super_admin).post(SETTINGS, {"key": "limit", "value": "lots", "type": "number"})
        assert response.status_code == 400

    def test_admin_cannot_create(self, client_for, admin_user, db):
        assert client_for(admin_user).post(SETTINGS, {"key": "x", "value": "y"}).status_code == 403

    def test_admin_updates(self, client_for, admin_user, site_settings):
        response = client_for(admin_user).put(f"{SETTINGS}site_name/", {"value": "Renamed CMS"})
        assert response.status_code == 200
        assert response.data["value"] == "Renamed CMS"
        assert Setting.get_value("site_name") == "Renamed CMS"

    def test_update_type(self, client_for, admin_user, site_settings):
        response = client_for(admin_user).patch(f"{SETTINGS}posts_per_page/", {"value": True, "type": "boolean"})
        assert response.status_code == 200
        assert response.data["value"] is True

    def test_non_editable(self, client_for, super_admin, site_settings):
        client = client_for(super_admin)
        assert client.put(f"{SETTINGS}install_id/", {"value": "zzz"}).status_code == 400
        assert client.delete(f"{SETTINGS}install_id/").status_code == 400
        assert Setting.get_value("install_id") == "abc"

    def test_editor_cannot_update(self, client_for, editor, site_settings):
        assert client_for(editor).put(f"{SETTINGS}site_name/", {"value": "Mine"}).status_code == 403

    def test_delete(self, client_for, super_admin, site_settings):
        assert client_for(super_admin).delete(f"{SETTINGS}site_name/").status_code == 204
        assert not Setting.objects.filter(key="site_name").exists()


class TestMedia:
    """Media library endpoints."""

    @pytest.fixture(autouse=True)
    def media_root(self, settings, tmp_path):
        settings.MEDIA_ROOT = str(tmp_path)

    def upload(self, client, upload=None, **fields):
        return client.post(MEDIA, {"file": upload or image_upload(), **fields}, format="multipart")

    def test_upload_image(self, client_for, subscriber):
        response = self.upload(client_for(subscriber), alt="Blue box")
        assert response.status_code == 201
        assert response.data["type"] == "image"
        assert response.data["width"] == 8
        assert response.data["height"] == 6
        assert response.data["alt"] == "Blue box"
        assert response.data["uploaded_by"]["username"] == "reader"
        assert response.data["url"].startswith("/media/uploads/")
        assert response.data["is_public"] is True

    def test_upload_document(self, client_for, subscriber):
        upload = SimpleUploadedFile("cv.pdf", b"%PDF-1.4 test", content_type="application/pdf")
        response = self.upload(client_for(subscriber), upload)
        assert response.status_code == 201
        assert response.data["type"] == "document"
        assert response.data["width"] is None

    def test_rejects_type(self, client_for, subscriber):
        upload = SimpleUploadedFile("evil.exe", b"MZ", content_type="application/x-msdownload")
        assert self.upload(client_for(subscriber), upload).status_code == 400
        assert not Media.objects.exists()

    def test_anonymous_cannot_upload(self, api_client, db):
        assert self.upload(api_client).status_code == 401

    def test_members_see_own_uploads(self, client_for, subscriber, admin_user):
        other = make_user("uploader")
        self.upload(client_for(subscriber))
        self.upload(client_for(other))

        response = client_for(subscriber).get(MEDIA)
        assert response.data["pagination"]["total_items"] == 1

        response = client_for(admin_user).get(MEDIA)
        assert response.data["pagination"]["total_items"] == 2

    def test_cannot_touch_others_upload(self, client_for, subscriber):
        other = make_user("uploader")
        media_id = self.upload(client_for(other)).data["id"]

        client = client_for(subscriber)
        assert client.get(f"{MEDIA}{media_id}/").status_code == 404
        assert client.delete(f"{MEDIA}{media_id}/").status_code == 404

    def test_update_and_delete_own(self, client_for, subscriber):
        client = client_for(subscriber)
        media_id = self.upload(client).data["id"]

        response = client.patch(f"{MEDIA}{media_id}/", {"caption": "Caption"}, format="json")
        assert response.status_code == 200
        assert response.data["caption"] == "Caption"

        assert client.delete(f"{MEDIA}{media_id}/").status_code == 204
        assert not Media.objects.exists()


class TestDashboard:
    """Dashboard statistics."""

    def test_stats(self, client_for, editor, published_post, draft_post):
        Comment.submit(
            ANONYMOUS_ACTOR, published_post, "Pending one",
            author_name="Ann", author_email="ann@example.com",
        )

        response = client_for(editor).get(DASHBOARD)
        assert response.status_code == 200
        overview = response.data["overview"]
        assert overview["total_posts"] == 2
        assert overview["published_posts"] == 1
        assert overview["draft_posts"] == 1
        assert overview["pending_comments"] == 1
        assert response.data["charts"]["posts_by_status"] == {
            "published": 1,
            "draft": 1,
        }
        assert [item["title"] for item in response.data["popular_posts"]] == ["Hello World"]
        assert len(response.data["recent_activity"]["comments"]) == 1

    def test_scheduled_posts_are_not_published_yet(self, client_for, editor, published_post, scheduled_post):
        overview = client_for(editor).get(DASHBOARD).data["overview"]
        assert overview["total_posts"] == 2
        assert overview["published_posts"] == 1

    def test_subscriber_forbidden(self, client_for, subscriber):
        assert client_for(subscriber).get(DASHBOARD).status_code == 403

    def test_anonymous(self, api_client):
        assert api_client.get(DASHBOARD).status_code == 401
