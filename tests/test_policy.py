"""
Tests for the visibility and state engine.

These run without a database: targets are plain namespaces carrying the
attributes the engine reads.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from django.db.models import Q

from cms_engine import exceptions, policy
from cms_engine.choices import CommentStatus, PostStatus

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

ADMIN = policy.Actor(id=1, role="admin")
EDITOR = policy.Actor(id=2, role="editor")
AUTHOR = policy.Actor(id=3, role="author")
OTHER_AUTHOR = policy.Actor(id=4, role="author")
SUBSCRIBER = policy.Actor(id=5, role="subscriber")
ANON = policy.ANONYMOUS_ACTOR


def make_post(**fields):
    values = {
        "author_id": AUTHOR.id,
        "status": PostStatus.PUBLISHED,
        "published_at": NOW - timedelta(days=1),
        "title": "Hello World",
        "slug": "hello-world",
        "content": "word " * 10,
        "allow_comments": True,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def make_comment(**fields):
    values = {"user_id": SUBSCRIBER.id, "status": CommentStatus.PENDING}
    values.update(fields)
    return SimpleNamespace(**values)


def effects(decision):
    return {(e.field, e.entity): (e.value, e.relative) for e in decision.side_effects}


class TestActor:
    """Actor construction."""

    def test_from_anonymous_user(self):
        assert policy.Actor.from_user(None) is policy.ANONYMOUS_ACTOR
        assert policy.Actor.from_user(SimpleNamespace(is_authenticated=False)).is_anonymous

    def test_from_user(self):
        user = SimpleNamespace(is_authenticated=True, is_superuser=False, pk=7, role="editor")
        actor = policy.Actor.from_user(user)
        assert actor == policy.Actor(id=7, role="editor")
        assert actor.is_moderator

    def test_superuser_is_super_admin(self):
        user = SimpleNamespace(is_authenticated=True, is_superuser=True, pk=7, role="subscriber")
        assert policy.Actor.from_user(user).role == "super_admin"


class TestPermissionTable:
    """Role and ownership checks."""

    def test_ownership_grants(self):
        assert policy.is_allowed(AUTHOR, "post", policy.UPDATE, owner=AUTHOR.id)
        assert not policy.is_allowed(AUTHOR, "post", policy.UPDATE, owner=OTHER_AUTHOR.id)
        assert not policy.is_allowed(AUTHOR, "post", policy.UPDATE)
        assert policy.is_allowed(EDITOR, "post", policy.UPDATE, owner=AUTHOR.id)

    def test_anonymous_never_owns(self):
        assert not policy.is_allowed(ANON, "comment", policy.DELETE, owner=None)

    def test_unknown_rule_denies(self):
        assert not policy.is_allowed(ADMIN, "post", "explode")
        assert not policy.may_attempt(ADMIN, "post", "explode")

    def test_may_attempt(self):
        assert policy.may_attempt(AUTHOR, "post", policy.DELETE)
        assert not policy.may_attempt(SUBSCRIBER, "post", policy.DELETE)
        assert not policy.may_attempt(ANON, "like", policy.CREATE)

    def test_require(self):
        policy.require(ADMIN, "category", policy.DELETE)
        with pytest.raises(exceptions.PermissionDenied):
            policy.require(EDITOR, "category", policy.DELETE)

    def test_owner_id(self):
        assert policy.owner_id("post", make_post()) == AUTHOR.id
        assert policy.owner_id("comment", make_comment()) == SUBSCRIBER.id
        assert policy.owner_id("post", None) is None


class TestPostVisibility:
    """Who may read which post."""

    @pytest.mark.parametrize("actor, expected", [
        (ANON, False),
        (SUBSCRIBER, False),
        (OTHER_AUTHOR, False),
        (AUTHOR, True),
        (EDITOR, True),
    ])
    def test_draft(self, actor, expected):
        post = make_post(status=PostStatus.DRAFT, published_at=None)
        assert policy.can_read_post(actor, post, NOW) is expected

    def test_published_is_public(self):
        assert policy.can_read_post(ANON, make_post(), NOW)

    def test_scheduled_is_hidden(self):
        post = make_post(published_at=NOW + timedelta(hours=1))
        assert not policy.can_read_post(ANON, post, NOW)
        assert policy.can_read_post(ANON, post, NOW + timedelta(hours=2))

    def test_read_denial_is_not_found(self):
        post = make_post(status=PostStatus.PRIVATE)
        decision = policy.evaluate(SUBSCRIBER, "post", policy.READ, target=post, now=NOW)
        assert not decision
        with pytest.raises(exceptions.NotFound):
            decision.enforce()

    def test_list_filter(self):
        assert policy.visible_posts_filter(EDITOR, NOW) == Q()
        public = Q(status=PostStatus.PUBLISHED, published_at__lte=NOW)
        assert policy.visible_posts_filter(ANON, NOW) == public
        assert policy.visible_posts_filter(AUTHOR, NOW) == public | Q(author_id=AUTHOR.id)


class TestPostSideEffects:
    """Slug, reading time and publish time follow edits."""

    def test_create(self):
        result = policy.post_side_effects(None, {"title": "Hello World", "content": "word " * 450}, NOW)
        assert {e.field: e.value for e in result} == {"slug": "hello-world", "reading_time": 3}

    def test_create_published(self):
        result = policy.post_side_effects(None, {"title": "T", "status": PostStatus.PUBLISHED}, NOW)
        assert ("published_at", NOW) in [(e.field, e.value) for e in result]

    def test_create_scheduled_keeps_time(self):
        later = NOW + timedelta(days=2)
        result = policy.post_side_effects(
            None, {"title": "T", "status": PostStatus.PUBLISHED, "published_at": later}, NOW
        )
        assert "published_at" not in [e.field for e in result]

    def test_explicit_slug_wins(self):
        before = make_post()
        result = policy.post_side_effects(before, {"title": "New Title", "slug": "custom"}, NOW)
        assert "slug" not in [e.field for e in result]

    def test_unchanged_slug_is_regenerated(self):
        before = make_post()
        result = policy.post_side_effects(before, {"title": "Goodbye World", "slug": "hello-world"}, NOW)
        assert [(e.field, e.value) for e in result] == [("slug", "goodbye-world")]

    def test_untouched_fields_produce_nothing(self):
        before = make_post()
        changes = {"title": before.title, "content": before.content, "published_at": before.published_at}
        assert policy.post_side_effects(before, changes, NOW) == []

    def test_publish_time_is_pinned(self):
        before = make_post()
        result = policy.post_side_effects(before, {"published_at": None}, NOW)
        assert [(e.field, e.value) for e in result] == [("published_at", before.published_at)]

    def test_first_publish(self):
        before = make_post(status=PostStatus.DRAFT, published_at=None)
        result = policy.post_side_effects(before, {"status": PostStatus.PUBLISHED}, NOW)
        assert [(e.field, e.value) for e in result] == [("published_at", NOW)]

    def test_unknown_status_transition(self):
        decision = policy.evaluate(AUTHOR, "post", policy.TRANSITION, target=make_post(),
                                   changes={"status": "archived"}, now=NOW)
        with pytest.raises(exceptions.ValidationError):
            decision.enforce()

    def test_subscriber_cannot_create(self):
        decision = policy.evaluate(SUBSCRIBER, "post", policy.CREATE, changes={"title": "x"}, now=NOW)
        with pytest.raises(exceptions.PermissionDenied):
            decision.enforce()


class TestCommentRules:
    """Comment creation and moderation."""

    def test_contributor_auto_approved(self):
        decision = policy.evaluate(AUTHOR, "comment", policy.CREATE, target=make_post(), now=NOW)
        assert effects(decision) == {
            ("status", "self"): (CommentStatus.APPROVED, False),
            ("comments_count", "post"): (1, True),
        }

    def test_subscriber_pending(self, settings):
        settings.CMS_ENGINE = {"MODERATE_COMMENTS": True}
        decision = policy.evaluate(SUBSCRIBER, "comment", policy.CREATE, target=make_post(), now=NOW)
        assert effects(decision) == {("status", "self"): (CommentStatus.PENDING, False)}

    def test_moderation_off(self, settings):
        settings.CMS_ENGINE = {"MODERATE_COMMENTS": False}
        assert policy.initial_comment_status(ANON) == CommentStatus.APPROVED

    def test_anonymous_disabled(self, settings):
        settings.CMS_ENGINE = {"ALLOW_ANONYMOUS_COMMENTS": False}
        decision = policy.evaluate(ANON, "comment", policy.CREATE, target=make_post(), now=NOW)
        assert decision.error is exceptions.PermissionDenied
        assert not decision

    def test_comments_closed(self):
        decision = policy.evaluate(EDITOR, "comment", policy.CREATE,
                                   target=make_post(allow_comments=False), now=NOW)
        assert not decision

    @pytest.mark.parametrize("before, after, delta", [
        (CommentStatus.PENDING, CommentStatus.APPROVED, 1),
        (CommentStatus.APPROVED, CommentStatus.SPAM, -1),
        (CommentStatus.APPROVED, CommentStatus.TRASH, -1),
        (CommentStatus.SPAM, CommentStatus.TRASH, 0),
        (CommentStatus.TRASH, CommentStatus.APPROVED, 1),
    ])
    def test_transition_counts(self, before, after, delta):
        decision = policy.evaluate(EDITOR, "comment", policy.TRANSITION,
                                   target=make_comment(status=before), changes={"status": after})
        assert decision
        counted = [e.value for e in decision.effects_for("post")]
        assert counted == ([delta] if delta else [])

    @pytest.mark.parametrize("before, after", [
        (CommentStatus.APPROVED, CommentStatus.APPROVED),
        (CommentStatus.APPROVED, CommentStatus.PENDING),
    ])
    def test_conflicting_transitions(self, before, after):
        decision = policy.evaluate(EDITOR, "comment", policy.TRANSITION,
                                   target=make_comment(status=before), changes={"status": after})
        assert decision.error is exceptions.ConflictError

    def test_delete_approved_decrements(self):
        decision = policy.evaluate(SUBSCRIBER, "comment", policy.DELETE,
                                   target=make_comment(status=CommentStatus.APPROVED))
        assert effects(decision) == {("comments_count", "post"): (-1, True)}

    def test_visible_statuses(self):
        assert policy.visible_comment_statuses(EDITOR) is None
        assert policy.visible_comment_statuses(ANON) == [CommentStatus.APPROVED]


class TestLikesAndSettings:
    """Like toggle states and setting visibility."""

    @pytest.mark.parametrize("existing, requested, expected", [
        (None, "like", ("created", 1)),
        ("like", "like", ("removed", -1)),
        ("like", "love", ("changed", 0)),
    ])
    def test_like_transition(self, existing, requested, expected):
        assert tuple(policy.like_transition(existing, requested)) == expected

    def test_setting_visibility(self):
        public = SimpleNamespace(is_public=True)
        private = SimpleNamespace(is_public=False)
        assert policy.can_read_setting(ANON, public)
        assert not policy.can_read_setting(EDITOR, private)
        assert policy.can_read_setting(ADMIN, private)


class TestSideEffectHelpers:
    """Applying side effects."""

    def test_apply_skips_relative(self):
        target = SimpleNamespace(status="pending", comments_count=3)
        policy.apply_side_effects(target, [
            policy.SideEffect("status", "approved"),
            policy.SideEffect("comments_count", 1, relative=True),
        ])
        assert target.status == "approved"
        assert target.comments_count == 3

    def test_update_kwargs_sum_deltas(self):
        kwargs = policy.as_update_kwargs([
            policy.SideEffect("status", "spam"),
            policy.SideEffect("comments_count", -1, relative=True),
            policy.SideEffect("comments_count", -2, relative=True),
            policy.SideEffect("likes_count", 1, relative=True),
            policy.SideEffect("likes_count", -1, relative=True),
        ])
        assert kwargs["status"] == "spam"
        assert set(kwargs) == {"status", "comments_count"}
        assert "-3" in str(kwargs["comments_count"])
