"""
Comment and Like models for django-cms-engine.

Every change that moves a denormalized counter (a post's
``comments_count``, a post's or comment's ``likes_count``) runs inside
``transaction.atomic()`` with the counter row locked, and applies the
engine's side effects as ``F()`` updates.
"""
import logging

from django.conf import settings
from django.db import models, transaction
from django.db.models import Q

from .. import policy, trees
from ..choices import CommentStatus, LikeType
from ..conf import cms_settings
from ..exceptions import ConflictError, ValidationError
from .mixins import TrackChangesMixin
from .posts import Post

logger = logging.getLogger(__name__)


def _lock_post(post_id):
    return Post.objects.select_for_update().get(pk=post_id)


def _update_post(post_id, side_effects):
    kwargs = policy.as_update_kwargs(side_effects)
    if kwargs:
        Post.objects.filter(pk=post_id).update(**kwargs)


class Comment(TrackChangesMixin, models.Model):
    """
    Comment on a post.

    Supports:
    - Threaded replies via parent field
    - Anonymous comments with name and email
    - Moderation workflow (pending, approved, spam, trash)
    """

    counter_fields = ("likes_count",)

    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="comments",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="replies",
    )
    content = models.TextField(max_length=cms_settings.COMMENT_MAX_LENGTH)

    # Anonymous author details
    author_name = models.CharField(max_length=100, blank=True)
    author_email = models.EmailField(blank=True)
    author_url = models.URLField(max_length=255, blank=True)
    author_ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)

    status = models.CharField(
        max_length=20,
        choices=CommentStatus.choices,
        default=CommentStatus.PENDING,
        db_index=True,
    )
    likes_count = models.PositiveIntegerField(default=0)
    is_reply = models.BooleanField(default=False, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["post", "status", "created_at"]),
        ]

    def __str__(self):
        return f"Comment by {self.author_display} on {self.post}"

    def save(self, *args, **kwargs):
        self.is_reply = self.parent_id is not None
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "parent" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"is_reply"}
        super().save(*args, **self.protect_counters(kwargs))
        self.remember_state()

    @property
    def preview(self):
        """Return truncated content."""
        if len(self.content) > 100:
            return self.content[:100] + "..."
        return self.content

    @property
    def author_display(self):
        if self.user_id:
            return self.user.username
        return self.author_name or "Anonymous"

    @property
    def thread_depth(self):
        """Return nesting depth (0 for top-level)."""
        if self.parent_id is None:
            return 0
        parents = trees.parent_map(
            Comment.objects.filter(post_id=self.post_id).values_list("id", "parent_id")
        )
        return len(trees.ancestors(self.pk, parents))

    @classmethod
    def thread_for(cls, post, statuses=(CommentStatus.APPROVED,)):
        """Comments of ``post`` in the given statuses as nested ``TreeNode`` roots."""
        queryset = cls.objects.filter(post=post).select_related("user")
        if statuses is not None:
            queryset = queryset.filter(status__in=statuses)
        return trees.build_tree(list(queryset.order_by("created_at")))

    @classmethod
    def submit(cls, actor, post, content, parent=None, **author_fields):
        """
        Create a comment on ``post`` as ``actor``.

        The initial status comes from the engine: approved for contributors
        (or when moderation is off), pending otherwise. An approved comment
        bumps the post's ``comments_count`` in the same transaction.
        """
        # Hidden parents read as missing ones.
        if parent is not None and (
            parent.post_id != post.pk or not policy.evaluate(actor, "comment", policy.READ, target=parent)
        ):
            raise ValidationError("Parent comment not found on this post.")
        if actor.is_anonymous and not (author_fields.get("author_name") and author_fields.get("author_email")):
            raise ValidationError("Name and email are required for anonymous comments.")

        with transaction.atomic():
            locked = _lock_post(post.pk)
            decision = policy.evaluate(actor, "comment", policy.CREATE, target=locked).enforce()
            comment = cls(post=locked, user_id=actor.id, parent=parent, content=content, **author_fields)
            policy.apply_side_effects(comment, decision.effects_for("self"))
            comment.save()
            _update_post(locked.pk, decision.effects_for("post"))

        logger.info("Comment %s created on post %s with status %s", comment.pk, post.pk, comment.status)
        return comment

    def transition(self, actor, status):
        """Move the comment to ``status``, keeping the post's comment count in step."""
        with transaction.atomic():
            locked = Comment.objects.select_for_update().get(pk=self.pk)
            _lock_post(locked.post_id)
            decision = policy.evaluate(
                actor, "comment", policy.TRANSITION, target=locked, changes={"status": status}
            ).enforce()
            own_effects = decision.effects_for("self")
            Comment.objects.filter(pk=self.pk).update(**policy.as_update_kwargs(own_effects))
            _update_post(locked.post_id, decision.effects_for("post"))

        policy.apply_side_effects(self, own_effects)
        self.remember_state()
        logger.info("Comment %s moved from %s to %s", self.pk, locked.status, self.status)
        return self

    def approve(self, actor):
        return self.transition(actor, CommentStatus.APPROVED)

    def mark_spam(self, actor):
        return self.transition(actor, CommentStatus.SPAM)

    def trash(self, actor):
        """Soft delete the comment."""
        return self.transition(actor, CommentStatus.TRASH)

    def remove(self, actor):
        """
        Hard delete the comment and its replies.

        The post's comment count drops by the number of approved comments
        removed, including approved replies.
        """
        with transaction.atomic():
            locked = Comment.objects.select_for_update().get(pk=self.pk)
            _lock_post(locked.post_id)
            decision = policy.evaluate(actor, "comment", policy.DELETE, target=locked).enforce()

            parents = trees.parent_map(
                Comment.objects.filter(post_id=locked.post_id).values_list("id", "parent_id")
            )
            replies = trees.descendants(locked.pk, parents)
            approved_replies = Comment.objects.filter(
                pk__in=replies, status=CommentStatus.APPROVED
            ).count()

            effects = decision.effects_for("post")
            if approved_replies:
                effects.append(
                    policy.SideEffect("comments_count", -approved_replies, relative=True, entity="post")
                )
            locked.delete()
            _update_post(locked.post_id, effects)

        logger.info("Comment %s deleted with %d replies", self.pk, len(replies))


class Like(models.Model):
    """
    A user's reaction to exactly one post or one comment.

    One like per user and target, enforced by partial unique constraints.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="likes",
    )
    post = models.ForeignKey(
        Post,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="likes",
    )
    comment = models.ForeignKey(
        Comment,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="likes",
    )
    type = models.CharField(max_length=20, choices=LikeType.choices, default=LikeType.LIKE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(post__isnull=False, comment__isnull=True)
                    | Q(post__isnull=True, comment__isnull=False)
                ),
                name="like_exactly_one_target",
            ),
            models.UniqueConstraint(
                fields=["user", "post"],
                condition=Q(post__isnull=False),
                name="unique_user_post_like",
            ),
            models.UniqueConstraint(
                fields=["user", "comment"],
                condition=Q(comment__isnull=False),
                name="unique_user_comment_like",
            ),
        ]

    def __str__(self):
        return f"{self.user} reacted {self.type} to {self.target}"

    def save(self, *args, **kwargs):
        if (self.post_id is None) == (self.comment_id is None):
            raise ConflictError("A like must target exactly one post or comment.")
        super().save(*args, **kwargs)

    @property
    def target(self):
        return self.post if self.post_id else self.comment

    @classmethod
    def toggle(cls, target, user, like_type=LikeType.LIKE):
        """
        Toggle a like on a post or comment.

        If user has the same type, removes it.
        If user has a different type, changes it.
        If user has no like, adds it.

        Returns (like_or_none, action) and refreshes ``target.likes_count``.
        """
        policy.require(policy.Actor.from_user(user), "like", policy.CREATE)
        if like_type not in LikeType.values:
            raise ValidationError(f"Unknown like type: {like_type}.")

        model = type(target)
        field = "post" if isinstance(target, Post) else "comment"

        with transaction.atomic():
            locked = model.objects.select_for_update().get(pk=target.pk)
            existing = cls.objects.filter(user=user, **{field: locked}).first()
            step = policy.like_transition(existing.type if existing else None, like_type)

            if step.action == policy.LIKE_CREATED:
                like = cls.objects.create(user=user, type=like_type, **{field: locked})
            elif step.action == policy.LIKE_REMOVED:
                existing.delete()
                like = None
            else:
                existing.type = like_type
                existing.save(update_fields=["type", "updated_at"])
                like = existing

            if step.delta:
                model.objects.filter(pk=locked.pk).update(
                    **policy.as_update_kwargs([policy.SideEffect("likes_count", step.delta, relative=True)])
                )
            target.likes_count = model.objects.values_list("likes_count", flat=True).get(pk=locked.pk)

        logger.info("Like %s by user %s on %s %s", step.action, user.pk, field, target.pk)
        return like, step.action
