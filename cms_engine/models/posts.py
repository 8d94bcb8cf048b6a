"""
Post, Category, and Tag models for django-cms-engine.
"""
import logging

from django.conf import settings
from django.db import models, transaction
from django.db.models import Count, Q
from django.utils import timezone

from .. import policy, trees
from ..choices import PostStatus, PostType
from ..conf import cms_settings
from ..exceptions import ConflictError, IntegrityError, ValidationError
from ..text import make_slug
from .mixins import TrackChangesMixin

logger = logging.getLogger(__name__)


class Category(TrackChangesMixin, models.Model):
    """
    Hierarchical category for organizing posts.

    Nesting is stored as ``parent_id`` only; tree walks load flat rows and
    use ``cms_engine.trees``. A category can never become its own ancestor.
    """

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=7, blank=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="children",
    )
    sort_order = models.IntegerField(default=0, help_text="Display order within parent")
    is_active = models.BooleanField(default=True)
    meta_title = models.CharField(max_length=255, blank=True)
    meta_description = models.CharField(max_length=500, blank=True)
    featured_image = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        if self.parent:
            return f"{self.parent} > {self.name}"
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug or (self.has_changed("name") and not self.has_changed("slug")):
            self.slug = make_slug(self.name, max_length=120)
        if not self.slug:
            raise ValidationError("Category name must contain letters or digits.")
        self.ensure_unique(slug=self.slug)
        if not self._state.adding and self.has_changed("parent_id"):
            self.check_parent(self.parent_id)
        super().save(*args, **kwargs)
        self.remember_state()

    def check_parent(self, parent_id):
        """Raise IntegrityError if ``parent_id`` would put this category in a cycle."""
        parents = trees.parent_map(Category.objects.values_list("id", "parent_id"))
        if trees.creates_cycle(self.pk, parent_id, parents):
            raise IntegrityError("A category cannot be moved under itself or one of its descendants.")

    @property
    def post_count(self):
        """Return count of published posts in this category."""
        return self.posts.filter(status=PostStatus.PUBLISHED).count()

    def get_ancestors(self):
        """Return list of ancestor categories from root to parent."""
        if self.parent_id is None:
            return []
        parents = trees.parent_map(Category.objects.values_list("id", "parent_id"))
        ids = [self.parent_id] + trees.ancestors(self.parent_id, parents)
        by_id = Category.objects.in_bulk(ids)
        return [by_id[pk] for pk in reversed(ids) if pk in by_id and pk != self.pk]

    def get_descendants(self):
        """Return all descendant categories."""
        parents = trees.parent_map(Category.objects.values_list("id", "parent_id"))
        return list(Category.objects.filter(pk__in=trees.descendants(self.pk, parents)))

    @classmethod
    def tree(cls, queryset=None):
        """Active categories as nested ``TreeNode`` roots."""
        if queryset is None:
            queryset = cls.objects.filter(is_active=True)
        return trees.build_tree(list(queryset.order_by("sort_order", "name")))

    def delete_with_reassignment(self, reassign_to=None):
        """
        Delete this category, moving its posts to ``reassign_to`` first.

        A category that still has posts cannot be deleted without a target.
        Child categories move up to this category's parent. Returns the
        number of posts reassigned.
        """
        with transaction.atomic():
            posts = Post.objects.filter(category=self)
            count = posts.count()
            target = None
            if count:
                if reassign_to is None:
                    raise ConflictError(
                        f"Category has {count} associated posts. "
                        "Provide a category to reassign them to."
                    )
                target = self._resolve_target(reassign_to)
                posts.update(category=target)
            elif reassign_to is not None:
                target = self._resolve_target(reassign_to)

            if target is not None:
                for post in self.listed_posts.all():
                    post.categories.add(target)

            Category.objects.filter(parent=self).update(parent_id=self.parent_id)
            self.delete()

        logger.info(
            "Deleted category %s, reassigned %d posts to %s",
            self.slug,
            count,
            target.pk if target else None,
        )
        return count

    def _resolve_target(self, reassign_to):
        try:
            target_id = int(getattr(reassign_to, "pk", reassign_to))
        except (TypeError, ValueError):
            raise ValidationError("Reassignment category does not exist.")
        if target_id == self.pk:
            raise ValidationError("Cannot reassign posts to the category being deleted.")
        target = Category.objects.filter(pk=target_id).first()
        if target is None:
            raise ValidationError("Reassignment category does not exist.")
        return target


class TagQuerySet(models.QuerySet):
    def with_post_counts(self):
        """Annotate ``posts_count``: the number of published posts with the tag."""
        return self.annotate(
            posts_count=Count(
                "posts",
                filter=Q(posts__status=PostStatus.PUBLISHED),
                distinct=True,
            )
        )


class Tag(TrackChangesMixin, models.Model):
    """
    Flat tag for posts.

    Post counts are never stored; use ``Tag.objects.with_post_counts()``.
    """

    name = models.CharField(max_length=50, unique=True)
    slug = models.SlugField(max_length=60, unique=True, blank=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=7, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TagQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug or (self.has_changed("name") and not self.has_changed("slug")):
            self.slug = make_slug(self.name, max_length=60)
        if not self.slug:
            raise ValidationError("Tag name must contain letters or digits.")
        self.ensure_unique(name=self.name)
        self.ensure_unique(slug=self.slug)
        super().save(*args, **kwargs)
        self.remember_state()


class Post(TrackChangesMixin, models.Model):
    """
    Post / page / article.

    Saving applies the engine's post side effects: the slug follows the
    title, reading time follows the content and ``published_at`` is set
    once on first publication and never moved afterwards.
    """

    counter_fields = ("views_count", "likes_count", "comments_count")
    policy_fields = ("title", "slug", "content", "status", "published_at")

    # Content
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=300, unique=True, blank=True)
    content = models.TextField()
    excerpt = models.CharField(max_length=500, blank=True)
    featured_image = models.CharField(max_length=500, blank=True)

    # Status
    status = models.CharField(
        max_length=20,
        choices=PostStatus.choices,
        default=PostStatus.DRAFT,
    )
    type = models.CharField(max_length=20, choices=PostType.choices, default=PostType.POST)
    published_at = models.DateTimeField(null=True, blank=True, db_index=True)

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="posts",
    )

    # Taxonomy
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="posts",
    )
    categories = models.ManyToManyField(Category, related_name="listed_posts", blank=True)
    tags = models.ManyToManyField(Tag, related_name="posts", blank=True)

    # Engagement stats
    views_count = models.PositiveIntegerField(default=0)
    likes_count = models.PositiveIntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)

    allow_comments = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    is_sticky = models.BooleanField(default=False)

    # SEO
    seo_title = models.CharField(max_length=255, blank=True)
    seo_description = models.CharField(max_length=500, blank=True)
    seo_keywords = models.CharField(max_length=500, blank=True)

    custom_fields = models.JSONField(default=dict, blank=True)
    sort_order = models.IntegerField(default=0)
    reading_time = models.PositiveIntegerField(default=0, help_text="Minutes")

    # Timestamps
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-is_sticky", "-created_at"]
        indexes = [
            models.Index(fields=["status", "published_at"]),
            models.Index(fields=["author", "-created_at"]),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        changes = {name: getattr(self, name) for name in self.policy_fields}
        effects = policy.post_side_effects(self.loaded_snapshot(), changes)
        policy.apply_side_effects(self, effects)

        if not self.slug:
            raise ValidationError("Post title must contain letters or digits.")
        self.ensure_unique(slug=self.slug)

        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {e.field for e in effects} | {"updated_at"}
        super().save(*args, **self.protect_counters(kwargs))
        self.remember_state()

    @property
    def preview(self):
        """Return the excerpt or truncated content for listings."""
        if self.excerpt:
            return self.excerpt
        if len(self.content) > 280:
            return self.content[:280] + "..."
        return self.content

    @property
    def is_published(self):
        """Published and past its publish time."""
        return policy.is_publicly_visible(self)

    def can_view(self, user):
        """Check if user has permission to view this post."""
        return policy.can_read_post(policy.Actor.from_user(user), self)

    def publish(self):
        """Publish the post immediately."""
        self.status = PostStatus.PUBLISHED
        self.save(update_fields=["status"])

    def trash(self):
        """Soft delete the post."""
        self.status = PostStatus.TRASH
        self.save(update_fields=["status"])

    def increment_views_count(self):
        """Increment view count atomically."""
        Post.objects.filter(pk=self.pk).update(views_count=models.F("views_count") + 1)
        self.views_count += 1

    def related(self, limit=None):
        """Published posts sharing this post's category or one of its tags."""
        limit = limit or cms_settings.RELATED_POSTS_LIMIT
        match = Q(tags__in=self.tags.all())
        if self.category_id:
            match |= Q(category_id=self.category_id)
        queryset = (
            Post.objects.filter(policy.visible_posts_filter(policy.ANONYMOUS_ACTOR))
            .filter(match)
            .exclude(pk=self.pk)
            .distinct()
            .order_by("-published_at")
        )
        return list(queryset[:limit])
