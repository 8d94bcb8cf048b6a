"""
Query filters for list endpoints.
"""
import django_filters
from django.db.models import Q

from .choices import CommentStatus, MediaType, PostStatus, PostType, Role, UserStatus
from .models import Comment, Media, Post, User


class PostFilter(django_filters.FilterSet):
    """
    Post listing filters.

    Without an explicit ``status`` trashed posts are left out; without an
    explicit ``type`` only ``post`` entries are listed.
    """

    status = django_filters.ChoiceFilter(choices=PostStatus.choices)
    type = django_filters.ChoiceFilter(choices=PostType.choices)
    category = django_filters.NumberFilter(method="filter_category")
    tag = django_filters.CharFilter(field_name="tags__slug")
    author = django_filters.NumberFilter(field_name="author_id")
    featured = django_filters.BooleanFilter(field_name="is_featured")
    search = django_filters.CharFilter(method="filter_search")
    ordering = django_filters.OrderingFilter(
        fields=(
            "created_at",
            "updated_at",
            "published_at",
            "title",
            "views_count",
            "likes_count",
        )
    )

    class Meta:
        model = Post
        fields = ["status", "type", "category", "tag", "author", "featured"]

    def filter_category(self, qs, name, value):
        return qs.filter(Q(category_id=value) | Q(categories__id=value)).distinct()

    def filter_search(self, qs, name, value):
        return qs.filter(
            Q(title__icontains=value)
            | Q(content__icontains=value)
            | Q(excerpt__icontains=value)
        )

    @property
    def qs(self):
        queryset = super().qs
        if not self.data.get("status"):
            queryset = queryset.exclude(status=PostStatus.TRASH)
        if not self.data.get("type"):
            queryset = queryset.filter(type=PostType.POST)
        return queryset


class CommentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=CommentStatus.choices)
    post = django_filters.NumberFilter(field_name="post_id")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Comment
        fields = ["status", "post"]

    def filter_search(self, qs, name, value):
        return qs.filter(
            Q(content__icontains=value)
            | Q(author_name__icontains=value)
            | Q(user__username__icontains=value)
        )


class MediaFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(choices=MediaType.choices)
    folder = django_filters.CharFilter(field_name="folder")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Media
        fields = ["type", "folder"]

    def filter_search(self, qs, name, value):
        return qs.filter(
            Q(original_name__icontains=value)
            | Q(alt__icontains=value)
            | Q(caption__icontains=value)
        )


class UserFilter(django_filters.FilterSet):
    role = django_filters.ChoiceFilter(choices=Role.choices)
    status = django_filters.ChoiceFilter(choices=UserStatus.choices)
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = User
        fields = ["role", "status"]

    def filter_search(self, qs, name, value):
        return qs.filter(
            Q(username__icontains=value)
            | Q(email__icontains=value)
            | Q(first_name__icontains=value)
            | Q(last_name__icontains=value)
        )
