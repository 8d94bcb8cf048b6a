"""
Category and tag endpoints.
"""
import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .. import policy, trees
from ..models import Category, Post, Tag
from ..pagination import CMSPagination
from ..permissions import PolicyPermission
from ..serializers import CategoryDetailSerializer, CategorySerializer, PostListSerializer, TagSerializer
from .base import ActorMixin

logger = logging.getLogger(__name__)

TRUTHY = ("1", "true", "yes")


class CategoryViewSet(ActorMixin, viewsets.ModelViewSet):
    """
    Categories.

    The list is the tree of active categories, nested under ``children``;
    pass ``flat=true`` for a flat list (inactive ones included for
    moderators).
    """

    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    lookup_value_regex = r"\d+"
    pagination_class = None
    permission_classes = [PolicyPermission]
    policy_resource = "category"
    policy_actions = {
        "create": policy.CREATE,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
    }

    def get_serializer_class(self):
        if self.action in ("retrieve", "by_slug"):
            return CategoryDetailSerializer
        return CategorySerializer

    def list(self, request, *args, **kwargs):
        queryset = Category.objects.all()
        if not self.actor.is_moderator or request.query_params.get("include_inactive", "").lower() not in TRUTHY:
            queryset = queryset.filter(is_active=True)

        if request.query_params.get("flat", "").lower() in TRUTHY:
            return Response(CategorySerializer(queryset, many=True).data)

        roots = Category.tree(queryset)
        return Response(trees.flatten_tree(roots, lambda c: CategorySerializer(c).data))

    @action(detail=False, methods=["get"], url_path=r"slug/(?P<slug>[-\w]+)")
    def by_slug(self, request, slug=None):
        category = get_object_or_404(Category, slug=slug)
        return Response(self.get_serializer(category).data)

    def destroy(self, request, *args, **kwargs):
        """DELETE with ``reassign_to`` (query or body) when the category has posts."""
        category = self.get_object()
        reassign_to = request.query_params.get("reassign_to") or request.data.get("reassign_to")
        moved = category.delete_with_reassignment(reassign_to or None)
        return Response({"reassigned_posts": moved}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def posts(self, request, pk=None):
        """Published posts filed under this category."""
        category = self.get_object()
        queryset = (
            Post.objects.filter(policy.visible_posts_filter(policy.ANONYMOUS_ACTOR))
            .filter(Q(category=category) | Q(categories=category))
            .select_related("author", "category")
            .prefetch_related("tags", "categories")
            .distinct()
            .order_by("-published_at")
        )
        paginator = CMSPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = PostListSerializer(page, many=True, context=self.get_serializer_context())
        return paginator.get_paginated_response(serializer.data)


class TagViewSet(ActorMixin, viewsets.ModelViewSet):
    """
    Tags annotated with ``posts_count`` (published posts only).

    Listing shows active tags with at least one published post unless
    ``include_empty=true``.
    """

    serializer_class = TagSerializer
    lookup_value_regex = r"\d+"
    pagination_class = CMSPagination
    permission_classes = [PolicyPermission]
    policy_resource = "tag"
    policy_actions = {
        "create": policy.CREATE,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
    }

    def get_queryset(self):
        queryset = Tag.objects.with_post_counts()
        if self.action == "list":
            queryset = queryset.filter(is_active=True)
            if self.request.query_params.get("include_empty", "").lower() not in TRUTHY:
                queryset = queryset.filter(posts_count__gt=0)
            search = self.request.query_params.get("search")
            if search:
                queryset = queryset.filter(name__icontains=search)
            queryset = queryset.order_by("-posts_count", "name")
        return queryset

    @action(detail=False, methods=["get"], url_path=r"slug/(?P<slug>[-\w]+)")
    def by_slug(self, request, slug=None):
        tag = get_object_or_404(Tag.objects.with_post_counts(), slug=slug)
        return Response(self.get_serializer(tag).data)

    def perform_destroy(self, instance):
        logger.info("Tag %s deleted by user %s", instance.slug, self.actor.id)
        instance.delete()
