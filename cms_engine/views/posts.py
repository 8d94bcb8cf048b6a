"""
Post endpoints.
"""
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .. import policy, trees
from ..conf import cms_settings
from ..filters import PostFilter
from ..models import Comment, Like, Post
from ..pagination import CMSPagination
from ..permissions import PolicyPermission
from ..serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    LikeSerializer,
    PostListSerializer,
    PostSerializer,
)
from .base import ActorMixin, submit_comment

logger = logging.getLogger(__name__)


class PostViewSet(ActorMixin, viewsets.ModelViewSet):
    """
    Posts.

    Listing shows what the actor may read: published posts to everyone,
    own posts to their authors, everything to moderators. Reading a
    live post counts a view.
    """

    queryset = Post.objects.select_related("author", "category").prefetch_related("tags", "categories")
    serializer_class = PostSerializer
    lookup_value_regex = r"\d+"
    pagination_class = CMSPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = PostFilter
    permission_classes = [PolicyPermission]
    policy_resource = "post"
    policy_actions = {
        "create": policy.CREATE,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
        "like": ("like", policy.CREATE),
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "list":
            queryset = queryset.filter(policy.visible_posts_filter(self.actor))
        return queryset

    def get_serializer_class(self):
        if self.action == "list":
            return PostListSerializer
        return PostSerializer

    def get_readable_post(self):
        post = self.get_object()
        policy.evaluate(self.actor, "post", policy.READ, target=post).enforce()
        return post

    def _read(self, post):
        policy.evaluate(self.actor, "post", policy.READ, target=post).enforce()
        if policy.is_publicly_visible(post):
            post.increment_views_count()
        return Response(PostSerializer(post, context=self.get_serializer_context()).data)

    def retrieve(self, request, *args, **kwargs):
        return self._read(self.get_object())

    @action(detail=False, methods=["get"], url_path=r"slug/(?P<slug>[-\w]+)")
    def by_slug(self, request, slug=None):
        return self._read(get_object_or_404(self.get_queryset(), slug=slug))

    def perform_create(self, serializer):
        policy.evaluate(
            self.actor, "post", policy.CREATE, changes=serializer.validated_data
        ).enforce()
        with transaction.atomic():
            post = serializer.save(author=self.request.user)
        logger.info("Post %s created by user %s with status %s", post.pk, self.actor.id, post.status)

    def perform_update(self, serializer):
        post = serializer.instance
        changes = serializer.validated_data
        operation = policy.UPDATE
        if "status" in changes and changes["status"] != post.status:
            operation = policy.TRANSITION
        policy.evaluate(self.actor, "post", operation, target=post, changes=changes).enforce()
        before = post.status
        with transaction.atomic():
            post = serializer.save()
        if post.status != before:
            logger.info("Post %s moved from %s to %s", post.pk, before, post.status)

    def perform_destroy(self, instance):
        policy.evaluate(self.actor, "post", policy.DELETE, target=instance).enforce()
        pk = instance.pk
        instance.delete()
        logger.info("Post %s deleted by user %s", pk, self.actor.id)

    @action(detail=True, methods=["post"])
    def like(self, request, pk=None):
        post = self.get_readable_post()
        serializer = LikeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        like, outcome = Like.toggle(post, request.user, serializer.validated_data["type"])
        return Response(
            {
                "action": outcome,
                "type": like.type if like else None,
                "likes_count": post.likes_count,
            },
            status=status.HTTP_201_CREATED if outcome == policy.LIKE_CREATED else status.HTTP_200_OK,
        )

    @action(detail=True, methods=["get"])
    def related(self, request, pk=None):
        post = self.get_readable_post()
        try:
            limit = int(request.query_params.get("limit", cms_settings.RELATED_POSTS_LIMIT))
        except ValueError:
            limit = cms_settings.RELATED_POSTS_LIMIT
        limit = max(1, min(limit, cms_settings.MAX_PAGE_SIZE))
        related = post.related(limit)
        return Response(PostListSerializer(related, many=True, context=self.get_serializer_context()).data)

    @action(detail=True, methods=["get", "post"])
    def comments(self, request, pk=None):
        """GET: the post's visible comments as a tree. POST: add a comment."""
        post = self.get_readable_post()
        if request.method == "POST":
            serializer = CommentCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            comment = submit_comment(request, self.actor, post, serializer.validated_data)
            return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)

        roots = Comment.thread_for(post, policy.visible_comment_statuses(self.actor))
        return Response(
            trees.flatten_tree(roots, lambda c: CommentSerializer(c).data, children_key="replies")
        )
