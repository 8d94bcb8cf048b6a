"""
Comment endpoints: moderation queue, status changes, deletion and likes.
"""
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .. import policy
from ..exceptions import ValidationError
from ..filters import CommentFilter
from ..models import Comment, Like
from ..pagination import CommentPagination
from ..permissions import PolicyPermission
from ..serializers import (
    CommentCreateSerializer,
    CommentModerationSerializer,
    CommentSerializer,
    CommentStatusSerializer,
    LikeSerializer,
)
from .base import ActorMixin, submit_comment


class CommentViewSet(
    ActorMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Comment.objects.select_related("user", "post")
    serializer_class = CommentSerializer
    lookup_value_regex = r"\d+"
    pagination_class = CommentPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = CommentFilter
    permission_classes = [PolicyPermission]
    policy_resource = "comment"
    policy_actions = {
        "list": policy.LIST,
        "approve": policy.TRANSITION,
        "set_status": policy.TRANSITION,
        "destroy": policy.DELETE,
        "like": ("like", policy.CREATE),
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "list":
            queryset = queryset.order_by("-created_at")
        return queryset

    def get_serializer_class(self):
        if self.actor.is_moderator:
            return CommentModerationSerializer
        return CommentSerializer

    def get_readable_comment(self):
        comment = self.get_object()
        policy.evaluate(self.actor, "comment", policy.READ, target=comment).enforce()
        policy.evaluate(self.actor, "post", policy.READ, target=comment.post).enforce()
        return comment

    def retrieve(self, request, *args, **kwargs):
        comment = self.get_readable_comment()
        return Response(self.get_serializer(comment).data)

    def create(self, request):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        post = serializer.validated_data.get("post")
        if post is None:
            raise ValidationError("A post is required.")
        comment = submit_comment(request, self.actor, post, serializer.validated_data)
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        instance.remove(self.actor)

    @action(detail=True, methods=["put", "post"])
    def approve(self, request, pk=None):
        comment = self.get_object().approve(self.actor)
        return Response(self.get_serializer(comment).data)

    @action(detail=True, methods=["put", "patch"], url_path="status")
    def set_status(self, request, pk=None):
        serializer = CommentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = self.get_object().transition(self.actor, serializer.validated_data["status"])
        return Response(self.get_serializer(comment).data)

    @action(detail=True, methods=["post"])
    def like(self, request, pk=None):
        comment = self.get_readable_comment()
        serializer = LikeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        like, outcome = Like.toggle(comment, request.user, serializer.validated_data["type"])
        return Response(
            {
                "action": outcome,
                "type": like.type if like else None,
                "likes_count": comment.likes_count,
            },
            status=status.HTTP_201_CREATED if outcome == policy.LIKE_CREATED else status.HTTP_200_OK,
        )
