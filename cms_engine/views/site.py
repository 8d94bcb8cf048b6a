"""
Settings, media and dashboard endpoints.
"""
import logging
from datetime import timedelta

from django.db.models import Count, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .. import policy
from ..choices import CommentStatus, PostStatus, SettingType, UserStatus
from ..conf import cms_settings
from ..exceptions import ConflictError, NotFound, ValidationError
from ..filters import MediaFilter
from ..models import Category, Comment, Media, Post, Setting, Tag, User
from ..pagination import CMSPagination
from ..permissions import PolicyPermission
from ..serializers import (
    CommentSerializer,
    MediaSerializer,
    MediaUploadSerializer,
    PostListSerializer,
    SettingSerializer,
    SettingWriteSerializer,
    UserSummarySerializer,
)
from .base import ActorMixin

logger = logging.getLogger(__name__)

SETTING_FIELDS = ("category", "description", "is_public", "is_editable", "sort_order")


class SettingViewSet(ActorMixin, viewsets.ViewSet):
    """
    Site settings keyed by ``key``.

    Public settings are readable by anyone; private ones only by admins.
    """

    lookup_field = "key"
    lookup_value_regex = r"[A-Za-z0-9_.\-]+"
    permission_classes = [PolicyPermission]
    policy_resource = "setting"
    policy_actions = {
        "create": policy.CREATE,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
    }

    def list(self, request):
        queryset = Setting.objects.all()
        if not policy.is_allowed(self.actor, "setting", policy.READ):
            queryset = queryset.filter(is_public=True)
        category = request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)
        return Response(SettingSerializer(queryset, many=True).data)

    def _get(self, key):
        setting = Setting.objects.filter(key=key).first()
        if setting is None or not policy.can_read_setting(self.actor, setting):
            raise NotFound(f"Setting {key} not found.")
        return setting

    def retrieve(self, request, key=None):
        return Response(SettingSerializer(self._get(key)).data)

    def create(self, request):
        serializer = SettingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get("key"):
            raise ValidationError("A key is required.")
        if Setting.objects.filter(key=data["key"]).exists():
            raise ConflictError(f"Setting {data['key']} already exists.")

        setting = Setting(key=data["key"], type=data.get("type", SettingType.STRING))
        for name in SETTING_FIELDS:
            if name in data:
                setattr(setting, name, data[name])
        setting.value = Setting.encode_value(data.get("value"), setting.type)
        setting.save()
        logger.info("Setting %s created by user %s", setting.key, self.actor.id)
        return Response(SettingSerializer(setting).data, status=status.HTTP_201_CREATED)

    def update(self, request, key=None):
        setting = self._get(key)
        serializer = SettingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not setting.is_editable:
            raise ValidationError(f"Setting {key} is not editable.")

        for name in SETTING_FIELDS:
            if name in data:
                setattr(setting, name, data[name])
        if "value" in data or "type" in data:
            value = data["value"] if "value" in data else setting.parsed_value
            setting.set_value(value, data.get("type"))
        else:
            setting.save()
        return Response(SettingSerializer(setting).data)

    def partial_update(self, request, key=None):
        return self.update(request, key)

    def destroy(self, request, key=None):
        setting = get_object_or_404(Setting, key=key)
        if not setting.is_editable:
            raise ValidationError(f"Setting {key} is not editable.")
        setting.delete()
        logger.info("Setting %s deleted by user %s", key, self.actor.id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MediaViewSet(
    ActorMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Uploaded media. Members see their own uploads; admins see all.
    """

    serializer_class = MediaSerializer
    lookup_value_regex = r"\d+"
    pagination_class = CMSPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = MediaFilter
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "media"
    policy_actions = {
        "list": policy.LIST,
        "create": policy.CREATE,
        "retrieve": policy.READ,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
    }

    def get_queryset(self):
        queryset = Media.objects.select_related("uploaded_by")
        if not policy.is_allowed(self.actor, "media", policy.READ):
            queryset = queryset.filter(uploaded_by_id=self.actor.id)
        return queryset

    def create(self, request):
        serializer = MediaUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        # Omitted multipart fields arrive as None; leave them to the model defaults.
        data = {name: value for name, value in serializer.validated_data.items() if value is not None}
        upload = data.pop("file")
        item = Media.create_from_upload(upload, uploaded_by=request.user, **data)
        return Response(MediaSerializer(item).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        instance.remove()


class DashboardStatsView(ActorMixin, APIView):
    """Overview counts, breakdowns, popular posts and recent activity for moderators."""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        policy.require(self.actor, "dashboard", policy.READ)
        now = timezone.now()
        since = now - timedelta(days=cms_settings.POPULAR_POSTS_DAYS)
        media_size = Media.objects.aggregate(total=Sum("size"))["total"] or 0

        overview = {
            "total_posts": Post.objects.count(),
            "published_posts": Post.objects.filter(status=PostStatus.PUBLISHED, published_at__lte=now).count(),
            "draft_posts": Post.objects.filter(status=PostStatus.DRAFT).count(),
            "total_users": User.objects.count(),
            "active_users": User.objects.filter(status=UserStatus.ACTIVE).count(),
            "total_comments": Comment.objects.count(),
            "pending_comments": Comment.objects.filter(status=CommentStatus.PENDING).count(),
            "approved_comments": Comment.objects.filter(status=CommentStatus.APPROVED).count(),
            "total_categories": Category.objects.filter(is_active=True).count(),
            "total_tags": Tag.objects.filter(is_active=True).count(),
            "total_media": Media.objects.count(),
            "total_media_size_mb": round(media_size / 1024 / 1024),
        }
        popular = (
            Post.objects.filter(status=PostStatus.PUBLISHED, published_at__gte=since, published_at__lte=now)
            .select_related("author")
            .order_by("-views_count")[:10]
        )
        recent_posts = Post.objects.select_related("author").order_by("-created_at")[:10]
        recent_comments = Comment.objects.select_related("user").order_by("-created_at")[:10]
        recent_users = User.objects.order_by("-date_joined")[:10]

        context = {"request": request}
        return Response({
            "overview": overview,
            "charts": {
                "posts_by_status": _breakdown(Post.objects.all(), "status"),
                "users_by_role": _breakdown(User.objects.all(), "role"),
            },
            "popular_posts": PostListSerializer(popular, many=True, context=context).data,
            "recent_activity": {
                "posts": PostListSerializer(recent_posts, many=True, context=context).data,
                "comments": CommentSerializer(recent_comments, many=True).data,
                "users": UserSummarySerializer(recent_users, many=True).data,
            },
        })


def _breakdown(queryset, field):
    rows = queryset.order_by().values(field).annotate(count=Count("id"))
    return {row[field]: row["count"] for row in rows}
