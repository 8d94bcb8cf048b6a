"""
Serializers for the CMS API.

Denormalized counters and derived fields (slug, reading time, is_reply)
are read-only here; they change only through the engine.
"""
from django.contrib.auth import password_validation
from django.core.validators import RegexValidator
from rest_framework import serializers

from .choices import CommentStatus, LikeType, PostStatus, PostType, SettingType
from .conf import cms_settings
from .exceptions import ConflictError
from .models import Category, Comment, Media, Post, Setting, Tag, User

hex_color = RegexValidator(r"^#[0-9A-Fa-f]{6}$", "Enter a hex colour such as #1e90ff.")
alphanumeric = RegexValidator(r"^[A-Za-z0-9]+$", "Only letters and digits are allowed.")


# Users

class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "avatar"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """Full profile. ``role`` and ``status`` are writable only by admins (checked in the view)."""

    username = serializers.CharField(min_length=3, max_length=50, validators=[alphanumeric])
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "password",
            "first_name",
            "last_name",
            "role",
            "status",
            "bio",
            "avatar",
            "email_verified",
            "last_login",
            "date_joined",
            "updated_at",
        ]
        read_only_fields = ["email_verified", "last_login", "date_joined", "updated_at"]

    def validate_username(self, value):
        _ensure_available("username", value, self.instance)
        return value

    def validate_email(self, value):
        value = value.lower()
        _ensure_available("email", value, self.instance)
        return value

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        if password:
            instance.set_password(password)
        return super().update(instance, validated_data)


def _ensure_available(field, value, instance=None):
    queryset = User.objects.filter(**{f"{field}__iexact": value})
    if instance is not None:
        queryset = queryset.exclude(pk=instance.pk)
    if queryset.exists():
        raise ConflictError(f"A user with this {field} already exists.")


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=50, validators=[alphanumeric])
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_username(self, value):
        _ensure_available("username", value)
        return value

    def validate_email(self, value):
        value = value.lower()
        _ensure_available("email", value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(write_only=True, min_length=6)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_new_password(self, value):
        password_validation.validate_password(value, self.context["request"].user)
        return value


# Taxonomy

class CategorySerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100)
    color = serializers.CharField(max_length=7, required=False, allow_blank=True, validators=[hex_color])
    post_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "slug",
            "description",
            "color",
            "parent",
            "sort_order",
            "is_active",
            "meta_title",
            "meta_description",
            "featured_image",
            "post_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["slug", "created_at", "updated_at"]


class CategoryDetailSerializer(CategorySerializer):
    ancestors = serializers.SerializerMethodField()
    children = serializers.SerializerMethodField()

    class Meta(CategorySerializer.Meta):
        fields = CategorySerializer.Meta.fields + ["ancestors", "children"]

    def get_ancestors(self, obj):
        return [{"id": c.id, "name": c.name, "slug": c.slug} for c in obj.get_ancestors()]

    def get_children(self, obj):
        children = obj.children.filter(is_active=True).order_by("sort_order", "name")
        return [{"id": c.id, "name": c.name, "slug": c.slug} for c in children]


class TagSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=50)
    color = serializers.CharField(max_length=7, required=False, allow_blank=True, validators=[hex_color])
    posts_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Tag
        fields = ["id", "name", "slug", "description", "color", "is_active", "posts_count", "created_at"]
        read_only_fields = ["slug", "created_at"]


class TaxonomySummarySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    slug = serializers.CharField()


# Posts

class PostSerializer(serializers.ModelSerializer):
    title = serializers.CharField(min_length=3, max_length=255)
    slug = serializers.SlugField(max_length=300, required=False, allow_blank=True)
    content = serializers.CharField(min_length=10)
    excerpt = serializers.CharField(max_length=500, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=PostStatus.choices, required=False)
    type = serializers.ChoiceField(choices=PostType.choices, required=False)
    author = UserSummarySerializer(read_only=True)
    tag_list = TaxonomySummarySerializer(source="tags", many=True, read_only=True)

    class Meta:
        model = Post
        fields = [
            "id",
            "title",
            "slug",
            "excerpt",
            "status",
            "type",
            "featured_image",
            "author",
            "category",
            "categories",
            "tags",
            "tag_list",
            "published_at",
            "views_count",
            "likes_count",
            "comments_count",
            "allow_comments",
            "is_featured",
            "is_sticky",
            "sort_order",
            "reading_time",
            "created_at",
            "updated_at",
            "content",
            "seo_title",
            "seo_description",
            "seo_keywords",
            "custom_fields",
        ]
        read_only_fields = [
            "views_count",
            "likes_count",
            "comments_count",
            "reading_time",
            "created_at",
            "updated_at",
        ]

    def validate(self, attrs):
        # A blank slug means "derive it from the title".
        if not attrs.get("slug"):
            attrs.pop("slug", None)
        return attrs


class PostListSerializer(PostSerializer):
    """Listing variant without the body and SEO fields."""

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields[:-5]


# Comments

class CommentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    author_name = serializers.CharField(source="author_display", read_only=True)

    class Meta:
        model = Comment
        fields = [
            "id",
            "post",
            "parent",
            "user",
            "author_name",
            "author_url",
            "content",
            "status",
            "likes_count",
            "is_reply",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CommentModerationSerializer(CommentSerializer):
    """Adds author contact details for moderators."""

    post_title = serializers.CharField(source="post.title", read_only=True)

    class Meta(CommentSerializer.Meta):
        fields = CommentSerializer.Meta.fields + ["post_title", "author_email", "author_ip", "user_agent"]
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    post = serializers.PrimaryKeyRelatedField(queryset=Post.objects.all(), required=False)
    parent = serializers.PrimaryKeyRelatedField(queryset=Comment.objects.all(), required=False, allow_null=True)
    content = serializers.CharField(min_length=1, max_length=cms_settings.COMMENT_MAX_LENGTH)
    author_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    author_email = serializers.EmailField(required=False, allow_blank=True)
    author_url = serializers.URLField(max_length=255, required=False, allow_blank=True)


class CommentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CommentStatus.choices)


class LikeSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=LikeType.choices, default=LikeType.LIKE)


# Media

class MediaSerializer(serializers.ModelSerializer):
    uploaded_by = UserSummarySerializer(read_only=True)
    url = serializers.CharField(read_only=True)

    class Meta:
        model = Media
        fields = [
            "id",
            "url",
            "original_name",
            "mime_type",
            "size",
            "type",
            "alt",
            "caption",
            "description",
            "uploaded_by",
            "post",
            "width",
            "height",
            "duration",
            "metadata",
            "is_public",
            "download_count",
            "folder",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "original_name",
            "mime_type",
            "size",
            "type",
            "width",
            "height",
            "duration",
            "metadata",
            "download_count",
            "created_at",
            "updated_at",
        ]


class MediaUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    alt = serializers.CharField(max_length=255, required=False, allow_blank=True)
    caption = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    folder = serializers.CharField(max_length=255, required=False, allow_blank=True)
    is_public = serializers.BooleanField(required=False, allow_null=True, default=None)
    post = serializers.PrimaryKeyRelatedField(queryset=Post.objects.all(), required=False, allow_null=True)


# Settings

class SettingSerializer(serializers.ModelSerializer):
    value = serializers.JSONField(source="parsed_value", read_only=True)

    class Meta:
        model = Setting
        fields = [
            "key",
            "value",
            "type",
            "category",
            "description",
            "is_public",
            "is_editable",
            "sort_order",
            "updated_at",
        ]
        read_only_fields = fields


class SettingWriteSerializer(serializers.Serializer):
    key = serializers.RegexField(r"^[A-Za-z0-9_.\-]+$", max_length=100, required=False)
    value = serializers.JSONField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=SettingType.choices, required=False)
    category = serializers.CharField(max_length=50, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    is_public = serializers.BooleanField(required=False)
    is_editable = serializers.BooleanField(required=False)
    sort_order = serializers.IntegerField(required=False)
