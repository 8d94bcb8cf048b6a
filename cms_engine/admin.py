"""
Django admin configuration for cms_engine.

Moderation actions go through the model operations so that counters and
publish times stay consistent with the API.
"""
from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html

from .choices import CommentStatus
from .exceptions import CMSError
from .models import Category, Comment, Like, Media, Post, Setting, Tag, User
from .policy import Actor


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "email", "role", "status", "email_verified", "date_joined"]
    list_filter = ["role", "status", "email_verified"]
    fieldsets = BaseUserAdmin.fieldsets + (
        ("CMS", {"fields": ("role", "status", "bio", "avatar", "email_verified")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("CMS", {"fields": ("email", "role")}),
    )


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "parent", "slug", "post_count", "is_active", "sort_order"]
    list_filter = ["is_active", "parent"]
    search_fields = ["name", "slug", "description"]
    readonly_fields = ["slug", "created_at", "updated_at"]
    list_editable = ["sort_order", "is_active"]
    ordering = ["parent__name", "sort_order", "name"]


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    readonly_fields = ["slug", "created_at"]


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = [
        "title_preview",
        "author",
        "status",
        "type",
        "is_sticky",
        "category",
        "views_count",
        "comments_count",
        "published_at",
    ]
    list_filter = ["status", "type", "is_featured", "is_sticky", "category", "created_at"]
    search_fields = ["title", "content", "author__username"]
    raw_id_fields = ["author", "category"]
    filter_horizontal = ["categories", "tags"]
    date_hierarchy = "created_at"
    readonly_fields = [
        "reading_time",
        "views_count",
        "likes_count",
        "comments_count",
        "published_at",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (None, {
            "fields": ("title", "slug", "content", "excerpt", "author", "featured_image")
        }),
        ("Taxonomy", {
            "fields": ("category", "categories", "tags")
        }),
        ("Status", {
            "fields": ("status", "type", "allow_comments", "is_featured", "is_sticky", "sort_order")
        }),
        ("SEO", {
            "fields": ("seo_title", "seo_description", "seo_keywords", "custom_fields"),
            "classes": ("collapse",),
        }),
        ("Metadata", {
            "fields": (
                "reading_time",
                "views_count",
                "likes_count",
                "comments_count",
                "published_at",
                "created_at",
                "updated_at",
            ),
            "classes": ("collapse",),
        }),
    )

    actions = ["publish_posts", "trash_posts"]

    @admin.display(description="Title")
    def title_preview(self, obj):
        return obj.title[:60] + "..." if len(obj.title) > 60 else obj.title

    @admin.action(description="Publish selected posts")
    def publish_posts(self, request, queryset):
        for post in queryset:
            post.publish()
        self.message_user(request, f"{queryset.count()} posts published.")

    @admin.action(description="Move selected posts to trash")
    def trash_posts(self, request, queryset):
        count = 0
        for post in queryset:
            post.trash()
            count += 1
        self.message_user(request, f"{count} posts moved to trash.")


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ["preview", "author_display", "post", "status", "is_reply", "created_at"]
    list_filter = ["status", "is_reply", "created_at"]
    search_fields = ["content", "author_name", "user__username", "post__title"]
    raw_id_fields = ["post", "user", "parent"]
    readonly_fields = ["status", "likes_count", "is_reply", "author_ip", "user_agent", "created_at", "updated_at"]
    actions = ["approve_comments", "mark_spam", "trash_comments"]

    def has_add_permission(self, request):
        return False

    def _transition(self, request, queryset, status, label):
        actor = Actor.from_user(request.user)
        done = skipped = 0
        for comment in queryset:
            try:
                comment.transition(actor, status)
                done += 1
            except CMSError:
                skipped += 1
        self.message_user(request, f"{done} comments {label}.")
        if skipped:
            self.message_user(request, f"{skipped} comments skipped.", level=messages.WARNING)

    @admin.action(description="Approve selected comments")
    def approve_comments(self, request, queryset):
        self._transition(request, queryset, CommentStatus.APPROVED, "approved")

    @admin.action(description="Mark selected comments as spam")
    def mark_spam(self, request, queryset):
        self._transition(request, queryset, CommentStatus.SPAM, "marked as spam")

    @admin.action(description="Move selected comments to trash")
    def trash_comments(self, request, queryset):
        self._transition(request, queryset, CommentStatus.TRASH, "moved to trash")

    def delete_model(self, request, obj):
        obj.remove(Actor.from_user(request.user))

    def delete_queryset(self, request, queryset):
        actor = Actor.from_user(request.user)
        for comment in queryset.order_by("-pk"):
            if Comment.objects.filter(pk=comment.pk).exists():
                comment.remove(actor)


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ["user", "post", "comment", "type", "created_at"]
    list_filter = ["type", "created_at"]
    search_fields = ["user__username", "post__title"]
    raw_id_fields = ["user", "post", "comment"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Media)
class MediaAdmin(admin.ModelAdmin):
    list_display = [
        "thumbnail_preview",
        "original_name",
        "type",
        "human_file_size",
        "dimensions",
        "uploaded_by",
        "created_at",
    ]
    list_filter = ["type", "is_public", "created_at"]
    search_fields = ["original_name", "alt", "caption"]
    raw_id_fields = ["uploaded_by", "post"]
    readonly_fields = ["size", "width", "height", "mime_type", "metadata", "download_count", "created_at"]

    @admin.display(description="Preview")
    def thumbnail_preview(self, obj):
        if obj.is_image and obj.file:
            return format_html(
                '<img src="{}" style="max-width: 50px; max-height: 50px;" />',
                obj.file.url,
            )
        return obj.type

    def dimensions(self, obj):
        if obj.width and obj.height:
            return f"{obj.width}x{obj.height}"
        return "-"


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ["key", "type", "category", "is_public", "is_editable"]
    list_filter = ["type", "category", "is_public", "is_editable"]
    search_fields = ["key", "description"]
