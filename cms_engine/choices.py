"""
Enumerated field values shared by models, serializers and the policy engine.
"""
from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = "super_admin", "Super admin"
    ADMIN = "admin", "Admin"
    EDITOR = "editor", "Editor"
    AUTHOR = "author", "Author"
    SUBSCRIBER = "subscriber", "Subscriber"


class UserStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class PostStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    PRIVATE = "private", "Private"
    PENDING = "pending", "Pending review"
    TRASH = "trash", "Trash"


class PostType(models.TextChoices):
    POST = "post", "Post"
    PAGE = "page", "Page"
    PRODUCT = "product", "Product"
    EVENT = "event", "Event"


class CommentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    SPAM = "spam", "Spam"
    TRASH = "trash", "Trash"


class LikeType(models.TextChoices):
    LIKE = "like", "Like"
    DISLIKE = "dislike", "Dislike"
    LOVE = "love", "Love"
    LAUGH = "laugh", "Laugh"
    ANGRY = "angry", "Angry"
    SAD = "sad", "Sad"


class MediaType(models.TextChoices):
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    DOCUMENT = "document", "Document"
    OTHER = "other", "Other"


class SettingType(models.TextChoices):
    STRING = "string", "String"
    NUMBER = "number", "Number"
    BOOLEAN = "boolean", "Boolean"
    JSON = "json", "JSON"
    ARRAY = "array", "Array"
