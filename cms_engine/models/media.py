"""
Media model for django-cms-engine.

Uploads are validated against ALLOWED_MEDIA_TYPES and MEDIA_MAX_SIZE_MB;
image dimensions are read with Pillow.
"""
import logging
import os

from django.conf import settings
from django.db import models
from django.utils import timezone
from PIL import ExifTags, Image

from ..choices import MediaType
from ..conf import cms_settings
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)


def get_upload_path(instance, filename):
    """Generate a dated upload path for media files."""
    return timezone.now().strftime(cms_settings.MEDIA_UPLOAD_PATH) + filename


class Media(models.Model):
    """An uploaded file owned by the user who uploaded it."""

    file = models.FileField(upload_to=get_upload_path, max_length=500)
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100)
    size = models.PositiveIntegerField(default=0, help_text="File size in bytes")
    type = models.CharField(max_length=20, choices=MediaType.choices, default=MediaType.OTHER)

    alt = models.CharField(max_length=255, blank=True)
    caption = models.TextField(blank=True)
    description = models.TextField(blank=True)

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="uploaded_media",
    )
    post = models.ForeignKey(
        "cms_engine.Post",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attachments",
    )

    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    duration = models.FloatField(
        null=True,
        blank=True,
        help_text="Duration in seconds for video/audio",
    )
    metadata = models.JSONField(default=dict, blank=True)

    is_public = models.BooleanField(default=True)
    download_count = models.PositiveIntegerField(default=0)
    folder = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Media item"
        verbose_name_plural = "Media"

    def __str__(self):
        return f"{self.original_name} ({self.type})"

    @property
    def url(self):
        """Return URL to the file."""
        if self.file:
            return self.file.url
        return None

    @property
    def file_extension(self):
        if self.original_name:
            return os.path.splitext(self.original_name)[1].lower()
        return ""

    @property
    def is_image(self):
        return self.type == MediaType.IMAGE

    @property
    def human_file_size(self):
        """Return human-readable file size."""
        size = self.size
        for unit in ["B", "KB", "MB", "GB"]:
            if size < 1024:
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} TB"

    @staticmethod
    def classify(mime_type):
        """Map a MIME type to a media type."""
        mime_type = mime_type or ""
        if mime_type.startswith("image/"):
            return MediaType.IMAGE
        if mime_type.startswith("video/"):
            return MediaType.VIDEO
        if mime_type.startswith("audio/"):
            return MediaType.AUDIO
        if mime_type.startswith("application/") or mime_type.startswith("text/"):
            return MediaType.DOCUMENT
        return MediaType.OTHER

    @classmethod
    def create_from_upload(cls, file_obj, uploaded_by=None, **fields):
        """
        Validate and store an uploaded file.

        Args:
            file_obj: Django UploadedFile
            uploaded_by: User who uploaded the file
            **fields: alt, caption, description, folder, post, is_public

        Returns:
            the new Media instance
        """
        mime_type = getattr(file_obj, "content_type", "") or ""
        if mime_type not in cms_settings.ALLOWED_MEDIA_TYPES:
            raise ValidationError(f"File type {mime_type or 'unknown'} is not allowed.")
        max_bytes = cms_settings.MEDIA_MAX_SIZE_MB * 1024 * 1024
        if file_obj.size > max_bytes:
            raise ValidationError(f"File exceeds the {cms_settings.MEDIA_MAX_SIZE_MB} MB limit.")

        item = cls.objects.create(
            file=file_obj,
            original_name=os.path.basename(file_obj.name),
            mime_type=mime_type,
            size=file_obj.size,
            type=cls.classify(mime_type),
            uploaded_by=uploaded_by,
            **fields,
        )

        if item.is_image:
            item._extract_image_metadata()

        logger.info("Stored media %s (%s, %d bytes)", item.pk, mime_type, item.size)
        return item

    def _extract_image_metadata(self):
        """Read dimensions and basic EXIF with Pillow; unreadable images are logged and kept."""
        try:
            self.file.open("rb")
            with Image.open(self.file) as img:
                self.width, self.height = img.size
                metadata = {"format": img.format, "mode": img.mode}
                exif = img.getexif()
                for tag_id in (0x010F, 0x0110):  # Make, Model
                    if tag_id in exif:
                        metadata[ExifTags.TAGS[tag_id].lower()] = str(exif[tag_id]).strip("\x00 ")
        except (OSError, Image.DecompressionBombError) as exc:
            logger.warning("Could not read image metadata for media %s: %s", self.pk, exc)
            return
        finally:
            self.file.close()

        self.metadata = metadata
        self.save(update_fields=["width", "height", "metadata", "updated_at"])

    def remove(self):
        """Delete the stored file and the record."""
        self.file.delete(save=False)
        self.delete()
        logger.info("Deleted media %s", self.pk)
