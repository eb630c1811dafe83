"""Database models for drive app."""

import uuid
from pathlib import Path
from typing import ClassVar, Final, final, override

from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_EMAIL_MAX_LENGTH: Final = 254
_MIME_TYPE_MAX_LENGTH: Final = 255
_BLOB_MAX_LENGTH: Final = 500
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length


class ResourceType(models.TextChoices):
    """Kinds of resources that can be owned, shared and linked."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class LiveResourceManager(models.Manager):
    """Manager hiding soft-deleted rows from tree navigation."""

    @override
    def get_queryset(self) -> models.QuerySet:
        """Exclude resources that are in trash."""
        return super().get_queryset().filter(is_deleted=False)


class Resource(models.Model):
    """Fields shared by folders and files.

    ``owner_email`` is the identity supplied by the external identity
    provider. It is set once at creation and never inherited from the
    parent folder.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    owner_email = models.EmailField(
        max_length=_EMAIL_MAX_LENGTH,
        db_index=True,
        editable=False,
    )

    is_starred = models.BooleanField(default=False)

    # Soft delete (trash)
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects: ClassVar[LiveResourceManager] = LiveResourceManager()
    all_objects: ClassVar[models.Manager] = models.Manager()

    resource_type: ClassVar[str]

    class Meta:
        """Model metadata."""

        abstract = True

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_email}:{self.name}'


@final
class Folder(Resource):
    """Folder in a user's tree.

    ``parent`` is ``None`` for root-level folders. The parent chain never
    contains a cycle.
    """

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    resource_type = ResourceType.FOLDER

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['name']
        base_manager_name = 'all_objects'

        indexes = [
            # Optimize folder listing queries
            models.Index(
                fields=['parent', 'is_deleted'],
                name='folders_parent_live_idx',
            ),
            models.Index(
                fields=['owner_email', '-deleted_at'],
                name='folders_owner_trash_idx',
            ),
        ]


@final
class File(Resource):
    """File whose bytes live in S3-compatible storage.

    ``blob`` is the storage locator. It is empty for metadata-only records
    created by a structure import without uploaded content.
    """

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    blob = models.FileField(
        upload_to='',
        max_length=_BLOB_MAX_LENGTH,
        blank=True,
        help_text='Storage locator of the file bytes',
    )

    original_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        default='application/octet-stream',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
        help_text='SHA256 hash for integrity verification',
    )

    resource_type = ResourceType.FILE

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['name']
        base_manager_name = 'all_objects'

        indexes = [
            models.Index(
                fields=['folder', 'is_deleted'],
                name='files_folder_live_idx',
            ),
            models.Index(
                fields=['owner_email', '-deleted_at'],
                name='files_owner_trash_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='files_size_non_negative',
            ),
        ]

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.name).suffix
        return extension.lstrip('.').lower()

    def has_content(self) -> bool:
        """Check whether bytes were uploaded for this record."""
        return bool(self.blob)


RESOURCE_MODELS: Final[dict[str, type[Folder] | type[File]]] = {
    ResourceType.FILE: File,
    ResourceType.FOLDER: Folder,
}


def get_resource_model(resource_type: str) -> type[Folder] | type[File]:
    """Map a resource type to its model class.

    Args:
        resource_type: 'file' or 'folder'.

    Returns:
        Model class for the resource type.

    Raises:
        KeyError: If the resource type is unknown.
    """
    return RESOURCE_MODELS[resource_type]
