"""Django admin configuration for drive app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.drive.models import File, Folder


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin):
    """Admin interface for Folder model (trashed folders included)."""

    list_display = [
        'name',
        'owner_email',
        'parent',
        'is_starred',
        'is_deleted',
        'created_at',
    ]

    list_filter = [
        'is_deleted',
        'is_starred',
        'created_at',
    ]

    search_fields = [
        'name',
        'owner_email',
    ]

    readonly_fields = [
        'id',
        'owner_email',
        'deleted_at',
        'created_at',
        'updated_at',
    ]

    raw_id_fields = ['parent']

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        """Show live and trashed folders.

        Args:
            request: HTTP request.

        Returns:
            QuerySet over all folders.
        """
        return Folder.all_objects.select_related('parent')


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    """Admin interface for File model (trashed files included)."""

    list_display = [
        'name',
        'owner_email',
        'folder',
        'size_display',
        'mime_type',
        'is_deleted',
        'created_at',
    ]

    list_filter = [
        'mime_type',
        'is_deleted',
        'created_at',
    ]

    search_fields = [
        'name',
        'owner_email',
        'checksum_sha256',
    ]

    readonly_fields = [
        'id',
        'blob',
        'owner_email',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'deleted_at',
        'created_at',
        'updated_at',
    ]

    raw_id_fields = ['folder']

    fieldsets = (
        ('File Information', {
            'fields': ('id', 'name', 'original_name', 'owner_email', 'folder'),
        }),
        ('Content', {
            'fields': (
                'blob',
                'size_bytes',
                'mime_type',
                'checksum_sha256',
            ),
        }),
        ('State', {
            'fields': ('is_starred', 'is_deleted', 'deleted_at'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format.

        Args:
            obj: File instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Show live and trashed files.

        Args:
            request: HTTP request.

        Returns:
            QuerySet over all files.
        """
        return File.all_objects.select_related('folder')
