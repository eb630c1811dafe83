"""Django admin configuration for sharing app."""

from django.contrib import admin

from server.apps.sharing.models import PermissionGrant, PublicLink


@admin.register(PermissionGrant)
class PermissionGrantAdmin(admin.ModelAdmin):
    """Admin interface for PermissionGrant model."""

    list_display = [
        'grantee_email',
        'role',
        'resource_type',
        'resource_id',
        'granted_by',
        'updated_at',
    ]

    list_filter = [
        'role',
        'resource_type',
    ]

    search_fields = [
        'grantee_email',
        'granted_by',
    ]

    readonly_fields = [
        'created_at',
        'updated_at',
    ]


@admin.register(PublicLink)
class PublicLinkAdmin(admin.ModelAdmin):
    """Admin interface for PublicLink model."""

    list_display = [
        'id',
        'resource_type',
        'resource_id',
        'role',
        'created_by',
        'access_display',
        'expires_at',
    ]

    list_filter = [
        'role',
        'resource_type',
        'created_at',
    ]

    search_fields = [
        'created_by',
    ]

    readonly_fields = [
        'token',
        'access_count',
        'created_at',
    ]

    def access_display(self, obj: PublicLink) -> str:
        """Display accesses used against the limit.

        Args:
            obj: PublicLink instance.

        Returns:
            String like '3 / 10' or '3 / unlimited'.
        """
        limit = obj.max_accesses if obj.max_accesses is not None else 'unlimited'
        return f'{obj.access_count} / {limit}'
    access_display.short_description = 'Accesses'  # type: ignore[attr-defined]
