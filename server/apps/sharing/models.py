"""Database models for sharing app."""

import uuid
from typing import Final, final, override

from django.db import models
from django.utils import timezone

from server.apps.drive.models import ResourceType
from server.apps.sharing.roles import Role

# Constants for field max lengths
_EMAIL_MAX_LENGTH: Final = 254
_TOKEN_MAX_LENGTH: Final = 128
_RESOURCE_TYPE_MAX_LENGTH: Final = 10


@final
class PermissionGrant(models.Model):
    """Explicit role given by a resource owner to another identity.

    At most one grant exists per (resource, grantee); granting again
    updates the role in place. Ownership is never stored as a grant.
    """

    resource_type = models.CharField(
        max_length=_RESOURCE_TYPE_MAX_LENGTH,
        choices=ResourceType.choices,
    )

    resource_id = models.UUIDField(db_index=True)

    grantee_email = models.EmailField(
        max_length=_EMAIL_MAX_LENGTH,
        db_index=True,
    )

    role = models.PositiveSmallIntegerField(choices=Role.choices)

    granted_by = models.EmailField(max_length=_EMAIL_MAX_LENGTH)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Permission Grant'  # type: ignore[mutable-override]
        verbose_name_plural = 'Permission Grants'  # type: ignore[mutable-override]
        ordering = ['created_at']

        constraints = [
            # One grant per resource and grantee, re-grants are upserts
            models.UniqueConstraint(
                fields=['resource_type', 'resource_id', 'grantee_email'],
                name='grants_resource_grantee_unique',
            ),
            models.CheckConstraint(
                condition=models.Q(role__lt=Role.OWNER),
                name='grants_role_not_owner',
            ),
        ]

        indexes = [
            # Optimize permitted-id scans
            models.Index(
                fields=['grantee_email', 'resource_type', 'role'],
                name='grants_grantee_type_role_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return (
            f'{self.grantee_email}:{Role(self.role).label}'
            f'@{self.resource_type}:{self.resource_id}'
        )


@final
class PublicLink(models.Model):
    """Bearer-token link giving anonymous access to one resource.

    The token is the only credential needed to resolve the link.
    ``access_count`` never decreases; the link stops working once it
    reaches ``max_accesses`` or ``expires_at`` has passed.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    token = models.CharField(
        max_length=_TOKEN_MAX_LENGTH,
        unique=True,
        editable=False,
    )

    resource_type = models.CharField(
        max_length=_RESOURCE_TYPE_MAX_LENGTH,
        choices=ResourceType.choices,
    )

    resource_id = models.UUIDField(db_index=True)

    role = models.PositiveSmallIntegerField(
        choices=Role.choices,
        default=Role.VIEWER,
    )

    expires_at = models.DateTimeField(null=True, blank=True)

    max_accesses = models.PositiveIntegerField(null=True, blank=True)

    access_count = models.PositiveIntegerField(default=0)

    created_by = models.EmailField(
        max_length=_EMAIL_MAX_LENGTH,
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Public Link'  # type: ignore[mutable-override]
        verbose_name_plural = 'Public Links'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(max_accesses__isnull=True) |
                    models.Q(max_accesses__gte=1)
                ),
                name='links_max_accesses_positive',
            ),
        ]

        indexes = [
            models.Index(
                fields=['resource_type', 'resource_id'],
                name='links_resource_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.created_by}:{self.resource_type}:{self.resource_id}'

    def is_expired(self) -> bool:
        """Check whether the expiry time has passed."""
        return self.expires_at is not None and self.expires_at <= timezone.now()

    def is_exhausted(self) -> bool:
        """Check whether the access quota is used up."""
        return (
            self.max_accesses is not None and
            self.access_count >= self.max_accesses
        )

    def remaining_accesses(self) -> int | None:
        """Get how many resolutions are left.

        Returns:
            Remaining count (never negative), or None when unbounded.
        """
        if self.max_accesses is None:
            return None
        return max(0, self.max_accesses - self.access_count)
