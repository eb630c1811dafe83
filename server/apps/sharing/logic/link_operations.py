"""Business logic for public links.

A public link is a bearer token: whoever holds it can reach the linked
resource at the link's role, without any identity. Links are checked
lazily on every resolution and stop working once expired or used up.
"""

import logging
import secrets
from datetime import datetime
from typing import Final

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from server.apps.drive.exceptions import (
    ConflictError,
    GoneError,
    InvalidArgumentError,
    NotFoundError,
)
from server.apps.drive.logic.listing_operations import (
    ListQuery,
    Page,
    get_default_page_size,
    paginate,
)
from server.apps.drive.models import File, Folder
from server.apps.sharing.logic.permission_resolver import (
    coerce_resource_id,
    load_live_resource,
    normalize_identity,
    require_role,
)
from server.apps.sharing.models import PublicLink
from server.apps.sharing.roles import LINK_ROLES, Role, parse_role

logger = logging.getLogger(__name__)

# 128 bits of randomness at the very least
_MIN_TOKEN_BYTES: Final = 16


def get_token_bytes() -> int:
    """Get the number of random bytes in a link token.

    Returns:
        Byte count from settings or default of 32, never below 16.
    """
    return max(_MIN_TOKEN_BYTES, getattr(settings, 'DRIVE_LINK_TOKEN_BYTES', 32))


def public_url(link: PublicLink) -> str:
    """Build the shareable URL of a link."""
    base_url = getattr(
        settings,
        'DRIVE_PUBLIC_LINK_BASE_URL',
        'http://localhost:3000/shared/',
    )
    return f'{base_url.rstrip("/")}/{link.token}'


def create_link(  # noqa: WPS211
    identity: str,
    resource_type: str,
    resource_id: object,
    role: str | int | Role = Role.VIEWER,
    expires_at: datetime | None = None,
    max_accesses: int | None = None,
) -> PublicLink:
    """Create a public link to a resource.

    Args:
        identity: Verified caller email, must own the resource.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        role: 'viewer' or 'editor'.
        expires_at: Expiry time (must be in the future), None for never.
        max_accesses: Allowed resolutions (at least 1), None for unlimited.

    Returns:
        Created PublicLink.

    Raises:
        InvalidArgumentError: If role, expiry or access limit are invalid.
        NotFoundError: If the resource is missing or not visible to caller.
        ForbiddenError: If the caller is not the owner.
        ConflictError: If the generated token collides with an existing one.
    """
    link_role = parse_role(role)
    if link_role not in LINK_ROLES:
        raise InvalidArgumentError(f'Role not allowed for links: {link_role.label}')
    if expires_at is not None and expires_at <= timezone.now():
        raise InvalidArgumentError('Expiry time must be in the future')
    if max_accesses is not None and (
        isinstance(max_accesses, bool) or int(max_accesses) < 1
    ):
        raise InvalidArgumentError('Max accesses must be at least 1')

    resource = require_role(identity, resource_type, resource_id, Role.OWNER)

    try:
        with transaction.atomic():
            link = PublicLink.objects.create(
                token=secrets.token_urlsafe(get_token_bytes()),
                resource_type=resource_type,
                resource_id=resource.id,
                role=link_role,
                expires_at=expires_at,
                max_accesses=max_accesses,
                created_by=resource.owner_email,
            )
    except IntegrityError as error:
        raise ConflictError('Link token already in use') from error

    logger.info(
        'Public link created: %s for %s %s (role: %s, expires: %s, max: %s)',
        link.id,
        resource_type,
        resource.id,
        link_role.label,
        expires_at,
        max_accesses,
    )
    return link


def _claim_access(link: PublicLink) -> bool:
    """Count one resolution if the link is still usable.

    The validity checks run inside the UPDATE itself, so concurrent
    resolutions can never push ``access_count`` past ``max_accesses``.

    Returns:
        True if this call consumed an access.
    """
    usable = (
        Q(max_accesses__isnull=True) | Q(access_count__lt=F('max_accesses'))
    ) & (
        Q(expires_at__isnull=True) | Q(expires_at__gt=timezone.now())
    )
    updated = PublicLink.objects.filter(usable, pk=link.pk).update(
        access_count=F('access_count') + 1,
    )
    return updated == 1


def resolve_link(token: str) -> tuple[Folder | File, PublicLink]:
    """Resolve a link token to its resource and record the access.

    Args:
        token: Link token.

    Returns:
        The live resource and the link with its updated access count.

    Raises:
        NotFoundError: If the token is unknown or the resource is gone
            from the live tree.
        GoneError: If the link expired or its accesses are used up.
    """
    link = PublicLink.objects.filter(token=token).first() if token else None
    if link is None:
        raise NotFoundError('Shared link not found')

    if link.is_expired():
        raise GoneError('Shared link has expired')
    if link.is_exhausted():
        raise GoneError('Shared link access limit reached')

    resource = load_live_resource(link.resource_type, link.resource_id)
    if resource is None:
        raise NotFoundError(f'{link.resource_type.capitalize()} not found')

    if not _claim_access(link):
        logger.info('Shared link %s used up by a concurrent access', link.id)
        raise GoneError('Shared link is no longer available')

    link.refresh_from_db(fields=['access_count'])
    logger.info(
        'Shared link %s resolved (%s of %s)',
        link.id,
        link.access_count,
        link.max_accesses or 'unlimited',
    )
    return resource, link


def revoke_link(identity: str, link_id: object) -> None:
    """Delete a public link.

    Args:
        identity: Verified caller email, must have created the link.
        link_id: Link primary key.

    Raises:
        NotFoundError: If the link is missing or created by someone else.
    """
    parsed_id = coerce_resource_id(link_id)
    deleted_count = 0
    if parsed_id is not None:
        deleted_count, _ = PublicLink.objects.filter(
            pk=parsed_id,
            created_by=normalize_identity(identity),
        ).delete()
    if not deleted_count:
        raise NotFoundError('Shared link not found')

    logger.info('Shared link revoked: %s', parsed_id)


def list_links(
    identity: str,
    page: int = 1,
    page_size: int | None = None,
) -> Page[PublicLink]:
    """List links created by the caller, newest first.

    Raises:
        InvalidArgumentError: If pagination values are invalid.
    """
    query = ListQuery(page=page, page_size=page_size or get_default_page_size())
    links = PublicLink.objects.filter(
        created_by=normalize_identity(identity),
    ).order_by('-created_at', 'id')
    return paginate(links, query.page, query.page_size)


def purge_expired_links(dry_run: bool = False) -> int:
    """Delete links that can no longer be resolved.

    Args:
        dry_run: Only count the links.

    Returns:
        Number of expired or exhausted links.
    """
    stale = PublicLink.objects.filter(
        Q(expires_at__lte=timezone.now()) |
        Q(max_accesses__isnull=False, access_count__gte=F('max_accesses')),
    )
    if dry_run:
        return stale.count()
    deleted_count, _ = stale.delete()
    return deleted_count
