"""Business logic for sharing resources with other identities."""

import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from server.apps.drive.exceptions import InvalidArgumentError, NotFoundError
from server.apps.drive.models import RESOURCE_MODELS
from server.apps.sharing.logic.permission_resolver import (
    normalize_identity,
    require_role,
)
from server.apps.sharing.models import PermissionGrant
from server.apps.sharing.roles import GRANTABLE_ROLES, Role, parse_role

logger = logging.getLogger(__name__)

_GRANT_KEY_FIELDS = ('resource_type', 'resource_id', 'grantee_email')


def _validate_grantee(grantee_email: str | None) -> str:
    grantee = normalize_identity(grantee_email)
    try:
        validate_email(grantee)
    except ValidationError as error:
        raise InvalidArgumentError(f'Invalid email: {grantee_email}') from error
    return grantee


def grant_permission(
    identity: str,
    resource_type: str,
    resource_id: object,
    grantee_email: str,
    role: str | int | Role,
) -> PermissionGrant:
    """Share a resource with another identity, or change its role.

    The write is a single ``INSERT ... ON CONFLICT DO UPDATE``, so two
    concurrent grants to the same grantee leave exactly one row holding
    the role of the last writer.

    Args:
        identity: Verified caller email, must own the resource.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        grantee_email: Identity receiving access.
        role: 'viewer', 'editor' or 'admin'.

    Returns:
        The created or updated grant.

    Raises:
        InvalidArgumentError: If the grantee, role or resource type is
            invalid, or the owner tries to share with themselves.
        NotFoundError: If the resource is missing or not visible to caller.
        ForbiddenError: If the caller is not the owner.
    """
    if resource_type not in RESOURCE_MODELS:
        raise InvalidArgumentError(f'Invalid resource type: {resource_type}')
    granted_role = parse_role(role)
    if granted_role not in GRANTABLE_ROLES:
        raise InvalidArgumentError(f'Role cannot be granted: {granted_role.label}')
    grantee = _validate_grantee(grantee_email)

    resource = require_role(identity, resource_type, resource_id, Role.OWNER)
    if grantee == resource.owner_email:
        raise InvalidArgumentError('Owner already has full access')

    with transaction.atomic():
        PermissionGrant.objects.bulk_create(
            [
                PermissionGrant(
                    resource_type=resource_type,
                    resource_id=resource.id,
                    grantee_email=grantee,
                    role=granted_role,
                    granted_by=resource.owner_email,
                    updated_at=timezone.now(),
                ),
            ],
            update_conflicts=True,
            unique_fields=list(_GRANT_KEY_FIELDS),
            update_fields=['role', 'granted_by', 'updated_at'],
        )
        grant = PermissionGrant.objects.get(
            resource_type=resource_type,
            resource_id=resource.id,
            grantee_email=grantee,
        )

    logger.info(
        'Granted %s on %s %s to %s',
        granted_role.label,
        resource_type,
        resource.id,
        grantee,
    )
    return grant


def revoke_permission(identity: str, grant_id: object) -> None:
    """Remove a grant.

    Args:
        identity: Verified caller email, must own the granted resource.
        grant_id: Grant primary key.

    Raises:
        NotFoundError: If the grant is missing or its resource is not
            owned by the caller.
    """
    try:
        grant_pk = int(str(grant_id))
    except ValueError:
        raise NotFoundError('Permission not found') from None

    grant = PermissionGrant.objects.filter(pk=grant_pk).first()
    if grant is None:
        raise NotFoundError('Permission not found')

    model = RESOURCE_MODELS[grant.resource_type]
    owns_resource = model.all_objects.filter(
        pk=grant.resource_id,
        owner_email=normalize_identity(identity),
    ).exists()
    if not owns_resource:
        raise NotFoundError('Permission not found')

    grant.delete()
    logger.info(
        'Revoked %s on %s %s from %s',
        Role(grant.role).label,
        grant.resource_type,
        grant.resource_id,
        grant.grantee_email,
    )


def list_permissions(
    identity: str,
    resource_type: str,
    resource_id: object,
) -> list[PermissionGrant]:
    """List grants on a resource.

    Args:
        identity: Verified caller email, must own the resource.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.

    Returns:
        Grants in creation order.

    Raises:
        NotFoundError: If the resource is missing or not visible to caller.
        ForbiddenError: If the caller is not the owner.
    """
    resource = require_role(identity, resource_type, resource_id, Role.OWNER)
    return list(
        PermissionGrant.objects.filter(
            resource_type=resource_type,
            resource_id=resource.id,
        ),
    )
