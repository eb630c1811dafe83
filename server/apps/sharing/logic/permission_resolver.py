"""Permission resolution for (identity, resource) pairs.

Effective role of an identity on a resource:

- ``OWNER`` if the identity created the resource
- otherwise the highest grant on the resource itself or on any folder
  containing it (grants apply to folder contents)
- ``None`` when nothing applies or the resource is missing or in trash

Owning a folder gives no role on contents other identities put into it.

The resolver is read-only and keeps no cache between calls.
"""

import logging
import uuid

from django.db.models import Max, Q

from server.apps.drive.exceptions import (
    ForbiddenError,
    NotFoundError,
    TreeDepthExceededError,
)
from server.apps.drive.logic.ancestry import descendant_folder_ids, folder_lineage
from server.apps.drive.models import (
    RESOURCE_MODELS,
    File,
    Folder,
    ResourceType,
)
from server.apps.sharing.models import PermissionGrant
from server.apps.sharing.roles import Role, highest_role, role_satisfies

logger = logging.getLogger(__name__)


def normalize_identity(identity: str | None) -> str:
    """Normalize an identity (email) for comparisons and storage."""
    return (identity or '').strip().lower()


def coerce_resource_id(resource_id: object) -> uuid.UUID | None:
    """Parse a resource ID, returning None for malformed values."""
    if isinstance(resource_id, uuid.UUID):
        return resource_id
    try:
        return uuid.UUID(str(resource_id))
    except (TypeError, ValueError, AttributeError):
        return None


def load_live_resource(
    resource_type: str,
    resource_id: object,
) -> Folder | File | None:
    """Fetch a resource that is not in trash.

    Args:
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key (any UUID-like value).

    Returns:
        The resource, or None if the type or id is unknown or it is in trash.
    """
    model = RESOURCE_MODELS.get(resource_type)
    parsed_id = coerce_resource_id(resource_id)
    if model is None or parsed_id is None:
        return None
    return model.objects.filter(pk=parsed_id).first()


def effective_role(identity: str, resource: Folder | File) -> Role | None:
    """Compute the role an identity holds on a loaded resource.

    Args:
        identity: Verified caller email.
        resource: Live Folder or File.

    Returns:
        Effective role, or None for no access (also when the folder chain
        above the resource is corrupted).
    """
    identity = normalize_identity(identity)
    if not identity:
        return None
    if resource.owner_email == identity:
        return Role.OWNER

    if isinstance(resource, File):
        container_id = resource.folder_id
    else:
        container_id = resource.parent_id
    try:
        containers = folder_lineage(container_id) if container_id else []
    except TreeDepthExceededError:
        logger.error(
            'Unresolvable folder chain above %s %s, denying %s',
            resource.resource_type,
            resource.id,
            identity,
        )
        return None

    grant_filter = Q(
        resource_type=resource.resource_type,
        resource_id=resource.id,
    )
    if containers:
        grant_filter |= Q(
            resource_type=ResourceType.FOLDER,
            resource_id__in=[node.id for node in containers],
        )
    granted = PermissionGrant.objects.filter(
        grant_filter,
        grantee_email=identity,
    ).aggregate(best=Max('role'))['best']

    return highest_role(granted)


def resolve_role(
    identity: str,
    resource_type: str,
    resource_id: object,
) -> Role | None:
    """Resolve the effective role of an identity on a resource.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.

    Returns:
        ``Role.OWNER`` for the owner, the effective shared role otherwise,
        None when there is no access or the resource is missing/deleted.
    """
    resource = load_live_resource(resource_type, resource_id)
    if resource is None:
        return None
    return effective_role(identity, resource)


def authorize(
    identity: str,
    resource_type: str,
    resource_id: object,
    required_role: Role,
) -> bool:
    """Check whether an identity holds at least ``required_role``.

    Missing resources resolve to no role, which never satisfies any
    requirement.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        required_role: Minimum role for the operation.

    Returns:
        True if access is allowed.
    """
    return role_satisfies(
        resolve_role(identity, resource_type, resource_id),
        required_role,
    )


def require_role(
    identity: str,
    resource_type: str,
    resource_id: object,
    required_role: Role,
) -> Folder | File:
    """Load a live resource the caller is allowed to act on.

    Callers without any role get ``NotFoundError`` so that resource
    existence is not revealed. ``ForbiddenError`` is raised only to callers
    who can already see the resource.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        required_role: Minimum role for the operation.

    Returns:
        The resource.

    Raises:
        NotFoundError: If the resource is missing or not visible to caller.
        ForbiddenError: If the caller's role is below ``required_role``.
    """
    resource = load_live_resource(resource_type, resource_id)
    role = effective_role(identity, resource) if resource is not None else None

    if role is None:
        logger.info(
            'Access to %s %s denied or missing for %s',
            resource_type,
            resource_id,
            identity,
        )
        raise NotFoundError(f'{str(resource_type).capitalize()} not found')

    if not role_satisfies(role, required_role):
        logger.warning(
            'Role %s below required %s on %s %s for %s',
            role.label,
            Role(required_role).label,
            resource_type,
            resource_id,
            identity,
        )
        raise ForbiddenError(
            f'{Role(required_role).label.capitalize()} access required',
        )

    return resource


def permitted_ids(
    identity: str,
    resource_type: str,
    required_role: Role = Role.VIEWER,
) -> set[uuid.UUID]:
    """Collect IDs of resources an identity may access at ``required_role``.

    Union of owned resources, resources granted at or above the role, and
    the contents of folders that qualify. Computed with one ownership scan,
    one grant scan and one query per tree level, never per resource.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        required_role: Minimum role.

    Returns:
        Set of resource IDs (may include IDs of resources in trash).
    """
    identity = normalize_identity(identity)
    model = RESOURCE_MODELS.get(resource_type)
    if not identity or model is None:
        return set()

    grants = PermissionGrant.objects.filter(
        grantee_email=identity,
        role__gte=int(required_role),
    ).values_list('resource_type', 'resource_id')

    granted: dict[str, set[uuid.UUID]] = {
        ResourceType.FILE: set(),
        ResourceType.FOLDER: set(),
    }
    for granted_type, granted_id in grants:
        granted.setdefault(granted_type, set()).add(granted_id)

    # Folders whose whole content qualifies through a grant
    containers = set(granted[ResourceType.FOLDER])
    containers |= descendant_folder_ids(containers)

    if resource_type == ResourceType.FOLDER:
        owned_folders = set(
            Folder.objects.filter(owner_email=identity).values_list('id', flat=True),
        )
        return owned_folders | containers

    owned_files = set(
        File.objects.filter(owner_email=identity).values_list('id', flat=True),
    )
    contained_files = set(
        File.objects.filter(folder_id__in=containers).values_list('id', flat=True),
    ) if containers else set()
    return owned_files | granted[ResourceType.FILE] | contained_files
