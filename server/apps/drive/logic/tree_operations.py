"""Business logic for folder tree operations."""

import logging
from typing import NamedTuple
from uuid import UUID

from django.db import transaction

from server.apps.drive.exceptions import InvalidArgumentError, NotFoundError
from server.apps.drive.infrastructure.metadata import validate_name
from server.apps.drive.logic.ancestry import (
    ensure_depth_available,
    folder_lineage,
    get_max_depth,
    subtree_height,
)
from server.apps.drive.logic.trash_operations import soft_delete_folder_tree
from server.apps.drive.models import File, Folder, ResourceType
from server.apps.sharing.logic.permission_resolver import (
    coerce_resource_id,
    normalize_identity,
    require_role,
)
from server.apps.sharing.roles import Role

logger = logging.getLogger(__name__)


class Breadcrumb(NamedTuple):
    """One step of a folder path."""

    id: UUID
    name: str


def require_destination(identity: str, folder_id: object | None) -> Folder | None:
    """Check that the caller may put things into a folder.

    Args:
        identity: Verified caller email.
        folder_id: Destination folder, None for root.

    Returns:
        The destination Folder, or None for root.

    Raises:
        NotFoundError: If the folder is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the folder.
    """
    if folder_id is None:
        return None
    return require_role(identity, ResourceType.FOLDER, folder_id, Role.EDITOR)


def create_folder(
    identity: str,
    name: str,
    parent_id: object | None = None,
) -> Folder:
    """Create a folder owned by the caller.

    Ownership never inherits from the parent: a folder created inside a
    shared folder belongs to its creator.

    Args:
        identity: Verified caller email.
        name: Folder name.
        parent_id: Parent folder, None for root level.

    Returns:
        Created Folder instance.

    Raises:
        InvalidArgumentError: If the name is empty or invalid, or the
            folder would be nested deeper than the tree bound.
        NotFoundError: If the parent is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the parent.
    """
    folder_name = validate_name(name)
    parent = require_destination(identity, parent_id)
    ensure_depth_available(parent.id if parent else None)

    folder = Folder.objects.create(
        name=folder_name,
        parent=parent,
        owner_email=normalize_identity(identity),
    )
    logger.info(
        'Folder created: %s (ID: %s, parent: %s, owner: %s)',
        folder.name,
        folder.id,
        parent.id if parent else None,
        folder.owner_email,
    )
    return folder


def rename_resource(
    identity: str,
    resource_type: str,
    resource_id: object,
    new_name: str,
) -> Folder | File:
    """Rename a folder or file.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        new_name: New name.

    Returns:
        Updated resource.

    Raises:
        InvalidArgumentError: If the name is empty or invalid.
        NotFoundError: If the resource is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the resource.
    """
    name = validate_name(new_name)
    resource = require_role(identity, resource_type, resource_id, Role.EDITOR)
    old_name = resource.name

    resource.name = name
    resource.save(update_fields=['name', 'updated_at'])

    logger.info(
        'Renamed %s %s: %s -> %s',
        resource_type,
        resource.id,
        old_name,
        name,
    )
    return resource


def move_folder(
    identity: str,
    folder_id: object,
    new_parent_id: object | None = None,
) -> Folder:
    """Move a folder under another folder, or to root.

    The destination's ancestor chain is walked inside the write
    transaction with visited rows locked, so a concurrent move cannot
    slip a cycle in between the check and the write.

    Args:
        identity: Verified caller email.
        folder_id: Folder to move.
        new_parent_id: Destination folder, None for root.

    Returns:
        Updated Folder instance.

    Raises:
        InvalidArgumentError: If the destination is the folder itself or
            one of its descendants, or the moved subtree would
            end up deeper than the tree bound.
        NotFoundError: If a folder is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit either folder.
    """
    folder = require_role(identity, ResourceType.FOLDER, folder_id, Role.EDITOR)
    destination_id: UUID | None = None
    if new_parent_id is not None:
        if coerce_resource_id(new_parent_id) == folder.id:
            raise InvalidArgumentError('Cannot move folder into itself')
        destination_id = require_destination(identity, new_parent_id).id

    with transaction.atomic():
        folder = Folder.objects.select_for_update().filter(pk=folder.pk).first()
        if folder is None:
            raise NotFoundError('Folder not found')

        if destination_id is not None:
            lineage = folder_lineage(destination_id, for_update=True)
            if not lineage or not Folder.objects.filter(pk=destination_id).exists():
                raise NotFoundError('Folder not found')
            if any(node.id == folder.id for node in lineage):
                logger.warning(
                    'Rejected cyclic move of folder %s under %s',
                    folder.id,
                    destination_id,
                )
                raise InvalidArgumentError(
                    'Cannot move folder into one of its descendants',
                )
            max_depth = get_max_depth()
            if len(lineage) + subtree_height(folder.id) > max_depth:
                logger.warning(
                    'Rejected move of folder %s under %s: deeper than %d',
                    folder.id,
                    destination_id,
                    max_depth,
                )
                raise InvalidArgumentError(
                    f'Folders cannot be nested deeper than {max_depth} levels',
                )

        folder.parent_id = destination_id
        folder.save(update_fields=['parent', 'updated_at'])

    logger.info('Folder %s moved under %s', folder.id, destination_id)
    return folder


def breadcrumbs(identity: str, folder_id: object) -> list[Breadcrumb]:
    """Build the path from the root to a folder.

    Args:
        identity: Verified caller email.
        folder_id: Folder at the end of the path.

    Returns:
        Breadcrumbs root first, the requested folder last.

    Raises:
        NotFoundError: If the folder is missing or not visible to caller.
        TreeDepthExceededError: If the stored chain is corrupted.
    """
    folder = require_role(identity, ResourceType.FOLDER, folder_id, Role.VIEWER)
    lineage = folder_lineage(folder.id)
    return [Breadcrumb(node.id, node.name) for node in reversed(lineage)]


def delete_folder(identity: str, folder_id: object) -> int:
    """Move a folder and its whole subtree to trash.

    Args:
        identity: Verified caller email.
        folder_id: Folder to delete.

    Returns:
        Number of resources moved to trash (folder included).

    Raises:
        NotFoundError: If the folder is missing or not visible to caller.
        ForbiddenError: If the caller is neither owner nor admin.
    """
    folder = require_role(identity, ResourceType.FOLDER, folder_id, Role.ADMIN)
    return soft_delete_folder_tree(folder)


def set_starred(
    identity: str,
    resource_type: str,
    resource_id: object,
    starred: bool,
) -> Folder | File:
    """Star or unstar a folder or file.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.
        starred: New star state.

    Returns:
        Updated resource.
    """
    resource = require_role(identity, resource_type, resource_id, Role.EDITOR)
    if resource.is_starred != starred:
        resource.is_starred = starred
        resource.save(update_fields=['is_starred', 'updated_at'])
        logger.info(
            '%s %s %s',
            resource_type.capitalize(),
            resource.id,
            'starred' if starred else 'unstarred',
        )
    return resource
