"""Business logic for trash (soft delete) operations.

Deleting a folder moves its whole subtree to trash with one shared
``deleted_at`` timestamp. Restoring that folder brings back everything
deleted together with it; items trashed separately stay in trash.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from itertools import chain

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.drive.exceptions import InvalidStateError, NotFoundError
from server.apps.drive.logic.ancestry import descendant_folder_ids
from server.apps.drive.models import RESOURCE_MODELS, File, Folder
from server.apps.sharing.logic.permission_resolver import (
    coerce_resource_id,
    normalize_identity,
)

logger = logging.getLogger(__name__)


def get_retention_days() -> int:
    """Get how long resources can be restored from trash.

    Returns:
        Retention in days from settings or default of 30.
    """
    return getattr(settings, 'DRIVE_TRASH_RETENTION_DAYS', 30)


def soft_delete(
    resource: Folder | File,
    deleted_at: datetime | None = None,
) -> Folder | File:
    """Mark a single resource as deleted.

    Args:
        resource: Folder or File to move to trash.
        deleted_at: Deletion time, defaults to now.

    Returns:
        Updated resource.
    """
    resource.is_deleted = True
    resource.deleted_at = deleted_at or timezone.now()
    resource.save(update_fields=['is_deleted', 'deleted_at', 'updated_at'])

    logger.info(
        '%s moved to trash: %s (ID: %s)',
        resource.resource_type.capitalize(),
        resource.name,
        resource.id,
    )
    return resource


def soft_delete_folder_tree(folder: Folder) -> int:
    """Move a folder, its descendant folders and all their files to trash.

    Args:
        folder: Live folder to delete.

    Returns:
        Number of resources moved to trash.
    """
    now = timezone.now()
    with transaction.atomic():
        folder_ids = {folder.id} | descendant_folder_ids([folder.id])
        folders_count = Folder.objects.filter(id__in=folder_ids).update(
            is_deleted=True,
            deleted_at=now,
            updated_at=now,
        )
        files_count = File.objects.filter(folder_id__in=folder_ids).update(
            is_deleted=True,
            deleted_at=now,
            updated_at=now,
        )

    folder.is_deleted = True
    folder.deleted_at = now
    logger.info(
        'Folder moved to trash: %s (ID: %s, %d folders, %d files)',
        folder.name,
        folder.id,
        folders_count,
        files_count,
    )
    return folders_count + files_count


def _get_owned_trash_item(
    identity: str,
    resource_type: str,
    resource_id: object,
) -> Folder | File:
    """Fetch a resource owned by the caller, live or trashed.

    Raises:
        NotFoundError: If the resource is missing or owned by someone else.
    """
    model = RESOURCE_MODELS.get(resource_type)
    parsed_id = coerce_resource_id(resource_id)
    resource = None
    if model is not None and parsed_id is not None:
        resource = model.all_objects.filter(
            pk=parsed_id,
            owner_email=normalize_identity(identity),
        ).first()
    if resource is None:
        raise NotFoundError(f'{str(resource_type).capitalize()} not found')
    return resource


def _container_id(resource: Folder | File) -> object | None:
    if isinstance(resource, Folder):
        return resource.parent_id
    return resource.folder_id


def top_level_entries(
    resources: Iterable[Folder | File],
) -> list[Folder | File]:
    """Drop resources whose folder is in the same collection.

    Purging a folder removes its subtree, so only the topmost entries
    need to be purged explicitly.

    Args:
        resources: Trashed folders and files.

    Returns:
        Resources not contained in another folder of the collection.
    """
    entries = list(resources)
    folder_ids = {
        resource.id for resource in entries if isinstance(resource, Folder)
    }
    return [
        resource for resource in entries
        if _container_id(resource) not in folder_ids
    ]


def _is_live_folder(folder_id: object | None) -> bool:
    return folder_id is not None and Folder.objects.filter(pk=folder_id).exists()


def restore_resource(
    identity: str,
    resource_type: str,
    resource_id: object,
) -> Folder | File:
    """Restore a resource from trash.

    Only the owner can restore. The restore window is inclusive: a resource
    deleted exactly ``retention`` days ago can still be restored. A resource
    whose containing folder is no longer live is restored to root.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.

    Returns:
        Restored resource.

    Raises:
        NotFoundError: If missing or not owned by the caller.
        InvalidStateError: If not in trash or the restore window is over.
    """
    resource = _get_owned_trash_item(identity, resource_type, resource_id)
    if not resource.is_deleted or resource.deleted_at is None:
        raise InvalidStateError('Resource is not in trash')

    retention = timedelta(days=get_retention_days())
    if timezone.now() - resource.deleted_at > retention:
        logger.warning(
            'Restore window over for %s %s (deleted at %s)',
            resource_type,
            resource.id,
            resource.deleted_at,
        )
        raise InvalidStateError(
            f'Restore window of {retention.days} days is over',
        )

    batch_deleted_at = resource.deleted_at
    with transaction.atomic():
        update_fields = ['is_deleted', 'deleted_at', 'updated_at']
        if isinstance(resource, Folder):
            container_field = 'parent'
            container_id = resource.parent_id
        else:
            container_field = 'folder'
            container_id = resource.folder_id
        if container_id is not None and not _is_live_folder(container_id):
            logger.info(
                'Container %s of %s %s is gone, restoring to root',
                container_id,
                resource_type,
                resource.id,
            )
            setattr(resource, f'{container_field}_id', None)
            update_fields.append(container_field)

        resource.is_deleted = False
        resource.deleted_at = None
        resource.save(update_fields=update_fields)

        restored_children = 0
        if isinstance(resource, Folder):
            restored_children = _restore_batch(resource, batch_deleted_at)

    logger.info(
        '%s restored: %s (ID: %s, %d children)',
        resource.resource_type.capitalize(),
        resource.name,
        resource.id,
        restored_children,
    )
    return resource


def _restore_batch(folder: Folder, batch_deleted_at: datetime) -> int:
    """Restore the subtree rows deleted together with ``folder``."""
    now = timezone.now()
    folder_ids: set[object] = {folder.id}
    frontier: set[object] = {folder.id}

    while frontier:
        children = set(
            Folder.all_objects.filter(
                parent_id__in=frontier,
                is_deleted=True,
                deleted_at=batch_deleted_at,
            ).values_list('id', flat=True),
        )
        frontier = children - folder_ids
        folder_ids |= frontier

    folders_count = Folder.all_objects.filter(
        id__in=folder_ids - {folder.id},
    ).update(is_deleted=False, deleted_at=None, updated_at=now)
    files_count = File.all_objects.filter(
        folder_id__in=folder_ids,
        is_deleted=True,
        deleted_at=batch_deleted_at,
    ).update(is_deleted=False, deleted_at=None, updated_at=now)
    return folders_count + files_count


def _detach_foreign_rows(folder: Folder) -> int:
    """Move rows of other owners out of a folder subtree about to be purged.

    Descent stops at folders owned by someone else: they are re-attached to
    root together with everything below them. Files of other owners inside
    the purged folders are re-attached to root as well. Trash state is kept.

    Args:
        folder: Top of the subtree being purged.

    Returns:
        Number of re-attached rows.
    """
    owner_email = folder.owner_email
    now = timezone.now()
    purged_ids: set[object] = {folder.id}
    frontier: set[object] = {folder.id}
    detached = 0

    while frontier:
        children = Folder.all_objects.filter(parent_id__in=frontier)
        owned = set(
            children.filter(owner_email=owner_email).values_list('id', flat=True),
        )
        detached += children.exclude(owner_email=owner_email).update(
            parent=None,
            updated_at=now,
        )
        frontier = owned - purged_ids
        purged_ids |= frontier

    detached += File.all_objects.filter(
        folder_id__in=purged_ids,
    ).exclude(
        owner_email=owner_email,
    ).update(folder=None, updated_at=now)

    if detached:
        logger.info(
            'Re-attached %d rows of other owners to root before purging folder %s',
            detached,
            folder.id,
        )
    return detached


def permanent_delete(resource: Folder | File) -> None:
    """Delete a trashed resource row for good.

    Deleting a folder removes its subtree rows owned by the same identity;
    rows of other owners inside it are moved to root first. Blob cleanup
    for files and grant/link cleanup run from ``post_delete`` signal
    handlers and never block the metadata deletion.

    Args:
        resource: Resource in trash.
    """
    resource_id = resource.id
    with transaction.atomic():
        if isinstance(resource, Folder):
            _detach_foreign_rows(resource)
        resource.delete()

    logger.info(
        '%s permanently deleted: %s (ID: %s)',
        resource.resource_type.capitalize(),
        resource.name,
        resource_id,
    )


def purge_resource(
    identity: str,
    resource_type: str,
    resource_id: object,
) -> None:
    """Permanently delete a resource from the caller's trash.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        resource_id: Resource primary key.

    Raises:
        NotFoundError: If missing or not owned by the caller.
        InvalidStateError: If the resource is not in trash.
    """
    resource = _get_owned_trash_item(identity, resource_type, resource_id)
    if not resource.is_deleted:
        raise InvalidStateError('Only resources in trash can be purged')
    permanent_delete(resource)


def list_trash(identity: str) -> list[Folder | File]:
    """List all resources in the caller's trash.

    Args:
        identity: Verified caller email.

    Returns:
        Deleted folders and files owned by the caller, newest first.
    """
    owner_email = normalize_identity(identity)
    folders = Folder.all_objects.filter(owner_email=owner_email, is_deleted=True)
    files = File.all_objects.filter(owner_email=owner_email, is_deleted=True)
    return sorted(
        chain(folders, files),
        key=lambda resource: resource.deleted_at,
        reverse=True,
    )


def empty_trash(identity: str) -> int:
    """Permanently delete everything in the caller's trash.

    Args:
        identity: Verified caller email.

    Returns:
        Number of trash entries purged (subtree rows of a purged folder
        are not counted separately).
    """
    count = 0
    for resource in top_level_entries(list_trash(identity)):
        try:
            permanent_delete(resource)
        except Exception:
            logger.exception(
                'Failed to permanently delete %s: %s',
                resource.resource_type,
                resource.id,
            )
            raise
        count += 1

    logger.info('Trash emptied for %s: %d entries deleted', identity, count)
    return count
