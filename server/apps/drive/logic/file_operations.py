"""Business logic for file operations."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, BinaryIO, NamedTuple

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.drive.exceptions import (
    InternalError,
    InvalidArgumentError,
    InvalidStateError,
)
from server.apps.drive.infrastructure.metadata import (
    calculate_checksum,
    detect_mime_type,
    generate_blob_locator,
    get_file_size,
    validate_name,
)
from server.apps.drive.logic.trash_operations import soft_delete
from server.apps.drive.logic.tree_operations import require_destination
from server.apps.drive.models import File, Folder, ResourceType
from server.apps.sharing.logic.permission_resolver import (
    normalize_identity,
    require_role,
)
from server.apps.sharing.roles import Role

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)


class StoredBlob(NamedTuple):
    """Blob saved in object storage, ready to be recorded."""

    locator: str
    size_bytes: int
    mime_type: str
    checksum_sha256: str


@dataclass
class UploadSummary:
    """Outcome of a bulk upload."""

    created: list[File] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        """Number of files stored and recorded."""
        return len(self.created)

    @property
    def failed_count(self) -> int:
        """Number of uploads skipped."""
        return len(self.failed)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def get_signed_url_ttl() -> int:
    """Get signed download URL lifetime.

    Returns:
        TTL in seconds from settings or default of 3600.
    """
    return getattr(settings, 'DRIVE_SIGNED_URL_TTL', 3600)


def store_blob(
    file_obj: BinaryIO,
    filename: str,
    content_type: str | None = None,
) -> StoredBlob:
    """Save file bytes to object storage under a fresh locator.

    Args:
        file_obj: File-like object to upload.
        filename: Original filename (for extension and MIME detection).
        content_type: MIME type declared by the client.

    Returns:
        Locator and metadata of the stored blob.

    Raises:
        InternalError: If the storage backend fails.
    """
    checksum = calculate_checksum(file_obj)
    size_bytes = get_file_size(file_obj)
    mime_type = detect_mime_type(filename, content_type)

    try:
        locator = _get_storage().save(generate_blob_locator(filename), file_obj)
    except Exception as error:
        raise InternalError(f'Failed to store content of {filename}') from error

    return StoredBlob(locator, size_bytes, mime_type, checksum)


def record_file(
    owner_email: str,
    name: str,
    folder: Folder | None,
    blob: StoredBlob,
) -> File:
    """Create the File row for a stored blob.

    Transaction safety: if the row cannot be created the blob is deleted
    from storage (rollback).

    Args:
        owner_email: Normalized owner identity.
        name: File name.
        folder: Containing folder, None for root.
        blob: Blob already saved in storage.

    Returns:
        Created File instance.

    Raises:
        InternalError: If the database write fails.
    """
    try:
        with transaction.atomic():
            file_instance = File.objects.create(
                name=name,
                original_name=name,
                folder=folder,
                owner_email=owner_email,
                blob=blob.locator,
                size_bytes=blob.size_bytes,
                mime_type=blob.mime_type,
                checksum_sha256=blob.checksum_sha256,
            )
    except Exception as error:
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            blob.locator,
        )
        _get_storage().rollback_upload(blob.locator)
        raise InternalError(f'Failed to record file {name}') from error

    logger.info(
        'File record created: %s (ID: %s, blob: %s)',
        file_instance.name,
        file_instance.id,
        blob.locator,
    )
    return file_instance


def upload_file(
    identity: str,
    file_obj: BinaryIO,
    folder_id: object | None = None,
    name: str | None = None,
    content_type: str | None = None,
) -> File:
    """Upload file to storage and create its database record.

    Args:
        identity: Verified caller email.
        file_obj: File-like object to upload (Django File or stream).
        folder_id: Destination folder, None for root.
        name: File name, defaults to the uploaded object's name.
        content_type: MIME type declared by the client.

    Returns:
        Created File instance.

    Raises:
        InvalidArgumentError: If no usable name is available.
        NotFoundError: If the folder is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the folder.
        InternalError: If storage or database fails.
    """
    file_name = validate_name(name or getattr(file_obj, 'name', None))
    folder = require_destination(identity, folder_id)

    blob = store_blob(
        file_obj,
        file_name,
        content_type or getattr(file_obj, 'content_type', None),
    )
    return record_file(normalize_identity(identity), file_name, folder, blob)


def bulk_upload(
    identity: str,
    files: Iterable[BinaryIO],
    folder_id: object | None = None,
) -> UploadSummary:
    """Upload several files into one folder.

    Each upload succeeds or fails on its own; failures are reported in the
    summary instead of aborting the batch.

    Args:
        identity: Verified caller email.
        files: File-like objects carrying a ``name``.
        folder_id: Destination folder, None for root.

    Returns:
        Summary of created files and names that failed.

    Raises:
        InvalidArgumentError: If no files are given.
        NotFoundError: If the folder is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the folder.
    """
    uploads = list(files)
    if not uploads:
        raise InvalidArgumentError('No files provided')

    folder = require_destination(identity, folder_id)
    owner_email = normalize_identity(identity)
    summary = UploadSummary()

    for file_obj in uploads:
        raw_name = getattr(file_obj, 'name', None) or ''
        try:
            file_name = validate_name(raw_name)
            blob = store_blob(
                file_obj,
                file_name,
                getattr(file_obj, 'content_type', None),
            )
            summary.created.append(
                record_file(owner_email, file_name, folder, blob),
            )
        except (InvalidArgumentError, InternalError):
            logger.exception('Bulk upload item failed: %s', raw_name)
            summary.failed.append(raw_name)

    logger.info(
        'Bulk upload into %s: %d created, %d failed',
        folder.id if folder else None,
        summary.created_count,
        summary.failed_count,
    )
    return summary


def move_file(
    identity: str,
    file_id: object,
    new_folder_id: object | None = None,
) -> File:
    """Move a file to another folder, or to root.

    Args:
        identity: Verified caller email.
        file_id: File to move.
        new_folder_id: Destination folder, None for root.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If the file or folder is missing or not visible.
        ForbiddenError: If the caller cannot edit the file or folder.
    """
    file_instance = require_role(identity, ResourceType.FILE, file_id, Role.EDITOR)
    destination = require_destination(identity, new_folder_id)

    file_instance.folder = destination
    file_instance.save(update_fields=['folder', 'updated_at'])

    logger.info(
        'File %s moved to folder %s',
        file_instance.id,
        destination.id if destination else None,
    )
    return file_instance


def delete_file(identity: str, file_id: object) -> File:
    """Move a file to trash.

    Args:
        identity: Verified caller email.
        file_id: File to delete.

    Returns:
        Trashed File instance.

    Raises:
        NotFoundError: If the file is missing or not visible to caller.
        ForbiddenError: If the caller is neither owner nor admin.
    """
    file_instance = require_role(identity, ResourceType.FILE, file_id, Role.ADMIN)
    return soft_delete(file_instance)


def get_download_url(identity: str, file_id: object) -> str:
    """Build a short-lived signed URL for a file's bytes.

    Args:
        identity: Verified caller email.
        file_id: File to download.

    Returns:
        Signed URL.

    Raises:
        NotFoundError: If the file is missing or not visible to caller.
        InvalidStateError: If the record has no uploaded content.
        InternalError: If storage cannot sign the URL.
    """
    file_instance = require_role(identity, ResourceType.FILE, file_id, Role.VIEWER)
    return signed_url_for(file_instance)


def signed_url_for(file_instance: File) -> str:
    """Sign a download URL for an already authorized file.

    Raises:
        InvalidStateError: If the record has no uploaded content.
        InternalError: If storage cannot sign the URL.
    """
    if not file_instance.has_content():
        raise InvalidStateError('File has no uploaded content')
    try:
        return _get_storage().signed_url(
            file_instance.blob.name,
            get_signed_url_ttl(),
        )
    except Exception as error:
        logger.exception('Failed to sign URL for blob: %s', file_instance.blob.name)
        raise InternalError('Failed to create download URL') from error
