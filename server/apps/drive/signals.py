"""Signal handlers for drive app."""

import logging

from django.core.files.storage import default_storage
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.drive.models import File

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=File)
def delete_blob_from_storage(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Delete blob from storage when a File record is deleted.

    Runs for purges, folder subtree purges (cascade) and admin deletes.
    Metadata deletion has already happened, so storage failures are
    logged and never raised.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.blob:
        return

    storage_name = instance.blob.name
    logger.info(
        'Deleting blob from storage after DB delete: %s',
        storage_name,
    )

    try:
        if not default_storage.exists(storage_name):
            logger.warning(
                'Blob not found in storage (already deleted?): %s',
                storage_name,
            )
            return
    except Exception:
        logger.exception('Failed to check blob in storage: %s', storage_name)
        return

    default_storage.delete_quietly(storage_name)
