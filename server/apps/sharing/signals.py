"""Signal handlers for sharing app."""

import logging

from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.drive.models import File, Folder
from server.apps.sharing.models import PermissionGrant, PublicLink

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=Folder)
@receiver(post_delete, sender=File)
def delete_sharing_for_resource(
    sender: type[Folder] | type[File],
    instance: Folder | File,
    **kwargs: object,
) -> None:
    """Delete grants and public links of a permanently deleted resource.

    Grants and links reference resources by type and ID only, so they are
    removed here instead of by a database cascade. Runs for every row of
    a purged folder subtree.

    Args:
        sender: The Folder or File model class.
        instance: The resource being deleted.
        **kwargs: Additional signal arguments.
    """
    grants_count, _ = PermissionGrant.objects.filter(
        resource_type=instance.resource_type,
        resource_id=instance.id,
    ).delete()
    links_count, _ = PublicLink.objects.filter(
        resource_type=instance.resource_type,
        resource_id=instance.id,
    ).delete()

    if grants_count or links_count:
        logger.info(
            'Removed %d grants and %d links of deleted %s %s',
            grants_count,
            links_count,
            instance.resource_type,
            instance.id,
        )
