"""Management command to clean up old resources from trash."""

import logging
from datetime import timedelta
from itertools import chain
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.drive.logic.trash_operations import (
    get_retention_days,
    permanent_delete,
    top_level_entries,
)
from server.apps.drive.models import File, Folder

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Permanently delete resources kept in trash past the restore window."""

    help = 'Clean up resources from trash past the retention window'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=(
                'Max folders and max files to process '
                f'(default: {_DEFAULT_BATCH_SIZE})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Purging a folder removes its subtree, so resources inside an
        expired folder are not purged separately.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        retention_days = get_retention_days()

        cutoff = timezone.now() - timedelta(days=retention_days)

        self.stdout.write(
            f'Looking for resources deleted before {cutoff} '
            f'(older than {retention_days} days)',
        )

        old_folders = Folder.all_objects.filter(
            is_deleted=True,
            deleted_at__lt=cutoff,
        ).order_by('deleted_at')[:batch_size]
        old_files = File.all_objects.filter(
            is_deleted=True,
            deleted_at__lt=cutoff,
        ).order_by('deleted_at')[:batch_size]

        count = 0
        failed = 0

        for resource in top_level_entries(chain(old_folders, old_files)):
            if dry_run:
                self.stdout.write(
                    f'Would delete {resource.resource_type}: {resource.name} '
                    f'(owner: {resource.owner_email}, '
                    f'deleted: {resource.deleted_at})',
                )
                count += 1
                continue

            if not type(resource).all_objects.filter(pk=resource.pk).exists():
                # Removed with a purged parent folder
                continue

            try:
                permanent_delete(resource)
                count += 1
            except Exception as exc:
                self.stderr.write(
                    f'Failed to delete {resource.id}: {exc}',
                )
                logger.exception(
                    'Failed to purge %s from trash: %s',
                    resource.resource_type,
                    resource.id,
                )
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} resources from trash'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} resources from trash, {failed} failed',
                ),
            )
