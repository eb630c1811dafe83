"""Management command to delete public links that no longer work."""

import logging
from typing import Any

from django.core.management.base import BaseCommand

from server.apps.sharing.logic.link_operations import purge_expired_links

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete expired and exhausted public links."""

    help = 'Delete expired or exhausted public links'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only count the links without deleting',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        count = purge_expired_links(dry_run=dry_run)

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would delete {count} expired links'),
            )
            return

        logger.info('Purged %d expired public links', count)
        self.stdout.write(self.style.SUCCESS(f'Deleted {count} expired links'))
