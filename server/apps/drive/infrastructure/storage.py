"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, final, override

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """S3 storage for drive file contents.

    Blobs are addressed by random locators, never by the user-visible file
    name, so renames and moves never touch storage. On top of S3Storage:
    - Blob rollback when the metadata row cannot be written
    - Best-effort deletion once the metadata row is purged
    - Signed download URLs with explicit lifetime
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Store blob content under a locator.

        Args:
            name: Locator proposed for the blob.
            content: Blob content (file-like object).
            max_length: Optional maximum length for the locator.

        Returns:
            Locator actually used (may differ from name on conflicts).

        Raises:
            Exception: If the S3 upload fails.
        """
        size = getattr(content, 'size', None)
        try:
            saved_name = super().save(name, content, max_length)
        except Exception:
            logger.exception(
                'Blob upload to bucket %s failed: %s (%s bytes)',
                self.bucket_name,
                name,
                size,
            )
            raise
        logger.info(
            'Blob stored in bucket %s: %s (%s bytes)',
            self.bucket_name,
            saved_name,
            size,
        )
        return saved_name

    @override
    def delete(self, name: str) -> None:
        """Remove blob content for a locator.

        Args:
            name: Locator of the blob.

        Raises:
            Exception: If the S3 delete fails.
        """
        try:
            super().delete(name)
        except Exception:
            logger.exception(
                'Blob removal from bucket %s failed: %s',
                self.bucket_name,
                name,
            )
            raise
        logger.info('Blob removed from bucket %s: %s', self.bucket_name, name)

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded blob for DB transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Locator of the blob.
        """
        logger.warning('Rolling back upload, deleting blob: %s', name)
        if self.delete_quietly(name):
            logger.info('Successfully rolled back blob upload: %s', name)

    def delete_quietly(self, name: str) -> bool:
        """Delete a blob without raising.

        Used after the metadata row is already deleted, so a failure only
        leaves an orphaned blob behind.

        Args:
            name: Locator of the blob.

        Returns:
            True if the blob was deleted.
        """
        try:
            self.delete(name)
        except Exception:
            logger.exception('Orphaned blob left in storage: %s', name)
            return False
        return True

    def signed_url(self, name: str, ttl: int) -> str:
        """Build a pre-signed URL granting temporary read access.

        Args:
            name: Locator of the blob.
            ttl: URL lifetime in seconds.

        Returns:
            Pre-signed URL.
        """
        return self.url(name, expire=ttl)
