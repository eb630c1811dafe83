"""Tests for trash operations business logic."""

from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone

from server.apps.drive.exceptions import InvalidStateError, NotFoundError
from server.apps.drive.logic.file_operations import upload_file
from server.apps.drive.logic.trash_operations import (
    empty_trash,
    list_trash,
    purge_resource,
    restore_resource,
    soft_delete,
    soft_delete_folder_tree,
)
from server.apps.drive.models import File, Folder, ResourceType
from server.apps.sharing.models import PermissionGrant, PublicLink
from server.apps.sharing.roles import Role


@pytest.mark.django_db
class TestSoftDelete:
    """Tests for soft_delete function."""

    def test_soft_delete_sets_flags(self, text_file):
        """Test soft delete sets is_deleted and deleted_at."""
        result = soft_delete(text_file)

        assert result.is_deleted is True
        assert result.deleted_at is not None
        assert not File.objects.filter(pk=text_file.pk).exists()
        assert File.all_objects.filter(pk=text_file.pk).exists()

    def test_soft_delete_preserves_storage(
        self,
        owner_email,
        mock_s3,
        bucket_name,
        sample_file_content,
    ):
        """Test soft delete doesn't remove the blob from S3."""
        file_instance = upload_file(owner_email, sample_file_content)

        soft_delete(file_instance)

        objs = list(mock_s3.Bucket(bucket_name).objects.filter(
            Prefix=file_instance.blob.name,
        ))
        assert len(objs) == 1


@pytest.mark.django_db
class TestRestoreResource:
    """Tests for restore_resource function."""

    def test_restore_clears_flags(self, owner_email, text_file):
        """Test restore clears is_deleted and deleted_at."""
        soft_delete(text_file)

        result = restore_resource(owner_email, ResourceType.FILE, text_file.id)

        assert result.is_deleted is False
        assert result.deleted_at is None
        assert result.folder_id == text_file.folder_id

    def test_restore_at_window_boundary(self, owner_email, text_file):
        """Test a resource deleted exactly 30 days ago can be restored."""
        deleted_at = timezone.now()
        soft_delete(text_file, deleted_at)

        with mock.patch(
            'django.utils.timezone.now',
            return_value=deleted_at + timedelta(days=30),
        ):
            result = restore_resource(owner_email, ResourceType.FILE, text_file.id)

        assert result.is_deleted is False

    def test_restore_after_window(self, owner_email, text_file):
        """Test one second past the window fails."""
        deleted_at = timezone.now()
        soft_delete(text_file, deleted_at)

        with mock.patch(
            'django.utils.timezone.now',
            return_value=deleted_at + timedelta(days=30, seconds=1),
        ):
            with pytest.raises(InvalidStateError):
                restore_resource(owner_email, ResourceType.FILE, text_file.id)

    def test_restore_live_resource(self, owner_email, text_file):
        """Test restoring something not in trash fails."""
        with pytest.raises(InvalidStateError):
            restore_resource(owner_email, ResourceType.FILE, text_file.id)

    def test_restore_by_non_owner(self, other_email, text_file):
        """Test only the owner can restore."""
        soft_delete(text_file)

        with pytest.raises(NotFoundError):
            restore_resource(other_email, ResourceType.FILE, text_file.id)

    def test_restore_to_root_when_folder_gone(self, owner_email, docs_folder, text_file):
        """Test item is re-attached to root if its folder is in trash."""
        soft_delete(text_file)
        soft_delete(docs_folder)

        result = restore_resource(owner_email, ResourceType.FILE, text_file.id)

        assert result.folder_id is None
        text_file.refresh_from_db()
        assert text_file.folder_id is None

    def test_folder_restore_brings_back_batch(
        self,
        owner_email,
        nested_folders,
        text_file,
    ):
        """Test restoring a folder restores everything deleted with it."""
        docs, projects, year = nested_folders
        separately_deleted = File.objects.create(
            name='old.txt',
            folder=projects,
            owner_email=owner_email,
        )
        soft_delete(separately_deleted, timezone.now() - timedelta(days=1))
        soft_delete_folder_tree(docs)

        restore_resource(owner_email, ResourceType.FOLDER, docs.id)

        assert Folder.objects.filter(pk__in=[docs.pk, projects.pk, year.pk]).count() == 3
        assert File.objects.filter(pk=text_file.pk).exists()
        assert not File.objects.filter(pk=separately_deleted.pk).exists()


@pytest.mark.django_db
class TestPurgeResource:
    """Tests for purge_resource function."""

    def test_purge_removes_row_and_blob(
        self,
        owner_email,
        mock_s3,
        bucket_name,
        sample_file_content,
    ):
        """Test purge deletes the record and its S3 object."""
        file_instance = upload_file(owner_email, sample_file_content)
        blob_name = file_instance.blob.name
        soft_delete(file_instance)

        purge_resource(owner_email, ResourceType.FILE, file_instance.id)

        assert not File.all_objects.filter(pk=file_instance.pk).exists()
        objs = list(mock_s3.Bucket(bucket_name).objects.filter(Prefix=blob_name))
        assert objs == []

    def test_purge_live_resource(self, owner_email, text_file):
        """Test only trashed resources can be purged."""
        with pytest.raises(InvalidStateError):
            purge_resource(owner_email, ResourceType.FILE, text_file.id)

    def test_purge_folder_removes_subtree_and_sharing(
        self,
        owner_email,
        other_email,
        nested_folders,
        text_file,
    ):
        """Test purging a folder removes its subtree, grants and links."""
        docs, projects, year = nested_folders
        PermissionGrant.objects.create(
            resource_type=ResourceType.FOLDER,
            resource_id=projects.id,
            grantee_email=other_email,
            role=Role.VIEWER,
            granted_by=owner_email,
        )
        PublicLink.objects.create(
            token='purge-me',
            resource_type=ResourceType.FILE,
            resource_id=text_file.id,
            created_by=owner_email,
        )
        soft_delete_folder_tree(docs)

        purge_resource(owner_email, ResourceType.FOLDER, docs.id)

        assert not Folder.all_objects.filter(
            pk__in=[docs.pk, projects.pk, year.pk],
        ).exists()
        assert not File.all_objects.filter(pk=text_file.pk).exists()
        assert not PermissionGrant.objects.exists()
        assert not PublicLink.objects.exists()

    def test_purge_keeps_rows_of_other_owners(
        self,
        owner_email,
        other_email,
        docs_folder,
        text_file,
    ):
        """Test purging a shared folder re-roots what others created in it."""
        their_folder = Folder.objects.create(
            name='Theirs',
            parent=docs_folder,
            owner_email=other_email,
        )
        their_file = File.objects.create(
            name='theirs.txt',
            folder=docs_folder,
            owner_email=other_email,
        )
        my_file_in_theirs = File.objects.create(
            name='mine.txt',
            folder=their_folder,
            owner_email=owner_email,
        )
        soft_delete_folder_tree(docs_folder)

        purge_resource(owner_email, ResourceType.FOLDER, docs_folder.id)

        assert not Folder.all_objects.filter(pk=docs_folder.pk).exists()
        assert not File.all_objects.filter(pk=text_file.pk).exists()
        their_folder = Folder.all_objects.get(pk=their_folder.pk)
        their_file = File.all_objects.get(pk=their_file.pk)
        assert their_folder.parent_id is None
        assert their_folder.is_deleted is True
        assert their_file.folder_id is None
        assert File.all_objects.get(pk=my_file_in_theirs.pk).folder_id == their_folder.id

        restored = restore_resource(other_email, ResourceType.FOLDER, their_folder.id)
        assert restored.parent_id is None
        assert restored.is_deleted is False

    def test_purge_survives_storage_failure(
        self,
        owner_email,
        mock_s3,
        sample_file_content,
    ):
        """Test metadata deletion succeeds even if blob deletion fails."""
        file_instance = upload_file(owner_email, sample_file_content)
        soft_delete(file_instance)

        with mock.patch(
            'storages.backends.s3.S3Storage.delete',
            side_effect=RuntimeError('S3 down'),
        ):
            purge_resource(owner_email, ResourceType.FILE, file_instance.id)

        assert not File.all_objects.filter(pk=file_instance.pk).exists()


@pytest.mark.django_db
class TestListTrash:
    """Tests for list_trash and empty_trash functions."""

    def test_list_trash_newest_first(self, owner_email, other_email, docs_folder, text_file):
        """Test trash lists only the caller's deleted items, newest first."""
        now = timezone.now()
        soft_delete(text_file, now - timedelta(hours=1))
        soft_delete(docs_folder, now)
        their_folder = Folder.objects.create(name='Theirs', owner_email=other_email)
        soft_delete(their_folder)

        trash = list_trash(owner_email)

        assert trash == [docs_folder, text_file]

    def test_empty_trash(self, owner_email, nested_folders, text_file):
        """Test everything in trash is purged, subtree rows counted once."""
        docs, _, _ = nested_folders
        soft_delete_folder_tree(docs)

        count = empty_trash(owner_email)

        assert count == 1
        assert list_trash(owner_email) == []
        assert not File.all_objects.exists()
