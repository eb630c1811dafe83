"""End-to-end sharing and trash flows across both apps."""

from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone

from server.apps.drive.exceptions import ForbiddenError, InvalidStateError
from server.apps.drive.logic.listing_operations import ListQuery, list_folders
from server.apps.drive.logic.trash_operations import list_trash, restore_resource
from server.apps.drive.logic.tree_operations import (
    create_folder,
    delete_folder,
    rename_resource,
)
from server.apps.drive.models import File, ResourceType
from server.apps.sharing.logic.grant_operations import grant_permission
from server.apps.sharing.logic.link_operations import create_link


@pytest.fixture
def shared_docs(owner_email, other_email):
    """Docs folder with a.txt inside, shared with the other user as editor.

    Returns:
        Tuple of (Docs folder, a.txt file).
    """
    docs = create_folder(owner_email, 'Docs')
    text_file = File.objects.create(
        name='a.txt',
        folder=docs,
        owner_email=owner_email,
        mime_type='text/plain',
    )
    grant_permission(owner_email, ResourceType.FOLDER, docs.id, other_email, 'editor')
    return docs, text_file


@pytest.mark.django_db
class TestEditorOnSharedFolder:
    """An editor of a shared folder works on its contents."""

    def test_editor_renames_file(self, other_email, shared_docs):
        """Test editor can rename a file inside the shared folder."""
        _, text_file = shared_docs

        renamed = rename_resource(
            other_email,
            ResourceType.FILE,
            text_file.id,
            'b.txt',
        )

        assert renamed.name == 'b.txt'

    def test_editor_cannot_publish_link(self, other_email, shared_docs):
        """Test public links need ownership."""
        docs, _ = shared_docs

        with pytest.raises(ForbiddenError):
            create_link(other_email, ResourceType.FOLDER, docs.id)


@pytest.mark.django_db
class TestDeletedFolderLifecycle:
    """A deleted folder leaves listings, shows in trash and expires."""

    def test_delete_list_and_expire(self, owner_email, shared_docs):
        """Test restore fails once 31 days have passed."""
        docs, _ = shared_docs

        delete_folder(owner_email, docs.id)

        root = list_folders(owner_email, ListQuery())
        assert docs not in root.items
        assert docs in list_trash(owner_email)

        with mock.patch(
            'django.utils.timezone.now',
            return_value=timezone.now() + timedelta(days=31),
        ):
            with pytest.raises(InvalidStateError):
                restore_resource(owner_email, ResourceType.FOLDER, docs.id)
