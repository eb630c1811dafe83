"""Tests for folder tree operations business logic."""

import uuid

import pytest

from server.apps.drive.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    TreeDepthExceededError,
)
from server.apps.drive.logic.ancestry import (
    descendant_folder_ids,
    ensure_depth_available,
    folder_lineage,
    is_ancestor_or_self,
    subtree_height,
)
from server.apps.drive.logic.tree_operations import (
    breadcrumbs,
    create_folder,
    delete_folder,
    move_folder,
    rename_resource,
    set_starred,
)
from server.apps.drive.models import File, Folder, ResourceType
from server.apps.sharing.models import PermissionGrant
from server.apps.sharing.roles import Role


def _share(resource, grantee, role):
    PermissionGrant.objects.create(
        resource_type=resource.resource_type,
        resource_id=resource.id,
        grantee_email=grantee,
        role=role,
        granted_by=resource.owner_email,
    )


def _chain(owner_email, length, parent_id=None):
    """Create nested folders through the API, top first."""
    folders = []
    for level in range(length):
        folder = create_folder(owner_email, f'level-{level}', parent_id)
        folders.append(folder)
        parent_id = folder.id
    return folders


@pytest.mark.django_db
class TestCreateFolder:
    """Tests for create_folder function."""

    def test_create_root_folder(self, owner_email):
        """Test folder without parent is created at root."""
        folder = create_folder(owner_email, '  Reports  ')

        assert folder.name == 'Reports'
        assert folder.parent is None
        assert folder.owner_email == owner_email

    def test_create_in_parent(self, owner_email, docs_folder):
        """Test folder is created under the given parent."""
        folder = create_folder(owner_email, 'Sub', docs_folder.id)

        assert folder.parent_id == docs_folder.id

    @pytest.mark.parametrize('name', ['', '   ', '..', 'a/b', 'x' * 256])
    def test_invalid_name(self, owner_email, name):
        """Test invalid names are rejected."""
        with pytest.raises(InvalidArgumentError):
            create_folder(owner_email, name)

    def test_missing_parent(self, owner_email):
        """Test unknown parent raises NotFoundError."""
        with pytest.raises(NotFoundError):
            create_folder(owner_email, 'Sub', uuid.uuid4())

    def test_shared_editor_keeps_own_ownership(self, other_email, docs_folder):
        """Test a folder created in a shared folder belongs to its creator."""
        _share(docs_folder, other_email, Role.EDITOR)

        folder = create_folder(other_email, 'Mine', docs_folder.id)

        assert folder.owner_email == other_email

    def test_viewer_cannot_create(self, other_email, docs_folder):
        """Test viewers cannot add folders."""
        _share(docs_folder, other_email, Role.VIEWER)

        with pytest.raises(ForbiddenError):
            create_folder(other_email, 'Nope', docs_folder.id)

    def test_rejects_folder_past_depth_bound(self, owner_email, settings):
        """Test the tree cannot grow deeper than the configured bound."""
        settings.DRIVE_MAX_TREE_DEPTH = 3
        deepest = _chain(owner_email, 3)[-1]

        with pytest.raises(InvalidArgumentError):
            create_folder(owner_email, 'too-deep', deepest.id)

        assert not Folder.objects.filter(name='too-deep').exists()


@pytest.mark.django_db
class TestRenameResource:
    """Tests for rename_resource function."""

    def test_rename_folder(self, owner_email, docs_folder):
        """Test owner can rename a folder."""
        renamed = rename_resource(
            owner_email,
            ResourceType.FOLDER,
            docs_folder.id,
            'Papers',
        )

        assert renamed.name == 'Papers'
        docs_folder.refresh_from_db()
        assert docs_folder.name == 'Papers'

    def test_rename_file_with_inherited_editor(self, other_email, docs_folder, text_file):
        """Test editor on the folder can rename files inside it."""
        _share(docs_folder, other_email, Role.EDITOR)

        renamed = rename_resource(other_email, ResourceType.FILE, text_file.id, 'b.txt')

        assert renamed.name == 'b.txt'

    def test_rename_by_stranger(self, stranger_email, text_file):
        """Test strangers cannot see the file."""
        with pytest.raises(NotFoundError):
            rename_resource(stranger_email, ResourceType.FILE, text_file.id, 'x')

    def test_rename_to_empty(self, owner_email, text_file):
        """Test empty names are rejected."""
        with pytest.raises(InvalidArgumentError):
            rename_resource(owner_email, ResourceType.FILE, text_file.id, ' ')


@pytest.mark.django_db
class TestMoveFolder:
    """Tests for move_folder function."""

    def test_move_under_other_folder(self, owner_email, docs_folder):
        """Test folder is re-parented."""
        target = Folder.objects.create(name='Archive', owner_email=owner_email)

        moved = move_folder(owner_email, docs_folder.id, target.id)

        assert moved.parent_id == target.id

    def test_move_to_root(self, owner_email, nested_folders):
        """Test None destination moves folder to root."""
        _, projects, _ = nested_folders

        moved = move_folder(owner_email, projects.id, None)

        assert moved.parent_id is None

    def test_move_into_itself(self, owner_email, docs_folder):
        """Test moving a folder into itself is rejected."""
        with pytest.raises(InvalidArgumentError):
            move_folder(owner_email, docs_folder.id, docs_folder.id)

    def test_move_into_descendant(self, owner_email, nested_folders):
        """Test moving a folder below its own grandchild is rejected."""
        docs, _, year = nested_folders

        with pytest.raises(InvalidArgumentError):
            move_folder(owner_email, docs.id, year.id)

        docs.refresh_from_db()
        assert docs.parent_id is None

    def test_cycle_rejected_at_any_depth(self, owner_email, docs_folder):
        """Test cycle detection does not depend on how deep the target is."""
        parent = docs_folder
        for level in range(10):
            parent = Folder.objects.create(
                name=f'level-{level}',
                parent=parent,
                owner_email=owner_email,
            )

        with pytest.raises(InvalidArgumentError):
            move_folder(owner_email, docs_folder.id, parent.id)

    @pytest.mark.parametrize('depth', [1, 2, 3, 5, 8, 13])
    def test_no_cycle_under_any_descendant(self, owner_email, depth):
        """Test the top of a chain cannot move under any folder below it."""
        top, *descendants = _chain(owner_email, depth + 1)

        for descendant in descendants:
            with pytest.raises(InvalidArgumentError):
                move_folder(owner_email, top.id, descendant.id)

        top.refresh_from_db()
        assert top.parent_id is None
        assert [crumb.id for crumb in breadcrumbs(owner_email, descendants[-1].id)] == [
            top.id,
            *(descendant.id for descendant in descendants),
        ]

    def test_move_keeps_subtree_within_depth_bound(self, owner_email, settings):
        """Test a move is rejected when the moved subtree would end up too deep."""
        settings.DRIVE_MAX_TREE_DEPTH = 4
        target_chain = _chain(owner_email, 3)
        moved_top, moved_child = _chain(owner_email, 2)

        with pytest.raises(InvalidArgumentError):
            move_folder(owner_email, moved_top.id, target_chain[2].id)

        moved = move_folder(owner_email, moved_top.id, target_chain[1].id)
        assert moved.parent_id == target_chain[1].id
        assert len(breadcrumbs(owner_email, moved_child.id)) == 4

    def test_move_into_trashed_folder(self, owner_email, docs_folder):
        """Test trashed destination is not found."""
        target = Folder.objects.create(
            name='Gone',
            owner_email=owner_email,
            is_deleted=True,
        )

        with pytest.raises(NotFoundError):
            move_folder(owner_email, docs_folder.id, target.id)

    def test_move_requires_editor_on_destination(
        self,
        owner_email,
        other_email,
        docs_folder,
    ):
        """Test destination must be editable by the caller."""
        their_folder = Folder.objects.create(name='Theirs', owner_email=other_email)
        _share(their_folder, owner_email, Role.VIEWER)

        with pytest.raises(ForbiddenError):
            move_folder(owner_email, docs_folder.id, their_folder.id)


@pytest.mark.django_db
class TestBreadcrumbs:
    """Tests for breadcrumbs function."""

    def test_root_first(self, owner_email, nested_folders):
        """Test path runs from root to the requested folder."""
        docs, projects, year = nested_folders

        path = breadcrumbs(owner_email, year.id)

        assert [crumb.name for crumb in path] == ['Docs', 'Projects', '2024']
        assert path[-1].id == year.id

    def test_root_folder(self, owner_email, docs_folder):
        """Test root folder path has a single entry."""
        assert breadcrumbs(owner_email, docs_folder.id) == [
            (docs_folder.id, 'Docs'),
        ]

    def test_corrupted_cycle_fails(self, owner_email, nested_folders):
        """Test a stored cycle raises instead of looping forever."""
        docs, _, year = nested_folders
        Folder.all_objects.filter(pk=docs.pk).update(parent=year)

        with pytest.raises(TreeDepthExceededError):
            breadcrumbs(owner_email, year.id)

    def test_grantee_reaches_deepest_allowed_folder(
        self,
        owner_email,
        other_email,
        settings,
    ):
        """Test a chain exactly at the depth bound stays usable for grantees."""
        settings.DRIVE_MAX_TREE_DEPTH = 3
        folders = _chain(owner_email, 3)
        _share(folders[0], other_email, Role.VIEWER)

        path = breadcrumbs(other_email, folders[-1].id)

        assert [crumb.id for crumb in path] == [folder.id for folder in folders]
        assert descendant_folder_ids([folders[0].id]) == {
            folders[1].id,
            folders[2].id,
        }

    def test_depth_bound(self, owner_email, docs_folder, settings):
        """Test stored chains deeper than the configured bound fail."""
        settings.DRIVE_MAX_TREE_DEPTH = 3
        parent = docs_folder
        for level in range(3):
            parent = Folder.objects.create(
                name=f'level-{level}',
                parent=parent,
                owner_email=owner_email,
            )

        with pytest.raises(TreeDepthExceededError):
            folder_lineage(parent.id)


@pytest.mark.django_db
class TestAncestry:
    """Tests for ancestry helpers."""

    def test_is_ancestor_or_self(self, nested_folders):
        """Test ancestor detection along the parent chain."""
        docs, projects, year = nested_folders

        assert is_ancestor_or_self(docs.id, year.id) is True
        assert is_ancestor_or_self(year.id, year.id) is True
        assert is_ancestor_or_self(year.id, docs.id) is False

    def test_descendant_folder_ids(self, nested_folders):
        """Test all levels below the roots are collected."""
        docs, projects, year = nested_folders

        assert descendant_folder_ids([docs.id]) == {projects.id, year.id}
        assert descendant_folder_ids([year.id]) == set()

    def test_subtree_height_counts_trashed_levels(self, owner_email, nested_folders):
        """Test trashed subfolders still count towards the height."""
        docs, _, year = nested_folders
        Folder.all_objects.filter(pk=year.pk).update(is_deleted=True)

        assert subtree_height(docs.id) == 3
        assert subtree_height(year.id) == 1

    def test_ensure_depth_available(self, nested_folders, settings):
        """Test room below a folder is measured against the bound."""
        docs, projects, year = nested_folders
        settings.DRIVE_MAX_TREE_DEPTH = 4

        assert ensure_depth_available(None, 4) == 0
        assert ensure_depth_available(year.id) == 3
        with pytest.raises(InvalidArgumentError):
            ensure_depth_available(projects.id, 3)


@pytest.mark.django_db
class TestDeleteFolder:
    """Tests for delete_folder function."""

    def test_delete_cascades(self, owner_email, nested_folders, text_file):
        """Test the whole subtree moves to trash with one timestamp."""
        docs, projects, year = nested_folders

        count = delete_folder(owner_email, docs.id)

        assert count == 4
        rows = [
            Folder.all_objects.get(pk=docs.pk),
            Folder.all_objects.get(pk=projects.pk),
            Folder.all_objects.get(pk=year.pk),
            File.all_objects.get(pk=text_file.pk),
        ]
        assert all(row.is_deleted for row in rows)
        assert len({row.deleted_at for row in rows}) == 1
        assert not Folder.objects.filter(pk=docs.pk).exists()

    def test_editor_cannot_delete(self, other_email, docs_folder):
        """Test deletion needs ADMIN."""
        _share(docs_folder, other_email, Role.EDITOR)

        with pytest.raises(ForbiddenError):
            delete_folder(other_email, docs_folder.id)

    def test_admin_can_delete(self, other_email, docs_folder):
        """Test admins may move shared folders to trash."""
        _share(docs_folder, other_email, Role.ADMIN)

        assert delete_folder(other_email, docs_folder.id) == 1

    def test_parent_owner_cannot_delete_others_folder(
        self,
        owner_email,
        other_email,
        docs_folder,
    ):
        """Test owning the parent gives no rights on a grantee's subfolder."""
        _share(docs_folder, other_email, Role.EDITOR)
        their_folder = create_folder(other_email, 'Theirs', docs_folder.id)

        with pytest.raises(NotFoundError):
            delete_folder(owner_email, their_folder.id)

        assert Folder.objects.filter(pk=their_folder.pk).exists()


@pytest.mark.django_db
class TestSetStarred:
    """Tests for set_starred function."""

    def test_star_and_unstar(self, owner_email, text_file):
        """Test star flag toggles."""
        starred = set_starred(owner_email, ResourceType.FILE, text_file.id, True)
        assert starred.is_starred is True

        unstarred = set_starred(owner_email, ResourceType.FILE, text_file.id, False)
        assert unstarred.is_starred is False
