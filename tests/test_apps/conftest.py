"""Folder and file rows used by both the drive and sharing tests."""

import pytest

from server.apps.drive.models import File, Folder


@pytest.fixture
def docs_folder(db, owner_email):
    """Root-level folder owned by the owner.

    Returns:
        Folder named 'Docs'.
    """
    return Folder.objects.create(name='Docs', owner_email=owner_email)


@pytest.fixture
def nested_folders(db, owner_email, docs_folder):
    """Chain Docs/Projects/2024 owned by the owner.

    Returns:
        Tuple of (Docs, Projects, 2024) folders.
    """
    projects = Folder.objects.create(
        name='Projects',
        parent=docs_folder,
        owner_email=owner_email,
    )
    year = Folder.objects.create(
        name='2024',
        parent=projects,
        owner_email=owner_email,
    )
    return docs_folder, projects, year


@pytest.fixture
def text_file(db, owner_email, docs_folder):
    """Metadata-only file 'a.txt' inside Docs.

    Returns:
        File instance without uploaded content.
    """
    return File.objects.create(
        name='a.txt',
        original_name='a.txt',
        folder=docs_folder,
        owner_email=owner_email,
        size_bytes=0,
        mime_type='text/plain',
    )
