"""Identities shared by every test package."""

import pytest


@pytest.fixture
def owner_email():
    """Identity owning the resources under test.

    Returns:
        Email of the owner.
    """
    return 'alice@example.com'


@pytest.fixture
def other_email():
    """Second identity for sharing and isolation tests.

    Returns:
        Email of another user.
    """
    return 'bob@example.com'


@pytest.fixture
def stranger_email():
    """Identity with no access to anything.

    Returns:
        Email of an unrelated user.
    """
    return 'carol@example.com'
