"""Fixtures for sharing tests."""

import pytest

from server.apps.sharing.models import PermissionGrant


@pytest.fixture
def grant(db):
    """Factory storing a grant issued by the resource owner.

    Returns:
        Callable taking (resource, grantee, role) and returning the grant.
    """
    def factory(resource, grantee, role):  # noqa: WPS430
        return PermissionGrant.objects.create(
            resource_type=resource.resource_type,
            resource_id=resource.id,
            grantee_email=grantee,
            role=role,
            granted_by=resource.owner_email,
        )
    return factory
