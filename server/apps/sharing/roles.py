"""Role lattice used by every authorization check.

Roles form a total order. ``OWNER`` is never stored in a grant: it is
implied by ``owner_email`` and always outranks every grantable role.
"""

from typing import Final

from django.db import models

from server.apps.drive.exceptions import InvalidArgumentError


class Role(models.IntegerChoices):
    """Ordered permission levels, value is the rank."""

    VIEWER = 1, 'viewer'
    EDITOR = 2, 'editor'
    ADMIN = 3, 'admin'
    OWNER = 4, 'owner'


GRANTABLE_ROLES: Final = frozenset((Role.VIEWER, Role.EDITOR, Role.ADMIN))
LINK_ROLES: Final = frozenset((Role.VIEWER, Role.EDITOR))


def role_satisfies(have: Role | int | None, required: Role | int) -> bool:
    """Check whether a held role is at or above the required one.

    Args:
        have: Role held by the caller, ``None`` for no access.
        required: Minimum role for the operation.

    Returns:
        True if ``have`` ranks at least as high as ``required``.
    """
    if have is None:
        return False
    return int(have) >= int(required)


def highest_role(*roles: Role | int | None) -> Role | None:
    """Pick the highest of the given roles, ignoring ``None``."""
    held = [int(role) for role in roles if role is not None]
    if not held:
        return None
    return Role(max(held))


def parse_role(label: str | int | Role) -> Role:
    """Convert a role label ('viewer', 'Editor', 2, ...) to ``Role``.

    Args:
        label: Role label or rank.

    Returns:
        Matching Role.

    Raises:
        InvalidArgumentError: If the label is unknown.
    """
    if isinstance(label, int):
        try:
            return Role(label)
        except ValueError as error:
            raise InvalidArgumentError(f'Unknown role: {label}') from error

    normalized = str(label).strip().lower()
    for role in Role:
        if role.label == normalized:
            return role
    raise InvalidArgumentError(f'Unknown role: {label}')
