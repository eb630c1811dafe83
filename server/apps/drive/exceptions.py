"""Exceptions for drive and sharing operations.

Every error raised by the business logic derives from ``DriveError`` and
carries the HTTP status the transport layer should answer with.
"""

from typing import ClassVar


class DriveError(Exception):
    """Base class for all drive business errors."""

    status_code: ClassVar[int] = 500


class InvalidArgumentError(DriveError):
    """Raised when input is missing or malformed."""

    status_code = 400


class ForbiddenError(DriveError):
    """Raised when the caller can see a resource but lacks the role needed.

    Only used when the resource existence is already known to the caller,
    otherwise ``NotFoundError`` is raised instead.
    """

    status_code = 403


class NotFoundError(DriveError):
    """Raised when a resource is absent or not accessible to the caller."""

    status_code = 404


class ConflictError(DriveError):
    """Raised when a unique key would be duplicated."""

    status_code = 409


class InvalidStateError(DriveError):
    """Raised when the resource state forbids the operation."""

    status_code = 409


class GoneError(DriveError):
    """Raised when a public link has expired or is exhausted."""

    status_code = 410


class InternalError(DriveError):
    """Raised when storage or a collaborator fails."""

    status_code = 500


class TreeDepthExceededError(InternalError):
    """Raised when a parent-pointer walk does not reach the root."""

    def __init__(self, start_id: object, max_depth: int) -> None:
        """Initialize TreeDepthExceededError.

        Args:
            start_id: Folder the walk started from.
            max_depth: Depth bound that was exceeded.
        """
        self.start_id = start_id
        self.max_depth = max_depth
        super().__init__(
            f'Folder ancestry of {start_id} exceeds {max_depth} levels '
            '(corrupted tree?)',
        )
