"""Metadata extraction and validation utilities for resources."""

import hashlib
import mimetypes
import secrets
from pathlib import PurePosixPath
from typing import BinaryIO, Final

from server.apps.drive.exceptions import InvalidArgumentError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_NAME_MAX_LENGTH: Final = 255
_FORBIDDEN_NAME_CHARS: Final = frozenset('/\\\x00')
_BLOB_PREFIX: Final = 'files'
_BLOB_ID_BYTES: Final = 16

DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type of a file.

    The type declared by the uploader wins when present, otherwise the
    type is guessed from the filename extension.

    Args:
        filename: Filename with extension.
        declared: Content type sent by the client, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return DEFAULT_MIME_TYPE
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_file_size(file_obj: BinaryIO) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object (Django File or plain stream).

    Returns:
        File size in bytes.
    """
    size = getattr(file_obj, 'size', None)
    if size is not None:
        return size
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def validate_name(name: str | None) -> str:
    """Validate and normalize a folder or file name.

    Args:
        name: Proposed name.

    Returns:
        Name with surrounding whitespace stripped.

    Raises:
        InvalidArgumentError: If the name is empty, too long, or contains
            path separators.
    """
    normalized = (name or '').strip()
    if not normalized:
        raise InvalidArgumentError('Name is required')
    if len(normalized) > _NAME_MAX_LENGTH:
        raise InvalidArgumentError(
            f'Name is longer than {_NAME_MAX_LENGTH} characters',
        )
    if normalized in {'.', '..'} or _FORBIDDEN_NAME_CHARS & set(normalized):
        raise InvalidArgumentError(f'Invalid name: {normalized!r}')
    return normalized


def generate_blob_locator(filename: str) -> str:
    """Generate an unguessable storage key for a new blob.

    Example: 'report.PDF' -> 'files/3f9c...e1.pdf'

    Args:
        filename: Original filename, only its extension is kept.

    Returns:
        Storage key under the files prefix.
    """
    suffix = PurePosixPath(filename).suffix.lower()
    return f'{_BLOB_PREFIX}/{secrets.token_hex(_BLOB_ID_BYTES)}{suffix}'


def normalize_relative_path(path: str) -> str:
    """Normalize a declared relative path for matching uploads.

    Example: './Docs//notes/a.txt' -> 'Docs/notes/a.txt'

    Args:
        path: Relative path as declared by the client.

    Returns:
        Path without empty, '.' or leading separator segments.
    """
    parts = [
        part for part in path.replace('\\', '/').split('/')
        if part and part != '.'
    ]
    return '/'.join(parts)
