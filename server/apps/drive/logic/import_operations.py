"""Business logic for importing nested folder structures.

A structure is a list of tagged nodes::

    [
        {'type': 'folder', 'name': 'docs', 'contents': [
            {'type': 'file', 'name': 'a.txt', 'path': 'docs/a.txt'},
        ]},
        {'type': 'file', 'name': 'readme.md'},
    ]

File nodes are matched to uploaded blobs by relative path. Files without
uploaded content become metadata-only records. Invalid entries are
skipped and reported; the import is not rolled back.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from django.conf import settings
from django.db import DatabaseError

from server.apps.drive.exceptions import InternalError, InvalidArgumentError
from server.apps.drive.infrastructure.metadata import (
    DEFAULT_MIME_TYPE,
    normalize_relative_path,
    validate_name,
)
from server.apps.drive.logic.ancestry import folder_lineage, get_max_depth
from server.apps.drive.logic.file_operations import record_file, store_blob
from server.apps.drive.logic.tree_operations import create_folder
from server.apps.drive.models import File, Folder

logger = logging.getLogger(__name__)

_FOLDER_TAG = 'folder'
_FILE_TAG = 'file'


@dataclass(frozen=True)
class ImportFile:
    """File entry of an import structure."""

    name: str
    path: str = ''
    mime_type: str | None = None


@dataclass(frozen=True)
class ImportFolder:
    """Folder entry of an import structure."""

    name: str
    contents: tuple['ImportFile | ImportFolder', ...] = ()


ImportNode = ImportFile | ImportFolder


@dataclass
class ImportSummary:
    """Outcome of an import."""

    root: Folder
    created_folders: list[Folder] = field(default_factory=list)
    created_files: list[File] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        """Folders and files created, import root excluded."""
        return len(self.created_folders) + len(self.created_files)

    @property
    def skipped_count(self) -> int:
        """Entries that could not be imported."""
        return len(self.skipped)


def get_import_max_depth() -> int:
    """Get the nesting bound for imports.

    Returns:
        Max depth from settings or default of 32.
    """
    return getattr(settings, 'DRIVE_IMPORT_MAX_DEPTH', 32)


def parse_node(raw: Any) -> ImportNode:
    """Build a tagged import node from decoded JSON.

    Nested ``contents`` are kept raw and parsed lazily while importing,
    so a bad child only skips that child.

    Args:
        raw: Mapping with ``type`` and ``name`` keys, or a built node.

    Returns:
        ImportFile or ImportFolder.

    Raises:
        InvalidArgumentError: If the entry is malformed.
    """
    if isinstance(raw, ImportFile | ImportFolder):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidArgumentError('Import entry must be an object')

    node_type = raw.get('type')
    name = validate_name(raw.get('name'))

    if node_type == _FOLDER_TAG:
        contents = raw.get('contents') or ()
        if not isinstance(contents, list | tuple):
            raise InvalidArgumentError(f'Contents of {name} must be a list')
        return ImportFolder(name=name, contents=tuple(contents))
    if node_type == _FILE_TAG:
        return ImportFile(
            name=name,
            path=str(raw.get('path') or ''),
            mime_type=raw.get('mimeType') or raw.get('mime_type'),
        )
    raise InvalidArgumentError(f'Unknown import entry type: {node_type!r}')


class _Importer:
    """Walks an import structure and creates the matching subtree."""

    def __init__(
        self,
        owner_email: str,
        summary: ImportSummary,
        uploaded_blobs: Mapping[str, BinaryIO],
    ) -> None:
        self.owner_email = owner_email
        self.summary = summary
        self.root_name = summary.root.name
        self.max_depth = get_import_max_depth()
        # Folder levels left below the import root before the tree bound
        self.tree_room = get_max_depth() - len(folder_lineage(summary.root.id))
        self.blobs = {
            normalize_relative_path(path): blob
            for path, blob in uploaded_blobs.items()
        }

    def import_nodes(
        self,
        raw_nodes: Iterable[Any],
        parent: Folder,
        prefix: str,
        depth: int,
    ) -> None:
        for raw in raw_nodes:
            label = _describe(raw, prefix)
            try:
                node = parse_node(raw)
            except InvalidArgumentError as error:
                logger.warning('Skipping import entry %s: %s', label, error)
                self.summary.skipped.append(label)
                continue

            if isinstance(node, ImportFolder):
                self._import_folder(node, parent, prefix, depth)
            else:
                self._import_file(node, parent, prefix)

    def _import_folder(
        self,
        node: ImportFolder,
        parent: Folder,
        prefix: str,
        depth: int,
    ) -> None:
        path = _join(prefix, node.name)
        if depth >= self.max_depth or depth > self.tree_room:
            logger.warning(
                'Skipping folder %s: nesting deeper than allowed',
                path,
            )
            self.summary.skipped.append(path)
            return

        try:
            folder = Folder.objects.create(
                name=node.name,
                parent=parent,
                owner_email=self.owner_email,
            )
        except DatabaseError:
            logger.exception('Failed to create imported folder %s', path)
            self.summary.skipped.append(path)
            return
        self.summary.created_folders.append(folder)
        self.import_nodes(node.contents, folder, path, depth + 1)

    def _import_file(self, node: ImportFile, parent: Folder, prefix: str) -> None:
        path = _join(prefix, node.name)
        upload = self._take_blob(node, path)

        if upload is not None:
            try:
                blob = store_blob(upload, node.name, node.mime_type)
            except InternalError:
                logger.exception(
                    'Storage failed for %s, creating metadata-only record',
                    path,
                )
            else:
                try:
                    self.summary.created_files.append(
                        record_file(self.owner_email, node.name, parent, blob),
                    )
                except InternalError:
                    self.summary.skipped.append(path)
                return

        try:
            file_instance = File.objects.create(
                name=node.name,
                original_name=node.name,
                folder=parent,
                owner_email=self.owner_email,
                size_bytes=0,
                mime_type=node.mime_type or DEFAULT_MIME_TYPE,
            )
        except DatabaseError:
            logger.exception('Failed to create imported file %s', path)
            self.summary.skipped.append(path)
            return
        self.summary.created_files.append(file_instance)

    def _take_blob(self, node: ImportFile, path: str) -> BinaryIO | None:
        """Find the uploaded blob for a file node (declared path first)."""
        candidates = [
            normalize_relative_path(node.path),
            path,
            _join(self.root_name, path),
            node.name,
        ]
        for candidate in candidates:
            if candidate and candidate in self.blobs:
                return self.blobs.pop(candidate)
        return None


def _join(prefix: str, name: str) -> str:
    return f'{prefix}/{name}' if prefix else name


def _describe(raw: Any, prefix: str) -> str:
    name = raw.get('name') if isinstance(raw, Mapping) else getattr(raw, 'name', None)
    return _join(prefix, str(name or '?'))


def import_tree(
    identity: str,
    root_name: str,
    parent_id: object | None,
    nodes: Iterable[Any],
    uploaded_blobs: Mapping[str, BinaryIO] | None = None,
) -> ImportSummary:
    """Import a nested structure under a new folder named ``root_name``.

    Each created folder becomes the parent of its own declared contents,
    so nesting is preserved exactly. Per-entry failures are counted as
    skipped and never abort the import; rows created before a failure or
    a cancellation are kept.

    Args:
        identity: Verified caller email.
        root_name: Name of the new folder holding the import.
        parent_id: Folder receiving the import root, None for root level.
        nodes: Tagged structure entries.
        uploaded_blobs: Uploaded content keyed by relative path.

    Returns:
        Summary with the import root, created rows and skipped entries.

    Raises:
        InvalidArgumentError: If the root name or structure is invalid, or
            the parent is already at the tree depth bound.
        NotFoundError: If the parent is missing or not visible to caller.
        ForbiddenError: If the caller cannot edit the parent.
    """
    if nodes is None or isinstance(nodes, str | bytes | Mapping):
        raise InvalidArgumentError('Import structure must be a list')

    root = create_folder(identity, root_name, parent_id)
    summary = ImportSummary(root=root)
    importer = _Importer(root.owner_email, summary, uploaded_blobs or {})
    importer.import_nodes(nodes, root, '', depth=1)

    logger.info(
        'Imported %s (ID: %s): %d folders, %d files, %d skipped',
        root.name,
        root.id,
        len(summary.created_folders),
        len(summary.created_files),
        summary.skipped_count,
    )
    return summary
