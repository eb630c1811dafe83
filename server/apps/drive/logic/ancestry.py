"""Parent-pointer walks over the folder tree."""

import logging
from collections.abc import Iterable
from typing import NamedTuple
from uuid import UUID

from django.conf import settings

from server.apps.drive.exceptions import InvalidArgumentError, TreeDepthExceededError
from server.apps.drive.models import Folder

logger = logging.getLogger(__name__)


class FolderNode(NamedTuple):
    """Minimal folder row used while walking the tree."""

    id: UUID
    name: str
    parent_id: UUID | None
    owner_email: str


def get_max_depth() -> int:
    """Get the bound for ancestor walks.

    Returns:
        Max depth from settings or default of 64.
    """
    return getattr(settings, 'DRIVE_MAX_TREE_DEPTH', 64)


def folder_lineage(folder_id: UUID, *, for_update: bool = False) -> list[FolderNode]:
    """Collect a folder and its ancestors, nearest first.

    Walks ``parent`` pointers up to the root, one row per step. The walk
    is bounded, so a corrupted cyclic chain fails instead of looping.

    Args:
        folder_id: Folder to start from.
        for_update: Lock visited rows (inside a transaction).

    Returns:
        Nodes from ``folder_id`` up to its root ancestor. Empty if the
        folder does not exist.

    Raises:
        TreeDepthExceededError: If the chain is deeper than the bound or
            loops back on itself.
    """
    max_depth = get_max_depth()
    queryset = Folder.all_objects.all()
    if for_update:
        queryset = queryset.select_for_update()

    lineage: list[FolderNode] = []
    seen: set[UUID] = set()
    current_id: UUID | None = folder_id

    while current_id is not None:
        if current_id in seen or len(lineage) >= max_depth:
            logger.error(
                'Folder ancestry walk aborted at %s (start: %s, depth: %d)',
                current_id,
                folder_id,
                len(lineage),
            )
            raise TreeDepthExceededError(folder_id, max_depth)
        seen.add(current_id)

        row = queryset.filter(pk=current_id).values_list(
            'id', 'name', 'parent_id', 'owner_email',
        ).first()
        if row is None:
            break
        node = FolderNode(*row)
        lineage.append(node)
        current_id = node.parent_id

    return lineage


def is_ancestor_or_self(candidate_id: UUID, folder_id: UUID) -> bool:
    """Check whether ``candidate_id`` is ``folder_id`` or one of its ancestors.

    Args:
        candidate_id: Folder that might be above ``folder_id``.
        folder_id: Folder whose chain is walked.

    Returns:
        True if ``candidate_id`` appears in the chain.
    """
    return any(node.id == candidate_id for node in folder_lineage(folder_id))


def descendant_folder_ids(
    root_ids: Iterable[UUID],
    *,
    include_deleted: bool = False,
) -> set[UUID]:
    """Collect all folders below the given ones (excluding the roots).

    Runs one query per tree level, not per folder.

    Args:
        root_ids: Folders whose subtrees are collected.
        include_deleted: Also descend through trashed folders.

    Returns:
        IDs of every descendant folder.
    """
    levels = _descendant_levels(root_ids, include_deleted=include_deleted)
    return set().union(*levels)


def subtree_height(folder_id: UUID) -> int:
    """Count folder levels from ``folder_id`` down to its deepest descendant.

    Trashed folders count, since restoring them brings their levels back.

    Args:
        folder_id: Top of the subtree.

    Returns:
        1 for a folder without subfolders.
    """
    return 1 + len(_descendant_levels([folder_id], include_deleted=True))


def ensure_depth_available(parent_id: UUID | None, levels: int = 1) -> int:
    """Check that ``levels`` more folder levels fit below ``parent_id``.

    Args:
        parent_id: Folder receiving the new levels, None for root.
        levels: Folder levels about to be added.

    Returns:
        Depth of ``parent_id`` (0 for root).

    Raises:
        InvalidArgumentError: If the tree would grow past the bound.
    """
    max_depth = get_max_depth()
    parent_depth = len(folder_lineage(parent_id)) if parent_id else 0
    if parent_depth + levels > max_depth:
        logger.warning(
            'Rejected %d folder levels under %s (depth %d, bound %d)',
            levels,
            parent_id,
            parent_depth,
            max_depth,
        )
        raise InvalidArgumentError(
            f'Folders cannot be nested deeper than {max_depth} levels',
        )
    return parent_depth


def _descendant_levels(
    root_ids: Iterable[UUID],
    *,
    include_deleted: bool,
) -> list[set[UUID]]:
    """Collect descendant folder IDs grouped by distance from the roots."""
    manager = Folder.all_objects if include_deleted else Folder.objects
    roots = set(root_ids)
    visited = set(roots)
    frontier = set(roots)
    levels: list[set[UUID]] = []

    while frontier:
        children = set(
            manager.filter(parent_id__in=frontier).values_list('id', flat=True),
        )
        frontier = children - visited
        if not frontier:
            break
        # Only levels that actually exist count against the bound
        if len(levels) >= get_max_depth():
            raise TreeDepthExceededError(sorted(roots), get_max_depth())
        visited |= frontier
        levels.append(frontier)

    return levels
