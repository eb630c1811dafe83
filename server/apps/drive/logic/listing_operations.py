"""Business logic for listing and searching owned-or-shared resources."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Generic, NamedTuple, TypeVar

from django.conf import settings
from django.core.paginator import Paginator
from django.db.models import QuerySet

from server.apps.drive.exceptions import InvalidArgumentError
from server.apps.drive.models import RESOURCE_MODELS, File, Folder, ResourceType
from server.apps.sharing.logic.permission_resolver import (
    normalize_identity,
    permitted_ids,
    require_role,
)
from server.apps.sharing.models import PermissionGrant
from server.apps.sharing.roles import Role

logger = logging.getLogger(__name__)

_ItemT = TypeVar('_ItemT')

SORT_NAME: Final = 'name'
SORT_DATE: Final = 'date'
SORT_SIZE: Final = 'size'
_SORT_KEYS: Final = frozenset((SORT_NAME, SORT_DATE, SORT_SIZE))
_SORT_ORDERS: Final = frozenset(('asc', 'desc'))

KIND_ALL: Final = 'all'
KIND_FILES: Final = 'files'
KIND_FOLDERS: Final = 'folders'
_KINDS: Final = frozenset((KIND_ALL, KIND_FILES, KIND_FOLDERS))

DEFAULT_SUGGESTION_LIMIT: Final = 10


def get_default_page_size() -> int:
    """Get page size used when the caller gives none."""
    return getattr(settings, 'DRIVE_DEFAULT_PAGE_SIZE', 20)


def get_max_page_size() -> int:
    """Get the largest page size a caller may ask for."""
    return getattr(settings, 'DRIVE_MAX_PAGE_SIZE', 100)


@dataclass(frozen=True)
class ListQuery:
    """Filters, sorting and pagination for listings.

    ``parent_id`` of None lists the root level. ``mime_types`` and the
    size bounds only narrow files. The date bounds apply to both kinds and
    compare against ``created_at``, both ends included.
    """

    parent_id: Any = None
    search: str = ''
    starred_only: bool = False
    sort_by: str = SORT_NAME
    sort_order: str = 'asc'
    page: int = 1
    page_size: int = field(default_factory=get_default_page_size)
    mime_types: tuple[str, ...] = ()
    min_size: int | None = None
    max_size: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def __post_init__(self) -> None:
        """Validate query values.

        Raises:
            InvalidArgumentError: If a value is out of range.
        """
        if self.sort_by not in _SORT_KEYS:
            raise InvalidArgumentError(f'Unknown sort key: {self.sort_by}')
        if self.sort_order not in _SORT_ORDERS:
            raise InvalidArgumentError(f'Unknown sort order: {self.sort_order}')
        if self.page < 1:
            raise InvalidArgumentError('Page must be at least 1')
        if not 1 <= self.page_size <= get_max_page_size():
            raise InvalidArgumentError(
                f'Page size must be between 1 and {get_max_page_size()}',
            )
        if isinstance(self.mime_types, str):
            raise InvalidArgumentError('MIME types must be given as a list')
        for bound in (self.min_size, self.max_size):
            if bound is not None and not _is_size(bound):
                raise InvalidArgumentError('Size bounds must be non-negative integers')
        if _inverted(self.min_size, self.max_size):
            raise InvalidArgumentError('Minimum size is above maximum size')
        if _inverted(self.date_from, self.date_to):
            raise InvalidArgumentError('Date range starts after it ends')


def _is_size(bound: object) -> bool:
    return isinstance(bound, int) and not isinstance(bound, bool) and bound >= 0


def _inverted(low: Any, high: Any) -> bool:
    return low is not None and high is not None and low > high


@dataclass
class Page(Generic[_ItemT]):
    """One page of a listing."""

    items: list[_ItemT]
    page: int
    page_size: int
    total: int
    pages: int


@dataclass
class SearchResult:
    """Search results, each kind paginated on its own."""

    files: Page[File] | None
    folders: Page[Folder] | None

    @property
    def total(self) -> int:
        """Matches across both kinds (not only the current pages)."""
        return sum(
            result.total for result in (self.files, self.folders)
            if result is not None
        )


def paginate(queryset: QuerySet, page: int, page_size: int) -> Page:
    """Slice a queryset into a page.

    Pages past the end are returned empty instead of raising.

    Args:
        queryset: Ordered queryset.
        page: 1-based page number.
        page_size: Items per page.

    Returns:
        Page with items and totals.
    """
    paginator = Paginator(queryset, page_size)
    items = []
    if page <= paginator.num_pages and paginator.count:
        items = list(paginator.page(page).object_list)
    return Page(
        items=items,
        page=page,
        page_size=page_size,
        total=paginator.count,
        pages=paginator.num_pages if paginator.count else 0,
    )


def _ordering(model: type[Folder] | type[File], sort_by: str, sort_order: str) -> list[str]:
    if sort_by == SORT_DATE:
        column = 'created_at'
    elif sort_by == SORT_SIZE and model is File:
        column = 'size_bytes'
    else:
        column = 'name'
    prefix = '-' if sort_order == 'desc' else ''
    return [f'{prefix}{column}', f'{prefix}id']


def _apply_filters(queryset: QuerySet, query: ListQuery) -> QuerySet:
    if query.search:
        queryset = queryset.filter(name__icontains=query.search)
    if query.starred_only:
        queryset = queryset.filter(is_starred=True)
    if query.date_from is not None:
        queryset = queryset.filter(created_at__gte=query.date_from)
    if query.date_to is not None:
        queryset = queryset.filter(created_at__lte=query.date_to)
    if queryset.model is not File:
        return queryset

    if query.mime_types:
        queryset = queryset.filter(mime_type__in=list(query.mime_types))
    if query.min_size is not None:
        queryset = queryset.filter(size_bytes__gte=query.min_size)
    if query.max_size is not None:
        queryset = queryset.filter(size_bytes__lte=query.max_size)
    return queryset


def _accessible(identity: str, resource_type: str) -> QuerySet:
    model = RESOURCE_MODELS[resource_type]
    return model.objects.filter(
        id__in=permitted_ids(identity, resource_type, Role.VIEWER),
    )


def _scoped(identity: str, resource_type: str, parent_id: Any) -> QuerySet:
    """Live resources directly under ``parent_id`` visible to the caller."""
    model = RESOURCE_MODELS[resource_type]
    parent_field = 'parent' if model is Folder else 'folder'

    if parent_id is None:
        return _accessible(identity, resource_type).filter(
            **{f'{parent_field}__isnull': True},
        )

    # Access to a folder covers everything directly inside it
    parent = require_role(identity, ResourceType.FOLDER, parent_id, Role.VIEWER)
    return model.objects.filter(**{parent_field: parent})


def list_folders(identity: str, query: ListQuery) -> Page[Folder]:
    """List folders under a parent (or at root) visible to the caller.

    Args:
        identity: Verified caller email.
        query: Scope, filters, sorting and pagination.

    Returns:
        Page of folders.

    Raises:
        NotFoundError: If the parent is missing or not visible to caller.
    """
    queryset = _apply_filters(
        _scoped(identity, ResourceType.FOLDER, query.parent_id),
        query,
    ).order_by(*_ordering(Folder, query.sort_by, query.sort_order))
    return paginate(queryset, query.page, query.page_size)


def list_files(identity: str, query: ListQuery) -> Page[File]:
    """List files in a folder (or at root) visible to the caller.

    Args:
        identity: Verified caller email.
        query: Scope, filters, sorting and pagination.

    Returns:
        Page of files.

    Raises:
        NotFoundError: If the folder is missing or not visible to caller.
    """
    queryset = _apply_filters(
        _scoped(identity, ResourceType.FILE, query.parent_id),
        query,
    ).order_by(*_ordering(File, query.sort_by, query.sort_order))
    return paginate(queryset, query.page, query.page_size)


def search(  # noqa: WPS211
    identity: str,
    term: str,
    kind: str = KIND_ALL,
    starred_only: bool = False,
    sort_by: str = SORT_NAME,
    sort_order: str = 'asc',
    page: int = 1,
    page_size: int | None = None,
) -> SearchResult:
    """Search files and folders by name across the caller's tree.

    Each kind is filtered and paginated independently, then both pages
    are returned together without relevance ranking.

    Args:
        identity: Verified caller email.
        term: Name substring (case-insensitive).
        kind: 'all', 'files' or 'folders'.
        starred_only: Only starred resources.
        sort_by: 'name', 'date' or 'size'.
        sort_order: 'asc' or 'desc'.
        page: 1-based page number, applied to each kind.
        page_size: Items per page and kind.

    Returns:
        Search result with one page per requested kind.

    Raises:
        InvalidArgumentError: If the term is empty or a parameter invalid.
    """
    search_term = (term or '').strip()
    if not search_term:
        raise InvalidArgumentError('Search query is required')
    return _search_all(
        identity,
        kind,
        ListQuery(
            search=search_term,
            starred_only=starred_only,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size or get_default_page_size(),
        ),
    )


def list_starred(
    identity: str,
    kind: str = KIND_ALL,
    page: int = 1,
    page_size: int | None = None,
) -> SearchResult:
    """List starred resources across the caller's tree.

    Args:
        identity: Verified caller email.
        kind: 'all', 'files' or 'folders'.
        page: 1-based page number, applied to each kind.
        page_size: Items per page and kind.

    Returns:
        Starred resources, most recently updated first.
    """
    return _search_all(
        identity,
        kind,
        ListQuery(
            starred_only=True,
            sort_by=SORT_DATE,
            sort_order='desc',
            page=page,
            page_size=page_size or get_default_page_size(),
        ),
    )


def advanced_search(
    identity: str,
    query: ListQuery,
    kind: str = KIND_ALL,
) -> SearchResult:
    """Search across the caller's tree with every ``ListQuery`` filter.

    Unlike ``search`` the name term is optional, so the call can narrow by
    MIME type, size or creation date alone. ``query.parent_id`` is ignored.

    Args:
        identity: Verified caller email.
        query: Filters, sorting and pagination.
        kind: 'all', 'files' or 'folders'.

    Returns:
        Search result with one page per requested kind.

    Raises:
        InvalidArgumentError: If the kind is unknown.
    """
    return _search_all(identity, kind, query)


def list_recent(
    identity: str,
    kind: str = KIND_ALL,
    limit: int | None = None,
) -> SearchResult:
    """List the most recently changed resources visible to the caller.

    Args:
        identity: Verified caller email.
        kind: 'all', 'files' or 'folders'.
        limit: Items per kind.

    Returns:
        First page of each kind, latest ``updated_at`` first.

    Raises:
        InvalidArgumentError: If the kind or limit is invalid.
    """
    return _search_all(
        identity,
        kind,
        ListQuery(page_size=limit or get_default_page_size()),
        ordering=('-updated_at', '-id'),
    )


class Suggestion(NamedTuple):
    """Name completion for a search box."""

    resource_type: str
    name: str


def search_suggestions(
    identity: str,
    term: str,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[Suggestion]:
    """Suggest resource names containing ``term``.

    File names come first, then folder names. Each name is suggested once
    even when several resources share it.

    Args:
        identity: Verified caller email.
        term: Partial name (case-insensitive).
        limit: Maximum number of suggestions.

    Returns:
        Suggestions, empty for a blank term.

    Raises:
        InvalidArgumentError: If the limit is out of range.
    """
    if not 1 <= limit <= get_max_page_size():
        raise InvalidArgumentError(
            f'Limit must be between 1 and {get_max_page_size()}',
        )
    search_term = (term or '').strip()
    if not search_term:
        return []

    suggestions: list[Suggestion] = []
    seen: set[str] = set()
    for resource_type in (ResourceType.FILE, ResourceType.FOLDER):
        names = _accessible(identity, resource_type).filter(
            name__icontains=search_term,
        ).order_by('name', 'id').values_list('name', flat=True)[:limit]
        for name in names:
            if name not in seen:
                seen.add(name)
                suggestions.append(Suggestion(str(resource_type), name))
    return suggestions[:limit]


def _search_all(
    identity: str,
    kind: str,
    query: ListQuery,
    ordering: Sequence[str] | None = None,
) -> SearchResult:
    if kind not in _KINDS:
        raise InvalidArgumentError(f'Unknown resource kind: {kind}')

    pages: dict[str, Page | None] = {KIND_FILES: None, KIND_FOLDERS: None}
    for page_kind, resource_type in (
        (KIND_FILES, ResourceType.FILE),
        (KIND_FOLDERS, ResourceType.FOLDER),
    ):
        if kind not in {KIND_ALL, page_kind}:
            continue
        model = RESOURCE_MODELS[resource_type]
        queryset = _apply_filters(_accessible(identity, resource_type), query)
        pages[page_kind] = paginate(
            queryset.order_by(
                *(ordering or _ordering(model, query.sort_by, query.sort_order)),
            ),
            query.page,
            query.page_size,
        )

    result = SearchResult(files=pages[KIND_FILES], folders=pages[KIND_FOLDERS])
    logger.debug(
        'Search %r by %s (%s): %d matches',
        query.search,
        identity,
        kind,
        result.total,
    )
    return result


def list_shared_with_me(
    identity: str,
    resource_type: str,
    page: int = 1,
    page_size: int | None = None,
) -> Page:
    """List live resources explicitly shared with the caller.

    Args:
        identity: Verified caller email.
        resource_type: 'file' or 'folder'.
        page: 1-based page number.
        page_size: Items per page.

    Returns:
        Page of resources granted to the caller, newest grants first.

    Raises:
        InvalidArgumentError: If the resource type is unknown.
    """
    model = RESOURCE_MODELS.get(resource_type)
    if model is None:
        raise InvalidArgumentError(f'Invalid resource type: {resource_type}')
    query = ListQuery(page=page, page_size=page_size or get_default_page_size())

    grantee = normalize_identity(identity)
    granted_ids = PermissionGrant.objects.filter(
        grantee_email=grantee,
        resource_type=resource_type,
    ).values('resource_id')
    queryset = model.objects.filter(id__in=granted_ids).exclude(
        owner_email=grantee,
    ).order_by('-updated_at', 'id')
    return paginate(queryset, query.page, query.page_size)
