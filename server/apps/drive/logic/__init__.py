"""Business logic layer for drive app.

This package contains all business logic for the resource tree:
- Folder creation, rename, move and breadcrumbs
- File upload, bulk upload, move and signed downloads
- Nested structure import
- Trash lifecycle (soft delete, restore window, purge)
- Listing and search over owned-or-shared resources

Every operation receives the caller identity (verified email) and
authorizes through ``server.apps.sharing.logic.permission_resolver``.
"""
