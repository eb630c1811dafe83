"""Drive and sharing settings."""

from server.settings.components import config

# Trash restore window, also used by the cleanup_trash command
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

# Upper bound for parent-pointer walks (breadcrumbs, cycle checks)
DRIVE_MAX_TREE_DEPTH = config('DRIVE_MAX_TREE_DEPTH', cast=int, default=64)

# Upper bound for nested folder imports
DRIVE_IMPORT_MAX_DEPTH = config('DRIVE_IMPORT_MAX_DEPTH', cast=int, default=32)

# Public link tokens, in random bytes (never below 16)
DRIVE_LINK_TOKEN_BYTES = config('DRIVE_LINK_TOKEN_BYTES', cast=int, default=32)
DRIVE_PUBLIC_LINK_BASE_URL = config(
    'DRIVE_PUBLIC_LINK_BASE_URL',
    default='http://localhost:3000/shared/',
)

# Signed download URLs lifetime in seconds
DRIVE_SIGNED_URL_TTL = config('DRIVE_SIGNED_URL_TTL', cast=int, default=3600)

# Listing pagination
DRIVE_DEFAULT_PAGE_SIZE = config('DRIVE_DEFAULT_PAGE_SIZE', cast=int, default=20)
DRIVE_MAX_PAGE_SIZE = config('DRIVE_MAX_PAGE_SIZE', cast=int, default=100)
