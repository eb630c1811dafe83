"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Object storage backend (S3/MinIO) holding file bytes
- Metadata extraction (MIME type, checksum) and name validation

Keep infrastructure concerns separate from business logic.
"""
