"""
Infrastructure layer - external service integrations.

- storage: Object storage (Backblaze B2 via the S3 API)

These wrappers translate between external formats and our domain models.
"""
