"""
Shared Gallery - a shared photo and video bucket backed by Backblaze B2.

This package contains the complete application:
- core: Framework-agnostic gallery logic (keys, kinds, ordering)
- infrastructure: Object storage integration
- api: FastAPI routes and dependencies
- client: Async client that drives uploads, including multipart
- config: Application configuration
"""

__version__ = "0.1.0"
