"""Test doubles and helpers shared across test modules."""

import asyncio
from contextlib import asynccontextmanager
from urllib.parse import unquote

import httpx

from shared_gallery.infrastructure.storage.client import MockStorageClient


class RecordingStorage(MockStorageClient):
    """Mock storage that remembers which uploads were aborted."""

    def __init__(self) -> None:
        super().__init__()
        self.aborted: list[str] = []

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self.aborted.append(upload_id)
        await super().abort_multipart_upload(key, upload_id)


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


def storage_transport(storage, fail_on_part=None, omit_etag=False, bad_etag=False):
    """
    Plays the object store's side of presigned part PUTs.

    Bodies are handed to the mock storage client, which issues the ETags.
    """
    async def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        part_number = int(params["partNumber"])
        if part_number == fail_on_part:
            return httpx.Response(503)

        key = unquote(request.url.path.lstrip("/"))
        etag = await storage.upload_part(key, params["uploadId"], part_number, request.content)
        if omit_etag:
            return httpx.Response(200)
        if bad_etag:
            etag = '"0000"'
        return httpx.Response(200, headers={"ETag": etag})

    return httpx.MockTransport(handler)


@asynccontextmanager
async def gallery_http(app, storage, **transport_options):
    """
    Yield (api, storage) httpx clients wired to the app and the mock store.

    transport_options are passed to storage_transport.
    """
    api = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    storage_http = httpx.AsyncClient(transport=storage_transport(storage, **transport_options))
    try:
        yield api, storage_http
    finally:
        await storage_http.aclose()
        await api.aclose()
