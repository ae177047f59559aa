"""
JSON request helpers shared by the gallery client and the uploader.

The API answers failures with {"error": message}; these helpers turn
that into GalleryClientError so callers deal with one exception type.
"""

from typing import Any, Optional

import httpx


class GalleryClientError(Exception):
    """Raised when the gallery API or the storage endpoint refuses a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def raise_for_error(response: httpx.Response) -> Any:
    """
    Return the decoded JSON body of a successful response.

    Error bodies without an "error" field collapse to "Request failed.".
    A success without a body is treated as a failure too.
    """
    data = _json_or_none(response)

    if response.is_error:
        message = "Request failed."
        if isinstance(data, dict) and data.get("error"):
            message = str(data["error"])
        raise GalleryClientError(message, status_code=response.status_code)

    if data is None:
        raise GalleryClientError(
            "Unexpected empty response from server.",
            status_code=response.status_code,
        )
    return data


async def post_json(http: httpx.AsyncClient, path: str, payload: dict[str, Any]) -> Any:
    response = await http.post(path, json=payload)
    return raise_for_error(response)
