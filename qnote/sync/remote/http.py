"""
HTTP Remote Store.

Remote store speaking JSON over HTTP to a REST document service. Paths
mirror the document layout:

    PUT    /users/{user_id}/notes/{note_id}
    DELETE /users/{user_id}/notes/{note_id}
    GET    /users/{user_id}/notes?order=-timestamp&limit=N&start_after=CURSOR
    DELETE /users/{user_id}/notes?is_pinned=false
    PUT    /public_notes/{public_id}
    DELETE /public_notes/{public_id}

Transport errors and 5xx/429 responses are transient. Other 4xx responses
are permanent, except 404 on delete which counts as success.
"""

from datetime import datetime
from typing import Any

import httpx

from qnote.sync.core.exceptions import RemoteStoreError
from qnote.sync.core.logging import get_logger, log_with_source
from qnote.sync.core.pagination import encode_keyset_cursor
from qnote.sync.remote.base import RemoteStore
from qnote.sync.schemas.note import Note
from qnote.sync.schemas.remote import PublicNoteDocument, RemoteNoteDocument

logger = get_logger(__name__)


class HttpRemoteStore(RemoteStore):
    """
    Remote store client built on httpx.

    Usage:
        store = HttpRemoteStore("https://notes.example.com/v1", token="...")
        await store.put_note("user-1", note)
        await store.close()
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the store client.

        Args:
            base_url: Service root, e.g. https://notes.example.com/v1
            token: Bearer token sent with every request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"X-Frontend-ID": "sync"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request and translate failures into RemoteStoreError.

        Args:
            method: HTTP method
            path: Path below base_url
            missing_ok: Treat 404 as success
            **kwargs: Additional arguments for httpx

        Raises:
            RemoteStoreError: On transport failure or error status
        """
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log_with_source(
                logger, "remote", "warning", "Remote request failed",
                method=method, path=path, error=str(e),
            )
            raise RemoteStoreError(f"{method} {path} failed: {e}", transient=True) from e

        log_with_source(
            logger, "remote", "debug", "Remote response",
            method=method, path=path, status_code=response.status_code,
        )

        if response.status_code == 404 and missing_ok:
            return response
        if response.is_error:
            transient = response.status_code >= 500 or response.status_code == 429
            raise RemoteStoreError(
                f"{method} {path} returned {response.status_code}",
                transient=transient,
            )
        return response

    async def put_note(self, user_id: str, note: Note) -> None:
        document = RemoteNoteDocument.from_note(note)
        await self._request(
            "PUT",
            f"/users/{user_id}/notes/{note.id}",
            json=document.model_dump(mode="json", by_alias=True),
        )

    async def delete_note(self, user_id: str, note_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}/notes/{note_id}", missing_ok=True)

    async def list_notes(
        self,
        user_id: str,
        limit: int,
        start_after: tuple[datetime, str] | None = None,
    ) -> list[RemoteNoteDocument]:
        params: dict[str, Any] = {"order": "-timestamp", "limit": limit}
        if start_after is not None:
            params["start_after"] = encode_keyset_cursor(*start_after)

        response = await self._request("GET", f"/users/{user_id}/notes", params=params)
        try:
            payload = response.json()
            return [RemoteNoteDocument.model_validate(item) for item in payload["notes"]]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteStoreError(f"Malformed note listing: {e}", transient=False) from e

    async def delete_unpinned(self, user_id: str) -> None:
        await self._request(
            "DELETE",
            f"/users/{user_id}/notes",
            params={"is_pinned": "false"},
        )

    async def publish_note(
        self,
        public_id: str,
        content: str,
        timestamp: datetime,
        user_id: str,
    ) -> None:
        document = PublicNoteDocument(content=content, timestamp=timestamp, user_id=user_id)
        await self._request(
            "PUT",
            f"/public_notes/{public_id}",
            json=document.model_dump(mode="json", by_alias=True),
        )

    async def unpublish_note(self, public_id: str) -> None:
        await self._request("DELETE", f"/public_notes/{public_id}", missing_ok=True)
