"""Object store client -- fetches objects from the private bucket by name."""

from __future__ import annotations

import logging
import posixpath
from urllib.parse import quote

import aiohttp

from ..media.classify import content_type_for
from .upstream import UpstreamError, UpstreamResponse, fetch_bytes

logger = logging.getLogger(__name__)


class InvalidObjectName(ValueError):
    pass


def validate_object_name(name: str, ticket_id: str | None = None) -> str:
    """Return *name* if it is a bare object key, else raise.

    Full URLs and ``..`` segments are refused.  When *ticket_id* is given
    the object must live under ``tickets/<ticket_id>/``.
    """
    name = name.strip()
    if not name:
        raise InvalidObjectName("Object name is required")
    if "://" in name or name.startswith("/"):
        raise InvalidObjectName("Object name must not be a URL or absolute path")
    if ".." in name.split("/"):
        raise InvalidObjectName("Object name must not contain '..'")
    if ticket_id and not name.startswith(f"tickets/{ticket_id}/"):
        raise PermissionError("Object does not belong to this ticket")
    return name


class ObjectStoreClient:

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        bucket: str,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._timeout = timeout

    def object_url(self, name: str) -> str:
        return f"{self._base_url}/{quote(self._bucket)}/{quote(name)}"

    async def fetch(self, name: str) -> UpstreamResponse:
        url = self.object_url(name)
        try:
            resp = await fetch_bytes(self._session, url, timeout=self._timeout)
        except UpstreamError as exc:
            if exc.status == 404:
                raise UpstreamError(404, "Object not found") from exc
            raise
        logger.debug("[object-store] fetched %s (%d bytes)", name, len(resp.data))
        return UpstreamResponse(
            data=resp.data,
            content_type=content_type_for(posixpath.basename(name)),
            status=resp.status,
        )
