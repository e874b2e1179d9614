"""Resolve resource handles (URLs) into downloadable artifacts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from .errors import ArtifactLoadError

logger = logging.getLogger(__name__)

DEFAULT_NAME = "merged.pdf"

_DEFAULT_TIMEOUT = 30.0


@dataclass
class Artifact:
    """Final binary output offered to the caller as a named download."""

    name: str
    data: bytes = field(repr=False)
    size: int = 0

    @classmethod
    def from_bytes(cls, data: bytes, *, name: str = DEFAULT_NAME) -> Artifact:
        return cls(name=name, data=data, size=len(data))

    def save(self, path: Path) -> int:
        """Write the artifact to *path*, creating parent directories.

        Returns:
            Number of bytes written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return self.size


def _local_path(url: str) -> Path:
    parsed = urlparse(url)
    return Path(url2pathname(parsed.path))


class ArtifactLoader:
    """Fetch bytes behind a handle and release the handle afterwards.

    ``file://`` handles are local files produced by a compression worker;
    they are deleted once read. ``http(s)`` handles are fetched with
    :mod:`httpx` and need no release.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def load(self, url: str, *, name: str = DEFAULT_NAME) -> Artifact:
        """Fetch *url* and return it as an :class:`Artifact`.

        Raises:
            ArtifactLoadError: If the handle cannot be fetched.
        """
        scheme = urlparse(url).scheme
        if scheme == "file":
            data = await self._read_local(url)
        elif scheme in ("http", "https"):
            data = await self._fetch_remote(url)
        else:
            raise ArtifactLoadError(f"Unsupported artifact handle: {url}")

        await self.revoke(url)

        artifact = Artifact.from_bytes(data, name=name)
        logger.debug("Loaded %s (%d bytes) from %s", name, artifact.size, url)
        return artifact

    async def revoke(self, url: str) -> None:
        """Release a handle. Only local ``file://`` handles hold a resource."""
        if urlparse(url).scheme != "file":
            return
        path = _local_path(url)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to release artifact handle %s: %s", url, exc)

    async def _read_local(self, url: str) -> bytes:
        path = _local_path(url)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ArtifactLoadError(f"Cannot read artifact {url}: {exc}") from exc

    async def _fetch_remote(self, url: str) -> bytes:
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ArtifactLoadError(f"Cannot fetch artifact {url}: {exc}") from exc
        return response.content
