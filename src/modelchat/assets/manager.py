"""Lifecycle of grounding documents on the chat backend.

The backend is the source of truth for the asset set. Every mutation is
followed by a fresh listing instead of a local edit, so server-assigned
fields never drift.
"""

import asyncio
import json
import logging
import mimetypes
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from uuid import uuid4

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import ALLOWED_UPLOAD_SUFFIXES, FILES_API_PATH, MAX_UPLOAD_BYTES
from ..errors import ChatError, HttpError, NetworkError, UploadError, ValidationError
from ..transport import BackendClient, check_response, decode_json
from .models import Asset, AssetListing, AssetStats, format_size

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

_DONE = object()


class UploadStream:
    """Progress of a single upload as an async iterator of percentages.

    Percentages are non-decreasing integers ending at 100 once every byte has
    been handed to the transport. The stream is lazy (nothing is sent until
    iteration starts) and can be consumed only once. After iteration the
    server's record is available via ``asset``; a failed upload raises
    ``UploadError`` from the iteration and leaves ``progress`` at 0.

    Usage:
        stream = manager.upload(Path("report.pdf"))
        async for percent in stream:
            print(percent)
        print(stream.asset)
    """

    def __init__(
        self,
        manager: "AssetManager",
        path: Path,
        on_progress: ProgressCallback | None = None,
    ):
        self.upload_id = uuid4().hex
        self.path = path
        self._manager = manager
        self._on_progress = on_progress
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._finished = False
        self._progress = 0
        self._asset: Asset | None = None

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def asset(self) -> Asset | None:
        """Server record of the uploaded file (available after iteration)."""
        return self._asset

    def _report(self, percent: int) -> None:
        percent = max(0, min(100, percent))
        if percent <= self._progress:
            return
        self._progress = percent
        self._manager._progress[self.upload_id] = percent
        if self._on_progress is not None:
            self._on_progress(self.upload_id, percent)
        self._queue.put_nowait(percent)

    async def _run(self) -> None:
        try:
            self._asset = await self._manager._transmit(self.path, self._report)
        except UploadError:
            self._progress = 0
            raise
        finally:
            self._manager._progress.pop(self.upload_id, None)
            self._queue.put_nowait(_DONE)

    def __aiter__(self) -> "UploadStream":
        return self

    async def __anext__(self) -> int:
        if self._finished:
            raise StopAsyncIteration

        if self._task is None:
            self._manager._progress[self.upload_id] = 0
            self._task = asyncio.create_task(self._run())

        item = await self._queue.get()
        if item is not _DONE:
            return item

        self._finished = True
        await self._task
        raise StopAsyncIteration

    async def wait(self) -> Asset | None:
        """Wait for a started upload to finish, whether or not progress is read.

        Returns:
            The server record, or None if iteration never started

        Raises:
            UploadError: The upload failed
        """
        if self._task is None:
            return None
        await self._task
        return self._asset


class AssetManager:
    """Lists, uploads, deletes and downloads grounding documents.

    Hidden design decisions:
    - Route layout of the files API
    - Multipart encoding and byte-level progress accounting
    - Local upload limits checked before any bytes are sent

    Several uploads may run at once; progress is tracked per upload id.
    """

    def __init__(self, client: BackendClient):
        self._client = client
        self._listing = AssetListing()
        self._progress: dict[str, int] = {}

    @property
    def assets(self) -> list[Asset]:
        """Canonical asset set from the last successful listing."""
        return list(self._listing.files)

    @property
    def stats(self) -> AssetStats:
        return self._listing.summary()

    @property
    def uploading(self) -> bool:
        """True while at least one upload is in flight."""
        return bool(self._progress)

    @property
    def progress(self) -> dict[str, int]:
        """Percent complete for each in-flight upload, keyed by upload id."""
        return dict(self._progress)

    def get(self, asset_id: str) -> Asset | None:
        return next((a for a in self._listing.files if a.id == asset_id), None)

    async def list_assets(self) -> AssetListing:
        """Fetch the asset set and replace the cached listing.

        Raises:
            NetworkError: Backend unreachable
            HttpError: Backend rejected the request or sent an unreadable listing
        """
        data = await self._client.get_json(FILES_API_PATH)
        try:
            listing = AssetListing.model_validate(data)
        except PydanticValidationError as e:
            raise HttpError(200, f"Unexpected files response: {e}") from e
        self._listing = listing
        logger.debug("Listed %d assets", len(listing.files))
        return listing

    def validate_upload(self, path: Path) -> None:
        """Reject files the backend would refuse, before sending anything.

        Raises:
            UploadError: Missing file, unsupported type or too large
        """
        if not path.is_file():
            raise UploadError(f"File not found: {path}")
        if path.suffix.lower() not in ALLOWED_UPLOAD_SUFFIXES:
            raise UploadError(f"Unsupported file type: {path.suffix or path.name}")
        size = path.stat().st_size
        if size > MAX_UPLOAD_BYTES:
            raise UploadError(
                f"{path.name} is {format_size(size)}, the limit is {format_size(MAX_UPLOAD_BYTES)}"
            )

    def upload(self, path: Path | str, on_progress: ProgressCallback | None = None) -> UploadStream:
        """Start an upload and return its progress stream.

        Args:
            path: File to upload
            on_progress: Observer called with (upload_id, percent) as bytes go out

        Returns:
            UploadStream; iterate it to drive the upload

        Raises:
            UploadError: The file fails local validation
        """
        path = Path(path)
        self.validate_upload(path)
        return UploadStream(self, path, on_progress)

    async def upload_file(self, path: Path | str, on_progress: ProgressCallback | None = None) -> Asset:
        """Upload a file and wait for the refreshed listing.

        Raises:
            UploadError: The upload failed; the cached listing is unchanged
        """
        stream = self.upload(path, on_progress)
        async for _ in stream:
            pass
        if stream.asset is None:
            raise UploadError(f"Upload of {stream.path.name} finished without a server record")
        return stream.asset

    async def _transmit(self, path: Path, report: Callable[[int], None]) -> Asset:
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        try:
            with path.open("rb") as fh:
                template = self._client.http.build_request(
                    "POST", FILES_API_PATH, files={"file": (path.name, fh, mime_type)}
                )
                total = int(template.headers.get("Content-Length") or 0) or path.stat().st_size or 1

                async def body() -> AsyncIterator[bytes]:
                    sent = 0
                    for chunk in template.stream:
                        sent += len(chunk)
                        report(sent * 100 // total)
                        yield chunk

                request = self._client.http.build_request(
                    "POST",
                    FILES_API_PATH,
                    content=body(),
                    headers={
                        "Content-Type": template.headers["Content-Type"],
                        "Content-Length": str(total),
                    },
                )
                response = await self._client.send(request)
        except OSError as e:
            raise UploadError(f"Cannot read {path.name}: {e}") from e
        except NetworkError as e:
            logger.warning("Upload of %s failed: %s", path.name, e)
            raise UploadError(f"Network error while uploading {path.name}") from e
        except HttpError as e:
            logger.warning("Upload of %s rejected: %s", path.name, e)
            raise UploadError(f"Upload failed: {_server_message(e.body)}", status=e.status) from e

        if response.status_code != 201:
            raise UploadError(f"Upload failed: unexpected HTTP {response.status_code}", status=response.status_code)

        try:
            asset = Asset.model_validate(decode_json(response)["file"])
        except (ChatError, KeyError, TypeError, ValueError) as e:
            raise UploadError(f"Upload of {path.name} returned an unreadable response") from e

        logger.info("Uploaded %s as %s", asset.original_name, asset.id)
        try:
            await self.list_assets()
        except (NetworkError, HttpError) as e:
            logger.warning("Asset list refresh after upload failed: %s", e)
        return asset

    async def delete(self, asset_id: str, confirm: Callable[[str], bool] | None = None) -> bool:
        """Delete an asset, then refresh the listing.

        Args:
            asset_id: Server id of the asset
            confirm: Asked with the asset's display name; returning False
                cancels without contacting the backend

        Returns:
            True if the asset was deleted, False if the user declined

        Raises:
            NetworkError: Backend unreachable; the cached listing is unchanged
            HttpError: Backend refused; the cached listing is unchanged
        """
        asset = self.get(asset_id)
        if confirm is not None and not confirm(asset.original_name if asset else asset_id):
            logger.debug("Delete of %s cancelled", asset_id)
            return False

        await self._client.request("DELETE", f"{FILES_API_PATH}/{asset_id}")
        logger.info("Deleted asset %s", asset_id)
        await self.list_assets()
        return True

    async def download(self, asset_id: str, destination: Path | str) -> Path:
        """Stream an asset's bytes to disk.

        Args:
            asset_id: Server id of the asset
            destination: Target file, or a directory to place it in

        Returns:
            Path of the written file

        Raises:
            ValidationError: No usable file name for a directory destination
            NetworkError: Backend unreachable
            HttpError: Backend refused
        """
        target = Path(destination)
        if target.is_dir():
            asset = self.get(asset_id)
            target = target / _local_name(asset.original_name if asset else asset_id)

        url = f"{FILES_API_PATH}/{asset_id}/download"
        try:
            async with self._client.http.stream("GET", url) as response:
                if not response.is_success:
                    await response.aread()
                    check_response(response)
                with target.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot reach backend at {self._client.base_url}: {e}") from e

        logger.info("Downloaded asset %s to %s", asset_id, target)
        return target


def _local_name(name: str) -> str:
    """Final path component of a server-supplied name, so it stays inside the destination."""
    local = Path(name.replace("\\", "/")).name
    if local in ("", ".", ".."):
        raise ValidationError(f"Cannot save a file named {name!r}")
    return local


def _server_message(body: str) -> str:
    """Extract the ``message`` field from a JSON error body, if there is one."""
    try:
        data = json.loads(body)
    except ValueError:
        return body or "Unknown error"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return body or "Unknown error"
