"""Hand merged PDFs to an isolated compression worker and collect the result.

A :class:`CompressionGateway` runs exactly one job at a time. For each job
it spawns a fresh worker, sends it a single :class:`CompressionRequest`,
waits for the matching :class:`CompressionResponse` and tears the worker
down again, whatever the outcome. The default worker is a Ghostscript
``pdfwrite`` subprocess.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import tempfile
import uuid
import warnings
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .artifact import DEFAULT_NAME, Artifact, ArtifactLoader
from .errors import (
    ArtifactLoadError,
    CompressionBackendError,
    CompressionBusy,
    CompressionCancelled,
    CompressionDegraded,
    CompressionError,
    CompressionTimeout,
)

logger = logging.getLogger(__name__)

COMPRESSION_TARGET = "compression-backend"

QUALITY_PRESETS = ("screen", "ebook", "printer", "prepress", "default")

_DEFAULT_QUALITY = "ebook"
_DEFAULT_TIMEOUT = 120.0
_GHOSTSCRIPT_NAMES = ("gs", "gswin64c", "gswin32c")


@dataclass(frozen=True)
class CompressionRequest:
    payload: bytes = field(repr=False)
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    target: str = COMPRESSION_TARGET


@dataclass(frozen=True)
class CompressionResponse:
    """Terminal answer from a worker; *payload* is a handle to the result."""

    job_id: str
    payload: str


class CompressionWorker(Protocol):
    async def send(self, request: CompressionRequest) -> None: ...

    async def receive(self) -> CompressionResponse: ...

    async def terminate(self) -> None: ...


def find_ghostscript() -> str | None:
    """Locate a Ghostscript executable on ``PATH``."""
    for name in _GHOSTSCRIPT_NAMES:
        path = shutil.which(name)
        if path:
            return path
    return None


class GhostscriptWorker:
    """Compression worker backed by a Ghostscript subprocess.

    The worker owns a private working directory for its input. The
    compressed output goes to a standalone temporary file so that its
    ``file://`` handle outlives the worker; whoever loads the handle
    deletes it.
    """

    def __init__(
        self,
        executable: str | None = None,
        *,
        quality: str = _DEFAULT_QUALITY,
    ) -> None:
        if quality not in QUALITY_PRESETS:
            raise ValueError(f"quality must be one of {QUALITY_PRESETS}, got {quality!r}")
        executable = executable or find_ghostscript()
        if executable is None:
            raise CompressionBackendError("Ghostscript not found in PATH")

        self._executable = executable
        self._quality = quality
        try:
            self._workdir = Path(tempfile.mkdtemp(prefix="pdf_toolbox_"))
        except OSError as exc:
            raise CompressionBackendError(f"Cannot create worker directory: {exc}") from exc
        self._output_path: Path | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._request: CompressionRequest | None = None
        self._delivered = False

    def _command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self._executable,
            "-sDEVICE=pdfwrite",
            "-dCompatibilityLevel=1.4",
            f"-dPDFSETTINGS=/{self._quality}",
            "-dDetectDuplicateImages=true",
            "-dNOPAUSE",
            "-dQUIET",
            "-dBATCH",
            f"-sOutputFile={output_path}",
            str(input_path),
        ]

    async def send(self, request: CompressionRequest) -> None:
        if self._request is not None:
            raise CompressionBusy("Worker already received a request")
        if request.target != COMPRESSION_TARGET:
            raise CompressionBackendError(f"Unknown request target: {request.target!r}")
        self._request = request

        input_path = self._workdir / "input.pdf"
        try:
            await asyncio.to_thread(input_path.write_bytes, request.payload)
            with tempfile.NamedTemporaryFile(
                prefix="compressed_", suffix=".pdf", delete=False
            ) as handle:
                self._output_path = Path(handle.name)
        except OSError as exc:
            raise CompressionBackendError(f"Cannot stage Ghostscript files: {exc}") from exc

        command = self._command(input_path, self._output_path)
        logger.debug("Starting Ghostscript: %s", " ".join(command))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CompressionBackendError(f"Cannot start Ghostscript: {exc}") from exc

    async def receive(self) -> CompressionResponse:
        if self._process is None or self._request is None or self._output_path is None:
            raise CompressionBackendError("Worker has no request to answer")

        _, stderr = await self._process.communicate()
        if self._process.returncode != 0:
            message = stderr.decode("utf-8", "replace").strip()
            raise CompressionBackendError(
                f"Ghostscript exited with status {self._process.returncode}: {message}"
            )

        self._delivered = True
        return CompressionResponse(
            job_id=self._request.job_id,
            payload=self._output_path.as_uri(),
        )

    async def terminate(self) -> None:
        if self._process is not None and self._process.returncode is None:
            logger.debug("Killing Ghostscript process %d", self._process.pid)
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()
            await self._process.wait()

        if self._output_path is not None and not self._delivered:
            self._output_path.unlink(missing_ok=True)
        await asyncio.to_thread(shutil.rmtree, self._workdir, ignore_errors=True)


class CompressionGateway:
    """Run one compression job at a time against a fresh worker."""

    def __init__(
        self,
        worker_factory: Callable[[], CompressionWorker] | None = None,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._worker_factory = worker_factory or GhostscriptWorker
        self._timeout = timeout
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    @contextlib.asynccontextmanager
    async def _worker(self) -> AsyncIterator[CompressionWorker]:
        worker = self._worker_factory()
        try:
            yield worker
        finally:
            # Let the response delivery finish before tearing the worker down.
            await asyncio.sleep(0)
            try:
                await worker.terminate()
            except Exception as exc:
                logger.warning("Failed to terminate compression worker: %s", exc, exc_info=True)

    async def compress(
        self,
        data: bytes,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Compress *data* and return a handle (URL) to the result.

        Args:
            data: PDF bytes to compress.
            timeout: Seconds allowed for sending the request and receiving
                the answer. Defaults to the gateway's timeout.
            cancel_event: Setting this event abandons the job.

        Raises:
            CompressionBusy: If another job is still in flight.
            CompressionTimeout: If the worker does not answer in time.
            CompressionCancelled: If *cancel_event* is set first.
            CompressionBackendError: If the worker fails or answers the
                wrong job.
        """
        if self._in_flight:
            raise CompressionBusy("A compression job is already in flight")
        self._in_flight = True
        timeout = self._timeout if timeout is None else timeout

        try:
            request = CompressionRequest(payload=data)
            async with self._worker() as worker:
                response = await self._await_response(
                    self._exchange(worker=worker, request=request),
                    timeout=timeout,
                    cancel_event=cancel_event,
                )
        finally:
            self._in_flight = False

        if response.job_id != request.job_id:
            raise CompressionBackendError(
                f"Response for job {response.job_id} does not match request {request.job_id}"
            )
        logger.info("Job %s finished: %s", request.job_id, response.payload)
        return response.payload

    async def _exchange(
        self,
        *,
        worker: CompressionWorker,
        request: CompressionRequest,
    ) -> CompressionResponse:
        await worker.send(request)
        logger.info(
            "Sent job %s (%d bytes) to %s", request.job_id, len(request.payload), request.target
        )
        return await worker.receive()

    async def _await_response(
        self,
        exchange: Awaitable[CompressionResponse],
        *,
        timeout: float,
        cancel_event: asyncio.Event | None,
    ) -> CompressionResponse:
        # One deadline covers both handing over the request and the answer.
        receive = asyncio.ensure_future(exchange)
        waiters: set[asyncio.Future] = {receive}
        cancelled = None
        if cancel_event is not None:
            cancelled = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancelled)

        try:
            done, pending = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if receive in done:
            return receive.result()
        if cancelled is not None and cancelled in done:
            raise CompressionCancelled("Compression job cancelled")
        raise CompressionTimeout(f"No answer from compression backend after {timeout:.1f}s")


@dataclass
class CompressionOutcome:
    artifact: Artifact
    original_size: int
    compressed_size: int | None = None
    degraded: bool = False
    reason: str | None = None

    @property
    def compressed(self) -> bool:
        return self.compressed_size is not None


async def compress_with_fallback(
    data: bytes,
    *,
    gateway: CompressionGateway,
    loader: ArtifactLoader | None = None,
    name: str = DEFAULT_NAME,
    timeout: float | None = None,
    cancel_event: asyncio.Event | None = None,
) -> CompressionOutcome:
    """Compress *data*, falling back to the original bytes on failure.

    Compression problems never abort the caller: on any
    :class:`CompressionError` or :class:`ArtifactLoadError` the
    uncompressed document is returned, the outcome is marked degraded and a
    :class:`CompressionDegraded` warning is issued.

    A job abandoned through *cancel_event* also yields the uncompressed
    document, but it is not degraded and no warning is issued.
    """
    loader = loader or ArtifactLoader()
    try:
        handle = await gateway.compress(data, timeout=timeout, cancel_event=cancel_event)
        artifact = await loader.load(handle, name=name)
    except CompressionCancelled as exc:
        logger.info("Compression cancelled, using uncompressed document")
        return CompressionOutcome(
            artifact=Artifact.from_bytes(data, name=name),
            original_size=len(data),
            reason=f"{type(exc).__name__}: {exc}",
        )
    except (CompressionError, ArtifactLoadError) as exc:
        reason = f"{type(exc).__name__}: {exc}"
        logger.warning("Compression failed, using uncompressed document (%s)", reason)
        warnings.warn(
            f"Compression failed, using uncompressed document ({reason})",
            CompressionDegraded,
            stacklevel=2,
        )
        return CompressionOutcome(
            artifact=Artifact.from_bytes(data, name=name),
            original_size=len(data),
            degraded=True,
            reason=reason,
        )

    logger.info("Compressed %d bytes to %d bytes", len(data), artifact.size)
    return CompressionOutcome(
        artifact=artifact,
        original_size=len(data),
        compressed_size=artifact.size,
    )
