"""End-to-end tests for build_document with fake compression backends."""

from __future__ import annotations

import asyncio
import io
import warnings
from pathlib import Path

import pytest
from pypdf import PdfReader

from pdf_toolbox import CompressionGateway, build_document
from pdf_toolbox.compression import CompressionResponse
from pdf_toolbox.errors import (
    CompressionDegraded,
    MergeCancelled,
    PdfLoadError,
    UnsupportedImageFormat,
)


class _SilentWorker:
    async def send(self, request) -> None:
        pass

    async def receive(self) -> CompressionResponse:
        await asyncio.Event().wait()

    async def terminate(self) -> None:
        pass


class _CopyWorker:
    """Answers with a file holding the request payload unchanged."""

    def __init__(self, directory: Path) -> None:
        self._output = directory / "worker-output.pdf"
        self._job_id = None

    async def send(self, request) -> None:
        self._job_id = request.job_id
        self._output.write_bytes(request.payload)

    async def receive(self) -> CompressionResponse:
        return CompressionResponse(job_id=self._job_id, payload=self._output.as_uri())

    async def terminate(self) -> None:
        pass


class _CancellingWorker(_SilentWorker):
    """Sets the cancel event as soon as it is handed a job."""

    def __init__(self, cancel: asyncio.Event) -> None:
        self._cancel = cancel

    async def send(self, request) -> None:
        self._cancel.set()


@pytest.fixture
def inputs(tmp_path: Path, make_pdf, make_jpeg) -> list[Path]:
    a = tmp_path / "A.pdf"
    a.write_bytes(make_pdf((100, 100), (110, 110)))
    photo = tmp_path / "photo.jpg"
    photo.write_bytes(make_jpeg(width=64, height=48))
    b = tmp_path / "B.pdf"
    b.write_bytes(make_pdf((120, 120)))
    return [a, photo, b]


class TestBuildDocument:
    @pytest.mark.asyncio
    async def test_merges_in_order_without_compression(self, tmp_path: Path, inputs):
        out = tmp_path / "out" / "result.pdf"

        result = await build_document(inputs=inputs, output=out, compress=False)

        reader = PdfReader(io.BytesIO(out.read_bytes()))
        widths = [float(page.mediabox.width) for page in reader.pages]
        assert widths == pytest.approx([100, 110, 595, 120])
        assert result.output_path == out.resolve()
        assert result.item_count == 3
        assert result.page_count == 4
        assert result.final_size == result.merged_size == out.stat().st_size
        assert not result.compressed
        assert not result.degraded

    @pytest.mark.asyncio
    async def test_directory_output_uses_default_name(self, tmp_path: Path, inputs):
        result = await build_document(inputs=inputs, output=tmp_path / "dist", compress=False)

        assert result.output_path == (tmp_path / "dist" / "merged.pdf").resolve()
        assert result.output_path.exists()

    @pytest.mark.asyncio
    async def test_compressed_artifact_is_written(self, tmp_path: Path, inputs):
        workdir = tmp_path / "worker"
        workdir.mkdir()
        gateway = CompressionGateway(lambda: _CopyWorker(workdir))
        out = tmp_path / "result.pdf"

        result = await build_document(inputs=inputs, output=out, gateway=gateway)

        assert result.compressed
        assert not result.degraded
        assert result.page_count == 4
        assert not (workdir / "worker-output.pdf").exists()
        assert len(PdfReader(io.BytesIO(out.read_bytes())).pages) == 4

    @pytest.mark.asyncio
    async def test_unresponsive_backend_degrades_to_uncompressed(self, tmp_path: Path, inputs):
        gateway = CompressionGateway(_SilentWorker, timeout=0.05)
        out = tmp_path / "result.pdf"

        with pytest.warns(CompressionDegraded):
            result = await build_document(inputs=inputs, output=out, gateway=gateway)

        assert result.degraded
        assert not result.compressed
        assert "CompressionTimeout" in result.warning
        assert result.final_size == result.merged_size
        assert len(PdfReader(io.BytesIO(out.read_bytes())).pages) == 4

    @pytest.mark.asyncio
    async def test_corrupt_pdf_writes_nothing(self, tmp_path: Path, inputs):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"not a pdf at all")
        out = tmp_path / "result.pdf"

        with pytest.raises(PdfLoadError) as excinfo:
            await build_document(inputs=[*inputs, bad], output=out, compress=False)

        assert excinfo.value.item_name == "bad.pdf"
        assert not out.exists()

    @pytest.mark.asyncio
    async def test_unsupported_image_writes_nothing(self, tmp_path: Path, inputs):
        gif = tmp_path / "anim.gif"
        gif.write_bytes(b"GIF89a")
        out = tmp_path / "result.pdf"

        with pytest.raises(UnsupportedImageFormat, match="anim.gif"):
            await build_document(inputs=[gif, *inputs], output=out, compress=False)

        assert not out.exists()

    @pytest.mark.asyncio
    async def test_empty_inputs_raise(self, tmp_path: Path):
        with pytest.raises(ValueError, match="must not be empty"):
            await build_document(inputs=[], output=tmp_path / "result.pdf")

    @pytest.mark.asyncio
    async def test_cancel_before_merge_writes_nothing(self, tmp_path: Path, inputs):
        cancel = asyncio.Event()
        cancel.set()
        out = tmp_path / "result.pdf"

        with pytest.raises(MergeCancelled) as excinfo:
            await build_document(inputs=inputs, output=out, cancel_event=cancel)

        assert excinfo.value.item_name == "A.pdf"
        assert not out.exists()

    @pytest.mark.asyncio
    async def test_cancel_during_compression_writes_uncompressed(self, tmp_path: Path, inputs):
        cancel = asyncio.Event()
        gateway = CompressionGateway(lambda: _CancellingWorker(cancel), timeout=60)
        out = tmp_path / "result.pdf"

        with warnings.catch_warnings():
            warnings.simplefilter("error", CompressionDegraded)
            result = await build_document(
                inputs=inputs, output=out, gateway=gateway, cancel_event=cancel
            )

        assert not result.degraded
        assert not result.compressed
        assert "CompressionCancelled" in result.warning
        assert result.final_size == result.merged_size
        assert len(PdfReader(io.BytesIO(out.read_bytes())).pages) == 4
