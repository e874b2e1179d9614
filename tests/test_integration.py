"""Integration tests that run the real Ghostscript backend.

These tests require Ghostscript on ``PATH``.
Mark with ``pytest -m integration`` to run selectively.
"""

from __future__ import annotations

import pytest

from pdf_toolbox import CompressionGateway, DocumentList, compress_with_fallback, merge_pdfs, page_count
from pdf_toolbox.compression import GhostscriptWorker, find_ghostscript

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(find_ghostscript() is None, reason="Ghostscript not installed"),
]


class TestGhostscriptRoundTrip:
    @pytest.mark.asyncio
    async def test_compression_keeps_pages(self, make_pdf, make_jpeg):
        documents = (
            DocumentList()
            .add("A.pdf", make_pdf((200, 200), (300, 300)), "application/pdf")
            .add("photo.jpg", make_jpeg(width=800, height=600), "image/jpeg")
        )
        merged = merge_pdfs(documents.snapshot())

        outcome = await compress_with_fallback(merged, gateway=CompressionGateway(timeout=60))

        assert not outcome.degraded
        assert outcome.artifact.data[:5] == b"%PDF-"
        assert page_count(outcome.artifact.data) == 3

    @pytest.mark.asyncio
    async def test_invalid_input_reports_backend_error(self):
        gateway = CompressionGateway(GhostscriptWorker, timeout=60)

        with pytest.warns(UserWarning):
            outcome = await compress_with_fallback(b"not a pdf", gateway=gateway)

        assert outcome.degraded
        assert outcome.artifact.data == b"not a pdf"
