"""Tests for the remove.bg client."""

import asyncio

import httpx
import pytest

from invite_engine.background import BackgroundRemovalError, BackgroundRemover
from invite_engine.errors import ServiceUnavailableError


@pytest.fixture(autouse=True)
def no_jitter(monkeypatch):
    monkeypatch.setattr("invite_engine.background.random.uniform", lambda a, b: 0)


def _remover(handler, api_key="key", max_retries=3):
    return BackgroundRemover(
        api_key,
        max_retries=max_retries,
        base_delay=0,
        transport=httpx.MockTransport(handler),
    )


class TestBackgroundRemover:
    """Tests for BackgroundRemover.remove()."""

    def test_success(self, png_bytes):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"transparent-png")

        result = asyncio.run(_remover(handler).remove(png_bytes, mime_type="image/png"))
        assert result == b"transparent-png"
        assert seen[0].headers["x-api-key"] == "key"
        assert b'name="image_file"' in seen[0].content

    def test_client_error_not_retried(self, png_bytes):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(402, text="Insufficient credits")

        with pytest.raises(BackgroundRemovalError):
            asyncio.run(_remover(handler).remove(png_bytes))
        assert len(calls) == 1

    def test_server_error_retried(self, png_bytes):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, content=b"ok")

        assert asyncio.run(_remover(handler).remove(png_bytes)) == b"ok"
        assert len(calls) == 3

    def test_gives_up(self, png_bytes):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="down")

        with pytest.raises(BackgroundRemovalError):
            asyncio.run(_remover(handler, max_retries=2).remove(png_bytes))
        assert len(calls) == 2

    def test_without_key(self, png_bytes):
        remover = _remover(lambda request: httpx.Response(200), api_key="")
        assert not remover.enabled
        with pytest.raises(ServiceUnavailableError):
            asyncio.run(remover.remove(png_bytes))
