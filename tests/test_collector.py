"""Tests for paste, upload and raw-URL collection."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from promptforge import collector
from promptforge.collector import (
    collect_pasted,
    collect_uploads,
    fetch_urls,
    read_uploads,
    split_url_input,
    to_raw_url,
)
from promptforge.config import MAX_FILE_SIZE
from promptforge.errors import InvalidUrlError


class TestPaste:
    def test_blank_paste_yields_nothing(self):
        assert collect_pasted("  \n\t ") == []

    def test_paste_becomes_single_file(self):
        files = collect_pasted("print('hi')")

        assert len(files) == 1
        assert files[0].path == "pasted_code.txt"
        assert files[0].content == "print('hi')"


class TestUploads:
    def test_skips_blocked_oversize_and_binary(self):
        outcome = collect_uploads(
            [
                ("src/main.py", b"print('ok')"),
                ("bin/tool.exe", b"MZ"),
                ("data/huge.txt", b"a" * (MAX_FILE_SIZE + 1)),
                ("src/blob.txt", b"\xff\xfe\x00bad"),
            ]
        )

        assert [f.path for f in outcome.files] == ["src/main.py"]
        assert [name for name, _ in outcome.skipped] == ["tool.exe", "huge.txt", "blob.txt"]
        assert '"tool.exe"' in outcome.warning
        assert "5MB" in outcome.warning

    def test_no_warning_when_all_accepted(self):
        outcome = collect_uploads([("a.py", b"a"), ("b.py", b"b")])

        assert [f.path for f in outcome.files] == ["a.py", "b.py"]
        assert outcome.warning is None

    @pytest.mark.asyncio
    async def test_rejected_parts_never_read(self):
        def upload(filename, size, data=b""):
            return SimpleNamespace(filename=filename, size=size, read=AsyncMock(return_value=data))

        huge = upload("huge.txt", MAX_FILE_SIZE + 1)
        binary = upload("tool.exe", 2)
        source = upload("main.py", 5, b"x = 1")

        outcome = await read_uploads([huge, binary, source])

        huge.read.assert_not_awaited()
        binary.read.assert_not_awaited()
        source.read.assert_awaited_once()
        assert [(f.path, f.content) for f in outcome.files] == [("main.py", "x = 1")]
        assert [name for name, _ in outcome.skipped] == ["huge.txt", "tool.exe"]


class TestUrlHelpers:
    def test_split_url_input(self):
        assert split_url_input(" https://a/x.py \n\n https://b/y.py ") == ["https://a/x.py", "https://b/y.py"]
        assert split_url_input(["https://a/x.py", "  "]) == ["https://a/x.py"]

    def test_blob_url_rewritten(self):
        assert (
            to_raw_url("https://github.com/octo/repo/blob/main/src/app.py")
            == "https://raw.githubusercontent.com/octo/repo/main/src/app.py"
        )

    def test_raw_url_untouched(self):
        url = "https://gitlab.com/octo/repo/-/raw/main/app.py"
        assert to_raw_url(url) == url


class TestFetchUrls:
    @pytest.mark.asyncio
    async def test_partial_success(self, mock_http):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("good.py"):
                return httpx.Response(200, text="good = True")
            return httpx.Response(404, text="nope")

        async with mock_http(handler) as client:
            outcome = await fetch_urls("https://example.com/good.py\nhttps://example.com/missing.py", client)

        assert [f.path for f in outcome.files] == ["https://example.com/good.py"]
        assert outcome.files[0].content == "good = True"
        assert len(outcome.errors) == 1
        assert outcome.error_message.startswith("Some URLs failed: ")
        assert "status 404" in outcome.error_message

    @pytest.mark.asyncio
    async def test_network_error_is_collected(self, mock_http):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_http(handler) as client:
            outcome = await fetch_urls(["https://example.com/a.py"], client)

        assert outcome.files == []
        assert "connection refused" in outcome.error_message

    @pytest.mark.asyncio
    async def test_blob_url_fetched_from_raw_host(self, mock_http):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text="x")

        async with mock_http(handler) as client:
            outcome = await fetch_urls("https://github.com/o/r/blob/main/x.py", client)

        assert seen == ["https://raw.githubusercontent.com/o/r/main/x.py"]
        # the file keeps the URL the user entered
        assert outcome.files[0].path == "https://github.com/o/r/blob/main/x.py"

    @pytest.mark.asyncio
    async def test_proxy_template_applied(self, mock_http, monkeypatch):
        monkeypatch.setattr(collector, "RAW_FETCH_PROXY", "https://proxy.test/get?url={url}")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, text="x")

        async with mock_http(handler) as client:
            await fetch_urls("https://example.com/a.py", client)

        assert seen[0].host == "proxy.test"
        assert seen[0].params["url"] == "https://example.com/a.py"

    @pytest.mark.asyncio
    async def test_empty_input_rejected(self, mock_http):
        async with mock_http(lambda request: httpx.Response(200)) as client:
            with pytest.raises(InvalidUrlError):
                await fetch_urls(" \n ", client)
