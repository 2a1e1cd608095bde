"""Tests for repository URL parsing and Git-hosting API calls."""

import httpx
import pytest

from promptforge import repo_client
from promptforge.errors import (
    EmptyImportError,
    InvalidUrlError,
    ProviderError,
    RateLimitError,
    RepoNotFoundError,
    UnsupportedProviderError,
)
from promptforge.repo_client import (
    Provider,
    RepoRef,
    bitbucket_list_files,
    github_default_branch,
    github_list_files,
    gitlab_default_branch,
    gitlab_list_files,
    parse_repo_url,
)


class TestParseRepoUrl:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://github.com/octo/hello", RepoRef(Provider.GITHUB, "octo", "hello")),
            ("https://github.com/octo/hello.git", RepoRef(Provider.GITHUB, "octo", "hello")),
            ("github.com/octo/hello/tree/main/src", RepoRef(Provider.GITHUB, "octo", "hello")),
            ("https://www.gitlab.com/group/project", RepoRef(Provider.GITLAB, "group", "project")),
            ("  https://bitbucket.org/team/repo/  ", RepoRef(Provider.BITBUCKET, "team", "repo")),
        ],
    )
    def test_valid_urls(self, url, expected):
        assert parse_repo_url(url) == expected

    @pytest.mark.parametrize("url", ["", "https://github.com/octo", "https://github.com/", "not a url"])
    def test_invalid_urls(self, url):
        with pytest.raises(InvalidUrlError):
            parse_repo_url(url)

    def test_unsupported_host(self):
        with pytest.raises(UnsupportedProviderError):
            parse_repo_url("https://example.com/octo/hello")


GITHUB_REF = RepoRef(Provider.GITHUB, "octo", "hello")
GITLAB_REF = RepoRef(Provider.GITLAB, "group", "project")
BITBUCKET_REF = RepoRef(Provider.BITBUCKET, "team", "repo")


class TestStatusMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error",
        [(404, RepoNotFoundError), (403, RateLimitError), (429, RateLimitError), (500, ProviderError)],
    )
    async def test_repository_status(self, mock_http, status, error):
        async with mock_http(lambda request: httpx.Response(status)) as client:
            with pytest.raises(error):
                await github_default_branch(GITHUB_REF, client)

    @pytest.mark.asyncio
    async def test_network_error(self, mock_http):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with mock_http(handler) as client:
            with pytest.raises(ProviderError):
                await github_default_branch(GITHUB_REF, client)

    @pytest.mark.asyncio
    async def test_github_token_sent(self, mock_http, monkeypatch):
        monkeypatch.setattr(repo_client, "GITHUB_TOKEN", "ghp_secret")
        seen = []

        def handler(request):
            seen.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"default_branch": "main"})

        async with mock_http(handler) as client:
            assert await github_default_branch(GITHUB_REF, client) == "main"

        assert seen == ["token ghp_secret"]


class TestGitLab:
    @pytest.mark.asyncio
    async def test_empty_project_has_no_default_branch(self, mock_http):
        async with mock_http(lambda request: httpx.Response(200, json={"default_branch": None})) as client:
            with pytest.raises(EmptyImportError):
                await gitlab_default_branch(GITLAB_REF, client)

    @pytest.mark.asyncio
    async def test_tree_follows_next_page_header(self, mock_http):
        pages = {
            "1": ([{"type": "blob", "path": "a.py"}, {"type": "tree", "path": "src"}], "2"),
            "2": ([{"type": "blob", "path": "src/b.py"}], ""),
        }
        requested = []

        def handler(request):
            page = request.url.params["page"]
            requested.append(page)
            items, next_page = pages[page]
            return httpx.Response(200, json=items, headers={"x-next-page": next_page})

        async with mock_http(handler) as client:
            entries = await gitlab_list_files(GITLAB_REF, "main", client, limit=60)

        assert requested == ["1", "2"]
        assert [e["path"] for e in entries] == ["a.py", "src/b.py"]

    @pytest.mark.asyncio
    async def test_tree_stops_once_limit_reached(self, mock_http):
        requested = []

        def handler(request):
            requested.append(request.url.params["page"])
            return httpx.Response(
                200,
                json=[{"type": "blob", "path": f"f{i}.py"} for i in range(3)],
                headers={"x-next-page": "2"},
            )

        async with mock_http(handler) as client:
            await gitlab_list_files(GITLAB_REF, "main", client, limit=2)

        assert requested == ["1"]


def _bitbucket_handler(tree: dict[str, list[dict]], requested: list[str]):
    prefix = "/2.0/repositories/team/repo/src/main/"

    def handler(request):
        directory = request.url.path[len(prefix):]
        requested.append(directory)
        return httpx.Response(200, json={"values": tree.get(directory, [])})

    return handler


class TestBitbucket:
    @pytest.mark.asyncio
    async def test_crawl_respects_depth(self, mock_http):
        tree = {
            "": [{"type": "commit_file", "path": "root.py"}, {"type": "commit_directory", "path": "a"}],
            "a/": [{"type": "commit_directory", "path": "a/b"}],
            "a/b/": [{"type": "commit_directory", "path": "a/b/c"}],
            "a/b/c/": [
                {"type": "commit_file", "path": "a/b/c/deep.py"},
                {"type": "commit_directory", "path": "a/b/c/d"},
            ],
            "a/b/c/d/": [{"type": "commit_file", "path": "a/b/c/d/too_deep.py"}],
        }
        requested = []

        async with mock_http(_bitbucket_handler(tree, requested)) as client:
            entries = await bitbucket_list_files(BITBUCKET_REF, "main", client, limit=40)

        assert [e["path"] for e in entries] == ["root.py", "a/b/c/deep.py"]
        assert "a/b/c/d/" not in requested

    @pytest.mark.asyncio
    async def test_crawl_stops_at_limit(self, mock_http):
        tree = {
            "": [{"type": "commit_file", "path": f"f{i}.py"} for i in range(5)]
            + [{"type": "commit_directory", "path": "sub"}],
            "sub/": [{"type": "commit_file", "path": "sub/x.py"}],
        }
        requested = []

        async with mock_http(_bitbucket_handler(tree, requested)) as client:
            entries = await bitbucket_list_files(BITBUCKET_REF, "main", client, limit=3)

        assert [e["path"] for e in entries] == ["f0.py", "f1.py", "f2.py"]
        assert requested == [""]

    @pytest.mark.asyncio
    async def test_blocked_files_do_not_count_toward_limit(self, mock_http):
        tree = {
            "": [
                {"type": "commit_file", "path": "logo.png"},
                {"type": "commit_file", "path": "a.py"},
                {"type": "commit_file", "path": "b.py"},
            ],
        }

        async with mock_http(_bitbucket_handler(tree, [])) as client:
            entries = await bitbucket_list_files(BITBUCKET_REF, "main", client, limit=2)

        assert [e["path"] for e in entries] == ["logo.png", "a.py", "b.py"]


class TestGitHub:
    @pytest.mark.asyncio
    async def test_tree_listing_stops_at_limit(self, mock_http):
        tree = [
            {"type": "blob", "path": "logo.png", "size": 10, "url": "u0"},
            {"type": "blob", "path": "a.py", "size": 10, "url": "u1"},
            {"type": "tree", "path": "src", "url": "u2"},
            {"type": "blob", "path": "src/b.py", "size": 10, "url": "u3"},
            {"type": "blob", "path": "src/c.py", "size": 10, "url": "u4"},
        ]

        async with mock_http(lambda request: httpx.Response(200, json={"tree": tree})) as client:
            entries = await github_list_files(GITHUB_REF, "main", client, limit=2)

        assert [e["path"] for e in entries] == ["logo.png", "a.py", "src/b.py"]

    @pytest.mark.asyncio
    async def test_non_json_body(self, mock_http):
        async with mock_http(lambda request: httpx.Response(200, text="<html>maintenance</html>")) as client:
            with pytest.raises(ProviderError):
                await github_default_branch(GITHUB_REF, client)
