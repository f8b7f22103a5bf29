import httpx
import pytest

from clients.github.refs import fetch_commit_sha, fetch_default_branch
from core.errors import NotFoundError


def _json_response(status: int, url: str, data):
    req = httpx.Request("GET", f"https://example.test/{url}")
    return httpx.Response(status, json=data, request=req)


def _no_check(resp, *, context):
    if resp.status_code >= 400:
        raise AssertionError(f"unexpected status {resp.status_code} ({context})")


def test_fetch_default_branch_ok():
    def request(_client, url, *, params=None):
        assert url == "repos/o/r"
        return _json_response(200, url, {"default_branch": "develop"})

    with httpx.Client() as c:
        assert fetch_default_branch(request, _no_check, c, repo="o/r") == "develop"


def test_fetch_default_branch_missing_repo():
    def request(_client, url, *, params=None):
        return _json_response(404, url, {"message": "Not Found"})

    with httpx.Client() as c:
        with pytest.raises(NotFoundError):
            fetch_default_branch(request, _no_check, c, repo="o/r")


def test_fetch_commit_sha_ok():
    def request(_client, url, *, params=None):
        assert url == "repos/o/r/git/refs/heads/main"
        return _json_response(200, url, {"ref": "refs/heads/main", "object": {"sha": "a" * 40}})

    with httpx.Client() as c:
        assert fetch_commit_sha(request, _no_check, c, repo="o/r", branch="main") == "a" * 40


def test_fetch_commit_sha_empty_repository_is_none():
    def request(_client, url, *, params=None):
        return _json_response(409, url, {"message": "Git Repository is empty."})

    with httpx.Client() as c:
        assert fetch_commit_sha(request, _no_check, c, repo="o/r", branch="main") is None


@pytest.mark.parametrize(
    "status, data",
    [
        (404, {"message": "Not Found"}),
        # only refs starting with the name exist
        (200, [{"ref": "refs/heads/main-old", "object": {"sha": "b" * 40}}]),
    ],
)
def test_fetch_commit_sha_missing_branch(status, data):
    def request(_client, url, *, params=None):
        return _json_response(status, url, data)

    with httpx.Client() as c:
        with pytest.raises(NotFoundError):
            fetch_commit_sha(request, _no_check, c, repo="o/r", branch="main")
