"""Tests for Connection: cache integration and re-login."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from wingusync.client.cache import CacheStore
from wingusync.client.connection import Connection
from wingusync.client.errors import AuthFailure
from wingusync.core.types import Account

LOGIN_URL = "http://test/api2/auth-token/"
DIR_URL = "http://test/api2/repos/r1/dir/"

LISTING = [
    {"id": "f1", "type": "file", "name": "a.txt", "size": 3, "mtime": 1700000001},
]


@pytest.fixture
def cache(tmp_path: Path):  # type: ignore[no-untyped-def]
    """Create a cache store."""
    with CacheStore(tmp_path / "cache.db") as store:
        yield store


def make_connection(cache: CacheStore | None, token: str | None = "t") -> Connection:
    """Create a Connection for alice."""
    account = Account(
        server_url="http://test/",
        email="alice@example.com",
        password="secret",
        token=token,
    )
    return Connection(account, cache=cache)


def file_link(path: str) -> httpx.URL:
    return httpx.URL("http://test/api2/repos/r1/file/", params={"p": path, "op": "download"})


class TestLogin:
    """Tests for Connection.login."""

    def test_login_publishes_token(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should store the token on the account."""
        httpx_mock.add_response(url=LOGIN_URL, method="POST", json={"token": "abc"})
        conn = make_connection(None, token=None)

        assert conn.login() == "abc"
        assert conn.account.token == "abc"

    def test_relogin_on_rejected_token(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should log in again once when the token is rejected."""
        httpx_mock.add_response(
            url="http://test/api2/repos/", status_code=401, json={"detail": "Invalid token"}
        )
        httpx_mock.add_response(url=LOGIN_URL, method="POST", json={"token": "fresh"})
        httpx_mock.add_response(url="http://test/api2/repos/", json=[])
        conn = make_connection(None, token="stale")

        assert conn.list_repos() == []
        last = httpx_mock.get_requests()[-1]
        assert last.headers["Authorization"] == "Token fresh"

    def test_no_relogin_without_password(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should surface the rejection when no password is known."""
        httpx_mock.add_response(
            url="http://test/api2/repos/", status_code=401, json={"detail": "Invalid token"}
        )
        account = Account(server_url="http://test/", email="alice@example.com", token="stale")
        conn = Connection(account)

        with pytest.raises(AuthFailure) as exc_info:
            conn.list_repos()
        assert exc_info.value.status_code == 401


class TestFetchDir:
    """Tests for Connection.fetch_dir."""

    def test_first_fetch_fills_cache(self, httpx_mock, cache: CacheStore) -> None:  # type: ignore[no-untyped-def]
        """Should fetch unconditionally and remember the listing."""
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs", headers={"oid": "a1"}, text=json.dumps(LISTING)
        )

        listing = make_connection(cache).fetch_dir("r1", "/docs")

        assert listing.content_id == "a1"
        assert [d.name for d in listing] == ["a.txt"]
        entry = cache.get("r1", "/docs")
        assert entry is not None and entry.content_id == "a1"

    def test_unchanged_dir_served_from_cache(self, httpx_mock, cache: CacheStore) -> None:  # type: ignore[no-untyped-def]
        """Should rebuild the listing from the cached body."""
        cache.put("r1", "/docs", "a1", body=json.dumps(LISTING))
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs&oid=a1", headers={"oid": "a1"}, text=""
        )

        listing = make_connection(cache).fetch_dir("r1", "/docs")

        assert listing.content_id == "a1"
        assert [d.id for d in listing] == ["f1"]

    def test_changed_dir_updates_cache(self, httpx_mock, cache: CacheStore) -> None:  # type: ignore[no-untyped-def]
        """Should replace the cached entry with the new ID."""
        cache.put("r1", "/docs", "a1", body="[]")
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs&oid=a1", headers={"oid": "a2"}, text=json.dumps(LISTING)
        )

        listing = make_connection(cache).fetch_dir("r1", "/docs")

        assert listing.content_id == "a2"
        assert cache.get_content_id("r1", "/docs") == "a2"

    def test_deleted_dir_drops_cache(self, httpx_mock, cache: CacheStore) -> None:  # type: ignore[no-untyped-def]
        """Should remove the cache entry when the directory is gone."""
        cache.put("r1", "/docs", "a1", body="[]")
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs&oid=a1",
            status_code=404,
            json={"error_msg": "Folder not found"},
        )

        with pytest.raises(AuthFailure) as exc_info:
            make_connection(cache).fetch_dir("r1", "/docs")

        assert exc_info.value.not_found is True
        assert cache.get("r1", "/docs") is None

    def test_corrupt_cached_body_is_refetched(self, httpx_mock, cache: CacheStore) -> None:  # type: ignore[no-untyped-def]
        """Should drop an unreadable cached listing and fetch it again."""
        cache.put("r1", "/docs", "a1", body="not json")
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs&oid=a1", headers={"oid": "a1"}, text=""
        )
        httpx_mock.add_response(
            url=f"{DIR_URL}?p=%2Fdocs", headers={"oid": "a1"}, text=json.dumps(LISTING)
        )

        listing = make_connection(cache).fetch_dir("r1", "/docs")

        assert [d.id for d in listing] == ["f1"]
        entry = cache.get("r1", "/docs")
        assert entry is not None and entry.body == json.dumps(LISTING)


class TestFetchFile:
    """Tests for Connection.fetch_file."""

    def test_cached_copy_is_reused(self, httpx_mock, cache: CacheStore, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should not download when the cached copy is current."""
        destination = tmp_path / "a.txt"
        destination.write_bytes(b"abc")
        cache.put("r1", "/a.txt", "f1", local_path=destination)
        httpx_mock.add_response(url=file_link("/a.txt"), headers={"oid": "f1"}, text='"http://files.test/f/a.txt"')

        result = make_connection(cache).fetch_file("r1", "/a.txt", destination)

        assert result.was_cached is True
        assert len(httpx_mock.get_requests()) == 1

    def test_missing_local_copy_downloads(self, httpx_mock, cache: CacheStore, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should ignore the cached ID when the local file is gone."""
        destination = tmp_path / "a.txt"
        cache.put("r1", "/a.txt", "f1", local_path=destination)
        httpx_mock.add_response(url=file_link("/a.txt"), headers={"oid": "f1"}, text='"http://files.test/f/a.txt"')
        httpx_mock.add_response(url="http://files.test/f/a.txt", content=b"abc")

        result = make_connection(cache).fetch_file("r1", "/a.txt", destination)

        assert result.was_cached is False
        assert destination.read_bytes() == b"abc"

    def test_other_destination_downloads(self, httpx_mock, cache: CacheStore, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should download when the cached ID belongs to another local file."""
        cached = tmp_path / "a.txt"
        cached.write_bytes(b"abc")
        cache.put("r1", "/a.txt", "f1", local_path=cached)
        httpx_mock.add_response(url=file_link("/a.txt"), headers={"oid": "f1"}, text='"http://files.test/f/a.txt"')
        httpx_mock.add_response(url="http://files.test/f/a.txt", content=b"abc")
        other = tmp_path / "copy" / "a.txt"

        result = make_connection(cache).fetch_file("r1", "/a.txt", other)

        assert result.was_cached is False
        entry = cache.get("r1", "/a.txt")
        assert entry is not None and entry.local_path == other


class TestUploadFile:
    """Tests for Connection.upload_file."""

    def test_upload_records_new_id(self, httpx_mock, cache: CacheStore, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should drop the parent listing and record the file's new ID."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"abc")
        cache.put("r1", "/docs", "a1", body="[]")
        httpx_mock.add_response(
            url="http://test/api2/repos/r1/upload-link/", text='"http://up.test/u/1"'
        )
        httpx_mock.add_response(url="http://up.test/u/1", method="POST", text="f9")

        assert make_connection(cache).upload_file("r1", "/docs", local) == "f9"

        assert cache.get("r1", "/docs") is None
        assert cache.get_content_id("r1", "/docs/a.txt") == "f9"

    def test_upload_with_unparsed_body(self, httpx_mock, cache: CacheStore, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should forget the file's ID when the body is not a bare ID."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"abc")
        cache.put("r1", "/docs/a.txt", "f1", local_path=local)
        httpx_mock.add_response(
            url="http://test/api2/repos/r1/upload-link/", text='"http://up.test/u/1"'
        )
        httpx_mock.add_response(url="http://up.test/u/1", method="POST", json=[{"id": "f9"}])

        make_connection(cache).upload_file("r1", "/docs", local)

        assert cache.get("r1", "/docs/a.txt") is None

    def test_rejected_token_bounds_upload_attempts(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should send the upload flow at most twice, logging in once between."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"abc")
        for _ in range(2):
            httpx_mock.add_response(
                url="http://test/api2/repos/r1/upload-link/",
                status_code=401,
                json={"detail": "bad token"},
            )
        httpx_mock.add_response(url=LOGIN_URL, method="POST", json={"token": "fresh"})

        with pytest.raises(AuthFailure) as exc_info:
            make_connection(None, token="stale").upload_file("r1", "/", local)

        assert exc_info.value.status_code == 401
        requests = httpx_mock.get_requests()
        link_requests = [r for r in requests if r.url.path.endswith("/upload-link/")]
        login_requests = [r for r in requests if r.url.path == "/api2/auth-token/"]
        assert len(link_requests) == 2
        assert len(login_requests) == 1
        assert link_requests[1].headers["Authorization"] == "Token fresh"

    def test_relogin_then_upload_succeeds(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should complete the upload on the second attempt with the new token."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"abc")
        httpx_mock.add_response(
            url="http://test/api2/repos/r1/upload-link/",
            status_code=401,
            json={"detail": "bad token"},
        )
        httpx_mock.add_response(url=LOGIN_URL, method="POST", json={"token": "fresh"})
        httpx_mock.add_response(
            url="http://test/api2/repos/r1/upload-link/", text='"http://up.test/u/1"'
        )
        httpx_mock.add_response(url="http://up.test/u/1", method="POST", text="f9")

        assert make_connection(None, token="stale").upload_file("r1", "/", local) == "f9"
