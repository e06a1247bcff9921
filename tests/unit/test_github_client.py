"""Tests for the GitHub bridge.

A scripted session stands in for ``requests.Session``; nothing touches the
network.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from toolfetcher.bridge import github
from toolfetcher.bridge.github import (
    GitHubClient,
    filename_from_url,
    parse_repo_url,
)
from toolfetcher.errors import BranchNotFoundError, DownloadError, RemoteQueryError


class FakeResponse:
    def __init__(self, status_code: int = 200, body: bytes | dict | list = b"") -> None:
        self.status_code = status_code
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode()
        self.content = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", "replace")

    def json(self):
        return json.loads(self.content)

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ScriptedSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *script) -> None:
        self.script = list(script)
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(github.time, "sleep", lambda _s: None)


def _client(*script, **kwargs) -> tuple[GitHubClient, ScriptedSession]:
    session = ScriptedSession(*script)
    return GitHubClient(session=session, **kwargs), session


class TestUrlHelpers:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://github.com/Yamato-Security/hayabusa", ("Yamato-Security", "hayabusa")),
            ("https://github.com/o/r.git", ("o", "r")),
            ("https://www.github.com/o/r/tree/main/sub", ("o", "r")),
            ("github.com/o/r", ("o", "r")),
            ("https://gitlab.com/o/r", None),
            ("https://github.com/only-owner", None),
            ("", None),
        ],
    )
    def test_parse_repo_url(self, url, expected):
        assert parse_repo_url(url) == expected

    def test_filename_from_url(self):
        assert filename_from_url("https://x.org/a/b/My%20Tool.zip?x=1") == "My Tool.zip"
        assert filename_from_url("https://x.org/") == ""


class TestMetadata:
    def test_latest_release(self):
        client, session = _client(
            FakeResponse(
                200,
                {
                    "tag_name": "v1.2",
                    "name": "Release 1.2",
                    "assets": [
                        {"name": "a.zip", "browser_download_url": "https://dl/a.zip", "size": 10},
                        {"name": "b.zip", "browser_download_url": "https://dl/b.zip"},
                    ],
                },
            )
        )
        release = client.latest_release("o", "r")
        assert release.tag == "v1.2"
        assert [a.name for a in release.assets] == ["a.zip", "b.zip"]
        assert release.assets[1].size == 0
        assert session.calls[0][0] == "https://api.github.com/repos/o/r/releases/latest"

    def test_latest_release_http_error(self):
        client, _ = _client(FakeResponse(404, {"message": "Not Found"}))
        with pytest.raises(RemoteQueryError, match="404"):
            client.latest_release("o", "r")

    def test_branch_commit(self):
        client, session = _client(FakeResponse(200, {"commit": {"sha": "abc123"}}))
        assert client.branch_commit("o", "r", "main") == "abc123"
        assert session.calls[0][0].endswith("/repos/o/r/branches/main")

    def test_branch_missing(self):
        client, _ = _client(FakeResponse(404, {"message": "Branch not found"}))
        with pytest.raises(BranchNotFoundError):
            client.branch_commit("o", "r", "nope")

    def test_branch_payload_malformed(self):
        client, _ = _client(FakeResponse(200, {"unexpected": True}))
        with pytest.raises(RemoteQueryError):
            client.branch_commit("o", "r", "main")


class TestAuthAndRetry:
    def test_token_sent_as_bearer(self):
        client, session = _client(FakeResponse(200, {"commit": {"sha": "s"}}), token="ghp_x")
        client.branch_commit("o", "r", "main")
        headers = session.calls[0][1]["headers"]
        assert headers["Authorization"] == "Bearer ghp_x"
        assert client.authenticated is True

    def test_anonymous_without_token(self):
        client, session = _client(FakeResponse(200, {"commit": {"sha": "s"}}))
        client.branch_commit("o", "r", "main")
        assert "Authorization" not in session.calls[0][1]["headers"]
        assert client.authenticated is False

    def test_user_agent(self):
        client, session = _client(user_agent="dfir-box/1.0")
        assert session.headers["User-Agent"] == "dfir-box/1.0"

    def test_timeout_passed_through(self):
        client, session = _client(FakeResponse(200, {"commit": {"sha": "s"}}), timeout=12.5)
        client.branch_commit("o", "r", "main")
        assert session.calls[0][1]["timeout"] == 12.5

    def test_retries_transient_status(self):
        client, session = _client(
            FakeResponse(503),
            FakeResponse(200, {"commit": {"sha": "s"}}),
        )
        assert client.branch_commit("o", "r", "main") == "s"
        assert len(session.calls) == 2

    def test_retries_connection_errors_then_gives_up(self):
        client, session = _client(
            requests.ConnectionError("down"),
            requests.ConnectionError("down"),
            retries=2,
        )
        with pytest.raises(RemoteQueryError, match="network error"):
            client.get_json("https://api.github.com/x")
        assert len(session.calls) == 2

    def test_final_transient_status_is_returned(self):
        client, _ = _client(FakeResponse(502), FakeResponse(502), retries=2)
        with pytest.raises(RemoteQueryError, match="502"):
            client.get_json("https://api.github.com/x")


class TestDownload:
    def test_streams_to_file(self, tmp_dir: Path):
        client, session = _client(FakeResponse(200, b"payload-bytes"))
        target = client.download("https://dl/a.zip", tmp_dir / "sub" / "a.zip")
        assert target.read_bytes() == b"payload-bytes"
        assert session.calls[0][1]["stream"] is True

    def test_http_error(self, tmp_dir: Path):
        client, _ = _client(FakeResponse(404))
        with pytest.raises(DownloadError, match="404"):
            client.download("https://dl/a.zip", tmp_dir / "a.zip")

    def test_network_error(self, tmp_dir: Path):
        client, _ = _client(requests.ConnectionError("reset"), retries=1)
        with pytest.raises(DownloadError):
            client.download("https://dl/a.zip", tmp_dir / "a.zip")
