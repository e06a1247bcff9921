"""Shared test fixtures for toolfetcher."""

from __future__ import annotations

import io
import logging
import tarfile
import zipfile
from pathlib import Path

import pytest

from toolfetcher.bridge.github import ReleaseAsset, ReleaseInfo
from toolfetcher.core.dispatcher import LifecycleDispatcher
from toolfetcher.core.manifest_store import ManifestStore
from toolfetcher.core.reconciler import Reconciler
from toolfetcher.core.resolver import ArtifactResolver
from toolfetcher.core.staging import StagingFetcher
from toolfetcher.errors import BranchNotFoundError, DownloadError, RemoteQueryError


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_zip(files: dict[str, bytes]) -> bytes:
    """Build an in-memory zip archive from ``{member_name: content}``."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def make_tar_gz(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def write_tree(root: Path, files: dict[str, bytes | str]) -> Path:
    """Create ``files`` (relative path -> content) under *root*."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode()
        path.write_bytes(data)
    return root


def read_tree(root: Path) -> dict[str, bytes]:
    """Every file under *root* as ``{posix relative path: content}``."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


# ---------------------------------------------------------------------------
# Fake remote
# ---------------------------------------------------------------------------


class FakeGitHubClient:
    """In-memory stand-in for ``GitHubClient``.

    ``files`` maps URL -> bytes, ``branches`` maps ``(owner, repo, branch)``
    -> commit SHA, ``releases`` maps ``(owner, repo)`` -> ``ReleaseInfo``.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.branches: dict[tuple[str, str, str], str] = {}
        self.releases: dict[tuple[str, str], ReleaseInfo] = {}
        self.downloaded: list[str] = []
        self.authenticated = False

    def add_release(self, owner: str, repo: str, tag: str, assets: dict[str, bytes]) -> None:
        infos = []
        for name, data in assets.items():
            url = f"https://github.com/{owner}/{repo}/releases/download/{tag}/{name}"
            self.files[url] = data
            infos.append(ReleaseAsset(name=name, download_url=url, size=len(data)))
        self.releases[(owner, repo)] = ReleaseInfo(tag=tag, name=tag, assets=infos)

    def latest_release(self, owner: str, repo: str) -> ReleaseInfo:
        try:
            return self.releases[(owner, repo)]
        except KeyError:
            raise RemoteQueryError(f"HTTP 404 for {owner}/{repo}") from None

    def branch_commit(self, owner: str, repo: str, branch: str) -> str:
        try:
            return self.branches[(owner, repo, branch)]
        except KeyError:
            raise BranchNotFoundError(f"branch {branch!r} not found") from None

    def download(self, url: str, target: Path) -> Path:
        if url not in self.files:
            raise DownloadError(f"HTTP 404 downloading {url}")
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.files[url])
        self.downloaded.append(url)
        return target


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handler changes the CLI makes to the ``toolfetcher`` logger."""
    yield
    logger = logging.getLogger("toolfetcher")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def tools_root(tmp_dir: Path) -> Path:
    root = tmp_dir / "tools"
    root.mkdir()
    return root


@pytest.fixture
def staging_dir(tmp_dir: Path) -> Path:
    return tmp_dir / "staging"


@pytest.fixture
def fake_client() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def store() -> ManifestStore:
    return ManifestStore()


@pytest.fixture
def reconciler(store: ManifestStore) -> Reconciler:
    return Reconciler(store)


@pytest.fixture
def fetcher(fake_client: FakeGitHubClient, staging_dir: Path) -> StagingFetcher:
    return StagingFetcher(fake_client, staging_dir)


@pytest.fixture
def resolver(
    fake_client: FakeGitHubClient,
    fetcher: StagingFetcher,
    reconciler: Reconciler,
) -> ArtifactResolver:
    return ArtifactResolver(fake_client, fetcher, reconciler)


@pytest.fixture
def dispatcher(
    resolver: ArtifactResolver,
    tools_root: Path,
    store: ManifestStore,
) -> LifecycleDispatcher:
    return LifecycleDispatcher(resolver, tools_root, store)


@pytest.fixture
def build_zip():
    return make_zip


@pytest.fixture
def build_tar_gz():
    return make_tar_gz


@pytest.fixture
def build_tree():
    return write_tree


@pytest.fixture
def tree_of():
    return read_tree
