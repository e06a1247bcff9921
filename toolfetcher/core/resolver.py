"""Artifact Resolver — turns a tool definition into a concrete download.

One entry point per download method.  Each resolves the method into a URL,
a local filename and a version label, then stages the download and hands
the payload to the reconciler.

================  ===============================================  ==========================
method            URL                                              version / commit
================  ===============================================  ==========================
gitClone          archive of the commit at the head of the branch  branch / commit SHA
latestRelease     the selected asset of the latest release         release tag / --
branchZip         archive of ``refs/heads/<branch>``               branch / --
specificFile      raw repository file, or the URL verbatim         branch (repository) / --
================  ===============================================  ==========================
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from toolfetcher.bridge.github import (
    GitHubClient,
    branch_archive_url,
    commit_archive_url,
    filename_from_url,
    parse_repo_url,
    raw_file_url,
)
from toolfetcher.core.asset_select import select_asset
from toolfetcher.core.reconciler import ReconcileReport, Reconciler
from toolfetcher.core.staging import StagingFetcher
from toolfetcher.errors import AssetNotFoundError, BranchNotFoundError, FetchError
from toolfetcher.models.manifest import ManifestRecord
from toolfetcher.models.tools import (
    BranchZipTool,
    GitCloneTool,
    LatestReleaseTool,
    SpecificFileTool,
    ToolBase,
)

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"
FALLBACK_BRANCH = "main"


class ResolvedDownload(BaseModel):
    """Where to fetch a tool from and how to label what was fetched."""

    model_config = ConfigDict(frozen=True)

    url: str
    filename: str
    version: str = ""
    commit_hash: str = ""


def _require_repo(tool: ToolBase) -> tuple[str, str]:
    repo = parse_repo_url(tool.repo_url)
    if repo is None:
        raise FetchError(
            f"{tool.download_method.value} needs a GitHub repository URL, got {tool.repo_url!r}"
        )
    return repo


def _safe_filename(name: str, tool: ToolBase) -> str:
    cleaned = Path(name.replace("\\", "/")).name
    if cleaned in ("", ".", ".."):
        raise FetchError(f"cannot determine a file name for {tool.name!r}")
    return cleaned


class ArtifactResolver:
    """Resolves, stages and installs tools.

    Parameters
    ----------
    client:
        GitHub client for metadata queries.
    fetcher:
        Staging fetcher used for every download.
    reconciler:
        Reconciler that installs staged payloads.
    """

    def __init__(
        self,
        client: GitHubClient,
        fetcher: StagingFetcher,
        reconciler: Reconciler,
    ) -> None:
        self.client = client
        self.fetcher = fetcher
        self.reconciler = reconciler

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def install(self, tool: ToolBase, destination: Path) -> ReconcileReport:
        """Fetch *tool* into *destination* using its download method."""
        if isinstance(tool, GitCloneTool):
            return self.git_clone(tool, destination)
        if isinstance(tool, LatestReleaseTool):
            return self.latest_release(tool, destination)
        if isinstance(tool, BranchZipTool):
            return self.branch_zip(tool, destination)
        if isinstance(tool, SpecificFileTool):
            return self.specific_file(tool, destination)
        raise FetchError(f"unsupported tool type: {type(tool).__name__}")

    def git_clone(self, tool: GitCloneTool, destination: Path) -> ReconcileReport:
        return self._stage_and_reconcile(tool, destination, self.resolve_git_clone(tool))

    def latest_release(self, tool: LatestReleaseTool, destination: Path) -> ReconcileReport:
        return self._stage_and_reconcile(
            tool, destination, self.resolve_latest_release(tool)
        )

    def branch_zip(self, tool: BranchZipTool, destination: Path) -> ReconcileReport:
        return self._stage_and_reconcile(tool, destination, self.resolve_branch_zip(tool))

    def specific_file(self, tool: SpecificFileTool, destination: Path) -> ReconcileReport:
        return self._stage_and_reconcile(
            tool, destination, self.resolve_specific_file(tool)
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_git_clone(self, tool: GitCloneTool) -> ResolvedDownload:
        """Pin the branch head to a commit and point at that commit's archive.

        Without an explicit branch, ``master`` is tried and then ``main``.
        """
        owner, repo = _require_repo(tool)
        branch = tool.branch or DEFAULT_BRANCH
        candidates = [branch]
        if branch == DEFAULT_BRANCH:
            candidates.append(FALLBACK_BRANCH)

        for candidate in candidates:
            try:
                sha = self.client.branch_commit(owner, repo, candidate)
            except BranchNotFoundError:
                logger.debug("%s: branch %r not found", tool.name, candidate)
                continue
            logger.info("%s: %s is at %s", tool.name, candidate, sha[:12])
            return ResolvedDownload(
                url=commit_archive_url(owner, repo, sha),
                filename=f"{repo}-{sha}.zip",
                version=candidate,
                commit_hash=sha,
            )
        raise BranchNotFoundError(
            f"none of the branches {', '.join(candidates)} exist in {owner}/{repo}"
        )

    def resolve_latest_release(self, tool: LatestReleaseTool) -> ResolvedDownload:
        owner, repo = _require_repo(tool)
        release = self.client.latest_release(owner, repo)
        asset = select_asset(
            release.assets,
            download_name=tool.download_name,
            asset_filename=tool.asset_filename,
            asset_type=tool.asset_type,
        )
        if asset is None:
            raise AssetNotFoundError(
                f"no asset in release {release.tag or '(untagged)'} of {owner}/{repo} "
                f"matches the configured selection"
            )
        logger.info("%s: selected %s from release %s", tool.name, asset.name, release.tag)
        return ResolvedDownload(
            url=asset.download_url,
            filename=_safe_filename(asset.name, tool),
            version=release.tag,
        )

    def resolve_branch_zip(self, tool: BranchZipTool) -> ResolvedDownload:
        owner, repo = _require_repo(tool)
        branch = tool.branch or DEFAULT_BRANCH
        return ResolvedDownload(
            url=branch_archive_url(owner, repo, branch),
            filename=_safe_filename(f"{repo}-{branch}.zip", tool),
            version=branch,
        )

    def resolve_specific_file(self, tool: SpecificFileTool) -> ResolvedDownload:
        repo = parse_repo_url(tool.repo_url)
        if repo is None:
            url = tool.repo_url
            version = ""
        else:
            owner, name = repo
            branch = tool.branch or DEFAULT_BRANCH
            sub_path = (tool.specific_file_path or tool.download_name or "").lstrip("/")
            if sub_path.startswith("raw/"):
                url = f"{tool.repo_url.rstrip('/')}/{sub_path}"
            else:
                url = raw_file_url(owner, name, branch, sub_path)
            version = branch

        filename = tool.download_name or filename_from_url(url)
        return ResolvedDownload(
            url=url,
            filename=_safe_filename(filename, tool),
            version=version,
        )

    # ------------------------------------------------------------------
    # Shared tail
    # ------------------------------------------------------------------

    def _stage_and_reconcile(
        self,
        tool: ToolBase,
        destination: Path,
        resolved: ResolvedDownload,
    ) -> ReconcileReport:
        logger.info("%s: downloading %s", tool.name, resolved.url)
        with self.fetcher.stage(
            resolved.url, resolved.filename, extract=tool.extract
        ) as staged:
            provenance = ManifestRecord(
                tool=tool.name,
                download_method=tool.download_method.value,
                download_url=resolved.url,
                version=resolved.version,
                commit_hash=resolved.commit_hash,
                downloaded_file=(
                    "" if staged.extracted else str(Path(destination) / resolved.filename)
                ),
                extraction_location=str(destination),
            )
            return self.reconciler.reconcile(destination, staged.payload_dir, provenance)
