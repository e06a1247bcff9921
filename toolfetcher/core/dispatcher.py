"""Lifecycle Dispatcher — decides per tool whether to fetch, then does it.

Tools are processed one at a time, in configuration order.  A failure in
one tool is logged and recorded in the batch report; it never stops the
remaining tools.

Selection policy
----------------
=============================  =============================================
flags                          a tool proceeds when
=============================  =============================================
``--update NAME`` (named set)  its name is in the set; its skip flag is
                               ignored; tools outside the set are skipped
``--update-all``               it already has a record and is not skipped
                               (``--force`` also ignores the skip flag)
``--force``                    it is not skipped (installed or not)
(none)                         it has no record and is not skipped
=============================  =============================================
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from toolfetcher.bridge.github import GitHubClient
from toolfetcher.config import FetcherSettings
from toolfetcher.core.manifest_store import ManifestStore
from toolfetcher.core.reconciler import Reconciler
from toolfetcher.core.resolver import ArtifactResolver
from toolfetcher.core.staging import StagingFetcher
from toolfetcher.errors import AssetNotFoundError, DestinationError, FetchError
from toolfetcher.models.outcomes import BatchReport, OutcomeStatus, ToolAction, ToolOutcome
from toolfetcher.models.tools import ToolBase

logger = logging.getLogger(__name__)


class SelectionPolicy(BaseModel):
    """The run-wide flags that feed ``decide_action``."""

    model_config = ConfigDict(frozen=True)

    force: bool = False
    update_all: bool = False
    update_names: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("update_names", mode="before")
    @classmethod
    def _casefold(cls, value: object) -> object:
        if value is None:
            return frozenset()
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(v).strip().casefold() for v in value if str(v).strip())
        return value

    def selects(self, tool: ToolBase) -> bool:
        return tool.name.casefold() in self.update_names


def decide_action(tool: ToolBase, has_record: bool, policy: SelectionPolicy) -> ToolAction:
    """Apply the selection policy to one tool."""
    proceed_as = ToolAction.UPDATE_EXISTING if has_record else ToolAction.FETCH_FRESH

    if policy.update_names:
        return proceed_as if policy.selects(tool) else ToolAction.SKIP

    if policy.update_all:
        if has_record and (policy.force or not tool.skip_download):
            return ToolAction.UPDATE_EXISTING
        return ToolAction.SKIP

    if policy.force:
        return ToolAction.SKIP if tool.skip_download else proceed_as

    if has_record or tool.skip_download:
        return ToolAction.SKIP
    return ToolAction.FETCH_FRESH


def ensure_tools_root(root: Path) -> Path:
    """Create the destination root if needed.

    Raises
    ------
    DestinationError
        If the root cannot be created or is not a writable directory.
    """
    root = Path(root).expanduser()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DestinationError(f"cannot create tools directory {root}: {exc}") from exc
    if not root.is_dir():
        raise DestinationError(f"tools directory {root} is not a directory")
    probe = root / ".toolfetcher-write-test"
    try:
        probe.touch()
        probe.unlink()
    except OSError as exc:
        raise DestinationError(f"tools directory {root} is not writable: {exc}") from exc
    return root


class LifecycleDispatcher:
    """Runs the selection policy and the resolver over a list of tools.

    Parameters
    ----------
    resolver:
        Resolver used for every tool that proceeds.
    tools_root:
        Destination root; each tool lands in ``<root>/<OutputFolder>/<Name>``.
    store:
        Manifest store used to check for an existing install.
    """

    def __init__(
        self,
        resolver: ArtifactResolver,
        tools_root: Path,
        store: ManifestStore | None = None,
    ) -> None:
        self.resolver = resolver
        self.tools_root = Path(tools_root)
        self.store = store or ManifestStore()

    @classmethod
    def from_settings(
        cls,
        settings: FetcherSettings,
        tools_root: Path,
        client: GitHubClient | None = None,
    ) -> LifecycleDispatcher:
        """Wire client, stager, reconciler and resolver from *settings*."""
        if client is None:
            client = GitHubClient(
                settings.github_token,
                timeout=settings.http_timeout_seconds,
                retries=settings.http_retries,
                user_agent=settings.user_agent,
            )
        if not client.authenticated:
            logger.info("No GitHub token configured; using anonymous API access.")
        store = ManifestStore()
        resolver = ArtifactResolver(
            client,
            StagingFetcher(client, settings.staging_dir),
            Reconciler(store),
        )
        return cls(resolver, tools_root, store)

    def run(self, tools: list[ToolBase], policy: SelectionPolicy) -> BatchReport:
        """Process every tool in order and return the batch report."""
        known = {t.name.casefold() for t in tools}
        for missing in sorted(policy.update_names - known):
            logger.warning("Requested update for unknown tool %r; ignoring.", missing)

        outcomes: list[ToolOutcome] = []
        for tool in tools:
            outcome = self.process(tool, policy)
            outcomes.append(outcome)

        report = BatchReport(
            tools_root=str(self.tools_root),
            outcomes=outcomes,
            finished_at=datetime.now(timezone.utc),
        )
        counts = report.counts()
        logger.info(
            "Batch complete: %d installed, %d updated, %d skipped, %d warnings, %d failed",
            counts[OutcomeStatus.INSTALLED],
            counts[OutcomeStatus.UPDATED],
            counts[OutcomeStatus.SKIPPED],
            counts[OutcomeStatus.WARNING],
            counts[OutcomeStatus.FAILED],
        )
        return report

    def process(self, tool: ToolBase, policy: SelectionPolicy) -> ToolOutcome:
        """Decide and, if selected, fetch a single tool."""
        destination = tool.destination(self.tools_root)
        prior = self.store.load(destination)
        action = decide_action(tool, prior is not None, policy)

        if action is ToolAction.SKIP:
            logger.debug("%s: skipped", tool.name)
            return ToolOutcome(
                name=tool.name,
                action=action,
                status=OutcomeStatus.SKIPPED,
                destination=str(destination),
                version=prior.version if prior else "",
            )

        logger.info("%s: %s -> %s", tool.name, action.value, destination)
        try:
            report = self.resolver.install(tool, destination)
        except AssetNotFoundError as exc:
            logger.warning("%s: %s", tool.name, exc)
            return self._outcome(tool, action, OutcomeStatus.WARNING, destination, str(exc))
        except (FetchError, OSError) as exc:
            logger.error("%s: %s", tool.name, exc)
            return self._outcome(tool, action, OutcomeStatus.FAILED, destination, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s: unexpected error", tool.name)
            return self._outcome(tool, action, OutcomeStatus.FAILED, destination, repr(exc))

        status = (
            OutcomeStatus.UPDATED
            if action is ToolAction.UPDATE_EXISTING
            else OutcomeStatus.INSTALLED
        )
        message = ""
        if report.backed_up:
            message = "backed up: " + ", ".join(sorted(report.backed_up.values()))
        return ToolOutcome(
            name=tool.name,
            action=action,
            status=status,
            destination=str(destination),
            version=report.record.version,
            message=message,
            files=len(report.record.manifest),
            backups=len(report.backed_up),
        )

    @staticmethod
    def _outcome(
        tool: ToolBase,
        action: ToolAction,
        status: OutcomeStatus,
        destination: Path,
        message: str,
    ) -> ToolOutcome:
        return ToolOutcome(
            name=tool.name,
            action=action,
            status=status,
            destination=str(destination),
            message=message,
        )
