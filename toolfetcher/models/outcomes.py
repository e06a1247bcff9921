"""Per-tool outcomes and the batch report."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ToolAction(str, Enum):
    """What the selection policy decided for a tool in this run."""

    SKIP = "skip"
    FETCH_FRESH = "fetch-fresh"
    UPDATE_EXISTING = "update-existing"


class OutcomeStatus(str, Enum):
    """How processing a tool ended."""

    SKIPPED = "skipped"
    INSTALLED = "installed"
    UPDATED = "updated"
    WARNING = "warning"
    FAILED = "failed"


class ToolOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    action: ToolAction
    status: OutcomeStatus
    destination: str = ""
    version: str = ""
    message: str = ""
    files: int = 0
    backups: int = 0


class BatchReport(BaseModel):
    """Everything that happened in one invocation, in configuration order."""

    model_config = ConfigDict(frozen=True)

    tools_root: str
    outcomes: list[ToolOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def counts(self) -> dict[OutcomeStatus, int]:
        tally = Counter(o.status for o in self.outcomes)
        return {status: tally.get(status, 0) for status in OutcomeStatus}

    def by_status(self, status: OutcomeStatus) -> list[ToolOutcome]:
        return [o for o in self.outcomes if o.status == status]
