from datetime import datetime
from enum import Enum
from typing import Optional

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore", frozen=True)


class CheckStatus(str, Enum):
    """Known check run states. GitHub may add more, so fields stay plain strings."""

    queued = "queued"
    in_progress = "in_progress"
    completed = "completed"


class CheckConclusion(str, Enum):
    action_required = "action_required"
    cancelled = "cancelled"
    failure = "failure"
    neutral = "neutral"
    success = "success"
    skipped = "skipped"
    stale = "stale"
    timed_out = "timed_out"


class CheckRun(Model):
    name: str
    status: str = CheckStatus.queued.value
    conclusion: Optional[str] = None

    id: Optional[int] = None
    head_sha: Optional[str] = None
    html_url: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == CheckStatus.completed.value

    def __str__(self) -> str:
        return f"{self.name}: {self.status} ({self.conclusion})"
