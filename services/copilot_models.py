"""Immutable models for the two GitHub Copilot payloads the dashboard consumes.

Metrics payload (``GET /{scope}/{slug}/copilot/metrics``)
-----------------------------------------------------------
A JSON array of daily entries, ascending by ``date``::

    {
      "date": "2024-06-24",
      "total_active_users": 24,
      "total_engaged_users": 20,
      "copilot_ide_code_completions": {
        "total_engaged_users": 20,
        "editors": [{"name": "vscode", "total_engaged_users": 13}]
      },
      "copilot_ide_chat": {...},
      "copilot_dotcom_chat": {...},
      "copilot_dotcom_pull_requests": {...}
    }

Any feature block may be absent; absence means nobody engaged with it.

Seats payload (``GET /{scope}/{slug}/copilot/billing/seats``)
---------------------------------------------------------------
``{"total_seats": 200, "seats": [...]}`` where each seat carries
``assignee``, ``created_at`` and the optional ``last_activity_at``,
``last_activity_editor`` and ``assigning_team`` fields.

Fields not listed here (languages, models, plan type...) are ignored.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

CODE_COMPLETIONS = "code_completions"
IDE_CHAT = "ide_chat"
DOTCOM_CHAT = "dotcom_chat"
PULL_REQUEST_SUMMARIES = "pull_request_summaries"

FEATURE_KEYS = (CODE_COMPLETIONS, IDE_CHAT, PULL_REQUEST_SUMMARIES, DOTCOM_CHAT)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class EditorEngagement(_Frozen):
    name: str
    total_engaged_users: int = Field(default=0, ge=0)


class FeatureMetrics(_Frozen):
    total_engaged_users: int = Field(default=0, ge=0)
    editors: tuple[EditorEngagement, ...] = ()


class DailyMetricSnapshot(_Frozen):
    """One calendar day of aggregate Copilot usage."""

    date: dt.date
    total_active_users: int = Field(default=0, ge=0)
    total_engaged_users: int = Field(default=0, ge=0)
    code_completions: Optional[FeatureMetrics] = Field(
        default=None, alias="copilot_ide_code_completions"
    )
    ide_chat: Optional[FeatureMetrics] = Field(default=None, alias="copilot_ide_chat")
    dotcom_chat: Optional[FeatureMetrics] = Field(default=None, alias="copilot_dotcom_chat")
    pull_request_summaries: Optional[FeatureMetrics] = Field(
        default=None, alias="copilot_dotcom_pull_requests"
    )

    @property
    def features(self) -> Dict[str, FeatureMetrics]:
        """Feature blocks present in this snapshot, keyed by feature key."""
        present: Dict[str, FeatureMetrics] = {}
        for key in FEATURE_KEYS:
            value = getattr(self, key)
            if value is not None:
                present[key] = value
        return present

    def engaged_users_for(self, feature_key: str) -> int:
        feature = self.features.get(feature_key)
        return feature.total_engaged_users if feature else 0


class Assignee(_Frozen):
    login: str = Field(min_length=1)
    id: int
    avatar_url: str = ""


class Team(_Frozen):
    name: str


class Seat(_Frozen):
    """One assigned license."""

    assignee: Assignee
    created_at: dt.datetime
    last_activity_at: Optional[dt.datetime] = None
    last_activity_editor: Optional[str] = None
    assigning_team: Optional[Team] = None

    @property
    def user_id(self) -> int:
        return self.assignee.id

    @property
    def team_label(self) -> str:
        return self.assigning_team.name if self.assigning_team else "Unassigned"

    @property
    def editor_label(self) -> str:
        return self.last_activity_editor or "Unknown"


class SeatRoster(_Frozen):
    """Point-in-time seat allocation."""

    total_seats: int = Field(default=0, ge=0)
    seats: tuple[Seat, ...] = ()

    def find_seat(self, user_id: int) -> Optional[Seat]:
        for seat in self.seats:
            if seat.assignee.id == user_id:
                return seat
        return None


__all__ = [
    "Assignee",
    "CODE_COMPLETIONS",
    "DOTCOM_CHAT",
    "DailyMetricSnapshot",
    "EditorEngagement",
    "FEATURE_KEYS",
    "FeatureMetrics",
    "IDE_CHAT",
    "PULL_REQUEST_SUMMARIES",
    "Seat",
    "SeatRoster",
    "Team",
]
