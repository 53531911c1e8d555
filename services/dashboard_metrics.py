"""Derived metrics for the Copilot adoption dashboard.

Everything here is computed from two immutable inputs, the ascending list of
:class:`~services.copilot_models.DailyMetricSnapshot` and the
:class:`~services.copilot_models.SeatRoster`. Functions are pure and total:
empty histories, empty rosters and zero denominators produce zero or empty
results instead of errors.

"Current" figures always come from the latest snapshot, never an average, and
ratios are always taken against the roster's ``total_seats``.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Literal, Optional, Sequence

import pandas as pd

from .copilot_models import (
    CODE_COMPLETIONS,
    DOTCOM_CHAT,
    FEATURE_KEYS,
    IDE_CHAT,
    PULL_REQUEST_SUMMARIES,
    DailyMetricSnapshot,
    EditorEngagement,
    Seat,
    SeatRoster,
)

AdoptionLevel = Literal["Strong", "Moderate", "Underutilized"]
RecencyTag = Literal["Today", "Recent", "Stale", "Never"]

TREND_WINDOW = 14
AVERAGE_WINDOW = 7

STRONG_THRESHOLD = 70
MODERATE_THRESHOLD = 40

FEATURE_DISPLAY_NAMES: Dict[str, str] = {
    CODE_COMPLETIONS: "Code Completions",
    IDE_CHAT: "IDE Chat",
    PULL_REQUEST_SUMMARIES: "PR Summaries",
    DOTCOM_CHAT: "GitHub Chat",
}

# Fixed order of the activity buckets, keyed by recency tag.
ACTIVITY_BUCKETS: tuple[tuple[RecencyTag, str], ...] = (
    ("Today", "Today"),
    ("Recent", "This Week"),
    ("Stale", "Older"),
    ("Never", "Never"),
)


@dataclass(frozen=True)
class AdoptionStatus:
    status: AdoptionLevel
    ratio: int


@dataclass(frozen=True)
class ActivityRecency:
    tag: RecencyTag
    label: str
    days: Optional[int]


@dataclass(frozen=True)
class DistributionEntry:
    label: str
    count: int


@dataclass(frozen=True)
class FeatureEngagement:
    key: str
    display_name: str
    engaged_users: int
    editor_breakdown: Optional[tuple[EditorEngagement, ...]] = None


@dataclass(frozen=True)
class CardSummary:
    total_seats: int
    active_users: int
    engaged_users: int
    adoption: AdoptionStatus


@dataclass(frozen=True)
class TrendPoint:
    label: str
    date: dt.date
    active: int
    engaged: int
    feature_counts: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RosterRow:
    user_id: int
    login: str
    avatar_url: str
    recency: ActivityRecency
    editor: str
    team: str


@dataclass(frozen=True)
class SeatAllocation:
    total: int
    assigned: int
    available: int


@dataclass(frozen=True)
class Distributions:
    by_team: list[DistributionEntry]
    by_editor: list[DistributionEntry]
    by_activity: list[DistributionEntry]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for the non-negative values used here."""
    return int(math.floor(value + 0.5))


def latest(snapshots: Sequence[DailyMetricSnapshot]) -> Optional[DailyMetricSnapshot]:
    if not snapshots:
        return None
    return max(snapshots, key=lambda snapshot: snapshot.date)


def adoption_status(active_users: int, total_seats: int) -> AdoptionStatus:
    ratio = round_half_up(active_users * 100 / total_seats) if total_seats > 0 else 0
    if ratio >= STRONG_THRESHOLD:
        return AdoptionStatus(status="Strong", ratio=ratio)
    if ratio >= MODERATE_THRESHOLD:
        return AdoptionStatus(status="Moderate", ratio=ratio)
    return AdoptionStatus(status="Underutilized", ratio=ratio)


def recent_window(
    snapshots: Sequence[DailyMetricSnapshot], n: int = TREND_WINDOW
) -> list[DailyMetricSnapshot]:
    """Last ``n`` snapshots by position, oldest first."""
    if n <= 0:
        return []
    return list(snapshots[-n:])


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def activity_recency(
    last_activity_at: Optional[dt.datetime], now: dt.datetime
) -> ActivityRecency:
    if last_activity_at is None:
        return ActivityRecency(tag="Never", label="Never", days=None)
    days = (_as_utc(now) - _as_utc(last_activity_at)) // dt.timedelta(days=1)
    if days <= 1:
        return ActivityRecency(tag="Today", label="Today", days=days)
    if days <= 7:
        return ActivityRecency(tag="Recent", label=f"{days}d ago", days=days)
    return ActivityRecency(tag="Stale", label=f"{days}d ago", days=days)


def group_by(seats: Iterable[Seat], key_fn: Callable[[Seat], str]) -> list[DistributionEntry]:
    """Count seats per label, in order of first encounter."""
    labels = [key_fn(seat) for seat in seats]
    if not labels:
        return []
    counts = pd.DataFrame({"label": labels}).groupby("label", sort=False).size()
    return [DistributionEntry(label=str(label), count=int(count)) for label, count in counts.items()]


def team_distribution(roster: SeatRoster) -> list[DistributionEntry]:
    return group_by(roster.seats, lambda seat: seat.team_label)


def editor_label(name: str) -> str:
    """Distribution label for an editor: first letter upper-cased, rest as reported."""
    return name[:1].upper() + name[1:]


def editor_distribution(roster: SeatRoster) -> list[DistributionEntry]:
    return group_by(roster.seats, lambda seat: editor_label(seat.editor_label))


def activity_distribution(roster: SeatRoster, now: dt.datetime) -> list[DistributionEntry]:
    by_tag = {
        entry.label: entry.count
        for entry in group_by(
            roster.seats, lambda seat: activity_recency(seat.last_activity_at, now).tag
        )
    }
    return [
        DistributionEntry(label=label, count=by_tag[tag])
        for tag, label in ACTIVITY_BUCKETS
        if by_tag.get(tag, 0) > 0
    ]


def feature_engagement_summary(
    latest_snapshot: Optional[DailyMetricSnapshot],
) -> list[FeatureEngagement]:
    features = latest_snapshot.features if latest_snapshot is not None else {}
    summary = []
    for key in FEATURE_KEYS:
        metrics = features.get(key)
        summary.append(
            FeatureEngagement(
                key=key,
                display_name=FEATURE_DISPLAY_NAMES[key],
                engaged_users=metrics.total_engaged_users if metrics else 0,
                editor_breakdown=metrics.editors if metrics and metrics.editors else None,
            )
        )
    return summary


def engagement_rate(feature_users: int, total_engaged_users: int) -> int:
    return round_half_up(feature_users * 100 / max(total_engaged_users, 1))


def average_active_users(
    snapshots: Sequence[DailyMetricSnapshot], n: int = AVERAGE_WINDOW
) -> int:
    """Mean active users over the last ``n`` snapshots, rounded half-up.

    The sum is divided by the number of snapshots in the window, not by a
    fixed ``n``: two days of history average over two days.
    """
    window = recent_window(snapshots, n)
    if not window:
        return 0
    return round_half_up(sum(snapshot.total_active_users for snapshot in window) / len(window))


def peak_active_users(snapshots: Sequence[DailyMetricSnapshot]) -> int:
    return max((snapshot.total_active_users for snapshot in snapshots), default=0)


def snapshot_for_date(
    snapshots: Sequence[DailyMetricSnapshot], day: dt.date
) -> Optional[DailyMetricSnapshot]:
    for snapshot in snapshots:
        if snapshot.date == day:
            return snapshot
    return None


def seat_allocation(roster: SeatRoster) -> SeatAllocation:
    assigned = len(roster.seats)
    return SeatAllocation(
        total=roster.total_seats,
        assigned=assigned,
        available=max(roster.total_seats - assigned, 0),
    )


def card_summary(
    snapshots: Sequence[DailyMetricSnapshot], roster: SeatRoster
) -> CardSummary:
    current = latest(snapshots)
    active = current.total_active_users if current else 0
    engaged = current.total_engaged_users if current else 0
    return CardSummary(
        total_seats=roster.total_seats,
        active_users=active,
        engaged_users=engaged,
        adoption=adoption_status(active, roster.total_seats),
    )


def trend_label(day: dt.date) -> str:
    return f"{day:%b} {day.day}"


def trend_series(
    snapshots: Sequence[DailyMetricSnapshot], n: int = TREND_WINDOW
) -> list[TrendPoint]:
    return [
        TrendPoint(
            label=trend_label(snapshot.date),
            date=snapshot.date,
            active=snapshot.total_active_users,
            engaged=snapshot.total_engaged_users,
            feature_counts={key: snapshot.engaged_users_for(key) for key in FEATURE_KEYS},
        )
        for snapshot in recent_window(snapshots, n)
    ]


def roster_rows(roster: SeatRoster, now: dt.datetime) -> list[RosterRow]:
    return [roster_row(seat, now) for seat in roster.seats]


def roster_row(seat: Seat, now: dt.datetime) -> RosterRow:
    return RosterRow(
        user_id=seat.assignee.id,
        login=seat.assignee.login,
        avatar_url=seat.assignee.avatar_url,
        recency=activity_recency(seat.last_activity_at, now),
        editor=seat.editor_label,
        team=seat.team_label,
    )


class CopilotDashboard:
    """Bundles one session's snapshots and exposes every dashboard view-model."""

    def __init__(
        self,
        snapshots: Sequence[DailyMetricSnapshot],
        roster: SeatRoster,
        now: Optional[dt.datetime] = None,
    ) -> None:
        self.snapshots = tuple(snapshots)
        self.roster = roster
        self.now = now or dt.datetime.now(dt.timezone.utc)

    @property
    def latest(self) -> Optional[DailyMetricSnapshot]:
        return latest(self.snapshots)

    def card_summary(self) -> CardSummary:
        return card_summary(self.snapshots, self.roster)

    def trend_series(self, limit: int = TREND_WINDOW) -> list[TrendPoint]:
        return trend_series(self.snapshots, limit)

    def feature_engagement(self) -> list[FeatureEngagement]:
        return feature_engagement_summary(self.latest)

    def distributions(self) -> Distributions:
        return Distributions(
            by_team=team_distribution(self.roster),
            by_editor=editor_distribution(self.roster),
            by_activity=activity_distribution(self.roster, self.now),
        )

    def roster_rows(self) -> list[RosterRow]:
        return roster_rows(self.roster, self.now)

    def seat_allocation(self) -> SeatAllocation:
        return seat_allocation(self.roster)

    def trend_frame(self, limit: int = TREND_WINDOW) -> pd.DataFrame:
        """Trend series as a table indexed by date, one column per count."""
        rows = [
            {"date": point.date, "active": point.active, "engaged": point.engaged, **point.feature_counts}
            for point in self.trend_series(limit)
        ]
        columns = ["date", "active", "engaged", *FEATURE_KEYS]
        return pd.DataFrame(rows, columns=columns).set_index("date")

    def summary_text(self) -> str:
        cards = self.card_summary()
        allocation = self.seat_allocation()
        current = self.latest
        as_of = current.date.isoformat() if current else "no daily metrics"
        lines = [
            f"Copilot adoption as of {as_of}:",
            f"- Total seats: {cards.total_seats:,} "
            f"({allocation.assigned:,} assigned, {allocation.available:,} available)",
            f"- Active users: {cards.active_users:,}",
            f"- Engaged users: {cards.engaged_users:,}",
            f"- Adoption: {cards.adoption.ratio}% ({cards.adoption.status})",
            "Feature engagement:",
        ]
        for feature in self.feature_engagement():
            rate = engagement_rate(feature.engaged_users, cards.engaged_users)
            lines.append(
                f"- {feature.display_name}: {feature.engaged_users:,} users ({rate}% of engaged)"
            )
        return "\n".join(lines)

    def trend_text(self, limit: int = TREND_WINDOW) -> str:
        frame = self.trend_frame(limit)
        if frame.empty:
            return "No daily metrics available for the trend."
        lines = [f"Active and engaged users, last {len(frame)} days:"]
        for day, row in frame.iterrows():
            lines.append(f"- {trend_label(day)}: {int(row['active']):,} active, {int(row['engaged']):,} engaged")
        return "\n".join(lines)


__all__ = [
    "ACTIVITY_BUCKETS",
    "ActivityRecency",
    "AdoptionStatus",
    "CardSummary",
    "CopilotDashboard",
    "DistributionEntry",
    "Distributions",
    "FEATURE_DISPLAY_NAMES",
    "FeatureEngagement",
    "RosterRow",
    "SeatAllocation",
    "TrendPoint",
    "activity_distribution",
    "activity_recency",
    "adoption_status",
    "average_active_users",
    "card_summary",
    "editor_distribution",
    "editor_label",
    "engagement_rate",
    "feature_engagement_summary",
    "group_by",
    "latest",
    "peak_active_users",
    "recent_window",
    "roster_row",
    "roster_rows",
    "round_half_up",
    "seat_allocation",
    "snapshot_for_date",
    "team_distribution",
    "trend_series",
]
