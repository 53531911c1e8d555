"""Drill-down navigation between dashboard cards, charts and detail panels.

The active view is a single immutable state value. Selection parameters
(date, feature key, user id) live inside the state that needs them, so a
stale selection can never leak into another view and dismissing clears
everything at once. The machine is flat: opening a view replaces whatever
was open, and dismissing always returns to :class:`Closed`.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Union

from .copilot_models import CODE_COMPLETIONS, EditorEngagement
from .dashboard_metrics import (
    MODERATE_THRESHOLD,
    STRONG_THRESHOLD,
    AVERAGE_WINDOW,
    AdoptionLevel,
    CopilotDashboard,
    DistributionEntry,
    FeatureEngagement,
    RosterRow,
    SeatAllocation,
    TrendPoint,
    average_active_users,
    engagement_rate,
    feature_engagement_summary,
    peak_active_users,
    roster_row,
    snapshot_for_date,
)


@dataclass(frozen=True)
class Closed:
    kind: ClassVar[str] = "closed"


@dataclass(frozen=True)
class SeatsOverview:
    kind: ClassVar[str] = "seats"


@dataclass(frozen=True)
class ActiveUsersDetail:
    kind: ClassVar[str] = "active_users"


@dataclass(frozen=True)
class EngagedUsersDetail:
    kind: ClassVar[str] = "engaged_users"


@dataclass(frozen=True)
class AdoptionDetail:
    kind: ClassVar[str] = "adoption"


@dataclass(frozen=True)
class TrendDetail:
    date: dt.date
    kind: ClassVar[str] = "trend"


@dataclass(frozen=True)
class FeatureDetail:
    feature_key: str
    kind: ClassVar[str] = "feature"


@dataclass(frozen=True)
class UserDetail:
    user_id: int
    kind: ClassVar[str] = "user"


DrillDownState = Union[
    Closed,
    SeatsOverview,
    ActiveUsersDetail,
    EngagedUsersDetail,
    AdoptionDetail,
    TrendDetail,
    FeatureDetail,
    UserDetail,
]

CARD_STATES: Dict[str, DrillDownState] = {
    "seats": SeatsOverview(),
    "active_users": ActiveUsersDetail(),
    "engaged_users": EngagedUsersDetail(),
    "adoption": AdoptionDetail(),
}


class DrillDownNavigator:
    """Holds the current drill-down state and applies transitions."""

    def __init__(self) -> None:
        self.state: DrillDownState = Closed()

    @property
    def is_open(self) -> bool:
        return not isinstance(self.state, Closed)

    def open_card(self, card: str) -> DrillDownState:
        try:
            self.state = CARD_STATES[card]
        except KeyError as exc:
            raise ValueError(
                f"Unknown card '{card}'. Expected one of: {', '.join(CARD_STATES)}"
            ) from exc
        return self.state

    def select_trend_point(self, day: dt.date) -> DrillDownState:
        self.state = TrendDetail(date=day)
        return self.state

    def select_feature(self, feature_key: str) -> DrillDownState:
        self.state = FeatureDetail(feature_key=feature_key)
        return self.state

    def select_user(self, user_id: int) -> DrillDownState:
        self.state = UserDetail(user_id=user_id)
        return self.state

    def dismiss(self) -> DrillDownState:
        self.state = Closed()
        return self.state


def state_params(state: DrillDownState) -> Dict[str, object]:
    if isinstance(state, TrendDetail):
        return {"date": state.date.isoformat()}
    if isinstance(state, FeatureDetail):
        return {"feature_key": state.feature_key}
    if isinstance(state, UserDetail):
        return {"user_id": state.user_id}
    return {}


# Detail view-models ---------------------------------------------------------


@dataclass(frozen=True)
class SeatsOverviewView:
    allocation: SeatAllocation
    by_team: list[DistributionEntry]
    by_editor: list[DistributionEntry]
    by_activity: list[DistributionEntry]


@dataclass(frozen=True)
class ActiveUsersView:
    current: int
    average: int
    average_window: int
    peak: int
    trend: list[TrendPoint]
    by_editor: list[DistributionEntry]


@dataclass(frozen=True)
class FeatureShare:
    feature: FeatureEngagement
    engagement_rate: int


@dataclass(frozen=True)
class EngagedUsersView:
    total_engaged: int
    features: list[FeatureShare]


@dataclass(frozen=True)
class AdoptionBand:
    status: AdoptionLevel
    range_label: str
    current: bool


@dataclass(frozen=True)
class AdoptionView:
    status: AdoptionLevel
    ratio: int
    active_users: int
    total_seats: int
    bands: list[AdoptionBand]


@dataclass(frozen=True)
class TrendDayView:
    date: dt.date
    found: bool
    active_users: int = 0
    engaged_users: int = 0
    features: tuple[FeatureEngagement, ...] = ()
    completion_editors: tuple[EditorEngagement, ...] = ()


@dataclass(frozen=True)
class FeatureTrendPoint:
    label: str
    date: dt.date
    engaged_users: int


@dataclass(frozen=True)
class FeatureView:
    feature_key: str
    found: bool
    feature: Optional[FeatureEngagement] = None
    engagement_rate: int = 0
    trend: tuple[FeatureTrendPoint, ...] = ()


@dataclass(frozen=True)
class UserView:
    user_id: int
    found: bool
    row: Optional[RosterRow] = None
    seat_assigned_at: Optional[dt.datetime] = None
    last_activity_at: Optional[dt.datetime] = None


DetailView = Union[
    SeatsOverviewView,
    ActiveUsersView,
    EngagedUsersView,
    AdoptionView,
    TrendDayView,
    FeatureView,
    UserView,
]


def _seats_view(dashboard: CopilotDashboard) -> SeatsOverviewView:
    distributions = dashboard.distributions()
    return SeatsOverviewView(
        allocation=dashboard.seat_allocation(),
        by_team=distributions.by_team,
        by_editor=distributions.by_editor,
        by_activity=distributions.by_activity,
    )


def _active_users_view(dashboard: CopilotDashboard) -> ActiveUsersView:
    return ActiveUsersView(
        current=dashboard.card_summary().active_users,
        average=average_active_users(dashboard.snapshots, AVERAGE_WINDOW),
        average_window=AVERAGE_WINDOW,
        peak=peak_active_users(dashboard.snapshots),
        trend=dashboard.trend_series(),
        by_editor=dashboard.distributions().by_editor,
    )


def _engaged_users_view(dashboard: CopilotDashboard) -> EngagedUsersView:
    total = dashboard.card_summary().engaged_users
    return EngagedUsersView(
        total_engaged=total,
        features=[
            FeatureShare(feature=feature, engagement_rate=engagement_rate(feature.engaged_users, total))
            for feature in dashboard.feature_engagement()
        ],
    )


def _adoption_view(dashboard: CopilotDashboard) -> AdoptionView:
    cards = dashboard.card_summary()
    status = cards.adoption.status
    return AdoptionView(
        status=status,
        ratio=cards.adoption.ratio,
        active_users=cards.active_users,
        total_seats=cards.total_seats,
        bands=[
            AdoptionBand("Strong", f">={STRONG_THRESHOLD}%", status == "Strong"),
            AdoptionBand(
                "Moderate", f"{MODERATE_THRESHOLD}-{STRONG_THRESHOLD - 1}%", status == "Moderate"
            ),
            AdoptionBand("Underutilized", f"<{MODERATE_THRESHOLD}%", status == "Underutilized"),
        ],
    )


def _trend_day_view(dashboard: CopilotDashboard, day: dt.date) -> TrendDayView:
    snapshot = snapshot_for_date(dashboard.snapshots, day)
    if snapshot is None:
        return TrendDayView(date=day, found=False)
    completions = snapshot.features.get(CODE_COMPLETIONS)
    return TrendDayView(
        date=day,
        found=True,
        active_users=snapshot.total_active_users,
        engaged_users=snapshot.total_engaged_users,
        features=tuple(feature_engagement_summary(snapshot)),
        completion_editors=completions.editors if completions else (),
    )


def _feature_view(dashboard: CopilotDashboard, feature_key: str) -> FeatureView:
    feature = next(
        (row for row in dashboard.feature_engagement() if row.key == feature_key), None
    )
    if feature is None:
        return FeatureView(feature_key=feature_key, found=False)
    return FeatureView(
        feature_key=feature_key,
        found=True,
        feature=feature,
        engagement_rate=engagement_rate(
            feature.engaged_users, dashboard.card_summary().engaged_users
        ),
        trend=tuple(
            FeatureTrendPoint(
                label=point.label,
                date=point.date,
                engaged_users=point.feature_counts.get(feature_key, 0),
            )
            for point in dashboard.trend_series()
        ),
    )


def _user_view(dashboard: CopilotDashboard, user_id: int) -> UserView:
    seat = dashboard.roster.find_seat(user_id)
    if seat is None:
        return UserView(user_id=user_id, found=False)
    return UserView(
        user_id=user_id,
        found=True,
        row=roster_row(seat, dashboard.now),
        seat_assigned_at=seat.created_at,
        last_activity_at=seat.last_activity_at,
    )


def resolve_view(state: DrillDownState, dashboard: CopilotDashboard) -> Optional[DetailView]:
    """Build the detail view-model for ``state``; ``None`` when closed."""
    if isinstance(state, SeatsOverview):
        return _seats_view(dashboard)
    if isinstance(state, ActiveUsersDetail):
        return _active_users_view(dashboard)
    if isinstance(state, EngagedUsersDetail):
        return _engaged_users_view(dashboard)
    if isinstance(state, AdoptionDetail):
        return _adoption_view(dashboard)
    if isinstance(state, TrendDetail):
        return _trend_day_view(dashboard, state.date)
    if isinstance(state, FeatureDetail):
        return _feature_view(dashboard, state.feature_key)
    if isinstance(state, UserDetail):
        return _user_view(dashboard, state.user_id)
    return None


__all__ = [
    "ActiveUsersDetail",
    "ActiveUsersView",
    "AdoptionBand",
    "AdoptionDetail",
    "AdoptionView",
    "CARD_STATES",
    "Closed",
    "DetailView",
    "DrillDownNavigator",
    "DrillDownState",
    "EngagedUsersDetail",
    "EngagedUsersView",
    "FeatureDetail",
    "FeatureShare",
    "FeatureTrendPoint",
    "FeatureView",
    "SeatsOverview",
    "SeatsOverviewView",
    "TrendDayView",
    "TrendDetail",
    "UserDetail",
    "UserView",
    "resolve_view",
    "state_params",
]
