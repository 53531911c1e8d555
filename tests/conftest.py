"""Shared fixtures for the dashboard tests."""

import datetime as dt
from typing import Optional

import pytest

from services.copilot_models import (
    Assignee,
    DailyMetricSnapshot,
    EditorEngagement,
    FeatureMetrics,
    Seat,
    SeatRoster,
    Team,
)

NOW = dt.datetime(2024, 6, 25, 12, 0, tzinfo=dt.timezone.utc)


def make_snapshot(
    day: dt.date,
    active: int = 0,
    engaged: int = 0,
    completions: Optional[int] = None,
    ide_chat: Optional[int] = None,
    dotcom_chat: Optional[int] = None,
    pr_summaries: Optional[int] = None,
    completion_editors: tuple = (),
) -> DailyMetricSnapshot:
    def feature(value: Optional[int], editors: tuple = ()) -> Optional[FeatureMetrics]:
        if value is None:
            return None
        return FeatureMetrics(
            total_engaged_users=value,
            editors=tuple(EditorEngagement(name=name, total_engaged_users=count) for name, count in editors),
        )

    return DailyMetricSnapshot(
        date=day,
        total_active_users=active,
        total_engaged_users=engaged,
        code_completions=feature(completions, completion_editors),
        ide_chat=feature(ide_chat),
        dotcom_chat=feature(dotcom_chat),
        pull_request_summaries=feature(pr_summaries),
    )


def make_seat(
    user_id: int,
    last_activity_at: Optional[dt.datetime] = None,
    editor: Optional[str] = None,
    team: Optional[str] = None,
) -> Seat:
    return Seat(
        assignee=Assignee(
            login=f"user-{user_id}",
            id=user_id,
            avatar_url=f"https://avatars.example.com/u/{user_id}",
        ),
        created_at=NOW - dt.timedelta(days=90),
        last_activity_at=last_activity_at,
        last_activity_editor=editor,
        assigning_team=Team(name=team) if team else None,
    )


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture
def snapshots() -> list[DailyMetricSnapshot]:
    """28 consecutive days, 2024-06-01 to 2024-06-28."""
    start = dt.date(2024, 6, 1)
    return [
        make_snapshot(
            start + dt.timedelta(days=offset),
            active=51 + offset,
            engaged=40 + offset,
            completions=30 + offset,
            ide_chat=20,
            dotcom_chat=5,
            pr_summaries=2,
            completion_editors=(("vscode", 20), ("jetbrains", 10 + offset)),
        )
        for offset in range(28)
    ]


@pytest.fixture
def roster() -> SeatRoster:
    """200 licensed seats, 10 assigned: 6 with a team and 4 without."""
    hours = lambda value: NOW - dt.timedelta(hours=value)  # noqa: E731
    seats = (
        make_seat(1, hours(2), "vscode", "platform"),
        make_seat(2, None, None, None),
        make_seat(3, hours(24), "vscode", "mobile"),
        make_seat(4, hours(72), "jetbrains", "platform"),
        make_seat(5, hours(7 * 24), "neovim", None),
        make_seat(6, hours(7 * 24 + 1), "vscode", "data"),
        make_seat(7, hours(8 * 24), "jetbrains", "platform"),
        make_seat(8, None, None, None),
        make_seat(9, hours(30 * 24), "vscode", "mobile"),
        make_seat(10, hours(36), None, None),
    )
    return SeatRoster(total_seats=200, seats=seats)
