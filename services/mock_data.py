"""Seeded demo data shaped like the GitHub Copilot payloads.

Equal seeds and reference dates always yield equal snapshots, so demo
fixtures are reproducible in tests.
"""

from __future__ import annotations

import datetime as dt
import random
from typing import Optional

from .copilot_models import (
    Assignee,
    DailyMetricSnapshot,
    EditorEngagement,
    FeatureMetrics,
    Seat,
    SeatRoster,
    Team,
)

MOCK_TEAMS = ("platform", "payments", "mobile", "data-science")
MOCK_EDITORS = ("vscode", "jetbrains", "neovim", "visualstudio")
_LOGIN_PREFIXES = ("octo", "hubber", "mona", "dev", "coder")


def _split(total: int, parts: int, rng: random.Random) -> list[int]:
    """Split ``total`` into ``parts`` non-negative integers."""
    if parts <= 0:
        return []
    cuts = sorted(rng.randint(0, total) for _ in range(parts - 1))
    bounds = [0, *cuts, total]
    return [high - low for low, high in zip(bounds, bounds[1:])]


def _editor_breakdown(total: int, rng: random.Random) -> tuple[EditorEngagement, ...]:
    counts = _split(total, len(MOCK_EDITORS), rng)
    return tuple(
        EditorEngagement(name=name, total_engaged_users=count)
        for name, count in zip(MOCK_EDITORS, counts)
        if count > 0
    )


def generate_mock_metrics(
    seed: int = 42,
    days: int = 28,
    today: Optional[dt.date] = None,
    total_seats: int = 200,
) -> list[DailyMetricSnapshot]:
    """Return ``days`` ascending daily snapshots ending the day before ``today``."""
    rng = random.Random(seed)
    end = (today or dt.date.today()) - dt.timedelta(days=1)
    snapshots: list[DailyMetricSnapshot] = []
    for offset in range(days - 1, -1, -1):
        day = end - dt.timedelta(days=offset)
        weekend = day.weekday() >= 5
        ceiling = total_seats // 4 if weekend else total_seats * 3 // 4
        active = rng.randint(ceiling // 2, max(ceiling, 1))
        engaged = rng.randint(active * 3 // 4, active)
        completions = rng.randint(engaged * 2 // 3, engaged)
        ide_chat = rng.randint(engaged // 3, engaged * 2 // 3)
        snapshots.append(
            DailyMetricSnapshot(
                date=day,
                total_active_users=active,
                total_engaged_users=engaged,
                code_completions=FeatureMetrics(
                    total_engaged_users=completions,
                    editors=_editor_breakdown(completions, rng),
                ),
                ide_chat=FeatureMetrics(
                    total_engaged_users=ide_chat,
                    editors=_editor_breakdown(ide_chat, rng),
                ),
                dotcom_chat=FeatureMetrics(total_engaged_users=rng.randint(0, engaged // 4)),
                pull_request_summaries=FeatureMetrics(
                    total_engaged_users=rng.randint(0, engaged // 6)
                ),
            )
        )
    return snapshots


def generate_mock_roster(
    seed: int = 42,
    total_seats: int = 200,
    assigned: Optional[int] = None,
    now: Optional[dt.datetime] = None,
) -> SeatRoster:
    """Return a roster with ``assigned`` seats drawn from ``total_seats``."""
    rng = random.Random(seed + 1)
    now = now or dt.datetime.now(dt.timezone.utc)
    if assigned is None:
        assigned = total_seats * 9 // 10
    assigned = max(0, min(assigned, total_seats))

    seats: list[Seat] = []
    for index in range(assigned):
        user_id = 1000 + index
        login = f"{rng.choice(_LOGIN_PREFIXES)}-{index:03d}"
        created_at = now - dt.timedelta(days=rng.randint(30, 365), hours=rng.randint(0, 23))

        roll = rng.random()
        if roll < 0.1:
            last_activity_at = None
        elif roll < 0.55:
            last_activity_at = now - dt.timedelta(hours=rng.randint(0, 23))
        elif roll < 0.85:
            last_activity_at = now - dt.timedelta(days=rng.randint(2, 7))
        else:
            last_activity_at = now - dt.timedelta(days=rng.randint(8, 60))

        editor = None if last_activity_at is None else rng.choice(MOCK_EDITORS)
        team = rng.choice((*MOCK_TEAMS, None))
        seats.append(
            Seat(
                assignee=Assignee(
                    login=login,
                    id=user_id,
                    avatar_url=f"https://avatars.githubusercontent.com/u/{user_id}",
                ),
                created_at=created_at,
                last_activity_at=last_activity_at,
                last_activity_editor=editor,
                assigning_team=Team(name=team) if team else None,
            )
        )
    return SeatRoster(total_seats=total_seats, seats=tuple(seats))


class MockCopilotProvider:
    """Offline provider backed by the seeded generators above."""

    def __init__(
        self,
        seed: int = 42,
        today: Optional[dt.date] = None,
        days: int = 28,
        total_seats: int = 200,
    ) -> None:
        self.seed = seed
        self.today = today or dt.date.today()
        self.days = days
        self.total_seats = total_seats

    async def fetch_metrics(self) -> list[DailyMetricSnapshot]:
        return generate_mock_metrics(
            seed=self.seed, days=self.days, today=self.today, total_seats=self.total_seats
        )

    async def fetch_seat_roster(self) -> SeatRoster:
        now = dt.datetime.combine(self.today, dt.time(12, 0), tzinfo=dt.timezone.utc)
        return generate_mock_roster(seed=self.seed, total_seats=self.total_seats, now=now)


__all__ = [
    "MOCK_EDITORS",
    "MOCK_TEAMS",
    "MockCopilotProvider",
    "generate_mock_metrics",
    "generate_mock_roster",
]
