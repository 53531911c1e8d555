from __future__ import annotations

import asyncio
import datetime as dt
import logging
import os
from typing import Callable, Literal, Optional

from dotenv import load_dotenv

from .copilot_api import GitHubCopilotProvider, MetricsProvider, ProviderConfig, ProviderError
from .dashboard_metrics import CopilotDashboard
from .drill_down import DrillDownNavigator
from .mock_data import MockCopilotProvider

load_dotenv()

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

SessionStatus = Literal["idle", "loading", "ready", "error", "closed"]


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or os.getenv("COPILOT_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=_LOG_FORMAT)


def build_provider(config: Optional[ProviderConfig] = None) -> MetricsProvider:
    """Pick the mock or GitHub provider from configuration."""
    config = config or ProviderConfig.from_env()
    if config.use_mock_data:
        logger.info("Using seeded mock Copilot data (seed=%d)", config.mock_seed)
        return MockCopilotProvider(seed=config.mock_seed)
    return GitHubCopilotProvider(config)


async def load_dashboard(
    provider: MetricsProvider, now: Optional[dt.datetime] = None
) -> CopilotDashboard:
    """Fetch metrics and seats concurrently; fail as a whole if either fails."""
    metrics_task = asyncio.ensure_future(provider.fetch_metrics())
    seats_task = asyncio.ensure_future(provider.fetch_seat_roster())
    try:
        snapshots, roster = await asyncio.gather(metrics_task, seats_task)
    except Exception:
        for task in (metrics_task, seats_task):
            task.cancel()
        await asyncio.gather(metrics_task, seats_task, return_exceptions=True)
        raise
    return CopilotDashboard(snapshots, roster, now=now)


class DashboardSession:
    """One viewer session: a single load, its outcome, and the drill-down state.

    The session is either loading, ready with a complete dashboard, or failed
    with one error message; it never holds partial data. After :meth:`close`
    any load still in flight is discarded.
    """

    def __init__(
        self,
        provider_factory: Callable[[], MetricsProvider] = build_provider,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ) -> None:
        self._provider_factory = provider_factory
        self._clock = clock
        self.status: SessionStatus = "idle"
        self.dashboard: Optional[CopilotDashboard] = None
        self.error: Optional[str] = None
        self.navigator = DrillDownNavigator()
        self._generation = 0

    @property
    def is_ready(self) -> bool:
        return self.status == "ready" and self.dashboard is not None

    async def load(self) -> None:
        if self.status == "closed":
            return
        self._generation += 1
        generation = self._generation
        self.status = "loading"
        self.dashboard = None
        self.error = None
        self.navigator.dismiss()

        provider: Optional[MetricsProvider] = None
        try:
            provider = self._provider_factory()
            now = self._clock() if self._clock else None
            dashboard = await load_dashboard(provider, now=now)
        except ProviderError as exc:
            if generation == self._generation and self.status != "closed":
                logger.error("Copilot data load failed: %s", exc)
                self.status = "error"
                self.error = str(exc)
            return
        finally:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()

        if generation != self._generation or self.status == "closed":
            logger.debug("Discarding Copilot data load %d after teardown", generation)
            return
        self.dashboard = dashboard
        self.status = "ready"
        logger.info(
            "Copilot dashboard ready: %d snapshots, %d seats",
            len(dashboard.snapshots),
            len(dashboard.roster.seats),
        )

    async def reload(self) -> None:
        await self.load()

    def close(self) -> None:
        self.status = "closed"
        self.dashboard = None
        self.navigator.dismiss()


__all__ = [
    "DashboardSession",
    "build_provider",
    "configure_logging",
    "load_dashboard",
]
