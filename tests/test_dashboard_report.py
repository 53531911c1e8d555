"""Tests for the console report entry point."""

import asyncio

import pytest

from conftest import NOW
from services import dashboard_report
from services.copilot_api import ProviderConfig, ProviderError
from services.copilot_models import SeatRoster
from services.dashboard_metrics import CopilotDashboard
from services.dashboard_report import main, render_report
from services.mock_data import MockCopilotProvider


def test_render_report(snapshots, roster) -> None:
    text = render_report(CopilotDashboard(snapshots, roster, now=NOW), days=2)
    summary, trend = text.split("\n\n")
    assert summary.startswith("Copilot adoption as of 2024-06-28:")
    assert trend.splitlines() == [
        "Active and engaged users, last 2 days:",
        "- Jun 27: 77 active, 66 engaged",
        "- Jun 28: 78 active, 67 engaged",
    ]


def test_main_with_mock_data(capsys: pytest.CaptureFixture) -> None:
    assert main(["--mock", "--seed", "7", "--days", "5"]) == 0
    out = capsys.readouterr().out
    assert "Copilot adoption as of" in out
    assert "- Total seats: 200 (180 assigned, 20 available)" in out
    assert "last 5 days" in out


def test_main_reports_missing_configuration(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    monkeypatch.delenv("COPILOT_ENTERPRISE", raising=False)
    monkeypatch.delenv("COPILOT_USE_MOCK_DATA", raising=False)
    assert main([]) == 1
    assert "Error: No enterprise configured" in capsys.readouterr().err


def test_main_builds_provider_from_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    """--mock and --seed override the environment and the provider is closed afterwards."""
    monkeypatch.setenv("COPILOT_MOCK_SEED", "42")
    monkeypatch.delenv("COPILOT_USE_MOCK_DATA", raising=False)
    built = []
    providers = []

    class ClosingProvider(MockCopilotProvider):
        closed = False

        async def aclose(self) -> None:
            self.closed = True

    def fake_build_provider(config: ProviderConfig) -> ClosingProvider:
        built.append(config)
        providers.append(ClosingProvider(seed=config.mock_seed))
        return providers[-1]

    monkeypatch.setattr(dashboard_report, "build_provider", fake_build_provider)

    assert main(["--mock", "--seed", "7"]) == 0
    (config,) = built
    assert config.use_mock_data is True
    assert config.mock_seed == 7
    assert providers[0].closed


def test_run_closes_provider_after_failure() -> None:
    class FailingProvider:
        closed = False

        async def fetch_metrics(self):
            raise ProviderError("Unable to reach Copilot API")

        async def fetch_seat_roster(self):
            return SeatRoster()

        async def aclose(self) -> None:
            self.closed = True

    provider = FailingProvider()
    with pytest.raises(ProviderError):
        asyncio.run(dashboard_report._run(provider, 3))
    assert provider.closed
