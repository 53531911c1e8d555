"""Console report of the Copilot adoption dashboard.

Run with: ``copilot-explorer --mock --seed 7`` or, against the GitHub API,
``COPILOT_ENTERPRISE=octodemo GITHUB_TOKEN=... copilot-explorer``.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import Optional, Sequence

from .copilot_api import MetricsProvider, ProviderConfig, ProviderError
from .dashboard_loader import build_provider, configure_logging, load_dashboard
from .dashboard_metrics import TREND_WINDOW, CopilotDashboard


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarise GitHub Copilot adoption.")
    parser.add_argument("--mock", action="store_true", help="Use seeded demo data instead of the API.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the demo data.")
    parser.add_argument("--days", type=int, default=TREND_WINDOW, help="Days to show in the trend.")
    parser.add_argument("--log-level", default=None, help="Logging level (default: COPILOT_LOG_LEVEL or INFO).")
    return parser.parse_args(argv)


def _config_from_args(args: argparse.Namespace) -> ProviderConfig:
    config = ProviderConfig.from_env()
    if args.mock:
        config = dataclasses.replace(config, use_mock_data=True)
    if args.seed is not None:
        config = dataclasses.replace(config, mock_seed=args.seed)
    return config


def render_report(dashboard: CopilotDashboard, days: int = TREND_WINDOW) -> str:
    return "\n\n".join([dashboard.summary_text(), dashboard.trend_text(days)])


async def _run(provider: MetricsProvider, days: int) -> str:
    try:
        dashboard = await load_dashboard(provider)
    finally:
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            await aclose()
    return render_report(dashboard, days)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)
    try:
        provider = build_provider(_config_from_args(args))
        print(asyncio.run(_run(provider, args.days)))
    except ProviderError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
