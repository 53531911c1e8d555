"""HTTP API over one Copilot dashboard session.

Card, trend and roster endpoints read the loaded dashboard; the ``/drilldown``
routes drive the session's navigator and return the resolved detail view.

Run with: ``copilot-explorer-api`` or ``uvicorn api.dashboard_server:app``.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from services.copilot_api import MetricsProvider
from services.dashboard_loader import DashboardSession, build_provider, configure_logging
from services.dashboard_metrics import (
    TREND_WINDOW,
    CardSummary,
    CopilotDashboard,
    Distributions,
    FeatureEngagement,
    RosterRow,
    TrendPoint,
)
from services.drill_down import DrillDownState, resolve_view, state_params
from services.metrics_registry import MetricsRegistry, MetricsRegistryError

logger = logging.getLogger(__name__)


def create_app(
    provider_factory: Callable[[], MetricsProvider] = build_provider,
    clock: Optional[Callable[[], dt.datetime]] = None,
    registry_path: Optional[Path] = None,
) -> FastAPI:
    """Build the dashboard API around a single viewer session."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session: DashboardSession = app.state.session
        await session.load()
        try:
            yield
        finally:
            session.close()

    app = FastAPI(title="Copilot Value Explorer API", version="1.0.0", lifespan=lifespan)
    app.state.session = DashboardSession(provider_factory=provider_factory, clock=clock)
    try:
        app.state.registry = MetricsRegistry(registry_path)
        app.state.registry_error = None
    except MetricsRegistryError as exc:
        logger.warning("Metrics registry unavailable: %s", exc)
        app.state.registry = None
        app.state.registry_error = exc

    _register_routes(app)
    return app


def _get_session(request: Request) -> DashboardSession:
    return request.app.state.session


def _ensure_dashboard(session: DashboardSession = Depends(_get_session)) -> CopilotDashboard:
    if session.status == "error":
        raise HTTPException(status_code=503, detail=f"Copilot data unavailable: {session.error}")
    if not session.is_ready or session.dashboard is None:
        raise HTTPException(status_code=503, detail="Copilot data is not loaded yet.")
    return session.dashboard


def _ensure_registry(request: Request) -> MetricsRegistry:
    error = request.app.state.registry_error
    if error is not None:
        raise HTTPException(status_code=503, detail=f"Metrics registry unavailable: {error}")
    return request.app.state.registry


def _drilldown_payload(request: Request, state: DrillDownState, dashboard: CopilotDashboard) -> Dict[str, Any]:
    registry: Optional[MetricsRegistry] = request.app.state.registry
    definitions = registry.for_view(state.kind) if registry is not None else []
    return {
        "view": state.kind,
        "params": state_params(state),
        "detail": resolve_view(state, dashboard),
        "definitions": [metric.as_bullet() for metric in definitions],
    }


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=Dict[str, Optional[str]])
    def healthcheck(request: Request) -> Dict[str, Optional[str]]:
        session = _get_session(request)
        return {
            "status": "ok",
            "dashboard": session.status,
            "error": session.error,
            "metrics": "error" if request.app.state.registry_error is not None else "ready",
        }

    @app.get("/dashboard/cards")
    def cards(dashboard: CopilotDashboard = Depends(_ensure_dashboard)) -> CardSummary:
        return dashboard.card_summary()

    @app.get("/dashboard/trend")
    def trend(
        limit: int = Query(TREND_WINDOW, ge=1, le=366),
        dashboard: CopilotDashboard = Depends(_ensure_dashboard),
    ) -> List[TrendPoint]:
        return dashboard.trend_series(limit)

    @app.get("/dashboard/features")
    def features(dashboard: CopilotDashboard = Depends(_ensure_dashboard)) -> List[FeatureEngagement]:
        return dashboard.feature_engagement()

    @app.get("/dashboard/distributions")
    def distributions(dashboard: CopilotDashboard = Depends(_ensure_dashboard)) -> Distributions:
        return dashboard.distributions()

    @app.get("/dashboard/roster")
    def roster(dashboard: CopilotDashboard = Depends(_ensure_dashboard)) -> List[RosterRow]:
        return dashboard.roster_rows()

    @app.get("/drilldown")
    def current_drilldown(
        request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        return _drilldown_payload(request, _get_session(request).navigator.state, dashboard)

    @app.post("/drilldown/cards/{card}")
    def open_card(
        card: str, request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        navigator = _get_session(request).navigator
        try:
            state = navigator.open_card(card)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _drilldown_payload(request, state, dashboard)

    @app.post("/drilldown/trend/{day}")
    def select_trend_point(
        day: dt.date, request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        state = _get_session(request).navigator.select_trend_point(day)
        return _drilldown_payload(request, state, dashboard)

    @app.post("/drilldown/features/{feature_key}")
    def select_feature(
        feature_key: str, request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        state = _get_session(request).navigator.select_feature(feature_key)
        return _drilldown_payload(request, state, dashboard)

    @app.post("/drilldown/users/{user_id}")
    def select_user(
        user_id: int, request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        state = _get_session(request).navigator.select_user(user_id)
        return _drilldown_payload(request, state, dashboard)

    @app.delete("/drilldown")
    def dismiss(
        request: Request, dashboard: CopilotDashboard = Depends(_ensure_dashboard)
    ) -> Dict[str, Any]:
        state = _get_session(request).navigator.dismiss()
        return _drilldown_payload(request, state, dashboard)

    @app.post("/reload", response_model=Dict[str, Optional[str]])
    async def reload(request: Request) -> Dict[str, Optional[str]]:
        session = _get_session(request)
        await session.reload()
        return {"dashboard": session.status, "error": session.error}

    @app.get("/metrics", response_model=Dict[str, str])
    def metrics_catalog(
        view: Optional[str] = None, registry: MetricsRegistry = Depends(_ensure_registry)
    ) -> Dict[str, str]:
        selected = registry.for_view(view) if view else registry.describe_metrics().values()
        return {definition.key: definition.as_bullet() for definition in selected}


app = create_app()


# Convenience entry point ----------------------------------------------------

def run(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the dashboard API using uvicorn."""

    import uvicorn

    configure_logging()
    uvicorn.run("api.dashboard_server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    run()
