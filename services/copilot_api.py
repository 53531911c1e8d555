"""Fetch GitHub Copilot metrics and seat assignments.

The dashboard depends only on the :class:`MetricsProvider` contract: two
independent coroutines that either return validated snapshots or raise
:class:`ProviderError`. :class:`GitHubCopilotProvider` talks to the REST API;
the seeded mock in :mod:`services.mock_data` serves offline demos and tests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from .copilot_models import DailyMetricSnapshot, Seat, SeatRoster

logger = logging.getLogger(__name__)

_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_API_VERSION = "2022-11-28"
_SEATS_PAGE_SIZE = 100
_SCOPES = {"enterprises", "orgs"}

_SNAPSHOTS = TypeAdapter(list[DailyMetricSnapshot])
_SEATS = TypeAdapter(list[Seat])


class ProviderError(RuntimeError):
    """Raised when metrics or seats cannot be fetched or parsed."""


class ProviderConfigError(ProviderError):
    """Raised when the provider is missing required configuration."""


class MetricsProvider(Protocol):
    async def fetch_metrics(self) -> list[DailyMetricSnapshot]: ...

    async def fetch_seat_roster(self) -> SeatRoster: ...


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for the upstream Copilot API."""

    slug: Optional[str]
    token: Optional[str] = None
    scope: str = "enterprises"
    api_url: str = _DEFAULT_API_URL
    api_version: str = _DEFAULT_API_VERSION
    timeout: float = 30.0
    use_mock_data: bool = False
    mock_seed: int = 42

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        timeout_raw = os.getenv("COPILOT_HTTP_TIMEOUT", "30")
        seed_raw = os.getenv("COPILOT_MOCK_SEED", "42")
        try:
            timeout = float(timeout_raw)
        except ValueError as exc:
            raise ProviderConfigError(
                f"COPILOT_HTTP_TIMEOUT must be a number of seconds, got '{timeout_raw}'"
            ) from exc
        try:
            seed = int(seed_raw)
        except ValueError as exc:
            raise ProviderConfigError(
                f"COPILOT_MOCK_SEED must be an integer, got '{seed_raw}'"
            ) from exc
        return cls(
            slug=os.getenv("COPILOT_ENTERPRISE") or None,
            token=os.getenv("GITHUB_TOKEN") or None,
            scope=os.getenv("COPILOT_SCOPE", "enterprises").strip().lower(),
            api_url=os.getenv("GITHUB_API_URL", _DEFAULT_API_URL),
            api_version=os.getenv("GITHUB_API_VERSION", _DEFAULT_API_VERSION),
            timeout=timeout,
            use_mock_data=_env_flag("COPILOT_USE_MOCK_DATA"),
            mock_seed=seed,
        )

    def validate(self) -> None:
        if not self.slug:
            raise ProviderConfigError(
                "No enterprise configured. Set COPILOT_ENTERPRISE or enable COPILOT_USE_MOCK_DATA."
            )
        if self.scope not in _SCOPES:
            raise ProviderConfigError(
                f"COPILOT_SCOPE must be one of {', '.join(sorted(_SCOPES))}, got '{self.scope}'"
            )


def parse_metrics(payload: Any) -> list[DailyMetricSnapshot]:
    """Validate a metrics payload and check its date ordering."""
    try:
        snapshots = _SNAPSHOTS.validate_python(payload)
    except ValidationError as exc:
        raise ProviderError(f"Malformed metrics payload: {exc}") from exc
    for previous, current in zip(snapshots, snapshots[1:]):
        if current.date <= previous.date:
            raise ProviderError(
                "Malformed metrics payload: dates must be strictly ascending "
                f"({previous.date.isoformat()} followed by {current.date.isoformat()})"
            )
    return snapshots


def _seat_page(payload: Any) -> tuple[dict[str, Any], list[Any]]:
    """Split one seats page into the page object and its seat list."""
    if not isinstance(payload, dict):
        raise ProviderError("Malformed seats payload: expected a JSON object")
    seats = payload.get("seats")
    if seats is None:
        return payload, []
    if not isinstance(seats, list):
        raise ProviderError(
            f"Malformed seats payload: 'seats' must be a list, got {type(seats).__name__}"
        )
    return payload, seats


def parse_seat_roster(payload: Any, extra_seats: Sequence[Any] = ()) -> SeatRoster:
    """Validate a seats payload, appending seats collected from later pages."""
    page, seats = _seat_page(payload)
    try:
        validated = _SEATS.validate_python([*seats, *extra_seats])
        return SeatRoster(total_seats=page.get("total_seats", 0), seats=tuple(validated))
    except ValidationError as exc:
        raise ProviderError(f"Malformed seats payload: {exc}") from exc


class GitHubCopilotProvider:
    """Reads Copilot metrics and seats from the GitHub REST API."""

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        config.validate()
        self.config = config
        self._client = client
        self._owns_client = client is None

    @property
    def base_path(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/{self.config.scope}/{self.config.slug}/copilot"

    async def fetch_metrics(self) -> list[DailyMetricSnapshot]:
        payload = await self._get_json("/metrics")
        snapshots = parse_metrics(payload)
        logger.info("Fetched %d daily metric snapshots for %s", len(snapshots), self.config.slug)
        return snapshots

    async def fetch_seat_roster(self) -> SeatRoster:
        first, first_seats = _seat_page(
            await self._get_json("/billing/seats", params={"per_page": _SEATS_PAGE_SIZE, "page": 1})
        )

        total = first.get("total_seats", 0)
        collected = len(first_seats)
        extra: list[Any] = []
        page = 1
        while isinstance(total, int) and collected < total:
            page += 1
            payload = await self._get_json(
                "/billing/seats", params={"per_page": _SEATS_PAGE_SIZE, "page": page}
            )
            _, batch = _seat_page(payload)
            if not batch:
                break
            extra.extend(batch)
            collected += len(batch)

        roster = parse_seat_roster(first, extra)
        logger.info(
            "Fetched %d assigned seats of %d for %s",
            len(roster.seats),
            roster.total_seats,
            self.config.slug,
        )
        return roster

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.config.api_version,
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self.base_path}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = await self._get_client().get(url, params=params, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("Copilot API returned %s for %s", status, url)
            raise ProviderError(
                f"Copilot API returned {status} for {path}: {exc.response.text[:200]}"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Unable to reach Copilot API at %s: %s", url, exc)
            raise ProviderError(f"Unable to reach Copilot API: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"Copilot API returned invalid JSON for {path}") from exc


__all__ = [
    "GitHubCopilotProvider",
    "MetricsProvider",
    "ProviderConfig",
    "ProviderConfigError",
    "ProviderError",
    "parse_metrics",
    "parse_seat_roster",
]
