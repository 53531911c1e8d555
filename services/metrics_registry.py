"""Catalogue of the dashboard's metric definitions, read from YAML.

Each entry names the payload it is computed from (``metrics``, ``seats`` or
``derived``) and the drill-down views that display it, so a detail panel can
show the definitions of the numbers it renders.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

_REGISTRY_ENV = "COPILOT_METRICS_REGISTRY"
_DEFAULT_PATH = Path(__file__).resolve().parent.parent / "config" / "metrics.yaml"
_SOURCES = ("metrics", "seats", "derived")
_REQUIRED_FIELDS = ("name", "definition", "source", "unit")


class MetricsRegistryError(RuntimeError):
    """Raised when the metrics registry cannot be loaded."""


@dataclass(frozen=True)
class MetricDefinition:
    key: str
    name: str
    definition: str
    source: str
    unit: str
    views: tuple[str, ...] = ()

    def as_bullet(self) -> str:
        return f"{self.name} ({self.unit}, from {self.source}): {self.definition.strip()}"


def registry_path() -> Path:
    override = os.getenv(_REGISTRY_ENV)
    return Path(override).expanduser() if override else _DEFAULT_PATH


def _parse_entry(key: str, entry: Any) -> MetricDefinition:
    if not isinstance(entry, dict):
        raise MetricsRegistryError(f"Metric '{key}' must be a mapping")
    missing = [name for name in _REQUIRED_FIELDS if name not in entry]
    if missing:
        raise MetricsRegistryError(f"Metric '{key}' is missing {', '.join(missing)}")
    source = str(entry["source"])
    if source not in _SOURCES:
        raise MetricsRegistryError(f"Metric '{key}' has unknown source '{source}'")
    views = entry.get("views") or []
    if not isinstance(views, list):
        raise MetricsRegistryError(f"Metric '{key}' lists views as {type(views).__name__}, not a list")
    return MetricDefinition(
        key=key,
        name=str(entry["name"]),
        definition=" ".join(str(entry["definition"]).split()),
        source=source,
        unit=str(entry["unit"]),
        views=tuple(str(view) for view in views),
    )


def _parse_catalogue(path: Path) -> Dict[str, MetricDefinition]:
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise MetricsRegistryError(f"Unable to parse metrics file {path}: {exc}") from exc
    entries = document.get("metrics") if isinstance(document, dict) else None
    if not isinstance(entries, dict):
        raise MetricsRegistryError(f"Metrics file {path} has no 'metrics' mapping")
    return {str(key): _parse_entry(str(key), entry) for key, entry in entries.items()}


class MetricsRegistry:
    """Metric definitions keyed by metric id, in file order."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else registry_path()
        if not self.path.is_file():
            raise MetricsRegistryError(
                f"Metrics registry not found at {self.path}. Set {_REGISTRY_ENV}."
            )
        self._metrics = _parse_catalogue(self.path)

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._metrics

    def describe_metrics(self, metric_ids: Optional[Iterable[str]] = None) -> Dict[str, MetricDefinition]:
        if metric_ids is None:
            return dict(self._metrics)
        return {key: self._metrics[key] for key in metric_ids if key in self._metrics}

    def for_view(self, view: str) -> List[MetricDefinition]:
        """Definitions shown by one drill-down view."""
        return [metric for metric in self._metrics.values() if view in metric.views]

    def as_markdown(self, metric_ids: Optional[Iterable[str]] = None) -> str:
        selected = self.describe_metrics(metric_ids)
        if not selected:
            return "No metric definitions available for the requested identifiers."
        return "\n".join(["Metric catalogue:", *(f"- {metric.as_bullet()}" for metric in selected.values())])


__all__ = ["MetricDefinition", "MetricsRegistry", "MetricsRegistryError", "registry_path"]
