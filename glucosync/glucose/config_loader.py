"""Load and validate the glucose sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached; the running services keep the copy they were
built with, so edits take effect on restart.

Usage::

    from glucosync.glucose.config_loader import get_sync_config

    config = get_sync_config()
    config.sync.window_days   # 30
    config.metric.unit        # "mg/dL"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

import yaml

logger = logging.getLogger("glucosync.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"

# First day of the task schedule when the YAML does not set one
DEFAULT_SCHEDULE_START = date(2000, 1, 1)


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class MetricConfig:
    """The single synchronized metric."""

    id: str
    unit: str
    min_value: float
    max_value: float
    read_scopes: list[str]
    write_scopes: list[str]

    def accepts(self, value: float) -> bool:
        """Return True if ``value`` is a plausible reading (min exclusive)."""
        return self.min_value < value <= self.max_value


@dataclass
class TaskConfig:
    """The care-plan task that outcomes are recorded against."""

    id: str
    title: str
    instructions: str | None
    schedule_hour: int
    schedule_minute: int
    schedule_start: date


@dataclass
class SyncSettings:
    """Sync engine behaviour."""

    window_days: int
    deduplicate: bool
    background_wake: bool
    interval_seconds: int

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.window_days)


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version: Config schema version string.
        metric:  Metric identity, unit and accepted range.
        task:    Care-plan task definition.
        sync:    Window, dedup and trigger settings.
    """

    version: str
    metric: MetricConfig
    task: TaskConfig
    sync: SyncSettings
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError:     If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    def _number(section: str, d: dict, key: str, default: float) -> float:
        val = d.get(key, default)
        try:
            return float(val)
        except (TypeError, ValueError):
            errors.append(f"{section}.{key} must be a number, got {val!r}")
            return default

    def _integer(section: str, d: dict, key: str, default: int) -> int:
        val = d.get(key, default)
        if isinstance(val, bool):
            errors.append(f"{section}.{key} must be an integer, got {val!r}")
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            errors.append(f"{section}.{key} must be an integer, got {val!r}")
            return default

    def _date(section: str, d: dict, key: str, default: date) -> date:
        val = d.get(key, default)
        if isinstance(val, datetime):
            return val.date()
        if isinstance(val, date):
            return val
        try:
            return date.fromisoformat(str(val))
        except ValueError:
            errors.append(f"{section}.{key} must be an ISO date, got {val!r}")
            return default

    def _scopes(d: dict, key: str, default: list[str]) -> list[str]:
        val = d.get(key, default)
        if val is None:
            return []
        if not isinstance(val, list) or not all(isinstance(s, str) for s in val):
            errors.append(f"metric.{key} must be a list of strings, got {val!r}")
            return []
        return list(val)

    version = str(raw.get("version", "1.0"))

    # ── Metric ──
    metric_raw = raw.get("metric") or {}
    metric_id = metric_raw.get("id")
    if not metric_id:
        errors.append("'metric.id' is missing or empty")
    unit = metric_raw.get("unit") or "mg/dL"
    metric = MetricConfig(
        id=str(metric_id or ""),
        unit=str(unit),
        min_value=_number("metric", metric_raw, "min_value", 0.0),
        max_value=_number("metric", metric_raw, "max_value", 1000.0),
        read_scopes=_scopes(metric_raw, "read_scopes", [str(metric_id or "")]),
        write_scopes=_scopes(metric_raw, "write_scopes", [str(metric_id or "")]),
    )
    if metric.min_value >= metric.max_value:
        errors.append(
            f"metric.min_value ({metric.min_value}) must be below "
            f"metric.max_value ({metric.max_value})"
        )

    # ── Task ──
    task_raw = raw.get("task") or {}
    task_id = task_raw.get("id")
    if not task_id:
        errors.append("'task.id' is missing or empty")
    schedule_raw = task_raw.get("schedule") or {}
    task = TaskConfig(
        id=str(task_id or ""),
        title=str(task_raw.get("title") or task_id or ""),
        instructions=task_raw.get("instructions"),
        schedule_hour=_integer("task.schedule", schedule_raw, "hour", 0),
        schedule_minute=_integer("task.schedule", schedule_raw, "minute", 0),
        schedule_start=_date("task.schedule", schedule_raw, "start_date", DEFAULT_SCHEDULE_START),
    )
    if not 0 <= task.schedule_hour <= 23:
        errors.append(f"task.schedule.hour = {task.schedule_hour} is out of range [0, 23]")
    if not 0 <= task.schedule_minute <= 59:
        errors.append(
            f"task.schedule.minute = {task.schedule_minute} is out of range [0, 59]"
        )

    # ── Sync ──
    sync_raw = raw.get("sync") or {}
    sync = SyncSettings(
        window_days=_integer("sync", sync_raw, "window_days", 30),
        deduplicate=bool(sync_raw.get("deduplicate", True)),
        background_wake=bool(sync_raw.get("background_wake", True)),
        interval_seconds=_integer("sync", sync_raw, "interval_seconds", 3600),
    )
    if sync.window_days <= 0:
        errors.append(f"sync.window_days must be positive, got {sync.window_days}")
    if sync.interval_seconds < 0:
        errors.append(
            f"sync.interval_seconds must not be negative, got {sync.interval_seconds}"
        )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(version=version, metric=metric, task=task, sync=sync, _raw=raw)


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.

    Returns:
        Validated SyncConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global cache
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the cached SyncConfig, loading it on first call.

    Thread-safe.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config

