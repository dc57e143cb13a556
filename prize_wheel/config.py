"""YAML configuration for the prize wheel engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .pacing import PacingCurve, PacingSettings
from .selector import VALID_MODES, CategoryShares


CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


class EngineConfigError(RuntimeError):
    """Raised when the engine configuration is invalid."""


@dataclass(frozen=True)
class StreakLimits:
    """Caps on consecutive same-class outcomes; 0 disables a cap."""

    max_real: int = 0
    max_filler: int = 0


@dataclass(frozen=True)
class EngineConfig:
    """Normalized engine configuration values."""

    data_dir: Path
    mode: int = 3
    dry_run: bool = False
    auto_rotate: bool = True
    mode_poll_interval: float = 5.0
    pacing: PacingSettings = field(default_factory=PacingSettings)
    streaks: StreakLimits = field(default_factory=StreakLimits)
    shares: CategoryShares = field(default_factory=CategoryShares)


def _require_mapping(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise EngineConfigError(f"{name} must be a mapping.")
    return value


def _number(data: dict, key: str, default: float, name: str) -> float:
    try:
        value = float(data.get(key, default))
    except (TypeError, ValueError) as exc:
        raise EngineConfigError(f"{name}.{key} must be numeric.") from exc
    if not math.isfinite(value):
        raise EngineConfigError(f"{name}.{key} must be finite.")
    return value


def _count(data: dict, key: str, default: int, name: str) -> int:
    try:
        value = int(data.get(key, default))
    except (TypeError, ValueError) as exc:
        raise EngineConfigError(f"{name}.{key} must be an integer.") from exc
    if value < 0:
        raise EngineConfigError(f"{name}.{key} must be zero or greater.")
    return value


def _parse_pacing(data: dict, schedule: dict) -> PacingSettings:
    min_prob = _number(data, "min_prob", 0.10, "pacing")
    max_prob = _number(data, "max_prob", 0.90, "pacing")
    if not (0.0 <= min_prob <= max_prob <= 1.0):
        raise EngineConfigError("pacing.min_prob and pacing.max_prob must satisfy 0 <= min <= max <= 1.")

    strength = _number(data, "adjustment_strength", 0.5, "pacing")
    expected = _count(data, "expected_spins_per_day", 500, "pacing")
    planned = _count(data, "planned_spins", 0, "pacing")

    source = str(data.get("progress_source", "clock")).strip().lower()
    if source not in {"clock", "spins"}:
        raise EngineConfigError("pacing.progress_source must be 'clock' or 'spins'.")

    curve_raw = data.get("curve")
    if curve_raw is None:
        curve = PacingCurve.linear()
    else:
        if not isinstance(curve_raw, (list, tuple)) or not curve_raw:
            raise EngineConfigError("pacing.curve must be a non-empty list of [t, value] pairs.")
        try:
            curve = PacingCurve.from_points(curve_raw)
        except (TypeError, ValueError) as exc:
            raise EngineConfigError("pacing.curve must be a list of numeric [t, value] pairs.") from exc

    start_hour = _number(schedule, "day_start_hour", 11.0, "schedule")
    end_hour = _number(schedule, "day_end_hour", 20.0, "schedule")
    for name, value in {"day_start_hour": start_hour, "day_end_hour": end_hour}.items():
        if not 0.0 <= value <= 24.0:
            raise EngineConfigError(f"schedule.{name} must be within [0, 24].")

    return PacingSettings(
        min_prob=min_prob,
        max_prob=max_prob,
        adjustment_strength=strength,
        expected_spins_per_day=expected,
        planned_spins=planned,
        curve=curve,
        progress_source=source,
        day_start_hour=start_hour,
        day_end_hour=end_hour,
    )


def _parse_shares(data: dict) -> CategoryShares:
    shares = CategoryShares(
        small=_number(data, "small", 0.8, "category_shares"),
        medium=_number(data, "medium", 0.1, "category_shares"),
        large=_number(data, "large", 0.1, "category_shares"),
    )
    if min(shares.small, shares.medium, shares.large) < 0:
        raise EngineConfigError("category_shares values must be zero or greater.")
    return shares


def parse_config(data: dict, base_dir: Path) -> EngineConfig:
    """Validate a raw configuration mapping."""

    if not isinstance(data, dict):
        raise EngineConfigError("Configuration root must be a mapping.")

    data_dir = Path(str(data.get("data_dir", "data"))).expanduser()
    if not data_dir.is_absolute():
        data_dir = (base_dir / data_dir).resolve()

    try:
        mode = int(data.get("mode", 3))
    except (TypeError, ValueError) as exc:
        raise EngineConfigError("mode must be an integer.") from exc
    if mode not in VALID_MODES:
        raise EngineConfigError("mode must be one of 1, 2 or 3.")

    poll_interval = _number(data, "mode_poll_interval", 5.0, "config")
    if poll_interval < 0:
        raise EngineConfigError("mode_poll_interval must be zero or greater.")

    streaks_cfg = _require_mapping(data.get("streaks"), "streaks")

    return EngineConfig(
        data_dir=data_dir,
        mode=mode,
        dry_run=bool(data.get("dry_run", False)),
        auto_rotate=bool(data.get("auto_rotate", True)),
        mode_poll_interval=poll_interval,
        pacing=_parse_pacing(
            _require_mapping(data.get("pacing"), "pacing"),
            _require_mapping(data.get("schedule"), "schedule"),
        ),
        streaks=StreakLimits(
            max_real=_count(streaks_cfg, "max_real", 0, "streaks"),
            max_filler=_count(streaks_cfg, "max_filler", 0, "streaks"),
        ),
        shares=_parse_shares(_require_mapping(data.get("category_shares"), "category_shares")),
    )


def load_config(config_path: Optional[Path] = None) -> EngineConfig:
    """Load the engine configuration from YAML and validate it."""

    path = Path(config_path or CONFIG_PATH).expanduser()
    if not path.is_absolute():
        path = path.resolve()
    if not path.exists():
        raise EngineConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise EngineConfigError(f"Config file is not valid YAML: {exc}") from exc

    return parse_config(data, path.parent)
