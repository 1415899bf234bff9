"""Engine configuration: labor rules, scoring weights and urgency blending.

Values can be overridden from a YAML or JSON file; anything not present in the
file keeps its default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from opsched.errors import ConfigError
from opsched.timeplan import ensure_timezone


@dataclass
class LaborRules:
    min_rest_hours: float = 8.0
    max_hours_week: float = 40.0
    soft_hours_week: float = 35.0  # above this the hours component starts dropping
    max_hours_day: float = 12.0


@dataclass
class ScoringWeights:
    """Maximum points per component and the fallback values used by the scorer."""

    availability: float = 30.0
    availability_outside: float = 10.0
    availability_unknown: float = 20.0
    skills: float = 25.0
    hours: float = 20.0
    hours_near_cap: float = 15.0
    hours_overtime: float = 5.0
    seniority: float = 15.0
    seniority_rank_scale: float = 10.0
    department: float = 10.0


@dataclass
class UrgencyWeights:
    time: float = 0.5
    criticality: float = 0.3
    window: float = 0.2
    overdue_floor: float = 0.8
    overdue_halflife_minutes: float = 60.0


@dataclass
class EngineConfig:
    timezone: str = "UTC"
    horizon_days: int = 14
    database_url: str = "sqlite:///opsched.db"
    log_level: str = "INFO"
    labor_rules: LaborRules = field(default_factory=LaborRules)
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    urgency: UrgencyWeights = field(default_factory=UrgencyWeights)


_SECTIONS = {
    "labor_rules": LaborRules,
    "weights": ScoringWeights,
    "urgency": UrgencyWeights,
}


def _build_section(cls, raw: Any, name: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{name}' must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {sorted(unknown)}")
    values = {}
    for key, value in raw.items():
        try:
            values[key] = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid numeric value '{value}' for '{name}.{key}'") from None
    return cls(**values)


def _read_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def validate_config(cfg: EngineConfig) -> EngineConfig:
    """Check cross-field invariants; raises ConfigError on the first problem."""
    try:
        ensure_timezone(cfg.timezone)
    except ValueError as e:
        raise ConfigError(str(e)) from None

    if cfg.horizon_days < 1:
        raise ConfigError(f"horizon_days must be >= 1, got {cfg.horizon_days}")

    rules = cfg.labor_rules
    for name in ("min_rest_hours", "max_hours_week", "soft_hours_week", "max_hours_day"):
        if getattr(rules, name) < 0:
            raise ConfigError(f"labor_rules.{name} must be non-negative")
    if rules.soft_hours_week > rules.max_hours_week:
        raise ConfigError("labor_rules.soft_hours_week cannot exceed max_hours_week")

    for section in (cfg.weights, cfg.urgency):
        for f in fields(section):
            if getattr(section, f.name) < 0:
                raise ConfigError(f"{f.name} must be non-negative")

    total = cfg.urgency.time + cfg.urgency.criticality + cfg.urgency.window
    if total <= 0 or total > 1.0 + 1e-9:
        raise ConfigError(f"urgency weights must sum to (0, 1], got {total:.3f}")
    if cfg.urgency.overdue_halflife_minutes <= 0:
        raise ConfigError("urgency.overdue_halflife_minutes must be positive")

    return cfg


def load_config(path: Optional[str | Path] = None) -> EngineConfig:
    """
    Load engine configuration from a YAML or JSON file.

    Args:
        path: Config file path. ``None`` returns the defaults.

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If a value is missing its expected type or violates a limit
        FileNotFoundError: If the path does not exist
    """
    if path is None:
        return validate_config(EngineConfig())

    raw = _read_raw(Path(path))
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in _SECTIONS:
            kwargs[key] = _build_section(_SECTIONS[key], value, key)
        elif key == "horizon_days":
            kwargs[key] = int(value)
        elif key in ("timezone", "database_url", "log_level"):
            kwargs[key] = str(value)
        else:
            raise ConfigError(f"Unknown config key '{key}'")

    return validate_config(EngineConfig(**kwargs))
