"""Engine configuration and environment setup."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from qos_report.utils.types import SeriesMeasure

type ConfigDict = dict[str, str | int | bool | list[str]]


@dataclass(frozen=True)
class AxisScale:
    step: int
    floor: int


@dataclass(frozen=True)
class EngineConfig:
    lookback_months: int
    ppm_scale: int
    axis_scales: dict[SeriesMeasure, AxisScale]
    ppm_average_period: int
    log_level: str


def load_engine_config(env: str = "production") -> EngineConfig:
    match env:
        case "production" | "staging":
            log_level = "INFO"
        case "development":
            log_level = "DEBUG"
        case other:
            raise ValueError(f"Unknown environment: {other}")

    return EngineConfig(
        lookback_months=12,
        ppm_scale=1_000_000,
        axis_scales={
            SeriesMeasure.NOTIFICATIONS: AxisScale(step=20, floor=100),
            SeriesMeasure.DEFECTS: AxisScale(step=100, floor=1000),
        },
        ppm_average_period=3,
        log_level=log_level,
    )


def get_env_config() -> ConfigDict:
    """Read engine config from pyproject.toml."""
    pyproject = Path(__file__).parent.parent / "pyproject.toml"
    if not pyproject.exists():
        return {}
    with open(pyproject, "rb") as f:
        data = tomllib.load(f)
    return data.get("tool", {}).get("qos_report", {})


DEFAULT_CONFIG = load_engine_config()
