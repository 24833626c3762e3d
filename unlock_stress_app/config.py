"""
Tuning constants for the unlock stress model.

All values are empirical calibrations. They can be overridden per run by
passing a different `StressModelConstants` to the engine, or process-wide
through `UNLOCK_STRESS_<FIELD>` environment variables.
"""

import os
from dataclasses import dataclass, fields, replace

ENV_PREFIX = "UNLOCK_STRESS_"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass(frozen=True)
class StressModelConstants:
    """Calibration of the multi-day depth-impact model."""
    default_sell_ratio: float = 0.2
    default_sell_days: int = 7

    impact_scale: float = 0.4
    # Share of the net depth drop that turns into realised price impact
    max_daily_impact_pct: float = 50.0
    # Hard ceiling on a single day's impact

    imbalance_weight: float = 0.25
    flow_pressure_weight: float = 0.5
    neutral_sell_flow_ratio: float = 0.5

    refill_threshold_usd: float = 20_000_000.0
    refill_multiplier_shallow: float = 1.1
    # Applied to buckets below the threshold
    refill_multiplier_deep: float = 1.4
    # Applied to buckets at or above the threshold

    volatility_feedback: float = 0.3
    sigma_cap: float = 0.10

    extrapolation_default_slope: float = 1.0
    # USD per percentage point when the curve has a single bucket


DEFAULT_CONSTANTS = StressModelConstants()


def constants_from_env(environ=None) -> StressModelConstants:
    """Return DEFAULT_CONSTANTS with any UNLOCK_STRESS_* overrides applied."""
    env = os.environ if environ is None else environ
    overrides = {}
    for f in fields(StressModelConstants):
        raw = env.get(ENV_PREFIX + f.name.upper())
        if raw is None or not raw.strip():
            continue
        try:
            overrides[f.name] = int(raw) if f.type in (int, "int") else float(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be numeric, got {raw!r}") from None
    return replace(DEFAULT_CONSTANTS, **overrides)


def server_address(environ=None):
    env = os.environ if environ is None else environ
    host = env.get(ENV_PREFIX + "HOST", DEFAULT_HOST)
    port = int(env.get(ENV_PREFIX + "PORT", DEFAULT_PORT))
    return host, port
