"""
Multi-day unlock stress model.

Sells `dailySell` USD into an order-book depth curve every day for
`sell_days` days and projects the resulting price impact:

    impact_d = net_depth_drop_d * scale * (1 + sigma_d)
               * (1 - order_imbalance * w_obi) * flow_pressure

Between days the depth curve refills and volatility feeds back on the
daily sell size. State is threaded through `advance_day` explicitly; the
caller's depth mapping is never mutated.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple, Union

import numpy as np

from unlock_stress_app.config import DEFAULT_CONSTANTS, StressModelConstants
from unlock_stress_app.schemas import StressInput, parse_depth_label, parse_percent_text

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketContext:
    """Per-run inputs that stay fixed across simulated days."""
    daily_sell: float
    spread_offset: float
    order_imbalance: float
    flow_pressure: float
    volume_24h: float


@dataclass(frozen=True, eq=False)
class SimulationState:
    """Order-book depth and volatility at the start of a day."""
    drop_pct: np.ndarray   # fractions, ascending
    depth_usd: np.ndarray
    sigma: float
    day: int = 0
    cumulative_impact: float = 0.0


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


# ── Parameter normalization ──

def parse_sell_ratio(raw, default: float = DEFAULT_CONSTANTS.default_sell_ratio) -> float:
    """
    Normalize a sell ratio to a decimal in [0, 1].

    Strings lose a trailing '%' and are parsed. Any value above 1 is read
    as a percentage (20 -> 0.2); values up to 1 are already decimals, so
    1 and 1.0 mean 100%. None falls back to `default`.
    """
    if raw is None:
        value = float(default)
    elif isinstance(raw, str):
        try:
            value = parse_percent_text(raw)
        except ValueError:
            raise ValueError(f"sell_ratio {raw!r} is not a number or percentage") from None
    else:
        value = float(raw)
        if math.isnan(value):
            raise ValueError("sell_ratio must not be NaN")

    if value > 1:
        value = value / 100.0
    return _clamp(value, 0.0, 1.0)


def build_depth_levels(orderbook_depth: Mapping) -> Tuple[np.ndarray, np.ndarray]:
    """
    Depth mapping {"5": usd, "10": usd, ...} -> (drop fractions, depth USD),
    sorted ascending by drop. Duplicate levels are kept.
    """
    if not orderbook_depth:
        return np.zeros(0, dtype=float), np.zeros(0, dtype=float)

    labels = list(orderbook_depth.keys())
    drop_pct = np.array([parse_depth_label(k) / 100.0 for k in labels], dtype=float)
    depth_usd = np.array([float(orderbook_depth[k]) for k in labels], dtype=float)

    order = np.argsort(drop_pct, kind="stable")
    return drop_pct[order], depth_usd[order]


def spread_offset(drop_pct: np.ndarray, depth_usd: np.ndarray) -> float:
    """Drop fraction of the first empty bucket: the spread paid before any liquidity."""
    empty = np.flatnonzero(depth_usd == 0)
    if empty.size == 0:
        return 0.0
    return float(drop_pct[empty[0]])


def flow_pressure_modifier(taker_buy: float, taker_sell: float,
                           constants: StressModelConstants = DEFAULT_CONSTANTS) -> float:
    total_flow = taker_buy + taker_sell
    sell_flow_ratio = taker_sell / total_flow if total_flow > 0 else constants.neutral_sell_flow_ratio
    return 1.0 + (sell_flow_ratio - constants.neutral_sell_flow_ratio) * constants.flow_pressure_weight


# ── Depth impact ──

def compute_depth_impact(sell_usd: float, drop_pct: np.ndarray, depth_usd: np.ndarray,
                         constants: StressModelConstants = DEFAULT_CONSTANTS) -> float:
    """
    Percent price drop caused by selling `sell_usd` into a piecewise-linear
    depth curve. Extrapolates past the deepest bucket with the slope of the
    last segment (USD per percentage point).
    """
    n = len(depth_usd)
    if n == 0:
        return 0.0

    first_depth = float(depth_usd[0])
    if sell_usd <= first_depth:
        ratio = sell_usd / max(first_depth, 1.0)
        return float(drop_pct[0]) * 100.0 * ratio

    for i in range(n - 1):
        prev_depth = float(depth_usd[i])
        next_depth = float(depth_usd[i + 1])
        if prev_depth < sell_usd <= next_depth:
            if next_depth == prev_depth:
                continue
            progress = (sell_usd - prev_depth) / (next_depth - prev_depth)
            pct_range = float(drop_pct[i + 1] - drop_pct[i])
            return (float(drop_pct[i]) + pct_range * progress) * 100.0

    deepest_pct = float(drop_pct[-1])
    deepest_depth = float(depth_usd[-1])
    if sell_usd <= deepest_depth:
        return deepest_pct * 100.0

    slope = constants.extrapolation_default_slope
    if n > 1:
        pct_diff = (deepest_pct - float(drop_pct[-2])) * 100.0
        depth_diff = deepest_depth - float(depth_usd[-2])
        if pct_diff and depth_diff:
            slope = depth_diff / pct_diff

    return deepest_pct * 100.0 + (sell_usd - deepest_depth) / slope


# ── Daily loop ──

def refill_depth(depth_usd: np.ndarray, constants: StressModelConstants = DEFAULT_CONSTANTS) -> np.ndarray:
    """Market makers restore liquidity; deep books refill faster."""
    return np.where(
        depth_usd < constants.refill_threshold_usd,
        depth_usd * constants.refill_multiplier_shallow,
        depth_usd * constants.refill_multiplier_deep,
    )


def volatility_feedback(sigma: float, daily_sell: float, volume_24h: float,
                        constants: StressModelConstants = DEFAULT_CONSTANTS) -> float:
    if volume_24h > 0:
        sigma = sigma * (1.0 + constants.volatility_feedback * (daily_sell / volume_24h))
    else:
        LOGGER.debug("volume_24h is zero, skipping volatility feedback")
    return min(sigma, constants.sigma_cap)


def advance_day(state: SimulationState, market: MarketContext,
                constants: StressModelConstants = DEFAULT_CONSTANTS) -> Tuple[Dict[str, float], SimulationState]:
    """Simulate one day of selling. Returns the day's record and the next state."""
    day = state.day + 1
    raw_depth_drop = compute_depth_impact(market.daily_sell, state.drop_pct, state.depth_usd, constants)
    net_depth_drop = max(0.0, raw_depth_drop - market.spread_offset * 100.0)

    impact_today = (
        net_depth_drop
        * constants.impact_scale
        * (1.0 + state.sigma)
        * (1.0 - market.order_imbalance * constants.imbalance_weight)
        * market.flow_pressure
    )
    impact_today = min(impact_today, constants.max_daily_impact_pct)
    cumulative_impact = state.cumulative_impact + impact_today

    record = {
        "day": day,
        "dailySell": market.daily_sell,
        "depthDrop": raw_depth_drop,
        "impactToday": impact_today,
        "cumulativeImpact": cumulative_impact,
    }
    LOGGER.debug(
        "day %d: depth_drop=%.4f%% impact=%.4f%% cumulative=%.4f%% sigma=%.4f",
        day, raw_depth_drop, impact_today, cumulative_impact, state.sigma,
    )

    next_state = SimulationState(
        drop_pct=state.drop_pct,
        depth_usd=refill_depth(state.depth_usd, constants),
        sigma=volatility_feedback(state.sigma, market.daily_sell, market.volume_24h, constants),
        day=day,
        cumulative_impact=cumulative_impact,
    )
    return record, next_state


def run_stress_model(data: Union[StressInput, Mapping],
                     constants: StressModelConstants = None) -> dict:
    """
    Run the multi-day stress model.

    Accepts a `StressInput` or a plain mapping with the same fields
    (validated into a `StressInput`). Raises pydantic's ValidationError
    (a ValueError) on malformed input.
    """
    params = data if isinstance(data, StressInput) else StressInput.model_validate(data)
    constants = constants or DEFAULT_CONSTANTS

    unlock_total = float(params.unlock_value_usd)
    sell_ratio = parse_sell_ratio(params.sell_ratio, constants.default_sell_ratio)
    sell_days = constants.default_sell_days if params.sell_days is None else int(params.sell_days)

    effective_sell = unlock_total * sell_ratio
    daily_sell = effective_sell / sell_days if sell_days > 0 else 0.0

    drop_pct, depth_usd = build_depth_levels(params.orderbook_depth)
    market = MarketContext(
        daily_sell=daily_sell,
        spread_offset=spread_offset(drop_pct, depth_usd),
        order_imbalance=float(params.order_imbalance),
        flow_pressure=flow_pressure_modifier(
            float(params.taker_buy_volume_24h or 0.0),
            float(params.taker_sell_volume_24h or 0.0),
            constants,
        ),
        volume_24h=float(params.volume_24h),
    )
    LOGGER.debug(
        "stress run: unlock=%.2f ratio=%.4f days=%d daily_sell=%.2f buckets=%d spread_offset=%.4f",
        unlock_total, sell_ratio, sell_days, daily_sell, len(depth_usd), market.spread_offset,
    )

    state = SimulationState(drop_pct=drop_pct, depth_usd=depth_usd, sigma=float(params.sigma_7d))
    daily = []
    for _ in range(max(sell_days, 0)):
        record, state = advance_day(state, market, constants)
        daily.append(record)

    if sell_days <= 0:
        LOGGER.debug("sell_days=%d, nothing to simulate", sell_days)

    LOGGER.info(
        "stress model: %d days, final cumulative impact %.4f%%",
        len(daily), state.cumulative_impact,
    )
    return {
        "params": {
            "unlockTotal": unlock_total,
            "sellRatio": sell_ratio,
            "sellDays": sell_days,
            "effectiveSell": effective_sell,
            "dailySell": daily_sell,
        },
        "daily": daily,
        "final_cumulative_impact_percent": state.cumulative_impact,
    }
