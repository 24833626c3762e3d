import math
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_percent_text(text) -> float:
    """Strip an optional trailing '%' and parse: "20%" -> 20.0."""
    clean = str(text).strip()
    if clean.endswith("%"):
        clean = clean[:-1].strip()
    value = float(clean)
    if not math.isfinite(value):
        raise ValueError(f"{text!r} is not a finite number")
    return value


def parse_depth_label(label) -> float:
    """Depth bucket label ("5", "5%", 5) -> price drop in percent."""
    try:
        return parse_percent_text(label)
    except ValueError:
        raise ValueError(f"orderbook_depth key {label!r} is not a numeric drop percentage") from None


class StressInput(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    unlock_value_usd: float
    # 0.2 / 20 / "20" / "20%"; None -> model default
    sell_ratio: Optional[Union[float, str]] = None
    sell_days: Optional[int] = None

    orderbook_depth: Dict[str, float] = Field(default_factory=dict)

    volume_24h: float
    order_imbalance: float = 0.0
    taker_buy_volume_24h: Optional[float] = 0.0
    taker_sell_volume_24h: Optional[float] = 0.0
    sigma_7d: float = 0.0

    # Optional: current market price, used to project a price path
    current_price: Optional[float] = None

    @field_validator("unlock_value_usd", "volume_24h")
    @classmethod
    def non_negative_usd(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("taker_buy_volume_24h", "taker_sell_volume_24h", "sigma_7d")
    @classmethod
    def non_negative_market(cls, v, info):
        if v is None:
            return 0.0
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("sell_ratio")
    @classmethod
    def parseable_sell_ratio(cls, v):
        if isinstance(v, str):
            try:
                parse_percent_text(v)
            except ValueError:
                raise ValueError(f"sell_ratio {v!r} is not a number or percentage") from None
        return v

    @field_validator("sell_days")
    @classmethod
    def sell_days_range(cls, v):
        if v is not None and v > 3650:
            raise ValueError("sell_days must be <= 3650")
        return v

    @field_validator("orderbook_depth", mode="before")
    @classmethod
    def stringify_depth_labels(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): depth for k, depth in v.items()}
        return v

    @field_validator("orderbook_depth")
    @classmethod
    def valid_depth_curve(cls, v):
        for label, depth in v.items():
            parse_depth_label(label)
            if depth < 0:
                raise ValueError(f"orderbook_depth[{label!r}] must be >= 0")
        return v

    @field_validator("current_price")
    @classmethod
    def price_positive(cls, v):
        if v is None:
            return v
        if v <= 0:
            raise ValueError("current_price must be > 0")
        return v
