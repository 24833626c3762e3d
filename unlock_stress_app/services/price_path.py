from typing import List

import numpy as np


def project_price_path(current_price: float, result: dict) -> List[dict]:
    """Apply each day's cumulative impact to the current price. Day 0 is today."""
    cumulative = np.array([d["cumulativeImpact"] for d in result["daily"]], dtype=float)
    prices = np.maximum(current_price * (1.0 - cumulative / 100.0), 0.0)

    path = [{"day": 0, "price": float(current_price), "cumulativeImpact": 0.0}]
    for rec, price in zip(result["daily"], prices):
        path.append({
            "day": rec["day"],
            "price": float(price),
            "cumulativeImpact": rec["cumulativeImpact"],
        })
    return path


def summarize_price_impact(current_price: float, result: dict) -> dict:
    path = project_price_path(current_price, result)
    return {
        "price_path": path,
        "current_price": float(current_price),
        "projected_price": path[-1]["price"],
        "estimated_drop_percent": result["final_cumulative_impact_percent"],
    }
