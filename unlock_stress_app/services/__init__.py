from unlock_stress_app.services.price_path import project_price_path, summarize_price_impact
from unlock_stress_app.services.stress_model import run_stress_model

__all__ = ["project_price_path", "run_stress_model", "summarize_price_impact"]
