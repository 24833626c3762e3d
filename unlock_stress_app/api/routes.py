import asyncio
import logging

from fastapi import APIRouter, HTTPException

from unlock_stress_app.config import constants_from_env
from unlock_stress_app.schemas import StressInput
from unlock_stress_app.services.price_path import summarize_price_impact
from unlock_stress_app.services.stress_model import run_stress_model
from unlock_stress_app.utils.json_safety import sanitize_floats


LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stress-model")
async def api_stress_model(data: StressInput):
    constants = constants_from_env()
    try:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, run_stress_model, data, constants)
    except ValueError as exc:
        LOGGER.warning("stress model rejected input: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    if data.current_price is not None:
        result.update(summarize_price_impact(data.current_price, result))
    return sanitize_floats(result)


@router.get("/health")
async def health():
    return {"status": "ok"}
