from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from unlock_stress_app.api.routes import router as api_router
from unlock_stress_app.config import server_address
from unlock_stress_app.utils.json_safety import SafeJSONResponse


def create_app() -> FastAPI:
    app = FastAPI(
        title="Token Unlock Stress Model",
        default_response_class=SafeJSONResponse,
    )

    # ── CORS (dashboard dev servers) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://127.0.0.1:3000", "http://localhost:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routes ──
    app.include_router(api_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    return app


app = create_app()


def run():
    import uvicorn

    host, port = server_address()
    uvicorn.run(app, host=host, port=port)
