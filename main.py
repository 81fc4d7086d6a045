import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from config import settings
from core.pipeline import PipelineConfig
from services.db import dispose_engine, init_models
from services.gemini import GeminiService
from api.v1.router import api_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one completion client per process, injected into handlers via app.state
    app.state.completion = GeminiService(
        api_key=settings.gemini_api_key or "",
        chat_model=settings.chat_model,
        extraction_model=settings.extraction_model,
        embed_model=settings.embed_model,
        timeout_s=settings.completion_timeout_s,
    )
    app.state.pipeline_config = PipelineConfig.from_settings(settings)
    await init_models()
    yield
    await dispose_engine()


app = FastAPI(title="Nutrition Hero API", version="1.0.0", lifespan=lifespan)

# CORS (public demo only – lock down in prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")

@app.get("/health", tags=["meta"])
def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.env_name}
