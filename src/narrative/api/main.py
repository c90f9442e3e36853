from __future__ import annotations

from datetime import UTC, datetime
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .routers.prompts import router as prompts_router
from .routers.architect import router as architect_router
from .routers.diag import router as diag_router
from ..observability.metrics import metrics_middleware_factory

load_dotenv()  # GEMINI_API_KEY and NARRATIVE_* settings may live in .env

app = FastAPI(title="SFL Narrative Architect API", version="0.1.0")

logging.basicConfig(level=logging.INFO)

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(prompts_router)
app.include_router(architect_router)
app.include_router(diag_router)

# Same routers under /api for the bundled front-end proxy
app.include_router(prompts_router, prefix="/api")
app.include_router(architect_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"name": "SFL Narrative Architect API", "version": "0.1.0"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
