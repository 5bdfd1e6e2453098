from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jeweltone import __version__
from jeweltone.api.v1 import router as v1_router
from jeweltone.config import config
from jeweltone.schemas import HealthResponse
from jeweltone.utils.logging import configure_logging

configure_logging()
config.validate_settings()

app = FastAPI(
    title="JewelTone Backend",
    description="Recolor jewelry photos between yellow gold and rose gold",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(v1_router)


@app.get("/healthz", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    return HealthResponse(ok=True, version=__version__, service="jeweltone")


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "JewelTone Backend API",
        "version": __version__,
        "docs": "/docs"
    }
