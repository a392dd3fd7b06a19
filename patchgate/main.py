"""Patchgate FastAPI application."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from patchgate.api.admin import router as admin_router
from patchgate.api.evaluations import router as evaluations_router
from patchgate.api.health import router as health_router
from patchgate.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Patchgate - Patch Evaluation & Regression Gate",
    description="Evaluates proposed patches against a fixed probe battery and gates them on regressions",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, tags=["Health"])
app.include_router(evaluations_router, prefix="/v1", tags=["Patches"])
app.include_router(admin_router, prefix="/v1/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "patchgate", "version": "0.1.0", "docs": "/docs"}
