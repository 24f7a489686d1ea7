"""
Brainary — Main Application
FastAPI app. Mounts routers, CORS, health check.
Database initialization on startup; running exam countdowns cancelled on shutdown.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brainary.config import APP_NAME, APP_VERSION, CORS_ORIGINS, LOG_LEVEL
from brainary.database import init_db
from brainary.routers import auth, dashboard, exam
from brainary.state.registry import get_registry

logger = logging.getLogger("brainary")


# ─── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: init DB. Shutdown: drop unfinished exams."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    logger.info("Initializing database...")
    init_db()
    logger.info(f"{APP_NAME} v{APP_VERSION} ready")
    yield

    registry = get_registry()
    if len(registry):
        logger.info(f"Shutting down, discarding {len(registry)} unfinished exams")
    registry.shutdown()
    logger.info("Shutting down")


# ─── App ─────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=APP_NAME,
    description="Adaptive-difficulty study service: timed AI-generated exams and progress tracking",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(exam.router)


@app.get("/health")
@app.get("/healthz")
async def health():
    return {"status": "ok", "version": APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("brainary.main:app", host="127.0.0.1", port=8000, reload=True)
