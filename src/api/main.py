"""
FastAPI application for the study scheduler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import build_chat_client, build_scheduler
from .routes import router
from .study_routes import router as study_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the scheduler and interview client on startup."""
    app.state.scheduler = build_scheduler()
    app.state.chat_client = build_chat_client()
    yield
    app.state.chat_client = None


app = FastAPI(
    title="Study Deck API",
    description="Spaced-repetition flashcards and mock interviews",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(router)
app.include_router(study_router)
