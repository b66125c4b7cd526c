"""
Context Stream API - Main Application
Activity events in, per-session assistant context and insights out.
"""

from dotenv import load_dotenv
load_dotenv()  # Load .env file into environment variables

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from contextstream.config import settings
from contextstream.events.event_models import ActivityEvent
from contextstream.stream.context_stream import ContextStream, get_context_stream

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(stream: Optional[ContextStream] = None) -> FastAPI:
    """
    Build the HTTP app around a context stream.

    Args:
        stream: Stream to serve (defaults to the process-wide one)
    """
    stream = stream or get_context_stream()

    app = FastAPI(
        title="Context Stream API",
        description="Real-time activity context, insights and patterns for an assistant",
        version=VERSION
    )

    # CORS - browser extensions post events from arbitrary origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup():
        stream.start()
        logger.info("Context stream API ready (running=%s)", stream.is_running)

    @app.on_event("shutdown")
    def _shutdown():
        stream.stop()

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Context Stream API",
            "version": VERSION,
            "status": "running" if stream.is_running else "stopped",
            "endpoints": {
                "submit": "POST /events",
                "contexts": "GET /contexts",
                "context": "GET /contexts/{session_id}",
                "insights": "GET /insights",
                "active_sessions": "GET /sessions/active",
                "metrics": "GET /metrics",
                "config": "GET|PATCH /config",
                "health": "GET /health"
            }
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok" if stream.is_running else "stopped", "version": VERSION}

    @app.post("/events")
    def submit_events(events: List[ActivityEvent]):
        return {"accepted": stream.submit(events)}

    @app.get("/contexts")
    def list_contexts():
        return [_window_summary(w) for w in stream.get_all_contexts()]

    @app.get("/contexts/{session_id}")
    def get_context(session_id: str):
        window = stream.get_context(session_id)
        if window is None:
            raise HTTPException(status_code=404, detail=f"No context for session {session_id}")
        return window

    @app.get("/insights")
    def recent_insights(session_id: Optional[str] = None, limit: int = 10):
        return stream.get_recent_insights(session_id=session_id, limit=limit)

    @app.get("/sessions/active")
    def active_sessions():
        return {"sessions": stream.get_active_sessions()}

    @app.get("/metrics")
    def metrics():
        return dataclasses.asdict(stream.get_metrics())

    @app.get("/config")
    def get_config():
        return stream.get_config().model_dump()

    @app.patch("/config")
    def update_config(options: Dict[str, Any]):
        try:
            config = stream.update_config(**options)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False))
        return config.model_dump()

    return app


def _window_summary(window) -> Dict[str, Any]:
    return {
        "id": window.id,
        "session_id": window.session_id,
        "last_updated": window.last_updated,
        "relevance_score": window.relevance_score,
        "event_count": len(window.events),
        "insight_count": len(window.insights),
        "pattern_count": len(window.patterns),
        "dominant_activity": window.activity_summary.dominant_activity,
    }


app = create_app()


def main():
    import uvicorn

    uvicorn.run("contextstream.main:app", host=settings.api_host, port=settings.api_port, access_log=False)


if __name__ == "__main__":
    main()
