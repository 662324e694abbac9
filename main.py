"""
FastAPI backend for genviz.

Streams probabilistic-program trace snapshots to connected viewers over a
WebSocket and exposes a small REST API through which the inference workflow
initializes viewers, puts and removes traces, and requests HTML exports.
"""

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.app_config import get_settings
from api.shared.logger import get_logger, setup_logging

setup_logging(get_settings().log_level)
logger = get_logger(__name__)

from api.system import router as system_router
from api.viewers import router as viewers_router
from api.viz_manager import viz_registry
from websocket import ws_manager

# Create FastAPI app
app = FastAPI(
    title="genviz API",
    description="Live trace visualization bridge for probabilistic programs",
    version="0.1.0",
)


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        logger.error("%s failed with %d: %s", request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    logger.exception("Unhandled %s on %s", type(exc).__name__, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Viewers are usually served from another origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(system_router, prefix="/api", tags=["system"])
app.include_router(viewers_router, prefix="/api")


# ============= WebSocket Endpoints =============


@app.websocket("/")
async def websocket_endpoint(websocket: WebSocket):
    """
    Viewer WebSocket endpoint.

    Viewers connect to the page's own host and port and identify themselves
    with ``{"action": "connect", "clientId": ..., "vizId": ...}``. They then
    receive initialize / putTrace / removeTrace / saveHTML frames and answer
    saveHTML with ``save``.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            message_text = await websocket.receive_text()
            message = await ws_manager.handle_message(websocket, message_text)
            if message is not None:
                await viz_registry.handle_client_message(message)

    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        await ws_manager.disconnect(websocket)


@app.get("/api/ws/stats")
async def get_websocket_stats():
    """Get WebSocket connection statistics."""
    return {
        "total_connections": ws_manager.get_connection_count(),
        "sessions": ws_manager.get_session_count(),
    }


if __name__ == "__main__":
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description="genviz backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or GENVIZ_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help="Host to bind to (default: 127.0.0.1 or GENVIZ_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
