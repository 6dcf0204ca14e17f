"""
FastAPI application for the Robotics Troubleshooting Advisor.

Serverless-compatible version - handles startup gracefully without crashes.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

# Only load .env file in development (not on Vercel)
# Vercel sets environment variables directly
if os.getenv("VERCEL") != "1":
    from dotenv import load_dotenv
    load_dotenv(override=True)

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agent import (
    get_agent, reset_agent, AgentError,
    InputValidationError, MISSING_INPUT_MESSAGE
)
from models import ChatRequest, ChatResponse, HistoryResponse, ErrorResponse
from connection import connections, health_check as connection_health_check
from config import validate_config_on_startup, get_config
from logger import get_logger

logger = get_logger(__name__)

# Check if running in serverless environment
IS_SERVERLESS = os.getenv("VERCEL") == "1" or os.getenv("AWS_LAMBDA_FUNCTION_NAME") is not None

CHAT_UI_PATH = Path(__file__).parent / "static" / "index.html"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan with graceful error handling for serverless.

    Configuration problems put the service in degraded mode instead of
    crashing; /health reports them and chat requests fail with 500.
    """
    logger.info("=" * 60)
    logger.info(f"Starting Robotics Troubleshooting Advisor (Serverless: {IS_SERVERLESS})")
    logger.info("=" * 60)

    app.state.startup_status = {"healthy": False, "error": None}

    try:
        config = validate_config_on_startup()
        logger.info(
            "Configuration validated",
            provider=config.llm_provider,
            session_backend=config.session_backend,
            history_window=config.history_window
        )
        app.state.startup_status = {
            "healthy": True,
            "error": None,
            "provider": config.llm_provider,
            "session_backend": config.session_backend
        }
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        app.state.startup_status = {
            "healthy": False,
            "error": f"Configuration error: {str(e)}"
        }
        logger.warning("[STARTUP] Starting in DEGRADED MODE - chat requests will fail!")

    yield

    logger.info("Shutting down")
    try:
        reset_agent()
        connections.reset()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="Robotics Troubleshooting Advisor API",
    description="Staged chat assistant that diagnoses malfunctioning robots",
    version="1.0.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
cors_origins = [origin.strip() for origin in cors_origins if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the {error} body used by every failing endpoint."""
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(InputValidationError)
async def input_validation_handler(request: Request, exc: InputValidationError):
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(AgentError)
async def agent_error_handler(request: Request, exc: AgentError):
    """Generation and persistence failures surface as server errors."""
    logger.error(
        f"Agent error: {str(exc)}",
        path=request.url.path,
        error_type=type(exc).__name__
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors."""
    logger.warning("Request validation failed", path=request.url.path, errors=len(exc.errors()))
    if request.url.path == "/api/chat":
        return error_response(status.HTTP_400_BAD_REQUEST, MISSING_INPUT_MESSAGE)
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(exc.status_code, "Not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal server error")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = str(uuid.uuid4())[:8]

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        path=request.url.path
    )

    try:
        response = await call_next(request)
        duration = (time.time() - start_time) * 1000

        logger.request(
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration,
            request_id=request_id
        )

        return response

    except Exception as e:
        duration = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {str(e)}",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            duration_ms=duration
        )
        raise


@app.get("/", response_class=HTMLResponse)
async def root():
    """Serve the chat interface."""
    return HTMLResponse(CHAT_UI_PATH.read_text(encoding="utf-8"))


@app.get("/health")
async def health(request: Request):
    """
    Health check with startup validation and a live check of the
    configured session backend and generation provider.
    """
    startup_status = getattr(request.app.state, "startup_status", {
        "healthy": False,
        "error": "Status not initialized"
    })

    try:
        config = get_config()
        services = connection_health_check(
            provider=config.llm_provider,
            session_backend=config.session_backend
        )
        all_healthy = all(s.get("healthy", False) for s in services.values())

        return {
            "status": "healthy" if all_healthy else "degraded",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "serverless": IS_SERVERLESS,
            "startup_validation": startup_status,
            "live_check": services
        }
    except Exception as e:
        return {
            "status": "error",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "serverless": IS_SERVERLESS,
            "startup_validation": startup_status,
            "exception_type": type(e).__name__,
            "exception_message": str(e)
        }


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def chat(request: ChatRequest) -> ChatResponse:
    """
    Process one chat turn.

    Args:
        request: {sessionId, userMessage}

    Returns:
        ChatResponse with the assistant message and updated stage
    """
    logger.info(
        "Chat request received",
        session_id=request.session_id,
        message_length=len(request.user_message or "")
    )

    agent = get_agent()
    result = agent.handle_turn(request.session_id, request.user_message)

    return ChatResponse(
        message=result.reply_text,
        stage=result.stage,
        session_id=request.session_id
    )


@app.get(
    "/api/history/{session_id}",
    response_model=HistoryResponse,
    responses={500: {"model": ErrorResponse}}
)
async def get_history(session_id: str) -> HistoryResponse:
    """
    Get the stored stage and conversation history for a session.

    Unknown sessions return the initial stage with an empty history.
    """
    state = get_agent().get_history(session_id)

    return HistoryResponse(
        stage=state.stage,
        message_count=state.message_count,
        history=state.history
    )


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
