"""FastAPI Control Server - HTTP surface over the session engine.

Endpoints used by the dashboard to configure and inspect sessions:
start/stop a session, fetch or clear a user's history, read a summary.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Union

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware

from ..engine import SessionEngine
from ..exceptions import StorageError
from ..logging.log_context import correlation_scope
from ..scheduler import ReminderScheduler
from ..validation import ValidationError, validate_user_identifier


class StartSessionRequest(BaseModel):
    """Body of POST /api/start-session (camelCase as sent by the dashboard)."""

    model_config = ConfigDict(populate_by_name=True)

    telegram_id: Union[int, str] = Field(..., alias="telegramId")
    start_balance: int = Field(0, alias="startBalance")
    target_win: int = Field(0, alias="targetWin")
    stop_loss: int = Field(0, alias="stopLoss")
    interval: int = Field(5, description="Reminder cadence in minutes")


class StopSessionRequest(BaseModel):
    """Body of POST /api/stop-session."""

    model_config = ConfigDict(populate_by_name=True)

    telegram_id: Union[int, str] = Field(..., alias="telegramId")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Run each request in a correlation scope and echo its X-Request-ID.

    A client-supplied X-Request-ID is kept; otherwise a UUID4 is assigned.
    """

    async def dispatch(self, request, call_next):
        with correlation_scope(request.headers.get("X-Request-ID")) as correlation_id:
            response = await call_next(request)

        response.headers["X-Request-ID"] = correlation_id

        return response


class ControlServer:
    """FastAPI-based control server.

    Example:
        >>> server = ControlServer(engine, scheduler, port=3000)
        >>> await server.start()  # Non-blocking
        >>> await server.stop()
    """

    def __init__(
        self,
        engine: SessionEngine,
        scheduler: ReminderScheduler,
        host: str = "0.0.0.0",
        port: int = 3000,
    ):
        """Initialize control server.

        Args:
            engine: Session engine the endpoints operate on
            scheduler: Reminder scheduler (reported by /health)
            host: Server host (default: 0.0.0.0)
            port: Server port (default: 3000)
        """
        self.engine = engine
        self.scheduler = scheduler
        self.host = host
        self.port = port
        self.logger = logging.getLogger(__name__)

        self.app = FastAPI(
            title="tradealarm",
            description="Trading session tracker control API",
            version="1.0.0",
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.add_middleware(RequestIDMiddleware)

        self._server_task: Optional[asyncio.Task] = None
        self._server: Optional[uvicorn.Server] = None

        self._setup_exception_handlers()
        self._setup_routes()

    def _setup_exception_handlers(self):

        @self.app.exception_handler(ValidationError)
        async def validation_error_handler(request: Request, exc: ValidationError):
            return JSONResponse(status_code=422, content={"success": False, "error": str(exc)})

        @self.app.exception_handler(StorageError)
        async def storage_error_handler(request: Request, exc: StorageError):
            self.logger.error(
                "api_storage_error",
                extra={"path": request.url.path, "error": str(exc)},
            )
            return JSONResponse(
                status_code=503,
                content={"success": False, "error": "Storage unavailable"},
            )

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/health")
        async def health_check():
            """Lightweight health check."""
            return JSONResponse({
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "active_timers": len(self.scheduler.registered_identifiers),
            })

        @self.app.post("/api/start-session")
        async def start_session(body: StartSessionRequest):
            """Create or replace a session and start its reminders."""
            await self.engine.start_session(
                body.telegram_id,
                body.start_balance,
                body.target_win,
                body.stop_loss,
                body.interval,
            )
            return {"success": True}

        @self.app.post("/api/stop-session")
        async def stop_session(body: StopSessionRequest):
            """Stop a session and its reminders (no-op if not active)."""
            identifier = validate_user_identifier(body.telegram_id)
            stopped = await self.engine.stop_session(identifier)
            return {"success": True, "stopped": stopped}

        @self.app.get("/api/logs/{telegram_id}")
        async def get_logs(telegram_id: str, limit: Optional[int] = None):
            """Ledger entries, most recent first."""
            identifier = validate_user_identifier(telegram_id)
            entries = await self.engine.list_history(identifier, limit=limit)
            return [entry.to_dict() for entry in entries]

        @self.app.delete("/api/logs/{telegram_id}")
        async def clear_logs(telegram_id: str):
            """Delete a user's ledger entries; the session itself is kept."""
            identifier = validate_user_identifier(telegram_id)
            deleted = await self.engine.clear_history(identifier)
            return {"success": True, "deleted": deleted}

        @self.app.get("/api/summary/{telegram_id}")
        async def get_summary(telegram_id: str):
            """Start balance, net and current balance."""
            identifier = validate_user_identifier(telegram_id)
            result = await self.engine.summarize(identifier)
            if result is None:
                return JSONResponse(
                    status_code=404,
                    content={"success": False, "error": "Session not found"},
                )
            return result.to_dict()

    async def start(self):
        """Start control server (non-blocking)."""
        if self._server_task is not None:
            self.logger.warning("Control server already running")
            return

        self.logger.info(f"Starting control server on {self.host}:{self.port}")

        config = uvicorn.Config(
            app=self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        self._server = uvicorn.Server(config)

        self._server_task = asyncio.create_task(self._server.serve())

    async def stop(self):
        """Stop control server."""
        if self._server_task is None:
            return

        self.logger.info("Stopping control server")

        if self._server:
            self._server.should_exit = True

        try:
            await asyncio.wait_for(self._server_task, timeout=5.0)
        except asyncio.TimeoutError:
            self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass

        self._server_task = None
        self._server = None

        self.logger.info("Control server stopped")

    @property
    def server_task(self) -> Optional[asyncio.Task]:
        """Task running uvicorn, or None when stopped."""
        return self._server_task
