from contextlib import asynccontextmanager
from typing import Optional
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import socketio
import uvicorn

from app.config import Settings, settings as default_settings
from app.database import Database
from app.exceptions import AppException, InvalidRequest
from app.logger import get_logger, log_request, setup_logging
from app.routers import api_router
from app.services.agent_gateway import AgentGateway, build_agent_client
from app.services.event_relay import AgentEventStream, EventRelay, SocketIOBroadcaster

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url, echo=settings.db_echo)
        await database.create_all()
        app.state.database = database

        app.state.agent_gateway = AgentGateway(build_agent_client(settings), timeout=settings.agent_timeout)
        app.state.event_relay = EventRelay(queue_size=settings.event_queue_size)
        broadcaster = SocketIOBroadcaster(app.state.event_relay, app.state.socketio_server)
        await broadcaster.start()

        agent_stream = None
        if settings.event_relay_enabled:
            agent_stream = AgentEventStream(
                settings.agent_url,
                app.state.event_relay,
                reconnect_delay=settings.event_reconnect_delay
            )
            await agent_stream.start()
        logger.info(f"Capture agent at {settings.agent_url}")

        yield

        # Cleanup
        if agent_stream is not None:
            await agent_stream.stop()
        await broadcaster.stop()
        await app.state.agent_gateway.close()
        await database.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Fingerprint enrollment and template API",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.socketio_server = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        log_request(logger, request.method, request.url.path, response.status_code, (time.time() - start) * 1000)
        return response

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
        error = InvalidRequest("Incomplete request data", field=", ".join(fields) or None)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error", "code": "INTERNAL_ERROR"}
        )

    @app.get("/")
    async def root():
        return {
            "message": "Fingerprint Enrollment API",
            "docs": "/docs",
            "version": "1.0.0",
            "environment": settings.app_env,
            "endpoints": {
                "health": "/health",
                "start_enrollment": "/api/start_enrollment",
                "save_enrollment": "/api/save_enrollment",
                "get_all_templates": "/api/get-all-templates",
                "events": "/ws/events",
                "socketio": "/socket.io"
            }
        }

    @app.get("/health")
    async def health_check(request: Request):
        return {
            "status": "healthy",
            "database": request.app.state.database.engine.dialect.name,
            "event_observers": request.app.state.event_relay.observer_count
        }

    app.include_router(api_router)
    return app


def create_asgi_app(fastapi_app: FastAPI) -> socketio.ASGIApp:
    """Serve Socket.IO observers under /socket.io alongside the FastAPI routes."""
    return socketio.ASGIApp(fastapi_app.state.socketio_server, other_asgi_app=fastapi_app)


setup_logging(default_settings.log_level)
fastapi_app = create_app()
app = create_asgi_app(fastapi_app)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=default_settings.port,
        reload=default_settings.app_env != "production"
    )
