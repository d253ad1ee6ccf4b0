import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request

from .api import prerequisites, servers, uiactions, websockets
from .dependencies import (
    get_event_bus,
    get_presentation_event_handlers,
    get_server_registry,
    get_settings,
    get_startup_service,
    get_websocket_manager,
)
from .domains.presentation.registration import register_presentation_domain
from .logging_config import setup_logging

settings = get_settings()

# Global reference to background tasks
_background_tasks = []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging(settings)
    logging.info("Mountify starting up...")

    registry = get_server_registry()
    count = await registry.load()
    logging.info(f"Loaded {count} server profile(s) from {settings.servers_file_path}")

    await register_presentation_domain(get_event_bus(), get_presentation_event_handlers())

    websocket_manager = get_websocket_manager()
    websocket_manager.start_sender_task()

    startup_service = get_startup_service()
    _background_tasks.append(asyncio.create_task(startup_service.ensure_dependencies()))
    _background_tasks.append(asyncio.create_task(startup_service.auto_mount()))
    logging.info("Startup tasks started in the background")

    yield

    # Shutdown
    logging.info("Mountify shutting down...")

    for task in _background_tasks:
        task.cancel()

    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)
    _background_tasks.clear()

    websocket_manager.stop_sender_task()
    logging.info("All background tasks stopped")


# Create FastAPI application
app = FastAPI(
    title="Mountify",
    description="Maps SFTP servers to Windows drive letters through SSHFS-Win",
    version="0.1.0",
    lifespan=lifespan,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logging.info(
        f"Incoming request: {request.method} {request.url.path}",
        extra={
            "operation": "http_request",
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
        },
    )

    response = await call_next(request)

    logging.info(
        f"Response: {response.status_code}",
        extra={
            "operation": "http_response",
            "status_code": response.status_code,
            "path": request.url.path,
        },
    )

    return response


# Include routers
app.include_router(servers.router)
app.include_router(prerequisites.router)
app.include_router(uiactions.router)
app.include_router(websockets.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Mountify is running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {"status": "healthy", "service": "mountify"}


if __name__ == "__main__":
    uvicorn.run(
        "mountify.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level="info",
    )
