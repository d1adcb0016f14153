"""
Inkwell - FastAPI Backend
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import socketio

from app.config import settings
from app.logging import setup_logging, get_logger
from app.routers import chat, notes
from app.services.events import EventPublisher
from app.services.generation import build_generation_service
from app.services.persistence import SnapshotStore
from app.services.workspace import Workspace

logger = get_logger('main')

# Socket.IO server for save-status and thread updates
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins='*'
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(debug=settings.DEBUG)
    logger.info("Starting Inkwell API")

    generation = build_generation_service(settings)
    await generation.initialize()

    workspace = Workspace(
        snapshots=SnapshotStore(
            db_path=settings.DATABASE_PATH,
            storage_key=settings.STORAGE_KEY,
        ),
        generation=generation,
        events=EventPublisher(sio),
        config=settings,
    )
    await workspace.open()
    app.state.workspace = workspace
    logger.info("Workspace ready (%s generation)", generation.provider)

    try:
        yield
    finally:
        logger.info("Shutting down application")
        await workspace.close()
        await generation.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Inkwell API",
        description="Note taking with an attached conversational assistant",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(notes.router, prefix="/api", tags=["Notes"])
    app.include_router(chat.router, prefix="/api/chat", tags=["Assistant"])

    @app.get("/health")
    async def health_check():
        workspace = getattr(app.state, "workspace", None)
        return {
            "status": "healthy",
            "service": "inkwell",
            "generation_available": workspace.assistant.generation.is_available if workspace else False,
            "persistence_ok": workspace.persistence_status.ok if workspace else False,
        }

    @app.get("/")
    async def root():
        return {
            "name": "Inkwell API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    return app


def create_socket_app() -> socketio.ASGIApp:
    """ASGI entrypoint serving the API and Socket.IO on one port."""

    @sio.event
    async def connect(sid, environ):
        query_string = environ.get('QUERY_STRING', '')
        if 'noteId=' in query_string:
            note_id = query_string.split('noteId=')[-1].split('&')[0]
            await sio.enter_room(sid, note_id)
            logger.debug(f"Client {sid[:8]}... joined note room: {note_id[:8]}...")

    @sio.event
    async def disconnect(sid):
        logger.debug(f"Client {sid[:8]}... disconnected")

    return socketio.ASGIApp(sio, other_asgi_app=create_app())
