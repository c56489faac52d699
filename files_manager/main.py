import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from files_manager.api.routes import router
from files_manager.cache import RedisClient
from files_manager.config import CORS_ORIGINS, DB_URL, FOLDER_PATH, LOG_LEVEL, REDIS_URL
from files_manager.core.exceptions import register_exception_handlers
from files_manager.db import DBClient
from files_manager.services.auth import CredentialVerifier
from files_manager.services.files import FileStore
from files_manager.services.sessions import SessionStore
from files_manager.services.thumbnails import ThumbnailQueue
from files_manager.storage import ContentStorage

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("files_manager")


def create_app(
    db: DBClient | None = None,
    cache: RedisClient | None = None,
    storage: ContentStorage | None = None,
    thumbnails: ThumbnailQueue | None = None,
) -> FastAPI:
    """Wire the client handles into the services and build the API.

    The handles are connected here and closed when the app shuts down.
    """
    db = (db or DBClient(DB_URL)).connect()
    cache = (cache or RedisClient(REDIS_URL)).connect()
    storage = storage or ContentStorage(FOLDER_PATH)
    thumbnails = thumbnails or ThumbnailQueue(REDIS_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("event=shutdown")
        await thumbnails.close()
        cache.close()
        db.close()

    app = FastAPI(title="Files Manager API", version="1.0.0", lifespan=lifespan)

    origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    sessions = SessionStore(cache)
    app.state.db = db
    app.state.cache = cache
    app.state.auth = CredentialVerifier(db, sessions)
    app.state.files = FileStore(db, storage, thumbnails)

    app.include_router(router)
    register_exception_handlers(app)
    return app


app = create_app()
