# chatrelay/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import chat, config, rooms
from .core.config import settings
from .core.exceptions import register_exception_handlers
from .db.init_db import init_db
from .db.session import create_session_factory, verify_db_connection
from .services.relay import InFlightRegistry
from .services.upstream import OpenAIUpstream

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Setup database
    engine, session_factory = create_session_factory(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    await verify_db_connection(engine)
    await init_db(engine)

    # Add to app state
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.upstream = OpenAIUpstream()
    app.state.inflight = InFlightRegistry()

    logger.info(f"chatrelay ready, database {engine.url.render_as_string(hide_password=True)}")
    yield

    await engine.dispose()


app = FastAPI(title="chatrelay", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "content-type"],
)

register_exception_handlers(app)

# Include routers
app.include_router(rooms.router, prefix=settings.API_PREFIX)
app.include_router(chat.router, prefix=settings.API_PREFIX)
app.include_router(config.router, prefix=settings.API_PREFIX)
