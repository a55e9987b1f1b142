import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.db.base import Base, engine, get_db
from app.core.config import settings
from app.core.logging import configure_logging
from app.routers import achievements as achievements_router
from app.routers import auth as auth_router
from app.routers import habits as habits_router
from app.routers import notifications as notifications_router
from app.routers import oracle as oracle_router
from app.routers import posts as posts_router
from app.routers import profiles as profiles_router
from app.routers import quests as quests_router
from app.services.oracle import close_oracle
from app.core.errors import (
    AletheiaException,
    aletheia_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)
    logger.info("Aletheia API starting (env=%s)", settings.APP_ENV)
    yield
    close_oracle()


app = FastAPI(
    title="Aletheia API",
    description=(
        "**Gamified self-development backend**\n\n"
        "Profiles carry an RPG stats ledger (level, xp, five attributes) that only "
        "moves through server-side reward sources: quests, habits, feats and mirror "
        "dilemmas. Every reward response returns the authoritative `stats` and "
        "`version`.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(AletheiaException, aletheia_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(auth_router.router)
app.include_router(profiles_router.router)
app.include_router(quests_router.router)
app.include_router(habits_router.router)
app.include_router(achievements_router.router)
app.include_router(oracle_router.router)
app.include_router(posts_router.router)
app.include_router(notifications_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
