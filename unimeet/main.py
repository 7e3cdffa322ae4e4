# unimeet/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from unimeet.config import get_settings
from unimeet.db.session import engine
from unimeet.models import Base
from unimeet.routers import availability, cron, holds, meetings, slots

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Routers
app.include_router(slots.router, prefix="/slots", tags=["slots"])
app.include_router(holds.router, prefix="/holds", tags=["holds"])
app.include_router(meetings.router, prefix="/meetings", tags=["meetings"])
app.include_router(availability.router, prefix="/representatives", tags=["availability"])
app.include_router(cron.router, prefix="/cron", tags=["cron"])


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "database unavailable"})


@app.get("/health")
def health_check():
    db_status = "ok"
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check could not reach the database")
        db_status = "error"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "database": db_status,
    }
