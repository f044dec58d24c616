import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.init_db import create_tables

from app.api.v1.time_slots.router import router as time_slots_router
from app.api.v1.class_timetables.router import router as class_timetables_router
from app.api.v1.multi_period.router import router as multi_period_router
from app.api.v1.timetable_entries.router import router as timetable_entries_router
from app.api.v1.scheduled_subjects.router import router as scheduled_subjects_router
from app.api.v1.schedules.router import router as schedules_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        await create_tables()
    logger.info("%s started", settings.app_title)
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.app_title, lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(time_slots_router)
    app.include_router(class_timetables_router)
    # before the entry router so the fixed path is matched ahead of /{entry_id}
    app.include_router(multi_period_router)
    app.include_router(timetable_entries_router)
    app.include_router(scheduled_subjects_router)
    app.include_router(schedules_router)

    @app.get("/api/v1/timetables/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
