# stockpulse/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from stockpulse.api.endpoints import router as api_router
from stockpulse.api.events import router as events_router
from stockpulse.core.config import settings
from stockpulse.core.log import setup_logging
from stockpulse.core.orchestrator import PipelineOrchestrator, build_orchestrator
from stockpulse.core.scheduler import start_scheduler
from stockpulse.db.database import Base, engine


def create_app(orchestrator: Optional[PipelineOrchestrator] = None,
               scheduler: Optional[bool] = None, init_db: bool = True) -> FastAPI:
    run_scheduler = settings.SCHEDULER_ENABLED if scheduler is None else scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if init_db:
            Base.metadata.create_all(bind=engine)
        sched = start_scheduler(app.state.orchestrator) if run_scheduler else None
        try:
            yield
        finally:
            if sched is not None:
                sched.shutdown(wait=False)

    app = FastAPI(title=f"{settings.APP_NAME} notifier", lifespan=lifespan)
    app.state.orchestrator = orchestrator or build_orchestrator()
    app.include_router(api_router, prefix="/api")
    app.include_router(events_router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": "API ready"}

    return app


app = create_app()
