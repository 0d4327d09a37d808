from fastapi import FastAPI
from app.db import Base, engine
from app.api.routes import router as api_router
from app.scheduler import start_scheduler, stop_scheduler
from app.utils import env_flag
import app.models  # noqa: F401 ensure models are imported so tables are known

# create FastAPI instance
app = FastAPI(title="Car listing aggregator")
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    if env_flag("ENABLE_SCHEDULER"):
        start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()
