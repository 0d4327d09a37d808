# app/scheduler.py
import os
from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from .db import SessionLocal
from .services import refresh_all_sources
from .utils import logger

load_dotenv()
SCRAPE_INTERVAL_MINUTES = int(os.getenv("SCRAPE_INTERVAL_MINUTES", "60"))

scheduler = BackgroundScheduler()

def scheduled_refresh():
    db = SessionLocal()
    try:
        summaries = refresh_all_sources(db)
        logger.info("Scheduled refresh finished: %s", summaries)
    except Exception as e:
        logger.exception("Scheduled refresh failed: %s", e)
    finally:
        db.close()

def start_scheduler(interval_minutes: int = SCRAPE_INTERVAL_MINUTES):
    if scheduler.running:
        return scheduler
    scheduler.add_job(scheduled_refresh, 'interval', minutes=interval_minutes,
                      id="refresh_all_sources", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started (every %d minutes)", interval_minutes)
    return scheduler

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
