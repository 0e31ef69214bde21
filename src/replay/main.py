import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.replay.api.automation_endpoints import get_scheduler, router as automation_router
from src.replay.core.config import settings
from src.replay.core.logging_config import setup_playback_logging
from src.replay.services.page_surface import SeleniumPageProvider

# --- Logging Configuration ---
setup_playback_logging(settings.LOG_LEVEL, settings.LOG_DIR)

# --- FastAPI App ---
app = FastAPI(title="Recorded-Step Replay Engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- API Router ---
app.include_router(automation_router)


@app.on_event("startup")
async def startup_event():
    scheduler = await get_scheduler()
    if not scheduler.init_scheduler():
        logging.info("Scheduled playback is disabled.")
    logging.info("Application startup complete.")


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = await get_scheduler()
    scheduler.stop()
    provider = scheduler.playback.page_provider
    if isinstance(provider, SeleniumPageProvider):
        provider.shutdown()
    logging.info("Application shutdown complete.")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.APP_PORT)
