import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import cache_service, notification_broadcaster
from app.api.v1.api import api_router
from app.api.v1.endpoints import health, notifications
from app.core.config import settings
from app.core.database import SessionLocal, engine, init_models
from app.services.parcel_expiration import ParcelExpirationService
from app.services.seeder import seed_database

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Cargo Parcel Tracker...")
    await init_models()

    if settings.SEED_DEMO_DATA:
        async with SessionLocal() as db:
            await seed_database(db)

    expiration_service = None
    if settings.PARCEL_EXPIRATION_ENABLED:
        expiration_service = ParcelExpirationService(session_factory=SessionLocal)
        await expiration_service.start()

    await notification_broadcaster.start()
    yield

    await notification_broadcaster.stop()
    if expiration_service is not None:
        await expiration_service.stop()
    await cache_service.remote.close()
    await engine.dispose()
    logger.info("Cargo Parcel Tracker stopped")


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

# --- CORS CONFIGURATION ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register Routes
app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} API is Online 🟢"}
