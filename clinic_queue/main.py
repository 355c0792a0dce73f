"""
Main application file
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from clinic_queue.api.routes.api.attendance import router as attendance_router
from clinic_queue.api.routes.api.display import router as display_router
from clinic_queue.api.routes.api.queue import router as queue_router
from clinic_queue.api.routes.api.visits import router as visits_router
from clinic_queue.api.routes.auth import router as auth_router
from clinic_queue.config import get_settings

# Load environment variables from .env file
load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# --- Lifespan handler ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    redis_client = None
    app.state.redis_client = None

    try:
        # Without Redis the screens still converge by polling
        if settings.redis_url:
            logger.info("Initializing Redis…")
            try:
                redis_client = Redis.from_url(settings.redis_url, decode_responses=False)
                await redis_client.ping()
                app.state.redis_client = redis_client
                logger.info("Redis connection successful.")
            except Exception as e:
                logger.error("Redis connection failed, change notifications disabled: %s", e)
                redis_client = None
        else:
            logger.info("REDIS_URL not set, change notifications disabled")

        yield

    finally:
        if redis_client:
            try:
                await redis_client.aclose()
                logger.info("Redis connection closed.")
            except Exception as e:
                logger.error("Error closing Redis connection: %s", e)


app = FastAPI(lifespan=lifespan)

allowed_origins = [
    "http://localhost:8080",
    "http://localhost:5173",
]
if settings.frontend_url and settings.frontend_url not in allowed_origins:
    allowed_origins.append(settings.frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"status": "ok"}


app.include_router(
    auth_router,
    prefix="/auth",
    tags=["auth"]
)

app.include_router(
    queue_router,
    prefix="/queue",
    tags=["queue"],
)

app.include_router(
    display_router,
    prefix="/display",
    tags=["display"],
)

app.include_router(
    attendance_router,
    prefix="/attendance",
    tags=["attendance"],
)

app.include_router(
    visits_router,
    prefix="/visits",
    tags=["visits"],
)
