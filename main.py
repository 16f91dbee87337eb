from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.config.database import Database
from app.config.settings import settings
from app.api.diagnoses import router as diagnoses_router
from app.api.dashboard import router as dashboard_router
from app.middleware import JWTAuthMiddleware
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=settings.log_file,
)
logger = logging.getLogger(__name__)


def _uses_mongo() -> bool:
    return settings.record_store_backend != "memory"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting PoultrySense diagnosis service...")
    logger.info(f"Environment: {settings.environment}")

    if _uses_mongo():
        try:
            await Database.connect_db()
            logger.info("MongoDB connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise
    else:
        logger.warning("Using in-memory diagnosis store; history is not persisted")

    yield

    logger.info("Shutting down PoultrySense diagnosis service...")
    if _uses_mongo():
        await Database.close_db()
        logger.info("MongoDB connection closed")


# Initialize FastAPI app
app = FastAPI(
    title="PoultrySense - AI Poultry Health Assistant",
    description="Diagnoses poultry health issues from photos, symptom descriptions and flock audio, keeps a diagnosis history and serves dashboard analytics.",
    version="1.0.0",
    lifespan=lifespan,
)

# add_middleware stacks LIFO: CORS must be added last so it wraps JWT
# and 401 responses still carry CORS headers.
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(diagnoses_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    if _uses_mongo():
        try:
            db = Database.get_database()
            await db.command("ping")
            store_status = "connected"
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            store_status = f"error: {str(e)}"
    else:
        store_status = "memory"

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "record_store": store_status,
            "github_models": (
                "configured" if settings.github_token else "not configured"
            ),
        },
    }


@app.get("/")
async def root():
    return {
        "message": "PoultrySense - AI Poultry Health Assistant",
        "description": "AI-assisted poultry disease diagnosis and flock health history",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.poultrysense_port,
        reload=settings.environment == "development",
    )
