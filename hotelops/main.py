"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from hotelops.config import get_settings
from hotelops.database import engine, Base, AsyncSessionLocal
from hotelops.exceptions import setup_exception_handlers
from hotelops.models import Supervisor
from hotelops.api.auth import get_password_hash
from hotelops.api import auth, supervisors, rooms, working_orders, notes
from hotelops.utils.logger import setup_logging

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    # Seed the admin supervisor
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Supervisor).where(Supervisor.role == "admin")
        )
        if not result.scalars().first():
            session.add(Supervisor(
                nombre=settings.DEFAULT_ADMIN_NAME,
                correo=settings.DEFAULT_ADMIN_EMAIL.lower(),
                role="admin",
                kind="SUPERVISOR",
                hashed_password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
            ))
            await session.commit()
            logger.info(f"Created default admin supervisor {settings.DEFAULT_ADMIN_EMAIL}")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(supervisors.router, prefix="/api/supervisors", tags=["Supervisors"])
app.include_router(rooms.router, prefix="/api/rooms", tags=["Rooms"])
app.include_router(working_orders.router, prefix="/api/working-orders", tags=["Working Orders"])
app.include_router(notes.router, prefix="/api/notes", tags=["Notes"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hotelops.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
