import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.database import engine
from models.base import Base
import models.registry  # noqa: F401  registers every table on Base.metadata

from routers.auth import router as auth_router
from routers.profile import router as profile_router
from routers.event import router as event_router
from routers.sessions import router as sessions_router
from routers.push import router as push_router
from routers.connections import router as connections_router
from routers.health import router as health_router

from services.event_runtime import runtimes

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(
    title="7PM Date Backend",
    version="0.1.0",
    description="Backend for the nightly 7PM speed-dating event"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("uvicorn.error")


@app.middleware("http")
async def log_request_time(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} completed in {process_time:.2f} ms"
    )
    return response

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(event_router)
app.include_router(sessions_router)
app.include_router(push_router)
app.include_router(connections_router)
app.include_router(health_router)


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/")
async def root():
    return {"message": "7PM Date Backend"}


@app.on_event("shutdown")
async def shutdown():
    # Pending countdowns and pollers must not outlive the loop
    await runtimes.shutdown()
    await engine.dispose()
