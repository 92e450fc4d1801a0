import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import get_settings
from backend.meetings.routes import router as meetings_router
from backend.session.routes import close_media_stream_controller, router as session_router

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await close_media_stream_controller()


app = FastAPI(title="CallScribe API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_router, tags=["media-stream"])
app.include_router(meetings_router, prefix="/api/meetings", tags=["meetings"])


@app.get("/health")
def health_check():
    return {"status": "ok"}
