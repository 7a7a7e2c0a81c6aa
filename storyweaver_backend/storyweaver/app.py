import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

# Ensure .env is loaded before importing modules that initialize API clients
from .settings import ALLOWED_ORIGINS, OUTPUT_DIR, PUBLIC_URL_PREFIX, configured_services, has_all_keys
from .errors import AlreadyProcessing, StoryNotFound
from .media import ffmpeg_available
from .models import ProcessRequest, Story, StoryCreate, StoryStatus
from .orchestrator import PipelineRunner, build_pipeline
from .storage import StoryStore, default_store

logger = logging.getLogger(__name__)


def create_app(store: Optional[StoryStore] = None, runner: Optional[PipelineRunner] = None, output_dir: str = OUTPUT_DIR) -> FastAPI:
    store = store or default_store()
    runner = runner or PipelineRunner(build_pipeline(store))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down, cancelling in-flight stories")
        await runner.shutdown()

    app = FastAPI(title="AI StoryWeaver Backend", lifespan=lifespan)
    app.state.store = store
    app.state.runner = runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
    )

    os.makedirs(output_dir, exist_ok=True)
    app.mount(PUBLIC_URL_PREFIX, StaticFiles(directory=output_dir), name="generated")

    @app.exception_handler(StoryNotFound)
    async def story_not_found(request: Request, exc: StoryNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/health")
    def health():
        keys_ok = has_all_keys()
        logger.info(f"Health check: API keys present = {keys_ok}")
        return {"ok": True, "has_keys": keys_ok, "services": configured_services(), "ffmpeg": ffmpeg_available()}

    @app.post("/api/stories", response_model=Story, status_code=201)
    async def create_story(req: StoryCreate):
        logger.info(f"Creating story: {req.title[:50]}")
        return await store.create_story(req)

    @app.get("/api/stories", response_model=List[Story])
    async def list_stories():
        return await store.list_stories()

    @app.get("/api/stories/{story_id}", response_model=Story)
    async def get_story(story_id: str):
        return await store.get_story(story_id)

    @app.post("/api/stories/{story_id}/process", status_code=202)
    async def process_story(story_id: str, req: Optional[ProcessRequest] = None):
        story = await store.get_story(story_id)
        if story.status != StoryStatus.PENDING:
            raise HTTPException(409, f"story is {story.status.value}; only pending stories can be processed")

        input_language = req.input_language if req else story.input_language
        narration_language = req.narration_language if req else story.narration_language
        try:
            runner.submit(story_id, input_language, narration_language)
        except AlreadyProcessing:
            raise HTTPException(409, "story is already being processed")
        return {"story_id": story_id, "status": "processing"}

    @app.post("/api/stories/{story_id}/cancel")
    async def cancel_story(story_id: str):
        await store.get_story(story_id)
        if not runner.cancel(story_id):
            raise HTTPException(409, "story is not being processed")
        return {"story_id": story_id, "cancelled": True}

    return app


app = create_app()
