import asyncio, logging
from typing import Dict, Optional
from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, END
from .adapters import ElevenLabsNarrator, ImageSource, Narrator, SceneImageSource, StorySummarizer, Summarizer, default_scene_writer
from .compositor import VideoCompositor
from .errors import AlreadyProcessing, PipelineCancelled
from .image_renderer import SceneImageRenderer
from .models import Outcome, PipelineRun, Story, StoryStatus
from .planner import ScenePlanner
from .settings import MAX_CONCURRENT_RUNS, VIDEO_DURATION_S
from .storage import StoryStore

logger = logging.getLogger(__name__)

class StoryPipeline:
    """Drives one story through summarizing -> generating_audio -> generating_images -> creating_video.

    Each stage writes its status before doing any work and writes its output
    together with the next status, so a poller only ever sees forward
    progress. Anything a stage cannot absorb ends the story as ``failed``;
    fields already written stay in place.
    """

    def __init__(
        self,
        store: StoryStore,
        summarizer: Summarizer,
        narrator: Narrator,
        planner: ScenePlanner,
        images: ImageSource,
        compositor: VideoCompositor,
        total_duration: int = VIDEO_DURATION_S,
    ):
        self.store = store
        self.summarizer = summarizer
        self.narrator = narrator
        self.planner = planner
        self.images = images
        self.compositor = compositor
        self.total_duration = total_duration
        self.graph = self._build_graph()

    def _build_graph(self):
        g = StateGraph(PipelineRun)
        g.add_node("summarizing", self.node_summarize)
        g.add_node("generating_audio", self.node_narrate)
        g.add_node("generating_images", self.node_images)
        g.add_node("creating_video", self.node_video)
        g.set_entry_point("summarizing")
        g.add_edge("summarizing", "generating_audio")
        g.add_edge("generating_audio", "generating_images")
        g.add_edge("generating_images", "creating_video")
        g.add_edge("creating_video", END)
        return g.compile()

    @staticmethod
    def _check_cancelled(state: PipelineRun, config: RunnableConfig):
        cancel_event = (config or {}).get("configurable", {}).get("cancel_event")
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled(f"story {state.story_id} was cancelled")

    @staticmethod
    def _note(story_id: str, what: str, outcome: Outcome):
        if outcome.degraded:
            logger.warning(f"Story {story_id}: {what} degraded ({outcome.reason})")
        else:
            logger.info(f"Story {story_id}: {what} ready")

    async def node_summarize(self, state: PipelineRun, config: RunnableConfig) -> dict:
        self._check_cancelled(state, config)
        await self.store.update_story(state.story_id, status=StoryStatus.SUMMARIZING)
        outcome = await self.summarizer.summarize(state.original_text, state.input_language, state.narration_language)
        self._note(state.story_id, "summary", outcome)
        await self.store.update_story(state.story_id, summary=outcome.value, status=StoryStatus.GENERATING_AUDIO)
        return {"summary": outcome.value}

    async def node_narrate(self, state: PipelineRun, config: RunnableConfig) -> dict:
        self._check_cancelled(state, config)
        outcome = await self.narrator.synthesize(state.summary or "", state.narration_language)
        self._note(state.story_id, "narration", outcome)
        await self.store.update_story(state.story_id, audio_url=outcome.value, status=StoryStatus.GENERATING_IMAGES)
        return {"audio_url": outcome.value}

    async def node_images(self, state: PipelineRun, config: RunnableConfig) -> dict:
        self._check_cancelled(state, config)
        plan = await self.planner.plan(state.summary or "", state.input_language)
        self._note(state.story_id, f"scene plan ({len(plan.value)} scenes)", plan)

        scenes = []
        for number, description in enumerate(plan.value, start=1):
            self._check_cancelled(state, config)
            logger.info(f"Story {state.story_id}: generating image {number}/{len(plan.value)}")
            image = await self.images.generate_image(description, state.input_language, number)
            self._note(state.story_id, f"scene {number} image", image)
            scenes.append(await self.store.create_scene(state.story_id, number, description, image.value))

        await self.store.update_story(state.story_id, status=StoryStatus.CREATING_VIDEO)
        return {"scenes": scenes}

    async def node_video(self, state: PipelineRun, config: RunnableConfig) -> dict:
        self._check_cancelled(state, config)
        result = await self.compositor.compose(state.title, state.scenes, state.audio_url, state.total_duration)
        if result.degraded:
            logger.warning(f"Story {state.story_id}: video degraded ({result.reason})")
        fields = {"video_url": result.video_url, "status": StoryStatus.COMPLETED}
        if result.preview_url:
            fields["preview_url"] = result.preview_url
        await self.store.update_story(state.story_id, **fields)
        return {"video_url": result.video_url, "preview_url": result.preview_url}

    async def run(
        self,
        story_id: str,
        input_language: Optional[str] = None,
        narration_language: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Story:
        story = await self.store.get_story(story_id)
        if story.status != StoryStatus.PENDING:
            logger.warning(f"Story {story_id} is {story.status.value}; only pending stories are processed")
            return story

        state = PipelineRun(
            story_id=story.id,
            title=story.title or "Untitled Story",
            original_text=story.original_text,
            input_language=input_language or story.input_language,
            narration_language=narration_language or story.narration_language,
            total_duration=self.total_duration,
        )
        config = {"configurable": {"cancel_event": cancel_event}}
        try:
            logger.info(f"Starting pipeline for story {story_id}")
            await self.graph.ainvoke(state, config=config)
            logger.info(f"Pipeline completed for story {story_id}")
        except PipelineCancelled as e:
            logger.warning(str(e))
            await self._fail(story_id, "cancelled")
        except Exception as e:
            logger.exception(f"Pipeline failed for story {story_id}: {e}")
            await self._fail(story_id, f"{type(e).__name__}: {e}")
        return await self.store.get_story(story_id)

    async def _fail(self, story_id: str, reason: str):
        try:
            await self.store.update_story(story_id, status=StoryStatus.FAILED, failure_reason=reason)
        except Exception as e:
            logger.error(f"Could not record failure for story {story_id}: {e}")


class PipelineRunner:
    """Runs pipelines in the background: bounded concurrency, one run per story, cancellable."""

    def __init__(self, pipeline: StoryPipeline, max_concurrent_runs: int = MAX_CONCURRENT_RUNS):
        self.pipeline = pipeline
        self._slots = asyncio.Semaphore(max_concurrent_runs)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

    def is_running(self, story_id: str) -> bool:
        return story_id in self._tasks

    def submit(self, story_id: str, input_language: Optional[str] = None, narration_language: Optional[str] = None) -> asyncio.Task:
        if story_id in self._tasks:
            raise AlreadyProcessing(story_id)
        cancel_event = asyncio.Event()
        task = asyncio.create_task(self._execute(story_id, input_language, narration_language, cancel_event))
        self._tasks[story_id] = task
        self._cancel_events[story_id] = cancel_event
        task.add_done_callback(lambda _t: self._forget(story_id))
        logger.info(f"Queued story {story_id}")
        return task

    async def _execute(self, story_id, input_language, narration_language, cancel_event) -> Optional[Story]:
        async with self._slots:
            try:
                return await self.pipeline.run(story_id, input_language, narration_language, cancel_event)
            except Exception as e:
                logger.exception(f"Background run for story {story_id} crashed: {e}")
                return None

    def _forget(self, story_id: str):
        self._tasks.pop(story_id, None)
        self._cancel_events.pop(story_id, None)

    def cancel(self, story_id: str) -> bool:
        cancel_event = self._cancel_events.get(story_id)
        if cancel_event is None:
            return False
        cancel_event.set()
        logger.info(f"Cancellation requested for story {story_id}")
        return True

    async def shutdown(self):
        for cancel_event in self._cancel_events.values():
            cancel_event.set()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)


def build_pipeline(store: StoryStore) -> StoryPipeline:
    return StoryPipeline(
        store=store,
        summarizer=StorySummarizer(),
        narrator=ElevenLabsNarrator(),
        planner=ScenePlanner(default_scene_writer()),
        images=SceneImageSource(SceneImageRenderer()),
        compositor=VideoCompositor(),
    )
