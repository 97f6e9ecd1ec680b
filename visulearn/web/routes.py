from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from typing import List, Optional

from elevenlabs.client import AsyncElevenLabs

from visulearn.agents.context_loader import get_user_friendly_error
from visulearn.agents.manager.manager import plan_comic, plan_story
from visulearn.agents.narrative.painter import (
    DEFAULT_ILLUSTRATION_PROMPT,
    generate_image,
    make_image_task,
)
from visulearn.agents.speech.t2s import AUDIO_MIME_TYPE, get_tts_client, make_audio_task, synthesize_speech
from visulearn.agents.vision.analyzer import analyze_image, enhance_image
from visulearn.core.errors import ProviderError
from visulearn.core.gemini_client import GeminiClient, get_gemini_client
from visulearn.core.graph.state import CharacterReference, GenerationUnit
from visulearn.core.graph.workflow import SequentialBatchOrchestrator
from visulearn.core.logger import get_logger, log_error
from visulearn.core.prompt_template import character_description
from visulearn.core.retry import RetryingCaller, RetryPolicy
from visulearn.schemas.schema import (
    AnalyzeImageRequest,
    ComicRequest,
    EnhanceImageRequest,
    JobStarted,
    PlanResponse,
    StoryRequest,
    TextToSpeechRequest,
)
from visulearn.web.jobs import JobRegistry

logger = get_logger("routes")

router = APIRouter(prefix="/api")

# Standalone TTS endpoint: 3 retries starting at 2 seconds
TTS_RETRY_POLICY = RetryPolicy(max_retries=3, base_delay=2.0)


# --- DEPENDENCIES ---

def gemini_client() -> GeminiClient:
    return get_gemini_client()


def tts_client() -> AsyncElevenLabs:
    return get_tts_client()


def get_caller() -> RetryingCaller:
    return RetryingCaller()


def get_tts_caller() -> RetryingCaller:
    return RetryingCaller(TTS_RETRY_POLICY)


def get_job_registry(request: Request) -> JobRegistry:
    return request.app.state.jobs


def _error(error_type: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"success": False, "error": get_user_friendly_error(error_type)}, status_code=status_code)


def _character(name: str, role: str, image: Optional[str]) -> CharacterReference:
    return CharacterReference(description=character_description(name, role), image=image or None)


# --- PLANNING ---

@router.post("/generate-story", response_model=PlanResponse)
async def generate_story(
    body: StoryRequest,
    client: GeminiClient = Depends(gemini_client),
    caller: RetryingCaller = Depends(get_caller),
):
    """Plan a story (segments only, no images or audio)."""
    plan = await plan_story(body, client, caller)
    return {"units": [u.to_dict() for u in plan.units]}


@router.post("/generate-comic", response_model=PlanResponse)
async def generate_comic(
    body: ComicRequest,
    client: GeminiClient = Depends(gemini_client),
    caller: RetryingCaller = Depends(get_caller),
):
    """Plan a comic (panels only, no images)."""
    plan = await plan_comic(body, client, caller)
    return {
        "title": plan.title,
        "description": plan.description,
        "units": [u.to_dict() for u in plan.units],
    }


# --- BATCH JOBS ---

async def run_batch(
    jobs: JobRegistry,
    job_id: str,
    orchestrator: SequentialBatchOrchestrator,
    units: List[GenerationUnit],
    character: CharacterReference,
):
    try:
        await orchestrator.run(units, character)
    except Exception as e:
        jobs.fail(job_id, str(e))
        log_error("Batch failed", e, {"job_id": job_id})


@router.post("/story/generate", response_model=JobStarted)
async def start_story_job(
    body: StoryRequest,
    background_tasks: BackgroundTasks,
    client: GeminiClient = Depends(gemini_client),
    tts: AsyncElevenLabs = Depends(tts_client),
    caller: RetryingCaller = Depends(get_caller),
    jobs: JobRegistry = Depends(get_job_registry),
):
    """
    Plan a story, then illustrate and narrate every segment in the background.
    Poll /api/jobs/{job_id} for progress.
    """
    plan = await plan_story(body, client, caller)
    job = jobs.create("story", len(plan.units))
    logger.info(f"Story job {job.id} started with {len(plan.units)} segment(s)")

    orchestrator = SequentialBatchOrchestrator(
        image_task=make_image_task(client),
        audio_task=make_audio_task(tts),
        caller=caller,
        listeners=[jobs.listener(job.id)],
    )
    character = _character(body.child_name, body.child_role, body.character_image)
    background_tasks.add_task(run_batch, jobs, job.id, orchestrator, plan.units, character)

    return {"job_id": job.id, "status": "started", "total": len(plan.units)}


@router.post("/comic/generate", response_model=JobStarted)
async def start_comic_job(
    body: ComicRequest,
    background_tasks: BackgroundTasks,
    client: GeminiClient = Depends(gemini_client),
    caller: RetryingCaller = Depends(get_caller),
    jobs: JobRegistry = Depends(get_job_registry),
):
    """Plan a comic, then illustrate every panel in the background."""
    plan = await plan_comic(body, client, caller)
    job = jobs.create("comic", len(plan.units), title=plan.title)
    logger.info(f"Comic job {job.id} started with {len(plan.units)} panel(s)")

    orchestrator = SequentialBatchOrchestrator(
        image_task=make_image_task(client),
        caller=caller,
        listeners=[jobs.listener(job.id)],
    )
    character = _character(body.child_name, body.child_role, body.character_image)
    background_tasks.add_task(run_batch, jobs, job.id, orchestrator, plan.units, character)

    return {"job_id": job.id, "status": "started", "total": len(plan.units)}


@router.get("/jobs/{job_id}")
async def get_job_status(job_id: str, jobs: JobRegistry = Depends(get_job_registry)):
    job = jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_dict()


# --- SINGLE CALLS ---

@router.post("/text-to-speech")
async def text_to_speech(
    body: TextToSpeechRequest,
    client: AsyncElevenLabs = Depends(tts_client),
    caller: RetryingCaller = Depends(get_tts_caller),
):
    if not body.text:
        return JSONResponse({"success": False, "error": "Text is required"}, status_code=400)

    try:
        audio = await caller.call(lambda: synthesize_speech(body.text, client), context={"subtask": "tts"})
    except ProviderError as e:
        log_error("Error generating TTS", e)
        return _error("AUDIO_FAILED")

    return Response(
        content=audio,
        media_type=AUDIO_MIME_TYPE,
        headers={"Content-Length": str(len(audio))},
    )


@router.post("/enhance-image")
async def enhance_image_api(
    body: EnhanceImageRequest,
    client: GeminiClient = Depends(gemini_client),
    caller: RetryingCaller = Depends(get_caller),
):
    """Story illustration (is_story_generation) or snap & learn enhancement."""
    if body.is_story_generation:
        async def operation():
            return await generate_image(body.image_prompt or DEFAULT_ILLUSTRATION_PROMPT, body.image, client)
    else:
        if not body.image:
            return JSONResponse({"success": False, "error": "Image is required for enhancement"}, status_code=400)

        async def operation():
            return await enhance_image(body.image, body.visual_edits, client)

    try:
        asset = await caller.call(operation, context={"subtask": "enhance_image"})
    except ProviderError as e:
        log_error("Error enhancing image", e)
        return _error("IMAGE_FAILED")

    return {"success": True, "enhanced_image": asset.as_data_url()}


@router.post("/analyze-image")
async def analyze_image_api(
    body: AnalyzeImageRequest,
    client: GeminiClient = Depends(gemini_client),
    caller: RetryingCaller = Depends(get_caller),
):
    try:
        analysis = await caller.call(
            lambda: analyze_image(body.image, body.subject, client, body.previous_concepts),
            context={"subtask": "analyze_image"},
        )
    except ProviderError as e:
        log_error("Error analyzing image", e)
        return _error("ANALYSIS_FAILED")

    return {"success": True, "analysis": analysis}
