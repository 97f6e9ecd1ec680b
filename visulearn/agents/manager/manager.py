from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Sequence

from visulearn.agents.manager.manager_prompt import (
    STORY_FILLER_PROMPT,
    STORY_FILLER_TEXT,
    comic_filler_caption,
    comic_filler_prompt,
    get_comic_prompt,
    get_story_prompt,
    reinforce_comic_prompt,
)
from visulearn.core.errors import ConfigurationError, ParseError, PreconditionError
from visulearn.core.gemini_client import GeminiClient
from visulearn.core.graph.state import GenerationUnit, UnitKind
from visulearn.core.logger import get_logger, log_agent_action
from visulearn.core.parsing import parse_structured_output
from visulearn.core.prompt_template import PromptTemplate
from visulearn.core.retry import RetryingCaller
from visulearn.schemas.schema import ComicRequest, StoryRequest

logger = get_logger("manager")

# Narration time of one story segment
SECONDS_PER_SEGMENT = 15


@dataclass(frozen=True)
class UnitDescriptor:
    id: int
    text: str
    image_prompt: str


@dataclass(frozen=True)
class StoryPlan:
    units: List[GenerationUnit]
    returned_count: int


@dataclass(frozen=True)
class ComicPlan:
    title: str
    description: str
    units: List[GenerationUnit]
    returned_count: int


def calculate_segment_count(duration_minutes: int) -> int:
    """Number of story segments for a duration.

    Rule: 1 segment = ~15 seconds of narration, so segments = duration * 4
    Examples: 1min→4, 2min→8, 5min→20
    """
    return max(1, (duration_minutes * 60) // SECONDS_PER_SEGMENT)


def reconcile_unit_count(
    descriptors: Sequence[UnitDescriptor],
    target: int,
    make_filler: Callable[[int], UnitDescriptor],
) -> List[UnitDescriptor]:
    """
    Force a planned list to exactly ``target`` entries.

    Extra entries are dropped from the tail, missing ones are synthesized by
    ``make_filler(position)`` and appended. Ids are renumbered 1..target.
    """
    if target < 1:
        raise ValueError("target must be >= 1")

    kept = list(descriptors[:target])
    if len(descriptors) > target:
        logger.warning(f"Expected {target} units, got {len(descriptors)}. Truncated to {target}")
    elif len(descriptors) < target:
        logger.warning(f"Expected {target} units, got {len(descriptors)}. Adding {target - len(descriptors)}")
        while len(kept) < target:
            kept.append(make_filler(len(kept) + 1))

    return [replace(d, id=position) for position, d in enumerate(kept, start=1)]


def _descriptor(raw: Any, position: int, text_keys: Sequence[str], id_key: str) -> UnitDescriptor:
    if not isinstance(raw, dict):
        raise PreconditionError(f"Unit {position} is not an object")
    text = next((raw[k] for k in text_keys if raw.get(k)), "")
    prompt = raw.get("image_generation_prompt") or raw.get("image_prompt") or ""
    unit_id = raw.get(id_key)
    return UnitDescriptor(
        id=unit_id if isinstance(unit_id, int) else position,
        text=str(text),
        image_prompt=str(prompt),
    )


async def _generate_script(prompt: str, client: GeminiClient, caller: RetryingCaller, what: str) -> Any:
    try:
        text = await caller.call(lambda: client.generate_text(prompt), context={"subtask": f"plan_{what}"})
    except ConfigurationError:
        raise
    except Exception as e:
        raise PreconditionError(f"{what.capitalize()} generation failed: {e}") from e

    try:
        return parse_structured_output(text, expect=(list, dict))
    except ParseError as e:
        logger.error(f"Raw text that failed to parse: {e.raw_text[:500]}")
        raise PreconditionError(f"Failed to parse {what} response") from e


async def plan_story(
    request: StoryRequest,
    client: GeminiClient,
    caller: Optional[RetryingCaller] = None,
) -> StoryPlan:
    """
    Generates the story script and returns exactly the requested number of
    story segments. Raises PreconditionError when no usable script comes back.
    """
    caller = caller or RetryingCaller()
    target = calculate_segment_count(request.duration)

    data = await _generate_script(get_story_prompt(request, target), client, caller, "story")
    segments = data if isinstance(data, list) else (data.get("segments") or data.get("story"))
    if not isinstance(segments, list) or not segments:
        raise PreconditionError("Story response contained no segments")

    descriptors = [
        _descriptor(raw, i, ("narrative_text", "text"), "segment_id")
        for i, raw in enumerate(segments, start=1)
    ]
    reconciled = reconcile_unit_count(
        descriptors,
        target,
        lambda position: UnitDescriptor(position, STORY_FILLER_TEXT, STORY_FILLER_PROMPT),
    )
    units = [
        GenerationUnit(
            id=d.id,
            text=d.text,
            image_prompt=PromptTemplate(d.image_prompt or STORY_FILLER_PROMPT),
            kind=UnitKind.STORY_SEGMENT,
        )
        for d in reconciled
    ]
    log_agent_action("manager", "Story planned", f"{len(units)} segments (model returned {len(descriptors)})")
    return StoryPlan(units=units, returned_count=len(descriptors))


async def plan_comic(
    request: ComicRequest,
    client: GeminiClient,
    caller: Optional[RetryingCaller] = None,
) -> ComicPlan:
    """
    Generates the comic script and returns exactly ``request.panels`` panels.
    Raises PreconditionError when no usable script comes back.
    """
    caller = caller or RetryingCaller()

    data = await _generate_script(get_comic_prompt(request), client, caller, "comic")
    panels = data.get("panels") if isinstance(data, dict) else None
    if not isinstance(panels, list) or not panels:
        raise PreconditionError("Invalid comic structure: missing panels array")

    descriptors = [
        _descriptor(raw, i, ("panel_text", "text"), "panel_id")
        for i, raw in enumerate(panels, start=1)
    ]
    reconciled = reconcile_unit_count(
        descriptors,
        request.panels,
        lambda position: UnitDescriptor(position, comic_filler_caption(request), comic_filler_prompt(request)),
    )
    units = [
        GenerationUnit(
            id=d.id,
            text=d.text or f'{request.child_name}: "Panel {d.id}"',
            image_prompt=PromptTemplate(reinforce_comic_prompt(
                d.image_prompt or f"Comic panel showing {request.child_name} the {request.child_role}",
                request,
            )),
            kind=UnitKind.COMIC_PANEL,
        )
        for d in reconciled
    ]
    log_agent_action("manager", "Comic planned", f"{len(units)} panels (model returned {len(descriptors)})")
    return ComicPlan(
        title=str(data.get("title") or f"{request.child_name}'s Comic"),
        description=str(data.get("description") or ""),
        units=units,
        returned_count=len(descriptors),
    )
