"""
Sequential batch orchestrator.

Each batch runs as its own langgraph loop:

    painter -> (narrator) -> finalize -> painter ... -> END

Units are processed in order, one sub-task at a time. Sub-task failures are
recorded on the unit and never abort the batch; progress advances once per
unit and a snapshot is published to every listener after each advance.
"""
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterable, List, Optional

from langgraph.graph import StateGraph, END

from visulearn.core.graph.state import (
    Asset,
    BatchState,
    CharacterReference,
    GenerationUnit,
)
from visulearn.core.logger import get_logger, log_agent_action, log_error
from visulearn.core.progress import BatchProgress, ProgressListener, ProgressSnapshot
from visulearn.core.retry import CallOutcome, RetryingCaller

logger = get_logger("orchestrator")

ImageTask = Callable[[str, Optional[str]], Awaitable[Asset]]
AudioTask = Callable[[str], Awaitable[Asset]]

# painter, narrator and finalize per unit
STEPS_PER_UNIT = 3


@dataclass(frozen=True)
class BatchResult:
    units: List[GenerationUnit]
    images_succeeded: int
    audio_succeeded: int
    snapshot: ProgressSnapshot

    @property
    def total(self) -> int:
        return len(self.units)


def _merge(unit: GenerationUnit, image: Optional[CallOutcome], audio: Optional[CallOutcome]) -> GenerationUnit:
    changes = {}
    if image is not None:
        if image.ok:
            changes["image_result"] = image.value
        else:
            changes["image_error"] = image.message
    if audio is not None:
        if audio.ok:
            changes["audio_result"] = audio.value
        else:
            changes["audio_error"] = audio.message
    return replace(unit, **changes)


class _BatchRun:
    """One execution of a batch. Owns its progress exclusively."""

    def __init__(
        self,
        orchestrator: "SequentialBatchOrchestrator",
        units: List[GenerationUnit],
        character: Optional[CharacterReference],
    ):
        self.orchestrator = orchestrator
        self.units = list(units)
        self.character = character
        self.progress = BatchProgress(len(self.units))
        self.last_snapshot = self.progress.snapshot()

    # --- HELPERS ---

    def image_prompt(self, unit: GenerationUnit) -> str:
        if self.character is not None and self.character.image:
            return unit.image_prompt.render(self.character.description)
        return unit.image_prompt.text

    def publish(self, units: List[GenerationUnit]) -> None:
        snapshot = self.progress.snapshot(tuple(u.to_dict() for u in units))
        self.last_snapshot = snapshot
        for listener in self.orchestrator.listeners:
            try:
                listener(snapshot)
            except Exception as e:
                log_error("Progress listener failed", e, {"completed": snapshot.completed})

    # --- NODES ---

    async def painter_node(self, state: BatchState) -> BatchState:
        """Generates the image for the current unit."""
        unit = state["units"][state["current_unit_index"]]
        prompt = self.image_prompt(unit)
        reference = self.character.image if self.character else None
        image_task = self.orchestrator.image_task

        outcome = await self.orchestrator.caller.attempt(
            lambda: image_task(prompt, reference),
            context={"unit": unit.id, "subtask": "image"},
        )
        return {"image_outcome": outcome}

    async def narrator_node(self, state: BatchState) -> BatchState:
        """Generates the narration audio for the current unit."""
        unit = state["units"][state["current_unit_index"]]
        audio_task = self.orchestrator.audio_task

        outcome = await self.orchestrator.caller.attempt(
            lambda: audio_task(unit.text),
            context={"unit": unit.id, "subtask": "audio"},
        )
        return {"audio_outcome": outcome}

    async def finalize_node(self, state: BatchState) -> BatchState:
        """Merges sub-task outcomes into the unit, advances and publishes progress."""
        index = state["current_unit_index"]
        image = state.get("image_outcome")
        audio = state.get("audio_outcome")
        unit = _merge(state["units"][index], image, audio)

        for subtask, outcome in (("image", image), ("audio", audio)):
            if outcome is not None and not outcome.ok:
                logger.error(
                    f"unit={unit.id} subtask={subtask} failed after {outcome.attempts} "
                    f"attempt(s) [{outcome.kind.value}]: {outcome.message}"
                )

        units = list(state["units"])
        units[index] = unit
        self.progress.advance(
            image_ok=unit.image_result is not None,
            audio_ok=unit.audio_result is not None,
        )
        log_agent_action(
            "orchestrator",
            f"Unit {unit.id} finalized",
            f"{self.progress.completed}/{self.progress.total}",
            success=unit.image_error is None and unit.audio_error is None,
        )
        self.publish(units)

        next_index = index + 1
        return {
            "units": units,
            "current_unit_index": next_index,
            "is_complete": next_index >= len(units),
            "image_outcome": None,  # Reset temp vars
            "audio_outcome": None,
        }

    # --- EDGES ---

    def check_audio(self, state: BatchState):
        unit = state["units"][state["current_unit_index"]]
        if unit.needs_audio and self.orchestrator.audio_task is not None:
            return "narrator"
        return "finalize"

    def check_completion(self, state: BatchState):
        if state["is_complete"]:
            return END
        return "painter"

    # --- GRAPH ---

    def build_graph(self):
        workflow = StateGraph(BatchState)

        workflow.add_node("painter", self.painter_node)
        workflow.add_node("narrator", self.narrator_node)
        workflow.add_node("finalize", self.finalize_node)

        workflow.set_entry_point("painter")

        workflow.add_conditional_edges(
            "painter",
            self.check_audio,
            {
                "narrator": "narrator",
                "finalize": "finalize",
            }
        )
        workflow.add_edge("narrator", "finalize")
        workflow.add_conditional_edges(
            "finalize",
            self.check_completion,
            {
                "painter": "painter",
                END: END
            }
        )
        return workflow.compile()

    async def execute(self) -> BatchResult:
        self.progress.start()
        units = self.units
        self.publish(units)

        if units:
            initial_state: BatchState = {
                "units": units,
                "current_unit_index": 0,
                "image_outcome": None,
                "audio_outcome": None,
                "is_complete": False,
            }
            final_state = await self.build_graph().ainvoke(
                initial_state,
                config={"recursion_limit": STEPS_PER_UNIT * len(units) + 5},
            )
            units = final_state["units"]

        self.progress.finish()
        self.publish(units)
        return BatchResult(
            units=units,
            images_succeeded=self.progress.images_succeeded,
            audio_succeeded=self.progress.audio_succeeded,
            snapshot=self.last_snapshot,
        )


class SequentialBatchOrchestrator:
    """
    Drives the image (and, for story segments, audio) sub-tasks of every unit
    through a RetryingCaller, strictly in order.

    The orchestrator itself holds no per-batch state, so one instance can
    serve several batches; each ``run`` gets its own progress counter.
    """

    def __init__(
        self,
        image_task: ImageTask,
        audio_task: Optional[AudioTask] = None,
        caller: Optional[RetryingCaller] = None,
        listeners: Iterable[ProgressListener] = (),
    ):
        self.image_task = image_task
        self.audio_task = audio_task
        self.caller = caller or RetryingCaller()
        self.listeners: List[ProgressListener] = list(listeners)

    def subscribe(self, listener: ProgressListener) -> None:
        self.listeners.append(listener)

    async def run(
        self,
        units: List[GenerationUnit],
        character: Optional[CharacterReference] = None,
    ) -> BatchResult:
        ids = [u.id for u in units]
        if len(set(ids)) != len(ids):
            raise ValueError(f"unit ids must be unique, got {ids}")

        logger.info(f"Batch started: {len(units)} unit(s)")
        result = await _BatchRun(self, units, character).execute()
        logger.info(
            f"Batch completed: {result.total} unit(s), "
            f"{result.images_succeeded} image(s), {result.audio_succeeded} audio"
        )
        return result
