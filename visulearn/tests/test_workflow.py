"""
Batch Orchestration Tests
=========================
Tests for sequential per-unit image/audio generation, partial failures and
progress publication.
"""
import asyncio
import logging

import pytest

from conftest import audio_asset, image_asset, rate_limited
from visulearn.core.errors import ProviderError
from visulearn.core.graph.state import CharacterReference, GenerationUnit, UnitKind
from visulearn.core.graph.workflow import SequentialBatchOrchestrator
from visulearn.core.progress import BatchStatus
from visulearn.core.prompt_template import PromptTemplate


def make_units(count, kind=UnitKind.STORY_SEGMENT):
    return [
        GenerationUnit(
            id=i,
            text=f"Segment {i} text",
            image_prompt=PromptTemplate(f"[CHARACTER] in scene {i}"),
            kind=kind,
        )
        for i in range(1, count + 1)
    ]


class ScriptedTasks:
    """Image/audio tasks that fail for the unit numbers they are told to."""

    def __init__(self, image_failures=None, audio_failures=None):
        self.image_failures = image_failures or {}
        self.audio_failures = audio_failures or {}
        self.calls = []

    async def image(self, prompt, reference_image):
        unit = int(prompt.rsplit(" ", 1)[-1])
        self.calls.append(("image", unit, prompt, reference_image))
        errors = self.image_failures.get(unit)
        if errors:
            raise errors.pop(0)
        return image_asset(f"img{unit}")

    async def audio(self, text):
        unit = int(text.split()[1])
        self.calls.append(("audio", unit))
        errors = self.audio_failures.get(unit)
        if errors:
            raise errors.pop(0)
        return audio_asset()


class TestStoryBatch:

    def test_all_units_populated(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        result = asyncio.run(orchestrator.run(make_units(3)))

        assert [u.id for u in result.units] == [1, 2, 3]
        assert all(u.image_result is not None and u.audio_result is not None for u in result.units)
        assert result.images_succeeded == 3
        assert result.audio_succeeded == 3
        assert result.snapshot.status == BatchStatus.COMPLETED
        assert result.snapshot.completed == 3

    def test_strict_sequential_order(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        asyncio.run(orchestrator.run(make_units(3)))

        order = [(kind, unit) for kind, unit, *_ in tasks.calls]
        assert order == [
            ("image", 1), ("audio", 1),
            ("image", 2), ("audio", 2),
            ("image", 3), ("audio", 3),
        ]

    def test_image_failure_in_middle_unit(self, caller):
        """Unit 2's image fails terminally, its audio still succeeds."""
        tasks = ScriptedTasks(image_failures={2: [ProviderError("Gemini", "No image part found in response")]})
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        result = asyncio.run(orchestrator.run(make_units(3)))
        unit1, unit2, unit3 = result.units

        assert unit2.image_result is None
        assert "No image part" in unit2.image_error
        assert unit2.audio_result is not None
        assert unit1.image_result and unit1.audio_result
        assert unit3.image_result and unit3.audio_result
        assert result.snapshot.completed == 3
        assert result.images_succeeded == 2
        assert result.audio_succeeded == 3

    def test_every_subtask_failing_still_completes(self, caller):
        failures = {i: [ProviderError("Test", "boom", 500)] for i in range(1, 5)}
        tasks = ScriptedTasks(image_failures=failures, audio_failures={i: list(v) for i, v in failures.items()})
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        result = asyncio.run(orchestrator.run(make_units(4)))

        assert result.snapshot.completed == 4
        assert result.snapshot.status == BatchStatus.COMPLETED
        assert result.images_succeeded == 0
        assert result.audio_succeeded == 0
        assert len(result.units) == 4
        assert all(u.image_error and u.audio_error for u in result.units)

    def test_rate_limited_subtask_is_retried(self, caller, sleep):
        tasks = ScriptedTasks(audio_failures={1: [rate_limited(), rate_limited()]})
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        result = asyncio.run(orchestrator.run(make_units(1)))

        assert result.units[0].audio_result is not None
        assert [c[0] for c in tasks.calls] == ["image", "audio", "audio", "audio"]
        assert sleep.delays == [2.0, 4.0]

    def test_large_batch(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        result = asyncio.run(orchestrator.run(make_units(20)))

        assert result.snapshot.completed == 20
        assert [u.id for u in result.units] == list(range(1, 21))


class TestComicBatch:

    def test_panels_have_no_audio(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, caller=caller)

        result = asyncio.run(orchestrator.run(make_units(3, kind=UnitKind.COMIC_PANEL)))

        assert all(c[0] == "image" for c in tasks.calls)
        assert all(u.audio_result is None and u.audio_error is None for u in result.units)
        assert result.audio_succeeded == 0

    def test_comic_units_skip_audio_even_with_audio_task(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        asyncio.run(orchestrator.run(make_units(2, kind=UnitKind.COMIC_PANEL)))

        assert [c[0] for c in tasks.calls] == ["image", "image"]


class TestCharacterSubstitution:

    def test_placeholder_replaced_when_reference_image_present(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, caller=caller)
        character = CharacterReference(description="Mia the Inventor", image="data:image/png;base64,AAAA")

        asyncio.run(orchestrator.run(make_units(1), character))

        _, _, prompt, reference = tasks.calls[0]
        assert prompt == "Mia the Inventor in scene 1"
        assert reference == "data:image/png;base64,AAAA"

    def test_placeholder_left_without_reference_image(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, caller=caller)
        character = CharacterReference(description="Mia the Inventor")

        asyncio.run(orchestrator.run(make_units(1), character))

        _, _, prompt, reference = tasks.calls[0]
        assert prompt == "[CHARACTER] in scene 1"
        assert reference is None


class TestProgressPublication:

    def test_completed_passes_through_every_value(self, caller):
        seen = []
        failures = {2: [ProviderError("Test", "boom", 500)]}
        tasks = ScriptedTasks(image_failures=failures)
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)
        orchestrator.subscribe(lambda snapshot: seen.append(snapshot))

        asyncio.run(orchestrator.run(make_units(5)))

        counts = [s.completed for s in seen]
        assert sorted(set(counts)) == [0, 1, 2, 3, 4, 5]
        assert counts == sorted(counts)
        assert all(b - a in (0, 1) for a, b in zip(counts, counts[1:]))
        assert seen[-1].status == BatchStatus.COMPLETED
        assert all(s.status == BatchStatus.RUNNING for s in seen[:-1])
        assert all(s.total == 5 for s in seen)

    def test_snapshots_carry_unit_state(self, caller):
        seen = []
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller, listeners=[seen.append])

        asyncio.run(orchestrator.run(make_units(2)))

        after_first = next(s for s in seen if s.completed == 1)
        assert after_first.units[0]["image"] == "data:image/png;base64,img1"
        assert after_first.units[1]["image"] is None

    def test_failing_listener_does_not_stop_batch(self, caller):
        def broken(snapshot):
            raise RuntimeError("UI went away")

        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller, listeners=[broken])

        result = asyncio.run(orchestrator.run(make_units(2)))

        assert result.snapshot.completed == 2

    def test_runs_do_not_share_progress(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        first = asyncio.run(orchestrator.run(make_units(2)))
        second = asyncio.run(orchestrator.run(make_units(3)))

        assert first.snapshot.completed == 2
        assert second.snapshot.completed == 3
        assert second.snapshot.total == 3


class TestEdgeCases:

    def test_empty_batch(self, caller):
        seen = []
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller, listeners=[seen.append])

        result = asyncio.run(orchestrator.run([]))

        assert result.units == []
        assert tasks.calls == []
        assert seen[-1].status == BatchStatus.COMPLETED
        assert seen[-1].total == 0

    def test_duplicate_ids_rejected(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)
        units = make_units(2)
        units[1] = GenerationUnit(id=1, text="Segment 2 text", image_prompt=PromptTemplate("x 2"))

        with pytest.raises(ValueError):
            asyncio.run(orchestrator.run(units))

    def test_input_units_not_mutated(self, caller):
        tasks = ScriptedTasks()
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)
        units = make_units(2)

        asyncio.run(orchestrator.run(units))

        assert all(u.image_result is None for u in units)


class TestFailureLogging:

    def test_subtask_failure_names_unit_subtask_and_attempts(self, caller, caplog):
        failures = {2: [rate_limited(), ProviderError("Test", "boom", 500)]}
        tasks = ScriptedTasks(image_failures=failures)
        orchestrator = SequentialBatchOrchestrator(tasks.image, tasks.audio, caller)

        with caplog.at_level(logging.INFO, logger="visulearn"):
            asyncio.run(orchestrator.run(make_units(3)))

        messages = [r.getMessage() for r in caplog.records]
        assert "unit=2 subtask=image attempt=1/4 rate limited, retrying in 2.00s" in messages
        assert any(m.startswith("unit=2 subtask=image attempt=2/4 terminal failure") for m in messages)
        assert "unit=2 subtask=image failed after 2 attempt(s) [provider]: Test error (500): boom" in messages
        assert not any(m.startswith("unit=1 ") or m.startswith("unit=3 ") for m in messages)
