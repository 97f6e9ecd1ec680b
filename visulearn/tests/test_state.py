import dataclasses

import pytest

from visulearn.core.graph.state import Asset, BatchState, GenerationUnit, UnitKind
from visulearn.core.prompt_template import PromptTemplate
from visulearn.core.retry import Success


def test_asset_data_url():
    """Test that an Asset renders as a data URL."""
    asset = Asset(kind="image", data="QUJD", mime_type="image/png")
    assert asset.as_data_url() == "data:image/png;base64,QUJD"


def test_unit_defaults():
    """Test that a new unit has no results or errors."""
    unit = GenerationUnit(id=1, text="Once upon a time...", image_prompt=PromptTemplate("[CHARACTER] waves"))

    assert unit.kind is UnitKind.STORY_SEGMENT
    assert unit.needs_audio
    assert unit.image_result is None
    assert unit.audio_error is None


def test_comic_panel_needs_no_audio():
    unit = GenerationUnit(id=1, text="Pow!", image_prompt=PromptTemplate("panel"), kind=UnitKind.COMIC_PANEL)
    assert not unit.needs_audio


def test_unit_is_immutable():
    unit = GenerationUnit(id=1, text="Hi", image_prompt=PromptTemplate("x"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        unit.text = "Bye"


def test_unit_to_dict():
    """Test the serialized form returned by the API."""
    unit = GenerationUnit(
        id=2,
        text="The leaf drinks sunlight",
        image_prompt=PromptTemplate("[CHARACTER] under a tree"),
        image_result=Asset(kind="image", data="QUJD", mime_type="image/png"),
        audio_error="ElevenLabs error (401): authentication failed",
    )
    data = unit.to_dict()

    assert data["id"] == 2
    assert data["kind"] == "story_segment"
    assert data["image_prompt"] == "[CHARACTER] under a tree"
    assert data["image"] == "data:image/png;base64,QUJD"
    assert data["audio"] is None
    assert data["audio_error"].startswith("ElevenLabs")


def test_batch_state_creation():
    """Test that a BatchState TypedDict can be instantiated."""
    units = [GenerationUnit(id=1, text="Hi", image_prompt=PromptTemplate("x"))]
    state: BatchState = {
        "units": units,
        "current_unit_index": 0,
        "image_outcome": Success("image"),
        "audio_outcome": None,
        "is_complete": False,
    }

    assert state["current_unit_index"] == 0
    assert state["image_outcome"].ok
    assert state["is_complete"] is False
