from dataclasses import dataclass
from enum import Enum
from typing import TypedDict, List, Optional, Dict, Any

from visulearn.core.prompt_template import PromptTemplate
from visulearn.core.retry import CallOutcome


class UnitKind(str, Enum):
    STORY_SEGMENT = "story_segment"
    COMIC_PANEL = "comic_panel"


@dataclass(frozen=True)
class Asset:
    kind: str  # "image" | "audio"
    data: str  # base64 payload
    mime_type: str

    def as_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class CharacterReference:
    description: str  # e.g. "Mia the Curious Scientist"
    image: Optional[str] = None  # base64 payload or data URL


@dataclass(frozen=True)
class GenerationUnit:
    id: int
    text: str
    image_prompt: PromptTemplate
    kind: UnitKind = UnitKind.STORY_SEGMENT
    image_result: Optional[Asset] = None
    audio_result: Optional[Asset] = None
    image_error: Optional[str] = None
    audio_error: Optional[str] = None

    @property
    def needs_audio(self) -> bool:
        return self.kind is UnitKind.STORY_SEGMENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "text": self.text,
            "image_prompt": self.image_prompt.text,
            "image": self.image_result.as_data_url() if self.image_result else None,
            "audio": self.audio_result.as_data_url() if self.audio_result else None,
            "image_error": self.image_error,
            "audio_error": self.audio_error,
        }


class BatchState(TypedDict):
    # Batch
    units: List[GenerationUnit]

    # Generation loop
    current_unit_index: int

    # Temporary holding for the current unit's sub-tasks
    image_outcome: Optional[CallOutcome]
    audio_outcome: Optional[CallOutcome]

    # Status
    is_complete: bool
