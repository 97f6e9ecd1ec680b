from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional


class CamelModel(BaseModel):
    # The browser client posts camelCase keys
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class StoryRequest(CamelModel):
    story_type: str = "adventure"
    subject: str
    duration: int = Field(1, ge=1, le=10)  # minutes
    age: int = Field(8, ge=3, le=14)
    child_name: str
    child_role: str = "Brave Explorer"
    character_image: Optional[str] = None
    learning_concept: Optional[str] = None
    story_setting: Optional[str] = None


class ComicRequest(CamelModel):
    comic_type: str = "superhero"
    subject: str
    learning_concept: str
    age: int = Field(8, ge=3, le=14)
    child_name: str
    child_role: str = "Brave Explorer"
    pronouns: Literal["he", "she", "they", "it"] = "they"
    comic_setting: str = "a bright, colorful city"
    panels: int = Field(4, ge=1, le=12)
    character_image: Optional[str] = None


class Arrow(CamelModel):
    direction: str
    position: str
    color: str = "red"
    purpose: str = ""


class Highlight(CamelModel):
    area: str
    color: str = "yellow"
    style: str = "circle"
    purpose: str = ""


class Label(CamelModel):
    text: str
    position: str
    color: str = "blue"
    purpose: str = ""


class VisualEdits(CamelModel):
    arrows: List[Arrow] = Field(default_factory=list)
    highlights: List[Highlight] = Field(default_factory=list)
    labels: List[Label] = Field(default_factory=list)


class EnhanceImageRequest(CamelModel):
    image: Optional[str] = None
    visual_edits: Optional[VisualEdits] = None
    image_prompt: Optional[str] = None
    is_story_generation: bool = False


class AnalyzeImageRequest(CamelModel):
    image: str
    subject: str
    previous_concepts: List[str] = Field(default_factory=list)


class TextToSpeechRequest(CamelModel):
    text: str = ""

    @field_validator("text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


class UnitOut(BaseModel):
    id: int
    kind: str
    text: str
    image_prompt: str
    image: Optional[str] = None
    audio: Optional[str] = None
    image_error: Optional[str] = None
    audio_error: Optional[str] = None


class PlanResponse(BaseModel):
    success: bool = True
    title: Optional[str] = None
    description: Optional[str] = None
    units: List[UnitOut]


class JobStarted(BaseModel):
    job_id: str
    status: str
    total: int
