"""
Prompts for the planning agent.
Builds the story and comic scripts requested from the text model.
"""
from visulearn.agents.context_loader import wrap_user_input
from visulearn.core.prompt_template import CHARACTER_SLOT
from visulearn.schemas.schema import ComicRequest, StoryRequest

CHARACTER_DESCRIPTIONS = {
    "Brave Explorer": "A {age}-year-old child named {name} with bright, adventurous eyes and a confident smile. Wearing a khaki explorer's vest with many pockets, sturdy boots, and carrying a small compass.",
    "Curious Scientist": "A {age}-year-old child named {name} with inquisitive eyes behind round glasses. Wearing a white lab coat over colorful clothes, carrying a small notebook and magnifying glass.",
    "Magical Wizard": "A {age}-year-old child named {name} with sparkling, mystical eyes. Wearing a purple wizard robe with silver stars, a pointed hat, and carrying a small wooden wand.",
    "Space Astronaut": "A {age}-year-old child named {name} with bright, curious eyes. Wearing a silver spacesuit with colorful patches and a clear helmet.",
    "Detective": "A {age}-year-old child named {name} with sharp, observant eyes. Wearing a detective coat, carrying a magnifying glass and small notebook.",
    "Nature Guardian": "A {age}-year-old child named {name} with kind, gentle eyes. Wearing earth-toned clothes with leaf patterns and a flower crown, carrying a small watering can.",
    "Time Traveler": "A {age}-year-old child named {name} wearing a steampunk vest, modern sneakers and a vintage cap, carrying a glowing pocket watch.",
    "Inventor": "A {age}-year-old child named {name} with creative eyes, wearing overalls covered in paint and small gadgets, carrying a toolbox.",
}

LEARNING_CONCEPTS = {
    "physics": "How forces and energy work in our world",
    "mathematics": "How numbers and patterns help us solve problems",
    "chemistry": "How different materials mix and change",
    "biology": "How living things grow and survive",
    "geography": "How our planet Earth works and changes",
    "history": "How people lived and what we can learn from the past",
}
DEFAULT_LEARNING_CONCEPT = "How science helps us understand the world"

STORY_SETTINGS = {
    "adventure": "A vast, colorful world with mountains, forests, and hidden treasures waiting to be discovered",
    "fantasy": "A magical realm with talking animals, enchanted forests, and sparkling castles in the clouds",
    "sci-fi": "A futuristic world with flying cars, robot friends, and amazing space stations among the stars",
    "mystery": "A curious town with secret passages, hidden clues, and mysterious but friendly characters",
}

PRONOUNS = {
    "he": ("he", "him", "his"),
    "she": ("she", "her", "her"),
    "it": ("it", "it", "its"),
    "they": ("they", "them", "their"),
}


def describe_character(name: str, role: str, age: int) -> str:
    template = CHARACTER_DESCRIPTIONS.get(role, CHARACTER_DESCRIPTIONS["Brave Explorer"])
    return template.format(name=name, age=age)


def learning_concept_for(subject: str) -> str:
    return LEARNING_CONCEPTS.get(subject.lower(), DEFAULT_LEARNING_CONCEPT)


def setting_for(story_type: str) -> str:
    return STORY_SETTINGS.get(story_type.lower(), STORY_SETTINGS["adventure"])


def get_story_prompt(request: StoryRequest, segment_count: int) -> str:
    concept = request.learning_concept or learning_concept_for(request.subject)
    setting = request.story_setting or setting_for(request.story_type)

    raw_input = f"""
story_subject: {request.subject}
learning_concept: {concept}
story_genre: {request.story_type}
target_age: {request.age}
story_duration_minutes: {request.duration}
character_name: {request.child_name}
character_role: {request.child_role}
character_description: {describe_character(request.child_name, request.child_role, request.age)}
story_setting: {setting}
"""
    return f"""You are a creative and educational storyteller for children. Write a story script
that teaches the learning concept through the adventure of the character described below.

{wrap_user_input(raw_input)}

Break the story into EXACTLY {segment_count} sequential segments. Each segment is read aloud
in about 15 seconds and illustrated by one image.

Return ONLY a JSON array (no markdown, no text before or after). Each element:
{{
  "segment_id": <integer starting at 1>,
  "narrative_text": "<text to read aloud, simple enough for the target age>",
  "image_generation_prompt": "<scene, setting, emotion and pose, art style; refer to the main character ONLY as {CHARACTER_SLOT}>"
}}
"""


def get_comic_prompt(request: ComicRequest) -> str:
    subject_pronoun, object_pronoun, possessive = PRONOUNS[request.pronouns]

    raw_input = f"""
comic_genre: {request.comic_type}
subject: {request.subject}
learning_concept: {request.learning_concept}
target_age: {request.age}
hero_name: {request.child_name}
hero_role: {request.child_role}
hero_pronouns: {subject_pronoun}/{object_pronoun}/{possessive}
comic_setting: {request.comic_setting}
"""
    return f"""You are a comic book writer for children. Create a TRUE COMIC BOOK that teaches the
learning concept below, with the hero in every panel.

{wrap_user_input(raw_input)}

Create EXACTLY {request.panels} panels, no more, no less. panel_id values are 1..{request.panels}
with no gaps or duplicates. Every image prompt must include "consistent character design" and
"same {request.child_name} as previous panels".

Return ONLY this JSON object (no markdown, no extra keys):
{{
  "title": "...",
  "description": "...",
  "panels": [
    {{"panel_id": 1, "panel_text": "...", "image_generation_prompt": "..."}}
  ]
}}
"""


def comic_filler_caption(request: ComicRequest) -> str:
    return f'{request.child_name}: "Let\'s continue our adventure!"'


def comic_filler_prompt(request: ComicRequest) -> str:
    return (
        f"Comic book style illustration of {request.child_name} the {request.child_role}, "
        f"consistent character design with previous panels, same clothing and appearance, "
        f"set in {request.comic_setting}, vibrant colors, bold comic outlines, speech bubble."
    )


def reinforce_comic_prompt(prompt: str, request: ComicRequest) -> str:
    """Add character-consistency and comic-style instructions when missing."""
    if "consistent character" not in prompt:
        prompt = (
            f"{prompt}. CRITICAL: Maintain consistent character design - same {request.child_name} "
            f"with identical physical features, clothing, and appearance as all previous panels."
        )
    if "comic book style" not in prompt.lower():
        prompt = f"Comic book style illustration: {prompt}"
    return prompt


STORY_FILLER_TEXT = "And the adventure continued, full of new things to discover!"
STORY_FILLER_PROMPT = f"{CHARACTER_SLOT} smiling and looking ahead to the next discovery. Whimsical storybook illustration."
