"""Image prompt templates with a single named substitution slot."""
from dataclasses import dataclass
from typing import Optional

CHARACTER_SLOT = "[CHARACTER]"


@dataclass(frozen=True)
class PromptTemplate:
    text: str
    slot: Optional[str] = CHARACTER_SLOT

    @property
    def has_slot(self) -> bool:
        return bool(self.slot) and self.slot in self.text

    def render(self, substitution: Optional[str] = None) -> str:
        return render_prompt(self, substitution)

    def __str__(self) -> str:
        return self.text


def render_prompt(template: PromptTemplate, substitution: Optional[str]) -> str:
    """
    Fill the template's slot. With no substitution (or no slot in the text)
    the text is returned as is and the provider interprets the placeholder.
    """
    if substitution is None or not template.has_slot:
        return template.text
    return template.text.replace(template.slot, substitution)


def character_description(name: str, role: str) -> str:
    """Short description used in place of the slot, e.g. 'Mia the Inventor'."""
    return f"{name} the {role}"
