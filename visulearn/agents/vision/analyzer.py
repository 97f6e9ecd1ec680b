"""
Snap & learn: find one educational concept in a photo, then redraw the photo
with arrows, highlights and labels that explain it.
"""
from typing import Any, Dict, List, Optional

from visulearn.agents.context_loader import sanitize
from visulearn.core.errors import ParseError
from visulearn.core.gemini_client import GeminiClient, strip_data_url
from visulearn.core.graph.state import Asset
from visulearn.core.logger import get_logger, log_agent_action
from visulearn.core.parsing import parse_structured_output
from visulearn.schemas.schema import VisualEdits

logger = get_logger("analyzer")

ANALYSIS_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}


def get_analysis_prompt(subject: str, previous_concepts: List[str]) -> str:
    subject = sanitize(subject)
    prompt = f"""You are an expert {subject} teacher specializing in visual learning for children aged 7-12.

TASK: Analyze this image and identify ONE key {subject} concept that can be clearly observed or demonstrated in the image.

Respond ONLY with this JSON:
{{
  "concept": {{"name": "...", "explanation": "2-3 fun sentences a child understands"}},
  "visual_edits": {{
    "arrows": [{{"direction": "...", "position": "...", "color": "...", "purpose": "..."}}],
    "highlights": [{{"area": "...", "color": "...", "style": "circle|rectangle|outline", "purpose": "..."}}],
    "labels": [{{"text": "...", "position": "...", "color": "...", "purpose": "..."}}]
  }}
}}
"""
    if previous_concepts:
        already = ", ".join(sanitize(c) for c in previous_concepts)
        prompt += f"\nIMPORTANT: Do NOT repeat these concepts already explained: {already}. Pick a different one.\n"
    return prompt


def fallback_analysis(raw_text: str) -> Dict[str, Any]:
    return {
        "concept": {"name": "Analysis Result", "explanation": raw_text},
        "visual_edits": {"arrows": [], "highlights": [], "labels": []},
    }


async def analyze_image(
    image: str,
    subject: str,
    client: GeminiClient,
    previous_concepts: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Returns the concept and suggested visual edits; raw text if the JSON is unusable."""
    text = await client.generate_text(
        get_analysis_prompt(subject, previous_concepts or []),
        image=strip_data_url(image),
        generation_config=ANALYSIS_GENERATION_CONFIG,
    )
    try:
        analysis = parse_structured_output(text, expect=dict)
    except ParseError:
        logger.warning("Analysis was not valid JSON, returning raw text")
        return fallback_analysis(text)

    concept = analysis.get("concept")
    edits = analysis.setdefault("visual_edits", fallback_analysis("")["visual_edits"])
    if not isinstance(concept, dict) or not isinstance(edits, dict):
        logger.warning("Analysis JSON has an unexpected shape, returning raw text")
        return fallback_analysis(text)

    log_agent_action("analyzer", "Image analyzed", str(concept.get("name", "")))
    return analysis


def build_enhancement_prompt(visual_edits: Optional[VisualEdits]) -> str:
    """Turn suggested edits into drawing instructions for the image model."""
    edits = visual_edits or VisualEdits()
    prompt = "Enhance this educational image by adding the following visual elements to help explain the concept:\n\n"

    if edits.arrows:
        prompt += "ARROWS TO ADD:\n"
        for i, arrow in enumerate(edits.arrows, start=1):
            prompt += f"{i}. Draw a {arrow.color} arrow {arrow.direction} {arrow.position} to {arrow.purpose}\n"
        prompt += "\n"

    if edits.highlights:
        prompt += "AREAS TO HIGHLIGHT:\n"
        for i, highlight in enumerate(edits.highlights, start=1):
            prompt += f"{i}. Add a {highlight.color} {highlight.style} highlight around {highlight.area} to {highlight.purpose}\n"
        prompt += "\n"

    if edits.labels:
        prompt += "LABELS TO ADD:\n"
        for i, label in enumerate(edits.labels, start=1):
            prompt += f'{i}. Add {label.color} text "{label.text}" {label.position} to {label.purpose}\n'
        prompt += "\n"

    prompt += ("Make sure all additions are clear, educational, and kid-friendly. "
               "Keep the original image intact while adding these visual enhancements.")
    return prompt


async def enhance_image(image: str, visual_edits: Optional[VisualEdits], client: GeminiClient) -> Asset:
    result = await client.generate_image(build_enhancement_prompt(visual_edits), image=image)
    log_agent_action("analyzer", "Image enhanced")
    return Asset(kind="image", data=result["data"], mime_type=result["mime_type"])
