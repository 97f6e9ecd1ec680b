"""
Prompt input isolation and user-facing messages for VisuLearn agents.

Form fields (names, subjects, concepts...) are interpolated into model
prompts. They are escaped and fenced in <user_input> tags so the model can
tell our instructions from the child's data.
"""
from typing import Any

USER_INPUT_TAG = "user_input"


def sanitize(value: Any) -> str:
    """Escape angle brackets so a value cannot open or close a tag."""
    return str(value).replace("<", "&lt;").replace(">", "&gt;")


def wrap_user_input(user_input: str) -> str:
    """
    Fence a block of user data for a prompt.

    Example:
        >>> wrap_user_input("name: <b>Mia</b>")
        '<user_input>\\nname: &lt;b&gt;Mia&lt;/b&gt;\\n</user_input>'
    """
    return f"<{USER_INPUT_TAG}>\n{sanitize(user_input)}\n</{USER_INPUT_TAG}>"


# Shown to the browser client instead of provider details
ERROR_MESSAGES = {
    "CONFIGURATION_ERROR": "The service is not configured correctly. Please contact the administrator.",
    "PLANNING_FAILED": "We couldn't create your story this time. Please try again! 🔄",
    "IMAGE_FAILED": "Failed to enhance image",
    "ANALYSIS_FAILED": "Failed to analyze image",
    "AUDIO_FAILED": "Failed to generate audio",
    "GENERATION_ERROR": "Something went wrong while creating your content. Please try again. 🔄",
}


def get_user_friendly_error(error_type: str) -> str:
    """Message for an internal error type, GENERATION_ERROR when unknown."""
    return ERROR_MESSAGES.get(error_type, ERROR_MESSAGES["GENERATION_ERROR"])
