"""Response modes and the cleanup applied to raw model output."""

import re
from enum import Enum

from logger import get_logger
log = get_logger(name="core_response")


class ResponseMode(str, Enum):
    """Output format the synthesis prompt asks the model for."""
    HTML = "html"
    MARKDOWN = "markdown"


LEADING_FENCE = re.compile(r"^`{1,6}(?:html?)?\n?")
TRAILING_FENCE = re.compile(r"`{1,6}$")


def clean_html_response(text: str) -> str:
    """Strip a leading ```html fence, a trailing fence and all newlines.
    Fences in the middle of the text are left alone.
    """
    text = LEADING_FENCE.sub("", text, count=1)
    text = TRAILING_FENCE.sub("", text, count=1)
    return text.replace("\n", "").strip()


def clean_response(text: str, mode: ResponseMode) -> str:
    """Clean the raw model output according to the response mode.

    Markdown output is returned as is: fence stripping would break
    legitimate code blocks in Markdown answers.
    """
    if mode is ResponseMode.HTML:
        cleaned = clean_html_response(text)
        log.debug(f"Cleaned HTML response: {len(text)} -> {len(cleaned)} chars.")
        return cleaned

    return text
